"""服务编排 API Blueprint"""

from __future__ import annotations

from dataclasses import asdict

from flask import Blueprint, Response, request

from provisioner.core.exceptions import (
    CompensationError,
    ProvisionError,
    ResourceExhaustedError,
    ValidationError,
)
from provisioner.core.process import ProcessControl
from provisioner.services.setup import SERVICE_SETUP
from provisioner.utils.stylish import BufferDisplay
from provisioner.web.responses import bad_request, error, not_found, ok

services_bp = Blueprint("services", __name__, url_prefix="/api")


def _svc():  # type: ignore[no-untyped-def]
    from provisioner.services.container import get_container
    return get_container()


@services_bp.route("/services", methods=["POST"])
def setup_service() -> tuple[Response, int] | Response:
    body = request.get_json(silent=True) or {}
    meta = {k: str(body.get(k) or "") for k in ("name", "image", "label", "boxfile")}
    sink = BufferDisplay()
    control = ProcessControl(meta=meta, display_sink=sink)

    try:
        result = _svc().registry.run(SERVICE_SETUP, control)
    except ValidationError as e:
        return bad_request(str(e), details=e.details, output=sink.lines)
    except ResourceExhaustedError as e:
        return error(e, 409, output=sink.lines)
    except CompensationError as e:
        return error(
            e, 500, rollback_complete=False, failed_compensation=e.failed,
            remaining=e.remaining, original=str(e.original), output=sink.lines,
        )
    except ProvisionError as e:
        return error(e, 502, rollback_complete=True, output=sink.lines)

    return ok({
        "name": result.get("name"),
        "container_id": result.get("container_id"),
        "internal_ip": result.get("internal_ip"),
        "external_ip": result.get("external_ip"),
        "output": sink.lines,
    }, status=201)


@services_bp.route("/services", methods=["GET"])
def list_services() -> Response:
    return ok({"services": [s.to_dict() for s in _svc().services.list_all()]})


@services_bp.route("/services/<name>", methods=["GET"])
def get_service(name: str) -> tuple[Response, int] | Response:
    svc = _svc().services.get(name)
    if svc is None:
        return not_found(f"服务 {name} ")
    return ok({"service": svc.to_dict()})


@services_bp.route("/env", methods=["GET"])
def show_env() -> Response:
    return ok({"env": _svc().env_vars.load()})


@services_bp.route("/pool", methods=["GET"])
def pool_status() -> Response:
    status = _svc().pool.status()
    return ok({tier: asdict(st) for tier, st in status.items()})
