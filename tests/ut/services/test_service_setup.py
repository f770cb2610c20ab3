"""service_setup 编排流程单元测试"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from provisioner.core.exceptions import (
    CompensationError,
    ExternalCallError,
    PersistenceError,
    ProtocolError,
    ResourceExhaustedError,
    ValidationError,
)
from provisioner.core.process import ProcessControl
from provisioner.services.container import ServiceContainer
from provisioner.services.setup import SERVICE_SETUP, ServiceSetup
from provisioner.utils.passwords import PASSWORD_LENGTH

BOXFILE = """
data.db:
  image: example/postgresql
  config:
    version: "9.4"
"""


def _control(sink=None, **meta: str) -> ProcessControl:
    meta = {"name": "data.db", "image": "example/postgresql", **meta}
    if sink is None:
        return ProcessControl(meta=meta)
    return ProcessControl(meta=meta, display_sink=sink)


def _run(container: ServiceContainer, control: ProcessControl) -> ProcessControl:
    return container.registry.run(SERVICE_SETUP, control)


def _free(container: ServiceContainer) -> tuple[int, int]:
    st = container.pool.status()
    return st["local"].available, st["global"].available


class TestSetupSuccess:
    def test_full_flow(self, container, engine, network, sink) -> None:
        result = _run(container, _control(sink, boxfile=BOXFILE))

        assert engine.names == ["pull_image", "create_container", "exec"]
        assert network.names == ["add_ip", "add_nat"]
        assert engine.calls[1] == ("create_container", "box-app-data.db", "10.0.0.10")
        assert network.calls[1] == ("add_nat", "172.30.0.10", "10.0.0.10")
        assert json.loads(engine.payloads[0]) == {"config": {"version": "9.4"}}

        assert result.get("container_id") == "cid1"
        assert result.get("internal_ip") == "10.0.0.10"
        assert result.get("external_ip") == "172.30.0.10"
        assert _free(container) == (3, 3)

    def test_record_persisted(self, container) -> None:
        _run(container, _control())
        svc = container.services.get("data.db")
        assert svc is not None
        assert svc.state == "planned"
        assert svc.type == "data"
        assert svc.id == "cid1"
        assert [u.username for u in svc.plan.users] == ["admin", "app"]
        assert all(len(u.password) == PASSWORD_LENGTH for u in svc.plan.users)
        assert svc.plan.default_user == "admin"

    def test_plan_passwords_are_replaced(self, config, network, make_engine) -> None:
        eng = make_engine(plan={"users": [{"username": "admin", "password": "fromimage"}],
                               "default_user": "admin"})
        c = ServiceContainer(config=config, instances={"engine": eng, "network": network})
        _run(c, _control())
        assert c.services.get("data.db").plan.users[0].password != "fromimage"

    def test_env_vars_merged(self, container) -> None:
        container.env_vars.merge({"OTHER_HOST": "10.9.9.9"})
        _run(container, _control())
        env = container.env_vars.load()
        svc = container.services.get("data.db")
        admin = svc.plan.users[0]
        assert env["OTHER_HOST"] == "10.9.9.9"
        assert env["DATA_DB_HOST"] == "10.0.0.10"
        assert env["DATA_DB_USER"] == "admin"
        assert env["DATA_DB_PASS"] == admin.password
        assert env["DATA_DB_ADMIN_PASS"] == admin.password
        assert env["DATA_DB_USERS"] == "admin app"

    def test_display_output(self, container, sink) -> None:
        _run(container, _control(sink, label="Database"))
        lines = sink.lines
        assert lines[0] == "+> 正在启动 Database..."
        assert "   + Pulling example/postgresql - Pulling fs layer" in lines
        assert "      planning..." in lines

    def test_logs_carry_stage_and_service(self, container, caplog) -> None:
        import logging
        with caplog.at_level(logging.INFO, logger="provisioner.services.setup"):
            _run(container, _control())
        saga = [r for r in caplog.records if getattr(r, "stage", "") == SERVICE_SETUP]
        assert saga
        assert all(r.service == "data.db" for r in saga)
        assert any("已就绪" in r.getMessage() for r in saga)

    def test_label_defaults_to_name(self, container, sink) -> None:
        _run(container, _control(sink))
        assert sink.lines[0] == "+> 正在启动 data.db..."

    def test_two_services_get_distinct_addresses(self, container) -> None:
        a = _run(container, _control(name="a"))
        b = _run(container, _control(name="b"))
        assert a.get("internal_ip") != b.get("internal_ip")
        assert a.get("external_ip") != b.get("external_ip")


class TestSetupResume:
    def test_planned_service_is_skipped(self, container, engine, network) -> None:
        _run(container, _control())
        engine.calls.clear()
        network.calls.clear()
        before = _free(container)

        result = _run(container, _control())

        assert engine.calls == []
        assert network.calls == []
        assert _free(container) == before
        assert result.get("container_id") == "cid1"

    def test_initialized_record_is_provisioned(self, container, engine) -> None:
        container.storage.put("app", "data.db", {"name": "data.db", "state": "initialized"})
        _run(container, _control())
        assert "pull_image" in engine.names
        assert container.services.get("data.db").state == "planned"

    def test_similar_names_are_distinct_services(self, container, engine) -> None:
        _run(container, _control(name="a/b"))
        engine.calls.clear()

        result = _run(container, _control(name="a_b"))

        assert engine.names == ["pull_image", "create_container", "exec"]
        assert result.get("container_id") == "cid2"
        assert sorted(s.name for s in container.services.list_all()) == ["a/b", "a_b"]
        assert container.env_vars.load()["A_B_HOST"] == result.get("internal_ip")

    def test_storage_read_error_propagates(self, container, engine, tmp_path) -> None:
        path = Path(container.storage.put("app", "data.db", {"state": "planned"}))
        path.write_text("{", encoding="utf-8")
        with pytest.raises(PersistenceError):
            ServiceSetup.create(container, _control()).process()
        assert engine.calls == []


class TestSetupValidation:
    @pytest.mark.parametrize("missing", ["name", "image"])
    def test_missing_meta_rejected_before_side_effects(
        self, container, engine, network, missing,
    ) -> None:
        before = _free(container)
        with pytest.raises(ValidationError) as ei:
            _run(container, _control(**{missing: ""}))
        assert ei.value.details == [missing]
        assert engine.calls == []
        assert network.calls == []
        assert _free(container) == before

    def test_bad_boxfile_rejected(self, container, engine) -> None:
        with pytest.raises(ValidationError, match="boxfile"):
            _run(container, _control(boxfile="a: [unclosed"))
        assert engine.calls == []


class TestSetupRollback:
    def test_pull_failure_has_nothing_to_undo(self, container, engine, network) -> None:
        engine.fail.add("pull_image")
        with pytest.raises(ExternalCallError) as ei:
            _run(container, _control())
        assert ei.value.stage == "download_image"
        assert network.calls == []
        assert _free(container) == (4, 4)

    def test_launch_failure_returns_addresses(self, container, engine) -> None:
        engine.fail.add("create_container")
        with pytest.raises(ExternalCallError, match="launch_container"):
            _run(container, _control())
        assert "remove_container" not in engine.names
        assert _free(container) == (4, 4)

    def test_nat_failure_rolls_back_everything(self, container, engine, network) -> None:
        network.fail.add("add_nat")
        with pytest.raises(ExternalCallError) as ei:
            _run(container, _control())

        assert ei.value.stage == "attach_network"
        assert engine.names[-1] == "remove_container"
        assert network.names == ["add_ip", "add_nat", "remove_ip"]
        assert _free(container) == (4, 4)
        assert container.services.get("data.db") is None

    def test_plan_failure_undoes_network_and_container(self, container, engine, network) -> None:
        engine.fail.add("exec")
        with pytest.raises(ExternalCallError) as ei:
            _run(container, _control())
        assert ei.value.stage == "plan"
        assert network.names == ["add_ip", "add_nat", "remove_ip", "remove_nat"]
        assert "remove_container" in engine.names
        assert _free(container) == (4, 4)

    def test_bad_plan_output_rolls_back(self, config, network, make_engine) -> None:
        eng = make_engine(plan="not json")
        c = ServiceContainer(config=config, instances={"engine": eng, "network": network})
        with pytest.raises(ProtocolError, match="plan"):
            _run(c, _control())
        assert _free(c) == (4, 4)
        assert "remove_container" in eng.names

    def test_env_failure_restores_record(self, container, monkeypatch) -> None:
        def boom(updates):
            raise PersistenceError("env 写入失败")

        monkeypatch.setattr(container.env_vars, "merge", boom)
        with pytest.raises(PersistenceError):
            _run(container, _control())
        assert container.services.get("data.db") is None
        assert _free(container) == (4, 4)

    def test_env_failure_restores_previous_record(self, container, monkeypatch) -> None:
        prior = {"name": "data.db", "state": "initialized", "type": "legacy"}
        container.storage.put("app", "data.db", prior)

        def boom(updates):
            raise PersistenceError("env 写入失败")

        monkeypatch.setattr(container.env_vars, "merge", boom)
        with pytest.raises(PersistenceError):
            _run(container, _control())
        assert container.storage.get("app", "data.db") == prior

    def test_local_exhaustion_leaves_pool_unchanged(self, container, engine) -> None:
        for _ in range(4):
            container.pool.reserve_local()
        with pytest.raises(ResourceExhaustedError):
            _run(container, _control())
        st = container.pool.status()
        assert st["global"].available == 4
        assert "create_container" not in engine.names

    def test_global_exhaustion_returns_local(self, container) -> None:
        for _ in range(4):
            container.pool.reserve_global()
        with pytest.raises(ResourceExhaustedError):
            _run(container, _control())
        assert container.pool.status()["local"].available == 4


class TestCompensationOrder:
    def _setup(self, container: ServiceContainer, network) -> ServiceSetup:
        network.fail.add("add_nat")
        proc = ServiceSetup.create(container, _control())
        with pytest.raises(ExternalCallError):
            proc.process()
        assert proc.failed is True
        return proc

    def test_forward_order_by_default(self, container, engine, network) -> None:
        undo: list[str] = []
        orig_return = container.pool.return_ip

        def spy_return(addr):
            undo.append(f"return:{addr}")
            orig_return(addr)

        container.pool.return_ip = spy_return  # type: ignore[method-assign]
        self._setup(container, network)
        undo_engine = [c for c in engine.calls if c[0] == "remove_container"]
        assert undo == ["return:10.0.0.10", "return:172.30.0.10"]
        assert undo_engine == [("remove_container", "cid1")]
        # forward: remove_ip 在 remove_container 之后执行
        assert network.names[-1] == "remove_ip"

    def test_reverse_order(self, config, engine, network) -> None:
        config.compensation_order = "reverse"
        c = ServiceContainer(config=config, instances={"engine": engine, "network": network})
        order: list[str] = []
        orig_remove = engine.remove_container
        orig_remove_ip = network.remove_ip
        orig_return = c.pool.return_ip

        def rc(cid):
            order.append("remove_container")
            orig_remove(cid)

        def ri(addr):
            order.append("remove_ip")
            orig_remove_ip(addr)

        def ret(addr):
            order.append(f"return:{addr}")
            orig_return(addr)

        engine.remove_container = rc
        network.remove_ip = ri
        c.pool.return_ip = ret  # type: ignore[method-assign]
        self._setup(c, network)
        assert order == ["remove_ip", "remove_container",
                         "return:172.30.0.10", "return:10.0.0.10"]

    def test_forward_execution_sequence(self, config, engine, network) -> None:
        c = ServiceContainer(config=config, instances={"engine": engine, "network": network})
        order: list[str] = []
        orig_remove = engine.remove_container
        orig_remove_ip = network.remove_ip
        orig_return = c.pool.return_ip

        def rc(cid):
            order.append("remove_container")
            orig_remove(cid)

        def ri(addr):
            order.append("remove_ip")
            orig_remove_ip(addr)

        def ret(addr):
            order.append(f"return:{addr}")
            orig_return(addr)

        engine.remove_container = rc
        network.remove_ip = ri
        c.pool.return_ip = ret  # type: ignore[method-assign]
        self._setup(c, network)
        assert order == ["return:10.0.0.10", "return:172.30.0.10",
                         "remove_container", "remove_ip"]


class TestCompensationFailure:
    def test_failed_undo_raises_compensation_error(self, container, engine, network) -> None:
        network.fail.update({"add_nat", "remove_ip"})
        with pytest.raises(CompensationError) as ei:
            _run(container, _control())
        err = ei.value
        assert isinstance(err.original, ExternalCallError)
        assert err.failed == "remove_ip"
        assert err.remaining == []
        assert _free(container) == (4, 4)

    def test_remaining_labels_reported(self, container, engine, network) -> None:
        network.fail.add("add_nat")
        engine.fail.add("remove_container")
        with pytest.raises(CompensationError) as ei:
            _run(container, _control())
        assert ei.value.failed == "remove_container"
        assert ei.value.remaining == ["remove_ip"]
        assert "remove_ip" not in network.names
