"""plan 协议

编排方与镜像之间的请求/响应约定:
  请求: 在容器内执行 plan 钩子，stdin 传入 {"config": <boxfile 中该服务的 config 子树>}
  响应: 钩子 stdout 输出 JSON
        {"users": [{"username": "...", "password": "..."}], "default_user": "..."}

镜像负责输出合法 JSON；用户名重复等语义问题不在此校验。
"""

from __future__ import annotations

import json
import logging
from typing import Any

from provisioner.core.exceptions import ProtocolError
from provisioner.core.models import PlanUser, ServicePlan
from provisioner.core.protocols import ContainerEngine, OutputSink

logger = logging.getLogger(__name__)

PLAN_STAGE = "plan"


def build_plan_payload(config: Any) -> str:
    """构造 plan 请求体"""
    return json.dumps({"config": config if config is not None else {}},
                      ensure_ascii=False, default=str)


def run_plan(
    engine: ContainerEngine,
    container_id: str,
    config: Any,
    *,
    command: str,
    output: OutputSink | None = None,
) -> str:
    """在容器内执行 plan 钩子，返回原始 stdout"""
    payload = build_plan_payload(config)
    logger.debug("plan 请求: container=%s payload=%s", container_id[:12], payload)
    return engine.exec(container_id, command, payload, output)


def parse_plan(raw: str, *, stage: str = PLAN_STAGE) -> ServicePlan:
    """解析 plan 响应，结构不符抛 ProtocolError"""
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise ProtocolError(f"{stage}: plan 响应不是合法 JSON: {e}") from e
    if not isinstance(data, dict):
        raise ProtocolError(f"{stage}: plan 响应必须是 JSON 对象")

    users_raw = data.get("users")
    if users_raw is None:
        users_raw = []
    if not isinstance(users_raw, list):
        raise ProtocolError(f"{stage}: users 必须是数组")

    users: list[PlanUser] = []
    for i, u in enumerate(users_raw):
        if not isinstance(u, dict) or not isinstance(u.get("username"), str):
            raise ProtocolError(f"{stage}: users[{i}] 缺少字符串 username")
        password = u.get("password")
        if password is not None and not isinstance(password, str):
            raise ProtocolError(f"{stage}: users[{i}].password 必须是字符串")
        users.append(PlanUser(username=u["username"], password=password or ""))

    default_user = data.get("default_user")
    if default_user is not None and not isinstance(default_user, str):
        raise ProtocolError(f"{stage}: default_user 必须是字符串")

    return ServicePlan(users=users, default_user=default_user or "")
