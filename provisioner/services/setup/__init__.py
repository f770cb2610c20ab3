"""服务编排模块

拆分说明:
- service_setup.py: 编排流程主体
- compensation.py: 补偿动作记录
- plan.py: 容器内 plan 协议
- env_vars.py: 环境变量投影
"""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING

from provisioner.services.setup.compensation import Compensation, CompensationLog
from provisioner.services.setup.env_vars import EnvVarStore, env_prefix, project_env_vars
from provisioner.services.setup.plan import build_plan_payload, parse_plan, run_plan
from provisioner.services.setup.service_setup import SERVICE_SETUP, ServiceSetup

if TYPE_CHECKING:
    from provisioner.core.registry import ProcessorRegistry
    from provisioner.services.container import ServiceContainer


def register(registry: ProcessorRegistry, container: ServiceContainer) -> None:
    """向注册表登记本模块提供的流程"""
    registry.register(SERVICE_SETUP, partial(ServiceSetup.create, container))


__all__ = [
    "Compensation",
    "CompensationLog",
    "EnvVarStore",
    "SERVICE_SETUP",
    "ServiceSetup",
    "build_plan_payload",
    "env_prefix",
    "parse_plan",
    "project_env_vars",
    "register",
    "run_plan",
]
