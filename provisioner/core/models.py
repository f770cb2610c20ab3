"""核心数据模型

所有核心数据类集中定义，编排流程、存储、Web / CLI 统一从此处导入。
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from provisioner.core.exceptions import ValidationError

# =========================================================================
# 服务领域模型
# =========================================================================


class ServiceState(str, Enum):
    """服务生命周期状态（只前进，不回退）"""
    INITIALIZED = "initialized"
    PLANNED = "planned"


# 已知状态的先后顺序；未知状态（后续流程写入的）一律视为已越过 initialized
_STATE_ORDER = [ServiceState.INITIALIZED.value, ServiceState.PLANNED.value]


class ServiceType(str, Enum):
    """服务分类标签"""
    DATA = "data"


@dataclass
class PlanUser:
    """plan 声明的用户"""

    username: str
    password: str = ""


@dataclass
class ServicePlan:
    """容器内 plan 钩子返回的运行时需求"""

    users: list[PlanUser] = field(default_factory=list)
    default_user: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ServicePlan:
        data = data or {}
        users = [
            PlanUser(username=u.get("username", ""), password=u.get("password", ""))
            for u in data.get("users") or []
            if isinstance(u, dict)
        ]
        return cls(users=users, default_user=data.get("default_user") or "")


@dataclass
class Service:
    """已编排服务的持久化记录，以 (应用, name) 唯一标识"""

    name: str = ""
    id: str = ""
    internal_ip: str = ""
    external_ip: str = ""
    state: str = ""
    type: str = ""
    plan: ServicePlan = field(default_factory=ServicePlan)

    @property
    def initialized(self) -> bool:
        return self.state == ServiceState.INITIALIZED

    def advance(self, state: str) -> None:
        """推进状态；已知状态之间不允许回退"""
        target = str(getattr(state, "value", state))
        if self.state in _STATE_ORDER and target in _STATE_ORDER:
            if _STATE_ORDER.index(target) < _STATE_ORDER.index(self.state):
                raise ValidationError(f"服务状态不能回退: {self.state} -> {target}")
        elif self.state and self.state not in _STATE_ORDER and target in _STATE_ORDER:
            raise ValidationError(f"服务状态不能回退: {self.state} -> {target}")
        self.state = target

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Service:
        """从存储记录构建，忽略未知字段（如存储元信息）"""
        data = data or {}
        return cls(
            name=data.get("name", ""),
            id=data.get("id", ""),
            internal_ip=data.get("internal_ip", ""),
            external_ip=data.get("external_ip", ""),
            state=data.get("state", ""),
            type=data.get("type", ""),
            plan=ServicePlan.from_dict(data.get("plan")),
        )


# =========================================================================
# 容器领域模型
# =========================================================================


@dataclass
class ContainerConfig:
    """容器创建参数"""

    name: str
    image: str
    network: str = ""
    ip: str = ""


@dataclass
class ContainerHandle:
    """已启动容器的句柄"""

    id: str
    name: str = ""
