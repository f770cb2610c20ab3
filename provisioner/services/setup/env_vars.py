"""环境变量投影

从服务的 plan 推导对外暴露的环境变量，合并进应用共享的环境变量表。
以服务名 data.db 为例，前缀为 DATA_DB:

    DATA_DB_HOST            服务内网地址（总是设置）
    DATA_DB_<USER>_PASS     每个声明用户的密码
    DATA_DB_USER / _PASS    默认用户的用户名 / 密码
    DATA_DB_USERS           空格分隔的用户名列表（按 plan 顺序）
"""

from __future__ import annotations

import logging
import threading

from provisioner.core.models import Service
from provisioner.core.protocols import KeyValueStore

logger = logging.getLogger(__name__)

ENV_KEY = "env"


def env_prefix(service_name: str) -> str:
    """服务名转变量前缀: 大写，点号换成下划线"""
    return service_name.replace(".", "_").upper()


def project_env_vars(service: Service) -> dict[str, str]:
    """纯函数推导，不做任何 IO"""
    prefix = env_prefix(service.name)
    env: dict[str, str] = {f"{prefix}_HOST": service.internal_ip}

    users: list[str] = []
    for user in service.plan.users:
        users.append(user.username)
        env[f"{prefix}_{user.username.upper()}_PASS"] = user.password
        if user.username == service.plan.default_user:
            env[f"{prefix}_USER"] = user.username
            env[f"{prefix}_PASS"] = user.password

    if users:
        env[f"{prefix}_USERS"] = " ".join(users)
    return env


class EnvVarStore:
    """应用级环境变量表（只合并，不整表删除）"""

    def __init__(self, storage: KeyValueStore, app_name: str) -> None:
        self._storage = storage
        self.app_name = app_name
        self._lock = threading.Lock()

    @property
    def namespace(self) -> str:
        return f"{self.app_name}_meta"

    def load(self) -> dict[str, str]:
        data = self._storage.get(self.namespace, ENV_KEY) or {}
        raw = data.get("vars") or {}
        if not isinstance(raw, dict):
            return {}
        return {str(k): str(v) for k, v in raw.items()}

    def merge(self, updates: dict[str, str]) -> dict[str, str]:
        """读 → 合并（后写覆盖）→ 写回，返回合并后的整表"""
        with self._lock:
            env = self.load()
            env.update(updates)
            self._storage.put(self.namespace, ENV_KEY, {"vars": env})
        logger.info("环境变量已合并: %s (%d 个键)", self.namespace, len(updates))
        return env
