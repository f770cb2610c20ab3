"""服务记录查询"""

from __future__ import annotations

import logging

from provisioner.core.models import Service
from provisioner.core.protocols import KeyValueStore

logger = logging.getLogger(__name__)


class ServiceRepository:
    """按应用命名空间读取服务记录"""

    def __init__(self, storage: KeyValueStore, app_name: str) -> None:
        self._storage = storage
        self.app_name = app_name

    def get(self, name: str) -> Service | None:
        data = self._storage.get(self.app_name, name)
        if data is None:
            return None
        return Service.from_dict(data)

    def list_all(self) -> list[Service]:
        services = []
        for key in self._storage.list_keys(self.app_name):
            svc = self.get(key)
            if svc is not None:
                services.append(svc)
        return services
