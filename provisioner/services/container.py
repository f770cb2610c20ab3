"""服务容器 — 统一依赖注入，消除跨模块的裸构造

所有适配器、地址池、流程注册表通过容器获取，同一容器内的实例共享状态。
CLI 和 Web 层均应通过 get_container() 获取，而非直接 import 构造。

依赖关系图（→ 表示依赖）:
  pool      → storage（启动时回填已占用地址）
  registry  → 容器本身（流程工厂从容器取依赖）
  env_vars  → storage
  engine / network → executor

用法:
    container = ServiceContainer()
    registry = container.registry
    registry.run("service_setup", control)

    # 测试注入替身
    container = ServiceContainer(config=cfg, instances={"engine": fake_engine})
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from provisioner.core.config import Config
    from provisioner.core.ip_pool import IPControl
    from provisioner.core.protocols import ContainerEngine, KeyValueStore, NetworkProvider
    from provisioner.core.registry import ProcessorRegistry
    from provisioner.services.service_repo import ServiceRepository
    from provisioner.services.setup.env_vars import EnvVarStore
    from provisioner.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ServiceContainer:
    """懒加载服务容器 — 每个实例持有一组共享的适配器和地址池

    实例创建在锁内完成，并发首次访问不会建出两个地址池。
    """

    def __init__(
        self,
        config: Config | None = None,
        instances: dict[str, Any] | None = None,
    ) -> None:
        self._instances: dict[str, Any] = dict(instances or {})
        self._lock = threading.RLock()
        if config is None:
            from provisioner.core.config import get_config
            config = get_config()
        self._config = config

    @property
    def config(self) -> Config:
        return self._config

    def _get(self, key: str, factory: Callable[[], T]) -> T:
        inst = self._instances.get(key)
        if inst is not None:
            return inst  # type: ignore[no-any-return]
        with self._lock:
            if key not in self._instances:
                self._instances[key] = factory()
            return self._instances[key]  # type: ignore[no-any-return]

    # ---- 外部协作方 ----

    @property
    def executor(self) -> CommandExecutor:
        def build() -> CommandExecutor:
            from provisioner.utils.shell import LocalExecutor
            return LocalExecutor()
        return self._get("executor", build)

    @property
    def storage(self) -> KeyValueStore:
        def build() -> KeyValueStore:
            from provisioner.core.storage import LocalStorage
            return LocalStorage(self._config.storage_dir)
        return self._get("storage", build)

    @property
    def engine(self) -> ContainerEngine:
        def build() -> ContainerEngine:
            from provisioner.services.docker_engine import DockerEngine
            return DockerEngine(
                self.executor,
                docker_bin=self._config.docker_bin,
                timeout=self._config.command_timeout,
            )
        return self._get("engine", build)

    @property
    def network(self) -> NetworkProvider:
        def build() -> NetworkProvider:
            from provisioner.services.network import HostNetworkProvider
            return HostNetworkProvider(
                self.executor,
                bridge=self._config.bridge_interface,
                timeout=self._config.command_timeout,
            )
        return self._get("network", build)

    # ---- 领域服务 ----

    @property
    def services(self) -> ServiceRepository:
        def build() -> ServiceRepository:
            from provisioner.services.service_repo import ServiceRepository
            return ServiceRepository(self.storage, self._config.app_name)
        return self._get("services", build)

    @property
    def env_vars(self) -> EnvVarStore:
        def build() -> EnvVarStore:
            from provisioner.services.setup.env_vars import EnvVarStore
            return EnvVarStore(self.storage, self._config.app_name)
        return self._get("env_vars", build)

    @property
    def pool(self) -> IPControl:
        return self._get("pool", self._build_pool)

    def _build_pool(self) -> IPControl:
        from provisioner.core.exceptions import PoolError
        from provisioner.core.ip_pool import IPControl

        pool = IPControl.from_config(
            self._config.local_ip_range, self._config.global_ip_range,
        )
        restored = 0
        for svc in self.services.list_all():
            for addr in (svc.internal_ip, svc.external_ip):
                if not addr:
                    continue
                try:
                    restored += pool.claim(addr)
                except (PoolError, ValueError):
                    logger.warning("服务 %s 的地址 %s 无效或不在当前地址池内，跳过回填",
                                   svc.name, addr)
        if restored:
            logger.info("已回填 %d 个已占用地址", restored)
        return pool

    @property
    def registry(self) -> ProcessorRegistry:
        def build() -> ProcessorRegistry:
            from provisioner.core.registry import ProcessorRegistry
            from provisioner.services import setup
            registry = ProcessorRegistry()
            setup.register(registry, self)
            return registry
        return self._get("registry", build)


# ---- 全局单例 ----

_global: ServiceContainer | None = None
_global_lock = threading.Lock()


def get_container() -> ServiceContainer:
    """获取全局 ServiceContainer 单例（线程安全）"""
    global _global  # noqa: PLW0603
    if _global is not None:
        return _global
    with _global_lock:
        if _global is None:
            _global = ServiceContainer()
        return _global


def reset_container() -> None:
    """重置全局容器（仅用于测试）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = None
