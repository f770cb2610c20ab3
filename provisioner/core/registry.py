"""流程注册表

名称 → 工厂函数 的显式注册表，在 ServiceContainer 初始化时填充，
调用方通过名称查找并构造流程实例。每个名称只允许注册一次。
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from provisioner.core.exceptions import ProcessorNotFoundError
from provisioner.core.process import ProcessControl, Processor

logger = logging.getLogger(__name__)

ProcessorFactory = Callable[[ProcessControl], Processor]


class ProcessorRegistry:
    """流程注册表

    用法:
        registry = ProcessorRegistry()
        registry.register("service_setup", factory)
        proc = registry.lookup("service_setup", control)
        proc.process()
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._factories: dict[str, ProcessorFactory] = {}

    def register(self, name: str, factory: ProcessorFactory) -> None:
        """注册流程工厂；重复注册属于编程错误，直接抛 ValueError"""
        if not name:
            raise ValueError("流程名称不能为空")
        with self._lock:
            if name in self._factories:
                raise ValueError(f"流程已注册: {name}")
            self._factories[name] = factory
        logger.debug("流程已注册: %s", name)

    def lookup(self, name: str, control: ProcessControl) -> Processor:
        """构造流程实例；未注册抛 ProcessorNotFoundError，工厂校验失败原样抛出"""
        with self._lock:
            factory = self._factories.get(name)
        if factory is None:
            raise ProcessorNotFoundError(f"流程不存在: {name}")
        return factory(control)

    def run(self, name: str, control: ProcessControl) -> ProcessControl:
        """查找 → 执行 → 返回结果上下文"""
        proc = self.lookup(name, control)
        proc.process()
        return proc.results()

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._factories
