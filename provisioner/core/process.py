"""流程抽象

ProcessControl 是一次调用的只读上下文：请求元信息 + 输出端 + 嵌套层级。
Processor 是按名称注册、由工厂基于 ProcessControl 构造的流程实例。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from provisioner.core.protocols import DisplaySink
from provisioner.utils.stylish import bullet, nested_prefix, sub_bullet


class _NullDisplay:
    def display(self, text: str) -> None:
        pass


@dataclass(frozen=True)
class ProcessControl:
    """流程调用上下文

    meta 常用键: name, image, label, boxfile
    """

    meta: Mapping[str, str] = field(default_factory=dict)
    display_sink: DisplaySink = field(default_factory=_NullDisplay)
    display_level: int = 0

    def __post_init__(self) -> None:
        # 冻结 meta，流程只能通过 with_meta 派生新上下文
        object.__setattr__(self, "meta", MappingProxyType(dict(self.meta)))

    def get(self, key: str, default: str = "") -> str:
        return self.meta.get(key) or default

    def with_meta(self, **updates: str) -> ProcessControl:
        """派生一个合并了新元信息的上下文"""
        return replace(self, meta={**self.meta, **updates})

    def nested(self) -> ProcessControl:
        """派生一个嵌套层级 +1 的上下文"""
        return replace(self, display_level=self.display_level + 1)

    def display(self, text: str) -> None:
        """一级条目输出"""
        self.display_sink.display(nested_prefix(self.display_level) + bullet(text))

    def info(self, text: str) -> None:
        """二级条目输出"""
        self.display_sink.display(nested_prefix(self.display_level) + sub_bullet(text))

    def to_dict(self) -> dict[str, Any]:
        return {"meta": dict(self.meta), "display_level": self.display_level}


class Processor(ABC):
    """可按名称查找的流程

    process() 失败时直接抛出异常；重复调用应是幂等/可续跑的。
    """

    @abstractmethod
    def process(self) -> None:
        """执行流程"""

    @abstractmethod
    def results(self) -> ProcessControl:
        """返回（可能被充实过的）上下文，供后续流程串联"""
