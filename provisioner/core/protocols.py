"""领域协议定义

集中定义编排流程依赖的外部协作方接口（Protocol），
实现依赖倒置 — 编排流程依赖抽象而非 docker / iptables 具体实现。

使用 typing.Protocol 而非 ABC，使得测试替身无需继承即可满足协议。
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from provisioner.core.models import ContainerConfig, ContainerHandle

# 逐行输出回调（进度 / 容器内命令输出）
OutputSink = Callable[[str], None]


# =========================================================================
# 容器引擎协议
# =========================================================================

class ContainerEngine(Protocol):
    """容器引擎协议"""

    def pull_image(self, ref: str, progress: OutputSink | None = None) -> None:
        """拉取镜像，进度逐行回调"""
        ...

    def create_container(self, config: ContainerConfig) -> ContainerHandle:
        """创建并启动容器"""
        ...

    def remove_container(self, container_id: str) -> None:
        """强制删除容器"""
        ...

    def exec(
        self, container_id: str, command: str, payload: str,
        output: OutputSink | None = None,
    ) -> str:
        """在容器内执行命令，payload 写入 stdin，返回 stdout"""
        ...


# =========================================================================
# 主机网络协议
# =========================================================================

class NetworkProvider(Protocol):
    """主机网络层协议：网桥地址 + NAT 映射"""

    def add_ip(self, addr: str) -> None:
        ...

    def remove_ip(self, addr: str) -> None:
        ...

    def add_nat(self, global_addr: str, local_addr: str) -> None:
        ...

    def remove_nat(self, global_addr: str, local_addr: str) -> None:
        ...


# =========================================================================
# 存储协议
# =========================================================================

class KeyValueStore(Protocol):
    """命名空间 + key 的文档存储协议，未命中返回 None"""

    def get(self, namespace: str, key: str) -> dict[str, object] | None:
        ...

    def put(self, namespace: str, key: str, data: dict) -> str:
        ...

    def list_keys(self, namespace: str) -> list[str]:
        ...

    def delete(self, namespace: str, key: str) -> bool:
        ...


# =========================================================================
# 输出协议
# =========================================================================

class DisplaySink(Protocol):
    """进度输出协议，尽力而为，无返回值"""

    def display(self, text: str) -> None:
        ...
