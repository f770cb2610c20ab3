"""地址池管理

两级地址池：
  - local:  容器内网地址，绑定到容器网卡
  - global: 主机可路由地址，挂到网桥并 NAT 到 local 地址

每个池是固定槽位的地址数组 + 下标空闲链表，预留/归还都在池锁内完成，
并发编排同时申请时不会拿到同一个地址。
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from ipaddress import IPv4Address

from provisioner.core.exceptions import (
    AddressNotHeldError,
    ConfigError,
    ResourceExhaustedError,
)
from provisioner.utils.net import parse_address_range

logger = logging.getLogger(__name__)


@dataclass
class PoolStatus:
    """地址池状态快照"""

    label: str = ""
    capacity: int = 0       # 总容量
    in_use: int = 0         # 已占用
    available: int = 0      # 空闲
    held: list[str] = field(default_factory=list)  # 已占用地址
    timestamp: float = 0.0


class AddressPool:
    """单个地址池"""

    def __init__(self, label: str, addresses: Iterable[IPv4Address]) -> None:
        self.label = label
        self._slots: list[IPv4Address] = list(addresses)
        if not self._slots:
            raise ConfigError(f"{label} 地址池为空")
        self._index: dict[IPv4Address, int] = {}
        for i, addr in enumerate(self._slots):
            if addr in self._index:
                raise ConfigError(f"{label} 地址池含重复地址: {addr}")
            self._index[addr] = i

        self._lock = threading.Lock()
        self._free: deque[int] = deque(range(len(self._slots)))
        self._held: set[int] = set()

    @classmethod
    def from_range(cls, label: str, spec: str) -> AddressPool:
        """从 CIDR / start-end 配置构建"""
        return cls(label, parse_address_range(spec))

    @property
    def capacity(self) -> int:
        return len(self._slots)

    def __contains__(self, addr: object) -> bool:
        return addr in self._index

    def reserve(self) -> IPv4Address:
        """取出一个空闲地址，池空时抛 ResourceExhaustedError"""
        with self._lock:
            if not self._free:
                logger.warning("%s 地址池已耗尽: %d/%d",
                               self.label, len(self._held), self.capacity)
                raise ResourceExhaustedError(f"{self.label} 地址池已无空闲地址")
            idx = self._free.popleft()
            self._held.add(idx)
            addr = self._slots[idx]
        logger.info("地址已分配: %s (%s)", addr, self.label)
        return addr

    def claim(self, addr: IPv4Address) -> bool:
        """将指定地址标记为占用，返回是否新占用（已占用时返回 False）"""
        idx = self._index.get(addr)
        if idx is None:
            raise AddressNotHeldError(f"{addr} 不属于 {self.label} 地址池")
        with self._lock:
            if idx in self._held:
                return False
            self._free.remove(idx)
            self._held.add(idx)
        return True

    def release(self, addr: IPv4Address) -> None:
        """归还地址；地址未被占用视为重复释放，抛 AddressNotHeldError"""
        idx = self._index.get(addr)
        if idx is None:
            raise AddressNotHeldError(f"{addr} 不属于 {self.label} 地址池")
        with self._lock:
            if idx not in self._held:
                raise AddressNotHeldError(f"{addr} 当前未被占用 ({self.label})")
            self._held.remove(idx)
            self._free.append(idx)
        logger.info("地址已归还: %s (%s)", addr, self.label)

    def status(self) -> PoolStatus:
        with self._lock:
            held = sorted(self._held)
            return PoolStatus(
                label=self.label,
                capacity=self.capacity,
                in_use=len(held),
                available=len(self._free),
                held=[str(self._slots[i]) for i in held],
                timestamp=time.time(),
            )


class IPControl:
    """local + global 两级地址池门面"""

    def __init__(self, local: AddressPool, global_: AddressPool) -> None:
        overlap = set(local._index) & set(global_._index)
        if overlap:
            sample = ", ".join(str(a) for a in sorted(overlap)[:3])
            raise ConfigError(f"local 与 global 地址池重叠: {sample}")
        self.local = local
        self.global_ = global_

    @classmethod
    def from_config(cls, local_range: str, global_range: str) -> IPControl:
        return cls(
            AddressPool.from_range("local", local_range),
            AddressPool.from_range("global", global_range),
        )

    def reserve_local(self) -> IPv4Address:
        return self.local.reserve()

    def reserve_global(self) -> IPv4Address:
        return self.global_.reserve()

    def _owner(self, addr: IPv4Address) -> AddressPool:
        if addr in self.local:
            return self.local
        if addr in self.global_:
            return self.global_
        raise AddressNotHeldError(f"{addr} 不属于任何地址池")

    def return_ip(self, addr: IPv4Address | str) -> None:
        """归还地址到所属的池"""
        addr = IPv4Address(addr) if isinstance(addr, str) else addr
        self._owner(addr).release(addr)

    def claim(self, addr: IPv4Address | str) -> bool:
        """恢复占用记录（进程重启后从已持久化的服务回填）"""
        addr = IPv4Address(addr) if isinstance(addr, str) else addr
        return self._owner(addr).claim(addr)

    def status(self) -> dict[str, PoolStatus]:
        return {"local": self.local.status(), "global": self.global_.status()}
