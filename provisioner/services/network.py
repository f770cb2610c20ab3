"""主机网络适配器

通过 CommandExecutor 调用 ip / iptables，满足 NetworkProvider 协议:
  - add_ip / remove_ip:   global 地址挂到 / 摘出网桥
  - add_nat / remove_nat: global ↔ local 的 DNAT + SNAT 规则对
"""

from __future__ import annotations

import logging

from provisioner.core.exceptions import ExecutionError
from provisioner.utils.shell import CommandExecutor, LocalExecutor, run_checked

logger = logging.getLogger(__name__)


class HostNetworkProvider:
    """基于 iproute2 + iptables 的主机网络层"""

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        *,
        bridge: str = "br0",
        timeout: int | None = None,
    ) -> None:
        self._executor = executor or LocalExecutor()
        self.bridge = bridge
        self._timeout = timeout

    def _run(self, cmd: list[str], label: str) -> None:
        run_checked(self._executor, cmd, label=label, timeout=self._timeout)

    def add_ip(self, addr: str) -> None:
        self._run(["ip", "addr", "add", f"{addr}/32", "dev", self.bridge], "ip addr add")
        logger.info("网桥地址已添加: %s dev %s", addr, self.bridge)

    def remove_ip(self, addr: str) -> None:
        self._run(["ip", "addr", "del", f"{addr}/32", "dev", self.bridge], "ip addr del")
        logger.info("网桥地址已移除: %s dev %s", addr, self.bridge)

    @staticmethod
    def _dnat(action: str, global_addr: str, local_addr: str) -> list[str]:
        return [
            "iptables", "-t", "nat", action, "PREROUTING",
            "-d", global_addr, "-j", "DNAT", "--to-destination", local_addr,
        ]

    @staticmethod
    def _snat(action: str, global_addr: str, local_addr: str) -> list[str]:
        return [
            "iptables", "-t", "nat", action, "POSTROUTING",
            "-s", local_addr, "-j", "SNAT", "--to-source", global_addr,
        ]

    def add_nat(self, global_addr: str, local_addr: str) -> None:
        self._run(self._dnat("-A", global_addr, local_addr), "iptables DNAT")
        try:
            self._run(self._snat("-A", global_addr, local_addr), "iptables SNAT")
        except ExecutionError:
            # SNAT 失败时撤掉刚加的 DNAT，保持规则成对
            try:
                self._run(self._dnat("-D", global_addr, local_addr), "iptables DNAT -D")
            except ExecutionError:
                logger.error("撤销 DNAT 规则失败: %s -> %s", global_addr, local_addr)
            raise
        logger.info("NAT 已建立: %s <-> %s", global_addr, local_addr)

    def remove_nat(self, global_addr: str, local_addr: str) -> None:
        self._run(self._snat("-D", global_addr, local_addr), "iptables SNAT -D")
        self._run(self._dnat("-D", global_addr, local_addr), "iptables DNAT -D")
        logger.info("NAT 已移除: %s <-> %s", global_addr, local_addr)
