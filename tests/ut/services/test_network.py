"""主机网络适配器单元测试"""

from __future__ import annotations

import pytest

from provisioner.core.exceptions import ExecutionError
from provisioner.services.network import HostNetworkProvider
from provisioner.utils.shell import CommandResult


class FailingExecutor:
    """按子串匹配命令决定失败"""

    def __init__(self, *fail_on: str) -> None:
        self.fail_on = fail_on
        self.cmds: list[list[str]] = []

    def execute(self, cmd, *, input=None, on_output=None, timeout=None):
        self.cmds.append(cmd)
        joined = " ".join(cmd)
        if any(f in joined for f in self.fail_on):
            return CommandResult(1, "", "permission denied")
        return CommandResult(0, "", "")


class TestHostNetworkProvider:
    def test_add_and_remove_ip(self) -> None:
        ex = FailingExecutor()
        net = HostNetworkProvider(ex, bridge="br1")
        net.add_ip("172.30.0.10")
        net.remove_ip("172.30.0.10")
        assert ex.cmds == [
            ["ip", "addr", "add", "172.30.0.10/32", "dev", "br1"],
            ["ip", "addr", "del", "172.30.0.10/32", "dev", "br1"],
        ]

    def test_add_nat_rule_pair(self) -> None:
        ex = FailingExecutor()
        HostNetworkProvider(ex).add_nat("172.30.0.10", "10.0.0.10")
        assert ex.cmds == [
            ["iptables", "-t", "nat", "-A", "PREROUTING", "-d", "172.30.0.10",
             "-j", "DNAT", "--to-destination", "10.0.0.10"],
            ["iptables", "-t", "nat", "-A", "POSTROUTING", "-s", "10.0.0.10",
             "-j", "SNAT", "--to-source", "172.30.0.10"],
        ]

    def test_snat_failure_removes_dnat(self) -> None:
        ex = FailingExecutor("-A POSTROUTING")
        with pytest.raises(ExecutionError, match="SNAT"):
            HostNetworkProvider(ex).add_nat("172.30.0.10", "10.0.0.10")
        assert ex.cmds[-1][:5] == ["iptables", "-t", "nat", "-D", "PREROUTING"]

    def test_dnat_failure_adds_nothing_else(self) -> None:
        ex = FailingExecutor("PREROUTING")
        with pytest.raises(ExecutionError):
            HostNetworkProvider(ex).add_nat("172.30.0.10", "10.0.0.10")
        assert len(ex.cmds) == 1

    def test_remove_nat_order(self) -> None:
        ex = FailingExecutor()
        HostNetworkProvider(ex).remove_nat("172.30.0.10", "10.0.0.10")
        assert [c[4] for c in ex.cmds] == ["POSTROUTING", "PREROUTING"]
        assert all(c[3] == "-D" for c in ex.cmds)
