"""公共测试替身与夹具"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

import provisioner.core.config as cfgmod
from provisioner.core.exceptions import ExecutionError
from provisioner.core.models import ContainerConfig, ContainerHandle
from provisioner.services.container import ServiceContainer, reset_container
from provisioner.utils.logger import reset_logging
from provisioner.utils.stylish import BufferDisplay

DEFAULT_PLAN = {
    "users": [{"username": "admin"}, {"username": "app"}],
    "default_user": "admin",
}


class FakeEngine:
    """记录调用的容器引擎替身，fail 中的方法名调用时抛 ExecutionError"""

    def __init__(self, plan: dict | str | None = None) -> None:
        self.calls: list[tuple] = []
        self.fail: set[str] = set()
        self.plan_output = plan if isinstance(plan, str) else json.dumps(plan or DEFAULT_PLAN)
        self.progress_lines = ["Pulling fs layer", "Download complete"]
        self.exec_stderr = ["planning..."]
        self.payloads: list[str] = []
        self._seq = 0

    def _check(self, name: str) -> None:
        if name in self.fail:
            raise ExecutionError(f"{name} boom")

    def pull_image(self, ref, progress=None) -> None:
        self.calls.append(("pull_image", ref))
        self._check("pull_image")
        if progress is not None:
            for line in self.progress_lines:
                progress(line)

    def create_container(self, config: ContainerConfig) -> ContainerHandle:
        self.calls.append(("create_container", config.name, config.ip))
        self._check("create_container")
        self._seq += 1
        return ContainerHandle(id=f"cid{self._seq}", name=config.name)

    def remove_container(self, container_id: str) -> None:
        self.calls.append(("remove_container", container_id))
        self._check("remove_container")

    def exec(self, container_id, command, payload, output=None) -> str:
        self.calls.append(("exec", container_id, command))
        self.payloads.append(payload)
        self._check("exec")
        if output is not None:
            for line in self.exec_stderr:
                output(line)
        return self.plan_output

    @property
    def names(self) -> list[str]:
        return [c[0] for c in self.calls]


class FakeNetwork:
    """记录调用的主机网络替身"""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.fail: set[str] = set()

    def _record(self, name: str, *args: str) -> None:
        self.calls.append((name, *args))
        if name in self.fail:
            raise ExecutionError(f"{name} boom")

    def add_ip(self, addr: str) -> None:
        self._record("add_ip", addr)

    def remove_ip(self, addr: str) -> None:
        self._record("remove_ip", addr)

    def add_nat(self, global_addr: str, local_addr: str) -> None:
        self._record("add_nat", global_addr, local_addr)

    def remove_nat(self, global_addr: str, local_addr: str) -> None:
        self._record("remove_nat", global_addr, local_addr)

    @property
    def names(self) -> list[str]:
        return [c[0] for c in self.calls]


@pytest.fixture(autouse=True)
def _reset_logging():
    """CLI 入口会重配根日志器，用例结束后还原"""
    yield
    reset_logging()


@pytest.fixture()
def config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> cfgmod.Config:
    """独立数据目录 + 小地址池的配置"""
    cfg = cfgmod.Config(
        app_name="app",
        storage_dir=str(tmp_path / "storage"),
        local_ip_range="10.0.0.10-10.0.0.13",
        global_ip_range="172.30.0.10-172.30.0.13",
    )
    monkeypatch.setattr(cfgmod, "_current", cfg)
    reset_container()
    yield cfg
    reset_container()


@pytest.fixture()
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture()
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture()
def container(config, engine, network) -> ServiceContainer:
    """注入替身的服务容器"""
    return ServiceContainer(config=config, instances={"engine": engine, "network": network})


@pytest.fixture()
def sink() -> BufferDisplay:
    return BufferDisplay()


@pytest.fixture()
def make_engine():
    """按指定 plan 输出构造引擎替身"""
    return FakeEngine
