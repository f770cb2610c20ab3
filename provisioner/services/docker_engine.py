"""Docker 容器引擎适配器

通过 CommandExecutor 调用 docker CLI，满足 ContainerEngine 协议。
命令失败统一抛 ExecutionError，由编排流程包装为带步骤标签的错误。
"""

from __future__ import annotations

import logging
import shlex

from provisioner.core.exceptions import ExecutionError
from provisioner.core.models import ContainerConfig, ContainerHandle
from provisioner.core.protocols import OutputSink
from provisioner.utils.shell import CommandExecutor, LocalExecutor, run_checked

logger = logging.getLogger(__name__)


class DockerEngine:
    """基于 docker CLI 的容器引擎"""

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        *,
        docker_bin: str = "docker",
        timeout: int | None = None,
    ) -> None:
        self._executor = executor or LocalExecutor()
        self._docker = docker_bin
        self._timeout = timeout

    def pull_image(self, ref: str, progress: OutputSink | None = None) -> None:
        run_checked(
            self._executor, [self._docker, "pull", ref],
            label="docker pull", on_output=progress, timeout=self._timeout,
        )
        logger.info("镜像已拉取: %s", ref)

    def create_container(self, config: ContainerConfig) -> ContainerHandle:
        cmd = [self._docker, "run", "-d", "--name", config.name]
        if config.network:
            cmd += ["--network", config.network]
        if config.ip:
            cmd += ["--ip", config.ip]
        cmd.append(config.image)
        r = run_checked(self._executor, cmd, label="docker run", timeout=self._timeout)
        container_id = r.stdout.strip().splitlines()[-1] if r.stdout.strip() else ""
        if not container_id:
            # 容器可能已按名字创建，不清理的话重试会因重名失败
            self._remove_by_name(config.name)
            raise ExecutionError(f"docker run 未返回容器 ID: {config.name}")
        logger.info("容器已启动: %s (%s)", config.name, container_id[:12])
        return ContainerHandle(id=container_id, name=config.name)

    def _remove_by_name(self, name: str) -> None:
        try:
            self.remove_container(name)
        except ExecutionError as e:
            logger.error("清理未返回 ID 的容器失败: %s (%s)", name, e)

    def remove_container(self, container_id: str) -> None:
        run_checked(
            self._executor, [self._docker, "rm", "-f", container_id],
            label="docker rm", timeout=self._timeout,
        )
        logger.info("容器已删除: %s", container_id[:12])

    def exec(
        self, container_id: str, command: str, payload: str,
        output: OutputSink | None = None,
    ) -> str:
        """payload 经 stdin 传入；stderr 逐行转发给 output"""
        cmd = [self._docker, "exec", "-i", container_id, *shlex.split(command)]
        r = run_checked(
            self._executor, cmd, label="docker exec",
            input=payload, timeout=self._timeout,
        )
        if output is not None:
            for line in r.stderr.splitlines():
                output(line)
        return r.stdout
