"""Shell 命令执行工具 — 统一子进程调用

通过 CommandExecutor 协议抽象子进程执行，方便测试替换和跨平台适配。
docker / ip / iptables 适配器都通过它发起调用。
"""

from __future__ import annotations

import logging
import os
import shlex
import signal
import subprocess
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from provisioner.core.exceptions import ExecutionError

logger = logging.getLogger(__name__)


# =========================================================================
# 命令执行结果
# =========================================================================

@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


# =========================================================================
# 命令执行器协议
# =========================================================================

class CommandExecutor(Protocol):
    """命令执行器协议 — 抽象子进程调用

    实现此协议即可替换底层执行方式（本地 shell、SSH 远程等）。
    测试时可注入记录型实现，无需 patch subprocess。
    """

    def execute(
        self,
        cmd: str | list[str],
        *,
        input: str | None = None,
        on_output: Callable[[str], None] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        """执行命令并返回结果"""
        ...


# =========================================================================
# 默认实现: 本地执行器
# =========================================================================

class LocalExecutor:
    """本地命令执行器（默认实现）

    传入 on_output 时进入流式模式：stdout/stderr 合并后逐行回调，
    流式模式不支持 input。
    """

    def execute(
        self,
        cmd: str | list[str],
        *,
        input: str | None = None,
        on_output: Callable[[str], None] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        args = shlex.split(cmd) if isinstance(cmd, str) else cmd
        if on_output is not None:
            if input is not None:
                raise ValueError("流式模式不支持 input")
            return self._stream(args, on_output, timeout)
        r = subprocess.run(
            args, input=input, capture_output=True, text=True,
            check=False, timeout=timeout,
        )
        return CommandResult(
            returncode=r.returncode,
            stdout=r.stdout,
            stderr=r.stderr,
        )

    @staticmethod
    def _stream(
        args: list[str],
        on_output: Callable[[str], None],
        timeout: int | None,
    ) -> CommandResult:
        lines: list[str] = []
        # 独立进程组，超时时连同子孙进程一起结束，避免管道被继续占用
        proc = subprocess.Popen(
            args, stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL, text=True, start_new_session=True,
        )
        stdout = proc.stdout

        def pump() -> None:
            for line in stdout or ():
                line = line.rstrip("\n")
                lines.append(line)
                on_output(line)

        reader = threading.Thread(target=pump, daemon=True)
        reader.start()
        deadline = None if timeout is None else time.monotonic() + timeout
        try:
            reader.join(timeout)
            if reader.is_alive():
                _kill_group(proc)
                reader.join()
                raise subprocess.TimeoutExpired(args, timeout or 0, output="\n".join(lines))
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                returncode = proc.wait(timeout=remaining)
            except subprocess.TimeoutExpired:
                # 输出已关闭但进程仍未退出
                _kill_group(proc)
                raise
        finally:
            if stdout is not None:
                stdout.close()
        output = "\n".join(lines)
        # 合并输出：失败时错误信息同样在 stdout 中
        return CommandResult(returncode=returncode, stdout=output, stderr=output)


def _kill_group(proc: subprocess.Popen) -> None:
    """结束进程所在的整个进程组并回收"""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    proc.wait()


# =========================================================================
# 便捷函数
# =========================================================================

def run_checked(
    executor: CommandExecutor,
    cmd: list[str],
    *,
    label: str = "cmd",
    input: str | None = None,
    on_output: Callable[[str], None] | None = None,
    timeout: int | None = None,
) -> CommandResult:
    """执行命令，失败抛 ExecutionError

    Args:
        executor: 命令执行器
        cmd: 参数列表
        label: 日志 / 错误信息标签
        input: 写入 stdin 的内容
        on_output: 流式输出回调
        timeout: 超时秒数（None 表示不限）
    """
    logger.info("  %s: %s", label, shlex.join(cmd))
    try:
        r = executor.execute(cmd, input=input, on_output=on_output, timeout=timeout)
    except (OSError, subprocess.SubprocessError) as e:
        raise ExecutionError(f"{label}失败: {e}") from e
    if not r.success:
        raise ExecutionError(
            f"{label}失败 (rc={r.returncode}): {r.stderr.strip()[:500]}"
        )
    return r
