"""终端输出格式与输出端

编排流程通过 DisplaySink 输出进度，CLI 输出到终端，Web 收集后随响应返回。
"""

from __future__ import annotations

import threading

import click

INDENT = "   "


def nested_prefix(level: int) -> str:
    """按嵌套层级生成缩进前缀"""
    return INDENT * max(0, level)


def bullet(text: str) -> str:
    """一级条目"""
    return f"+> {text}"


def sub_bullet(text: str) -> str:
    """二级条目"""
    return f"{INDENT}{text}"


class ConsoleDisplay:
    """输出到终端"""

    def display(self, text: str) -> None:
        click.echo(text)


class BufferDisplay:
    """收集输出行（Web 响应 / 测试）"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._lines: list[str] = []

    def display(self, text: str) -> None:
        with self._lock:
            self._lines.append(text)

    @property
    def lines(self) -> list[str]:
        with self._lock:
            return list(self._lines)
