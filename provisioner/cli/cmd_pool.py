"""CLI — 地址池命令"""

from __future__ import annotations

import click

from provisioner.cli import _svc


def register(group: click.Group) -> None:
    group.add_command(pool_group)


@click.group(name="pool")
def pool_group() -> None:
    """地址池"""


@pool_group.command(name="status")
def pool_status() -> None:
    """显示 local / global 地址池占用情况"""
    for tier, st in _svc().pool.status().items():
        click.echo(
            f"  {tier:6s} 容量={st.capacity} 已用={st.in_use} 可用={st.available}"
        )
