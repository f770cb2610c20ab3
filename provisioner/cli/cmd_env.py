"""CLI — 应用环境变量命令"""

from __future__ import annotations

import click

from provisioner.cli import _svc


def register(group: click.Group) -> None:
    group.add_command(env_group)


@click.group(name="env")
def env_group() -> None:
    """应用环境变量"""


@env_group.command(name="show")
@click.option("--shell", "as_shell", is_flag=True, help="输出为 export 语句")
def env_show(as_shell: bool) -> None:
    """显示应用共享的环境变量表"""
    env = _svc().env_vars.load()
    if not env:
        click.echo("环境变量表为空。")
        return
    for key in sorted(env):
        if as_shell:
            click.echo(f"export {key}='{env[key]}'")
        else:
            click.echo(f"  {key}={env[key]}")
