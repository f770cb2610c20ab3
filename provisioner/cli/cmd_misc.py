"""CLI — 杂项命令"""

from __future__ import annotations

import click

from provisioner.cli import _svc


def register(group: click.Group) -> None:
    group.add_command(serve)


@click.command()
@click.option("--host", default=None, help="监听地址（默认取配置 web_host）")
@click.option("--port", default=None, type=int, help="监听端口（默认取配置 web_port）")
def serve(host: str | None, port: int | None) -> None:
    """启动 HTTP API"""
    from provisioner.web.app import run_server
    cfg = _svc().config
    run_server(host=host or cfg.web_host, port=port or cfg.web_port)
