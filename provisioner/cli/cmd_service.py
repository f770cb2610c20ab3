"""CLI — 服务编排与查询命令"""

from __future__ import annotations

from pathlib import Path

import click

from provisioner.cli import _svc
from provisioner.core.exceptions import CompensationError, ProvisionError
from provisioner.core.process import ProcessControl
from provisioner.services.setup import SERVICE_SETUP
from provisioner.utils.stylish import ConsoleDisplay

EXIT_FAILED = 1
EXIT_NEEDS_INTERVENTION = 2


def register(group: click.Group) -> None:
    group.add_command(service_group)


@click.group(name="service")
def service_group() -> None:
    """服务编排"""


@service_group.command(name="setup")
@click.argument("name")
@click.argument("image")
@click.option("--label", default="", help="显示名称（默认同 name）")
@click.option("--boxfile", "boxfile_path", default=None,
              type=click.Path(exists=True, dir_okay=False), help="Boxfile 路径")
def service_setup(name: str, image: str, label: str, boxfile_path: str | None) -> None:
    """拉取镜像、分配地址、启动容器并完成服务规划"""
    boxfile = Path(boxfile_path).read_text(encoding="utf-8") if boxfile_path else ""
    control = ProcessControl(
        meta={"name": name, "image": image, "label": label, "boxfile": boxfile},
        display_sink=ConsoleDisplay(),
    )
    try:
        result = _svc().registry.run(SERVICE_SETUP, control)
    except CompensationError as e:
        click.echo(f"编排失败且回滚未完成，需要人工处理: {e}", err=True)
        click.echo(f"  原始错误: {e.original}", err=True)
        click.echo(f"  失败的补偿: {e.failed}", err=True)
        if e.remaining:
            click.echo(f"  未执行的补偿: {', '.join(e.remaining)}", err=True)
        raise SystemExit(EXIT_NEEDS_INTERVENTION) from e
    except ProvisionError as e:
        click.echo(f"编排失败: {e}", err=True)
        raise SystemExit(EXIT_FAILED) from e

    click.echo(
        f"服务已就绪: {name} "
        f"(internal={result.get('internal_ip', '-')}, external={result.get('external_ip', '-')})"
    )


@service_group.command(name="list")
def service_list() -> None:
    """列出已编排的服务"""
    services = _svc().services.list_all()
    if not services:
        click.echo("没有已编排的服务。")
        return
    for s in services:
        click.echo(f"  {s.name:20s} [{s.state:11s}] {s.internal_ip:15s} -> {s.external_ip}")


@service_group.command(name="show")
@click.argument("name")
def service_show(name: str) -> None:
    """查看单个服务记录"""
    svc = _svc().services.get(name)
    if svc is None:
        click.echo(f"服务不存在: {name}")
        raise SystemExit(EXIT_FAILED)
    click.echo(f"名称:     {svc.name}")
    click.echo(f"容器:     {svc.id}")
    click.echo(f"状态:     {svc.state}")
    click.echo(f"内网地址: {svc.internal_ip}")
    click.echo(f"外网地址: {svc.external_ip}")
    users = ", ".join(u.username for u in svc.plan.users) or "-"
    click.echo(f"用户:     {users} (默认: {svc.plan.default_user or '-'})")
