"""provisioner 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import os
from typing import Any

import click

from provisioner import __version__
from provisioner.services.container import get_container
from provisioner.utils.logger import setup_logging


def _svc() -> Any:
    """获取全局服务容器的快捷方式"""
    return get_container()


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", default=None,
              envvar="PROVISIONER_CONFIG", help="配置文件路径（YAML）")
def main(config_path: str | None) -> None:
    """provisioner - 容器化服务编排工具"""
    setup_logging(
        level=os.getenv("PROVISIONER_LOG_LEVEL", "INFO"),
        json_output=os.getenv("PROVISIONER_LOG_JSON", "") == "1",
    )
    if config_path:
        from provisioner.core.config import init_config
        from provisioner.services.container import reset_container
        init_config(config_path)
        reset_container()


# 注册各领域子命令
from provisioner.cli.cmd_service import register as _reg_service  # noqa: E402
from provisioner.cli.cmd_env import register as _reg_env  # noqa: E402
from provisioner.cli.cmd_pool import register as _reg_pool  # noqa: E402
from provisioner.cli.cmd_misc import register as _reg_misc  # noqa: E402

_reg_service(main)
_reg_env(main)
_reg_pool(main)
_reg_misc(main)
