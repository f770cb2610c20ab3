"""集中配置管理

替代各模块散落的 DEFAULT_* 常量，提供统一的配置入口。
支持从 YAML 文件加载 + 编程式覆盖。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from provisioner.core.exceptions import ConfigError
from provisioner.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

COMPENSATION_ORDERS = ("forward", "reverse")


@dataclass
class Config:
    """框架全局配置"""

    # 应用
    app_name: str = "default"

    # 存储
    storage_dir: str = "data/storage"

    # 地址池（CIDR 或 start-end）
    local_ip_range: str = "192.168.99.50-192.168.99.254"
    global_ip_range: str = "172.21.0.50-172.21.0.254"

    # 容器
    docker_bin: str = "docker"
    docker_network: str = "virt"
    container_prefix: str = "box"
    plan_command: str = "/opt/hooks/plan"

    # 主机网络
    bridge_interface: str = "br0"

    # 编排
    compensation_order: str = "forward"
    command_timeout: int | None = None

    # Web
    web_host: str = "127.0.0.1"
    web_port: int = 1757

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.compensation_order not in COMPENSATION_ORDERS:
            raise ConfigError(
                f"compensation_order 仅支持 {'/'.join(COMPENSATION_ORDERS)}: "
                f"{self.compensation_order}"
            )

    @classmethod
    def from_file(cls, path: str = "configs/default.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        cfg = cls(**matched)
        cfg.extra = extra
        return cfg

    def to_dict(self) -> dict:
        from dataclasses import asdict
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI / Web 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "configs/default.yml") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current
