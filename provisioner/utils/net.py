"""网络工具 — 地址范围解析"""

from __future__ import annotations

import ipaddress
from ipaddress import IPv4Address

from provisioner.core.exceptions import ConfigError

# 单个地址池的最大容量，防止误配 /8 之类的大网段撑爆内存
MAX_POOL_SIZE = 65536


def parse_address_range(spec: str) -> list[IPv4Address]:
    """解析地址范围配置

    支持两种写法:
      - CIDR:      "10.0.0.0/28"（只取主机地址，不含网络/广播地址）
      - start-end: "10.0.0.10-10.0.0.20"（闭区间）

    Raises:
        ConfigError: 格式非法、起止倒置或范围过大
    """
    spec = spec.strip()
    if not spec:
        raise ConfigError("地址范围为空")
    try:
        if "/" in spec:
            network = ipaddress.IPv4Network(spec, strict=False)
            if network.num_addresses > MAX_POOL_SIZE:
                raise ConfigError(f"地址范围过大: {spec}")
            addresses = list(network.hosts())
        elif "-" in spec:
            start_s, end_s = (p.strip() for p in spec.split("-", 1))
            start, end = IPv4Address(start_s), IPv4Address(end_s)
            if int(end) < int(start):
                raise ConfigError(f"地址范围起止倒置: {spec}")
            if int(end) - int(start) + 1 > MAX_POOL_SIZE:
                raise ConfigError(f"地址范围过大: {spec}")
            addresses = [IPv4Address(i) for i in range(int(start), int(end) + 1)]
        else:
            addresses = [IPv4Address(spec)]
    except ValueError as e:
        raise ConfigError(f"无法解析地址范围 '{spec}': {e}") from e
    if not addresses:
        raise ConfigError(f"地址范围不含可用地址: {spec}")
    return addresses
