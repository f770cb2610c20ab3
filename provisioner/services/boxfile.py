"""Boxfile 解析

Boxfile 是应用的 YAML 声明文档，按服务名分节，每节下的 config 子树
原样传给容器内的 plan 钩子:

    data.db:
      image: example/postgresql
      config:
        version: "9.4"
"""

from __future__ import annotations

from typing import Any

import yaml

from provisioner.core.exceptions import ValidationError
from provisioner.utils.yaml_io import parse_yaml_text


class Boxfile:
    """可逐级取节点的 YAML 文档"""

    def __init__(self, parsed: Any = None) -> None:
        self.parsed = parsed if parsed is not None else {}

    @classmethod
    def from_text(cls, text: str) -> Boxfile:
        """解析 YAML 文本，语法错误抛 ValidationError"""
        try:
            return cls(parse_yaml_text(text))
        except (yaml.YAMLError, ValueError) as e:
            raise ValidationError(f"boxfile 解析失败: {e}") from e

    def node(self, name: str) -> Boxfile:
        """取子节点，不存在或不是映射时返回空节点"""
        if isinstance(self.parsed, dict):
            return Boxfile(self.parsed.get(name))
        return Boxfile()

    @property
    def valid(self) -> bool:
        return isinstance(self.parsed, dict) and bool(self.parsed)
