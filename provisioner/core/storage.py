"""存储层 - 命名空间 + key 的 JSON 文档存储

服务记录按 (应用, 服务名) 存放，环境变量表按 (应用_meta, "env") 存放。
同一 key 的并发写入不做协调，依赖原子替换保证文件完整（后写覆盖先写）。
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from urllib.parse import quote, unquote

from provisioner.core.exceptions import PersistenceError
from provisioner.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)

# 写入时附加的元信息字段，读取时剥离
_META_KEYS = ("_key", "_namespace", "_stored_at")


class LocalStorage:
    """本地文件系统存储"""

    def __init__(self, base_dir: str = "") -> None:
        if not base_dir:
            from provisioner.core.config import get_config
            base_dir = get_config().storage_dir
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _safe(part: str) -> str:
        # 可逆编码：不同 key 不会落到同一文件，且不含路径分隔符和 "."
        return quote(part, safe="").replace(".", "%2E")

    def _path(self, namespace: str, key: str) -> Path:
        return self.base_dir / self._safe(namespace) / f"{self._safe(key)}.json"

    def put(self, namespace: str, key: str, data: dict) -> str:
        """存储数据，返回存储路径"""
        path = self._path(namespace, key)
        data_with_meta = {
            "_key": key,
            "_namespace": namespace,
            "_stored_at": time.time(),
            **data,
        }
        try:
            atomic_write(path, json.dumps(data_with_meta, indent=2, ensure_ascii=False))
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"写入 {namespace}/{key} 失败: {e}") from e
        logger.info("本地存储: %s/%s -> %s", namespace, key, path)
        return str(path)

    def get(self, namespace: str, key: str) -> dict[str, object] | None:
        """读取数据，未命中返回 None"""
        path = self._path(namespace, key)
        if not path.exists():
            return None
        try:
            result: dict[str, object] = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"读取 {namespace}/{key} 失败: {e}") from e
        for k in _META_KEYS:
            result.pop(k, None)
        return result

    def list_keys(self, namespace: str) -> list[str]:
        """列出命名空间下的所有 key"""
        ns_dir = self.base_dir / self._safe(namespace)
        if not ns_dir.exists():
            return []
        return sorted(unquote(f.stem) for f in ns_dir.glob("*.json"))

    def delete(self, namespace: str, key: str) -> bool:
        """删除数据"""
        path = self._path(namespace, key)
        if path.exists():
            path.unlink()
            return True
        return False
