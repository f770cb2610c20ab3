"""Web 层统一响应辅助函数

消除各 Blueprint 中重复的 jsonify(error=...), 4xx/5xx 模式。
"""

from __future__ import annotations

from typing import Any

from flask import Response, jsonify

from provisioner.core.exceptions import ProvisionError


def ok(data: dict, status: int = 200) -> tuple[Response, int] | Response:
    """成功响应"""
    if status == 200:
        return jsonify(data)
    return jsonify(data), status


def not_found(resource: str) -> tuple[Response, int]:
    """资源不存在"""
    return jsonify(error=f"{resource}不存在"), 404


def bad_request(message: str, **extra: Any) -> tuple[Response, int]:
    """请求参数错误"""
    return jsonify(error=message, **extra), 400


def error(exc: ProvisionError, status: int, **extra: Any) -> tuple[Response, int]:
    """业务异常响应，带错误码"""
    return jsonify(error=str(exc), code=exc.code, **extra), status
