"""HTTP API（基于 Flask）

提供：服务编排、服务记录查询、环境变量表、地址池状态。

启动方式: provisioner serve --port 1757
生产部署: gunicorn --config deploy/gunicorn.conf.py provisioner.web.app:app
"""

from __future__ import annotations

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from provisioner.web.blueprints.services_bp import services_bp

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 1 * 1024 * 1024  # 1 MB，Boxfile 随请求体提交

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = MAX_CONTENT_LENGTH
app.register_blueprint(services_bp)


# =========================================================================
# 全局 JSON 错误处理
# =========================================================================


@app.errorhandler(HTTPException)
def handle_http_exception(exc):
    """将所有 HTTP 异常统一返回 JSON"""
    return jsonify(error=exc.description), exc.code


@app.errorhandler(Exception)
def handle_generic_exception(exc):  # noqa: ARG001
    """捕获未处理异常，返回 500 JSON"""
    logger.exception("未处理的异常")
    return jsonify(error="服务器内部错误"), 500


@app.route("/api/health")
def health():
    from provisioner import __version__
    return jsonify(status="ok", version=__version__)


def run_server(port: int = 1757, debug: bool = False, host: str = "127.0.0.1") -> None:
    logger.info("provisioner API 已启动: http://%s:%d", host, port)
    app.run(host=host, port=port, debug=debug, threaded=True)
