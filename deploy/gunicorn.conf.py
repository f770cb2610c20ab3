"""Gunicorn 生产配置

用法:
  gunicorn --config deploy/gunicorn.conf.py provisioner.web.app:app

地址池状态保存在进程内存中，必须只起一个 worker，并发靠线程。
"""

import os

# ---------- 网络 ----------
bind = os.getenv("GUNICORN_BIND", "127.0.0.1:1757")

# ---------- 并发 ----------
workers = 1
threads = int(os.getenv("GUNICORN_THREADS", "8"))
worker_class = "gthread"
timeout = int(os.getenv("GUNICORN_TIMEOUT", "600"))  # 拉镜像可能很慢

# ---------- 日志 ----------
accesslog = os.getenv("GUNICORN_ACCESS_LOG", "-")
errorlog = os.getenv("GUNICORN_ERROR_LOG", "-")
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")

# ---------- 进程管理 ----------
graceful_timeout = 30
keepalive = 5


def on_starting(server):  # noqa: ARG001
    from provisioner.core.config import init_config
    init_config(os.getenv("PROVISIONER_CONFIG", "configs/default.yml"))
