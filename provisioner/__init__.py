"""provisioner - 单机服务编排：拉取镜像 → 分配地址 → 启动容器 → 规划 → 持久化 → 环境变量"""

__version__ = "0.3.0"
