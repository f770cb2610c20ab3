"""统一异常体系

所有业务异常继承 ProvisionError，替代散落的 ValueError / RuntimeError。
Web 层可据此自动映射 HTTP 状态码，CLI 层可据此输出友好提示。
"""

from __future__ import annotations


class ProvisionError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(ProvisionError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(ProvisionError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class ProcessorNotFoundError(ProvisionError):
    """指定名称的流程未注册"""

    code = "PROCESSOR_NOT_FOUND"


class PoolError(ProvisionError):
    """地址池操作失败"""

    code = "POOL_ERROR"


class ResourceExhaustedError(PoolError):
    """地址池已无空闲地址"""

    code = "POOL_EXHAUSTED"


class AddressNotHeldError(PoolError):
    """归还了一个当前未被占用的地址（重复释放）"""

    code = "ADDRESS_NOT_HELD"


class ExecutionError(ProvisionError):
    """外部命令执行失败（docker / ip / iptables）"""

    code = "EXECUTION_ERROR"


class ExternalCallError(ProvisionError):
    """编排步骤中的外部调用失败，带步骤标签"""

    code = "EXTERNAL_CALL_FAILED"

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"{stage}: {message}")
        self.stage = stage


class ProtocolError(ProvisionError):
    """plan 响应无法解析为预期结构"""

    code = "PLAN_PROTOCOL_ERROR"


class PersistenceError(ProvisionError):
    """存储写入失败"""

    code = "PERSISTENCE_ERROR"


class CompensationError(ProvisionError):
    """回滚动作本身失败，资源可能泄漏，需要人工介入"""

    code = "COMPENSATION_FAILED"

    def __init__(
        self,
        message: str,
        *,
        original: BaseException | None = None,
        failed: str = "",
        remaining: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.original = original
        self.failed = failed
        self.remaining = remaining or []
