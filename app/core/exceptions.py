"""
自定义异常类
"""

from fastapi import HTTPException, status


class TherapyNotesException(Exception):
    """应用基础异常"""

    def __init__(self, message: str, code: str = "GENERAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)


class DatabaseException(TherapyNotesException):
    """数据库异常"""

    def __init__(self, message: str = "Database operation failed"):
        super().__init__(message, "DATABASE_ERROR")


class AIServiceException(TherapyNotesException):
    """AI服务异常"""

    def __init__(self, message: str = "AI service call failed"):
        super().__init__(message, "AI_SERVICE_ERROR")


class StorageException(TherapyNotesException):
    """对象存储异常"""

    def __init__(self, message: str = "Object storage operation failed"):
        super().__init__(message, "STORAGE_ERROR")


class UploadTimeoutException(TherapyNotesException):
    """录音处理超时"""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Upload processing exceeded {timeout:g} seconds", "UPLOAD_TIMEOUT")


class ValidationException(TherapyNotesException):
    """数据验证异常"""

    def __init__(self, message: str = "Validation failed"):
        super().__init__(message, "VALIDATION_ERROR")


class ResourceNotFoundException(TherapyNotesException):
    """资源未找到异常"""

    def __init__(self, resource: str = "Resource"):
        message = f"{resource} not found"
        super().__init__(message, "RESOURCE_NOT_FOUND")


class ConfigurationException(TherapyNotesException):
    """配置错误异常"""

    def __init__(self, message: str = "Configuration error"):
        super().__init__(message, "CONFIGURATION_ERROR")


class PipelineStageError(TherapyNotesException):
    """摄取流水线某一阶段失败

    保留原始异常的错误码，并记录失败的阶段名称。
    """

    def __init__(self, stage: str, cause: Exception):
        self.stage = stage
        self.cause = cause
        if isinstance(cause, TherapyNotesException):
            code = cause.code
            message = cause.message
        else:
            code = "PIPELINE_ERROR"
            message = str(cause) or type(cause).__name__
        super().__init__(f"Stage '{stage}' failed: {message}", code)


STATUS_CODE_MAPPING = {
    "RESOURCE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "CONFIGURATION_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "DATABASE_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "PIPELINE_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "AI_SERVICE_ERROR": status.HTTP_503_SERVICE_UNAVAILABLE,
    "STORAGE_ERROR": status.HTTP_502_BAD_GATEWAY,
    "UPLOAD_TIMEOUT": status.HTTP_504_GATEWAY_TIMEOUT,
}


# HTTP异常映射
def app_exception_to_http_exception(exc: TherapyNotesException) -> HTTPException:
    """将应用异常转换为HTTP异常"""
    status_code = STATUS_CODE_MAPPING.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    detail = {
        "error": True,
        "code": exc.code,
        "message": exc.message,
        "type": type(exc).__name__
    }
    if isinstance(exc, PipelineStageError):
        detail["stage"] = exc.stage

    return HTTPException(status_code=status_code, detail=detail)
