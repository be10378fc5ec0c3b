"""
核心功能包
"""

from .exceptions import (
    TherapyNotesException,
    DatabaseException,
    AIServiceException,
    StorageException,
    UploadTimeoutException,
    ValidationException,
    ResourceNotFoundException,
    ConfigurationException,
    PipelineStageError
)

from .logging import (
    setup_logging,
    get_logger,
    api_logger,
    service_logger,
    ai_logger,
    db_logger,
    audio_logger,
    storage_logger
)

from .middleware import (
    RequestLoggingMiddleware,
    ExceptionHandlingMiddleware,
    app_exception_handler
)

__all__ = [
    # Exceptions
    "TherapyNotesException",
    "DatabaseException",
    "AIServiceException",
    "StorageException",
    "UploadTimeoutException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "PipelineStageError",

    # Logging
    "setup_logging",
    "get_logger",
    "api_logger",
    "service_logger",
    "ai_logger",
    "db_logger",
    "audio_logger",
    "storage_logger",

    # Middleware
    "RequestLoggingMiddleware",
    "ExceptionHandlingMiddleware",
    "app_exception_handler",
]
