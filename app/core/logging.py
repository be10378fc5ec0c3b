"""
日志配置

所有日志统一交给 loguru：标准库 logging（uvicorn、SQLAlchemy）通过
InterceptHandler 转发，各模块使用 get_logger 绑定的具名日志器。
"""

import sys
import logging
from pathlib import Path
from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

# 文件名, 级别, 轮转, 保留, 只收集该具名日志器
FILE_SINKS = [
    ("therapy_notes.log", "INFO", "1 day", "30 days", None),
    ("therapy_notes_error.log", "ERROR", "1 week", "90 days", None),
    ("ai_service.log", "INFO", "1 day", "7 days", "ai_service"),
    ("pipeline.log", "INFO", "1 day", "14 days", "service"),
]

INTERCEPTED_LOGGERS = ["uvicorn", "uvicorn.error", "uvicorn.access", "sqlalchemy.engine"]


class InterceptHandler(logging.Handler):
    """把标准库日志记录转发给loguru"""

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # 跳过logging模块自身的栈帧，保留真实调用位置
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _name_filter(name: str):
    return lambda record: record["extra"].get("name") == name


def setup_logging(level: str = None, log_dir: str = None):
    """设置应用日志"""
    from app.config import settings

    level = (level or settings.log_level or ("DEBUG" if settings.debug else "INFO")).upper()
    log_path = Path(log_dir or settings.log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.configure(extra={"name": "app"})

    logger.add(
        sys.stdout,
        format=LOG_FORMAT,
        level=level,
        colorize=True,
        backtrace=True,
        diagnose=settings.debug
    )

    for filename, sink_level, rotation, retention, only_name in FILE_SINKS:
        logger.add(
            log_path / filename,
            format=LOG_FORMAT,
            level=sink_level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            backtrace=True,
            diagnose=False,
            filter=_name_filter(only_name) if only_name else None
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for logger_name in INTERCEPTED_LOGGERS:
        logging.getLogger(logger_name).handlers = [InterceptHandler()]

    if not settings.database_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logger.bind(name="app").debug(f"日志已初始化: level={level}, dir={log_path}")


def get_logger(name: str):
    """获取特定名称的日志器"""
    return logger.bind(name=name)


# 模块专用日志器
api_logger = get_logger("api")
service_logger = get_logger("service")
ai_logger = get_logger("ai_service")
db_logger = get_logger("database")
audio_logger = get_logger("audio_processing")
storage_logger = get_logger("storage")
