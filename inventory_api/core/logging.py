"""
Logging configuration for the inventory API.
统一的日志配置模块，支持彩色控制台与JSON结构化日志，structlog 事件经由标准库 handler 输出。
"""
import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

from ..config import Settings, get_settings
from .request_context import request_id_var, username_var

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_CONFIGURED = False


class ContextFilter(logging.Filter):
    """把 request_id/username 自动注入 LogRecord。"""

    def __init__(self, env: str) -> None:
        super().__init__()
        self._env = env

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        rid = getattr(record, "request_id", None) or request_id_var.get()
        user = getattr(record, "username", None) or username_var.get()

        if rid is not None:
            record.request_id = rid
        if user is not None:
            record.username = user

        if not hasattr(record, "service"):
            record.service = "inventory-api"
        if not hasattr(record, "env"):
            record.env = self._env
        return True


class ColoredFormatter(logging.Formatter):
    """彩色日志格式化器（用于控制台输出）"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record):
        log_color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{log_color}{record.levelname}{self.RESET}"
        return super().format(record)


class JSONFormatter(logging.Formatter):
    """JSON 结构化日志格式化器。

    输出 time, level, name, message，并合并额外字段；bearer token 等敏感字段会被脱敏。
    """

    REDACT_KEYS = {"token", "authorization", "bearer", "secret", "password"}
    _RESERVED = {
        "args", "asctime", "created", "exc_info", "exc_text", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs", "message", "msg", "name",
        "pathname", "process", "processName", "relativeCreated", "stack_info", "thread",
        "threadName", "taskName",
    }

    def __init__(self, datefmt: Optional[str] = None) -> None:
        super().__init__(datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }

        rid = getattr(record, "request_id", None) or request_id_var.get()
        if rid:
            payload["request_id"] = rid

        for key, value in record.__dict__.items():
            if key in self._RESERVED or key in payload:
                continue
            safe_key = str(key)
            payload[safe_key] = self._redact(value) if safe_key.lower() in self.REDACT_KEYS else value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)

    @staticmethod
    def _redact(value: Any) -> str:
        return "***REDACTED***" if value else ""


def _redact_event(_, __, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for key in list(event_dict):
        if key.lower() in JSONFormatter.REDACT_KEYS:
            event_dict[key] = "***REDACTED***"
    return event_dict


def configure_structlog() -> None:
    """让 structlog 事件通过标准库 logging 输出，并合并 contextvars 中的请求上下文。"""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            _redact_event,
            structlog.processors.format_exc_info,
            structlog.processors.KeyValueRenderer(key_order=["event"], sort_keys=True),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def setup_logging(
    settings: Optional[Settings] = None,
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    use_color: bool = True,
) -> logging.Logger:
    """配置日志系统（统一配置 root logger）

    Args:
        settings: 应用配置，默认读取 get_settings()
        level: 日志级别
        log_file: 日志文件路径
        use_color: 是否使用彩色输出

    Returns:
        logging.Logger: 配置好的日志记录器
    """
    global _CONFIGURED
    logger = logging.getLogger("inventory_api")

    if _CONFIGURED:
        return logger

    settings = settings or get_settings()
    root = logging.getLogger()
    root.setLevel(level or settings.log_level.upper())

    for h in list(root.handlers):
        root.removeHandler(h)

    context_filter = ContextFilter(settings.app_env)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.addFilter(context_filter)

    if settings.log_json:
        console_formatter: logging.Formatter = JSONFormatter(datefmt=LOG_DATE_FORMAT)
    elif use_color and sys.stdout.isatty():
        console_formatter = ColoredFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    else:
        console_formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler.setFormatter(console_formatter)
    root.addHandler(console_handler)

    file_path = log_file or settings.log_file
    if file_path:
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            file_path,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.addFilter(context_filter)
        if settings.log_json:
            file_handler.setFormatter(JSONFormatter(datefmt=LOG_DATE_FORMAT))
        else:
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        root.addHandler(file_handler)

    # 让 uvicorn/fastapi logger 走 root handlers
    for log_name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
        named = logging.getLogger(log_name)
        named.handlers = []
        named.propagate = True

    # kubernetes client 在 DEBUG 下会输出请求头（含 bearer token）
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    configure_structlog()

    _CONFIGURED = True
    return logger


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """获取 structlog 日志记录器"""
    return structlog.get_logger(name)
