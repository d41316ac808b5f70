"""
Core module initialization.
导出日志配置与请求上下文
"""
from .logging import configure_structlog, get_logger, setup_logging
from .request_context import request_id_var, username_var

__all__ = [
    # Logging
    "setup_logging",
    "configure_structlog",
    "get_logger",
    # Request context
    "request_id_var",
    "username_var",
]
