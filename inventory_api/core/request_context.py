"""
Request-scoped context variables.

让日志在不侵入业务代码的情况下自动携带 request_id 与调用者身份。
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import Optional


request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
username_var: ContextVar[Optional[str]] = ContextVar("username", default=None)
