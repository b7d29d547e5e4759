"""
Logging Configuration Module

Provides centralized logging configuration with file and console handlers.
"""

import json
import logging
import os
import functools
import inspect
from datetime import datetime, date
from logging.handlers import TimedRotatingFileHandler

# Define log format strings
FILE_FORMATTER = '%(asctime)s.%(msecs)03d | %(levelname)-7s | [PID:%(process)d/TID:%(thread)d] | %(filename)s.%(funcName)s:%(lineno)d | %(message)s'
CONSOLE_FORMATTER = '%(asctime)s.%(msecs)03d | \033[1m%(levelname)-7s\033[0m | [PID:%(process)d/TID:%(thread)d] | %(filename)s.%(funcName)s:%(lineno)d | \033[36m%(message)s\033[0m'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Argument names whose values never reach the log
SENSITIVE_PARAMS = frozenset({"password", "plaintext", "secret", "token", "git_password"})

# Chatty third-party loggers
QUIET_LOGGERS = ("docker", "urllib3", "git", "httpx", "httpcore", "aiosqlite")


class LoggingConfig:
    """Logging configuration management"""

    def __init__(self, log_file_name='pushdeploy', log_level=logging.INFO, backup_count=30, log_dir=None):
        self.log_file_name = log_file_name
        self.log_level = log_level
        self.backup_count = backup_count
        self.log_dir = log_dir or os.environ.get("PUSHDEPLOY_LOG_DIR")
        self.logger = logging.getLogger()

    def setup_logging(self):
        """Setup logging with file and console handlers"""
        self.logger.handlers.clear()
        self.logger.setLevel(self.log_level)

        if self.log_dir is None:
            root_dir = os.path.dirname(os.path.abspath(__file__))
            self.log_dir = os.path.join(root_dir, "../../logs")

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMATTER, DATE_FORMAT))
        self.logger.addHandler(console_handler)

        try:
            os.makedirs(self.log_dir, exist_ok=True)
        except OSError as e:
            self.logger.error(f"Failed to create log directory {self.log_dir}, logging to console only: {e}")
            return self.logger

        # Daily rotation
        file_handler = TimedRotatingFileHandler(
            os.path.join(self.log_dir, f'{self.log_file_name}.log'),
            when='D',
            interval=1,
            backupCount=self.backup_count,
            encoding='utf-8',
        )
        file_handler.setFormatter(logging.Formatter(FILE_FORMATTER, DATE_FORMAT))
        self.logger.addHandler(file_handler)

        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        self.logger.info(f"Logging initialized, writing to {self.log_dir}")
        return self.logger


def _safe_to_json(obj, max_length=500):
    """Render a return value for the trace log, truncated"""
    if obj is None or isinstance(obj, (bool, int, float, str)):
        result = str(obj)
        return result if len(result) <= max_length else result[:max_length] + "..."

    if isinstance(obj, bytes):
        return f"bytes(len={len(obj)})"

    def _default(o):
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        if hasattr(o, 'model_dump') and callable(o.model_dump):
            return o.model_dump()
        if hasattr(o, 'to_dict') and callable(o.to_dict):
            return o.to_dict()
        return f"<{type(o).__name__}>"

    try:
        json_str = json.dumps(obj, default=_default, ensure_ascii=False)
    except (TypeError, ValueError):
        json_str = repr(obj)

    if len(json_str) > max_length:
        return json_str[:max_length] + "... (truncated)"
    return json_str


def log_print(func):
    """Decorator for logging function calls and return values (supports sync/async)

    Arguments named in SENSITIVE_PARAMS are masked. Do not apply to
    functions whose return value carries a secret.
    """

    try:
        param_names = list(inspect.signature(func).parameters.keys())
    except (TypeError, ValueError):
        param_names = []

    def _format_args(args, kwargs):
        params = []
        # Skip self/cls
        start_idx = 1 if param_names and param_names[0] in ("self", "cls") else 0
        for i, arg in enumerate(args[start_idx:]):
            param_idx = start_idx + i
            name = param_names[param_idx] if param_idx < len(param_names) else None
            if name in SENSITIVE_PARAMS:
                params.append(f"{name}=***")
            elif name:
                params.append(f"{name}={arg!r}")
            else:
                params.append(f"{arg!r}")
        for k, v in kwargs.items():
            params.append(f"{k}=***" if k in SENSITIVE_PARAMS else f"{k}={v!r}")
        return ', '.join(params) if params else '(no args)'

    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        logger = logging.getLogger(func.__module__)
        logger.info(f"[Call] {func.__qualname__} ←------------ Args: {_format_args(args, kwargs)}")
        try:
            result = await func(*args, **kwargs)
            logger.info(f"[Return] {func.__qualname__} ------------→ Result: {_safe_to_json(result)}")
            return result
        except Exception as e:
            logger.error(f"[Exception] {func.__qualname__} ! {e.__class__.__name__}: {str(e)}")
            raise

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        logger = logging.getLogger(func.__module__)
        logger.info(f"[Call] {func.__qualname__} ←------------ Args: {_format_args(args, kwargs)}")
        try:
            result = func(*args, **kwargs)
            logger.info(f"[Return] {func.__qualname__} ------------→ Result: {_safe_to_json(result)}")
            return result
        except Exception as e:
            logger.error(f"[Exception] {func.__qualname__} ! {e.__class__.__name__}: {str(e)}")
            raise

    return async_wrapper if inspect.iscoroutinefunction(func) else sync_wrapper
