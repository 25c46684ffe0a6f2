"""
Logging configuration and utilities.
统一管理爬虫、数据处理等业务代码的日志配置，以及结构化异常日志
"""

import json
import logging
import logging.handlers
import sys
import threading
import time
import traceback
from pathlib import Path
from typing import Optional, Dict, Any


DEFAULT_ERROR_LOG = "error_logs.txt"


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    retention_days: int = 7  # 7天日志保留
) -> None:
    """
    Set up logging for the application.
    
    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        retention_days: Number of days to retain rotated log files
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    
    # Clear existing handlers
    root_logger.handlers.clear()
    
    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)
    
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        
        # 每天轮转一次，保留指定天数
        file_handler = logging.handlers.TimedRotatingFileHandler(
            log_file,
            when='midnight',
            interval=1,
            backupCount=retention_days,
            encoding='utf-8'
        )
        file_handler.suffix = "%Y-%m-%d"
        
        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.
    
    Args:
        name: Logger name (typically __name__)
    """
    return logging.getLogger(name)


class ErrorReporter:
    """
    结构化记录异常信息
    
    Every reported exception is logged at error level and appended to a
    side file as one JSON object per line. Failing to write the side file
    is printed to stderr and never propagated.
    """
    
    def __init__(self, error_log_path: Optional[str] = DEFAULT_ERROR_LOG,
                 logger: Optional[logging.Logger] = None):
        """
        Args:
            error_log_path: JSON-lines side file, or None to only log
            logger: Logger used for the error line
        """
        self.error_log_path = Path(error_log_path) if error_log_path else None
        self.logger = logger or get_logger(__name__)
        self._lock = threading.Lock()
        self._reported = 0
    
    @property
    def reported_count(self) -> int:
        with self._lock:
            return self._reported
    
    def build_error_info(self, message: str, error: BaseException) -> Dict[str, Any]:
        """Build the structured record for one exception."""
        return {
            "timestamp": int(time.time() * 1000),
            "message": message,
            "exception": f"{type(error).__module__}.{type(error).__qualname__}",
            "errorMessage": str(error),
            "stackTrace": "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ),
        }
    
    def report(self, message: str, error: BaseException) -> None:
        """
        Log an exception and append it to the side file.
        
        Args:
            message: Context message (e.g. "处理城市失败: 北京")
            error: The exception that was caught
        """
        try:
            error_info = self.build_error_info(message, error)
            json_error = json.dumps(error_info, ensure_ascii=False)
            self.logger.error(json_error)
            
            with self._lock:
                self._reported += 1
                if self.error_log_path is not None:
                    with open(self.error_log_path, 'a', encoding='utf-8') as f:
                        f.write(json_error)
                        f.write('\n')
        except Exception as log_error:
            # 如果日志记录本身失败，直接打印
            print(f"日志记录失败: {log_error}", file=sys.stderr)


_default_reporter: Optional[ErrorReporter] = None
_default_lock = threading.Lock()


def get_error_reporter() -> ErrorReporter:
    """Process-wide reporter writing to the default side file."""
    global _default_reporter
    with _default_lock:
        if _default_reporter is None:
            _default_reporter = ErrorReporter(DEFAULT_ERROR_LOG)
        return _default_reporter
