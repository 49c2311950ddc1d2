# campaigner/core/logging_config.py
"""
Logging configuration for the campaign broadcast service.
Console output plus rotating log files, with a dedicated delivery log
that captures every provider send attempt.
"""
import logging
import logging.handlers
import sys
import traceback
from pathlib import Path

from campaigner.core.config import LOG_DIR, LOG_LEVEL

LOGS_DIR = Path(LOG_DIR)

# Log files
ERROR_LOG_FILE = LOGS_DIR / "error.log"
DEBUG_LOG_FILE = LOGS_DIR / "debug.log"
DELIVERY_LOG_FILE = LOGS_DIR / "delivery.log"

DELIVERY_LOGGER_NAME = "campaigner.delivery"

SENSITIVE_KEYS = ("token", "auth_token", "password", "secret", "api_key", "authorization")


class ColoredFormatter(logging.Formatter):
    """Colored console formatter for better readability"""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        log_color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        original = record.levelname
        record.levelname = f"{log_color}{record.levelname}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def setup_logging(app_name: str = "campaigner", level: str = LOG_LEVEL):
    """
    Setup logging with console and file handlers.

    Creates three log files:
    - error.log: Only ERROR and CRITICAL messages
    - debug.log: All DEBUG and above messages
    - delivery.log: Provider send attempts (SMS / email)
    """
    LOGS_DIR.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # ═══════════════════════════════════════════════════════════
    # Console Handler - with colors
    # ═══════════════════════════════════════════════════════════
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(ColoredFormatter('%(levelname)s | %(name)s | %(message)s'))
    root_logger.addHandler(console_handler)

    # ═══════════════════════════════════════════════════════════
    # ERROR Log File - Rotating, only errors
    # ═══════════════════════════════════════════════════════════
    error_handler = logging.handlers.RotatingFileHandler(
        ERROR_LOG_FILE,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding='utf-8'
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)s | %(name)s | %(filename)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    root_logger.addHandler(error_handler)

    # ═══════════════════════════════════════════════════════════
    # DEBUG Log File - Rotating, all messages
    # ═══════════════════════════════════════════════════════════
    debug_handler = logging.handlers.RotatingFileHandler(
        DEBUG_LOG_FILE,
        maxBytes=20 * 1024 * 1024,  # 20 MB
        backupCount=5,
        encoding='utf-8'
    )
    debug_handler.setLevel(logging.DEBUG)
    debug_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(name)-30s | %(filename)s:%(lineno)d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    root_logger.addHandler(debug_handler)

    # ═══════════════════════════════════════════════════════════
    # Delivery Log File - one line per send attempt
    # ═══════════════════════════════════════════════════════════
    delivery_handler = logging.handlers.RotatingFileHandler(
        DELIVERY_LOG_FILE,
        maxBytes=20 * 1024 * 1024,  # 20 MB
        backupCount=5,
        encoding='utf-8'
    )
    delivery_handler.setLevel(logging.DEBUG)
    delivery_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    delivery_logger = logging.getLogger(DELIVERY_LOGGER_NAME)
    delivery_logger.addHandler(delivery_handler)
    delivery_logger.setLevel(logging.DEBUG)
    delivery_logger.propagate = True  # Also send to root handlers

    logger = logging.getLogger(__name__)
    logger.info(f"{'='*60}")
    logger.info(f"Logging initialized for {app_name}")
    logger.info(f"Log directory: {LOGS_DIR}")
    logger.info(f"{'='*60}")

    return root_logger


def get_delivery_logger():
    """Get logger for provider send attempts"""
    return logging.getLogger(DELIVERY_LOGGER_NAME)


# ═══════════════════════════════════════════════════════════
# Helper functions for detailed logging
# ═══════════════════════════════════════════════════════════

def mask_secrets(data: dict) -> dict:
    """Return a copy of data with sensitive values hidden"""
    masked = {}
    for key, value in (data or {}).items():
        if key.lower() in SENSITIVE_KEYS and value:
            value = '***HIDDEN***'
        masked[key] = value
    return masked


def log_api_request(logger, method: str, endpoint: str, data: dict = None, headers: dict = None):
    """Log outgoing API request details"""
    logger.debug(f"🌐 API REQUEST: {method} {endpoint}")
    if headers:
        logger.debug(f"Headers: {mask_secrets(headers)}")
    if data:
        logger.debug(f"Request Data: {mask_secrets(data)}")


def log_api_response(logger, status_code: int, response_data=None, error: Exception = None):
    """Log API response details"""
    logger.debug(f"📥 API RESPONSE: Status {status_code}")
    if error:
        logger.error(f"❌ Error: {error}")
        logger.error(f"Error Type: {type(error).__name__}")
        logger.debug(f"Traceback:\n{traceback.format_exc()}")
    else:
        logger.debug(f"Response Data: {response_data}")
