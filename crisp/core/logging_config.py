"""
Logging configuration for the Crisp interviews API.

Console output for operators, a rotating file for audit of session
transitions. Candidate contact details and secrets never reach the logs.
"""
import logging
import sys
from pathlib import Path
from typing import Optional
from logging.handlers import RotatingFileHandler

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

QUIET_LOGGERS = ["uvicorn", "uvicorn.access", "httpx", "openai"]

SENSITIVE_KEYS = [
    "password", "token", "secret", "api_key", "database_url",
    "email", "phone", "resume",
]


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    return handler


def setup_logging(log_level: str = "INFO", log_dir: str = "logs", log_file: str = "crisp.log"):
    """
    Configure application logging.
    
    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for the rotating session audit log
        log_file: File name inside log_dir
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    
    directory = Path(log_dir)
    directory.mkdir(exist_ok=True)
    
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    
    root.addHandler(_handler(logging.StreamHandler(sys.stdout), level, CONSOLE_FORMAT))
    root.addHandler(_handler(
        RotatingFileHandler(directory / log_file, maxBytes=10 * 1024 * 1024, backupCount=5),
        level,
        FILE_FORMAT,
    ))
    
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def session_context(session_id: Optional[str], question_number: Optional[int] = None) -> str:
    """Uniform 'session_id=..., question_number=...' suffix for log lines."""
    if question_number is None:
        return f"session_id={session_id}"
    return f"session_id={session_id}, question_number={question_number}"


def sanitize_log_data(data: dict) -> dict:
    """
    Redact secrets and candidate contact details from a payload before logging.
    
    Returns:
        Shallow copy with sensitive values replaced
    """
    sanitized = data.copy()
    for key in sanitized:
        if any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
            sanitized[key] = "***REDACTED***"
    return sanitized
