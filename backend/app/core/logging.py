"""Logging configuration for the application

Services log through named loggers (``payments``, ``webhooks``, ``security``,
``api_access``) or their module name. Every record passes through
``RedactSecretsFilter`` so plaintext API keys never reach the log output.
"""
import logging
import re

from app.core.config import settings, API_KEY_TAG

# Full keys are the tag plus 48 hex chars; keep the tag and 8 chars like the display prefix
_API_KEY_RE = re.compile(rf"({re.escape(API_KEY_TAG)}[0-9a-f]{{8}})[0-9a-f]{{40}}")


def redact(text: str) -> str:
    return _API_KEY_RE.sub(r"\1...", text)


class RedactSecretsFilter(logging.Filter):
    """Mask API keys in the rendered message"""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging():
    """Configure logging for the application"""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        force=True
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(RedactSecretsFilter())

    # Third-party clients log full request URLs at INFO
    for name in ("urllib3", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)
