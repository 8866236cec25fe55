"""Logging setup with credential redaction."""

import logging
import re

_PATTERNS = [
    (re.compile(r"(postgres(?:ql)?://)[^:/@\s]+:[^@\s]+@"), r"\1***:***@"),
    (re.compile(r"(rediss?://)[^:/@\s]*:[^@\s]+@"), r"\1***:***@"),
    (re.compile(r"(https?://)[^:/@\s]+:[^@\s]+@"), r"\1***:***@"),
    (re.compile(r"\b([A-Z_]*(?:PASSWORD|SECRET|KEY|TOKEN))=[^,\s]+"), r"\1=***"),
    (re.compile(r"(Bearer\s+)[A-Za-z0-9._\-]+"), r"\1***"),
]


def redact(text: str) -> str:
    for pattern, replacement in _PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class RedactingFilter(logging.Filter):
    """Masks credentials in the rendered message before it reaches a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    handler.addFilter(RedactingFilter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
