"""Input validation, sanitisation and the SQL-injection pattern check."""

import base64
import binascii
import ipaddress
import re
import secrets
from urllib.parse import urlparse

MAX_TITLE_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 5000
MAX_URL_LENGTH = 2048
MAX_EMAIL_LENGTH = 254

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_EMAIL = re.compile(r"^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$")

_MARKUP_BLOCKLIST = ("<script", "javascript:", "onerror=", "onload=", "<iframe")
_URL_BLOCKLIST = ("javascript:", "data:text/html", "vbscript:", "file://")

SQL_INJECTION_PATTERNS = (
    "union select",
    "union all select",
    "drop table",
    "delete from",
    "insert into",
    "update set",
    "alter table",
    "create table",
    "exec(",
    "execute(",
    "xp_",
    "sp_",
    "--",
    "/*",
    "*/",
    "waitfor delay",
    "benchmark(",
    "sleep(",
    "load_file(",
    "into outfile",
    "into dumpfile",
    "information_schema",
    "' or '1'='1",
    "' or 1=1",
)


class ValidationError(ValueError):
    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


def sanitize_string(value: str) -> str:
    """Strip control characters and trim.

    Text is stored as sent so that reads return what was written; escaping
    belongs to whatever renders it.
    """
    return _CONTROL_CHARS.sub("", value).strip()


def _reject_markup(value: str, field: str):
    lowered = value.lower()
    if any(pattern in lowered for pattern in _MARKUP_BLOCKLIST):
        raise ValidationError(field, "contains forbidden content")


def validate_title(value: str, field: str = "title") -> str:
    value = value.strip()
    if not value:
        raise ValidationError(field, "is required")
    if len(value) > MAX_TITLE_LENGTH:
        raise ValidationError(field, f"must be at most {MAX_TITLE_LENGTH} characters")
    _reject_markup(value, field)
    return sanitize_string(value)


def validate_description(value: str, field: str = "description") -> str:
    if len(value) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(field, f"must be at most {MAX_DESCRIPTION_LENGTH} characters")
    _reject_markup(value, field)
    return sanitize_string(value)


def validate_url(value: str, field: str = "url") -> str:
    """Accept empty values and absolute http(s) URLs only."""
    value = value.strip()
    if not value:
        return value
    if len(value) > MAX_URL_LENGTH:
        raise ValidationError(field, f"must be at most {MAX_URL_LENGTH} characters")
    lowered = value.lower()
    if any(pattern in lowered for pattern in _URL_BLOCKLIST):
        raise ValidationError(field, "uses a forbidden scheme")
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(field, "must be an http or https URL")
    return value


def validate_email(value: str, field: str = "email") -> str:
    value = value.strip()
    if len(value) > MAX_EMAIL_LENGTH:
        raise ValidationError(field, f"must be at most {MAX_EMAIL_LENGTH} characters")
    if not _EMAIL.match(value):
        raise ValidationError(field, "is not a valid email address")
    return value


def validate_integer(value: int, minimum: int, maximum: int, field: str = "value") -> int:
    if value < minimum or value > maximum:
        raise ValidationError(field, f"must be between {minimum} and {maximum}")
    return value


def validate_ip(value: str, field: str = "ip") -> str:
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        raise ValidationError(field, "is not a valid IP address") from None


def contains_sql_injection_pattern(value: str) -> bool:
    lowered = value.lower()
    return any(pattern in lowered for pattern in SQL_INJECTION_PATTERNS)


def secure_compare(a: str, b: str) -> bool:
    return secrets.compare_digest(a.encode(), b.encode())


def check_basic_auth(header: str | None, username: str, password: str) -> bool:
    """Validate an `Authorization: Basic ...` header in constant time."""
    if not header or not header.startswith("Basic "):
        return False
    try:
        decoded = base64.b64decode(header[6:], validate=True).decode()
    except (binascii.Error, UnicodeDecodeError):
        return False
    user, sep, pw = decoded.partition(":")
    if not sep:
        return False
    user_ok = secure_compare(user, username)
    pw_ok = secure_compare(pw, password)
    return user_ok and pw_ok
