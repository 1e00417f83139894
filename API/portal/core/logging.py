import logging
import re
import sys
from contextvars import ContextVar

# Domain names for structured logging (auth, gateway, routes, chat, session).
DOMAIN_AUTH = "auth"
DOMAIN_GATEWAY = "gateway"
DOMAIN_ROUTES = "routes"
DOMAIN_CHAT = "chat"
DOMAIN_SESSION = "session"

HEALTH_PATH = "/api/health"
QUIET_LOGGERS = ("httpx", "httpcore", "urllib3", "google.auth", "firebase_admin")

request_id_var: ContextVar[str] = ContextVar("portal_request_id", default="-")


def get_domain_logger(name: str, domain: str) -> logging.LoggerAdapter[logging.Logger]:
    """Return a logger that adds the given domain to every log record (for filtering by domain)."""
    return logging.LoggerAdapter(logging.getLogger(name), {"domain": domain})


class RequestContextFilter(logging.Filter):
    """Stamp each record with its domain (default ``app``) and the id of the request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "domain"):
            record.domain = "app"  # type: ignore[attr-defined]
        record.request_id = request_id_var.get()  # type: ignore[attr-defined]
        return True


_SECRET_KEYS = ("shared[_-]?secret", "signature", "id[_-]?token", "password", "private[_-]?key")


def _key_value_pattern(key: str) -> re.Pattern:
    return re.compile(rf"(?i)({key}\s*[=:]\s*)([^\s,;]+)")


_SECRET_PATTERNS = [
    re.compile(r"(?i)(authorization\s*[=:]\s*bearer\s+)([^\s,;]+)"),
    re.compile(r"(?i)(bearer\s+)([A-Za-z0-9\-_.]{8,})"),
    *(_key_value_pattern(key) for key in _SECRET_KEYS),
]


def redact_secrets(message: str) -> str:
    text = str(message or "")
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(r"\1[REDACTED]", text)
    return text


class SecretRedactionFilter(logging.Filter):
    """Render the message once, then mask tokens, shared secrets, signatures and passwords in it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact_secrets(record.getMessage())
        record.args = ()
        return True


class SuppressHealthCheckFilter(logging.Filter):
    """Drop uvicorn access lines for successful health polls."""

    def filter(self, record: logging.LogRecord) -> bool:
        args = record.args if isinstance(record.args, tuple) else ()
        # uvicorn.access args: (client, method, path, http_version, status)
        if len(args) >= 5:
            return not (str(args[2]).startswith(HEALTH_PATH) and args[4] == 200)
        return HEALTH_PATH not in record.getMessage()


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    handler.addFilter(SecretRedactionFilter())
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | [%(domain)s] | %(request_id)s | %(name)s | %(message)s",
        handlers=[handler],
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").addFilter(SuppressHealthCheckFilter())
