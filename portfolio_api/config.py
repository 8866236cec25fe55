"""Application settings read from the environment (and `.env`) via python-decouple."""

from dataclasses import dataclass, field
from urllib.parse import quote

from decouple import Csv, config

ENVIRONMENTS = ("development", "staging", "production")

DEFAULT_ORIGINS = {
    "development": [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8080",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ],
    "staging": [
        "https://staging.lucena.cloud",
    ],
    "production": [
        "https://lucena.cloud",
        "https://www.lucena.cloud",
    ],
}

DEFAULT_SSL_MODES = {
    "development": "disable",
    "staging": "require",
    "production": "verify-full",
}

SSL_MODES = ("disable", "require", "verify-ca", "verify-full")


def _database_url() -> str:
    url = config("DATABASE_URL", default="")
    if url:
        return url
    host = config("DATABASE_HOST", default="localhost")
    port = config("DATABASE_PORT", default=5432, cast=int)
    user = config("DATABASE_USER", default="portfolio_user")
    password = config("DATABASE_PASSWORD", default="")
    name = config("DATABASE_NAME", default="portfolio")
    auth = quote(user, safe="")
    if password:
        auth += ":" + quote(password, safe="")
    return f"postgresql://{auth}@{host}:{port}/{name}"


def _redis_url() -> str:
    url = config("REDIS_URL", default="")
    if url:
        return url
    host = config("REDIS_HOST", default="localhost")
    port = config("REDIS_PORT", default=6379, cast=int)
    password = config("REDIS_PASSWORD", default="")
    if password:
        return f"redis://:{quote(password, safe='')}@{host}:{port}/0"
    return f"redis://{host}:{port}/0"


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    port: int = 8080
    log_level: str = "INFO"

    database_url: str = "postgresql://portfolio_user@localhost:5432/portfolio"
    database_ssl_mode: str = "disable"
    database_pool_min: int = 5
    database_pool_max: int = 25

    redis_url: str = "redis://localhost:6379/0"

    ollama_url: str = "http://localhost:11434"
    llm_model: str = "gemma2:2b"
    llm_timeout: float = 60.0

    allowed_origins: list[str] = field(default_factory=list)
    rate_limit_per_minute: int = 100
    rate_limit_backend: str = "memory"
    trust_proxy_headers: bool = True
    sql_guard_enabled: bool = True
    csp_policy: str = ""

    metrics_username: str = ""
    metrics_password: str = ""
    admin_password: str = ""

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def metrics_auth_enabled(self) -> bool:
        return bool(self.metrics_username and self.metrics_password)

    @classmethod
    def from_env(cls) -> "Settings":
        environment = config("APP_ENV", default="development").lower()
        if environment not in ENVIRONMENTS:
            raise ValueError(f"APP_ENV must be one of {ENVIRONMENTS}, got {environment!r}")

        ssl_mode = config("DATABASE_SSL_MODE", default=DEFAULT_SSL_MODES[environment]).lower()
        if ssl_mode not in SSL_MODES:
            raise ValueError(f"DATABASE_SSL_MODE must be one of {SSL_MODES}, got {ssl_mode!r}")

        origins = config("ALLOWED_ORIGINS", default="", cast=Csv())
        if not origins:
            origins = list(DEFAULT_ORIGINS[environment])

        backend = config("RATE_LIMIT_BACKEND", default="memory").lower()
        if backend not in ("memory", "redis"):
            raise ValueError(f"RATE_LIMIT_BACKEND must be 'memory' or 'redis', got {backend!r}")

        return cls(
            environment=environment,
            port=config("PORT", default=8080, cast=int),
            log_level=config("LOG_LEVEL", default="INFO").upper(),
            database_url=_database_url(),
            database_ssl_mode=ssl_mode,
            database_pool_min=config("DATABASE_POOL_MIN", default=5, cast=int),
            database_pool_max=config("DATABASE_POOL_MAX", default=25, cast=int),
            redis_url=_redis_url(),
            ollama_url=config("OLLAMA_URL", default="http://localhost:11434").rstrip("/"),
            llm_model=config("GEMMA_MODEL", default="gemma2:2b"),
            llm_timeout=config("LLM_TIMEOUT", default=60.0, cast=float),
            allowed_origins=origins,
            rate_limit_per_minute=config("RATE_LIMIT_PER_MINUTE", default=100, cast=int),
            rate_limit_backend=backend,
            trust_proxy_headers=config("TRUST_PROXY_HEADERS", default=True, cast=bool),
            sql_guard_enabled=config("SQL_GUARD_ENABLED", default=True, cast=bool),
            csp_policy=config("CSP_POLICY", default=""),
            metrics_username=config("METRICS_USERNAME", default=""),
            metrics_password=config("METRICS_PASSWORD", default=""),
            admin_password=config("ADMIN_PASSWORD", default=""),
        )
