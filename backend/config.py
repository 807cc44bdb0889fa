"""Application configuration values."""
import os
import sys
from dataclasses import dataclass
from typing import List, Optional
from pathlib import Path
from urllib.parse import quote_plus
from dotenv import load_dotenv


# --- Cargar variables de entorno ---
load_dotenv()

BASE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = BASE_DIR.parent
INSTANCE_DIR = PROJECT_ROOT / "instance"

SERVICE_NAME = "contact-form-api"

_ENV_ALIASES = {
    "dev": "development",
    "development": "development",
    "prod": "production",
    "production": "production",
    "testing": "test",
    "tests": "test",
    "pytest": "test",
    "test": "test",
}

_TRUTHY = {"1", "true", "yes", "on"}


def _normalize_env(value: str) -> str:
    normalized = _ENV_ALIASES.get(value.strip().lower(), value.strip().lower())
    return normalized or "production"


def detect_runtime_env() -> str:
    """Determina el entorno actual (production, development, test)."""
    explicit = (
        os.getenv("APP_ENV")
        or os.getenv("FLASK_ENV")
        or os.getenv("NODE_ENV")
        or ""
    ).strip()
    if explicit:
        return _normalize_env(explicit)

    if os.getenv("PYTEST_CURRENT_TEST") or any("pytest" in arg for arg in sys.argv):
        return "test"

    debug_flag = os.getenv("FLASK_DEBUG", "").strip().lower()
    if debug_flag in _TRUTHY:
        return "development"

    return "production"


def _read_int(value, default: int, minimum: int = 0) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return max(minimum, parsed)


def _read_float(value, default: float, minimum: float = 0.0) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return max(minimum, parsed)


def database_uri_from_parts() -> Optional[str]:
    """Construye la URI de PostgreSQL a partir de DB_HOST, DB_NAME, etc."""
    host = os.getenv("DB_HOST")
    name = os.getenv("DB_NAME")
    if not host or not name:
        return None
    user = quote_plus(os.getenv("DB_USER", "postgres"))
    password = os.getenv("DB_PASSWORD")
    port = os.getenv("DB_PORT", "5432")
    credentials = f"{user}:{quote_plus(password)}" if password else user
    return f"postgresql+psycopg2://{credentials}@{host}:{port}/{name}"


def _fallback_database_uri(runtime_env: str) -> Optional[str]:
    """Determina la URI según entorno cuando DATABASE_URL no está definida."""
    if runtime_env == "test":
        return "sqlite:///:memory:"
    if runtime_env == "development":
        INSTANCE_DIR.mkdir(parents=True, exist_ok=True)
        sqlite_path = INSTANCE_DIR / "contacts.db"
        return f"sqlite:///{sqlite_path}"
    return None


def _engine_options(db_uri: str, base: Optional[dict], pool_size: int) -> dict:
    # Copia para no compartir referencias mutables entre apps
    options = dict(base or {})
    if db_uri.startswith("sqlite"):
        options.setdefault("connect_args", {"check_same_thread": False})
        return options

    options.setdefault("pool_size", pool_size)
    options.setdefault("max_overflow", 0)
    options.setdefault("pool_pre_ping", True)
    options.setdefault("pool_recycle", 1800)
    options.setdefault("pool_timeout", 30)
    if db_uri.startswith("postgresql"):
        options.setdefault("connect_args", {"connect_timeout": 5})
    return options


def init_app_config(app) -> None:
    """Aplica valores derivados del entorno sin forzar evaluación temprana."""
    runtime_env = _normalize_env(
        str(app.config.get("APP_ENV", "") or app.config.get("ENV", "")).strip()
        or detect_runtime_env()
    )
    app.config["APP_ENV"] = runtime_env
    app.config["ENV"] = runtime_env

    if "TESTING" not in app.config:
        app.config["TESTING"] = runtime_env == "test"
    if "DEBUG" not in app.config:
        app.config["DEBUG"] = runtime_env == "development"

    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI") or os.getenv("DATABASE_URL")

    # En tests nunca se apunta a PostgreSQL real
    if runtime_env == "test" or app.config.get("TESTING"):
        if db_uri and db_uri.startswith("postgresql"):
            app.logger.warning(
                "Tests intentando usar PostgreSQL; se fuerza SQLite en memoria"
            )
            db_uri = "sqlite:///:memory:"
        elif not db_uri:
            db_uri = "sqlite:///:memory:"
    elif not db_uri:
        db_uri = database_uri_from_parts() or _fallback_database_uri(runtime_env)

    if not db_uri:
        raise RuntimeError(
            "FATAL: DATABASE_URL no está configurada y no existe fallback para producción. "
            "Establece DATABASE_URL o DB_HOST/DB_NAME antes de iniciar en producción."
        )

    app.config["SQLALCHEMY_DATABASE_URI"] = db_uri

    pool_size = _read_int(app.config.get("DB_MAX_CONNECTIONS"), 20, minimum=1)
    app.config["DB_MAX_CONNECTIONS"] = pool_size
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = _engine_options(
        db_uri, app.config.get("SQLALCHEMY_ENGINE_OPTIONS"), pool_size
    )

    app.config["DB_CONNECT_RETRIES"] = _read_int(app.config.get("DB_CONNECT_RETRIES"), 5)
    app.config["DB_RETRY_DELAY_SECONDS"] = _read_float(app.config.get("DB_RETRY_DELAY_SECONDS"), 5.0)

    app.config["RATE_LIMIT_WINDOW_MS"] = _read_int(
        app.config.get("RATE_LIMIT_WINDOW_MS"), 15 * 60 * 1000, minimum=1000
    )
    app.config["RATE_LIMIT_MAX_REQUESTS"] = _read_int(
        app.config.get("RATE_LIMIT_MAX_REQUESTS"), 100, minimum=1
    )

    app.config["PROXY_FIX_X_FOR"] = _read_int(app.config.get("PROXY_FIX_X_FOR"), 1)

    max_page_size = app.config.get("CONTACTS_MAX_PAGE_SIZE")
    if max_page_size in (None, ""):
        app.config["CONTACTS_MAX_PAGE_SIZE"] = None
    else:
        app.config["CONTACTS_MAX_PAGE_SIZE"] = _read_int(max_page_size, 0, minimum=1) or None

    admin_key = app.config.get("ADMIN_API_KEY")
    if runtime_env == "production" and not admin_key:
        app.logger.warning(
            "ADMIN_API_KEY no está configurada: DELETE /api/contacts quedará bloqueado"
        )

    app.config["CORS_ORIGINS"] = app.config.get("CORS_ORIGINS") or "*"


def parse_list_env(name: str) -> List[str]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class ContactSettings:
    """Parámetros de ejecución que consumen el store y el gateway de contactos."""

    runtime_env: str
    pool_size: int
    connect_retries: int
    retry_delay_seconds: float
    rate_limit_window_ms: int
    rate_limit_max_requests: int
    admin_api_key: Optional[str]
    max_page_size: Optional[int] = None

    @property
    def is_development(self) -> bool:
        return self.runtime_env == "development"

    @property
    def is_production(self) -> bool:
        return self.runtime_env == "production"

    @property
    def rate_limit(self) -> str:
        """Límite en la notación de Flask-Limiter."""
        window_seconds = max(1, self.rate_limit_window_ms // 1000)
        return f"{self.rate_limit_max_requests} per {window_seconds} second"

    @classmethod
    def from_app_config(cls, config) -> "ContactSettings":
        return cls(
            runtime_env=config.get("APP_ENV", "production"),
            pool_size=config.get("DB_MAX_CONNECTIONS", 20),
            connect_retries=config.get("DB_CONNECT_RETRIES", 5),
            retry_delay_seconds=config.get("DB_RETRY_DELAY_SECONDS", 5.0),
            rate_limit_window_ms=config.get("RATE_LIMIT_WINDOW_MS", 15 * 60 * 1000),
            rate_limit_max_requests=config.get("RATE_LIMIT_MAX_REQUESTS", 100),
            admin_api_key=config.get("ADMIN_API_KEY") or None,
            max_page_size=config.get("CONTACTS_MAX_PAGE_SIZE"),
        )


class Config:
    # --- configuracion de base de datos ---
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = None

    DB_MAX_CONNECTIONS = os.getenv("DB_MAX_CONNECTIONS", "20")
    DB_CONNECT_RETRIES = os.getenv("DB_CONNECT_RETRIES", "5")
    DB_RETRY_DELAY_SECONDS = os.getenv("DB_RETRY_DELAY_SECONDS", "5")

    _runtime = detect_runtime_env()
    TESTING = _runtime == "test"
    ENV = _runtime
    DEBUG = _runtime == "development"

    PORT = int(os.getenv("PORT", "3000"))

    # Tamaño máximo del cuerpo de la petición (1 MB)
    MAX_CONTENT_LENGTH = 1024 * 1024

    # --- credenciales y paginación ---
    ADMIN_API_KEY = os.getenv("ADMIN_API_KEY")
    CONTACTS_MAX_PAGE_SIZE = os.getenv("CONTACTS_MAX_PAGE_SIZE")

    # CORS
    CORS_ORIGINS = parse_list_env("CORS_ORIGIN") or "*"
    CORS_SUPPORTS_CREDENTIALS = os.getenv("CORS_SUPPORTS_CREDENTIALS", "false").lower() in _TRUTHY

    # --- Rate Limiting Configuration ---
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_STRATEGY = "moving-window"
    RATELIMIT_HEADERS_ENABLED = True
    RATE_LIMIT_WINDOW_MS = os.getenv("RATE_LIMIT_WINDOW_MS", str(15 * 60 * 1000))
    RATE_LIMIT_MAX_REQUESTS = os.getenv("RATE_LIMIT_MAX_REQUESTS", "100")

    # Saltos de proxy inverso de confianza para X-Forwarded-For (0 = ninguno)
    PROXY_FIX_X_FOR = os.getenv("PROXY_FIX_X_FOR", "1")

    # --- Logging Configuration ---
    LOG_LEVEL = os.getenv("LOG_LEVEL", None)  # None = auto-detect based on APP_ENV
    LOG_JSON_ENABLED = None  # None = auto-detect (True for production, False otherwise)
    _log_json_env = os.getenv("LOG_JSON_ENABLED", "").strip().lower()
    if _log_json_env in _TRUTHY:
        LOG_JSON_ENABLED = True
    elif _log_json_env in {"0", "false", "no", "off"}:
        LOG_JSON_ENABLED = False
    del _log_json_env

    # --- Sentry Configuration ---
    SENTRY_DSN = os.getenv("SENTRY_DSN")
    SENTRY_ENVIRONMENT = os.getenv("SENTRY_ENVIRONMENT")  # None = auto-detect from APP_ENV
    try:
        _traces_sample_rate = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1"))
    except ValueError:
        _traces_sample_rate = 0.1
    SENTRY_TRACES_SAMPLE_RATE = max(0.0, min(1.0, _traces_sample_rate))
    del _traces_sample_rate
    SENTRY_ENABLE_IN_DEV = os.getenv("SENTRY_ENABLE_IN_DEV", "false").strip().lower() in _TRUTHY
