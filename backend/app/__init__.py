"""Application factory for the contact form API."""
from flask import Flask, g
from werkzeug.middleware.proxy_fix import ProxyFix
from backend.config import Config, ContactSettings, init_app_config

# Importamos las instancias de las extensiones
from .extensions import db, migrate, cors, limiter, talisman
from .errors import register_error_handlers
from .logging_config import configure_logging, setup_request_logging
from .services.contacts import ContactGateway
from .services.store import ContactStore

CONTENT_SECURITY_POLICY = {
    "default-src": "'self'",
    "style-src": ["'self'", "'unsafe-inline'"],
    "script-src": ["'self'", "'unsafe-inline'"],
}


def init_sentry(app: Flask) -> None:
    """
    Inicializa Sentry para monitoreo de errores.

    Solo se activa si SENTRY_DSN está configurado y el entorno es
    'production' (o 'development' con SENTRY_ENABLE_IN_DEV=true).
    """
    sentry_dsn = app.config.get('SENTRY_DSN')
    if not sentry_dsn:
        app.logger.info("Sentry no inicializado: SENTRY_DSN no configurado")
        return

    runtime_env = app.config.get('APP_ENV', 'production')
    enable_in_dev = app.config.get('SENTRY_ENABLE_IN_DEV', False)
    if runtime_env != 'production' and not (runtime_env == 'development' and enable_in_dev):
        app.logger.info(f"Sentry no inicializado: entorno '{runtime_env}' no es production")
        return

    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_environment = app.config.get('SENTRY_ENVIRONMENT') or runtime_env
    traces_sample_rate = app.config.get('SENTRY_TRACES_SAMPLE_RATE', 0.1)

    sentry_sdk.init(
        dsn=sentry_dsn,
        environment=sentry_environment,
        integrations=[
            FlaskIntegration(),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=traces_sample_rate,
        # Los envíos contienen emails e IPs: no se mandan datos personales
        send_default_pii=False,
        release=app.config.get('APP_VERSION'),
    )

    @app.before_request
    def add_sentry_context():
        sentry_sdk.set_tag("app_env", runtime_env)
        request_id = getattr(g, "request_id", None)
        if request_id:
            sentry_sdk.set_tag("request_id", request_id)

    app.logger.info(
        f"Sentry inicializado correctamente "
        f"[environment={sentry_environment}, traces_sample_rate={traces_sample_rate}]"
    )


def create_app(config_object=Config) -> Flask:
    """
    Fábrica de la aplicación Flask.

    Construye la configuración una sola vez y entrega el store y el gateway
    de contactos a las rutas a través de ``app.extensions``.
    """
    app = Flask(__name__)

    app.config.from_object(config_object)
    init_app_config(app)

    trusted_hops = app.config["PROXY_FIX_X_FOR"]
    if trusted_hops:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=trusted_hops)
    settings = ContactSettings.from_app_config(app.config)
    app.extensions["contact_settings"] = settings

    # Configure structured logging early
    configure_logging(app)
    setup_request_logging(app)
    init_sentry(app)

    db.init_app(app)
    migrate.init_app(app, db)

    cors.init_app(
        app,
        resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS") or "*"}},
        methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-API-Key"],
        supports_credentials=bool(app.config.get("CORS_SUPPORTS_CREDENTIALS", False)),
    )

    # TLS termina en el proxy inverso: no se fuerza HTTPS aquí
    talisman.init_app(
        app,
        force_https=False,
        session_cookie_secure=settings.is_production,
        content_security_policy=CONTENT_SECURITY_POLICY,
    )

    limiter.init_app(app)

    store = ContactStore.from_settings(db, settings)
    app.extensions["contact_store"] = store
    app.extensions["contact_gateway"] = ContactGateway(store, settings)

    register_error_handlers(app)

    with app.app_context():
        from . import models  # noqa: F401

    from .routes import api as api_blueprint

    app.register_blueprint(api_blueprint, url_prefix="/api")

    return app
