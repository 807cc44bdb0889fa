# tests/conftest.py
import os
import sys
import pathlib
from datetime import datetime, timedelta, timezone

import pytest

# ---------- PATH raíz del repo ----------
THIS = pathlib.Path(__file__).resolve()
ROOT = THIS.parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.app import create_app  # noqa: E402
from backend.app.extensions import db  # noqa: E402
from backend.app.models import Contact  # noqa: E402


# ---------- Config de pruebas ----------
class TestConfig:
    TESTING = True
    APP_ENV = "test"
    LOG_LEVEL = None  # Auto-detect per APP_ENV during tests
    SECRET_KEY = "testing-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MAX_CONTENT_LENGTH = 1024 * 1024
    DB_CONNECT_RETRIES = 2
    DB_RETRY_DELAY_SECONDS = 0
    # Rate limiting - límite muy alto para que no interfiera con el resto de tests
    RATELIMIT_STORAGE_URI = "memory://"
    RATELIMIT_STRATEGY = "moving-window"
    RATE_LIMIT_WINDOW_MS = 60 * 1000
    RATE_LIMIT_MAX_REQUESTS = 100000
    PROXY_FIX_X_FOR = 1
    ADMIN_API_KEY = None
    CONTACTS_MAX_PAGE_SIZE = None


@pytest.fixture(scope="session", autouse=True)
def _clean_env():
    """
    Limpia variables de entorno peligrosas antes de ejecutar tests.

    Evita que los tests apunten por accidente a la base de datos real.
    """
    original_database_url = os.environ.get("DATABASE_URL")
    os.environ.pop("DATABASE_URL", None)
    os.environ["APP_ENV"] = "test"

    yield

    if original_database_url:
        os.environ["DATABASE_URL"] = original_database_url


def _build_app(config_object):
    app = create_app(config_object)
    with app.app_context():
        db_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
        if "sqlite" not in db_uri.lower():
            raise RuntimeError(f"Solo se permite SQLite en tests, URI detectada: {db_uri}")
        db.create_all()
    return app


@pytest.fixture(scope="session")
def app():
    app = _build_app(TestConfig)
    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture(autouse=True)
def _empty_contacts(request):
    """Deja la tabla contacts vacía al terminar cada test que use la app."""
    yield
    if "app" not in request.fixturenames:
        return
    app = request.getfixturevalue("app")
    with app.app_context():
        db.session.rollback()
        db.session.execute(db.delete(Contact))
        db.session.commit()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def gateway(app):
    return app.extensions["contact_gateway"]


@pytest.fixture()
def make_app():
    """Crea apps aisladas con overrides de configuración (producción, límites...)."""
    created = []

    def _make(**overrides):
        config_object = type("OverrideConfig", (TestConfig,), overrides)
        new_app = _build_app(config_object)
        created.append(new_app)
        return new_app

    yield _make

    for created_app in created:
        with created_app.app_context():
            db.session.remove()
            db.drop_all()


@pytest.fixture()
def contact_factory(app):
    """Inserta contactos con created_at controlado; devuelve sus ids."""

    def _mk(count=1, *, email="user{i}@example.com", start=None, step=timedelta(minutes=1)):
        start = start or datetime.now(timezone.utc)
        ids = []
        with app.app_context():
            for i in range(count):
                contact = Contact(
                    name=f"User {i}",
                    email=email.format(i=i),
                    message=f"Mensaje de prueba número {i}",
                    created_at=start - step * i,
                    updated_at=start - step * i,
                )
                db.session.add(contact)
                db.session.flush()
                ids.append(contact.id)
            db.session.commit()
        return ids

    return _mk
