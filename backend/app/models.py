import ipaddress
import logging
from datetime import datetime, timezone

from sqlalchemy.dialects.postgresql import INET
from sqlalchemy.sql import func
from sqlalchemy.types import String, TypeDecorator
from .extensions import db

logger = logging.getLogger(__name__)


def _utcnow():
    return datetime.now(timezone.utc)


class IPAddress(TypeDecorator):
    """Columna INET en PostgreSQL y VARCHAR(45) en el resto de motores."""

    impl = String(45)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(INET())
        return dialect.type_descriptor(String(45))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        try:
            return str(ipaddress.ip_address(str(value).strip()))
        except ValueError:
            logger.debug("Dirección IP descartada: %r", value)
            return None

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return str(value)


class Contact(db.Model):
    __tablename__ = 'contacts'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    ip_address = db.Column(IPAddress())
    user_agent = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )

    __table_args__ = (
        db.Index('idx_contacts_email', 'email'),
        db.Index('idx_contacts_created_at', created_at.desc()),
    )

    def __repr__(self) -> str:  # pragma: no cover - representación útil en depuración
        return f"<Contact {self.id} {self.email!r}>"
