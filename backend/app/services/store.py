"""
Acceso explícito al almacén relacional.

``ContactStore`` es el único dueño de la conexión: el gateway lo recibe por
referencia y obtiene la sesión desde aquí. La verificación inicial reintenta
con espera fija y un número acotado de intentos; ante una desconexión
inesperada se descarta el pool para que la siguiente petición reconecte.
"""
import logging
import time

from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from ..errors import StoreUnavailable

logger = logging.getLogger(__name__)


class ContactStore:
    def __init__(self, db, *, max_retries=5, retry_delay=5.0, sleep=time.sleep):
        self._db = db
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep
        self.reconnects = 0

    @classmethod
    def from_settings(cls, db, settings, **kwargs):
        return cls(
            db,
            max_retries=settings.connect_retries,
            retry_delay=settings.retry_delay_seconds,
            **kwargs,
        )

    @property
    def session(self):
        return self._db.session

    def ping(self):
        """Ejecuta ``SELECT 1``; las excepciones del driver se propagan."""
        self.session.execute(self._db.select(1))
        self.mark_healthy()

    def mark_healthy(self):
        """Una operación completada devuelve el presupuesto de reconexiones."""
        self.reconnects = 0

    def connect(self):
        """
        Verifica la conexión con reintentos de espera fija.

        Raises:
            StoreUnavailable: si se agotan los intentos.
        """
        attempt = 0
        while True:
            try:
                self.ping()
            except SQLAlchemyError as exc:
                self.session.rollback()
                if attempt >= self.max_retries:
                    logger.error(
                        "Database connection failed: %s",
                        exc,
                        extra={"event": "store.connect_failed", "attempts": attempt + 1},
                    )
                    raise StoreUnavailable("Database connection failed", details=str(exc)) from exc
                attempt += 1
                logger.info(
                    f"Retrying connection ({attempt}/{self.max_retries})...",
                    extra={"event": "store.retry", "attempt": attempt},
                )
                self._dispose()
                self._sleep(self.retry_delay)
                continue
            logger.info("Database connection successful", extra={"event": "store.connected"})
            return

    def handle_error(self, exc):
        """
        Deshace la transacción en curso y, si el error indica una conexión
        perdida, descarta el pool (como mucho ``max_retries`` veces).
        """
        self.session.rollback()
        if not self._is_disconnect(exc):
            return False
        if self.reconnects >= self.max_retries:
            logger.error(
                "Store connection lost and reconnect budget exhausted",
                extra={"event": "store.reconnect_exhausted"},
            )
            return False
        self.reconnects += 1
        logger.warning(
            f"Unexpected store disconnection, resetting pool ({self.reconnects}/{self.max_retries})",
            extra={"event": "store.reconnect", "attempt": self.reconnects},
        )
        self._dispose()
        return True

    @staticmethod
    def _is_disconnect(exc):
        # SQLAlchemy marca connection_invalidated cuando el dialecto reconoce
        # una desconexión; timeouts de bloqueo o cancelaciones no la marcan
        return isinstance(exc, DBAPIError) and exc.connection_invalidated

    def _dispose(self):
        self._db.engine.dispose()

    def create_schema(self):
        """Crea la tabla ``contacts`` y sus índices si no existen."""
        self._db.create_all()
        logger.info("Database initialized successfully", extra={"event": "store.schema_ready"})
