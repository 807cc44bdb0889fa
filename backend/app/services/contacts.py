"""
Gateway de contactos: alta, listado paginado, consulta, borrado, salud y métricas.

Cada operación es una petición/respuesta sin estado. Los errores de
SQLAlchemy se capturan aquí y se traducen a la taxonomía de ``errors``;
nunca llegan crudos a las rutas.
"""
import hmac
import logging
import math
import time
from dataclasses import dataclass
from datetime import date, datetime, time as dt_time, timedelta, timezone
from typing import Mapping, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from backend.config import SERVICE_NAME
from ..errors import Conflict, NotFound, StoreUnavailable, Unauthorized, ValidationFailed
from ..models import Contact
from .validate import FieldError, NormalizedContact

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10
METRICS_WINDOW_DAYS = 30
UNIQUE_VIOLATION = "23505"
# Rango de INTEGER en PostgreSQL; LIMIT/OFFSET mayores no llegan al driver
MAX_QUERY_INT = 2**31 - 1


@dataclass(frozen=True)
class PageRequest:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class ContactFilters:
    email: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


def parse_iso_datetime(value: Optional[str], *, end: bool = False):
    """
    Parsea una fecha ISO a datetime con timezone UTC.

    Si la fecha no tiene timezone, se asume UTC.
    Si end=True y no hay hora especificada, se ajusta al final del día.
    """
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    if end and "T" not in value and " " not in value.strip():
        dt = dt + timedelta(days=1) - timedelta(microseconds=1)
    return dt


def isoformat_utc(value):
    """Serializa timestamps en ISO-8601 UTC; los valores naive se asumen UTC."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        else:
            value = value.astimezone(timezone.utc)
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def contact_query_params(args: Mapping[str, str], max_page_size: Optional[int] = None):
    """
    Extrae paginación y filtros del query string de ``GET /api/contacts``.

    Parámetros soportados:
    - page: Número de página (default: 1)
    - limit: Tamaño de página (default: 10, sin tope salvo ``max_page_size``)
    - email: Coincidencia exacta
    - startDate / endDate: Límites inclusivos sobre created_at (ISO)

    Raises:
        ValidationFailed: si algún parámetro no es interpretable.
    """
    errors = []

    def _read_positive_int(name, default):
        raw = args.get(name)
        if raw is None or str(raw).strip() == "":
            return default
        try:
            value = int(str(raw).strip())
        except ValueError:
            value = 0
        if value < 1 or value > MAX_QUERY_INT:
            errors.append(FieldError(name, "format", f"{name} must be a positive integer"))
            return default
        return value

    def _read_date(name, *, end=False):
        raw = (args.get(name) or "").strip()
        if not raw:
            return None
        parsed = parse_iso_datetime(raw, end=end)
        if parsed is None:
            errors.append(FieldError(name, "format", f"{name} must be an ISO-8601 date"))
        return parsed

    page = _read_positive_int("page", DEFAULT_PAGE)
    limit = _read_positive_int("limit", DEFAULT_PAGE_SIZE)
    if max_page_size:
        limit = min(limit, max_page_size)

    filters = ContactFilters(
        email=(args.get("email") or "").strip() or None,
        start_date=_read_date("startDate"),
        end_date=_read_date("endDate", end=True),
    )

    if errors:
        raise ValidationFailed.from_field_errors(errors)
    return PageRequest(page=page, limit=limit), filters


def filter_conditions(filters: ContactFilters):
    """Predicados presentes, en orden email, startDate, endDate."""
    conditions = []
    if filters.email:
        conditions.append(Contact.email == filters.email)
    if filters.start_date:
        conditions.append(Contact.created_at >= filters.start_date)
    if filters.end_date:
        conditions.append(Contact.created_at <= filters.end_date)
    return conditions


def build_list_statements(page: PageRequest, filters: ContactFilters):
    """
    Construye la consulta de filas y la de conteo.

    Ambas comparten el mismo predicado, pero LIMIT/OFFSET solo se añaden a la
    de filas: el conteo recibe exclusivamente los parámetros de filtro.
    """
    conditions = filter_conditions(filters)

    rows_stmt = select(Contact.id, Contact.name, Contact.email, Contact.created_at)
    count_stmt = select(func.count()).select_from(Contact)
    if conditions:
        rows_stmt = rows_stmt.where(*conditions)
        count_stmt = count_stmt.where(*conditions)

    rows_stmt = (
        rows_stmt.order_by(Contact.created_at.desc(), Contact.id.desc())
        .limit(page.limit)
        .offset(page.offset)
    )
    return rows_stmt, count_stmt


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == UNIQUE_VIOLATION:
        return True
    return "UNIQUE constraint failed" in str(orig)


class ContactGateway:
    """Operaciones de persistencia sobre ``contacts``."""

    def __init__(self, store, settings, clock=time.monotonic):
        self.store = store
        self.settings = settings
        self._clock = clock
        self._started_at = clock()

    def _store_failure(self, exc, message):
        self.store.handle_error(exc)
        logger.error(
            f"{message}: {exc}",
            extra={"event": "store.operation_failed", "exception_type": type(exc).__name__},
        )
        return StoreUnavailable(message, details=str(exc))

    def create(self, record: NormalizedContact, ip_address=None, user_agent=None):
        session = self.store.session
        contact = Contact(
            name=record.name,
            email=record.email,
            message=record.message,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        try:
            session.add(contact)
            session.flush()
            session.commit()
        except IntegrityError as exc:
            if _is_unique_violation(exc):
                self.store.handle_error(exc)
                logger.warning(
                    "Duplicate contact submission",
                    extra={"event": "contact.duplicate", "contact_email": record.email},
                )
                raise Conflict() from exc
            raise self._store_failure(exc, "Failed to save contact") from exc
        except SQLAlchemyError as exc:
            raise self._store_failure(exc, "Failed to save contact") from exc
        self.store.mark_healthy()

        logger.info(
            f"Contact saved: {contact.email}",
            extra={"event": "contact.saved", "contact_id": contact.id},
        )
        return {
            "id": contact.id,
            "name": contact.name,
            "email": contact.email,
            "created_at": isoformat_utc(contact.created_at),
        }

    def list(self, page: PageRequest, filters: Optional[ContactFilters] = None):
        filters = filters or ContactFilters()
        rows_stmt, count_stmt = build_list_statements(page, filters)
        session = self.store.session
        try:
            rows = session.execute(rows_stmt).all()
            total = session.execute(count_stmt).scalar_one()
        except SQLAlchemyError as exc:
            raise self._store_failure(exc, "Failed to fetch contacts") from exc
        self.store.mark_healthy()

        total = int(total or 0)
        return {
            "rows": [
                {
                    "id": row.id,
                    "name": row.name,
                    "email": row.email,
                    "created_at": isoformat_utc(row.created_at),
                }
                for row in rows
            ],
            "pagination": {
                "page": page.page,
                "limit": page.limit,
                "total": total,
                "totalPages": math.ceil(total / page.limit),
            },
        }

    def get_by_id(self, contact_id: int):
        stmt = select(
            Contact.id, Contact.name, Contact.email, Contact.message, Contact.created_at
        ).where(Contact.id == contact_id)
        try:
            row = self.store.session.execute(stmt).first()
        except SQLAlchemyError as exc:
            raise self._store_failure(exc, "Failed to fetch contact") from exc
        self.store.mark_healthy()

        if row is None:
            raise NotFound()
        return {
            "id": row.id,
            "name": row.name,
            "email": row.email,
            "message": row.message,
            "created_at": isoformat_utc(row.created_at),
        }

    def authorize_delete(self, caller_credential: Optional[str]) -> None:
        """En producción exige la clave de administración; en otro entorno no."""
        if not self.settings.is_production:
            return
        expected = self.settings.admin_api_key
        if not expected or not caller_credential:
            raise Unauthorized()
        if not hmac.compare_digest(str(caller_credential), str(expected)):
            raise Unauthorized()

    def delete(self, contact_id: int, caller_credential: Optional[str] = None):
        self.authorize_delete(caller_credential)

        stmt = (
            delete(Contact)
            .where(Contact.id == contact_id)
            .returning(Contact.id, Contact.email)
        )
        session = self.store.session
        try:
            row = session.execute(stmt).first()
            session.commit()
        except SQLAlchemyError as exc:
            raise self._store_failure(exc, "Failed to delete contact") from exc
        self.store.mark_healthy()

        if row is None:
            raise NotFound()
        logger.info(
            f"Contact deleted: {row.email}",
            extra={"event": "contact.deleted", "contact_id": row.id},
        )
        return {"id": row.id, "email": row.email}

    def uptime(self) -> float:
        return self._clock() - self._started_at

    def health(self):
        report = {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "uptime": round(self.uptime(), 3),
            "checks": {},
        }
        try:
            self.store.ping()
            report["checks"]["database"] = "healthy"
        except SQLAlchemyError as exc:
            self.store.handle_error(exc)
            logger.error(f"Health check failed: {exc}", extra={"event": "health.database_failed"})
            report["status"] = "unhealthy"
            report["checks"]["database"] = "unhealthy"
            if self.settings.is_development:
                report["databaseError"] = str(exc)
        return report

    def metrics(self, today: Optional[date] = None):
        """Conteos diarios de los últimos 30 días, del más reciente al más antiguo."""
        today = today or datetime.now(timezone.utc).date()
        cutoff = datetime.combine(
            today - timedelta(days=METRICS_WINDOW_DAYS), dt_time.min, tzinfo=timezone.utc
        )
        day = func.date(Contact.created_at).label("date")
        stmt = (
            select(
                day,
                func.count().label("total_contacts"),
                func.count(func.distinct(Contact.email)).label("unique_emails"),
                func.count().label("daily_count"),
            )
            .where(Contact.created_at >= cutoff)
            .group_by(day)
            .order_by(day.desc())
        )
        try:
            rows = self.store.session.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise self._store_failure(exc, "Failed to fetch metrics") from exc
        self.store.mark_healthy()

        return [
            {
                "date": isoformat_utc(row.date),
                "total_contacts": int(row.total_contacts),
                "unique_emails": int(row.unique_emails),
                "daily_count": int(row.daily_count),
            }
            for row in rows
        ]
