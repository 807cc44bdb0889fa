"""
Servicio de validación y normalización de envíos del formulario de contacto.

Las reglas se evalúan para los tres campos siempre, en el orden
name, email, message; los errores se acumulan (como mucho uno por campo).
"""
import re
from dataclasses import dataclass, field, asdict
from typing import Any, List, Mapping, Optional

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
MESSAGE_MIN_LENGTH = 10
MESSAGE_MAX_LENGTH = 1000

# local@dominio.tld: sin espacios, una sola @ y al menos un punto en el dominio
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class ContactCandidate:
    """Datos crudos recibidos del cliente, todavía sin validar."""

    name: Any = None
    email: Any = None
    message: Any = None

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> "ContactCandidate":
        if not isinstance(payload, Mapping):
            payload = {}
        return cls(
            name=payload.get("name"),
            email=payload.get("email"),
            message=payload.get("message"),
        )


@dataclass(frozen=True)
class NormalizedContact:
    """Registro validado y listo para persistir."""

    name: str
    email: str
    message: str


@dataclass(frozen=True)
class FieldError:
    field: str
    rule: str
    message: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ValidationResult:
    record: Optional[NormalizedContact] = None
    errors: List[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _as_text(value) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)
    return value.strip()


def normalize_email(value):
    """
    Normaliza una dirección de email removiendo espacios y convirtiendo a minúsculas.

    No se tocan puntos ni sufijos ``+tag``: solo trim + lower.
    """
    return _as_text(value).lower()


def _check_name(name: str) -> Optional[FieldError]:
    if not name:
        return FieldError("name", "required", "Name is required")
    if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
        return FieldError(
            "name",
            "length",
            f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters",
        )
    return None


def _check_email(email: str) -> Optional[FieldError]:
    if not email:
        return FieldError("email", "required", "Email is required")
    if not EMAIL_PATTERN.match(email):
        return FieldError("email", "format", "Please provide a valid email address")
    return None


def _check_message(message: str) -> Optional[FieldError]:
    if not message:
        return FieldError("message", "required", "Message is required")
    if not MESSAGE_MIN_LENGTH <= len(message) <= MESSAGE_MAX_LENGTH:
        return FieldError(
            "message",
            "length",
            f"Message must be between {MESSAGE_MIN_LENGTH} and {MESSAGE_MAX_LENGTH} characters",
        )
    return None


def validate_contact(candidate: ContactCandidate) -> ValidationResult:
    """
    Valida un envío del formulario de contacto.

    Args:
        candidate: Datos crudos (name, email, message)

    Returns:
        ValidationResult con ``record`` normalizado si no hubo errores,
        o con la lista ordenada de ``errors`` en caso contrario.
    """
    name = _as_text(candidate.name)
    email = normalize_email(candidate.email)
    message = _as_text(candidate.message)

    errors = [
        error
        for error in (_check_name(name), _check_email(email), _check_message(message))
        if error is not None
    ]
    if errors:
        return ValidationResult(errors=errors)
    return ValidationResult(record=NormalizedContact(name=name, email=email, message=message))
