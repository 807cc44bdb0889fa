"""Taxonomía de errores de la API y su traducción a sobres JSON."""
from flask import Flask, current_app, jsonify
from werkzeug.exceptions import HTTPException

RATE_LIMIT_MESSAGE = "Too many requests, please try again later."


class ContactApiError(Exception):
    """Error de dominio con estado HTTP y mensaje estable para el cliente."""

    status_code = 500
    error = "Internal server error"

    def __init__(self, error=None, details=None):
        super().__init__(error or self.error)
        if error:
            self.error = error
        self.details = details

    def to_payload(self, include_internal=False):
        payload = {"error": self.error}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationFailed(ContactApiError):
    status_code = 400
    error = "Validation failed"

    @classmethod
    def from_field_errors(cls, errors):
        return cls(details=[err.to_dict() for err in errors])


class Conflict(ContactApiError):
    status_code = 409
    error = "Duplicate submission detected"


class NotFound(ContactApiError):
    status_code = 404
    error = "Contact not found"


class Unauthorized(ContactApiError):
    status_code = 401
    error = "Unauthorized"


class StoreUnavailable(ContactApiError):
    """Fallo del almacén; el detalle del driver solo se expone en development."""

    status_code = 500
    error = "Database unavailable"

    def to_payload(self, include_internal=False):
        payload = {"error": self.error}
        if include_internal and self.details is not None:
            payload["details"] = self.details
        return payload


def _is_development():
    return current_app.config.get("APP_ENV") == "development"


def register_error_handlers(app: Flask) -> None:
    """Registra los manejadores que convierten errores en sobres JSON."""

    @app.errorhandler(ContactApiError)
    def handle_contact_error(error: ContactApiError):
        if error.status_code >= 500:
            app.logger.error(
                "%s: %s",
                error.error,
                error.details,
                extra={"event": "store.error", "exception_type": type(error).__name__},
            )
        return jsonify(error.to_payload(include_internal=_is_development())), error.status_code

    @app.errorhandler(404)
    def handle_not_found(_error):
        return jsonify(error="Endpoint not found"), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(_error):
        return jsonify(error="Method not allowed"), 405

    @app.errorhandler(413)
    def handle_payload_too_large(_error):
        return jsonify(error="Request body too large"), 413

    @app.errorhandler(429)
    def handle_rate_limit(error):
        """Respuesta JSON fija para peticiones que superan el límite por IP."""
        response = jsonify(error=RATE_LIMIT_MESSAGE)
        retry_after = getattr(error, "retry_after", None)
        if retry_after is None and hasattr(error, "get_headers"):
            retry_after = dict(error.get_headers()).get("Retry-After")
        if retry_after:
            response.headers["Retry-After"] = retry_after
        return response, 429

    @app.errorhandler(Exception)
    def handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return jsonify(error=error.description or error.name), error.code or 500

        app.logger.error(
            f"Uncaught exception: {error}",
            exc_info=True,
            extra={
                "event": "exception.uncaught",
                "exception_type": type(error).__name__,
            },
        )
        payload = {"error": "Internal server error"}
        if _is_development():
            payload["details"] = str(error)
        return jsonify(payload), 500
