"""Endpoints CRUD del formulario de contacto."""
from flask import jsonify, request

from . import api, get_gateway, get_settings
from ..errors import ValidationFailed
from ..services.contacts import contact_query_params
from ..services.validate import ContactCandidate, validate_contact


def _read_submission():
    """Acepta JSON y, como alternativa, formularios urlencoded."""
    payload = request.get_json(silent=True)
    if payload is None and request.form:
        payload = request.form
    return ContactCandidate.from_payload(payload)


@api.post("/contacts")
def create_contact():
    result = validate_contact(_read_submission())
    if not result.ok:
        raise ValidationFailed.from_field_errors(result.errors)

    data = get_gateway().create(
        result.record,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent") or None,
    )
    return jsonify(success=True, message="Contact saved successfully", data=data), 201


@api.get("/contacts")
def list_contacts():
    """Listado paginado, filtrable por email y rango de fechas."""
    page, filters = contact_query_params(request.args, get_settings().max_page_size)
    result = get_gateway().list(page, filters)
    return jsonify(success=True, data=result["rows"], pagination=result["pagination"])


@api.get("/contacts/<int:contact_id>")
def get_contact(contact_id):
    data = get_gateway().get_by_id(contact_id)
    return jsonify(success=True, data=data)


@api.delete("/contacts/<int:contact_id>")
def delete_contact(contact_id):
    """Borrado definitivo; en producción exige la cabecera X-API-Key."""
    data = get_gateway().delete(contact_id, request.headers.get("X-API-Key"))
    return jsonify(success=True, message="Contact deleted successfully", data=data)
