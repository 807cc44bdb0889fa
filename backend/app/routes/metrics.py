"""Métricas agregadas de envíos."""
from flask import jsonify

from . import api, get_gateway


@api.get("/metrics")
def contact_metrics():
    """Conteo diario de contactos y emails únicos de los últimos 30 días."""
    return jsonify(success=True, data=get_gateway().metrics())
