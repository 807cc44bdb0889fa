"""Health check del servicio."""
from flask import jsonify

from . import api, get_gateway


@api.get("/health")
def health_check():
    """Verifica el estado del servicio y de la base de datos."""
    report = get_gateway().health()
    status_code = 200 if report["status"] == "healthy" else 503
    return jsonify(report), status_code
