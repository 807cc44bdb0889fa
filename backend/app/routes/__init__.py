"""
Routes package - modular organization of API endpoints.
"""
from flask import Blueprint, current_app

from ..extensions import limiter

# Blueprint único para la API
api = Blueprint("api", __name__)


def _api_rate_limit():
    return current_app.extensions["contact_settings"].rate_limit


# Todas las rutas bajo /api comparten el límite por IP (ventana deslizante)
limiter.limit(_api_rate_limit)(api)


def get_gateway():
    """Gateway de contactos asociado a la app actual."""
    return current_app.extensions["contact_gateway"]


def get_settings():
    return current_app.extensions["contact_settings"]


# Importar módulos de rutas después de crear el blueprint para evitar circular imports
from . import (
    contacts,
    health,
    metrics,
)

__all__ = ["api", "get_gateway", "get_settings"]
