"""
Services package - reusable business logic and utilities.

Este paquete contiene la validación de envíos, el acceso al almacén y el
gateway de contactos, sin dependencias de blueprints.
"""

__all__ = [
    "contacts",
    "store",
    "validate",
]
