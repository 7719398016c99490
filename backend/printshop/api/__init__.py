"""
API Routes
Progetto: Print Shop Manager (Gestionale Tipografia)

Modulo per l'aggregazione dei router versionati.
"""

from printshop.api.v1 import api_v1_router

# Esportazione router
__all__ = ["api_v1_router"]
