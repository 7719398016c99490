"""
API v1 Routes
Progetto: Print Shop Manager (Gestionale Tipografia)

Router versione 1 dell'API.
"""

from fastapi import APIRouter

from printshop.api.v1 import catalog, orders, production, receivables, settings, sync

# Router aggregato per v1
api_v1_router = APIRouter(prefix="/api/v1")

# Includi i router dei moduli
api_v1_router.include_router(orders.router)
api_v1_router.include_router(receivables.router)
api_v1_router.include_router(production.router)
api_v1_router.include_router(catalog.router)
api_v1_router.include_router(settings.router)
api_v1_router.include_router(sync.router)

# Esportazione
__all__ = ["api_v1_router"]
