"""
Router FastAPI per il Catalogo
Progetto: Print Shop Manager (Gestionale Tipografia)

Letture in sola consultazione dei dati di riferimento.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.database import get_db
from printshop.schemas.catalog import (
    CatalogSnapshot,
    CategoryRead,
    CustomerRead,
    FinishingRead,
    PaymentMethodRead,
    ProductRead,
)
from printshop.services.catalog_service import catalog_service

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/catalog",
    tags=["Catalogo"],
)


@router.get(
    "/",
    name="catalogo_completo",
    summary="Catalogo completo",
    description="Clienti, categorie, prodotti, finiture e metodi di pagamento.",
    response_model=CatalogSnapshot,
    status_code=status.HTTP_200_OK,
)
async def get_catalog(db: AsyncSession = Depends(get_db)) -> CatalogSnapshot:
    return await catalog_service.get_snapshot(db=db)


@router.get(
    "/customers",
    name="catalogo_clienti",
    summary="Clienti",
    response_model=list[CustomerRead],
    status_code=status.HTTP_200_OK,
)
async def get_customers(db: AsyncSession = Depends(get_db)) -> list[CustomerRead]:
    return [CustomerRead.model_validate(c) for c in await catalog_service.list_customers(db)]


@router.get(
    "/categories",
    name="catalogo_categorie",
    summary="Categorie",
    response_model=list[CategoryRead],
    status_code=status.HTTP_200_OK,
)
async def get_categories(db: AsyncSession = Depends(get_db)) -> list[CategoryRead]:
    return [CategoryRead.model_validate(c) for c in await catalog_service.list_categories(db)]


@router.get(
    "/products",
    name="catalogo_prodotti",
    summary="Prodotti",
    response_model=list[ProductRead],
    status_code=status.HTTP_200_OK,
)
async def get_products(db: AsyncSession = Depends(get_db)) -> list[ProductRead]:
    return [ProductRead.model_validate(p) for p in await catalog_service.list_products(db)]


@router.get(
    "/finishings",
    name="catalogo_finiture",
    summary="Finiture",
    response_model=list[FinishingRead],
    status_code=status.HTTP_200_OK,
)
async def get_finishings(db: AsyncSession = Depends(get_db)) -> list[FinishingRead]:
    return [FinishingRead.model_validate(f) for f in await catalog_service.list_finishings(db)]


@router.get(
    "/payment-methods",
    name="catalogo_metodi_pagamento",
    summary="Metodi di pagamento",
    response_model=list[PaymentMethodRead],
    status_code=status.HTTP_200_OK,
)
async def get_payment_methods(db: AsyncSession = Depends(get_db)) -> list[PaymentMethodRead]:
    return [PaymentMethodRead.model_validate(m) for m in await catalog_service.list_payment_methods(db)]
