"""
Service Layer per il Catalogo
Progetto: Print Shop Manager (Gestionale Tipografia)

Letture complete delle collezioni di riferimento. La manutenzione del
catalogo è fuori da questo servizio: qui i record sono solo consultati.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.exceptions import BusinessValidationError, NotFoundError
from printshop.models import Category, Customer, Finishing, PaymentMethod, Product
from printshop.schemas.catalog import (
    CatalogSnapshot,
    CategoryRead,
    CustomerRead,
    FinishingRead,
    PaymentMethodRead,
    ProductRead,
)
from printshop.services.pricing import PricingCatalog

logger = logging.getLogger(__name__)


class CatalogService:
    """Accesso in sola lettura a clienti, prodotti, finiture e metodi di pagamento."""

    async def list_customers(self, db: AsyncSession) -> list[Customer]:
        result = await db.execute(select(Customer).order_by(Customer.name, Customer.id))
        return list(result.scalars().all())

    async def list_categories(self, db: AsyncSession) -> list[Category]:
        result = await db.execute(select(Category).order_by(Category.name))
        return list(result.scalars().all())

    async def list_products(self, db: AsyncSession) -> list[Product]:
        result = await db.execute(select(Product).order_by(Product.name, Product.id))
        return list(result.scalars().all())

    async def list_finishings(self, db: AsyncSession) -> list[Finishing]:
        result = await db.execute(select(Finishing).order_by(Finishing.name))
        return list(result.scalars().all())

    async def list_payment_methods(self, db: AsyncSession) -> list[PaymentMethod]:
        result = await db.execute(select(PaymentMethod).order_by(PaymentMethod.name))
        return list(result.scalars().all())

    async def get_customer(self, db: AsyncSession, customer_id: Optional[int]) -> Customer:
        """
        Recupera il cliente di un ordine.

        Raises:
            BusinessValidationError: Se il cliente non è indicato
            NotFoundError: Se il cliente non esiste
        """
        if customer_id is None:
            raise BusinessValidationError(
                "Selezionare un cliente",
                error_code="ORDER_CUSTOMER_REQUIRED",
            )
        customer = await db.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError(f"Cliente con ID {customer_id} non trovato")
        return customer

    async def get_payment_method(self, db: AsyncSession, method_id: str) -> PaymentMethod:
        """
        Raises:
            NotFoundError: Se il metodo di pagamento non esiste
        """
        method = await db.get(PaymentMethod, method_id)
        if method is None:
            raise NotFoundError(f"Metodo di pagamento '{method_id}' non trovato")
        return method

    async def get_pricing_catalog(self, db: AsyncSession) -> PricingCatalog:
        """Carica prodotti, categorie e finiture nelle mappe del motore prezzi."""
        return PricingCatalog.from_records(
            products=await self.list_products(db),
            categories=await self.list_categories(db),
            finishings=await self.list_finishings(db),
        )

    async def get_snapshot(self, db: AsyncSession) -> CatalogSnapshot:
        snapshot = CatalogSnapshot(
            customers=[CustomerRead.model_validate(c) for c in await self.list_customers(db)],
            categories=[CategoryRead.model_validate(c) for c in await self.list_categories(db)],
            products=[ProductRead.model_validate(p) for p in await self.list_products(db)],
            finishings=[FinishingRead.model_validate(f) for f in await self.list_finishings(db)],
            payment_methods=[
                PaymentMethodRead.model_validate(m) for m in await self.list_payment_methods(db)
            ],
        )
        logger.debug(
            "Snapshot catalogo: %d clienti, %d prodotti, %d finiture",
            len(snapshot.customers),
            len(snapshot.products),
            len(snapshot.finishings),
        )
        return snapshot


catalog_service = CatalogService()
