"""
Schemas Pydantic per il Catalogo
Progetto: Print Shop Manager (Gestionale Tipografia)

Il catalogo è letto dal core come dato di riferimento: qui ci sono solo
schemi di lettura e lo snapshot completo usato dal client e dal motore prezzi.
"""

import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# -------------------------------------------------------------------
# Enum
# -------------------------------------------------------------------

class PriceTier(str, Enum):
    """Fasce di prezzo dei clienti (colonne del listino prodotto)."""
    END_CUSTOMER = "end_customer"
    RETAIL = "retail"
    WHOLESALE = "wholesale"
    RESELLER = "reseller"
    CORPORATE = "corporate"


class UnitPolicy(str, Enum):
    """Politica di prezzo della categoria."""
    PER_UNIT = "per_unit"
    PER_AREA = "per_area"


TIER_VALUES: frozenset[str] = frozenset(t.value for t in PriceTier)


# -------------------------------------------------------------------
# Schemas di lettura
# -------------------------------------------------------------------

class CustomerRead(BaseModel):
    """Cliente con fascia di prezzo."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    contact: Optional[str] = None
    tier: PriceTier
    join_date: Optional[datetime.date] = None


class CategoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    unit_policy: UnitPolicy


class ProductRead(BaseModel):
    """
    Prodotto a listino.

    Le chiavi di prices sono i valori di PriceTier; chiavi sconosciute
    vengono scartate in lettura.
    """
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    category_id: int
    category_name: Optional[str] = None
    prices: dict[str, int] = Field(default_factory=dict)

    @field_validator("prices", mode="before")
    @classmethod
    def normalize_price_keys(cls, v):
        if not v:
            return {}
        return {
            getattr(k, "value", k): int(p or 0)
            for k, p in dict(v).items()
            if getattr(k, "value", k) in TIER_VALUES
        }


class FinishingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    surcharge: int = Field(..., ge=0)
    category_ids: list[int] = Field(default_factory=list)

    @field_validator("category_ids", mode="before")
    @classmethod
    def none_as_unrestricted(cls, v):
        """Un elenco assente equivale a nessuna restrizione."""
        return v or []


class PaymentMethodRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    method_type: str
    details: Optional[str] = None


class CatalogSnapshot(BaseModel):
    """Tutte le collezioni del catalogo, ognuna letta per intero."""
    customers: list[CustomerRead] = Field(default_factory=list)
    categories: list[CategoryRead] = Field(default_factory=list)
    products: list[ProductRead] = Field(default_factory=list)
    finishings: list[FinishingRead] = Field(default_factory=list)
    payment_methods: list[PaymentMethodRead] = Field(default_factory=list)
