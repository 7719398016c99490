"""
Modelli SQLAlchemy per il Catalogo
Progetto: Print Shop Manager (Gestionale Tipografia)

Contiene i dati di riferimento letti dal motore prezzi e dagli ordini:
- Customer: Clienti con fascia di prezzo
- Category: Categorie prodotto con politica di prezzo (a pezzo / a superficie)
- Product: Prodotti con listino per fascia
- Finishing: Finiture con sovrapprezzo fisso per pezzo
- PaymentMethod: Metodi di pagamento
"""


from __future__ import annotations
from datetime import date
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON, CheckConstraint, Date, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from printshop.models import Base
from printshop.models.mixins import TimestampMixin

if TYPE_CHECKING:
    from printshop.models.order import Order


# Le fasce sono definite in printshop.schemas.catalog.PriceTier
# Le politiche di prezzo in printshop.schemas.catalog.UnitPolicy


class Customer(Base, TimestampMixin):
    """
    Cliente della tipografia.

    Attributes:
        id: Identificativo numerico
        name: Nome o ragione sociale
        contact: Recapito (telefono, email)
        tier: Fascia di prezzo applicata agli ordini
        join_date: Data di registrazione
    """

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        index=True,
        doc="Nome o ragione sociale",
    )

    contact: Mapped[Optional[str]] = mapped_column(
        String(200),
        nullable=True,
        doc="Recapito del cliente",
    )

    tier: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="end_customer",
        doc="Fascia di prezzo",
    )

    join_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        doc="Data di registrazione",
    )

    orders: Mapped[List["Order"]] = relationship(
        "Order",
        back_populates="customer",
        lazy="noload",
    )

    __table_args__ = (
        CheckConstraint(
            "tier IN ('end_customer', 'retail', 'wholesale', 'reseller', 'corporate')",
            name="ck_customers_tier",
        ),
    )

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, name={self.name}, tier={self.tier})>"


class Category(Base):
    """Categoria prodotto: determina se il prezzo scala con lunghezza × larghezza."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
        doc="Nome categoria",
    )

    unit_policy: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="per_unit",
        doc="per_unit (prezzo a pezzo) o per_area (prezzo al metro quadro)",
    )

    __table_args__ = (
        CheckConstraint(
            "unit_policy IN ('per_unit', 'per_area')",
            name="ck_categories_unit_policy",
        ),
    )

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name={self.name}, unit_policy={self.unit_policy})>"


class Product(Base, TimestampMixin):
    """
    Prodotto a listino.

    Attributes:
        id: Identificativo numerico
        name: Nome prodotto
        category_id: Categoria di appartenenza
        prices: Listino {fascia: prezzo intero}; fascia assente o 0 ricade su end_customer
    """

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        index=True,
        doc="Nome prodotto",
    )

    category_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        doc="Categoria del prodotto",
    )

    prices: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        doc="Prezzo per fascia cliente",
    )

    category: Mapped["Category"] = relationship("Category", lazy="joined")

    @property
    def category_name(self) -> Optional[str]:
        return self.category.name if self.category is not None else None

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name={self.name}, category_id={self.category_id})>"


class Finishing(Base):
    """
    Finitura applicabile alle voci d'ordine.

    Il sovrapprezzo si applica per pezzo e non scala mai con la superficie.
    category_ids vuoto significa finitura valida per ogni categoria.
    """

    __tablename__ = "finishings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
        doc="Nome finitura (chiave usata dalle voci d'ordine)",
    )

    surcharge: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        doc="Sovrapprezzo per pezzo",
    )

    category_ids: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        doc="Categorie ammesse (vuoto = tutte)",
    )

    __table_args__ = (
        CheckConstraint("surcharge >= 0", name="ck_finishings_surcharge"),
    )

    def __repr__(self) -> str:
        return f"<Finishing(id={self.id}, name={self.name}, surcharge={self.surcharge})>"


class PaymentMethod(Base):
    """Metodo di pagamento selezionabile in cassa (id testuale, es. 'cash-default')."""

    __tablename__ = "payment_methods"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    method_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default="cash",
        doc="Tipo: cash, bank_transfer, qris, other",
    )

    details: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Estremi (IBAN, intestatario, ...)",
    )

    def __repr__(self) -> str:
        return f"<PaymentMethod(id={self.id}, name={self.name})>"
