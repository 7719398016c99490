"""
Modelli SQLAlchemy per gli Ordini
Progetto: Print Shop Manager (Gestionale Tipografia)

Contiene:
- Order: Ordine identificato dal numero nota
- OrderItem: Voci dell'ordine (prodotto, finitura, misure, quantità)
"""


from __future__ import annotations
from datetime import date
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from printshop.models import Base
from printshop.models.mixins import TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from printshop.models.catalog import Customer


NO_FINISHING = "None"


class Order(Base, TimestampMixin):
    """
    Ordine cliente.

    Il totale è sempre quello calcolato dal motore prezzi sulle voci correnti
    e sulla fascia del cliente; ogni modifica delle voci lo ricalcola.

    Attributes:
        id: Numero nota (prefisso + contatore con zero-padding)
        customer_id: Cliente dell'ordine
        order_date: Data ordine
        details: Riepilogo testuale generato al salvataggio
        total_price: Totale arrotondato per eccesso all'incremento configurato

    Relationships:
        customer: Cliente (nome risolto in lettura)
        items: Voci ordinate per posizione
    """

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(40), primary_key=True, doc="Numero nota")

    customer_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        doc="Cliente dell'ordine",
    )

    order_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        doc="Data ordine",
    )

    details: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        doc="Riepilogo voci generato al salvataggio",
    )

    total_price: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        doc="Totale ordine arrotondato",
    )

    customer: Mapped["Customer"] = relationship(
        "Customer",
        back_populates="orders",
        lazy="joined",
    )

    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_orders_order_date", "order_date"),
        CheckConstraint("total_price >= 0", name="ck_orders_total_price"),
    )

    @property
    def customer_name(self) -> Optional[str]:
        return self.customer.name if self.customer is not None else None

    @property
    def customer_tier(self) -> Optional[str]:
        return self.customer.tier if self.customer is not None else None

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, customer_id={self.customer_id}, total_price={self.total_price})>"


class OrderItem(Base, UUIDMixin):
    """
    Voce d'ordine.

    line_id è assegnato dal client e univoco all'interno dell'ordine.
    length e width sono stringhe decimali, significative solo per le
    categorie a superficie. custom_price sostituisce il subtotale calcolato
    della voce (impostato solo in fase di incasso).
    """

    __tablename__ = "order_items"

    order_id: Mapped[str] = mapped_column(
        String(40),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    line_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    product_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
    )

    finishing: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default=NO_FINISHING,
    )

    description: Mapped[str] = mapped_column(Text, nullable=False)

    length: Mapped[str] = mapped_column(String(20), nullable=False, default="1")

    width: Mapped[str] = mapped_column(String(20), nullable=False, default="1")

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    custom_price: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    __table_args__ = (
        UniqueConstraint("order_id", "line_id", name="uq_order_items_line"),
        CheckConstraint("quantity > 0", name="ck_order_items_quantity"),
        CheckConstraint(
            "custom_price IS NULL OR custom_price >= 0",
            name="ck_order_items_custom_price",
        ),
    )

    def __repr__(self) -> str:
        return f"<OrderItem(order_id={self.order_id}, line_id={self.line_id}, product_id={self.product_id})>"
