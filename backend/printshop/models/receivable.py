"""
Modelli SQLAlchemy per le Note da incassare
Progetto: Print Shop Manager (Gestionale Tipografia)

Contiene:
- Receivable: Credito verso il cliente, uno per ordine (stesso id dell'ordine)
- ReceivablePayment: Incassi registrati sulla nota, in ordine di inserimento
"""


from __future__ import annotations
from datetime import date
from typing import List, Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from printshop.models import Base
from printshop.models.mixins import TimestampMixin, UUIDMixin
from printshop.models.order import Order


# Gli stati sono definiti in printshop.schemas.receivable
# (PaymentStatus, ProductionStatus)


class Receivable(Base, TimestampMixin):
    """
    Nota da incassare associata a un ordine.

    Lo stato di pagamento è sempre derivato: paid se incassato + sconto
    copre l'importo (uguaglianza inclusa), altrimenti unpaid. Lo stato di
    produzione determina la colonna della bacheca.

    Attributes:
        id: Numero nota, coincide con Order.id
        amount: Importo dovuto, allineato al totale ordine
        due_date: Scadenza
        payment_status: unpaid | paid
        production_status: queued | printing | ready | delivered | legacy
        discount: Sconto in valuta sottratto prima del saldo
        delivery_date: Data di consegna (solo se delivered)
        delivery_note: Nota di consegna (solo se delivered)

    States (produzione):
        queued → printing → ready → delivered
        legacy: dati importati, mai spostati
    """

    __tablename__ = "receivables"

    id: Mapped[str] = mapped_column(
        String(40),
        ForeignKey("orders.id", ondelete="RESTRICT"),
        primary_key=True,
        doc="Numero nota (id ordine)",
    )

    amount: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        doc="Importo dovuto",
    )

    due_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        doc="Data di scadenza",
    )

    payment_status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="unpaid",
    )

    production_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="queued",
    )

    discount: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    delivery_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    delivery_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------
    order: Mapped["Order"] = relationship(
        "Order",
        lazy="joined",
        doc="Ordine di riferimento",
    )

    payments: Mapped[List["ReceivablePayment"]] = relationship(
        "ReceivablePayment",
        back_populates="receivable",
        cascade="all, delete-orphan",
        order_by="ReceivablePayment.position",
        lazy="selectin",
    )

    # ------------------------------------------------------------
    # Indici e Vincoli
    # ------------------------------------------------------------
    __table_args__ = (
        Index("ix_receivables_production_status", "production_status"),
        Index("ix_receivables_payment_status_due", "payment_status", "due_date"),
        CheckConstraint(
            "payment_status IN ('unpaid', 'paid')",
            name="ck_receivables_payment_status",
        ),
        CheckConstraint(
            "production_status IN ('queued', 'printing', 'ready', 'delivered', 'legacy')",
            name="ck_receivables_production_status",
        ),
        CheckConstraint("amount >= 0", name="ck_receivables_amount"),
        CheckConstraint("discount >= 0", name="ck_receivables_discount"),
    )

    # ------------------------------------------------------------
    # Proprietà calcolate
    # ------------------------------------------------------------
    @property
    def total_paid(self) -> int:
        """Somma degli incassi registrati."""
        return sum(p.amount for p in self.payments)

    @property
    def remaining_balance(self) -> int:
        """Residuo da incassare, mai negativo."""
        return max(0, self.amount - self.discount - self.total_paid)

    @property
    def customer_name(self) -> Optional[str]:
        return self.order.customer_name if self.order is not None else None

    @property
    def customer_id(self) -> Optional[int]:
        return self.order.customer_id if self.order is not None else None

    @property
    def order_date(self) -> Optional[date]:
        return self.order.order_date if self.order is not None else None

    def __repr__(self) -> str:
        return (
            f"<Receivable(id={self.id}, amount={self.amount}, "
            f"payment_status={self.payment_status}, production_status={self.production_status})>"
        )


class ReceivablePayment(Base, UUIDMixin, TimestampMixin):
    """
    Incasso registrato su una nota.

    Il nome del metodo di pagamento è copiato al momento dell'incasso.
    """

    __tablename__ = "receivable_payments"

    receivable_id: Mapped[str] = mapped_column(
        String(40),
        ForeignKey("receivables.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    payment_date: Mapped[date] = mapped_column(Date, nullable=False)

    method_id: Mapped[str] = mapped_column(String(50), nullable=False)

    method_name: Mapped[str] = mapped_column(String(100), nullable=False)

    receivable: Mapped["Receivable"] = relationship("Receivable", back_populates="payments")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_receivable_payments_amount"),
    )

    def __repr__(self) -> str:
        return f"<ReceivablePayment(receivable_id={self.receivable_id}, amount={self.amount})>"
