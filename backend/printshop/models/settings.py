"""
Modelli SQLAlchemy per Impostazioni e Sequenze
Progetto: Print Shop Manager (Gestionale Tipografia)

Contiene:
- AppSetting: Tabella chiave/valore con oggetti JSON di configurazione
- AppSequence: Contatori con nome (numerazione note)
"""


from __future__ import annotations

from sqlalchemy import JSON, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from printshop.models import Base
from printshop.models.mixins import TimestampMixin


def format_nota(prefix: str, value: int, padding: int) -> str:
    """Prefisso + contatore con zero-padding (es. INV-00042)."""
    return f"{prefix}{value:0{padding}d}"


class AppSetting(Base, TimestampMixin):
    """Impostazione modificabile a runtime, indirizzata per chiave."""

    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)

    value: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<AppSetting(key={self.key})>"


class AppSequence(Base, TimestampMixin):
    """
    Contatore con nome.

    current_value è il prossimo numero da assegnare; l'incremento avviene
    con un singolo UPDATE ... RETURNING nella transazione del chiamante.
    """

    __tablename__ = "app_sequences"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)

    current_value: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    prefix: Mapped[str] = mapped_column(String(20), nullable=False, default="")

    padding: Mapped[int] = mapped_column(Integer, nullable=False, default=5)

    __table_args__ = (
        CheckConstraint("current_value >= 1", name="ck_app_sequences_current_value"),
        CheckConstraint("padding >= 1", name="ck_app_sequences_padding"),
    )

    def format(self, value: int) -> str:
        """Formatta un valore del contatore come numero nota."""
        return format_nota(self.prefix, value, self.padding)

    def __repr__(self) -> str:
        return f"<AppSequence(name={self.name}, current_value={self.current_value})>"
