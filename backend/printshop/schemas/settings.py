"""
Schemas Pydantic per Impostazioni e Numerazione
Progetto: Print Shop Manager (Gestionale Tipografia)
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from printshop.models.settings import format_nota


class SequenceRead(BaseModel):
    """Contatore note; next_nota è il numero che riceverà il prossimo ordine."""
    model_config = ConfigDict(from_attributes=True)

    name: str
    prefix: str
    current_value: int
    padding: int

    @computed_field
    @property
    def next_nota(self) -> str:
        return format_nota(self.prefix, self.current_value, self.padding)


class SequenceUpdate(BaseModel):
    """Modifica manuale della numerazione (prefisso e prossimo numero)."""
    prefix: Optional[str] = Field(None, max_length=20)
    next_value: Optional[int] = Field(None, ge=1)
    padding: Optional[int] = Field(None, ge=1, le=12)

    @field_validator("prefix")
    @classmethod
    def validate_prefix(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v != v.strip():
            raise ValueError("Il prefisso non può iniziare o finire con spazi")
        return v


class BillingSettings(BaseModel):
    """
    Impostazioni di fatturazione modificabili a runtime.

    Attributes:
        due_date_days: Giorni tra data ordine e scadenza della nota
        rounding_increment: Multiplo di arrotondamento del totale (0 = solo intero)
        default_discount: Sconto proposto al primo incasso
        due_soon_days: Preavviso per le note in scadenza
    """
    due_date_days: int = Field(..., ge=0)
    rounding_increment: int = Field(..., ge=0)
    default_discount: int = Field(..., ge=0)
    due_soon_days: int = Field(..., ge=0)


class BillingSettingsUpdate(BaseModel):
    due_date_days: Optional[int] = Field(None, ge=0)
    rounding_increment: Optional[int] = Field(None, ge=0)
    default_discount: Optional[int] = Field(None, ge=0)
    due_soon_days: Optional[int] = Field(None, ge=0)
