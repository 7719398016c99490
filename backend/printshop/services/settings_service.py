"""
Service Layer per le Impostazioni
Progetto: Print Shop Manager (Gestionale Tipografia)

Le impostazioni modificabili a runtime sono oggetti JSON nella tabella
app_settings, indirizzati per chiave. I valori salvati sovrascrivono,
campo per campo, i default letti dall'ambiente (core.config).
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.change_feed import ChangeAction, ChangeTopic, change_feed
from printshop.core.config import settings
from printshop.core.exceptions import ConflictError
from printshop.models import AppSetting
from printshop.schemas.settings import BillingSettings, BillingSettingsUpdate

logger = logging.getLogger(__name__)

BILLING_SETTINGS_KEY = "billing"


def default_billing_settings() -> BillingSettings:
    return BillingSettings(
        due_date_days=settings.default_due_date_days,
        rounding_increment=settings.rounding_increment,
        default_discount=settings.default_discount,
        due_soon_days=settings.due_soon_days,
    )


class AppSettingsService:
    """Lettura e scrittura della tabella chiave/valore delle impostazioni."""

    async def get_value(self, db: AsyncSession, key: str) -> Optional[dict[str, Any]]:
        result = await db.execute(
            select(AppSetting)
            .where(AppSetting.key == key)
            .execution_options(populate_existing=True)
        )
        setting = result.scalar_one_or_none()
        return dict(setting.value) if setting is not None and setting.value else None

    async def set_value(self, db: AsyncSession, key: str, value: dict[str, Any]) -> AppSetting:
        """Inserisce o sostituisce il valore (senza commit)."""
        setting = await db.get(AppSetting, key)
        if setting is None:
            setting = AppSetting(key=key, value=value)
            db.add(setting)
        else:
            setting.value = value
        await db.flush()
        return setting

    async def get_billing_settings(self, db: AsyncSession) -> BillingSettings:
        """
        Impostazioni di fatturazione effettive.

        Un valore salvato non valido viene ignorato con un warning e
        sostituito dal default.
        """
        defaults = default_billing_settings()
        stored = await self.get_value(db, BILLING_SETTINGS_KEY) or {}
        merged = defaults.model_dump()
        merged.update(
            {k: v for k, v in stored.items() if k in BillingSettings.model_fields and v is not None}
        )
        try:
            return BillingSettings(**merged)
        except PydanticValidationError as e:
            logger.warning("Impostazioni di fatturazione non valide, uso i default: %s", e)
            return defaults

    async def update_billing_settings(
        self,
        db: AsyncSession,
        data: BillingSettingsUpdate,
    ) -> BillingSettings:
        """
        Aggiornamento parziale delle impostazioni di fatturazione.

        Raises:
            ConflictError: Se il database rifiuta la scrittura
        """
        current = await self.get_billing_settings(db)
        updated = current.model_copy(update=data.model_dump(exclude_unset=True, exclude_none=True))
        await self.set_value(db, BILLING_SETTINGS_KEY, updated.model_dump())

        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Errore database durante aggiornamento impostazioni: %s", e)
            raise ConflictError("Impossibile salvare le impostazioni")

        logger.info("Impostazioni di fatturazione aggiornate: %s", updated.model_dump())
        change_feed.notify(ChangeTopic.SETTINGS, ChangeAction.UPDATE, BILLING_SETTINGS_KEY)
        return updated


app_settings_service = AppSettingsService()
