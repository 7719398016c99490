"""
Router FastAPI per le Impostazioni
Progetto: Print Shop Manager (Gestionale Tipografia)

Numerazione delle note e impostazioni di fatturazione.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.database import get_db
from printshop.schemas.settings import (
    BillingSettings,
    BillingSettingsUpdate,
    SequenceRead,
    SequenceUpdate,
)
from printshop.services.sequence_service import sequence_service
from printshop.services.settings_service import app_settings_service

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/settings",
    tags=["Impostazioni"],
)


@router.get(
    "/sequence",
    name="impostazioni_numerazione",
    summary="Numerazione note",
    description="Prefisso, prossimo numero e padding delle note.",
    response_model=SequenceRead,
    status_code=status.HTTP_200_OK,
)
async def get_sequence(db: AsyncSession = Depends(get_db)) -> SequenceRead:
    sequence = await sequence_service.get_sequence(db)
    return SequenceRead.model_validate(sequence)


@router.put(
    "/sequence",
    name="impostazioni_numerazione_aggiorna",
    summary="Modifica numerazione",
    description="Modifica prefisso, prossimo numero o padding delle note.",
    response_model=SequenceRead,
    status_code=status.HTTP_200_OK,
)
async def update_sequence(
    data: SequenceUpdate,
    db: AsyncSession = Depends(get_db),
) -> SequenceRead:
    """
    Se il prossimo numero appartiene già a un ordine viene solo loggato
    un avviso: la creazione successiva lo salterà.
    """
    sequence = await sequence_service.update_sequence(db, data)
    return SequenceRead.model_validate(sequence)


@router.get(
    "/billing",
    name="impostazioni_fatturazione",
    summary="Impostazioni di fatturazione",
    response_model=BillingSettings,
    status_code=status.HTTP_200_OK,
)
async def get_billing_settings(db: AsyncSession = Depends(get_db)) -> BillingSettings:
    return await app_settings_service.get_billing_settings(db)


@router.patch(
    "/billing",
    name="impostazioni_fatturazione_aggiorna",
    summary="Modifica impostazioni di fatturazione",
    description="Aggiornamento parziale: i campi assenti restano invariati.",
    response_model=BillingSettings,
    status_code=status.HTTP_200_OK,
)
async def update_billing_settings(
    data: BillingSettingsUpdate,
    db: AsyncSession = Depends(get_db),
) -> BillingSettings:
    return await app_settings_service.update_billing_settings(db, data)
