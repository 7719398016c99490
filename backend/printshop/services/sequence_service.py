"""
Service Layer per la Numerazione delle Note
Progetto: Print Shop Manager (Gestionale Tipografia)

Il contatore vive nella tabella app_sequences. L'incremento è un singolo
UPDATE ... SET current_value = current_value + 1 RETURNING eseguito nella
transazione del chiamante: due creazioni concorrenti non possono ricevere
lo stesso numero e un ordine non salvato non consuma la numerazione.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.change_feed import ChangeAction, ChangeTopic, change_feed
from printshop.core.config import settings
from printshop.core.exceptions import ConflictError
from printshop.models import AppSequence, Order
from printshop.models.mixins import utc_now
from printshop.models.settings import format_nota
from printshop.schemas.settings import SequenceUpdate

logger = logging.getLogger(__name__)

NOTA_SEQUENCE = "order_nota"

# Tentativi massimi quando il numero generato è già usato da un ordine
MAX_COLLISION_SKIPS = 50


class SequenceService:
    """Gestione dei contatori con nome (numero nota degli ordini)."""

    async def get_sequence(self, db: AsyncSession, name: str = NOTA_SEQUENCE) -> AppSequence:
        """
        Restituisce il contatore, creandolo con i default se non esiste.

        La creazione viene solo inviata al database (flush): è resa
        definitiva dal commit dell'operazione chiamante.
        """
        result = await db.execute(
            select(AppSequence)
            .where(AppSequence.name == name)
            .execution_options(populate_existing=True)
        )
        sequence = result.scalar_one_or_none()
        if sequence is None:
            sequence = AppSequence(
                name=name,
                current_value=settings.nota_start,
                prefix=settings.nota_prefix,
                padding=settings.nota_padding,
            )
            db.add(sequence)
            await db.flush()
            logger.info("Sequenza '%s' inizializzata da %s", name, sequence.format(sequence.current_value))
        return sequence

    async def peek_next_nota(self, db: AsyncSession, name: str = NOTA_SEQUENCE) -> str:
        """Numero che riceverà il prossimo ordine, senza consumarlo."""
        sequence = await self.get_sequence(db, name)
        return sequence.format(sequence.current_value)

    async def _increment(self, db: AsyncSession, name: str):
        stmt = (
            update(AppSequence)
            .where(AppSequence.name == name)
            .values(
                current_value=AppSequence.current_value + 1,
                updated_at=utc_now(),
            )
            .returning(AppSequence.current_value, AppSequence.prefix, AppSequence.padding)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.one_or_none()

    async def next_nota(self, db: AsyncSession, name: str = NOTA_SEQUENCE) -> str:
        """
        Assegna il prossimo numero nota e avanza il contatore di uno.

        Se il numero ottenuto appartiene già a un ordine (contatore
        modificato a mano o desincronizzato) l'anomalia viene loggata e il
        contatore avanza ancora, senza bloccare la creazione.

        Args:
            db: Sessione database (nessun commit eseguito qui)
            name: Nome del contatore

        Returns:
            str: Numero nota formattato

        Raises:
            ConflictError: Se nessun numero libero viene trovato entro il limite
        """
        for _ in range(MAX_COLLISION_SKIPS + 1):
            row = await self._increment(db, name)
            if row is None:
                await self.get_sequence(db, name)
                row = await self._increment(db, name)

            assigned = row.current_value - 1
            nota = format_nota(row.prefix, assigned, row.padding)

            existing = await db.scalar(select(Order.id).where(Order.id == nota))
            if existing is None:
                return nota

            logger.warning(
                "Sequenza '%s' desincronizzata: la nota %s esiste già, avanzo il contatore",
                name,
                nota,
            )

        raise ConflictError(
            f"Impossibile assegnare un numero nota libero dopo {MAX_COLLISION_SKIPS} tentativi",
            error_code="SEQUENCE_EXHAUSTED",
        )

    async def update_sequence(
        self,
        db: AsyncSession,
        data: SequenceUpdate,
        name: str = NOTA_SEQUENCE,
    ) -> AppSequence:
        """
        Modifica prefisso, prossimo numero o padding del contatore.

        Raises:
            ConflictError: Se il database rifiuta l'aggiornamento
        """
        sequence = await self.get_sequence(db, name)
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)

        if "prefix" in update_data:
            sequence.prefix = update_data["prefix"]
        if "padding" in update_data:
            sequence.padding = update_data["padding"]
        if "next_value" in update_data:
            sequence.current_value = update_data["next_value"]

        next_nota = sequence.format(sequence.current_value)
        if await db.scalar(select(Order.id).where(Order.id == next_nota)) is not None:
            logger.warning(
                "La prossima nota %s esiste già: verrà saltata alla prossima creazione",
                next_nota,
            )

        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Errore database durante aggiornamento sequenza: %s", e)
            raise ConflictError("Impossibile aggiornare la numerazione delle note")

        logger.info("Sequenza '%s' aggiornata: prossima nota %s", name, next_nota)
        change_feed.notify(ChangeTopic.SETTINGS, ChangeAction.UPDATE, name)
        return sequence


sequence_service = SequenceService()
