"""
Service Layer per la Produzione
Progetto: Print Shop Manager (Gestionale Tipografia)

Gestisce lo stato di produzione delle note e la bacheca di lavorazione.

Stati:
    queued → printing → ready → delivered
    legacy: note importate, escluse dalla bacheca e mai spostate

Ogni spostamento confronta lo stato atteso dal client con quello salvato:
un client con dati vecchi riceve un conflitto invece di sovrascrivere.
"""

import datetime
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.change_feed import ChangeAction, ChangeTopic, change_feed
from printshop.core.database import commit_or_conflict
from printshop.core.exceptions import BusinessValidationError, ConflictError, NotFoundError
from printshop.models import Order, Receivable
from printshop.schemas.production import KanbanBoard, KanbanCard
from printshop.schemas.receivable import BOARD_STATUSES, PaymentStatus, ProductionStatus
from printshop.services.ledger import compute_due_date, load_receivable, sync_receivable
from printshop.services.order_service import order_service
from printshop.services.settings_service import app_settings_service

logger = logging.getLogger(__name__)

# Colonna della bacheca per ogni stato di produzione
BOARD_COLUMNS = {
    ProductionStatus.QUEUED.value: "queue",
    ProductionStatus.PRINTING.value: "printing",
    ProductionStatus.READY.value: "ready",
    ProductionStatus.DELIVERED.value: "delivered",
}


class ProductionService:
    """
    Service per il flusso di produzione.

    Fornisce metodi asincroni per interagire con il database
    in modo centralizzato, senza dipendenze da FastAPI.
    """

    # ------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------
    async def _get_receivable(self, db: AsyncSession, order_id: str) -> Receivable:
        receivable = await load_receivable(db, order_id)
        if receivable is None:
            raise NotFoundError(f"Nota {order_id} non trovata")
        return receivable

    @staticmethod
    def _refuse_legacy(receivable: Receivable) -> None:
        if receivable.production_status == ProductionStatus.LEGACY.value:
            raise BusinessValidationError(
                f"La nota {receivable.id} è un dato pregresso e non può essere spostata",
                error_code="PRODUCTION_LEGACY_LOCKED",
            )

    # ------------------------------------------------------------
    # Bacheca
    # ------------------------------------------------------------
    async def get_board(self, db: AsyncSession) -> KanbanBoard:
        """
        Proiezione delle note non pregresse nelle quattro colonne.

        Un ordine senza nota non compare: è elencato tra gli ordini
        da lavorare.
        """
        result = await db.execute(
            select(Receivable)
            .join(Order, Order.id == Receivable.id)
            .where(Receivable.production_status != ProductionStatus.LEGACY.value)
            .order_by(Order.order_date.asc(), Receivable.id.asc())
        )

        board = KanbanBoard()
        for receivable in result.scalars().unique().all():
            column = BOARD_COLUMNS.get(receivable.production_status)
            if column is None:
                continue
            order = receivable.order
            getattr(board, column).append(
                KanbanCard(
                    order_id=receivable.id,
                    customer_name=order.customer_name,
                    details=order.details,
                    order_date=order.order_date,
                )
            )
        return board

    # ------------------------------------------------------------
    # Transizioni
    # ------------------------------------------------------------
    async def process_order(self, db: AsyncSession, order_id: str) -> Receivable:
        """
        Avvia la lavorazione di un ordine (queued → printing).

        Se l'ordine non ha ancora una nota, viene creata direttamente in
        stampa, non pagata, con scadenza data ordine + giorni di tolleranza.

        Raises:
            NotFoundError: Se l'ordine non esiste
            ConflictError: Se la nota non è in coda
        """
        order = await order_service.get_by_id(db, order_id)
        receivable = await load_receivable(db, order_id)

        if receivable is None:
            billing = await app_settings_service.get_billing_settings(db)
            receivable = Receivable(
                id=order_id,
                amount=order.total_price,
                due_date=compute_due_date(order.order_date, billing.due_date_days),
                production_status=ProductionStatus.PRINTING.value,
                discount=0,
                payments=[],
            )
            sync_receivable(receivable)
            db.add(receivable)
            action = ChangeAction.INSERT
        else:
            if receivable.production_status != ProductionStatus.QUEUED.value:
                logger.warning(
                    "Avvio lavorazione rifiutato per %s: stato %s",
                    order_id, receivable.production_status,
                )
                raise ConflictError(
                    f"La nota {order_id} non è in coda (stato: {receivable.production_status})",
                    error_code="PRODUCTION_STALE_STATE",
                )
            receivable.production_status = ProductionStatus.PRINTING.value
            action = ChangeAction.UPDATE

        await commit_or_conflict(db, "l'avvio della lavorazione")

        logger.info("Ordine %s in stampa", order_id)
        change_feed.notify(ChangeTopic.RECEIVABLES, action, order_id)
        return await self._get_receivable(db, order_id)

    async def move(
        self,
        db: AsyncSession,
        order_id: str,
        from_status: ProductionStatus,
        to_status: ProductionStatus,
    ) -> Receivable:
        """
        Sposta una nota tra due colonne della bacheca.

        Args:
            db: Sessione database
            order_id: Numero nota
            from_status: Stato che il client ritiene corrente
            to_status: Stato di destinazione

        Returns:
            Receivable: Nota aggiornata

        Raises:
            NotFoundError: Se la nota non esiste
            BusinessValidationError: Stato non della bacheca o nota pregressa
            ConflictError: Se lo stato salvato non coincide con from_status
        """
        for status in (from_status, to_status):
            if status not in BOARD_STATUSES:
                raise BusinessValidationError(
                    f"Lo stato '{status.value}' non appartiene alla bacheca",
                    error_code="PRODUCTION_INVALID_STATUS",
                )

        receivable = await self._get_receivable(db, order_id)
        self._refuse_legacy(receivable)

        if receivable.production_status != from_status.value:
            logger.warning(
                "Spostamento di %s rifiutato: atteso %s, salvato %s",
                order_id, from_status.value, receivable.production_status,
            )
            raise ConflictError(
                f"La nota {order_id} è in stato '{receivable.production_status}', "
                f"non '{from_status.value}': aggiornare la bacheca",
                error_code="PRODUCTION_STALE_STATE",
                extra={"current_status": receivable.production_status},
            )

        if from_status == to_status:
            return receivable

        if to_status == ProductionStatus.DELIVERED:
            receivable.delivery_date = datetime.date.today()
        elif from_status == ProductionStatus.DELIVERED:
            receivable.delivery_date = None
            receivable.delivery_note = None
        receivable.production_status = to_status.value

        await commit_or_conflict(db, "lo spostamento in produzione")

        logger.info("Nota %s spostata: %s -> %s", order_id, from_status.value, to_status.value)
        change_feed.notify(ChangeTopic.RECEIVABLES, ChangeAction.UPDATE, order_id)
        return await self._get_receivable(db, order_id)

    async def deliver(
        self,
        db: AsyncSession,
        order_id: str,
        note: str,
        delivery_date: Optional[datetime.date] = None,
    ) -> Receivable:
        """
        Registra la consegna con la relativa nota.

        Raises:
            NotFoundError: Se la nota non esiste
            BusinessValidationError: Nota vuota, nota pregressa o già consegnata
        """
        note = (note or "").strip()
        if not note:
            raise BusinessValidationError(
                "La nota di consegna è obbligatoria",
                error_code="DELIVERY_NOTE_REQUIRED",
            )

        receivable = await self._get_receivable(db, order_id)
        self._refuse_legacy(receivable)
        if receivable.production_status == ProductionStatus.DELIVERED.value:
            raise BusinessValidationError(
                f"La nota {order_id} risulta già consegnata",
                error_code="PRODUCTION_ALREADY_DELIVERED",
            )

        receivable.production_status = ProductionStatus.DELIVERED.value
        receivable.delivery_date = delivery_date or datetime.date.today()
        receivable.delivery_note = note

        await commit_or_conflict(db, "la registrazione della consegna")

        logger.info("Nota %s consegnata il %s", order_id, receivable.delivery_date.isoformat())
        if receivable.payment_status != PaymentStatus.PAID.value:
            logger.info("Nota %s consegnata con residuo %d", order_id, receivable.remaining_balance)
        change_feed.notify(ChangeTopic.RECEIVABLES, ChangeAction.UPDATE, order_id)
        return await self._get_receivable(db, order_id)

    async def cancel_queue(self, db: AsyncSession, order_id: str) -> None:
        """
        Toglie un ordine dalla coda eliminandone la nota.

        L'ordine torna tra quelli da lavorare.

        Raises:
            NotFoundError: Se la nota non esiste
            ConflictError: Se la nota non è in coda
            BusinessValidationError: Se sulla nota ci sono incassi
        """
        receivable = await self._get_receivable(db, order_id)
        if receivable.production_status != ProductionStatus.QUEUED.value:
            raise ConflictError(
                f"La nota {order_id} non è in coda (stato: {receivable.production_status})",
                error_code="PRODUCTION_STALE_STATE",
            )
        if receivable.payments:
            raise BusinessValidationError(
                f"La nota {order_id} ha incassi registrati e non può essere annullata",
                error_code="RECEIVABLE_HAS_PAYMENTS",
            )

        await db.delete(receivable)
        await commit_or_conflict(db, "l'annullamento della coda")

        logger.info("Nota %s eliminata dalla coda", order_id)
        change_feed.notify(ChangeTopic.RECEIVABLES, ChangeAction.DELETE, order_id)


production_service = ProductionService()
