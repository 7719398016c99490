"""
Service Layer per le Note da incassare
Progetto: Print Shop Manager (Gestionale Tipografia)

Gestisce importo dovuto, sconto e storico incassi di ogni ordine.

Regole:
- lo stato di pagamento è sempre derivato: paid se incassato + sconto >= importo
- l'incasso registrato non supera mai il residuo; l'eccedenza è restituita come resto
- se in cassa le voci vengono modificate, il nuovo totale dell'ordine e
  l'incasso sono salvati nella stessa transazione
- le operazioni massive elaborano ogni id in una transazione indipendente
  e riportano sempre l'esito per id
"""

import datetime
import logging
from typing import Optional

from sqlalchemy import and_, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.change_feed import ChangeAction, ChangeTopic, change_feed
from printshop.core.database import commit_or_conflict
from printshop.core.exceptions import (
    AppException,
    BusinessValidationError,
    ConflictError,
    NotFoundError,
)
from printshop.models import Order, Receivable, ReceivablePayment
from printshop.schemas.receivable import (
    BulkDueDateUpdate,
    BulkFailure,
    BulkOperationResult,
    BulkPaymentRequest,
    DueAlerts,
    LegacyPaymentRequest,
    PaymentCreate,
    PaymentResult,
    PaymentStatus,
    ProcessPaymentRequest,
    ProductionStatus,
    ReceivableRead,
)
from printshop.services.catalog_service import catalog_service
from printshop.services.ledger import (
    compute_due_date,
    load_receivable,
    remaining_balance,
    sync_receivable,
)
from printshop.services.order_service import order_service
from printshop.services.settings_service import app_settings_service

logger = logging.getLogger(__name__)


class ReceivableService:
    """
    Service per il registro incassi.

    Fornisce metodi asincroni per interagire con il database
    in modo centralizzato, senza dipendenze da FastAPI.
    """

    # ------------------------------------------------------------
    # Letture
    # ------------------------------------------------------------
    async def get_all(
        self,
        db: AsyncSession,
        payment_status: Optional[PaymentStatus] = None,
        production_status: Optional[ProductionStatus] = None,
        customer_id: Optional[int] = None,
        overdue_only: bool = False,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[Receivable], int]:
        """
        Recupera la lista paginata delle note con filtri.

        Args:
            db: Sessione database
            payment_status: Filtro per stato di pagamento
            production_status: Filtro per stato di produzione
            customer_id: Filtro per cliente dell'ordine
            overdue_only: Solo note non pagate con scadenza superata
            page: Numero pagina
            per_page: Elementi per pagina

        Returns:
            Tuple di (lista note, totale count)
        """
        conditions = []
        if payment_status is not None:
            conditions.append(Receivable.payment_status == payment_status.value)
        if production_status is not None:
            conditions.append(Receivable.production_status == production_status.value)
        if customer_id is not None:
            conditions.append(Receivable.id.in_(select(Order.id).where(Order.customer_id == customer_id)))
        if overdue_only:
            conditions.append(Receivable.payment_status == PaymentStatus.UNPAID.value)
            conditions.append(Receivable.due_date < datetime.date.today())

        query = select(Receivable)
        count_query = select(func.count()).select_from(Receivable)
        if conditions:
            query = query.where(and_(*conditions))
            count_query = count_query.where(and_(*conditions))

        query = (
            query.order_by(Receivable.due_date.asc(), Receivable.id.asc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        receivables = list((await db.execute(query)).scalars().all())
        total = (await db.execute(count_query)).scalar() or 0
        return receivables, total

    async def list_all(self, db: AsyncSession) -> list[Receivable]:
        result = await db.execute(select(Receivable).order_by(Receivable.due_date, Receivable.id))
        return list(result.scalars().all())

    async def get_by_id(self, db: AsyncSession, receivable_id: str) -> Receivable:
        """
        Raises:
            NotFoundError: Se la nota non esiste
        """
        receivable = await load_receivable(db, receivable_id)
        if receivable is None:
            raise NotFoundError(f"Nota {receivable_id} non trovata")
        return receivable

    async def get_due_alerts(
        self,
        db: AsyncSession,
        today: Optional[datetime.date] = None,
    ) -> DueAlerts:
        """Note non pagate scadute o in scadenza entro il preavviso configurato."""
        today = today or datetime.date.today()
        billing = await app_settings_service.get_billing_settings(db)
        horizon = today + datetime.timedelta(days=billing.due_soon_days)

        result = await db.execute(
            select(Receivable)
            .where(
                Receivable.payment_status == PaymentStatus.UNPAID.value,
                Receivable.due_date <= horizon,
            )
            .order_by(Receivable.due_date, Receivable.id)
        )
        alerts = DueAlerts(reference_date=today, due_soon_days=billing.due_soon_days)
        for receivable in result.scalars().all():
            target = alerts.overdue if receivable.due_date < today else alerts.due_soon
            target.append(ReceivableRead.model_validate(receivable))
        return alerts

    # ------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------
    async def _resolve_total(
        self,
        db: AsyncSession,
        order: Order,
        data: ProcessPaymentRequest,
        current_amount: int,
    ) -> int:
        """
        Totale finale dell'incasso.

        Con voci modificate in cassa il totale è ricalcolato e salvato
        sull'ordine; un new_total diverso dal ricalcolo viene rifiutato.
        """
        if data.updated_items is None:
            if data.new_total is not None:
                raise BusinessValidationError(
                    "Il nuovo totale può essere indicato solo insieme alle voci modificate",
                    error_code="PAYMENT_TOTAL_WITHOUT_ITEMS",
                )
            return current_amount

        total = await order_service.reprice_items(db, order, data.updated_items)
        if data.new_total is not None and data.new_total != total:
            raise BusinessValidationError(
                f"Il totale indicato ({data.new_total}) non coincide con il totale calcolato ({total})",
                error_code="PAYMENT_TOTAL_MISMATCH",
                extra={"computed_total": total},
            )
        return total

    @staticmethod
    def _check_discount(discount: int, total: int) -> None:
        if discount < 0 or discount > total:
            raise BusinessValidationError(
                f"Lo sconto deve essere compreso tra 0 e il totale ({total})",
                error_code="PAYMENT_DISCOUNT_INVALID",
            )

    @staticmethod
    def _outstanding_or_raise(total: int, discount: int, total_paid: int, receivable_id: str) -> int:
        outstanding = remaining_balance(total, discount, total_paid)
        if outstanding <= 0:
            raise BusinessValidationError(
                f"La nota {receivable_id} risulta già saldata",
                error_code="RECEIVABLE_ALREADY_PAID",
            )
        return outstanding

    @staticmethod
    def _new_payment(
        payment: PaymentCreate,
        amount: int,
        method_name: str,
        position: int,
    ) -> ReceivablePayment:
        return ReceivablePayment(
            position=position,
            amount=amount,
            payment_date=payment.payment_date,
            method_id=payment.method_id,
            method_name=method_name,
        )

    # ------------------------------------------------------------
    # Incassi
    # ------------------------------------------------------------
    async def process_payment(
        self,
        db: AsyncSession,
        receivable_id: str,
        data: ProcessPaymentRequest,
    ) -> PaymentResult:
        """
        Registra un incasso su una nota esistente.

        Passi:
        1. se le voci sono state modificate in cassa, ricalcola e salva il totale ordine
        2. determina lo sconto (nuovo o corrente) e lo verifica contro il totale
        3. registra l'incasso limitato al residuo, l'eccedenza è resto
        4. ricalcola lo stato di pagamento
        5. salva tutto in un'unica transazione

        Args:
            db: Sessione database
            receivable_id: Numero nota
            data: Incasso, sconto e voci modificate

        Returns:
            PaymentResult: Nota aggiornata, residuo e resto

        Raises:
            NotFoundError: Nota o metodo di pagamento inesistenti
            BusinessValidationError: Sconto non valido, totale incoerente, nota già saldata
            ConflictError: Se il database rifiuta la scrittura
        """
        receivable = await self.get_by_id(db, receivable_id)
        method = await catalog_service.get_payment_method(db, data.payment.method_id)

        try:
            final_total = await self._resolve_total(db, receivable.order, data, receivable.amount)
            discount = data.discount if data.discount is not None else receivable.discount
            self._check_discount(discount, final_total)

            previous_paid = receivable.total_paid
            outstanding = self._outstanding_or_raise(final_total, discount, previous_paid, receivable_id)
            recorded = min(data.payment.amount, outstanding)
            change_due = data.payment.amount - recorded
        except AppException:
            # Le voci modificate in cassa sono già state inviate al database
            await db.rollback()
            raise

        receivable.payments.append(
            self._new_payment(data.payment, recorded, method.name, len(receivable.payments))
        )
        receivable.discount = discount
        status = sync_receivable(receivable, final_total)

        await commit_or_conflict(db, "la registrazione dell'incasso")

        remaining = remaining_balance(final_total, discount, previous_paid + recorded)
        logger.info(
            "Incasso di %d su nota %s (%s): residuo %d, stato %s",
            recorded, receivable_id, method.name, remaining, status.value,
        )
        change_feed.notify(ChangeTopic.RECEIVABLES, ChangeAction.UPDATE, receivable_id)
        if data.updated_items is not None:
            change_feed.notify(ChangeTopic.ORDERS, ChangeAction.UPDATE, receivable_id)

        refreshed = await self.get_by_id(db, receivable_id)
        return PaymentResult(
            receivable=ReceivableRead.model_validate(refreshed),
            remaining_balance=remaining,
            change_due=change_due,
        )

    async def pay_unprocessed_order(
        self,
        db: AsyncSession,
        order_id: str,
        data: ProcessPaymentRequest,
    ) -> PaymentResult:
        """
        Incasso su un ordine che non ha ancora una nota.

        Crea la nota in coda con il solo incasso appena ricevuto e
        scadenza data ordine + giorni di tolleranza.

        Raises:
            NotFoundError: Ordine o metodo di pagamento inesistenti
            ConflictError: Se la nota esiste già (usare process_payment)
            BusinessValidationError: Sconto non valido o totale incoerente
        """
        order = await order_service.get_by_id(db, order_id)
        if await load_receivable(db, order_id) is not None:
            raise ConflictError(
                f"La nota {order_id} esiste già: registrare l'incasso sulla nota",
                error_code="RECEIVABLE_EXISTS",
            )
        method = await catalog_service.get_payment_method(db, data.payment.method_id)
        billing = await app_settings_service.get_billing_settings(db)

        try:
            final_total = await self._resolve_total(db, order, data, order.total_price)
            discount = data.discount if data.discount is not None else min(billing.default_discount, final_total)
            self._check_discount(discount, final_total)

            outstanding = self._outstanding_or_raise(final_total, discount, 0, order_id)
            recorded = min(data.payment.amount, outstanding)
            change_due = data.payment.amount - recorded
        except AppException:
            await db.rollback()
            raise

        receivable = Receivable(
            id=order_id,
            amount=final_total,
            due_date=compute_due_date(order.order_date, billing.due_date_days),
            production_status=ProductionStatus.QUEUED.value,
            discount=discount,
            payments=[self._new_payment(data.payment, recorded, method.name, 0)],
        )
        status = sync_receivable(receivable)
        db.add(receivable)

        await commit_or_conflict(db, "la creazione della nota")

        remaining = remaining_balance(final_total, discount, recorded)
        logger.info(
            "Nota %s creata con incasso di %d: residuo %d, stato %s",
            order_id, recorded, remaining, status.value,
        )
        change_feed.notify(ChangeTopic.RECEIVABLES, ChangeAction.INSERT, order_id)
        if data.updated_items is not None:
            change_feed.notify(ChangeTopic.ORDERS, ChangeAction.UPDATE, order_id)

        refreshed = await self.get_by_id(db, order_id)
        return PaymentResult(
            receivable=ReceivableRead.model_validate(refreshed),
            remaining_balance=remaining,
            change_due=change_due,
        )

    async def pay_legacy_receivable(
        self,
        db: AsyncSession,
        receivable_id: str,
        data: LegacyPaymentRequest,
    ) -> PaymentResult:
        """
        Incasso di una nota pregressa.

        La nota esce dallo stato legacy e diventa una nota consegnata
        con l'incasso ricevuto e lo sconto indicato; la scadenza è
        ricalcolata come data ordine + giorni di tolleranza. Paid se
        incassato + sconto copre il totale dell'ordine.

        Args:
            db: Sessione database
            receivable_id: Numero nota pregressa
            data: Incasso e sconto

        Returns:
            PaymentResult: Nota aggiornata, residuo e resto

        Raises:
            NotFoundError: Nota o metodo di pagamento inesistenti
            BusinessValidationError: Nota non pregressa o sconto non valido
            ConflictError: Se il database rifiuta la scrittura
        """
        receivable = await self.get_by_id(db, receivable_id)
        if receivable.production_status != ProductionStatus.LEGACY.value:
            raise BusinessValidationError(
                f"La nota {receivable_id} non è una nota pregressa "
                f"(stato: {receivable.production_status})",
                error_code="RECEIVABLE_NOT_LEGACY",
            )
        method = await catalog_service.get_payment_method(db, data.payment.method_id)
        billing = await app_settings_service.get_billing_settings(db)

        order = receivable.order
        total = order.total_price
        self._check_discount(data.discount, total)

        previous_paid = receivable.total_paid
        outstanding = remaining_balance(total, data.discount, previous_paid)
        recorded = min(data.payment.amount, outstanding)
        change_due = data.payment.amount - recorded

        if recorded > 0:
            receivable.payments.append(
                self._new_payment(data.payment, recorded, method.name, len(receivable.payments))
            )
        receivable.discount = data.discount
        receivable.due_date = compute_due_date(order.order_date, billing.due_date_days)
        receivable.production_status = ProductionStatus.DELIVERED.value
        status = sync_receivable(receivable, total)

        await commit_or_conflict(db, "l'incasso della nota pregressa")

        remaining = remaining_balance(total, data.discount, previous_paid + recorded)
        logger.info(
            "Nota pregressa %s incassata per %d (%s): residuo %d, stato %s",
            receivable_id, recorded, method.name, remaining, status.value,
        )
        change_feed.notify(ChangeTopic.RECEIVABLES, ChangeAction.UPDATE, receivable_id)

        refreshed = await self.get_by_id(db, receivable_id)
        return PaymentResult(
            receivable=ReceivableRead.model_validate(refreshed),
            remaining_balance=remaining,
            change_due=change_due,
        )

    async def bulk_process_payment(
        self,
        db: AsyncSession,
        data: BulkPaymentRequest,
    ) -> BulkOperationResult:
        """
        Salda il residuo di più ordini.

        Per ogni id:
        - nota esistente con residuo: un incasso pari al residuo, stato paid
        - nota esistente già saldata: riportata in skipped
        - nessuna nota: crea una nota in coda già saldata al prezzo pieno

        Ogni id è salvato in una transazione propria: un fallimento viene
        riportato in failed e non annulla gli id già elaborati.

        Raises:
            NotFoundError: Se il metodo di pagamento non esiste (nessuna scrittura)
        """
        method = await catalog_service.get_payment_method(db, data.method_id)
        method_id, method_name = method.id, method.name
        billing = await app_settings_service.get_billing_settings(db)
        grace_days = billing.due_date_days

        outcome = BulkOperationResult()

        for order_id in data.order_ids:
            try:
                receivable = await load_receivable(db, order_id)
                if receivable is not None:
                    outstanding = receivable.remaining_balance
                    if outstanding <= 0:
                        outcome.skipped.append(order_id)
                        continue
                    receivable.payments.append(
                        ReceivablePayment(
                            position=len(receivable.payments),
                            amount=outstanding,
                            payment_date=data.payment_date,
                            method_id=method_id,
                            method_name=method_name,
                        )
                    )
                    sync_receivable(receivable)
                    action = ChangeAction.UPDATE
                else:
                    order = await order_service.get_by_id(db, order_id)
                    receivable = Receivable(
                        id=order_id,
                        amount=order.total_price,
                        due_date=compute_due_date(order.order_date, grace_days),
                        production_status=ProductionStatus.QUEUED.value,
                        discount=0,
                        payments=[],
                    )
                    if order.total_price > 0:
                        receivable.payments.append(
                            ReceivablePayment(
                                position=0,
                                amount=order.total_price,
                                payment_date=data.payment_date,
                                method_id=method_id,
                                method_name=method_name,
                            )
                        )
                    sync_receivable(receivable)
                    db.add(receivable)
                    action = ChangeAction.INSERT

                await db.commit()
            except AppException as e:
                await db.rollback()
                logger.warning("Saldo massivo: ordine %s non elaborato: %s", order_id, e.detail)
                outcome.failed.append(BulkFailure(id=order_id, detail=e.detail, error_code=e.error_code))
                continue
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error("Saldo massivo: errore database per l'ordine %s: %s", order_id, e)
                outcome.failed.append(
                    BulkFailure(id=order_id, detail="Errore di scrittura sul database", error_code="STORE_WRITE_FAILED")
                )
                continue

            outcome.succeeded.append(order_id)
            change_feed.notify(ChangeTopic.RECEIVABLES, action, order_id)

        logger.info(
            "Saldo massivo completato: %d saldati, %d già saldati, %d falliti",
            len(outcome.succeeded), len(outcome.skipped), len(outcome.failed),
        )
        return outcome

    # ------------------------------------------------------------
    # Scadenze
    # ------------------------------------------------------------
    async def update_due_date(
        self,
        db: AsyncSession,
        receivable_id: str,
        due_date: datetime.date,
    ) -> Receivable:
        """Modifica solo la scadenza; lo stato di pagamento non viene toccato."""
        receivable = await self.get_by_id(db, receivable_id)
        receivable.due_date = due_date
        await commit_or_conflict(db, "l'aggiornamento della scadenza")

        logger.info("Scadenza nota %s impostata a %s", receivable_id, due_date.isoformat())
        change_feed.notify(ChangeTopic.RECEIVABLES, ChangeAction.UPDATE, receivable_id)
        return receivable

    async def bulk_update_due_date(
        self,
        db: AsyncSession,
        data: BulkDueDateUpdate,
    ) -> BulkOperationResult:
        """
        Imposta la stessa scadenza su più note.

        Gli id senza nota sono riportati in failed; le altre note
        vengono aggiornate in un'unica transazione.
        """
        result = await db.execute(select(Receivable).where(Receivable.id.in_(data.order_ids)))
        found = {r.id: r for r in result.scalars().all()}

        outcome = BulkOperationResult()
        for order_id in data.order_ids:
            receivable = found.get(order_id)
            if receivable is None:
                outcome.failed.append(
                    BulkFailure(id=order_id, detail=f"Nota {order_id} non trovata", error_code="RESOURCE_NOT_FOUND")
                )
                continue
            receivable.due_date = data.due_date
            outcome.succeeded.append(order_id)

        if outcome.succeeded:
            await commit_or_conflict(db, "l'aggiornamento massivo delle scadenze")
            for order_id in outcome.succeeded:
                change_feed.notify(ChangeTopic.RECEIVABLES, ChangeAction.UPDATE, order_id)

        logger.info(
            "Scadenza %s impostata su %d note (%d non trovate)",
            data.due_date.isoformat(), len(outcome.succeeded), len(outcome.failed),
        )
        return outcome


receivable_service = ReceivableService()
