"""
Service Layer per gli Ordini
Progetto: Print Shop Manager (Gestionale Tipografia)

Definisce la logica di business per creazione, modifica ed eliminazione
degli ordini. Il totale non è mai accettato dal client: è sempre ricalcolato
dal motore prezzi, e se esiste una nota per l'ordine importo e stato di
pagamento vengono riallineati nella stessa transazione.
"""

import datetime
import logging
from typing import Any, Optional, Sequence

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.change_feed import ChangeAction, ChangeTopic, change_feed
from printshop.core.database import commit_or_conflict
from printshop.core.exceptions import AppException, BusinessValidationError, NotFoundError
from printshop.models import NO_FINISHING, Customer, Order, OrderItem, Receivable
from printshop.schemas.order import (
    LegacyOrderCreate,
    OrderCreate,
    OrderItemBase,
    OrderUpdate,
    QuoteLine,
    QuoteRequest,
    QuoteResult,
)
from printshop.schemas.receivable import PaymentStatus, ProductionStatus
from printshop.services.catalog_service import catalog_service
from printshop.services.ledger import (
    compute_due_date,
    derive_payment_status,
    load_receivable,
    sync_receivable,
)
from printshop.services.pricing import (
    PricingCatalog,
    compute_line_totals,
    MAX_DIMENSION,
    MAX_ORDER_TOTAL,
    compute_total,
    parse_dimension,
)
from printshop.services.sequence_service import sequence_service
from printshop.services.settings_service import app_settings_service

logger = logging.getLogger(__name__)

EMPTY_DETAILS = "Nessun dettaglio"


class OrderService:
    """
    Service per la gestione degli ordini.

    Fornisce metodi asincroni per interagire con il database
    in modo centralizzato, senza dipendenze da FastAPI.
    """

    # ------------------------------------------------------------
    # Validazione e costruzione voci
    # ------------------------------------------------------------
    def validate_items(self, items: Sequence[OrderItemBase], catalog: PricingCatalog) -> None:
        """
        Valida le voci prima di qualsiasi scrittura.

        Args:
            items: Voci in ingresso
            catalog: Catalogo prezzi corrente

        Raises:
            BusinessValidationError: Alla prima voce non valida
        """
        if not items:
            raise BusinessValidationError(
                "L'ordine deve contenere almeno una voce",
                error_code="ORDER_ITEMS_REQUIRED",
            )

        for index, item in enumerate(items, start=1):
            if item.product_id is None:
                raise BusinessValidationError(
                    f"Voce {index}: selezionare un prodotto",
                    error_code="ORDER_ITEM_PRODUCT_REQUIRED",
                )
            product = catalog.products.get(item.product_id)
            if product is None:
                raise BusinessValidationError(
                    f"Voce {index}: il prodotto {item.product_id} non esiste",
                    error_code="ORDER_ITEM_PRODUCT_UNKNOWN",
                )
            if not item.description.strip():
                raise BusinessValidationError(
                    f"Voce {index}: la descrizione è obbligatoria",
                    error_code="ORDER_ITEM_DESCRIPTION_REQUIRED",
                )

            category = catalog.categories.get(product.category_id)

            if item.finishing != NO_FINISHING:
                rule = catalog.finishings.get(item.finishing)
                if rule is None:
                    raise BusinessValidationError(
                        f"Voce {index}: la finitura '{item.finishing}' non esiste",
                        error_code="ORDER_ITEM_FINISHING_UNKNOWN",
                    )
                if not rule.applies_to(product.category_id):
                    category_name = category.name if category is not None else product.category_id
                    raise BusinessValidationError(
                        f"Voce {index}: la finitura '{item.finishing}' non è applicabile "
                        f"alla categoria '{category_name}'",
                        error_code="ORDER_ITEM_FINISHING_NOT_ALLOWED",
                    )

            if category is not None and category.is_per_area:
                if parse_dimension(item.length) <= 0 or parse_dimension(item.width) <= 0:
                    raise BusinessValidationError(
                        f"Voce {index}: lunghezza e larghezza devono essere numeri positivi "
                        f"fino a {MAX_DIMENSION} m",
                        error_code="ORDER_ITEM_DIMENSIONS_INVALID",
                    )

    def build_items(self, items: Sequence[OrderItemBase], catalog: PricingCatalog) -> list[OrderItem]:
        """
        Converte le voci validate in righe ORM.

        Le voci senza line_id ricevono il primo id libero; per le categorie
        a pezzo le misure sono normalizzate a "1".
        """
        used_ids = {item.line_id for item in items if item.line_id is not None}
        next_id = 1
        rows: list[OrderItem] = []

        for position, item in enumerate(items):
            line_id = item.line_id
            if line_id is None:
                while next_id in used_ids:
                    next_id += 1
                line_id = next_id
                used_ids.add(line_id)

            category = catalog.category_of(item.product_id)
            per_area = category is not None and category.is_per_area

            rows.append(
                OrderItem(
                    line_id=line_id,
                    position=position,
                    product_id=item.product_id,
                    finishing=item.finishing,
                    description=item.description.strip(),
                    length=item.length if per_area else "1",
                    width=item.width if per_area else "1",
                    quantity=item.quantity,
                    custom_price=getattr(item, "custom_price", None),
                )
            )
        return rows

    def render_details(self, items: Sequence[Any], catalog: PricingCatalog) -> str:
        """
        Riepilogo testuale delle voci, una riga per voce.

        Formato: "<descrizione> - <prodotto> - <L>X<W> | - - <quantità> pz"
        """
        lines = []
        for item in items:
            product = catalog.products.get(item.product_id) if item.product_id is not None else None
            category = catalog.category_of(item.product_id)
            size = f"{item.length}X{item.width}" if category is not None and category.is_per_area else "-"
            product_name = product.name if product is not None else "-"
            lines.append(f"{item.description} - {product_name} - {size} - {item.quantity} pz")
        return "\n".join(lines) if lines else EMPTY_DETAILS

    async def _replace_items(
        self,
        db: AsyncSession,
        order: Order,
        items: Sequence[OrderItemBase],
        catalog: PricingCatalog,
    ) -> None:
        rows = self.build_items(items, catalog)
        # Le righe vecchie vanno eliminate prima di inserire quelle nuove:
        # gli stessi line_id violerebbero il vincolo di unicità
        order.items.clear()
        await db.flush()
        order.items.extend(rows)

    @staticmethod
    def check_total(total: int) -> int:
        """
        Rifiuta totali che la colonna degli importi non può contenere.

        Raises:
            BusinessValidationError: Se il totale supera MAX_ORDER_TOTAL
        """
        if total > MAX_ORDER_TOTAL:
            raise BusinessValidationError(
                "Il totale dell'ordine supera l'importo massimo gestibile",
                error_code="ORDER_TOTAL_OUT_OF_RANGE",
            )
        return total

    async def _reprice(self, db: AsyncSession, order: Order, customer: Customer, catalog: PricingCatalog) -> int:
        billing = await app_settings_service.get_billing_settings(db)
        total = compute_total(order.items, customer.tier, catalog, billing.rounding_increment)
        order.total_price = self.check_total(total)
        order.details = self.render_details(order.items, catalog)
        return order.total_price

    # ------------------------------------------------------------
    # Letture
    # ------------------------------------------------------------
    async def get_all(
        self,
        db: AsyncSession,
        customer_id: Optional[int] = None,
        search: Optional[str] = None,
        from_date: Optional[datetime.date] = None,
        to_date: Optional[datetime.date] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[Order], int]:
        """
        Recupera la lista paginata degli ordini.

        Args:
            db: Sessione database
            customer_id: Filtro opzionale per cliente
            search: Ricerca su numero nota e riepilogo voci
            from_date: Data ordine minima
            to_date: Data ordine massima
            page: Numero pagina (default 1)
            per_page: Elementi per pagina (default 20)

        Returns:
            Tuple di (lista ordini, totale count)
        """
        conditions = []
        if customer_id is not None:
            conditions.append(Order.customer_id == customer_id)
        if search:
            term = f"%{search}%"
            conditions.append(or_(Order.id.ilike(term), Order.details.ilike(term)))
        if from_date is not None:
            conditions.append(Order.order_date >= from_date)
        if to_date is not None:
            conditions.append(Order.order_date <= to_date)

        query = select(Order)
        count_query = select(func.count()).select_from(Order)
        if conditions:
            query = query.where(and_(*conditions))
            count_query = count_query.where(and_(*conditions))

        query = (
            query.order_by(Order.order_date.desc(), Order.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )

        orders = list((await db.execute(query)).scalars().all())
        total = (await db.execute(count_query)).scalar() or 0
        return orders, total

    async def list_all(self, db: AsyncSession) -> list[Order]:
        result = await db.execute(select(Order).order_by(Order.order_date.desc(), Order.id.desc()))
        return list(result.scalars().all())

    async def get_by_id(self, db: AsyncSession, order_id: str) -> Order:
        """
        Recupera un ordine per numero nota con cliente e voci.

        Raises:
            NotFoundError: Se l'ordine non esiste
        """
        result = await db.execute(
            select(Order)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError(f"Ordine {order_id} non trovato")
        return order

    async def get_unprocessed(self, db: AsyncSession) -> list[Order]:
        """Ordini senza nota oppure con nota ancora in coda."""
        result = await db.execute(
            select(Order)
            .outerjoin(Receivable, Receivable.id == Order.id)
            .where(
                or_(
                    Receivable.id.is_(None),
                    Receivable.production_status == ProductionStatus.QUEUED.value,
                )
            )
            .order_by(Order.order_date.desc(), Order.id.desc())
        )
        return list(result.scalars().all())

    async def quote(self, db: AsyncSession, data: QuoteRequest) -> QuoteResult:
        """Calcola totale e righe riconciliate senza salvare nulla."""
        customer = await catalog_service.get_customer(db, data.customer_id)
        catalog = await catalog_service.get_pricing_catalog(db)
        self.validate_items(data.items, catalog)
        billing = await app_settings_service.get_billing_settings(db)

        breakdown = compute_line_totals(data.items, customer.tier, catalog, billing.rounding_increment)
        self.check_total(breakdown.total)
        return QuoteResult(
            tier=customer.tier,
            subtotal=breakdown.subtotal,
            rounding=breakdown.rounding,
            total=breakdown.total,
            lines=[
                QuoteLine(line_id=item.line_id, line_total=line_total)
                for item, line_total in zip(data.items, breakdown.line_totals)
            ],
        )

    # ------------------------------------------------------------
    # Scritture
    # ------------------------------------------------------------
    async def _insert_order(self, db: AsyncSession, data: OrderCreate) -> Order:
        """Valida, assegna il numero nota e inserisce l'ordine (senza commit)."""
        customer = await catalog_service.get_customer(db, data.customer_id)
        catalog = await catalog_service.get_pricing_catalog(db)
        self.validate_items(data.items, catalog)

        order = Order(
            customer_id=customer.id,
            order_date=data.order_date,
            items=self.build_items(data.items, catalog),
        )
        await self._reprice(db, order, customer, catalog)
        # Il numero nota si consuma solo per un ordine già prezzato
        order.id = await sequence_service.next_nota(db)
        db.add(order)
        await db.flush()
        return order

    async def create(self, db: AsyncSession, data: OrderCreate) -> Order:
        """
        Crea un nuovo ordine.

        Il contatore delle note avanza di uno solo se l'ordine viene salvato.

        Args:
            db: Sessione database
            data: Dati dell'ordine

        Returns:
            Order: L'ordine creato

        Raises:
            BusinessValidationError: Cliente o voci non validi
            NotFoundError: Se il cliente non esiste
            ConflictError: Se il database rifiuta l'inserimento
        """
        order = await self._insert_order(db, data)
        order_id = order.id
        await commit_or_conflict(db, "la creazione dell'ordine")

        logger.info("Ordine %s creato: totale %d", order_id, order.total_price)
        change_feed.notify(ChangeTopic.ORDERS, ChangeAction.INSERT, order_id)
        return await self.get_by_id(db, order_id)

    async def create_legacy(self, db: AsyncSession, data: LegacyOrderCreate) -> Order:
        """
        Registra un ordine pregresso ("dati vecchi").

        Crea l'ordine e, nella stessa transazione, una nota in stato legacy
        non pagata con scadenza data ordine + giorni di tolleranza.
        """
        order = await self._insert_order(db, data)
        order_id = order.id
        billing = await app_settings_service.get_billing_settings(db)

        db.add(
            Receivable(
                id=order_id,
                amount=order.total_price,
                due_date=compute_due_date(order.order_date, billing.due_date_days),
                payment_status=derive_payment_status(0, 0, order.total_price).value,
                production_status=ProductionStatus.LEGACY.value,
                discount=0,
            )
        )
        await commit_or_conflict(db, "la registrazione dell'ordine pregresso")

        logger.info("Ordine pregresso %s registrato: totale %d", order_id, order.total_price)
        change_feed.notify(ChangeTopic.ORDERS, ChangeAction.INSERT, order_id)
        change_feed.notify(ChangeTopic.RECEIVABLES, ChangeAction.INSERT, order_id)
        return await self.get_by_id(db, order_id)

    async def update(self, db: AsyncSession, order_id: str, data: OrderUpdate) -> Order:
        """
        Aggiorna un ordine e ne ricalcola il totale.

        Se esiste una nota per l'ordine, importo e stato di pagamento sono
        riallineati nella stessa transazione: o si salvano entrambi o nessuno.

        Raises:
            NotFoundError: Se l'ordine o il cliente non esistono
            BusinessValidationError: Se le nuove voci non sono valide
            ConflictError: Se il database rifiuta l'aggiornamento
        """
        order = await self.get_by_id(db, order_id)
        catalog = await catalog_service.get_pricing_catalog(db)

        customer = order.customer
        if data.customer_id is not None and data.customer_id != order.customer_id:
            customer = await catalog_service.get_customer(db, data.customer_id)

        if data.items is not None:
            self.validate_items(data.items, catalog)

        previous_total = order.total_price
        try:
            if data.items is not None:
                await self._replace_items(db, order, data.items, catalog)
            if customer is not order.customer:
                order.customer = customer
            if data.order_date is not None:
                order.order_date = data.order_date
            await self._reprice(db, order, customer, catalog)
        except AppException:
            # Le voci sostituite sono già state scritte con flush
            await db.rollback()
            raise
        # La rilettura della nota ricarica anche l'ordine collegato
        await db.flush()

        receivable = await load_receivable(db, order_id)
        payment_status: Optional[PaymentStatus] = None
        if receivable is not None:
            payment_status = sync_receivable(receivable, order.total_price)

        await commit_or_conflict(db, "l'aggiornamento dell'ordine")

        logger.info(
            "Ordine %s aggiornato: totale %d -> %d",
            order_id, previous_total, order.total_price,
        )
        change_feed.notify(ChangeTopic.ORDERS, ChangeAction.UPDATE, order_id)
        if payment_status is not None:
            logger.info("Nota %s riallineata: stato %s", order_id, payment_status.value)
            change_feed.notify(ChangeTopic.RECEIVABLES, ChangeAction.UPDATE, order_id)
        return await self.get_by_id(db, order_id)

    async def reprice_items(
        self,
        db: AsyncSession,
        order: Order,
        items: Sequence[OrderItemBase],
    ) -> int:
        """
        Sostituisce le voci e ricalcola il totale nella transazione del chiamante.

        Usato in cassa, dove le voci possono avere un prezzo forzato.

        Returns:
            int: Nuovo totale dell'ordine
        """
        catalog = await catalog_service.get_pricing_catalog(db)
        self.validate_items(items, catalog)
        await self._replace_items(db, order, items, catalog)
        return await self._reprice(db, order, order.customer, catalog)

    async def delete(self, db: AsyncSession, order_id: str) -> None:
        """
        Elimina un ordine non ancora in lavorazione.

        Una nota in coda senza incassi viene eliminata insieme all'ordine;
        qualunque altra nota blocca l'eliminazione.

        Raises:
            NotFoundError: Se l'ordine non esiste
            BusinessValidationError: Se l'ordine è in produzione o ha incassi
        """
        order = await self.get_by_id(db, order_id)
        receivable = await load_receivable(db, order_id)

        if receivable is not None:
            if receivable.production_status != ProductionStatus.QUEUED.value:
                raise BusinessValidationError(
                    f"L'ordine {order_id} è già in produzione e non può essere eliminato",
                    error_code="ORDER_IN_PRODUCTION",
                )
            if receivable.payments:
                raise BusinessValidationError(
                    f"L'ordine {order_id} ha incassi registrati e non può essere eliminato",
                    error_code="ORDER_HAS_PAYMENTS",
                )
            await db.delete(receivable)
            await db.flush()

        await db.delete(order)
        await commit_or_conflict(db, "l'eliminazione dell'ordine")

        logger.info("Ordine %s eliminato", order_id)
        change_feed.notify(ChangeTopic.ORDERS, ChangeAction.DELETE, order_id)
        if receivable is not None:
            change_feed.notify(ChangeTopic.RECEIVABLES, ChangeAction.DELETE, order_id)


order_service = OrderService()
