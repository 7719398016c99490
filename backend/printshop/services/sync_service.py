"""
Service Layer per la Sincronizzazione dei client
Progetto: Print Shop Manager (Gestionale Tipografia)

Costruisce lo snapshot dell'insieme di lavoro che i client rileggono a
ogni notifica del change feed. Con una lista di argomenti vengono
ricalcolate solo le sezioni che dipendono da quegli argomenti.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.change_feed import ChangeTopic
from printshop.schemas.order import OrderRead
from printshop.schemas.receivable import ReceivableRead
from printshop.schemas.settings import SequenceRead
from printshop.schemas.sync import WorkingSetSnapshot
from printshop.services.catalog_service import catalog_service
from printshop.services.order_service import order_service
from printshop.services.production_service import production_service
from printshop.services.receivable_service import receivable_service
from printshop.services.sequence_service import sequence_service
from printshop.services.settings_service import app_settings_service

logger = logging.getLogger(__name__)

# Sezioni dello snapshot da ricalcolare per ogni argomento
TOPIC_SECTIONS: dict[ChangeTopic, frozenset[str]] = {
    ChangeTopic.ORDERS: frozenset({"orders", "unprocessed_orders", "board"}),
    ChangeTopic.RECEIVABLES: frozenset({"receivables", "unprocessed_orders", "board"}),
    ChangeTopic.CATALOG: frozenset({"catalog"}),
    ChangeTopic.SETTINGS: frozenset({"billing", "sequence"}),
}


class SyncService:
    """Lettura dell'insieme di lavoro condiviso dai client."""

    @staticmethod
    def sections_for(topics: Optional[Iterable[ChangeTopic]]) -> tuple[list[ChangeTopic], set[str]]:
        selected = list(dict.fromkeys(ChangeTopic(t) for t in topics)) if topics else list(ChangeTopic)
        sections: set[str] = set()
        for topic in selected:
            sections |= TOPIC_SECTIONS[topic]
        return selected, sections

    async def get_snapshot(
        self,
        db: AsyncSession,
        topics: Optional[Iterable[ChangeTopic]] = None,
    ) -> WorkingSetSnapshot:
        """
        Snapshot completo o limitato agli argomenti indicati.

        Args:
            db: Sessione database
            topics: Argomenti modificati (None o vuoto = tutto)

        Returns:
            WorkingSetSnapshot: Le sezioni non richieste restano None
        """
        selected, sections = self.sections_for(topics)
        snapshot = WorkingSetSnapshot(generated_at=datetime.now(timezone.utc), topics=selected)

        if "orders" in sections:
            snapshot.orders = [OrderRead.model_validate(o) for o in await order_service.list_all(db)]
        if "unprocessed_orders" in sections:
            snapshot.unprocessed_orders = [
                OrderRead.model_validate(o) for o in await order_service.get_unprocessed(db)
            ]
        if "receivables" in sections:
            snapshot.receivables = [
                ReceivableRead.model_validate(r) for r in await receivable_service.list_all(db)
            ]
        if "board" in sections:
            snapshot.board = await production_service.get_board(db)
        if "catalog" in sections:
            snapshot.catalog = await catalog_service.get_snapshot(db)
        if "billing" in sections:
            snapshot.billing = await app_settings_service.get_billing_settings(db)
        if "sequence" in sections:
            snapshot.sequence = SequenceRead.model_validate(await sequence_service.get_sequence(db))

        logger.debug(
            "Snapshot generato per %s: sezioni %s",
            [t.value for t in selected],
            sorted(sections),
        )
        return snapshot


sync_service = SyncService()
