"""
Change Feed - notifiche di modifica per i client connessi
Progetto: Print Shop Manager (Gestionale Tipografia)

Pub/sub in-process suddiviso per argomento (ordini, note, catalogo,
impostazioni). Un evento non trasporta lo stato modificato: indica solo
che l'argomento è cambiato e che i client devono rileggere lo snapshot
delle sezioni interessate.

Regole di dispatch:
- gli eventi vengono pubblicati solo dopo un commit riuscito
- gli handler sono eseguiti in sequenza, il fallimento di uno viene
  loggato e non interrompe gli altri
- le code dei listener sono limitate; se una coda è piena l'evento viene
  scartato (il prossimo evento provocherà comunque il refetch)
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator, Callable, Iterable, Optional

from printshop.core.config import settings

logger = logging.getLogger(__name__)


class ChangeTopic(str, Enum):
    """Aggregati per cui vengono pubblicate notifiche."""
    ORDERS = "orders"
    RECEIVABLES = "receivables"
    CATALOG = "catalog"
    SETTINGS = "settings"


class ChangeAction(str, Enum):
    """Tipo di modifica avvenuta."""
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """Notifica di modifica su un argomento."""
    topic: ChangeTopic
    action: ChangeAction
    entity_id: Optional[str] = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "topic": self.topic.value,
            "action": self.action.value,
            "entity_id": self.entity_id,
            "occurred_at": self.occurred_at.isoformat(),
        }


ChangeHandler = Callable[[ChangeEvent], None]


class ChangeFeed:
    """
    Registro dei sottoscrittori e dispatcher degli eventi di modifica.

    Due forme di sottoscrizione:
    - subscribe(handler, topics): callback sincrona, per integrazioni interne
    - listen(topics): coda asyncio, usata dallo stream SSE
    """

    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._handlers: list[tuple[ChangeHandler, Optional[frozenset[ChangeTopic]]]] = []
        self._queues: list[tuple[asyncio.Queue, Optional[frozenset[ChangeTopic]]]] = []

    @staticmethod
    def _topic_filter(topics: Optional[Iterable[ChangeTopic]]) -> Optional[frozenset[ChangeTopic]]:
        if topics is None:
            return None
        selected = frozenset(ChangeTopic(t) for t in topics)
        return selected or None

    @staticmethod
    def _matches(event: ChangeEvent, topics: Optional[frozenset[ChangeTopic]]) -> bool:
        return topics is None or event.topic in topics

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers) + len(self._queues)

    def subscribe(
        self,
        handler: ChangeHandler,
        topics: Optional[Iterable[ChangeTopic]] = None,
    ) -> Callable[[], None]:
        """
        Registra una callback.

        Args:
            handler: Funzione invocata con il ChangeEvent
            topics: Argomenti di interesse (None = tutti)

        Returns:
            Callable: Funzione che annulla la sottoscrizione
        """
        entry = (handler, self._topic_filter(topics))
        self._handlers.append(entry)

        def unsubscribe() -> None:
            if entry in self._handlers:
                self._handlers.remove(entry)

        return unsubscribe

    @asynccontextmanager
    async def listen(
        self, topics: Optional[Iterable[ChangeTopic]] = None
    ) -> AsyncIterator[asyncio.Queue]:
        """Registra una coda per la durata del blocco `async with`."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        entry = (queue, self._topic_filter(topics))
        self._queues.append(entry)
        logger.debug("Listener change feed registrato (%d attivi)", len(self._queues))
        try:
            yield queue
        finally:
            self._queues.remove(entry)
            logger.debug("Listener change feed rimosso (%d attivi)", len(self._queues))

    def publish(self, event: ChangeEvent) -> int:
        """
        Consegna l'evento a handler e code interessati.

        Non solleva mai eccezioni: i fallimenti dei sottoscrittori
        vengono loggati e conteggiati.

        Returns:
            int: Numero di sottoscrittori che hanno ricevuto l'evento
        """
        delivered = 0

        for handler, topics in list(self._handlers):
            if not self._matches(event, topics):
                continue
            handler_name = getattr(handler, "__qualname__", repr(handler))
            try:
                handler(event)
                delivered += 1
            except Exception:
                logger.error(
                    "Sottoscrittore %s fallito per %s/%s",
                    handler_name, event.topic.value, event.action.value,
                    exc_info=True,
                )

        for queue, topics in list(self._queues):
            if not self._matches(event, topics):
                continue
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(
                    "Coda listener piena, evento %s/%s scartato",
                    event.topic.value, event.action.value,
                )

        logger.debug(
            "Evento %s/%s (%s) consegnato a %d sottoscrittori",
            event.topic.value, event.action.value, event.entity_id, delivered,
        )
        return delivered

    def notify(
        self,
        topic: ChangeTopic,
        action: ChangeAction,
        entity_id: Optional[str] = None,
    ) -> int:
        """Scorciatoia per costruire e pubblicare un ChangeEvent."""
        return self.publish(ChangeEvent(topic=topic, action=action, entity_id=entity_id))


# Istanza condivisa dall'intera applicazione
change_feed = ChangeFeed(queue_size=settings.change_feed_queue_size)
