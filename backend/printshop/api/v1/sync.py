"""
Router FastAPI per la Sincronizzazione
Progetto: Print Shop Manager (Gestionale Tipografia)

I client tengono una connessione Server-Sent Events su /sync/changes e a
ogni evento rileggono da /sync/snapshot le sezioni dell'argomento
modificato. Gli eventi non trasportano dati di dominio.
"""

import asyncio
import json
import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.change_feed import ChangeEvent, ChangeTopic, change_feed
from printshop.core.config import settings
from printshop.core.database import get_db
from printshop.schemas.sync import WorkingSetSnapshot
from printshop.services.sync_service import sync_service

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/sync",
    tags=["Sincronizzazione"],
)

KEEPALIVE_COMMENT = ": keep-alive\n\n"


def format_sse(event: ChangeEvent) -> str:
    """Serializza un evento nel formato text/event-stream."""
    return f"event: {event.topic.value}\ndata: {json.dumps(event.to_dict())}\n\n"


async def change_stream(
    request: Request,
    topics: Optional[list[ChangeTopic]],
    keepalive_seconds: float,
) -> AsyncIterator[str]:
    """Inoltra gli eventi del change feed finché il client resta connesso."""
    async with change_feed.listen(topics) as queue:
        yield ": connected\n\n"
        while not await request.is_disconnected():
            try:
                event = await asyncio.wait_for(queue.get(), timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                yield KEEPALIVE_COMMENT
                continue
            yield format_sse(event)
    logger.debug("Stream modifiche chiuso")


@router.get(
    "/snapshot",
    name="sync_snapshot",
    summary="Snapshot dell'insieme di lavoro",
    description="Ordini, note, bacheca, catalogo e impostazioni; filtrabile per argomento.",
    response_model=WorkingSetSnapshot,
    status_code=status.HTTP_200_OK,
)
async def get_snapshot(
    topics: Optional[list[ChangeTopic]] = Query(None, description="Argomenti da rileggere"),
    db: AsyncSession = Depends(get_db),
) -> WorkingSetSnapshot:
    return await sync_service.get_snapshot(db=db, topics=topics)


@router.get(
    "/changes",
    name="sync_modifiche",
    summary="Stream delle modifiche",
    description="Server-Sent Events: un evento per ogni modifica salvata.",
    status_code=status.HTTP_200_OK,
)
async def stream_changes(
    request: Request,
    topics: Optional[list[ChangeTopic]] = Query(None, description="Argomenti di interesse"),
) -> StreamingResponse:
    logger.info(
        "Nuovo client in ascolto su %s",
        [t.value for t in topics] if topics else "tutti gli argomenti",
    )
    return StreamingResponse(
        change_stream(request, topics, settings.change_feed_keepalive_seconds),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
