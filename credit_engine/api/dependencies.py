from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from credit_engine.core.db import get_db_session
from credit_engine.core.events import EventPublisher, publish_event
from credit_engine.core.fx import RequestRateCache, get_rate_source
from credit_engine.core.payments import PaymentOrchestrator


def get_event_publisher() -> EventPublisher:
    return publish_event


async def get_payment_orchestrator(
    session: AsyncSession = Depends(get_db_session),
    rate_source: RequestRateCache = Depends(get_rate_source),
    publish_event: EventPublisher = Depends(get_event_publisher),
) -> PaymentOrchestrator:
    return PaymentOrchestrator(session, rate_source=rate_source, publish_event=publish_event)
