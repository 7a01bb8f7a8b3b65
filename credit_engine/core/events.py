from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

import redis.asyncio as redis

from credit_engine.core.config import settings

logger = logging.getLogger(__name__)

EVENT_PAYMENT_APPROVED = "payment.approved"
EVENT_ORG_CREDITS_INSUFFICIENT = "org.credits_insufficient"


@dataclass(slots=True)
class PaymentApprovedEvent:
    question_id: str
    scope_type: str
    scope_id: str
    actor_id: str
    credits: int
    balance_after: int
    event_type: str = EVENT_PAYMENT_APPROVED

    def fields(self) -> dict[str, str]:
        return _stream_fields(self)


@dataclass(slots=True)
class OrgCreditsInsufficientEvent:
    """A member could not pay because the organization is short of credits."""

    question_id: str
    org_id: str
    actor_id: str
    required_credits: int
    balance: int
    event_type: str = EVENT_ORG_CREDITS_INSUFFICIENT

    def fields(self) -> dict[str, str]:
        return _stream_fields(self)


StreamEvent = PaymentApprovedEvent | OrgCreditsInsufficientEvent
EventPublisher = Callable[[StreamEvent], Awaitable[None]]


def _stream_fields(event: StreamEvent) -> dict[str, str]:
    payload = {key: str(value) for key, value in asdict(event).items()}
    payload["emitted_at"] = datetime.now(timezone.utc).isoformat()
    return payload


async def publish_event(event: StreamEvent) -> None:
    """Best effort: whatever the event reports has already happened when this runs."""
    redis_client = redis.from_url(settings.redis_url, decode_responses=True)
    try:
        await redis_client.xadd(settings.payment_events_stream_name, event.fields())
    except Exception:
        logger.exception(
            "Failed to publish %s for question=%s",
            event.event_type,
            event.question_id,
        )
    finally:
        await redis_client.aclose()
