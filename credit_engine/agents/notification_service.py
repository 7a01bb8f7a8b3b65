"""Payment notification worker.

Consumes ``payment.approved`` and ``org.credits_insufficient`` events from the
payments stream and posts one e-mail payload per recipient to the configured
webhook.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

import redis.asyncio as redis
import requests
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from credit_engine.agents.health import AgentHealth
from credit_engine.core.config import settings
from credit_engine.core.db import AsyncSessionLocal
from credit_engine.core.events import EVENT_ORG_CREDITS_INSUFFICIENT, EVENT_PAYMENT_APPROVED
from credit_engine.core.repositories.organizations import MembershipRepository
from credit_engine.core.repositories.questions import QuestionRepository
from credit_engine.core.repositories.tenants import ProfileRepository
from credit_engine.models.credit_ledger import SCOPE_ORG, SCOPE_TYPES

logger = logging.getLogger(__name__)

TEMPLATE_WORKER_ASSIGNMENT = "worker_assignment"
TEMPLATE_ADMIN_COPY = "payment_admin_copy"
TEMPLATE_ORG_OWNER_NOTICE = "org_owner_notice"
TEMPLATE_ORG_CREDITS_INSUFFICIENT = "org_credits_insufficient"


def _site_base_url() -> str:
    return settings.site_base_url.rstrip("/")


def _question_url(question_id: str) -> str:
    return f"{_site_base_url()}/ask/{question_id}"


@dataclass(slots=True, frozen=True)
class Recipient:
    email: str
    template: str


def build_recipients(
    *,
    worker_email: str | None,
    admin_emails: list[str],
    owner_emails: list[str],
    owner_template: str = TEMPLATE_ORG_OWNER_NOTICE,
) -> list[Recipient]:
    """One recipient per address; the first template assigned to an address wins."""
    recipients: list[Recipient] = []
    seen: set[str] = set()

    def _add(email: str | None, template: str) -> None:
        address = (email or "").strip()
        if not address or address.lower() in seen:
            return
        seen.add(address.lower())
        recipients.append(Recipient(email=address, template=template))

    _add(worker_email, TEMPLATE_WORKER_ASSIGNMENT)
    for email in owner_emails:
        _add(email, owner_template)
    for email in admin_emails:
        _add(email, TEMPLATE_ADMIN_COPY)
    return recipients


class NotificationDispatcher:
    def __init__(self, webhook_url: str | None = None) -> None:
        self.webhook_url = webhook_url if webhook_url is not None else settings.email_webhook_url

    async def dispatch(self, payload: dict[str, object]) -> None:
        webhook = self.webhook_url
        if not webhook:
            raise ValueError("Email webhook is not configured")

        def _post() -> None:
            response = requests.post(webhook, json=payload, timeout=10)
            response.raise_for_status()

        await asyncio.to_thread(_post)


class NotificationAgent:
    def __init__(
        self,
        *,
        redis_client: redis.Redis | None = None,
        dispatcher: NotificationDispatcher | None = None,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    ) -> None:
        self.health = AgentHealth(name="payment-notification-agent", ready=True)
        self._stop_event = asyncio.Event()
        self._redis = redis_client or redis.from_url(settings.redis_url, decode_responses=True)
        self._dispatcher = dispatcher or NotificationDispatcher()
        self._session_factory = session_factory

    async def stop(self) -> None:
        self._stop_event.set()
        await self._redis.aclose()

    async def run(self) -> None:
        await self._ensure_consumer_group()

        retry_delay = 1
        while not self._stop_event.is_set():
            self.health.mark_run()
            try:
                messages = await self._redis.xreadgroup(
                    groupname=settings.notification_consumer_group,
                    consumername=settings.notification_consumer_name,
                    streams={settings.payment_events_stream_name: ">"},
                    count=100,
                    block=settings.notification_stream_block_ms,
                )

                if not messages:
                    continue

                for stream_name, entries in messages:
                    for message_id, fields in entries:
                        await self._process_event(stream_name, message_id, fields)

                self.health.mark_success()
                retry_delay = 1
            except Exception as exc:  # pragma: no cover - operational path
                self.health.mark_error(exc)
                logger.exception("Notification agent stream loop failed")
                await asyncio.sleep(retry_delay)
                retry_delay = min(retry_delay * 2, 120)

    async def _ensure_consumer_group(self) -> None:
        try:
            await self._redis.xgroup_create(
                name=settings.payment_events_stream_name,
                groupname=settings.notification_consumer_group,
                id="0",
                mkstream=True,
            )
        except Exception as exc:
            if "BUSYGROUP" not in str(exc):
                raise

    async def _process_event(self, stream_name: str, message_id: str, fields: dict[str, str]) -> None:
        event_type = fields.get("event_type")
        try:
            if event_type == EVENT_PAYMENT_APPROVED:
                await self._handle_payment_approved(fields)
            elif event_type == EVENT_ORG_CREDITS_INSUFFICIENT:
                await self._handle_org_credits_insufficient(fields)
            else:
                raise ValueError(f"Unsupported event type: {event_type}")
            self.health.record_processed(event_type, message_id)
            await self._redis.xack(stream_name, settings.notification_consumer_group, message_id)
        except Exception as exc:
            self.health.record_failed(event_type, message_id, exc)
            logger.warning("Notification for %s %s failed: %s", event_type, message_id, exc)
            await self._redis.xadd(
                settings.notification_failure_stream_name,
                {
                    "source_stream": stream_name,
                    "message_id": message_id,
                    "error": str(exc),
                    "payload": json.dumps(fields),
                    "failed_at": datetime.now(timezone.utc).isoformat(),
                },
            )
            # Poison messages are acked once parked on the failure stream.
            await self._redis.xack(stream_name, settings.notification_consumer_group, message_id)

    async def _send(self, recipient: Recipient, payload: dict[str, object]) -> None:
        await self._dispatcher.dispatch(
            {
                "template": recipient.template,
                "to": recipient.email,
                **payload,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )
        self.health.record_email(recipient.template)

    async def _handle_payment_approved(self, fields: dict[str, str]) -> None:
        question_id = fields.get("question_id")
        scope_type = fields.get("scope_type")
        scope_id = fields.get("scope_id")
        if not question_id or not scope_id or scope_type not in SCOPE_TYPES:
            raise ValueError("payment.approved event missing question_id/scope")

        recipients, title = await self._resolve_recipients(
            UUID(question_id),
            scope_type,
            UUID(scope_id),
            actor_id=fields.get("actor_id"),
        )
        if not recipients:
            logger.info("No recipients for payment of question=%s", question_id)
            return

        for recipient in recipients:
            await self._send(
                recipient,
                {
                    "event_type": EVENT_PAYMENT_APPROVED,
                    "question_id": question_id,
                    "question_title": title,
                    "question_url": _question_url(question_id),
                    "scope_type": scope_type,
                    "scope_id": scope_id,
                    "credits": fields.get("credits"),
                    "actor_id": fields.get("actor_id"),
                },
            )

    async def _handle_org_credits_insufficient(self, fields: dict[str, str]) -> None:
        question_id = fields.get("question_id")
        org_id = fields.get("org_id")
        if not question_id or not org_id:
            raise ValueError("org.credits_insufficient event missing question_id/org_id")

        async with self._session_factory() as session:
            question = await QuestionRepository(session).get(UUID(question_id))
            if question is None:
                raise ValueError(f"Question not found: {question_id}")
            owner_ids = await MembershipRepository(session).active_owner_ids(UUID(org_id))
            profiles = ProfileRepository(session)
            emails = await profiles.emails_for(owner_ids)
            requester_name = None
            if fields.get("actor_id"):
                requester_name = await profiles.full_name_of(UUID(fields["actor_id"]))

        recipients = build_recipients(
            worker_email=None,
            admin_emails=[],
            owner_emails=[emails[owner_id] for owner_id in owner_ids if owner_id in emails],
            owner_template=TEMPLATE_ORG_CREDITS_INSUFFICIENT,
        )
        if not recipients:
            raise ValueError(f"No reachable owner for org {org_id}")

        for recipient in recipients:
            await self._send(
                recipient,
                {
                    "event_type": EVENT_ORG_CREDITS_INSUFFICIENT,
                    "question_id": question_id,
                    "question_title": question.title,
                    "question_url": _question_url(question_id),
                    "subscription_url": f"{_site_base_url()}/dashboard/subscription",
                    "org_id": org_id,
                    "requester_name": requester_name or "",
                    "required_credits": fields.get("required_credits"),
                    "balance": fields.get("balance"),
                },
            )

    async def _resolve_recipients(
        self,
        question_id: UUID,
        scope_type: str,
        scope_id: UUID,
        *,
        actor_id: str | None = None,
    ) -> tuple[list[Recipient], str | None]:
        async with self._session_factory() as session:
            question = await QuestionRepository(session).get(question_id)
            if question is None:
                raise ValueError(f"Question not found: {question_id}")

            owner_ids: list[UUID] = []
            if scope_type == SCOPE_ORG:
                owner_ids = [
                    owner_id
                    for owner_id in await MembershipRepository(session).active_owner_ids(scope_id)
                    if str(owner_id) != actor_id
                ]

            lookup = owner_ids + ([question.assigned_to] if question.assigned_to else [])
            emails = await ProfileRepository(session).emails_for(lookup)

        recipients = build_recipients(
            worker_email=emails.get(question.assigned_to) if question.assigned_to else None,
            admin_emails=settings.payment_admin_emails(),
            owner_emails=[emails[owner_id] for owner_id in owner_ids if owner_id in emails],
        )
        return recipients, question.title


notification_agent = NotificationAgent()
app = FastAPI(title="Credit Engine Notification Agent")


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=settings.log_level.upper())
    app.state.task = asyncio.create_task(notification_agent.run())


@app.on_event("shutdown")
async def shutdown_event() -> None:
    await notification_agent.stop()
    task: asyncio.Task[None] = app.state.task
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


@app.get("/health", tags=["system"])
async def health() -> dict[str, object]:
    return notification_agent.health.payload()


@app.get("/ready", tags=["system"])
async def ready() -> dict[str, bool]:
    return {"ready": notification_agent.health.ready}
