from __future__ import annotations

from types import SimpleNamespace
from uuid import uuid4

import pytest

from credit_engine.agents.health import AgentHealth
from credit_engine.agents.notification_service import (
    TEMPLATE_ADMIN_COPY,
    TEMPLATE_ORG_CREDITS_INSUFFICIENT,
    TEMPLATE_ORG_OWNER_NOTICE,
    TEMPLATE_WORKER_ASSIGNMENT,
    NotificationAgent,
    NotificationDispatcher,
    Recipient,
    build_recipients,
)
from credit_engine.models import OrganizationMember, Profile, Question


class _Redis:
    def __init__(self) -> None:
        self.acks: list[tuple[str, str, str]] = []
        self.failed: list[dict[str, str]] = []

    async def xack(self, stream: str, group: str, msg_id: str) -> None:
        self.acks.append((stream, group, msg_id))

    async def xadd(self, stream: str, payload: dict[str, str]) -> None:
        self.failed.append(payload)

    async def aclose(self) -> None:
        return None


def _fields(**overrides: str) -> dict[str, str]:
    fields = {
        "event_type": "payment.approved",
        "question_id": str(uuid4()),
        "scope_type": "user",
        "scope_id": str(uuid4()),
        "actor_id": str(uuid4()),
        "credits": "90",
        "balance_after": "10",
    }
    fields.update(overrides)
    return fields


def test_agent_health_lifecycle_payload() -> None:
    health = AgentHealth(name="agent-x")
    health.mark_run()
    health.mark_success()
    health.record_processed("payment.approved", "1-0")
    health.record_processed("payment.approved", "2-0")
    health.record_failed(None, "3-0", ValueError("bad event"))
    health.record_email("worker_assignment")
    health.record_email("worker_assignment")
    health.mark_error(ValueError("boom"))

    payload = health.payload()
    assert payload["name"] == "agent-x"
    assert payload["healthy"] is False
    assert payload["ready"] is True
    assert payload["last_error"] == "boom"
    assert payload["last_event_id"] == "3-0"
    assert payload["last_event_error"] == "bad event"
    assert payload["events"] == {
        "payment.approved": {"processed": 2, "failed": 0},
        "unknown": {"processed": 0, "failed": 1},
    }
    assert payload["processed_total"] == 2
    assert payload["failed_total"] == 1
    assert payload["emails_sent"] == {"worker_assignment": 2}


def test_build_recipients_deduplicates_addresses() -> None:
    recipients = build_recipients(
        worker_email="worker@example.com",
        admin_emails=["ops@example.com", "Worker@example.com"],
        owner_emails=["owner@example.com", "", "ops@example.com"],
    )

    assert recipients == [
        Recipient(email="worker@example.com", template=TEMPLATE_WORKER_ASSIGNMENT),
        Recipient(email="owner@example.com", template=TEMPLATE_ORG_OWNER_NOTICE),
        Recipient(email="ops@example.com", template=TEMPLATE_ORG_OWNER_NOTICE),
    ]
    assert build_recipients(worker_email=None, admin_emails=[], owner_emails=[]) == []


@pytest.mark.asyncio
async def test_notification_dispatcher_errors_without_webhook() -> None:
    dispatcher = NotificationDispatcher(webhook_url="")
    with pytest.raises(ValueError):
        await dispatcher.dispatch({"x": 1})


@pytest.mark.asyncio
async def test_notification_dispatcher_posts_payload(monkeypatch: pytest.MonkeyPatch) -> None:
    from credit_engine.agents import notification_service

    called: dict[str, object] = {}

    class _Resp:
        def raise_for_status(self) -> None:
            return None

    def _post(url: str, json: dict, timeout: int):  # noqa: A002
        called["url"] = url
        called["json"] = json
        called["timeout"] = timeout
        return _Resp()

    monkeypatch.setattr(notification_service.requests, "post", _post)
    await NotificationDispatcher(webhook_url="https://mail.example.test").dispatch({"event": "ok"})

    assert called["url"] == "https://mail.example.test"
    assert called["json"] == {"event": "ok"}


@pytest.mark.asyncio
async def test_process_event_acks_success_and_parks_failures() -> None:
    fake_redis = _Redis()
    agent = NotificationAgent(redis_client=fake_redis)  # type: ignore[arg-type]

    async def _ok(_fields: dict[str, str]) -> None:
        return None

    async def _boom(_fields: dict[str, str]) -> None:
        raise ValueError("bad")

    agent._handle_payment_approved = _ok  # type: ignore[method-assign]
    await agent._process_event("payments:events", "1-0", _fields())
    assert agent.health.events["payment.approved"].processed == 1
    assert len(fake_redis.acks) == 1

    agent._handle_payment_approved = _boom  # type: ignore[method-assign]
    await agent._process_event("payments:events", "2-0", _fields())
    assert agent.health.events["payment.approved"].failed == 1
    assert fake_redis.failed[0]["error"] == "bad"
    assert len(fake_redis.acks) == 2

    await agent._process_event("payments:events", "3-0", _fields(event_type="payment.refunded"))
    assert agent.health.events["payment.refunded"].failed == 1
    assert agent.health.failed_total == 2
    assert len(fake_redis.acks) == 3


@pytest.mark.asyncio
async def test_handle_payment_approved_sends_one_payload_per_recipient() -> None:
    sent: list[dict[str, object]] = []

    async def _dispatch(payload: dict[str, object]) -> None:
        sent.append(payload)

    agent = NotificationAgent(redis_client=_Redis(), dispatcher=SimpleNamespace(dispatch=_dispatch))  # type: ignore[arg-type]

    async def _resolve(question_id, scope_type, scope_id, *, actor_id=None):  # noqa: ANN001
        return (
            [
                Recipient(email="worker@example.com", template=TEMPLATE_WORKER_ASSIGNMENT),
                Recipient(email="ops@example.com", template=TEMPLATE_ADMIN_COPY),
            ],
            "Contract review",
        )

    agent._resolve_recipients = _resolve  # type: ignore[method-assign]
    fields = _fields()
    await agent._handle_payment_approved(fields)

    assert [payload["to"] for payload in sent] == ["worker@example.com", "ops@example.com"]
    assert sent[0]["question_title"] == "Contract review"
    assert str(sent[0]["question_url"]).endswith(f"/ask/{fields['question_id']}")
    assert agent.health.emails_sent == {TEMPLATE_WORKER_ASSIGNMENT: 1, TEMPLATE_ADMIN_COPY: 1}
    assert sent[1]["template"] == TEMPLATE_ADMIN_COPY

    with pytest.raises(ValueError):
        await agent._handle_payment_approved(_fields(scope_type="team"))


@pytest.mark.asyncio
async def test_resolve_recipients_for_org_payment(
    session_factory, world, monkeypatch: pytest.MonkeyPatch  # noqa: ANN001
) -> None:
    from credit_engine.agents import notification_service

    worker_id = uuid4()
    co_owner_id = uuid4()
    async with session_factory() as session:
        question = await session.get(Question, world.question_id)
        question.assigned_to = worker_id
        session.add_all(
            [
                Profile(id=worker_id, email="worker@example.com"),
                Profile(id=world.user_id, email="payer@example.com"),
                Profile(id=co_owner_id, email="co-owner@example.com"),
                OrganizationMember(org_id=world.org_id, user_id=co_owner_id, org_role="owner"),
            ]
        )
        await session.commit()

    monkeypatch.setattr(notification_service.settings, "payment_admin_emails_csv", "ops@example.com")
    agent = NotificationAgent(redis_client=_Redis(), session_factory=session_factory)  # type: ignore[arg-type]

    recipients, title = await agent._resolve_recipients(
        world.question_id,
        "org",
        world.org_id,
        actor_id=str(world.user_id),
    )

    assert title == "Contract review"
    assert recipients == [
        Recipient(email="worker@example.com", template=TEMPLATE_WORKER_ASSIGNMENT),
        Recipient(email="co-owner@example.com", template=TEMPLATE_ORG_OWNER_NOTICE),
        Recipient(email="ops@example.com", template=TEMPLATE_ADMIN_COPY),
    ]


@pytest.mark.asyncio
async def test_process_event_routes_org_shortfall() -> None:
    fake_redis = _Redis()
    agent = NotificationAgent(redis_client=fake_redis)  # type: ignore[arg-type]
    handled: list[dict[str, str]] = []

    async def _handle(fields: dict[str, str]) -> None:
        handled.append(fields)

    agent._handle_org_credits_insufficient = _handle  # type: ignore[method-assign]
    fields = {"event_type": "org.credits_insufficient", "question_id": str(uuid4()), "org_id": str(uuid4())}
    await agent._process_event("payments:events", "4-0", fields)

    assert handled == [fields]
    assert agent.health.events["org.credits_insufficient"].processed == 1
    assert fake_redis.failed == []
    assert len(fake_redis.acks) == 1


@pytest.mark.asyncio
async def test_org_shortfall_mails_every_active_owner(session_factory, world) -> None:  # noqa: ANN001
    co_owner_id = uuid4()
    retired_owner_id = uuid4()
    async with session_factory() as session:
        session.add_all(
            [
                Profile(id=world.user_id, email="payer@example.com", full_name="Ayse Yilmaz"),
                Profile(id=co_owner_id, email="co-owner@example.com"),
                Profile(id=retired_owner_id, email="retired@example.com"),
                OrganizationMember(org_id=world.org_id, user_id=co_owner_id, org_role="owner"),
                OrganizationMember(
                    org_id=world.org_id,
                    user_id=retired_owner_id,
                    org_role="owner",
                    status="inactive",
                ),
            ]
        )
        await session.commit()

    sent: list[dict[str, object]] = []

    async def _dispatch(payload: dict[str, object]) -> None:
        sent.append(payload)

    agent = NotificationAgent(
        redis_client=_Redis(),  # type: ignore[arg-type]
        dispatcher=SimpleNamespace(dispatch=_dispatch),  # type: ignore[arg-type]
        session_factory=session_factory,
    )
    await agent._handle_org_credits_insufficient(
        {
            "event_type": "org.credits_insufficient",
            "question_id": str(world.question_id),
            "org_id": str(world.org_id),
            "actor_id": str(world.user_id),
            "required_credits": "80",
            "balance": "50",
        }
    )

    assert sorted(payload["to"] for payload in sent) == ["co-owner@example.com", "payer@example.com"]
    assert {payload["template"] for payload in sent} == {TEMPLATE_ORG_CREDITS_INSUFFICIENT}
    assert sent[0]["question_title"] == "Contract review"
    assert sent[0]["requester_name"] == "Ayse Yilmaz"
    assert str(sent[0]["question_url"]).endswith(f"/ask/{world.question_id}")
    assert str(sent[0]["subscription_url"]).endswith("/dashboard/subscription")
    assert sent[0]["required_credits"] == "80"
    assert agent.health.emails_sent == {TEMPLATE_ORG_CREDITS_INSUFFICIENT: 2}


@pytest.mark.asyncio
async def test_org_shortfall_without_owner_address_fails(session_factory, world) -> None:  # noqa: ANN001
    agent = NotificationAgent(redis_client=_Redis(), session_factory=session_factory)  # type: ignore[arg-type]

    with pytest.raises(ValueError):
        await agent._handle_org_credits_insufficient(
            {"question_id": str(world.question_id), "org_id": str(world.org_id)}
        )
    with pytest.raises(ValueError):
        await agent._handle_org_credits_insufficient({"question_id": str(world.question_id)})
