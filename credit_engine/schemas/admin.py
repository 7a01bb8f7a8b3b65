from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel


class SystemHealthResponse(BaseModel):
    status: str
    database_ok: bool
    redis_ok: bool
    total_ledger_entries: int
    pending_questions: int


class ReconcileResponse(BaseModel):
    org_id: UUID
    cached_before: int
    balance: int
    drift: int
