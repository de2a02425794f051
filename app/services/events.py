"""
Domain events published inside a unit of work.

Listeners run before commit, in the same transaction as the state change
that produced the event. They are not notifications: user-visible messages
go through the outbox.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional


class EventKind(str, enum.Enum):
    CHECKIN_APPLIED      = "CheckInApplied"
    JOURNAL_CREATED      = "JournalCreated"
    RECOGNITION_SENT     = "RecognitionSent"
    REDEMPTION_COMPLETED = "RedemptionCompleted"
    SURVEY_COMPLETED     = "SurveyCompleted"


@dataclass(frozen=True)
class DomainEvent:
    kind: EventKind
    user_id: str
    reference: Optional[str] = None
    payload: dict[str, Any] = field(default_factory=dict)
