"""
Engine context & unit of work.

EngineContext bundles the collaborators every core operation needs (session,
clock, settings, aggregate store, outbox, risk classifier, enrichment client)
so nothing reaches for a process-wide singleton.

unit_of_work()
--------------
  body runs              → ledger writes, update_atomically, outbox rows
  drain domain events    → listeners (achievement evaluator) in the same txn
  db.commit()
  post-commit hooks      → external delivery, AI enrichment (failures logged)

On any exception: rollback, drop pending events/hooks/deliveries, re-raise.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Sequence

from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.config import Settings, settings as app_settings
from app.core.errors import ExternalDependencyError
from app.db.base import get_db
from app.services import achievements
from app.services.aggregate_store import AggregateStore
from app.services.channels import DeliveryChannel, build_channels
from app.services.enrichment import EnrichmentClient, build_enrichment_client
from app.services.events import DomainEvent
from app.services.outbox import Outbox
from app.services.risk import HeuristicRiskClassifier, RiskClassifier

logger = logging.getLogger(__name__)

Listener = Callable[["EngineContext", DomainEvent], None]


class EngineContext:
    def __init__(
        self,
        db: Session,
        clock: Clock,
        settings: Settings,
        *,
        channels: Optional[Sequence[DeliveryChannel]] = None,
        risk_classifier: Optional[RiskClassifier] = None,
        enrichment: Optional[EnrichmentClient] = None,
        listeners: Optional[Sequence[Listener]] = None,
    ):
        self.db = db
        self.clock = clock
        self.settings = settings
        self.store = AggregateStore(db, clock, settings)
        self.outbox = Outbox(
            db, clock, settings,
            channels if channels is not None else build_channels(settings),
            after_commit=self.after_commit,
        )
        self.risk_classifier = risk_classifier or HeuristicRiskClassifier()
        self.enrichment = enrichment or build_enrichment_client(settings)
        self.listeners = list(listeners) if listeners is not None else [achievements.on_domain_event]
        self._events: list[DomainEvent] = []
        self._hooks: list[Callable[[], object]] = []

    def publish(self, event: DomainEvent) -> None:
        self._events.append(event)

    def after_commit(self, hook: Callable[[], object]) -> None:
        self._hooks.append(hook)

    def _drain_events(self) -> None:
        while self._events:
            event = self._events.pop(0)
            for listener in self.listeners:
                listener(self, event)

    def _reset(self) -> None:
        self._events.clear()
        self._hooks.clear()
        self.outbox.discard()

    @contextmanager
    def unit_of_work(self) -> Iterator["EngineContext"]:
        try:
            yield self
            self._drain_events()
            self.db.commit()
        except Exception:
            self.db.rollback()
            self._reset()
            raise

        hooks, self._hooks = self._hooks, []
        for hook in hooks:
            try:
                hook()
            except ExternalDependencyError as exc:
                logger.warning("Post-commit hook failed: %s", exc.message)
            except Exception:
                self.db.rollback()
                logger.exception("Post-commit hook %r raised", hook)


def build_context(db: Session, clock: Clock, settings: Settings = app_settings, **kwargs) -> EngineContext:
    return EngineContext(db, clock, settings, **kwargs)


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------

_system_clock = Clock()


def get_clock() -> Clock:
    return _system_clock


def get_channels() -> list[DeliveryChannel]:
    return build_channels(app_settings)


def get_engine(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    channels: list[DeliveryChannel] = Depends(get_channels),
) -> EngineContext:
    return build_context(db, clock, app_settings, channels=channels)
