"""
AI enrichment hook, fired after a check-in commits.

Failures never touch core state: the HTTP client raises
ExternalDependencyError and the unit of work logs it.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

import requests

from app.core.config import Settings
from app.core.errors import ExternalDependencyError

logger = logging.getLogger(__name__)


class EnrichmentClient(Protocol):
    def enrich_check_in(
        self, user_id: str, check_in_id: int, mood: int, feedback: Optional[str]
    ) -> None:
        ...


class NullEnrichmentClient:
    def enrich_check_in(self, user_id, check_in_id, mood, feedback) -> None:
        logger.debug("Enrichment disabled; skipping check-in %s", check_in_id)


class HttpEnrichmentClient:
    def __init__(self, url: str, timeout: float):
        self.url = url
        self.timeout = timeout

    def enrich_check_in(self, user_id, check_in_id, mood, feedback) -> None:
        payload = {
            "user_id": user_id,
            "check_in_id": check_in_id,
            "mood": mood,
            "feedback": feedback,
        }
        try:
            resp = requests.post(self.url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise ExternalDependencyError("ai-enrichment", str(exc)) from exc


def build_enrichment_client(settings: Settings) -> EnrichmentClient:
    if settings.ENABLE_AI_ENRICHMENT and settings.ENRICHMENT_URL:
        return HttpEnrichmentClient(settings.ENRICHMENT_URL, settings.EXTERNAL_TIMEOUT_SECONDS)
    return NullEnrichmentClient()
