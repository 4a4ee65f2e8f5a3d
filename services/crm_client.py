"""
crm_client.py

This module defines the ""AmoCrmClient"" class, which posts text notes into
the timeline of an amoCRM deal (a "lead" in the amoCRM v4 API).

Responsibilities:

1. POST a single `common` note to `/api/v4/leads/{id}/notes` with a static
   long-lived bearer token.

Notes are not deduplicated: calling `add_deal_note` twice with the same
arguments creates two notes. A timeout after amoCRM has already stored the
note therefore leads to a duplicate if the upload is retried.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from domain.errors import CrmError
from logger import get_logger

log = get_logger("CRM Client")


class AmoCrmClient:
    def __init__(self, domain: str, access_token: str, timeout_sec: float = 120.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.domain = domain
        self.access_token = access_token
        self.timeout_sec = timeout_sec
        self._transport = transport

    def notes_url(self, deal_id: str) -> str:
        return f"https://{self.domain}/api/v4/leads/{deal_id}/notes"

    async def add_deal_note(self, deal_id: str, text: str) -> Dict[str, Any]:
        url = self.notes_url(deal_id)
        payload = [{"note_type": "common", "params": {"text": text}}]
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout_sec, transport=self._transport) as client:
                rsp = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            log.error("amoCRM request failed | url=%s | error=%r", url, e)
            raise CrmError(f"amoCRM error: {e}") from e

        if not rsp.is_success:
            log.error("amoCRM note rejected | status=%d | url=%s | body=%r", rsp.status_code, url, rsp.text[:500])
            raise CrmError(f"amoCRM error {rsp.status_code}: {rsp.text}")

        log.info("amoCRM note created | status=%d | deal=%s", rsp.status_code, deal_id)
        try:
            return rsp.json()
        except ValueError:
            return {}
