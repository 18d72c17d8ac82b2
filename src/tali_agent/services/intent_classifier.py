"""Intent classifier — async HTTP client for a LUIS-style prediction endpoint.

In production ``endpoint_url`` points at the hosted language model
(``.../luis/v2.0/apps/<app-id>``); for local runs it points at the
co-located mock at ``/external/v1/luis/predict``.
"""

from __future__ import annotations

import logging

import httpx

from tali_agent.agents.state import IntentLabel
from tali_agent.config import settings
from tali_agent.errors import ServiceLookupError

logger = logging.getLogger(__name__)


class IntentClassifier:
    """Maps an utterance onto one :class:`IntentLabel`."""

    def __init__(
        self,
        endpoint_url: str | None = None,
        subscription_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = endpoint_url or settings.intent_api_url
        self._key = settings.intent_api_key if subscription_key is None else subscription_key
        self._transport = transport

    async def classify(self, text: str) -> IntentLabel:
        """Return the top-scoring intent for *text*.

        Labels outside the vocabulary come back as ``Unrecognized``.
        Raises :class:`ServiceLookupError` if the endpoint can't be used.
        """
        params = {
            "q": text,
            "timezoneOffset": "0",
            "verbose": "false",
            "spellCheck": "false",
            "staging": "false",
        }
        headers = {"Ocp-Apim-Subscription-Key": self._key} if self._key else {}
        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=settings.http_timeout_seconds
            ) as client:
                resp = await client.get(self._url, params=params, headers=headers)
        except httpx.HTTPError as exc:
            logger.exception("Intent request error: %s", exc)
            raise ServiceLookupError("Intent classifier unreachable") from exc

        if resp.status_code != 200:
            logger.error("Intent request failed: %s %s", resp.status_code, resp.text)
            raise ServiceLookupError(f"Intent classifier returned {resp.status_code}")

        try:
            raw = resp.json()["topScoringIntent"]["intent"]
        except (ValueError, KeyError, TypeError) as exc:
            logger.error("Malformed intent response: %s", resp.text)
            raise ServiceLookupError("Malformed intent classifier response") from exc

        label = IntentLabel.from_raw(raw)
        logger.info("Classified %r as %s (raw %r)", text[:80], label.value, raw)
        return label
