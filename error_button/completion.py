"""Chat-completion transport used to explain errors."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import requests

from .config import DEFAULT_ENDPOINT, DEFAULT_MODEL
from .errors import CompletionError

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


def build_payload(prompt: str, *, model: str = DEFAULT_MODEL) -> dict[str, Any]:
    return {
        "model": model,
        "messages": [
            {"role": "user", "content": prompt},
        ],
    }


def build_headers(credential: str) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {credential}",
    }


def extract_content(body: Any) -> str:
    """Return ``choices[0].message.content`` from a response body."""
    try:
        content = body["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise CompletionError("Malformed completion response") from exc
    if content is None:
        raise CompletionError("Malformed completion response")
    return str(content)


class CompletionClient:
    """Posts prompts to an OpenAI-compatible chat-completion endpoint.

    ``complete`` is a coroutine. The blocking ``requests`` call runs in a
    worker thread so the kernel's event loop keeps serving widget events
    while a request is in flight.

    Parameters
    ----------
    endpoint : str
        Fallback URL when the call does not pass one.
    model : str
        Fallback model name when the call does not pass one.
    session : requests.Session, optional
        Session used for posting; a module-level ``requests.post`` is used
        when omitted.
    """

    def __init__(
        self,
        *,
        endpoint: str = DEFAULT_ENDPOINT,
        model: str = DEFAULT_MODEL,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = endpoint
        self.model = model
        self._session = session

    def _post(self, url: str, payload: dict[str, Any], headers: dict[str, str]) -> requests.Response:
        if self._session is not None:
            return self._session.post(url, json=payload, headers=headers)
        return requests.post(url, json=payload, headers=headers)

    def complete_sync(
        self,
        prompt: str,
        credential: str,
        *,
        model: Optional[str] = None,
        endpoint: Optional[str] = None,
    ) -> str:
        """Blocking request; raises :class:`CompletionError` on any failure."""
        url = endpoint or self.endpoint
        payload = build_payload(prompt, model=model or self.model)
        try:
            response = self._post(url, payload, build_headers(credential))
        except requests.RequestException as exc:
            logger.error("completion request to %s failed: %s", url, exc)
            raise CompletionError(str(exc) or exc.__class__.__name__) from exc

        if not 200 <= response.status_code < 300:
            logger.error("completion request to %s returned status %s", url, response.status_code)
            raise CompletionError(
                f"Request failed with status code {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise CompletionError("Malformed completion response") from exc
        return extract_content(body)

    async def complete(
        self,
        prompt: str,
        credential: str,
        *,
        model: Optional[str] = None,
        endpoint: Optional[str] = None,
    ) -> str:
        return await asyncio.to_thread(
            self.complete_sync, prompt, credential, model=model, endpoint=endpoint
        )
