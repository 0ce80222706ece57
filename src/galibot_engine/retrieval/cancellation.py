# galibot_engine/retrieval/cancellation.py
"""Cooperative cancellation shared by every step of one retrieval."""

from __future__ import annotations

import asyncio


class OperationCancelled(Exception):
    """Raised at a yield point once the token has been cancelled."""


class CancellationToken:
    """
    A one-shot cancellation signal.

    The deadline owner calls ``cancel()``; workers call
    ``raise_if_cancelled()`` between steps so they stop early instead of
    running to completion for a result nobody will read.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled(self.reason or "cancelled")
