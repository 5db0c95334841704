"""PKCE helpers and the store that holds verifiers between login and callback."""

from __future__ import annotations

import base64
import hashlib
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(frozen=True)
class PKCEPair:
    verifier: str
    challenge: str


def generate_code_verifier() -> str:
    random_bytes = secrets.token_bytes(64)
    return base64.urlsafe_b64encode(random_bytes).decode("ascii").rstrip("=")


def generate_code_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def generate_pkce() -> PKCEPair:
    verifier = generate_code_verifier()
    return PKCEPair(verifier=verifier, challenge=generate_code_challenge(verifier))


def generate_state() -> str:
    """Anti-forgery token sent as ``state``; also keys the pending verifier."""
    return secrets.token_urlsafe(32)


@dataclass
class _PendingVerifier:
    verifier: str
    created_at: float


class PendingVerifierStore:
    """In-memory mapping of login ``state`` to its PKCE verifier.

    Each login gets its own entry, so two browsers logging in at the same
    time never overwrite each other's verifier. Entries are handed out at
    most once and expire after ``ttl`` seconds.
    """

    def __init__(self, ttl: float = 600, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: dict[str, _PendingVerifier] = {}

    def put(self, state: str, verifier: str) -> None:
        with self._lock:
            self._evict_expired()
            self._pending[state] = _PendingVerifier(verifier, self._clock())

    def pop(self, state: Optional[str]) -> Optional[str]:
        """Remove and return the verifier for ``state``, or None if absent or expired."""
        if not state:
            return None
        with self._lock:
            entry = self._pending.pop(state, None)
        if entry is None or self._expired(entry):
            return None
        return entry.verifier

    def discard(self, state: Optional[str]) -> None:
        if not state:
            return
        with self._lock:
            self._pending.pop(state, None)

    def __len__(self) -> int:
        with self._lock:
            self._evict_expired()
            return len(self._pending)

    def _expired(self, entry: _PendingVerifier) -> bool:
        return (self._clock() - entry.created_at) > self._ttl

    def _evict_expired(self) -> None:
        # Caller holds the lock.
        expired = [state for state, entry in self._pending.items() if self._expired(entry)]
        for state in expired:
            del self._pending[state]
