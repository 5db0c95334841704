from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional


@dataclass(frozen=True)
class Session:
	"""Authentication state for one browser.

	``is_authenticated`` is derived from the access token so the two can
	never disagree.
	"""

	access_token: Optional[str] = None
	refresh_token: Optional[str] = None
	access_token_expires_at: Optional[float] = None
	username: Optional[str] = None

	@property
	def is_authenticated(self) -> bool:
		return bool(self.access_token)

	def needs_refresh(self, now: float, skew: float = 0) -> bool:
		"""True once ``now`` is within ``skew`` seconds of the token expiry."""
		if self.access_token_expires_at is None:
			return False
		return now >= self.access_token_expires_at - skew

	def with_tokens(
		self,
		access_token: str,
		refresh_token: Optional[str],
		expires_at: Optional[float],
	) -> "Session":
		return replace(
			self,
			access_token=access_token,
			refresh_token=refresh_token,
			access_token_expires_at=expires_at,
		)

	def with_username(self, username: Optional[str]) -> "Session":
		return replace(self, username=username)


class SessionStore:
	"""Abstract interface for storing sessions server-side."""

	def get(self, sid: str) -> Session:  # pragma: no cover - interface
		raise NotImplementedError

	def save(self, sid: str, session: Session) -> None:  # pragma: no cover - interface
		raise NotImplementedError

	def save_if_current(
		self,
		sid: str,
		expected_access_token: Optional[str],
		session: Session,
	) -> bool:  # pragma: no cover - interface
		"""Store ``session`` only while the stored access token is still ``expected_access_token``."""
		raise NotImplementedError

	def clear(self, sid: str) -> None:  # pragma: no cover - interface
		raise NotImplementedError


class InMemorySessionStore(SessionStore):
	"""Lock-guarded in-memory session store.

	Sessions are keyed by the random id kept in the browser's signed
	cookie. ``Session`` is immutable: readers get a snapshot and writers
	swap in a whole new record, so the lock is only held for the dict
	access and never across calls to X. Records untouched for
	``idle_ttl`` seconds are dropped. Not suitable for multi-process
	deployments; everything is lost on restart.
	"""

	def __init__(
		self,
		idle_ttl: Optional[float] = None,
		clock: Callable[[], float] = time.monotonic,
	) -> None:
		self._idle_ttl = idle_ttl
		self._clock = clock
		self._lock = threading.Lock()
		self._sessions: dict[str, tuple[Session, float]] = {}

	def get(self, sid: str) -> Session:
		with self._lock:
			entry = self._live_entry(sid)
			if entry is None:
				return Session()
			self._sessions[sid] = (entry[0], self._clock())
			return entry[0]

	def save(self, sid: str, session: Session) -> None:
		with self._lock:
			self._evict_expired()
			self._sessions[sid] = (session, self._clock())

	def save_if_current(
		self,
		sid: str,
		expected_access_token: Optional[str],
		session: Session,
	) -> bool:
		with self._lock:
			entry = self._live_entry(sid)
			if entry is None or entry[0].access_token != expected_access_token:
				return False
			self._sessions[sid] = (session, self._clock())
			return True

	def clear(self, sid: str) -> None:
		with self._lock:
			self._sessions.pop(sid, None)

	def __len__(self) -> int:
		with self._lock:
			self._evict_expired()
			return len(self._sessions)

	def _expired(self, touched_at: float) -> bool:
		return self._idle_ttl is not None and (self._clock() - touched_at) > self._idle_ttl

	def _live_entry(self, sid: str) -> Optional[tuple[Session, float]]:
		# Caller holds the lock.
		entry = self._sessions.get(sid)
		if entry is not None and self._expired(entry[1]):
			del self._sessions[sid]
			return None
		return entry

	def _evict_expired(self) -> None:
		# Caller holds the lock.
		expired = [sid for sid, (_, touched_at) in self._sessions.items() if self._expired(touched_at)]
		for sid in expired:
			del self._sessions[sid]
