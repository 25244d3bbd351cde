"""Anti-replay store and result cache.

The store records which call consumed each payment signature, and what
that call asked for. The invoker talks to it only through
``check_and_set`` / ``claim_of`` so an in-memory store and a persistent
one are interchangeable.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable

    from tollgate.invocation.outcome import CallId, Success


def call_fingerprint(tool_name: str, arguments: dict[str, Any]) -> str:
    """Digest of a call's tool and business arguments.

    Key order does not matter; any change of tool or value does.
    """
    canonical = json.dumps(
        {"tool": tool_name, "arguments": arguments},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class Claim:
    """Result of an atomic check-and-set on a signature."""

    was_new: bool
    owner: CallId
    fingerprint: str = ""

    def matches(self, call_id: CallId, fingerprint: str) -> bool:
        """True when ``call_id`` with ``fingerprint`` is the call holding the proof."""
        return self.owner == call_id and self.fingerprint == fingerprint


@runtime_checkable
class ReplayStore(Protocol):
    """Protocol for consumed-signature stores."""

    async def check_and_set(
        self, signature: str, call_id: CallId, fingerprint: str = ""
    ) -> Claim:
        """Record ``signature`` as consumed by ``call_id`` unless already taken.

        Returns the claim; ``owner`` and ``fingerprint`` describe the call
        that holds the signature after the operation.

        Raises:
            StorageError: If the store cannot be read or written.
        """
        ...

    async def claim_of(self, signature: str) -> Claim | None:
        """Return the existing claim on ``signature``, if any."""
        ...


class InMemoryReplayStore:
    """Process-local store guarded by a single lock."""

    def __init__(self) -> None:
        self._claims: dict[str, Claim] = {}
        self._lock = asyncio.Lock()

    async def check_and_set(
        self, signature: str, call_id: CallId, fingerprint: str = ""
    ) -> Claim:
        async with self._lock:
            held = self._claims.get(signature)
            if held is not None:
                return held
            self._claims[signature] = Claim(False, call_id, fingerprint)
            return Claim(True, call_id, fingerprint)

    async def claim_of(self, signature: str) -> Claim | None:
        async with self._lock:
            return self._claims.get(signature)

    def __len__(self) -> int:
        return len(self._claims)

    def __contains__(self, signature: str) -> bool:
        return signature in self._claims


_CacheKey = tuple[str, "CallId", str]


class ResultCache:
    """Bounded TTL cache of successful outcomes for paid calls.

    Keyed by ``(signature, call_id, fingerprint)`` so only an exact resend
    of a paid call can read it back.
    """

    def __init__(
        self,
        ttl: float = 600.0,
        max_size: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._max_size = max_size
        self._clock = clock
        self._entries: OrderedDict[_CacheKey, tuple[float, Success]] = OrderedDict()

    def get(
        self, signature: str, call_id: CallId, fingerprint: str = ""
    ) -> Success | None:
        key = (signature, call_id, fingerprint)
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, outcome = entry
        if self._clock() - stored_at > self._ttl:
            del self._entries[key]
            return None
        return outcome

    def put(
        self,
        signature: str,
        call_id: CallId,
        outcome: Success,
        fingerprint: str = "",
    ) -> None:
        if self._max_size <= 0 or self._ttl <= 0:
            return
        key = (signature, call_id, fingerprint)
        self._entries[key] = (self._clock(), outcome)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_size:
            self._entries.popitem(last=False)

    def __len__(self) -> int:
        return len(self._entries)
