"""Persistent anti-replay store on SQLAlchemy async.

One row per consumed signature, recording the call that consumed it.
The primary key on ``signature`` makes the database the arbiter between
processes; within a process a lock keeps check-then-insert from racing
itself.
"""

from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, String, Text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import StaticPool

from tollgate.core.errors import StorageError
from tollgate.payments.replay import Claim

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from tollgate.invocation.outcome import CallId


def _consumed_now() -> datetime:
    return datetime.now(UTC)


class ReplayBase(DeclarativeBase):
    """Declarative base for the replay tables."""


class ConsumedProof(ReplayBase):
    """A payment signature and the call that consumed it."""

    __tablename__ = "consumed_proofs"

    signature: Mapped[str] = mapped_column(String(255), primary_key=True)
    # JSON-encoded so integer and string call ids round-trip
    call_id: Mapped[str] = mapped_column(Text, nullable=False)
    # sha256 of tool name and business arguments
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    consumed_at: Mapped[datetime] = mapped_column(DateTime, default=_consumed_now)


def _sqlite_options(url: URL) -> tuple[URL, dict[str, Any]]:
    """Expand ``~`` in a SQLite path and pick a pool for it.

    File databases get their parent directory created. In-memory databases
    share one connection so every session sees the same table.
    """
    database = url.database or ""
    if database in ("", ":memory:"):
        return url, {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    db_file = Path(database).expanduser()
    db_file.parent.mkdir(parents=True, exist_ok=True)
    return url.set(database=str(db_file)), {}


async def create_replay_engine(
    url: str,
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Open the replay database and create ``consumed_proofs`` if missing."""
    parsed = make_url(url)
    options: dict[str, Any] = {}
    if parsed.get_backend_name() == "sqlite":
        parsed, options = _sqlite_options(parsed)

    engine = create_async_engine(parsed, **options)
    async with engine.begin() as conn:
        await conn.run_sync(ReplayBase.metadata.create_all)
    return async_sessionmaker(engine, expire_on_commit=False), engine


class SqlReplayStore:
    """Replay store persisted in the ``consumed_proofs`` table."""

    def __init__(self, factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = factory
        self._lock = asyncio.Lock()

    async def check_and_set(
        self, signature: str, call_id: CallId, fingerprint: str = ""
    ) -> Claim:
        async with self._lock:
            try:
                async with self._factory() as session, session.begin():
                    existing = await session.get(ConsumedProof, signature)
                    if existing is not None:
                        return _held(existing)
                    session.add(
                        ConsumedProof(
                            signature=signature,
                            call_id=json.dumps(call_id),
                            fingerprint=fingerprint,
                        )
                    )
            except IntegrityError:
                # Another process inserted between our read and write.
                held = await self.claim_of(signature)
                if held is None:
                    msg = f"Lost consumed proof row for {signature}"
                    raise StorageError(msg) from None
                return held
            except SQLAlchemyError as e:
                msg = f"Replay store write failed: {e}"
                raise StorageError(msg) from e
            return Claim(True, call_id, fingerprint)

    async def claim_of(self, signature: str) -> Claim | None:
        try:
            async with self._factory() as session:
                row = await session.get(ConsumedProof, signature)
        except SQLAlchemyError as e:
            msg = f"Replay store read failed: {e}"
            raise StorageError(msg) from e
        return None if row is None else _held(row)


def _held(row: ConsumedProof) -> Claim:
    return Claim(False, json.loads(row.call_id), row.fingerprint)
