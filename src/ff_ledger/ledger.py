"""Ledger: append-only log paired with a current-state snapshot.

One generic implementation, specialized by the wallet (scalar balance per
brand) and the inventory (bucket set per brand/part). The specialization
supplies a store (persistence) and a pure mutation; the Ledger supplies the
discipline:

  1. take the per-key lock (in-process serialization)
  2. load the snapshot with a row lock (cross-process serialization)
  3. run the mutation: snapshot -> (new snapshot, entry draft)
  4. check invariants on the new snapshot
  5. persist snapshot + append entry, commit as ONE transaction

Any failure rolls the transaction back: either both snapshot and entry
exist, or neither does.
"""

import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import Generic, Protocol, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from src.ff_common.errors import InvariantViolationError
from src.ff_ledger.locks import KeyedLocks, locks_for

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
S = TypeVar("S")  # snapshot
D = TypeVar("D")  # entry draft (what the mutation wants logged)
E = TypeVar("E")  # persisted entry


class LedgerStore(Protocol[K, S, D, E]):
    async def get(self, db: AsyncSession, key: K) -> S | None: ...

    async def lock(self, db: AsyncSession, key: K) -> S: ...

    async def save(self, db: AsyncSession, previous: S, current: S) -> S: ...

    async def append(self, db: AsyncSession, draft: D, snapshot: S) -> E: ...


Mutation = Callable[[S], tuple[S, D]]
InvariantCheck = Callable[[S], list[str]]
Guard = Callable[[], Awaitable[None]]


class Ledger(Generic[K, S, D, E]):
    def __init__(
        self,
        name: str,
        store: LedgerStore[K, S, D, E],
        check: InvariantCheck[S],
        locks: KeyedLocks | None = None,
    ) -> None:
        self._name = name
        self._store = store
        self._check = check
        self._locks = locks if locks is not None else locks_for(name)

    async def query(self, db: AsyncSession, key: K) -> S | None:
        """Snapshot read. Lock-free, advisory only."""
        return await self._store.get(db, key)

    async def apply(
        self,
        db: AsyncSession,
        key: K,
        mutation: Mutation[S, D],
        guard: Guard | None = None,
    ) -> tuple[S, E]:
        """Apply one mutation atomically. Domain errors raised by `guard` or
        `mutation` propagate unchanged after rollback."""
        async with self._locks.hold(key):
            try:
                if guard is not None:
                    await guard()
                current = await self._store.lock(db, key)
                updated, draft = mutation(current)
                violations = self._check(updated)
                if violations:
                    logger.critical(
                        "%s ledger invariant violated for %s: %s",
                        self._name, key, "; ".join(violations),
                    )
                    raise InvariantViolationError("; ".join(violations))
                saved = await self._store.save(db, current, updated)
                entry = await self._store.append(db, draft, saved)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        logger.debug("%s ledger applied for %s", self._name, key)
        return saved, entry
