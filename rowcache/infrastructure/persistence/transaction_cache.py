"""Cache writes bound to the session's transaction.

Nothing read inside a transaction that has written an entity reaches the
cache before the commit: such reads skip the cache and their records are
stored on commit. Keys invalidated during the transaction are deleted a
second time on commit, so a row another session re-cached in between is
dropped. A rollback discards everything queued.

Session events are synchronous; the queued cache calls run on commit
through SQLAlchemy's greenlet bridge (AsyncSession.commit).
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, SessionTransaction
from sqlalchemy.util import await_only

from rowcache.application.services.cache_orchestrator import CacheOrchestrator
from rowcache.domain.entities.declaration import CacheableEntity
from rowcache.domain.exceptions import CacheStoreException

logger = logging.getLogger(__name__)

SESSION_INFO_KEY = "rowcache.transaction_cache"

_REMEMBER = "remember"
_FORGET = "forget"


class TransactionCache:
    """Per-session queue of cache writes that wait for the commit.

    Obtain one with for_session(); it registers its session event
    listeners once and is shared by every repository on that session.
    Flushes that happen before it exists are not seen.
    """

    def __init__(self, session: Session, orchestrator: CacheOrchestrator) -> None:
        self.session = session
        self.orchestrator = orchestrator
        self._written: set[str] = set()
        self._pending: list[tuple[str, Any, Any]] = []
        event.listen(session, "after_flush", self._after_flush)
        event.listen(session, "after_commit", self._after_commit)
        event.listen(session, "after_soft_rollback", self._after_soft_rollback)
        event.listen(session, "after_transaction_end", self._after_transaction_end)

    @classmethod
    def for_session(cls, db: AsyncSession, orchestrator: CacheOrchestrator) -> "TransactionCache":
        """Return the session's queue for this orchestrator, creating it once."""
        queues = db.info.setdefault(SESSION_INFO_KEY, {})
        queue = queues.get(id(orchestrator))
        if queue is None:
            queue = cls(db.sync_session, orchestrator)
            queues[id(orchestrator)] = queue
        return queue

    def has_uncommitted_writes(self, model: type) -> bool:
        """True when the open transaction flushed or holds pending changes to model."""
        if isinstance(model, CacheableEntity) and model.entity_name() in self._written:
            return True
        session = self.session
        return any(
            isinstance(obj, model) for obj in (*session.new, *session.dirty, *session.deleted)
        )

    def remember_after_commit(
        self, entity: CacheableEntity, records: Iterable[Mapping[str, Any]]
    ) -> None:
        self._pending.extend((_REMEMBER, entity, dict(record)) for record in records)

    def forget_after_commit(self, keys: Iterable[str]) -> None:
        self._pending.extend((_FORGET, None, key) for key in keys)

    def _after_flush(self, session: Session, flush_context: Any) -> None:
        touched = {
            type(obj).entity_name()
            for obj in (*session.new, *session.dirty, *session.deleted)
            if isinstance(type(obj), CacheableEntity)
        }
        if not touched:
            return
        self._written |= touched
        # Records queued before this flush may no longer match the rows.
        self._pending = [
            item
            for item in self._pending
            if not (item[0] == _REMEMBER and item[1].entity_name() in touched)
        ]

    def _after_commit(self, session: Session) -> None:
        pending, self._pending = self._pending, []
        if pending:
            await_only(self._apply(pending))

    def _after_soft_rollback(self, session: Session, previous_transaction: SessionTransaction) -> None:
        self._pending = [item for item in self._pending if item[0] == _FORGET]

    def _after_transaction_end(self, session: Session, transaction: SessionTransaction) -> None:
        if transaction.parent is None:
            self._written.clear()
            self._pending.clear()

    async def _apply(self, pending: list[tuple[str, Any, Any]]) -> None:
        stored = forgotten = 0
        for operation, entity, payload in pending:
            try:
                if operation == _REMEMBER:
                    stored += await self.orchestrator.remember(entity, payload)
                else:
                    forgotten += await self.orchestrator.forget_key(payload)
            except CacheStoreException:
                logger.warning("Cache %s after commit failed", operation, exc_info=True)
        logger.debug("After commit: stored %d record(s), deleted %d key(s)", stored, forgotten)
