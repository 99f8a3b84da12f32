"""
Workflow Store Module
=====================

The durable per-URL queue that drives ingestion. Entries move
``pending -> in_progress -> {done, error}``; only a reset moves them back
to ``pending``.

The pipeline and the gap detector receive a store instance; nothing in
this module is process-global. ``SqlWorkflowStore`` persists to the
``workflow_entries`` table, ``InMemoryWorkflowStore`` backs tests and
dry runs.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import UTC, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from lure_catalog.core.enums import WorkflowStatus
from lure_catalog.core.schema import WorkflowEntry
from lure_catalog.db.repositories import WorkflowRepository

logger = logging.getLogger(__name__)

DEFAULT_NOTE_MAX_LENGTH = 500

RESETTABLE = (WorkflowStatus.DONE,)


def truncate_note(note: str, max_length: int = DEFAULT_NOTE_MAX_LENGTH) -> str:
    """Bound a free-text note to ``max_length`` characters."""
    return note if len(note) <= max_length else note[:max_length]


class WorkflowStore(ABC):
    """
    Interface to the workflow queue.

    Claims are exclusive: ``claim`` succeeds for exactly one caller while
    the entry is pending.
    """

    def __init__(self, note_max_length: int = DEFAULT_NOTE_MAX_LENGTH) -> None:
        self.note_max_length = note_max_length

    @abstractmethod
    def list_entries(
        self,
        source_id: str | None = None,
        status: WorkflowStatus | None = None,
    ) -> list[WorkflowEntry]:
        """Entries filtered by source and status, oldest first."""
        pass

    def list_pending(self, source_id: str | None = None) -> list[WorkflowEntry]:
        return self.list_entries(source_id, WorkflowStatus.PENDING)

    @abstractmethod
    def _transition(
        self,
        entry: WorkflowEntry,
        to_status: WorkflowStatus,
        from_statuses: Iterable[WorkflowStatus] | None,
        note: str | None,
    ) -> bool:
        pass

    def claim(self, entry: WorkflowEntry) -> bool:
        """
        Move a pending entry to in_progress.

        Returns:
            True if this caller now owns the entry
        """
        claimed = self._transition(entry, WorkflowStatus.IN_PROGRESS, (WorkflowStatus.PENDING,), None)
        if claimed:
            entry.status = WorkflowStatus.IN_PROGRESS
        return claimed

    def complete(self, entry: WorkflowEntry, note: str = "") -> None:
        """Mark an entry done."""
        note = truncate_note(note, self.note_max_length)
        self._transition(entry, WorkflowStatus.DONE, None, note)
        entry.status = WorkflowStatus.DONE
        entry.note = note

    def fail(self, entry: WorkflowEntry, note: str) -> None:
        """Mark an entry as errored with a bounded note."""
        note = truncate_note(note, self.note_max_length)
        self._transition(entry, WorkflowStatus.ERROR, None, note)
        entry.status = WorkflowStatus.ERROR
        entry.note = note

    def release(self, entry: WorkflowEntry) -> bool:
        """Return a claimed but unfinished entry to pending."""
        released = self._transition(entry, WorkflowStatus.PENDING, (WorkflowStatus.IN_PROGRESS,), None)
        if released:
            entry.status = WorkflowStatus.PENDING
        return released

    def reset(
        self,
        entries: Iterable[WorkflowEntry],
        note: str = "",
        from_statuses: Iterable[WorkflowStatus] = RESETTABLE,
    ) -> int:
        """
        Move entries back to pending.

        Args:
            entries: Entries to reset
            note: Replacement note (cleared by default)
            from_statuses: Statuses an entry must be in to be reset

        Returns:
            Number of entries reset
        """
        allowed = tuple(from_statuses)
        count = 0
        for entry in entries:
            if self._transition(entry, WorkflowStatus.PENDING, allowed, note):
                entry.status = WorkflowStatus.PENDING
                entry.note = note
                count += 1
        return count

    @abstractmethod
    def enqueue(self, url: str, source_id: str, name: str = "", note: str = "") -> WorkflowEntry | None:
        """
        Add a new pending entry.

        Returns:
            The new entry, or None if the URL is already queued
        """
        pass

    @abstractmethod
    def known_urls(self, source_id: str | None = None) -> set[str]:
        """Every URL in the queue, optionally for one source."""
        pass

    def counts(self, source_id: str | None = None) -> dict[WorkflowStatus, int]:
        counts = {status: 0 for status in WorkflowStatus}
        for entry in self.list_entries(source_id):
            counts[entry.status] += 1
        return counts


# ============================================================================
# SQL
# ============================================================================


class SqlWorkflowStore(WorkflowStore):
    """Workflow store on the ``workflow_entries`` table; one session per call."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        note_max_length: int = DEFAULT_NOTE_MAX_LENGTH,
    ) -> None:
        super().__init__(note_max_length)
        self._session_factory = session_factory

    def list_entries(
        self,
        source_id: str | None = None,
        status: WorkflowStatus | None = None,
    ) -> list[WorkflowEntry]:
        with self._session_factory() as session:
            return WorkflowRepository(session).list_all(source_id, status)

    def _transition(
        self,
        entry: WorkflowEntry,
        to_status: WorkflowStatus,
        from_statuses: Iterable[WorkflowStatus] | None,
        note: str | None,
    ) -> bool:
        with self._session_factory() as session:
            changed = WorkflowRepository(session).transition(entry.id, to_status, from_statuses, note)
            session.commit()
        if not changed:
            logger.debug(f"Entry {entry.id} not moved to {to_status.value}")
        return changed

    def enqueue(self, url: str, source_id: str, name: str = "", note: str = "") -> WorkflowEntry | None:
        with self._session_factory() as session:
            repo = WorkflowRepository(session)
            if repo.get_by_url(url) is not None:
                return None
            try:
                entry = repo.create(WorkflowEntry(url=url, source_id=source_id, name=name, note=note))
                session.commit()
            except IntegrityError:
                # Enqueued concurrently by another run
                session.rollback()
                return None
        return entry

    def known_urls(self, source_id: str | None = None) -> set[str]:
        with self._session_factory() as session:
            return WorkflowRepository(session).all_urls(source_id)

    def counts(self, source_id: str | None = None) -> dict[WorkflowStatus, int]:
        with self._session_factory() as session:
            return WorkflowRepository(session).count_by_status(source_id)

    def get(self, entry_id: str) -> WorkflowEntry | None:
        with self._session_factory() as session:
            return WorkflowRepository(session).get_by_id(entry_id)


# ============================================================================
# In-memory
# ============================================================================


class InMemoryWorkflowStore(WorkflowStore):
    """Dict-backed workflow store for tests and dry runs."""

    def __init__(
        self,
        entries: Iterable[WorkflowEntry] = (),
        note_max_length: int = DEFAULT_NOTE_MAX_LENGTH,
    ) -> None:
        super().__init__(note_max_length)
        self._entries: dict[str, WorkflowEntry] = {}
        for entry in entries:
            self._entries[entry.id] = entry.model_copy()

    def list_entries(
        self,
        source_id: str | None = None,
        status: WorkflowStatus | None = None,
    ) -> list[WorkflowEntry]:
        entries = [
            entry.model_copy()
            for entry in self._entries.values()
            if (source_id is None or entry.source_id == source_id) and (status is None or entry.status == status)
        ]
        entries.sort(key=lambda entry: entry.created_at)
        return entries

    def _transition(
        self,
        entry: WorkflowEntry,
        to_status: WorkflowStatus,
        from_statuses: Iterable[WorkflowStatus] | None,
        note: str | None,
    ) -> bool:
        stored = self._entries.get(entry.id)
        if stored is None:
            return False
        if from_statuses is not None and stored.status not in tuple(from_statuses):
            return False
        stored.status = to_status
        if note is not None:
            stored.note = note
        stored.updated_at = datetime.now(UTC)
        return True

    def enqueue(self, url: str, source_id: str, name: str = "", note: str = "") -> WorkflowEntry | None:
        if any(entry.url == url for entry in self._entries.values()):
            return None
        entry = WorkflowEntry(url=url, source_id=source_id, name=name, note=note)
        self._entries[entry.id] = entry
        return entry.model_copy()

    def known_urls(self, source_id: str | None = None) -> set[str]:
        return {
            entry.url for entry in self._entries.values() if source_id is None or entry.source_id == source_id
        }

    def get(self, entry_id: str) -> WorkflowEntry | None:
        entry = self._entries.get(entry_id)
        return entry.model_copy() if entry else None
