"""
Unit of work: one atomic batch of typed write groups.

Callers collect every row they changed under a kind label, then commit
once. Either all groups land or none do; a rejected write is rolled back
and reported as a single StorageError with the driver error attached.

A batch may also carry guarded updates: an UPDATE whose WHERE clause
restates the precondition the caller checked when it read the row. If
another transaction changed the row in between, the update matches
nothing and the whole batch is abandoned with the caller's error.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from core.exceptions import StorageError

logger = logging.getLogger(__name__)

UPSERT = "upsert"
DELETE = "delete"


@dataclass
class WriteGroup:
    kind: str
    action: str
    records: List[Any] = field(default_factory=list)


@dataclass
class GuardedUpdate:
    kind: str
    query: Query
    values: Dict[Any, Any]
    on_stale: Callable[[], Exception]


class UnitOfWork:
    """
    Collects write groups against one SQLAlchemy session.

    Usage:
        uow = UnitOfWork(db)
        uow.add("session_sets", skipped_sets)
        uow.add("progressions", progressions)
        uow.update_where("sessions", guarded_query, {"status": "COMPLETED"}, on_stale=make_error)
        uow.commit()
    """

    def __init__(self, db: Session):
        self.db = db
        self.groups: List[WriteGroup] = []
        self.guards: List[GuardedUpdate] = []
        self.committed = False

    def add(self, kind: str, records: Iterable[Any]) -> "UnitOfWork":
        """Queue new or modified rows."""
        self.groups.append(WriteGroup(kind=kind, action=UPSERT, records=list(records)))
        return self

    def delete(self, kind: str, records: Iterable[Any]) -> "UnitOfWork":
        """Queue rows for removal."""
        self.groups.append(WriteGroup(kind=kind, action=DELETE, records=list(records)))
        return self

    def update_where(
        self,
        kind: str,
        query: Query,
        values: Dict[Any, Any],
        on_stale: Callable[[], Exception],
    ) -> "UnitOfWork":
        """
        Queue a conditional UPDATE that must match at least one row.

        on_stale builds the exception raised when it matches none.
        """
        self.guards.append(GuardedUpdate(kind=kind, query=query, values=values, on_stale=on_stale))
        return self

    def _summary(self) -> List[str]:
        return [f"{g.action}:{g.kind}:{len(g.records)}" for g in self.groups] + [
            f"guarded:{g.kind}" for g in self.guards
        ]

    def commit(self) -> None:
        """
        Apply every group in order inside one transaction.

        Raises:
            StorageError: the database rejected any part of the batch.
                Nothing from this batch is persisted.
            Exception from a guard's on_stale: a guarded update matched no
                row. Nothing from this batch is persisted.
        """
        if self.committed:
            raise RuntimeError("Unit of work already committed")

        stale = None
        try:
            for group in self.groups:
                if group.action == DELETE:
                    for record in group.records:
                        self.db.delete(record)
                else:
                    self.db.add_all(group.records)
            for guard in self.guards:
                matched = guard.query.update(guard.values, synchronize_session="evaluate")
                if matched == 0:
                    stale = guard
                    break
            if stale is None:
                self.db.flush()
                self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Atomic write rejected, rolled back",
                exc_info=True,
                extra={"extra_fields": {"groups": self._summary()}},
            )
            raise StorageError(cause=e) from e

        if stale is not None:
            self.db.rollback()
            logger.warning(
                "Guarded update matched no rows, rolled back",
                extra={"extra_fields": {"kind": stale.kind, "groups": self._summary()}},
            )
            raise stale.on_stale()

        self.committed = True
        logger.debug("Unit of work committed", extra={"extra_fields": {"groups": self._summary()}})
