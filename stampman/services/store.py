"""
LedgerStore — unit-of-work gateway for the loyalty engine.

Every balance or counter mutation runs as:

    with store.unit_of_work():
        row = store.lock_and_load(Model, "NOT_FOUND_CODE", pk=...)
        ... check gates, compute new value ...
        row.save(update_fields=[...])
        store.append_audit(AuditModel, ...)

lock_and_load() issues SELECT ... FOR UPDATE, so the read-modify-write and
the audit row are serialized against every other unit touching the same row.
Multi-row units must lock in a fixed global order: reward before account.

The store is bound to one database alias; services take it as an optional
keyword so callers can scope them to another connection.
"""

import logging
from contextlib import contextmanager

from django.db import DEFAULT_DB_ALIAS, OperationalError, transaction

from stampman.conf import stampman_settings
from stampman.exceptions import StampmanError

logger = logging.getLogger(__name__)


class LedgerStore:
    """Atomic read-modify-write access to ledger rows on one DB alias."""

    def __init__(self, using: str = DEFAULT_DB_ALIAS):
        self.using = using

    def __repr__(self):
        return f"LedgerStore(using={self.using!r})"

    @contextmanager
    def unit_of_work(self):
        """
        Open an atomic unit. Any exception rolls back every write in it.

        Lock waits are bounded by LOCK_TIMEOUT_MS; lock timeouts and other
        isolation failures surface as CONCURRENT_MODIFICATION.
        """
        try:
            with transaction.atomic(using=self.using):
                self._apply_lock_timeout()
                yield self
        except OperationalError as exc:
            logger.warning("Unit of work aborted on %s: %s", self.using, exc)
            raise StampmanError("CONCURRENT_MODIFICATION", detail=str(exc)) from exc

    def _apply_lock_timeout(self) -> None:
        connection = transaction.get_connection(self.using)
        if connection.vendor != "postgresql":
            return
        timeout_ms = int(stampman_settings.LOCK_TIMEOUT_MS)
        with connection.cursor() as cursor:
            # is_local=true: reverts at the end of the enclosing transaction
            cursor.execute("SELECT set_config('lock_timeout', %s, true)", [f"{timeout_ms}ms"])

    def lock_and_load(self, model, error_code: str, **lookup):
        """
        Load one row under an exclusive lock.

        MUST be called inside unit_of_work().

        Raises:
            StampmanError: error_code if no row matches
        """
        try:
            return model.objects.using(self.using).select_for_update().get(**lookup)
        except model.DoesNotExist:
            raise StampmanError(error_code, **lookup)

    def load(self, model, error_code: str, **lookup):
        """Unlocked read for projections and pre-checks."""
        try:
            return model.objects.using(self.using).get(**lookup)
        except model.DoesNotExist:
            raise StampmanError(error_code, **lookup)

    def filter(self, model, **lookup):
        return model.objects.using(self.using).filter(**lookup)

    def conditional_update(self, queryset, **values) -> int:
        """
        UPDATE ... WHERE <queryset predicate>; returns rows affected.

        The predicate is the concurrency guard: a caller that sees 0 lost the
        race (or the row was never in the expected state).
        """
        return queryset.using(self.using).update(**values)

    def create(self, model, **fields):
        return model.objects.using(self.using).create(**fields)

    def append_audit(self, model, **fields):
        """Insert an audit row inside the current unit."""
        return self.create(model, **fields)

    def on_commit(self, func) -> None:
        """Run func once the outermost unit commits (dropped on rollback)."""
        transaction.on_commit(func, using=self.using)


def get_store(store: LedgerStore | None = None) -> LedgerStore:
    return store if store is not None else LedgerStore()
