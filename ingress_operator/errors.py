"""
Error taxonomy for a reconciliation pass.

NotFound is expected and never surfaced as a failure by itself. Everything
else is operational: it is aggregated per pass and retried with backoff by
the work queue. Admission rejections are not exceptions at all, see
controller.admission.
"""
from typing import Iterable


class NotFound(Exception):
    """The requested object does not exist (or no longer exists)."""


class StoreError(Exception):
    """A read or write against the API server failed."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status


class Conflict(StoreError):
    """Optimistic-concurrency conflict; the next pass re-reads current state."""

    def __init__(self, message: str):
        super().__init__(message, status=409)


class AlreadyExists(StoreError):
    def __init__(self, message: str):
        super().__init__(message, status=409)


class DependencyError(Exception):
    """A step was skipped because something it depends on is unavailable."""


class AggregateError(Exception):
    """A collection of independent failures from one pass."""

    def __init__(self, errors: Iterable[BaseException]):
        flat: list[BaseException] = []
        for err in errors:
            if isinstance(err, AggregateError):
                flat.extend(err.errors)
            else:
                flat.append(err)
        self.errors = flat
        super().__init__(self._format())

    def _format(self) -> str:
        if len(self.errors) == 1:
            return str(self.errors[0])
        return "[" + ", ".join(str(e) for e in self.errors) + "]"


def aggregate(errors: list) -> None:
    """Raise an AggregateError if errors is non-empty."""
    if errors:
        raise AggregateError(errors)


class ReconcileError(Exception):
    """A pass failed; the caller retries the request with backoff."""
