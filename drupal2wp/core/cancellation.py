"""Cooperative cancellation."""

__all__ = ["CancellationToken"]


class CancellationToken:
    """Flag polled by migrators at the top of every record iteration.

    Cancelling never interrupts a record that is already being migrated.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        """Request that the run stops after the current record."""
        if not self._cancelled:
            self._cancelled = True
            self._reason = reason

    @property
    def is_cancelled(self) -> bool:
        """Whether cancellation was requested."""
        return self._cancelled

    @property
    def reason(self) -> str | None:
        """Why cancellation was requested, if a reason was given."""
        return self._reason

    def __bool__(self) -> bool:
        return self._cancelled
