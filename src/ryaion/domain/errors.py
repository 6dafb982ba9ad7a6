"""Exception hierarchy for the portfolio and alert engine."""


class RyaionError(Exception):
    """Base class for every error the engine raises on purpose."""


class InvalidInputError(RyaionError, ValueError):
    """Caller-level misuse: non-positive numbers, unknown instruments, conflicting ids."""


class OversellError(InvalidInputError):
    """A SELL for more than is held, raised only under the ``reject`` over-sell policy."""

    def __init__(self, instrument_id: str, requested: int, held: int) -> None:
        super().__init__(
            f"Cannot sell {requested} of {instrument_id}: only {held} held at that time"
        )
        self.instrument_id = instrument_id
        self.requested = requested
        self.held = held


class StorageError(RyaionError):
    """Writing persisted state failed."""
