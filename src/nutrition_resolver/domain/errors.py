"""Error taxonomy for nutrition resolution."""


class ResolverError(Exception):
    """Base class for resolution errors."""


class UnconvertibleUnitError(ResolverError):
    """Raised when two units cannot be related to each other."""

    def __init__(self, from_unit: str, to_unit: str) -> None:
        super().__init__(f"Cannot convert between '{from_unit}' and '{to_unit}'")
        self.from_unit = from_unit
        self.to_unit = to_unit


class NoCandidateFoundError(ResolverError):
    """Raised when no source yields an acceptable match for a query."""

    def __init__(self, ingredient_key: str) -> None:
        super().__init__(f"No acceptable nutrition match for '{ingredient_key}'")
        self.ingredient_key = ingredient_key


class AdapterTimeoutError(ResolverError):
    """Raised when a source adapter exceeds its time budget."""

    def __init__(self, source_id: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Source '{source_id}' timed out after {timeout_seconds:g}s"
        )
        self.source_id = source_id
        self.timeout_seconds = timeout_seconds


class DiscoveryExhaustedError(ResolverError):
    """Raised when a discovery task reaches its attempt ceiling."""

    def __init__(self, ingredient_key: str, attempts: int) -> None:
        super().__init__(
            f"Discovery for '{ingredient_key}' gave up after {attempts} attempts"
        )
        self.ingredient_key = ingredient_key
        self.attempts = attempts
