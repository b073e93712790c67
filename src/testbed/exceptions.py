"""Custom exception hierarchy for the simulated device testbed."""


class DeviceSimError(Exception):
    """Base exception for all device simulation errors."""


class ConfigurationError(DeviceSimError, ValueError):
    """Raised when a generator configuration is invalid."""


class LifecycleError(DeviceSimError):
    """Raised when a scheduler operation is not valid in its current state."""


class ConsumerError(DeviceSimError):
    """Raised (and contained) when the consumer fails to accept a batch."""

    def __init__(self, tick_index: int, cause: BaseException) -> None:
        self.tick_index = tick_index
        self.cause = cause
        super().__init__(
            f"Consumer failed on tick {tick_index}: {type(cause).__name__}: {cause}"
        )


class SynthesisError(DeviceSimError):
    """Raised (and contained) when a tick cannot be stamped or synthesized."""

    def __init__(self, tick_index: int, cause: BaseException) -> None:
        self.tick_index = tick_index
        self.cause = cause
        super().__init__(
            f"Synthesis failed on tick {tick_index}: {type(cause).__name__}: {cause}"
        )


class DriftOverflow(DeviceSimError, RuntimeWarning):
    """Warned when a drifted timestamp had to be clamped to its bound."""

    def __init__(self, requested: float, clamped: float, bound: str) -> None:
        self.requested = requested
        self.clamped = clamped
        self.bound = bound
        super().__init__(
            f"Drifted value {requested} clamped to {clamped} ({bound})"
        )
