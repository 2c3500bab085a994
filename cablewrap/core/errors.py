"""Error taxonomy for the cable wrap engine and its collaborators."""


class CableWrapError(Exception):
    """Base for all cable wrap errors."""
    pass


class NotConnectedError(CableWrapError):
    """Mount cannot be reached; the poll loop treats it as a disconnected sample."""
    pass


class SensorArtifact(CableWrapError):
    """A delta exceeded its sanity cap and was rejected instead of accumulated."""

    def __init__(self, phase: str, delta_degrees: float, cap_degrees: float) -> None:
        self.phase = phase
        self.delta_degrees = delta_degrees
        self.cap_degrees = cap_degrees
        super().__init__(
            f"{phase}: rejected {delta_degrees:+.2f}° (cap {cap_degrees:.1f}°)"
        )


class PersistenceError(CableWrapError):
    """State or settings file could not be read or written."""
    pass


class ManeuverInProgressError(CableWrapError):
    """Command refused because the unwind maneuver owns the accumulator."""
    pass


class UnwindError(CableWrapError):
    """Unwind maneuver failed; partial progress stays in the accumulator."""

    def __init__(self, message: str, remaining_degrees: float) -> None:
        self.remaining_degrees = remaining_degrees
        super().__init__(message)


class ManeuverCommandFailure(UnwindError):
    """A commanded slew or home failed or timed out."""
    pass


class ManeuverIncomplete(UnwindError):
    """Step budget ran out before the remaining rotation dropped under the guard."""
    pass
