"""Exception taxonomy for the debate session core."""


class DebateError(Exception):
    """Base class for all session-core errors."""


class ValidationError(DebateError):
    """Raised when input is rejected before any state is mutated."""


class PhaseError(ValidationError):
    """Raised when an operation is not allowed in the session's current phase."""

    def __init__(self, operation: str, phase: str) -> None:
        self.operation = operation
        self.phase = phase
        super().__init__(f"Cannot {operation} while session is in phase '{phase}'")


class SpeakerBusyError(ValidationError):
    """Raised when a speaker already has an evaluation in flight."""

    def __init__(self, speaker_id: str) -> None:
        self.speaker_id = speaker_id
        super().__init__(f"Speaker {speaker_id} is already being evaluated")


class RankingError(ValidationError):
    """Raised when a ranking list is not a valid 4-team permutation."""


class CollaboratorError(DebateError):
    """Raised when an external collaborator call fails. Recoverable: state is left as it was."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        super().__init__(f"[{operation}] {message}")
