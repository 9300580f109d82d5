"""Project-wide custom exception types."""


class ConfigurationLockedError(RuntimeError):
    """Raised when someone other than the owner tries to change the configuration."""

    def __init__(self, owner: str) -> None:  # noqa: D401 – simple constructor
        super().__init__(
            "Only the first user who configured these settings can change them. "
            f"Please ask {owner} to modify these settings."
        )
        self.owner = owner


class ConfigurationDecodeError(ValueError):
    """Raised when a stored configuration entry is not valid JSON."""

    def __init__(self, key: str, reason: str = "") -> None:
        message = f"Configuration entry {key} could not be decoded"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.key = key


class QuestionResolutionError(LookupError):
    """Raised when a question id no longer resolves on the live form."""

    def __init__(self, question_id: str, reason: str = "not found") -> None:
        super().__init__(f"Question {question_id} {reason}")
        self.question_id = question_id


class PoolLockTimeoutError(TimeoutError):
    """Raised when the choice pool lock for a question cannot be acquired."""

    def __init__(self, question_id: str, attempts: int) -> None:
        super().__init__(
            f"Could not lock choice pool for question {question_id} after {attempts} attempt(s)"
        )
        self.question_id = question_id
        self.attempts = attempts


class FormDefinitionError(RuntimeError):
    """Raised when the survey form definition is missing or malformed."""
