"""
Errors
======
Exception taxonomy shared by the job service, the runner and the stage
collaborators.

    ValidationError   : bad input, rejected before a job exists
    ConfigError       : missing credentials / configuration
    PreconditionError : operation not valid for the job's current status
    CollaboratorError : a stage dependency failed or returned malformed data
    JobCancelledError : internal sentinel that unwinds the runner on cancel
    NotFoundError     : unknown job id
"""


class CloneForgeError(Exception):
    """Base class for all CloneForge errors."""


class ValidationError(CloneForgeError):
    pass


class ConfigError(CloneForgeError):
    pass


class PreconditionError(CloneForgeError):
    pass


class NotFoundError(CloneForgeError):
    pass


class CollaboratorError(CloneForgeError):
    """Raised by a stage collaborator; carries a human-readable message."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"{stage}: {message}")
        self.stage = stage
        self.message = message


class JobCancelledError(CloneForgeError):
    pass
