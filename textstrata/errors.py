"""Exceptions raised by the segmentation, alignment and merge layers."""


class TextStrataError(Exception):
    """Base class for all textstrata errors."""


class StructuralInvariantError(TextStrataError):
    """Raised when an offset vector or token-id sequence is malformed.

    Indicates a bug in whatever produced the data; never retried.
    """


class PreconditionError(TextStrataError):
    """Raised when an operation is requested over missing or mismatched inputs."""


class MergeError(PreconditionError):
    """Raised when chunk bundles from different runs are fed into one merge."""


class LevelLookupError(TextStrataError, LookupError):
    """Raised when a level or alignment pair that was never built is requested."""

    def __init__(self, message: str, available=()):
        super().__init__(message)
        self.available = tuple(available)

    def __str__(self) -> str:
        return self.args[0]
