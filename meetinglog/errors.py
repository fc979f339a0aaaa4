from __future__ import annotations


class MeetingLogError(Exception):
    """Base class for errors raised by the meeting pipeline."""


class ValidationError(MeetingLogError):
    """Required input is missing or malformed. Raised before any external call."""


class GenerationError(MeetingLogError):
    """The generation service failed on a step the operation cannot do without."""


class ParsingError(MeetingLogError):
    """Generated output did not have the expected shape.

    Never surfaced to callers of the pipeline; best-effort steps degrade to
    empty results when they see it.
    """


class NotFoundError(MeetingLogError):
    def __init__(self, kind: str, key: object) -> None:
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key


class ConflictError(MeetingLogError):
    """A unique key was already taken."""
