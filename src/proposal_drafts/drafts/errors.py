"""Exceptions raised while resolving and executing one draft job."""

from __future__ import annotations


class DraftExecutionError(Exception):
    """Base class for failures inside one claimed draft execution."""


class MissingReferenceError(DraftExecutionError):
    """A record the draft depends on is absent from the store."""

    reference = "record"

    def __init__(self, identifier: object) -> None:
        super().__init__(f"{self.reference.upper()}_NOT_FOUND: {identifier}")
        self.identifier = identifier


class ParentJobNotFoundError(MissingReferenceError):
    reference = "job"


class UserNotFoundError(MissingReferenceError):
    reference = "user"


class TemplateNotFoundError(MissingReferenceError):
    reference = "template"
