"""jitr_shared.errors — Error taxonomy shared by both onboarding pipelines.

Every error carries the HTTP status the boundary handler answers with
(`code`) and a stable `kind` (the class name).
"""

from __future__ import annotations


class JitrError(Exception):
    code: int = 500
    default_message: str = "Processing failed"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    @property
    def message(self) -> str:
        return str(self)


class InputError(JitrError):
    """Caller-supplied input is malformed or not allowed."""

    code = 422
    default_message = "Invalid input"


class VerifierNotFoundError(InputError):
    default_message = "The verifier is not recognized"


class ResourceNotFoundError(JitrError):
    code = 404
    default_message = "Resource not found"


class InformationNotFoundError(ResourceNotFoundError):
    """A response from the platform lacks a required field."""

    default_message = "Required information missing"


class ProcessingError(JitrError):
    code = 500


class VerificationError(ProcessingError):
    """The verifier rejected the certificate or answered unusably."""

    default_message = "Verification failed"
