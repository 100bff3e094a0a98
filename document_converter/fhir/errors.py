"""
Conversion Errors

All failures are local validation failures on the input Message Bundle.
They are raised synchronously and never retried: the caller has to supply
a corrected bundle.
"""
from typing import Optional


class BundleTransformError(Exception):
    """Base class for Message Bundle to Document Bundle conversion failures."""


class InvalidMessageBundleError(BundleTransformError):
    """The input is not a Bundle the FHIR model accepts, or lacks usable ids."""


class MissingResourceError(BundleTransformError):
    """A required resource kind is absent from the Message Bundle."""

    def __init__(self, resource_type: str, message: Optional[str] = None):
        self.resource_type = resource_type
        super().__init__(message or f"Message Bundle has no {resource_type} entry")


class AmbiguousResourceError(BundleTransformError):
    """More than one entry matches a resource kind expected to be singular."""

    def __init__(self, resource_type: str, count: int):
        self.resource_type = resource_type
        self.count = count
        super().__init__(
            f"Message Bundle has {count} {resource_type} entries, expected exactly one"
        )


class UnresolvedReferenceError(BundleTransformError):
    """A cross-reference (e.g. MessageHeader.focus) identifies no entry."""

    def __init__(self, reference: Optional[str], message: Optional[str] = None):
        self.reference = reference
        super().__init__(message or f"Reference '{reference}' does not resolve to any entry")
