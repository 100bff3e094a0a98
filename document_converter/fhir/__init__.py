"""
FHIR Document Conversion Module

Converts a pathology FHIR Message Bundle into a FHIR Document Bundle
using the fhir.resources library (R4B models).

Components:
- resolver: Locates MessageHeader, focus report, Patient, Observation, Organization
- mappers: Composition and Provenance builders
- bundler: Document Bundle assembler
- converter: Main conversion service
- errors: Conversion error taxonomy
"""
from .converter import DocumentConverter, ConversionResult
from .bundler import DocumentBundler
from .errors import (
    BundleTransformError,
    InvalidMessageBundleError,
    MissingResourceError,
    AmbiguousResourceError,
    UnresolvedReferenceError,
)

__all__ = [
    "DocumentConverter",
    "ConversionResult",
    "DocumentBundler",
    "BundleTransformError",
    "InvalidMessageBundleError",
    "MissingResourceError",
    "AmbiguousResourceError",
    "UnresolvedReferenceError",
]
