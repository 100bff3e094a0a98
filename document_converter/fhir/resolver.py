"""
Message Bundle Resolver

Parses an incoming Message Bundle and locates the resources the document
is built from:
- MessageHeader (exactly one)
- the focus resource referenced by MessageHeader.focus[0] (the DiagnosticReport)
- Patient, Observation and Organization (exactly one each)

Lookup is a linear scan over Bundle.entry; message bundles are small.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from fhir.resources.R4B.bundle import Bundle, BundleEntry
from fhir.resources.R4B.messageheader import MessageHeader
from fhir.resources.R4B.observation import Observation
from fhir.resources.R4B.organization import Organization
from fhir.resources.R4B.patient import Patient
from fhir.resources.R4B.resource import Resource

from .errors import (
    AmbiguousResourceError,
    InvalidMessageBundleError,
    MissingResourceError,
    UnresolvedReferenceError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessageResources:
    """Resources resolved from one Message Bundle."""
    source_bundle: Bundle
    message_header: MessageHeader
    focus: Resource
    patient: Patient
    observation: Observation
    organization: Organization

    @property
    def timestamp(self) -> Optional[datetime]:
        """Message timestamp (R4 keeps it on the Bundle, not the MessageHeader)."""
        return self.source_bundle.timestamp

    def full_url_of(self, resource: Resource) -> Optional[str]:
        """fullUrl the resource was carried under in the Message Bundle, if any."""
        for entry in self.source_bundle.entry or []:
            if entry.resource is resource:
                return entry.fullUrl
        return None


def parse_message_bundle(message_bundle: Union[Bundle, Dict[str, Any]]) -> Bundle:
    """
    Parse raw JSON data into a FHIR Bundle model.

    Args:
        message_bundle: Bundle model or its JSON dictionary

    Returns:
        Parsed Bundle (a Bundle model is returned as-is)

    Raises:
        InvalidMessageBundleError: If the data is not a Bundle the FHIR model accepts
    """
    if isinstance(message_bundle, Bundle):
        bundle = message_bundle
    else:
        if not isinstance(message_bundle, dict):
            raise InvalidMessageBundleError(
                f"Expected a Bundle JSON object, got {type(message_bundle).__name__}"
            )
        resource_type = message_bundle.get("resourceType")
        if resource_type != "Bundle":
            raise InvalidMessageBundleError(f"Expected resourceType 'Bundle', got '{resource_type}'")
        try:
            bundle = Bundle.parse_obj(message_bundle)
        except ValueError as e:
            raise InvalidMessageBundleError(f"Invalid FHIR Bundle: {e}") from e

    if bundle.type != "message":
        logger.warning("Input Bundle has type '%s', expected 'message'", bundle.type)
    return bundle


def index_entries(bundle: Bundle) -> Dict[str, List[BundleEntry]]:
    """Group bundle entries by resourceType, preserving entry order."""
    index: Dict[str, List[BundleEntry]] = {}
    for entry in bundle.entry or []:
        if entry.resource is None:
            continue
        index.setdefault(entry.resource.resource_type, []).append(entry)
    return index


def find_single(index: Dict[str, List[BundleEntry]], resource_type: str) -> Resource:
    """
    Return the only resource of the given type.

    Raises:
        MissingResourceError: If no entry has this type
        AmbiguousResourceError: If more than one entry has this type
    """
    entries = index.get(resource_type, [])
    if not entries:
        raise MissingResourceError(resource_type)
    if len(entries) > 1:
        raise AmbiguousResourceError(resource_type, len(entries))
    return entries[0].resource


def split_reference(reference: str) -> Tuple[Optional[str], str]:
    """
    Split a literal reference into (resource_type, id).

    Handles relative ('DiagnosticReport/dr-1') and absolute
    ('https://server/fhir/DiagnosticReport/dr-1') references, with or
    without a trailing '_history/<version>'. A bare id yields (None, id).
    """
    parts = [part for part in reference.split("/") if part]
    if len(parts) >= 4 and parts[-2] == "_history":
        parts = parts[:-2]
    if len(parts) >= 2:
        return parts[-2], parts[-1]
    return None, parts[-1] if parts else ""


def resolve_reference(bundle: Bundle, reference: Optional[str]) -> Resource:
    """
    Resolve a literal reference against the bundle's entries.

    The reference is first matched against Bundle.entry.fullUrl
    (e.g. 'urn:uuid:...'), then by resource type and id.

    Raises:
        UnresolvedReferenceError: If no entry matches
        AmbiguousResourceError: If more than one entry matches
    """
    if not reference:
        raise UnresolvedReferenceError(reference, "Reference has no literal 'reference' value")

    entries = [entry for entry in bundle.entry or [] if entry.resource is not None]

    matches = [entry.resource for entry in entries if entry.fullUrl == reference]
    if not matches:
        resource_type, resource_id = split_reference(reference)
        matches = [
            entry.resource
            for entry in entries
            if entry.resource.id == resource_id
            and (resource_type is None or entry.resource.resource_type == resource_type)
        ]

    if not matches:
        raise UnresolvedReferenceError(reference)
    if len(matches) > 1:
        raise AmbiguousResourceError(matches[0].resource_type, len(matches))
    return matches[0]


def _require_id(resource: Resource) -> Resource:
    if not resource.id:
        raise InvalidMessageBundleError(
            f"{resource.resource_type} has no id and cannot be referenced from the document"
        )
    return resource


def resolve_message_resources(message_bundle: Union[Bundle, Dict[str, Any]]) -> MessageResources:
    """
    Locate the five resources the document is built from.

    Args:
        message_bundle: Message Bundle model or JSON dictionary

    Returns:
        MessageResources with every required resource resolved

    Raises:
        InvalidMessageBundleError: Input is not a valid Bundle, or a resource lacks an id
        MissingResourceError: A required resource kind is absent
        AmbiguousResourceError: A singular resource kind appears more than once
        UnresolvedReferenceError: MessageHeader.focus does not identify an entry
    """
    bundle = parse_message_bundle(message_bundle)
    index = index_entries(bundle)

    message_header = find_single(index, "MessageHeader")
    if not message_header.focus:
        raise UnresolvedReferenceError(None, "MessageHeader has no focus reference")
    focus_reference = message_header.focus[0].reference
    focus = _require_id(resolve_reference(bundle, focus_reference))
    logger.debug("Resolved MessageHeader.focus %s to %s/%s", focus_reference, focus.resource_type, focus.id)

    patient = _require_id(find_single(index, "Patient"))
    observation = _require_id(find_single(index, "Observation"))
    organization = _require_id(find_single(index, "Organization"))
    logger.debug(
        "Resolved Patient/%s, Observation/%s, Organization/%s",
        patient.id, observation.id, organization.id
    )

    return MessageResources(
        source_bundle=bundle,
        message_header=message_header,
        focus=focus,
        patient=patient,
        observation=observation,
        organization=organization,
    )
