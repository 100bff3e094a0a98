"""
FHIR Resource Mappers

Builds the resources a Document Bundle adds on top of the message content,
using the fhir.resources R4B models for FHIR conformance.

Mappings:
- MessageHeader + Patient + focus resource → Composition
- Composition + Document Bundle → Provenance (transformation record)
"""
from typing import Optional, Dict, Any
from datetime import datetime, timezone
import uuid

from fhir.resources.R4B.bundle import Bundle
from fhir.resources.R4B.composition import Composition
from fhir.resources.R4B.messageheader import MessageHeader
from fhir.resources.R4B.provenance import Provenance
from fhir.resources.R4B.resource import Resource

from document_converter.config import Settings
from .resolver import MessageResources


def generate_id() -> str:
    """Generate a unique resource ID."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Get current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


def reference_to(resource: Resource) -> str:
    """Relative literal reference, e.g. 'Patient/pat-1'."""
    return f"{resource.resource_type}/{resource.id}"


def message_source_display(message_header: MessageHeader) -> Optional[str]:
    """Display name of the sending system: source name, then software, then endpoint."""
    source = message_header.source
    if source is None:
        return None
    return source.name or source.software or source.endpoint


def source_bundle_reference(bundle: Bundle) -> Optional[Dict[str, Any]]:
    """Reference to the original Message Bundle by id, else by business identifier."""
    if bundle.id:
        return {"reference": f"Bundle/{bundle.id}"}
    if bundle.identifier and bundle.identifier.value:
        identifier = {"value": bundle.identifier.value}
        if bundle.identifier.system:
            identifier["system"] = bundle.identifier.system
        return {"identifier": identifier}
    return None


class CompositionMapper:
    """Maps resolved message resources to the document's Composition."""

    @staticmethod
    def map(
        resources: MessageResources,
        config: Settings,
        resource_id: str = None,
        date: datetime = None
    ) -> Composition:
        """
        Build the Composition summarizing a lab result message.

        Args:
            resources: Resources resolved from the Message Bundle
            config: Conversion settings (panel code, titles)
            resource_id: Optional resource ID (generated if not provided)
            date: Composition date; defaults to the message timestamp

        Returns:
            FHIR Composition resource
        """
        resource_id = resource_id or generate_id()
        date = date or resources.timestamp or utcnow()

        panel_coding = {
            "system": config.panel_code_system,
            "code": config.panel_code,
        }

        author = {}
        source_display = message_source_display(resources.message_header)
        if source_display:
            author["display"] = source_display
        else:
            # Composition.author is 1..*; credit the sending organization instead
            author["reference"] = reference_to(resources.organization)

        composition_dict = {
            "resourceType": "Composition",
            "id": resource_id,
            "status": "final",
            "type": {
                "coding": [{**panel_coding, "display": config.panel_display}]
            },
            "subject": {"reference": reference_to(resources.patient)},
            "author": [author],
            "title": config.composition_title,
            "date": date.isoformat(),
            "custodian": {"reference": reference_to(resources.organization)},
            "section": [{
                "title": config.section_title,
                "code": {"coding": [panel_coding]},
                "entry": [{"reference": reference_to(resources.focus)}]
            }]
        }

        return Composition(**composition_dict)


class ProvenanceMapper:
    """Maps a completed transformation to a FHIR Provenance resource."""

    @staticmethod
    def map(
        composition_reference: str,
        document_reference: str,
        config: Settings,
        resource_id: str = None,
        recorded: datetime = None,
        source_reference: Optional[Dict[str, Any]] = None
    ) -> Provenance:
        """
        Build the Provenance record for a Message to Document transformation.

        Args:
            composition_reference: Reference to the Composition, e.g. 'Composition/<id>'
            document_reference: Reference to the Document Bundle, e.g. 'Bundle/<id>'
            config: Conversion settings (activity, agent and reason vocabularies)
            resource_id: Optional resource ID (generated if not provided)
            recorded: Time of transformation (defaults to now)
            source_reference: Optional reference to the original Message Bundle,
                recorded as a 'source' entity

        Returns:
            FHIR Provenance resource
        """
        resource_id = resource_id or generate_id()
        recorded = recorded or utcnow()

        provenance_dict = {
            "resourceType": "Provenance",
            "id": resource_id,
            "target": [
                {"reference": composition_reference},
                {"reference": document_reference}
            ],
            "recorded": recorded.isoformat(),
            "activity": {
                "coding": [{
                    "system": config.activity_system,
                    "code": config.activity_code,
                    "display": config.activity_display
                }]
            },
            "agent": [{
                "type": {
                    "coding": [{
                        "system": config.agent_type_system,
                        "code": config.agent_type_code,
                        "display": config.agent_type_display
                    }]
                },
                "who": {"display": config.agent_display}
            }],
            "reason": [{
                "coding": [{
                    "system": config.reason_system,
                    "code": config.reason_code,
                    "display": config.reason_display
                }],
                "text": config.reason_text
            }]
        }

        if source_reference:
            provenance_dict["entity"] = [{
                "role": "source",
                "what": source_reference
            }]

        return Provenance(**provenance_dict)
