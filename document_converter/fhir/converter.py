"""
FHIR Document Converter Service

Main service for converting a pathology Message Bundle into a
Document Bundle.

Orchestrates:
1. Resource resolution (MessageHeader, focus DiagnosticReport, Patient,
   Observation, Organization)
2. Composition creation
3. Provenance creation (when enabled)
4. Document Bundle assembly
"""
import json
import logging
from typing import Dict, Any, Optional, Union
from dataclasses import dataclass

from fhir.resources.R4B.bundle import Bundle

from document_converter.config import Settings, settings
from .bundler import DocumentBundler, generate_bundle_id
from .errors import BundleTransformError, InvalidMessageBundleError
from .mappers import (
    CompositionMapper,
    ProvenanceMapper,
    reference_to,
    source_bundle_reference,
)
from .resolver import resolve_message_resources

logger = logging.getLogger(__name__)


@dataclass
class ConversionResult:
    """Result of Message to Document conversion."""
    success: bool
    bundle: Optional[Bundle] = None
    bundle_dict: Optional[Dict[str, Any]] = None
    resource_counts: Optional[Dict[str, int]] = None
    error: Optional[str] = None
    error_type: Optional[str] = None


def bundle_to_dict(bundle: Bundle) -> Dict[str, Any]:
    """Bundle as plain JSON types (dates as strings, decimals as numbers)."""
    return json.loads(bundle.json())


def count_resource_types(bundle: Bundle) -> Dict[str, int]:
    """Count entries per resourceType."""
    counts: Dict[str, int] = {}
    for entry in bundle.entry or []:
        resource_type = entry.resource.resource_type
        counts[resource_type] = counts.get(resource_type, 0) + 1
    return counts


class DocumentConverter:
    """
    Converts a FHIR Message Bundle to a Document Bundle.

    The converter holds only configuration; ids and timestamps are
    generated per call, so one instance can serve concurrent callers.

    Usage:
        converter = DocumentConverter()
        document = converter.transform(message_bundle, include_provenance=True)

        result = converter.convert(message_bundle)
        if result.success:
            fhir_bundle = result.bundle_dict
    """

    def __init__(self, config: Settings = None):
        """
        Initialize the converter.

        Args:
            config: Conversion settings (defaults to the application settings)
        """
        self.config = config or settings

    def transform(
        self,
        message_bundle: Union[Bundle, Dict[str, Any]],
        include_provenance: Optional[bool] = None,
        composition_id: str = None,
        document_id: str = None
    ) -> Bundle:
        """
        Convert a Message Bundle to a Document Bundle.

        Args:
            message_bundle: Message Bundle model or JSON dictionary (not modified)
            include_provenance: Append a Provenance entry; None uses the configured policy
            composition_id: Optional Composition id (generated if not provided)
            document_id: Optional Document Bundle id and identifier value (generated if not provided)

        Returns:
            Document Bundle: [Composition, focus resource, Observation, Patient,
            Organization, (Provenance)]

        Raises:
            BundleTransformError: If the Message Bundle is missing, duplicating or
                failing to resolve a required resource
        """
        if include_provenance is None:
            include_provenance = self.config.include_provenance

        resources = resolve_message_resources(message_bundle)
        if resources.timestamp is None:
            logger.warning("Message Bundle has no timestamp; Composition.date set to conversion time")

        # 1. Composition (always the first entry)
        composition = CompositionMapper.map(resources, self.config, resource_id=composition_id)

        # 2. Provenance targets the Composition and the bundle being produced
        document_id = document_id or generate_bundle_id()
        provenance = None
        if include_provenance:
            source_reference = None
            if self.config.provenance_link_source:
                source_reference = source_bundle_reference(resources.source_bundle)
                if source_reference is None:
                    logger.warning("Message Bundle has neither id nor identifier; Provenance.entity omitted")
            provenance = ProvenanceMapper.map(
                reference_to(composition),
                f"Bundle/{document_id}",
                self.config,
                source_reference=source_reference
            )

        # 3. Assemble
        bundler = DocumentBundler(
            identifier_system=self.config.document_identifier_system,
            full_url_base=self.config.full_url_base
        )
        try:
            bundler.add_resource(composition)
            for resource in (
                resources.focus,
                resources.observation,
                resources.patient,
                resources.organization,
            ):
                bundler.add_resource(resource, fallback_full_url=resources.full_url_of(resource))
            if provenance is not None:
                bundler.add_resource(provenance)
        except ValueError as e:
            raise InvalidMessageBundleError(str(e)) from e

        bundle = bundler.build(document_id)

        logger.info(
            "Converted Message Bundle to Document Bundle %s (%d entries, provenance=%s)",
            bundle.id, bundler.resource_count, include_provenance
        )
        return bundle

    def convert(
        self,
        message_bundle: Union[Bundle, Dict[str, Any]],
        include_provenance: Optional[bool] = None
    ) -> ConversionResult:
        """
        Convert a Message Bundle, reporting failures in the result instead of raising.

        Args:
            message_bundle: Message Bundle model or JSON dictionary
            include_provenance: Append a Provenance entry; None uses the configured policy

        Returns:
            ConversionResult with Bundle and metadata
        """
        try:
            bundle = self.transform(message_bundle, include_provenance=include_provenance)
        except BundleTransformError as e:
            logger.warning("Message Bundle conversion failed: %s", e)
            return ConversionResult(
                success=False,
                error=f"Document conversion failed: {e}",
                error_type=type(e).__name__
            )

        return ConversionResult(
            success=True,
            bundle=bundle,
            bundle_dict=bundle_to_dict(bundle),
            resource_counts=count_resource_types(bundle)
        )
