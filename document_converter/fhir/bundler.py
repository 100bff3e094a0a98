"""
FHIR Document Bundle Assembler

Creates a FHIR Bundle (document type) whose first entry is the Composition,
followed by the resources it references and, optionally, the Provenance
recording the conversion.
"""
from typing import List, Optional
from datetime import datetime, timezone
import uuid

from fhir.resources.R4B.bundle import Bundle, BundleEntry
from fhir.resources.R4B.resource import Resource


def generate_bundle_id() -> str:
    """Generate a unique bundle ID."""
    return str(uuid.uuid4())


class DocumentBundler:
    """
    Assembles FHIR resources into a document Bundle.

    Entries keep the order they were added in. Each entry gets a fullUrl
    derived from its resource id: 'urn:uuid:<id>' by default, or
    '<full_url_base>/<ResourceType>/<id>' when a base URL is configured.
    """

    def __init__(self, identifier_system: str, full_url_base: Optional[str] = None):
        """
        Initialize the bundler.

        Args:
            identifier_system: System URI for Bundle.identifier
            full_url_base: Optional server base URL used to build fullUrls
        """
        self.identifier_system = identifier_system
        self.full_url_base = full_url_base.rstrip("/") if full_url_base else None
        self.entries: List[BundleEntry] = []

    def full_url(self, resource: Resource) -> str:
        """fullUrl for a resource with an id."""
        if self.full_url_base:
            return f"{self.full_url_base}/{resource.resource_type}/{resource.id}"
        return f"urn:uuid:{resource.id}"

    def add_resource(self, resource: Resource, fallback_full_url: Optional[str] = None) -> str:
        """
        Add a resource to the bundle.

        Ids are only unique per resource type, so when the derived fullUrl is
        already taken by a resource of another type, the entry uses
        fallback_full_url (typically the fullUrl the resource arrived with) or,
        failing that, a freshly generated 'urn:uuid:'.

        Args:
            resource: FHIR resource to add
            fallback_full_url: fullUrl to use if the derived one is taken

        Returns:
            The fullUrl of the new entry

        Raises:
            ValueError: If the bundle already holds this resource type and id
        """
        for entry in self.entries:
            if entry.resource.resource_type == resource.resource_type and entry.resource.id == resource.id:
                raise ValueError(f"Duplicate entry {resource.resource_type}/{resource.id}")

        used = {entry.fullUrl for entry in self.entries}
        full_url = self.full_url(resource)
        if full_url in used:
            if fallback_full_url and fallback_full_url not in used:
                full_url = fallback_full_url
            else:
                full_url = f"urn:uuid:{uuid.uuid4()}"

        entry = BundleEntry(
            fullUrl=full_url,
            resource=resource
        )
        self.entries.append(entry)
        return full_url

    def build(self, bundle_id: str = None, timestamp: datetime = None) -> Bundle:
        """
        Build the final document Bundle.

        Args:
            bundle_id: Optional bundle ID, also used as Bundle.identifier value
                (generated if not provided)
            timestamp: Optional assembly time (defaults to now)

        Returns:
            FHIR Bundle of type 'document'

        Raises:
            ValueError: If the first entry is not a Composition
        """
        if not self.entries or self.entries[0].resource.resource_type != "Composition":
            raise ValueError("A document Bundle must start with a Composition entry")

        bundle_id = bundle_id or generate_bundle_id()
        timestamp = (timestamp or datetime.now(timezone.utc)).isoformat()

        bundle = Bundle(
            id=bundle_id,
            identifier={"system": self.identifier_system, "value": bundle_id},
            type="document",
            timestamp=timestamp,
            entry=self.entries
        )

        return bundle

    @property
    def resource_count(self) -> int:
        """Number of resources in the bundle."""
        return len(self.entries)
