"""
Converter Tests

End-to-end tests for Message Bundle to Document Bundle conversion:
1. Document structure and entry order
2. Reference integrity
3. Provenance policy
4. Error handling
5. ConversionResult wrapper
"""
import copy
import json

import pytest
from fhir.resources.R4B.bundle import Bundle

from document_converter.config import Settings
from document_converter.fhir import (
    DocumentConverter,
    InvalidMessageBundleError,
    MissingResourceError,
    UnresolvedReferenceError,
)

DOCUMENT_ORDER = ["Composition", "DiagnosticReport", "Observation", "Patient", "Organization"]


def resource_types(bundle: Bundle) -> list:
    return [entry.resource.resource_type for entry in bundle.entry]


def normalized(bundle: Bundle) -> dict:
    """Bundle JSON with generated ids and timestamps blanked out."""
    text = bundle.json()
    generated_ids = [bundle.id, bundle.entry[0].resource.id]
    if bundle.entry[-1].resource.resource_type == "Provenance":
        generated_ids.append(bundle.entry[-1].resource.id)
    for generated_id in generated_ids:
        text = text.replace(generated_id, "<generated>")

    data = json.loads(text)
    data.pop("timestamp")
    for entry in data["entry"]:
        entry["resource"].pop("recorded", None)
    return data


@pytest.fixture
def converter(config):
    return DocumentConverter(config)


class TestDocumentStructure:
    """Test the structure of the produced Document Bundle."""

    def test_pathology_result_scenario(self, converter, message_bundle):
        """focus DiagnosticReport/dr-1, Patient pat-1, provenance included."""
        bundle = converter.transform(message_bundle, include_provenance=True)

        assert bundle.type == "document"
        assert len(bundle.entry) == 6

        composition = bundle.entry[0].resource
        assert composition.resource_type == "Composition"
        assert composition.subject.reference == "Patient/pat-1"

        provenance = bundle.entry[-1].resource
        assert provenance.resource_type == "Provenance"
        assert f"Composition/{composition.id}" in [target.reference for target in provenance.target]

    def test_entry_order_with_provenance(self, converter, message_bundle):
        bundle = converter.transform(message_bundle, include_provenance=True)

        assert resource_types(bundle) == DOCUMENT_ORDER + ["Provenance"]

    def test_no_provenance_when_disabled(self, converter, message_bundle):
        bundle = converter.transform(message_bundle, include_provenance=False)

        assert resource_types(bundle) == DOCUMENT_ORDER
        assert "Provenance" not in resource_types(bundle)

    def test_full_urls_match_ids(self, converter, message_bundle):
        bundle = converter.transform(message_bundle)

        full_urls = [entry.fullUrl for entry in bundle.entry]
        assert full_urls == [f"urn:uuid:{entry.resource.id}" for entry in bundle.entry]
        assert len(set(full_urls)) == len(full_urls)

    def test_full_url_base(self, message_bundle):
        config = Settings(_env_file=None, full_url_base="https://fhir.example.org/fhir")
        bundle = DocumentConverter(config).transform(message_bundle, include_provenance=False)

        assert bundle.entry[3].fullUrl == "https://fhir.example.org/fhir/Patient/pat-1"

    def test_identifier(self, converter, message_bundle):
        bundle = converter.transform(message_bundle)

        assert bundle.identifier.system == "http://example.org/doc-ids"
        assert bundle.identifier.value == bundle.id
        assert bundle.timestamp is not None

    def test_caller_supplied_ids(self, converter, message_bundle):
        bundle = converter.transform(
            message_bundle,
            composition_id="comp-001",
            document_id="doc-20250926-001"
        )

        assert bundle.id == "doc-20250926-001"
        assert bundle.entry[0].resource.id == "comp-001"
        assert bundle.entry[0].fullUrl == "urn:uuid:comp-001"

    def test_message_resources_carried_over(self, converter, message_bundle, find_entry):
        bundle = converter.transform(message_bundle)

        report = bundle.entry[1].resource
        assert report.id == "dr-1"
        assert report.status == "final"
        observation = bundle.entry[2].resource
        assert float(observation.valueQuantity.value) == 13.5
        assert bundle.entry[4].resource.name == find_entry(message_bundle, "Organization")["name"]


class TestReferenceIntegrity:
    """Test that document references resolve within the bundle."""

    def test_section_references_resolve(self, converter, message_bundle):
        bundle = converter.transform(message_bundle)

        present = {f"{entry.resource.resource_type}/{entry.resource.id}" for entry in bundle.entry}
        composition = bundle.entry[0].resource
        for section in composition.section:
            for reference in section.entry:
                assert reference.reference in present

    def test_composition_references_resolve(self, converter, message_bundle):
        bundle = converter.transform(message_bundle)

        present = {f"{entry.resource.resource_type}/{entry.resource.id}" for entry in bundle.entry}
        composition = bundle.entry[0].resource
        assert composition.subject.reference in present
        assert composition.custodian.reference in present

    def test_provenance_targets_produced_bundle(self, converter, message_bundle):
        bundle = converter.transform(message_bundle, include_provenance=True)

        composition = bundle.entry[0].resource
        provenance = bundle.entry[-1].resource
        targets = [target.reference for target in provenance.target]
        assert targets == [f"Composition/{composition.id}", f"Bundle/{bundle.id}"]

    def test_provenance_does_not_reference_message_by_default(self, converter, message_bundle):
        bundle = converter.transform(message_bundle, include_provenance=True)

        provenance = bundle.entry[-1].resource
        assert provenance.entity is None
        assert "msg-20250926-001" not in provenance.json()

    def test_provenance_links_source_when_configured(self, message_bundle):
        config = Settings(_env_file=None, provenance_link_source=True)
        bundle = DocumentConverter(config).transform(message_bundle, include_provenance=True)

        provenance = bundle.entry[-1].resource
        assert provenance.entity[0].role == "source"
        assert provenance.entity[0].what.reference == "Bundle/msg-20250926-001"


class TestProvenancePolicy:
    """Test the include-provenance configuration flag."""

    def test_default_policy_includes_provenance(self, converter, message_bundle):
        bundle = converter.transform(message_bundle)

        assert resource_types(bundle)[-1] == "Provenance"

    def test_configured_policy_excludes_provenance(self, message_bundle):
        config = Settings(_env_file=None, include_provenance=False)
        bundle = DocumentConverter(config).transform(message_bundle)

        assert "Provenance" not in resource_types(bundle)

    def test_explicit_flag_overrides_policy(self, message_bundle):
        config = Settings(_env_file=None, include_provenance=False)
        bundle = DocumentConverter(config).transform(message_bundle, include_provenance=True)

        assert resource_types(bundle)[-1] == "Provenance"


class TestRepeatability:
    """Test that repeated conversions differ only in generated fields."""

    @pytest.mark.parametrize("include_provenance", [True, False])
    def test_same_structure(self, converter, message_bundle, include_provenance):
        first = converter.transform(message_bundle, include_provenance=include_provenance)
        second = converter.transform(message_bundle, include_provenance=include_provenance)

        assert first.id != second.id
        assert resource_types(first) == resource_types(second)
        assert normalized(first) == normalized(second)

    def test_input_not_modified(self, converter, message_bundle):
        original = copy.deepcopy(message_bundle)
        converter.transform(message_bundle)

        assert message_bundle == original

    def test_accepts_parsed_bundle(self, converter, message_bundle):
        bundle = converter.transform(Bundle.parse_obj(message_bundle), include_provenance=False)

        assert resource_types(bundle) == DOCUMENT_ORDER


class TestErrors:
    """Test conversion failures."""

    def test_missing_patient(self, converter, message_bundle, remove_entries):
        remove_entries(message_bundle, "Patient")

        with pytest.raises(MissingResourceError) as exc_info:
            converter.transform(message_bundle, include_provenance=True)
        assert exc_info.value.resource_type == "Patient"
        assert "Patient" in str(exc_info.value)

    def test_unresolved_focus(self, converter, message_bundle):
        message_bundle["entry"][0]["resource"]["focus"][0]["reference"] = "DiagnosticReport/missing"

        with pytest.raises(UnresolvedReferenceError):
            converter.transform(message_bundle)

    def test_focus_on_observation_duplicates_entry(self, converter, message_bundle):
        message_bundle["entry"][0]["resource"]["focus"][0]["reference"] = "Observation/obs-1"

        with pytest.raises(InvalidMessageBundleError, match="Duplicate entry Observation/obs-1"):
            converter.transform(message_bundle)


class TestSharedIds:
    """Ids only need to be unique per resource type."""

    @staticmethod
    def share_id(message_bundle: dict, resource_id: str = "1") -> dict:
        for entry in message_bundle["entry"]:
            entry["resource"]["id"] = resource_id
        message_bundle["entry"][0]["resource"]["focus"][0]["reference"] = f"DiagnosticReport/{resource_id}"
        return message_bundle

    def test_same_id_across_types_converts(self, converter, message_bundle):
        bundle = converter.transform(self.share_id(message_bundle), include_provenance=True)

        assert resource_types(bundle) == DOCUMENT_ORDER + ["Provenance"]
        full_urls = [entry.fullUrl for entry in bundle.entry]
        assert len(set(full_urls)) == len(full_urls)

    def test_input_full_urls_reused_on_collision(self, converter, message_bundle):
        input_full_urls = {
            entry["resource"]["resourceType"]: entry["fullUrl"] for entry in message_bundle["entry"]
        }
        bundle = converter.transform(self.share_id(message_bundle), include_provenance=False)

        full_urls = {entry.resource.resource_type: entry.fullUrl for entry in bundle.entry}
        assert full_urls["DiagnosticReport"] == "urn:uuid:1"
        assert full_urls["Observation"] == input_full_urls["Observation"]
        assert full_urls["Patient"] == input_full_urls["Patient"]
        assert full_urls["Organization"] == input_full_urls["Organization"]

    def test_generated_full_urls_without_input_full_urls(self, converter, message_bundle):
        for entry in message_bundle["entry"]:
            entry.pop("fullUrl", None)
        bundle = converter.transform(self.share_id(message_bundle), include_provenance=False)

        full_urls = [entry.fullUrl for entry in bundle.entry]
        assert len(set(full_urls)) == len(full_urls)
        assert all(full_url.startswith("urn:uuid:") for full_url in full_urls)

    def test_references_resolve_by_type_and_id(self, converter, message_bundle):
        bundle = converter.transform(self.share_id(message_bundle), include_provenance=False)
        composition = bundle.entry[0].resource

        assert composition.subject.reference == "Patient/1"
        assert composition.section[0].entry[0].reference == "DiagnosticReport/1"
        assert composition.custodian.reference == "Organization/1"


class TestConvert:
    """Test the ConversionResult wrapper."""

    def test_success(self, converter, message_bundle):
        result = converter.convert(message_bundle)

        assert result.success is True
        assert result.error is None
        assert result.bundle.type == "document"
        assert result.bundle_dict["resourceType"] == "Bundle"
        assert result.bundle_dict["entry"][0]["resource"]["resourceType"] == "Composition"
        assert isinstance(result.bundle_dict["timestamp"], str)
        assert json.loads(json.dumps(result.bundle_dict)) == result.bundle_dict
        assert result.resource_counts == {
            "Composition": 1,
            "DiagnosticReport": 1,
            "Observation": 1,
            "Patient": 1,
            "Organization": 1,
            "Provenance": 1,
        }

    def test_failure(self, converter, message_bundle, remove_entries):
        remove_entries(message_bundle, "Organization")
        result = converter.convert(message_bundle)

        assert result.success is False
        assert result.bundle is None
        assert result.error_type == "MissingResourceError"
        assert "Organization" in result.error
