"""
Shared sample data for conversion tests.

The sample Message Bundle carries MessageHeader mh-1 (focus DiagnosticReport/dr-1),
DiagnosticReport dr-1, Observation obs-1, Patient pat-1 and Organization org-1.
"""
import json
from pathlib import Path

import pytest

from document_converter.config import Settings

SAMPLE_MESSAGE_BUNDLE_PATH = Path(__file__).parent.parent / "data" / "pathology-message-bundle.json"


def load_sample_message_bundle() -> dict:
    """Load a fresh copy of the sample pathology Message Bundle."""
    with open(SAMPLE_MESSAGE_BUNDLE_PATH, "r", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def message_bundle():
    """Sample pathology Message Bundle (JSON dictionary)."""
    return load_sample_message_bundle()


@pytest.fixture
def config():
    """Default settings, ignoring any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def remove_entries():
    """Return a helper that drops every entry of a resource type from a bundle."""
    def _remove(bundle: dict, resource_type: str) -> dict:
        bundle["entry"] = [
            entry for entry in bundle["entry"]
            if entry["resource"]["resourceType"] != resource_type
        ]
        return bundle
    return _remove


@pytest.fixture
def find_entry():
    """Return a helper that finds the first entry resource of a type."""
    def _find(bundle: dict, resource_type: str) -> dict:
        for entry in bundle["entry"]:
            if entry["resource"]["resourceType"] == resource_type:
                return entry["resource"]
        raise KeyError(resource_type)
    return _find
