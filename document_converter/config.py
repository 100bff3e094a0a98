from typing import Optional

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Conversion configuration with environment variable support (DOCUMENT_ prefix)"""

    # App
    app_name: str = "FHIR Document Converter"
    log_level: str = "INFO"

    # Provenance policy: True for regulated/archival use, False for lightweight internal use
    include_provenance: bool = True
    provenance_link_source: bool = False  # Add the source Message Bundle as a Provenance.entity

    # Composition vocabulary
    panel_code_system: str = "http://loinc.org"
    panel_code: str = "58410-2"
    panel_display: str = "Complete blood count (CBC) panel"
    composition_title: str = "Pathology Result Document"
    section_title: str = "Lab Results"

    # Provenance activity (v3-DataOperation)
    activity_system: str = "http://terminology.hl7.org/CodeSystem/v3-DataOperation"
    activity_code: str = "TRANSFORM"
    activity_display: str = "Transform"

    # Provenance agent
    agent_type_system: str = "http://terminology.hl7.org/CodeSystem/provenance-participant-type"
    agent_type_code: str = "assembler"
    agent_type_display: str = "Assembler"
    agent_display: str = "FHIR Conversion System"

    # Provenance reason (v3-ActReason)
    reason_system: str = "http://terminology.hl7.org/CodeSystem/v3-ActReason"
    reason_code: str = "TREAT"
    reason_display: str = "Treatment"
    reason_text: str = "Converted Message Bundle to Document Bundle for archival storage"

    # Document Bundle identity
    document_identifier_system: str = "http://example.org/doc-ids"
    full_url_base: Optional[str] = None  # e.g. 'https://fhir.example.org/fhir'; urn:uuid fullUrls if empty

    class Config:
        env_prefix = "DOCUMENT_"
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
