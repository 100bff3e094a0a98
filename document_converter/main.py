import logging

from fastapi import FastAPI, HTTPException

from . import schemas
from .config import settings
from .fhir import DocumentConverter

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Converts FHIR Message Bundles (pathology results) into Document Bundles",
    version="1.0.0"
)

@app.get("/health", response_model=schemas.HealthResponse)
def health_check():
    """
    Health check endpoint - returns {"status": "ok"}
    """
    return {"status": "ok"}

@app.post("/to_document", response_model=schemas.ToDocumentResponse)
def to_document(request: schemas.ToDocumentRequest):
    """
    Convert a FHIR Message Bundle into a FHIR Document Bundle.

    The Document Bundle holds, in order:
    1. Composition (status final, panel code, subject, author, section)
    2. The DiagnosticReport referenced by MessageHeader.focus
    3. Observation
    4. Patient
    5. Organization
    6. Provenance (when include_provenance, or the configured default, is true)

    Returns:
    - Document Bundle with resource counts
    - 422 error naming the missing, ambiguous or unresolved resource
    """
    converter = DocumentConverter(settings)
    result = converter.convert(
        request.message_bundle,
        include_provenance=request.include_provenance
    )

    if not result.success:
        raise HTTPException(status_code=422, detail=result.error)

    return schemas.ToDocumentResponse(
        success=True,
        bundle=result.bundle_dict,
        resource_counts=result.resource_counts
    )
