from pydantic import BaseModel, Field
from typing import Optional, Dict, Any

# Health check schema
class HealthResponse(BaseModel):
    """Health check response"""
    status: str


# ============================================================================
# Document Conversion Schemas
# ============================================================================

class ToDocumentRequest(BaseModel):
    """Request for Message Bundle to Document Bundle conversion"""
    message_bundle: Dict[str, Any] = Field(..., description="FHIR Message Bundle (JSON)")
    include_provenance: Optional[bool] = Field(
        None, description="Append a Provenance entry; omit to use the configured policy"
    )


class ToDocumentResponse(BaseModel):
    """FHIR Document Bundle response"""
    success: bool = Field(..., description="Whether conversion succeeded")
    bundle: Optional[Dict[str, Any]] = Field(None, description="FHIR Document Bundle")
    resource_counts: Optional[Dict[str, int]] = Field(None, description="Count of each FHIR resource type")
