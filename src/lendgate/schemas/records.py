"""Hash-record and document-scan response schemas."""

from pydantic import BaseModel, Field


class HashRecordResponse(BaseModel):
    success: bool = True
    blockchainRecordId: int
    dataHash: str = Field(..., description="Hex SHA-256 of the compact JSON payload")
    transactionHash: str
    blockNumber: int
    blockchainHash: str
    verificationStatus: str


class ScanResponse(BaseModel):
    is_safe: bool
    scan_id: str
    threats_found: list[str] = Field(default_factory=list)
    scan_date: str
    confidence: int = Field(..., ge=0, le=100)
    cached: bool | None = None
