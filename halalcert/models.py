"""
Pydantic models for certificate records and verification payloads.
"""

import base64
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CertificateStatus(str, Enum):
    """Status persisted in storage."""
    ACTIVE = "active"
    REVOKED = "revoked"


class EffectiveStatus(str, Enum):
    """Status computed at read time."""
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


class ApplicationStatus(str, Enum):
    """Certification application states recorded by the review workflow."""
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Attaches UTC to naive datetimes.

    SQLite drops tzinfo on read; all stored timestamps are UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def derive_status(status: CertificateStatus, expiry_date: datetime,
                  now: Optional[datetime] = None) -> EffectiveStatus:
    """
    Computes the effective status of a certificate.

    Priority is revoked > expired > active: a revoked certificate is reported
    revoked even past its expiry date.

    Args:
        status: Stored status
        expiry_date: Expiry date of the certificate
        now: Reference time, defaults to the current time

    Returns:
        EffectiveStatus: Status to display
    """
    if CertificateStatus(status) == CertificateStatus.REVOKED:
        return EffectiveStatus.REVOKED
    if now is None:
        now = utcnow()
    if ensure_utc(now) > ensure_utc(expiry_date):
        return EffectiveStatus.EXPIRED
    return EffectiveStatus.ACTIVE


def qr_data_url(png: bytes) -> str:
    """Encodes PNG bytes as a data URL."""
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


class Store(BaseModel):
    """Business certified by a certificate (the subject)."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    name: str = Field(..., min_length=1, description="Trading name")
    address: str = Field(..., description="Street address")
    city: str = Field(default="", description="City")
    state: str = Field(default="", description="State")
    postcode: str = Field(default="", description="Postcode")
    business_type: str = Field(default="", description="Business type")

    @property
    def full_address(self) -> str:
        """Returns the address in a single line."""
        locality = " ".join(part for part in (self.state, self.postcode) if part)
        parts = [self.address, self.city, locality]
        return ", ".join(part for part in parts if part)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "postcode": self.postcode,
            "businessType": self.business_type,
        }


class Application(BaseModel):
    """Certification application as recorded by the review workflow."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    store_id: int
    status: ApplicationStatus
    created_at: datetime
    updated_at: datetime

    @property
    def is_approved(self) -> bool:
        return self.status == ApplicationStatus.APPROVED


class Revocation(BaseModel):
    """Revocation facts, set once."""
    model_config = ConfigDict(frozen=True)

    reason: str = Field(..., min_length=1, description="Reason for revocation")
    revoked_at: datetime = Field(..., description="Time of revocation")
    revoked_by: Optional[str] = Field(None, description="Actor who revoked the certificate")


class Certificate(BaseModel):
    """Issued certificate. Issuance facts are immutable."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str = Field(..., description="Internal identifier")
    certificate_number: str = Field(..., description="Public number PREFIX-YEAR-SEQ")
    subject_id: int = Field(..., description="Certified store")
    application_id: int = Field(..., description="Approved application")
    status: CertificateStatus = Field(..., description="Stored status")
    issued_date: datetime = Field(..., description="Issue time (UTC)")
    expiry_date: datetime = Field(..., description="Expiry time (UTC)")
    qr_code: bytes = Field(..., repr=False, description="QR code PNG")
    issued_by: Optional[str] = Field(None, description="Actor who triggered issuance")
    revocation: Optional[Revocation] = None

    @model_validator(mode="after")
    def check_lifecycle(self):
        """Validates dates and the revocation/status pairing."""
        if ensure_utc(self.issued_date) >= ensure_utc(self.expiry_date):
            raise ValueError("issued_date must be earlier than expiry_date")
        if (self.status == CertificateStatus.REVOKED) != (self.revocation is not None):
            raise ValueError("revocation must be present if and only if status is revoked")
        return self

    @property
    def qr_code_url(self) -> str:
        """QR artifact as a data URL."""
        return qr_data_url(self.qr_code)

    def effective_status(self, now: Optional[datetime] = None) -> EffectiveStatus:
        return derive_status(self.status, self.expiry_date, now)

    def days_until_expiry(self, now: Optional[datetime] = None) -> int:
        """Whole days left until expiry, 0 once expired."""
        if now is None:
            now = utcnow()
        remaining = ensure_utc(self.expiry_date) - ensure_utc(now)
        if remaining.total_seconds() <= 0:
            return 0
        # Rounded up, a certificate expiring later today has 1 day left
        return remaining.days + (1 if remaining.seconds or remaining.microseconds else 0)

    def to_dict(self, now: Optional[datetime] = None, include_qr: bool = True) -> dict:
        """
        Converts the certificate for the internal/admin JSON surface.

        Args:
            now: Reference time for the effective status
            include_qr: Include the QR data URL

        Returns:
            dict: camelCase payload
        """
        data = {
            "id": self.id,
            "certificateNumber": self.certificate_number,
            "subjectId": self.subject_id,
            "applicationId": self.application_id,
            "status": self.status.value,
            "effectiveStatus": self.effective_status(now).value,
            "issuedDate": ensure_utc(self.issued_date).isoformat(),
            "expiryDate": ensure_utc(self.expiry_date).isoformat(),
            "issuedBy": self.issued_by,
            "revocation": None,
        }
        if self.revocation is not None:
            data["revocation"] = {
                "reason": self.revocation.reason,
                "revokedAt": ensure_utc(self.revocation.revoked_at).isoformat(),
                "revokedBy": self.revocation.revoked_by,
            }
        if include_qr:
            data["qrCodeUrl"] = self.qr_code_url
        return data


class CertificateFields(BaseModel):
    """Human-readable fields printed on a certificate document."""
    model_config = ConfigDict(frozen=True)

    authority_name: str
    subject_name: str
    address: str
    certificate_number: str
    issued_date: datetime
    expiry_date: datetime
    qr_code: bytes = Field(..., repr=False)


class VerificationResult(BaseModel):
    """
    Public verification payload.

    Deliberately carries no revocation details.
    """
    model_config = ConfigDict(frozen=True)

    valid: bool
    certificate_number: str
    status: EffectiveStatus
    issued_date: datetime
    expiry_date: datetime
    days_until_expiry: int
    qr_code_url: str
    store: Store
    verified_at: datetime

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "certificate": {
                "certificateNumber": self.certificate_number,
                "status": self.status.value,
                "issuedDate": ensure_utc(self.issued_date).isoformat(),
                "expiryDate": ensure_utc(self.expiry_date).isoformat(),
                "isExpired": self.status == EffectiveStatus.EXPIRED,
                "daysUntilExpiry": self.days_until_expiry,
                "qrCodeUrl": self.qr_code_url,
            },
            "store": self.store.to_dict(),
            "verificationDate": ensure_utc(self.verified_at).isoformat(),
        }


class CertificateListItem(BaseModel):
    """Row of the admin certificate listing."""
    model_config = ConfigDict(frozen=True)

    id: str
    certificate_number: str
    status: EffectiveStatus
    issued_date: datetime
    expiry_date: datetime
    store_name: Optional[str] = None
    store_city: Optional[str] = None
    store_state: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "certificateNumber": self.certificate_number,
            "status": self.status.value,
            "issuedDate": ensure_utc(self.issued_date).isoformat(),
            "expiryDate": ensure_utc(self.expiry_date).isoformat(),
            "storeName": self.store_name,
            "storeCity": self.store_city,
            "storeState": self.store_state,
        }


class HistoryRecord(BaseModel):
    """Audit trail entry for a certificate."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    certificate_number: str
    action: str
    performed_at: datetime
    performed_by: Optional[str] = None
    details: Optional[dict] = None

    def to_dict(self) -> dict:
        return {
            "certificateNumber": self.certificate_number,
            "action": self.action,
            "performedAt": ensure_utc(self.performed_at).isoformat(),
            "performedBy": self.performed_by,
            "details": self.details,
        }


class SearchResult(BaseModel):
    """Public answer of the certificate search; carries no revocation details."""
    model_config = ConfigDict(frozen=True)

    certificate_number: str
    status: EffectiveStatus
    issued_date: datetime
    expiry_date: datetime
    store_name: str
    store_address: str

    def to_dict(self) -> dict:
        return {
            "certificate": {
                "certificateNumber": self.certificate_number,
                "status": self.status.value,
                "issuedDate": ensure_utc(self.issued_date).isoformat(),
                "expiryDate": ensure_utc(self.expiry_date).isoformat(),
                "storeName": self.store_name,
                "storeAddress": self.store_address,
            }
        }
