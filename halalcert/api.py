"""
HTTP API for certificate issuance, verification and revocation.
"""
import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Response
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from .exceptions import (
    AlreadyRevokedError, ApplicationNotFoundError, CertificateError,
    CertificateInactiveError, CertificateNotFoundError, DuplicateActiveCertificateError,
    GenerationError, InvalidFormatError, NotApprovedError, StorageError,
    SubjectNotFoundError, ValidationError
)
from .models import EffectiveStatus
from .service import CertificateService

# Subclasses come before their bases
_ERROR_STATUS = (
    (InvalidFormatError, 404),
    (ValidationError, 400),
    (CertificateNotFoundError, 404),
    (SubjectNotFoundError, 404),
    (ApplicationNotFoundError, 404),
    (NotApprovedError, 404),
    (DuplicateActiveCertificateError, 409),
    (AlreadyRevokedError, 409),
    (CertificateInactiveError, 409),
    (GenerationError, 500),
    (StorageError, 500),
)

NOT_FOUND_MESSAGE = "Certificate not found"


# API models
class IssueRequest(BaseModel):
    """Certificate issuance request"""
    model_config = ConfigDict(populate_by_name=True)

    subject_id: int = Field(..., alias="subjectId")
    application_id: int = Field(..., alias="applicationId")
    issued_by: Optional[str] = Field(None, alias="issuedBy", max_length=64)


class RevokeRequest(BaseModel):
    """Certificate revocation request"""
    model_config = ConfigDict(populate_by_name=True)

    reason: Optional[str] = None
    revoked_by: Optional[str] = Field(None, alias="revokedBy", max_length=64)


class CertificateAPI:
    """API for certificate management"""

    def __init__(self, service: CertificateService, api_key: Optional[str] = None,
                 allow_unauthenticated_admin: bool = False):
        """
        Args:
            service: Certificate service
            api_key: Bearer token of admin routes
            allow_unauthenticated_admin: Opens admin routes when no key is set;
                meant for local development only
        """
        self.service = service
        self.api_key = api_key
        self.allow_unauthenticated_admin = allow_unauthenticated_admin
        self.logger = logging.getLogger(__name__)

        self.app = FastAPI(
            title="Halal Certificate API",
            description="Issuance, public verification and revocation of halal certificates",
            version="1.0.0"
        )

        self._setup_routes()

    def _verify_api_key(
            self,
            credentials: Optional[HTTPAuthorizationCredentials] = Depends(HTTPBearer(auto_error=False))
    ) -> bool:
        """Checks the bearer API key; admin routes are closed when no key is configured"""
        if not self.api_key:
            if self.allow_unauthenticated_admin:
                return True
            self.logger.warning("Admin request refused: no API key is configured")
            raise HTTPException(status_code=503, detail="Admin API is disabled: no API key configured")
        if credentials is None or credentials.credentials != self.api_key:
            raise HTTPException(status_code=401, detail="Invalid API key")
        return True

    def _http_error(self, error: CertificateError) -> HTTPException:
        """Maps a domain error to an HTTP error"""
        status_code = 500
        for error_type, code in _ERROR_STATUS:
            if isinstance(error, error_type):
                status_code = code
                break

        if status_code >= 500:
            self.logger.error(f"Request failed: {error}")
            return HTTPException(status_code=status_code, detail="Internal server error")

        self.logger.warning(f"Request rejected ({status_code}): {error}")
        return HTTPException(status_code=status_code, detail=str(error))

    def _setup_routes(self):
        """Registers API routes"""

        @self.app.post("/certificates", status_code=201)
        def issue_certificate(
                request: IssueRequest,
                authorized: bool = Depends(self._verify_api_key)
        ):
            """Issues a certificate for an approved application"""
            try:
                certificate = self.service.issue_certificate(
                    request.subject_id, request.application_id, request.issued_by
                )
            except CertificateError as e:
                raise self._http_error(e)

            return certificate.to_dict(self.service.clock())

        @self.app.get("/verify/{certificate_number}")
        def verify_certificate(certificate_number: str):
            """Public verification of a certificate"""
            try:
                result = self.service.verify_certificate(certificate_number)
            except (InvalidFormatError, CertificateNotFoundError):
                # Malformed and unknown numbers are indistinguishable to callers
                return JSONResponse(
                    status_code=404,
                    content={"valid": False, "message": NOT_FOUND_MESSAGE}
                )
            except CertificateError as e:
                raise self._http_error(e)

            return result.to_dict()

        # Registered before /certificates/{certificate_id}
        @self.app.get("/certificates/search")
        def search_certificate(q: Optional[str] = None):
            """Public search by certificate number or store name and address"""
            try:
                result = self.service.search_certificate(q)
            except CertificateError as e:
                raise self._http_error(e)

            return result.to_dict()

        @self.app.patch("/certificates/{certificate_id}/revoke")
        def revoke_certificate(
                certificate_id: str,
                request: RevokeRequest,
                authorized: bool = Depends(self._verify_api_key)
        ):
            """Revokes a certificate"""
            try:
                certificate = self.service.revoke_certificate(
                    certificate_id, request.reason, request.revoked_by
                )
            except CertificateError as e:
                raise self._http_error(e)

            return certificate.to_dict(self.service.clock())

        @self.app.get("/certificates")
        def list_certificates(
                status: Optional[EffectiveStatus] = None,
                search: Optional[str] = None,
                page: int = 1,
                limit: int = 20,
                authorized: bool = Depends(self._verify_api_key)
        ):
            """Admin listing of certificates"""
            try:
                items, total = self.service.list_certificates(status, search, page, limit)
            except CertificateError as e:
                raise self._http_error(e)

            return {
                "certificates": [item.to_dict() for item in items],
                "page": page,
                "limit": limit,
                "total": total,
            }

        @self.app.get("/certificates/{certificate_id}")
        def get_certificate(
                certificate_id: str,
                authorized: bool = Depends(self._verify_api_key)
        ):
            """Admin view of a certificate"""
            try:
                certificate = self.service.get_certificate(certificate_id)
            except CertificateError as e:
                raise self._http_error(e)

            return certificate.to_dict(self.service.clock())

        @self.app.get("/certificates/{certificate_number}/history")
        def get_history(
                certificate_number: str,
                authorized: bool = Depends(self._verify_api_key)
        ):
            """Audit trail of a certificate"""
            try:
                history = self.service.get_history(certificate_number)
            except InvalidFormatError:
                raise HTTPException(status_code=404, detail=NOT_FOUND_MESSAGE)
            except CertificateError as e:
                raise self._http_error(e)

            return {
                "certificateNumber": certificate_number,
                "history": [record.to_dict() for record in history],
            }

        @self.app.get("/stores/{store_id}/certificates")
        def get_store_certificates(
                store_id: int,
                authorized: bool = Depends(self._verify_api_key)
        ):
            """All certificates of a store, newest first"""
            try:
                certificates = self.service.get_subject_certificates(store_id)
            except CertificateError as e:
                raise self._http_error(e)

            now = self.service.clock()
            return {
                "storeId": store_id,
                "certificates": [
                    certificate.to_dict(now, include_qr=False) for certificate in certificates
                ],
            }

        @self.app.get("/certificates/{certificate_number}/qr.png")
        def get_qr_code(certificate_number: str):
            """QR code stored at issuance"""
            try:
                png = self.service.get_qr_code(certificate_number)
            except (InvalidFormatError, CertificateNotFoundError):
                raise HTTPException(status_code=404, detail=NOT_FOUND_MESSAGE)
            except CertificateError as e:
                raise self._http_error(e)

            return Response(content=png, media_type="image/png")

        @self.app.get("/certificates/{certificate_number}/pdf")
        def get_certificate_pdf(certificate_number: str):
            """Printable certificate document"""
            try:
                pdf = self.service.render_certificate_pdf(certificate_number)
            except (InvalidFormatError, CertificateNotFoundError):
                raise HTTPException(status_code=404, detail=NOT_FOUND_MESSAGE)
            except CertificateError as e:
                raise self._http_error(e)

            return Response(
                content=pdf,
                media_type="application/pdf",
                headers={
                    "Content-Disposition": f'inline; filename="{certificate_number}.pdf"'
                }
            )

        @self.app.get("/statistics")
        def get_statistics(authorized: bool = Depends(self._verify_api_key)):
            """Certificate counts by effective status"""
            try:
                stats = self.service.get_statistics()
            except CertificateError as e:
                raise self._http_error(e)

            return {
                "totalCertificates": stats["total_certificates"],
                "activeCertificates": stats["active_certificates"],
                "expiredCertificates": stats["expired_certificates"],
                "revokedCertificates": stats["revoked_certificates"],
                "lastUpdated": stats["last_updated"],
            }
