"""
Business logic of certificate issuance, verification and revocation.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from config.settings import Settings, get_settings
from .artifacts import CertificateRenderer, QRCodeEncoder, build_verification_url
from .database import (
    CertificateRepository, DatabaseManager, SubjectRepository,
    get_certificate_repo, get_subject_repo
)
from .exceptions import (
    ApplicationNotFoundError, CertificateInactiveError, CertificateNotFoundError,
    DuplicateActiveCertificateError, IdentifierExhaustedError, InvalidFormatError,
    NotApprovedError, SubjectNotFoundError, ValidationError
)
from .generator import CertificateNumberGenerator
from .models import (
    Application, ApplicationStatus, Certificate, CertificateFields,
    CertificateListItem, EffectiveStatus, HistoryRecord, SearchResult, Store, VerificationResult,
    utcnow
)
from .validators import (
    CertificateNumberValidator, PaginationValidator, ReasonValidator, SearchQueryValidator,
    StoreDataValidator
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def add_years(value: datetime, years: int) -> datetime:
    """
    Adds calendar years to a datetime; 29 February maps to 28 February.
    """
    try:
        return value.replace(year=value.year + years)
    except ValueError:
        return value.replace(year=value.year + years, day=28)


class IssuanceService:
    """Issues certificates for approved applications."""

    def __init__(self, certificate_repo: CertificateRepository, subject_repo: SubjectRepository,
                 generator: CertificateNumberGenerator, encoder: QRCodeEncoder,
                 settings: Settings, clock: Clock = utcnow):
        self.certificate_repo = certificate_repo
        self.subject_repo = subject_repo
        self.generator = generator
        self.encoder = encoder
        self.settings = settings
        self.clock = clock

    def issue(self, subject_id: int, application_id: int,
              issued_by: Optional[str] = None) -> Certificate:
        """
        Issues a certificate for a subject with an approved application.

        The duplicate check, number allocation and insert run in one
        transaction under the subject and year locks, so concurrent calls for
        one subject produce exactly one certificate.

        Args:
            subject_id: Store to certify
            application_id: Approved application of that store
            issued_by: Actor triggering issuance

        Returns:
            Certificate: Issued certificate with its QR artifact

        Raises:
            ApplicationNotFoundError: Unknown application or another store's
            NotApprovedError: Application is not approved
            SubjectNotFoundError: Unknown store
            DuplicateActiveCertificateError: The store already has an active certificate
            IdentifierExhaustedError: No unique number could be allocated
            StorageError: Storage failure, nothing was written
        """
        logger.info(f"Issuing certificate for store {subject_id}, application {application_id}")

        application = self.subject_repo.get_application(application_id)
        if application is None or application.store_id != subject_id:
            raise ApplicationNotFoundError(
                f"Application {application_id} of store {subject_id} not found"
            )
        if not application.is_approved:
            raise NotApprovedError(
                f"Application {application_id} is {application.status.value}, not approved"
            )
        if self.subject_repo.get_store(subject_id) is None:
            raise SubjectNotFoundError(f"Store {subject_id} not found")

        issued_date = self.clock()
        expiry_date = add_years(issued_date, self.settings.validity_years)
        year = issued_date.year

        repo = self.certificate_repo
        with repo.subject_locks.hold(subject_id), repo.sequence_locks.hold(year):
            with repo.db_manager.transaction() as session:
                existing = repo.find_active_by_subject(session, subject_id)
                if existing is not None:
                    logger.warning(
                        f"Store {subject_id} already holds active certificate "
                        f"{existing.certificate_number}"
                    )
                    raise DuplicateActiveCertificateError(
                        f"Store {subject_id} already holds active certificate "
                        f"{existing.certificate_number}"
                    )

                certificate_number = self._allocate_number(session, year)
                verification_url = build_verification_url(
                    self.settings.verification_base_url, certificate_number
                )
                qr_code = self.encoder.encode(verification_url)

                certificate = repo.insert(session, {
                    "certificate_number": certificate_number,
                    "subject_id": subject_id,
                    "application_id": application_id,
                    "issued_date": issued_date,
                    "expiry_date": expiry_date,
                    "qr_code": qr_code,
                    "issued_by": issued_by,
                })

        logger.info(
            f"Certificate {certificate.certificate_number} issued for store {subject_id}, "
            f"valid until {certificate.expiry_date.date().isoformat()}"
        )
        return certificate

    def _allocate_number(self, session, year: int) -> str:
        """
        Allocates a number not present in the store.

        Raises:
            IdentifierExhaustedError: After max_number_attempts collisions
        """
        attempts = self.settings.max_number_attempts
        for attempt in range(1, attempts + 1):
            certificate_number = self.generator.next_number(session, year)
            if not self.certificate_repo.number_exists(session, certificate_number):
                return certificate_number
            logger.warning(
                f"Certificate number {certificate_number} already taken "
                f"(attempt {attempt}/{attempts})"
            )

        logger.error(f"Could not allocate a certificate number for {year} in {attempts} attempts")
        raise IdentifierExhaustedError(
            f"Could not allocate a unique certificate number in {attempts} attempts"
        )


class VerificationResolver:
    """Resolves certificate numbers to their authoritative state. Read only."""

    def __init__(self, certificate_repo: CertificateRepository, clock: Clock = utcnow):
        self.certificate_repo = certificate_repo
        self.clock = clock
        self.number_validator = CertificateNumberValidator()

    def verify(self, certificate_number: str) -> VerificationResult:
        """
        Verifies a certificate by its public number.

        Args:
            certificate_number: Number exactly as received

        Returns:
            VerificationResult: Public verification payload

        Raises:
            InvalidFormatError: Malformed number, rejected before any lookup
            CertificateNotFoundError: No such certificate
        """
        if not self.number_validator.validate(certificate_number):
            logger.warning(f"Malformed certificate number: {certificate_number!r}")
            raise InvalidFormatError(f"Malformed certificate number: {certificate_number!r}")

        found = self.certificate_repo.find_with_store(certificate_number)
        if found is None:
            logger.info(f"Certificate {certificate_number} not found")
            raise CertificateNotFoundError(f"Certificate {certificate_number} not found")

        certificate, store = found
        now = self.clock()
        status = certificate.effective_status(now)

        return VerificationResult(
            valid=status == EffectiveStatus.ACTIVE,
            certificate_number=certificate.certificate_number,
            status=status,
            issued_date=certificate.issued_date,
            expiry_date=certificate.expiry_date,
            days_until_expiry=certificate.days_until_expiry(now),
            qr_code_url=certificate.qr_code_url,
            store=store,
            verified_at=now
        )


class RevocationService:
    """Revokes active certificates. Revocation is terminal."""

    def __init__(self, certificate_repo: CertificateRepository, clock: Clock = utcnow):
        self.certificate_repo = certificate_repo
        self.clock = clock
        self.reason_validator = ReasonValidator()

    def revoke(self, certificate_id: str, reason: str, actor: Optional[str] = None) -> Certificate:
        """
        Revokes a certificate.

        Args:
            certificate_id: Internal id of the certificate
            reason: Mandatory reason
            actor: Admin performing the revocation

        Returns:
            Certificate: Revoked certificate

        Raises:
            ValidationError: Empty reason
            CertificateNotFoundError: Unknown id
            AlreadyRevokedError: Certificate was already revoked
        """
        reason = self.reason_validator.check(reason)
        logger.info(f"Revoking certificate {certificate_id} by {actor}")

        certificate = self.certificate_repo.mark_revoked(
            certificate_id, reason, self.clock(), actor
        )

        logger.info(f"Certificate {certificate.certificate_number} revoked: {reason}")
        return certificate


class CertificateService:
    """Entry point combining issuance, verification and revocation."""

    def __init__(self, db_manager: DatabaseManager = None, settings: Settings = None,
                 clock: Clock = utcnow):
        """
        Args:
            db_manager: Database manager; built from ``settings.database_url``
                when settings are given, the shared one otherwise
            settings: Settings, the global ones by default
            clock: Source of the current time
        """
        self.settings = settings or get_settings()
        self.clock = clock

        if db_manager is None and settings is None:
            self.certificate_repo = get_certificate_repo()
            self.subject_repo = get_subject_repo()
        else:
            if db_manager is None:
                db_manager = DatabaseManager(self.settings.database_url)
            self.certificate_repo = CertificateRepository(db_manager, self.settings.sequence_start)
            self.subject_repo = SubjectRepository(db_manager)

        self.encoder = QRCodeEncoder()
        self.renderer = CertificateRenderer()
        self.generator = CertificateNumberGenerator(
            self.certificate_repo, self.settings.certificate_prefix
        )
        self.number_validator = CertificateNumberValidator()
        self.pagination_validator = PaginationValidator()
        self.search_validator = SearchQueryValidator()
        self.store_validator = StoreDataValidator()

        self.issuance = IssuanceService(
            self.certificate_repo, self.subject_repo, self.generator,
            self.encoder, self.settings, clock
        )
        self.resolver = VerificationResolver(self.certificate_repo, clock)
        self.revocation = RevocationService(self.certificate_repo, clock)

    @property
    def db_manager(self) -> DatabaseManager:
        return self.certificate_repo.db_manager

    def issue_certificate(self, subject_id: int, application_id: int,
                          issued_by: Optional[str] = None) -> Certificate:
        return self.issuance.issue(subject_id, application_id, issued_by)

    def approve_and_issue(self, application_id: int, issued_by: Optional[str] = None) -> Certificate:
        """
        Records an approval decision and issues the certificate.

        Args:
            application_id: Application approved by the review workflow
            issued_by: Admin who approved it

        Returns:
            Certificate: Issued certificate
        """
        application = self.subject_repo.set_application_status(
            application_id, ApplicationStatus.APPROVED
        )
        logger.info(f"Application {application_id} approved by {issued_by}")
        return self.issuance.issue(application.store_id, application_id, issued_by)

    def verify_certificate(self, certificate_number: str) -> VerificationResult:
        return self.resolver.verify(certificate_number)

    def revoke_certificate(self, certificate_id: str, reason: str,
                           actor: Optional[str] = None) -> Certificate:
        return self.revocation.revoke(certificate_id, reason, actor)

    def get_certificate(self, certificate_id: str) -> Certificate:
        """
        Admin view of a certificate, revocation details included.

        Raises:
            CertificateNotFoundError: Unknown id
        """
        certificate = self.certificate_repo.get(certificate_id)
        if certificate is None:
            raise CertificateNotFoundError(f"Certificate {certificate_id} not found")
        return certificate

    def list_certificates(self, status: Optional[EffectiveStatus] = None, search: Optional[str] = None,
                          page: int = 1, limit: int = 20) -> Tuple[List[CertificateListItem], int]:
        page, limit = self.pagination_validator.check(page, limit)
        return self.certificate_repo.list_certificates(
            status=status, search=search, page=page, limit=limit, now=self.clock()
        )

    def get_statistics(self) -> dict:
        """
        Returns certificate counts by effective status.

        Returns:
            dict: Statistics
        """
        stats = self.certificate_repo.get_statistics(now=self.clock())
        stats["last_updated"] = self.clock().isoformat()
        return stats

    def get_history(self, certificate_number: str) -> List[HistoryRecord]:
        """
        Audit trail of a certificate, oldest first.

        Raises:
            InvalidFormatError: Malformed number
            CertificateNotFoundError: No such certificate
        """
        self.number_validator.check(certificate_number)
        history = self.certificate_repo.get_history(certificate_number)
        if not history:
            raise CertificateNotFoundError(f"Certificate {certificate_number} not found")
        return history

    def get_subject_certificates(self, subject_id: int) -> List[Certificate]:
        """
        All certificates of a store, newest first.

        Raises:
            SubjectNotFoundError: Unknown store
        """
        if self.subject_repo.get_store(subject_id) is None:
            raise SubjectNotFoundError(f"Store {subject_id} not found")
        return self.certificate_repo.find_by_subject(subject_id)

    def search_certificate(self, query: str) -> SearchResult:
        """
        Public lookup by certificate number, then by store name or address.

        A store match yields the latest certificate of the first matching store.

        Args:
            query: Number or part of a store name or address

        Returns:
            SearchResult: Public fields of the certificate

        Raises:
            ValidationError: Query shorter than 3 characters
            CertificateNotFoundError: Nothing matches
        """
        query = self.search_validator.check(query)

        found = None
        if self.number_validator.validate(query):
            found = self.certificate_repo.find_with_store(query)
        if found is None:
            found = self.certificate_repo.find_latest_by_store_query(query)
        if found is None:
            logger.info(f"No certificate matches search {query!r}")
            raise CertificateNotFoundError("No matching certificates found")

        certificate, store = found
        return SearchResult(
            certificate_number=certificate.certificate_number,
            status=certificate.effective_status(self.clock()),
            issued_date=certificate.issued_date,
            expiry_date=certificate.expiry_date,
            store_name=store.name,
            store_address=store.full_address
        )

    def get_qr_code(self, certificate_number: str) -> bytes:
        """
        Returns the QR artifact stored at issuance.

        Raises:
            InvalidFormatError: Malformed number
            CertificateNotFoundError: No such certificate
        """
        self.number_validator.check(certificate_number)
        certificate = self.certificate_repo.find_by_certificate_number(certificate_number)
        if certificate is None:
            raise CertificateNotFoundError(f"Certificate {certificate_number} not found")
        return certificate.qr_code

    def render_certificate_pdf(self, certificate_number: str) -> bytes:
        """
        Renders the printable document of an active certificate.

        Args:
            certificate_number: Public number

        Returns:
            bytes: PDF document

        Raises:
            InvalidFormatError: Malformed number
            CertificateNotFoundError: No such certificate
            CertificateInactiveError: Certificate is expired or revoked
        """
        self.number_validator.check(certificate_number)
        found = self.certificate_repo.find_with_store(certificate_number)
        if found is None:
            raise CertificateNotFoundError(f"Certificate {certificate_number} not found")

        certificate, store = found
        status = certificate.effective_status(self.clock())
        if status != EffectiveStatus.ACTIVE:
            raise CertificateInactiveError(f"Certificate {certificate_number} is {status.value}")

        return self.renderer.render(CertificateFields(
            authority_name=self.settings.authority_name,
            subject_name=store.name,
            address=store.full_address,
            certificate_number=certificate.certificate_number,
            issued_date=certificate.issued_date,
            expiry_date=certificate.expiry_date,
            qr_code=certificate.qr_code
        ))

    def register_store(self, name: str, address: str, city: str = "", state: str = "",
                       postcode: str = "", business_type: str = "") -> Store:
        """
        Registers a store in the subject directory.

        Raises:
            ValidationError: If the store data is invalid
        """
        errors = self.store_validator.validate_all(name, address, postcode)
        if errors:
            raise ValidationError("; ".join(errors))
        store = self.subject_repo.add_store(
            name.strip(), address.strip(), city, state, postcode, business_type
        )
        logger.info(f"Store {store.id} registered: {store.name}")
        return store

    def register_application(self, store_id: int,
                             status: ApplicationStatus = ApplicationStatus.PENDING) -> Application:
        return self.subject_repo.add_application(store_id, status)


_certificate_service: Optional[CertificateService] = None


def get_certificate_service() -> CertificateService:
    """Returns the shared certificate service."""
    global _certificate_service
    if _certificate_service is None:
        _certificate_service = CertificateService()
    return _certificate_service
