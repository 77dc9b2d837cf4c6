"""
Custom exceptions of the certification system.
"""


class CertificateError(Exception):
    """Base exception for all certificate errors."""
    pass


class ValidationError(CertificateError):
    """Invalid input data."""
    pass


class InvalidFormatError(ValidationError):
    """Malformed certificate number."""
    pass


class CertificateNotFoundError(CertificateError):
    """Certificate not found."""
    pass


class SubjectNotFoundError(CertificateError):
    """Store (certificate subject) not found."""
    pass


class ApplicationNotFoundError(CertificateError):
    """Certification application not found."""
    pass


class NotApprovedError(CertificateError):
    """Application is not in the approved state."""
    pass


class DuplicateActiveCertificateError(CertificateError):
    """The subject already holds an active certificate."""
    pass


class AlreadyRevokedError(CertificateError):
    """Certificate has already been revoked."""
    pass


class CertificateInactiveError(CertificateError):
    """Operation requires an effectively active certificate."""
    pass


class GenerationError(CertificateError):
    """Certificate artifact or number generation failed."""
    pass


class IdentifierExhaustedError(GenerationError):
    """No unique certificate number could be allocated."""
    pass


class StorageError(CertificateError):
    """Storage layer failure."""
    pass


class DuplicateKeyError(StorageError):
    """Certificate number already exists in the store."""
    pass
