"""
Halal certificate issuance and verification core.
"""

from .service import (
    CertificateService, IssuanceService, RevocationService, VerificationResolver,
    get_certificate_service
)
from .models import Certificate, EffectiveStatus, VerificationResult, derive_status
from .generator import CertificateNumberGenerator
from .artifacts import CertificateRenderer, QRCodeEncoder, build_verification_url
from .database import DatabaseManager, get_db_manager, get_certificate_repo

__version__ = "1.0.0"

__all__ = [
    'CertificateService',
    'IssuanceService',
    'RevocationService',
    'VerificationResolver',
    'get_certificate_service',
    'Certificate',
    'EffectiveStatus',
    'VerificationResult',
    'derive_status',
    'CertificateNumberGenerator',
    'CertificateRenderer',
    'QRCodeEncoder',
    'build_verification_url',
    'DatabaseManager',
    'get_db_manager',
    'get_certificate_repo'
]
