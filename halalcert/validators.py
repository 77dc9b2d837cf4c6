"""
Input validation for the certification system.
"""

import re
from typing import List, Optional, Tuple

from .exceptions import InvalidFormatError, ValidationError


class CertificateNumberValidator:
    """Validator of public certificate numbers."""

    def __init__(self):
        # Every number ever printed must keep parsing with this pattern
        self.accepted_pattern = re.compile(r'[A-Z]+-[0-9]{4}-[0-9]+')
        # Numbers produced by the generator
        self.generated_pattern = re.compile(r'[A-Z]+-[0-9]{4}-[0-9]{4,}')

    def validate(self, certificate_number: str) -> bool:
        """
        Checks the format of a certificate number.

        The value is taken verbatim: surrounding whitespace or a trailing
        newline makes it invalid.

        Args:
            certificate_number: Number to check

        Returns:
            bool: True if the format is valid
        """
        if not isinstance(certificate_number, str):
            return False
        return self.accepted_pattern.fullmatch(certificate_number) is not None

    def is_generated_format(self, certificate_number: str) -> bool:
        """Checks the stricter format of newly generated numbers."""
        return self.generated_pattern.fullmatch(certificate_number) is not None

    def check(self, certificate_number: str) -> str:
        """
        Validates a certificate number.

        Raises:
            InvalidFormatError: If the format is wrong
        """
        if not self.validate(certificate_number):
            raise InvalidFormatError(f"Malformed certificate number: {certificate_number!r}")
        return certificate_number


class ReasonValidator:
    """Validator of revocation reasons."""

    max_length = 1000

    def check(self, reason: Optional[str]) -> str:
        """
        Validates a revocation reason.

        Args:
            reason: Reason entered by the admin

        Returns:
            str: Reason without surrounding whitespace

        Raises:
            ValidationError: If the reason is empty or too long
        """
        if reason is None or not str(reason).strip():
            raise ValidationError("Revocation reason is required")
        reason = str(reason).strip()
        if len(reason) > self.max_length:
            raise ValidationError(f"Revocation reason exceeds {self.max_length} characters")
        return reason


class SearchQueryValidator:
    """Validator of public search queries."""

    min_length = 3
    max_length = 100

    def check(self, query: Optional[str]) -> str:
        """
        Returns the query without surrounding whitespace.

        Raises:
            ValidationError: If the query is too short or too long
        """
        query = (query or "").strip()
        if len(query) < self.min_length:
            raise ValidationError(f"Search query must be at least {self.min_length} characters")
        if len(query) > self.max_length:
            raise ValidationError(f"Search query exceeds {self.max_length} characters")
        return query


class PaginationValidator:
    """Validator of listing parameters."""

    max_limit = 100

    def check(self, page: int, limit: int) -> Tuple[int, int]:
        if page < 1:
            raise ValidationError("Page must be at least 1")
        if limit < 1 or limit > self.max_limit:
            raise ValidationError(f"Limit must be between 1 and {self.max_limit}")
        return page, limit


class StoreDataValidator:
    """Validator of store (subject) records."""

    def __init__(self):
        self.postcode_pattern = re.compile(r'[0-9]{4}')

    def validate_all(self, name: str, address: str, postcode: str = "") -> List[str]:
        """
        Validates store data.

        Args:
            name: Trading name
            address: Street address
            postcode: Postcode, optional

        Returns:
            List[str]: Validation errors
        """
        errors = []

        if not name or not name.strip():
            errors.append("Store name is required")
        elif len(name) > 255:
            errors.append("Store name is too long")

        if not address or not address.strip():
            errors.append("Store address is required")

        if postcode and not self.postcode_pattern.fullmatch(postcode):
            errors.append(f"Postcode must contain 4 digits: {postcode}")

        return errors
