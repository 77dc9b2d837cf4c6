"""
Generator of unique certificate numbers.
"""

import re
from typing import Tuple

from sqlalchemy.orm import Session

from .exceptions import GenerationError, ValidationError


class CertificateNumberGenerator:
    """Generator of certificate numbers in the PREFIX-YEAR-SEQ format."""

    def __init__(self, repository, prefix: str = "HAL"):
        """
        Args:
            repository: Certificate store owning the per-year sequence
            prefix: Number prefix, upper-case letters
        """
        self.prefix_pattern = re.compile(r'[A-Z]+')
        self.number_pattern = re.compile(r'([A-Z]+)-([0-9]{4})-([0-9]+)')
        self.repository = repository
        self.prefix = self._check_prefix(prefix)

    def generate(self, prefix: str, year: int, sequence: int) -> str:
        """
        Formats a certificate number.

        Format: PREFIX-YEAR-SEQ, the sequence is zero-padded to 4 digits
        (HAL-2025-1001, HAL-2025-0007, HAL-2025-12345).

        Args:
            prefix: Upper-case prefix
            year: Four-digit year
            sequence: Positive sequence value

        Returns:
            str: Certificate number

        Raises:
            ValidationError: If an argument is out of range
        """
        self._check_prefix(prefix)
        if not 1000 <= year <= 9999:
            raise ValidationError(f"Year must have four digits: {year}")
        if sequence < 1:
            raise ValidationError(f"Sequence must be positive: {sequence}")

        return f"{prefix}-{year:04d}-{sequence:04d}"

    def next_number(self, session: Session, year: int) -> str:
        """
        Allocates the next number of a year from the store.

        Must be called inside the issuing transaction while holding the
        store's sequence lock for the year.

        Args:
            session: Session of the issuing transaction
            year: Year of issue

        Returns:
            str: Fresh certificate number
        """
        sequence = self.repository.next_sequence(session, year)
        return self.generate(self.prefix, year, sequence)

    def parse(self, certificate_number: str) -> Tuple[str, int, int]:
        """
        Splits a certificate number into its parts.

        Args:
            certificate_number: Number to parse

        Returns:
            Tuple[str, int, int]: (prefix, year, sequence)

        Raises:
            GenerationError: If the number has a wrong format
        """
        match = self.number_pattern.fullmatch(certificate_number or "")
        if match is None:
            raise GenerationError(f"Wrong certificate number format: {certificate_number}")
        prefix, year, sequence = match.groups()
        return prefix, int(year), int(sequence)

    def _check_prefix(self, prefix: str) -> str:
        if not prefix or not self.prefix_pattern.fullmatch(prefix):
            raise ValidationError(f"Prefix must consist of upper-case letters: {prefix!r}")
        return prefix
