"""
Tests for the certificate number generator
"""
import pytest
from unittest.mock import MagicMock

from halalcert.database import CertificateRepository
from halalcert.exceptions import GenerationError, ValidationError
from halalcert.generator import CertificateNumberGenerator
from halalcert.validators import CertificateNumberValidator


class TestCertificateNumberGenerator:
    """Tests for CertificateNumberGenerator"""

    @pytest.fixture
    def repository(self):
        """Repository mock handing out sequence values"""
        mock = MagicMock()
        mock.next_sequence = MagicMock(side_effect=[1001, 1002, 1003])
        return mock

    @pytest.fixture
    def generator(self, repository):
        return CertificateNumberGenerator(repository, prefix="HAL")

    def test_generate_format(self, generator):
        """Test the PREFIX-YEAR-SEQ layout"""
        assert generator.generate("HAL", 2025, 1001) == "HAL-2025-1001"

    def test_generate_pads_sequence(self, generator):
        assert generator.generate("HAL", 2025, 7) == "HAL-2025-0007"

    def test_generate_long_sequence(self, generator):
        """Sequences beyond four digits keep growing"""
        assert generator.generate("HAL", 2025, 12345) == "HAL-2025-12345"

    def test_generated_numbers_match_public_format(self, generator):
        validator = CertificateNumberValidator()
        for sequence in (1, 999, 1001, 99999):
            number = generator.generate("HAL", 2031, sequence)
            assert validator.validate(number)
            assert validator.is_generated_format(number)

    @pytest.mark.parametrize("prefix", ["", "hal", "HAL1", "HA-L"])
    def test_generate_rejects_bad_prefix(self, generator, prefix):
        with pytest.raises(ValidationError):
            generator.generate(prefix, 2025, 1)

    @pytest.mark.parametrize("year", [999, 10000])
    def test_generate_rejects_bad_year(self, generator, year):
        with pytest.raises(ValidationError):
            generator.generate("HAL", year, 1)

    def test_generate_rejects_non_positive_sequence(self, generator):
        with pytest.raises(ValidationError):
            generator.generate("HAL", 2025, 0)

    def test_constructor_rejects_bad_prefix(self, repository):
        with pytest.raises(ValidationError):
            CertificateNumberGenerator(repository, prefix="hal")

    def test_next_number_uses_store_sequence(self, generator, repository):
        """Test allocation through the store counter"""
        session = MagicMock()

        assert generator.next_number(session, 2025) == "HAL-2025-1001"
        assert generator.next_number(session, 2025) == "HAL-2025-1002"
        repository.next_sequence.assert_called_with(session, 2025)

    def test_parse(self, generator):
        assert generator.parse("HAL-2025-1001") == ("HAL", 2025, 1001)
        assert generator.parse("ABC-2030-00042") == ("ABC", 2030, 42)

    @pytest.mark.parametrize("number", [
        "", "HAL-25-1001", "hal-2025-1001", "HAL-2025-", "HAL-2025-1001\n", "HAL-٢٠٢٥-١٠٠١"
    ])
    def test_parse_invalid(self, generator, number):
        with pytest.raises(GenerationError):
            generator.parse(number)


class TestStoreSequence:
    """Tests for the per-year counter in the store"""

    @pytest.fixture
    def repository(self, db_manager):
        return CertificateRepository(db_manager, sequence_start=1001)

    def test_sequence_starts_at_configured_value(self, repository, db_manager):
        with db_manager.transaction() as session:
            assert repository.next_sequence(session, 2025) == 1001
            assert repository.next_sequence(session, 2025) == 1002

    def test_sequence_per_year(self, repository, db_manager):
        with db_manager.transaction() as session:
            repository.next_sequence(session, 2025)
            repository.next_sequence(session, 2025)
            assert repository.next_sequence(session, 2026) == 1001

    def test_sequence_survives_transactions(self, repository, db_manager):
        with db_manager.transaction() as session:
            repository.next_sequence(session, 2025)
        with db_manager.transaction() as session:
            assert repository.next_sequence(session, 2025) == 1002

    def test_rolled_back_allocation_is_released(self, repository, db_manager):
        """A failed issuing transaction does not consume its number"""
        with pytest.raises(RuntimeError):
            with db_manager.transaction() as session:
                repository.next_sequence(session, 2025)
                raise RuntimeError("issuance failed")

        with db_manager.transaction() as session:
            assert repository.next_sequence(session, 2025) == 1001
