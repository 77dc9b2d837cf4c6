"""
Tests for the CLI
"""
import pytest

from cli import CertificateCLI


class TestCertificateCLI:
    """Tests for the command line interface"""

    @pytest.fixture
    def cli(self, service, settings):
        return CertificateCLI(service=service, settings=settings)

    def test_init_db(self, cli, capsys):
        assert cli.run(["init-db"]) == 0
        assert "Database tables created" in capsys.readouterr().out

    def test_add_store(self, cli, capsys):
        exit_code = cli.run([
            "add-store", "--name", "Al Noor Butchery", "--address", "12 King Street",
            "--city", "Sydney", "--state", "NSW", "--postcode", "2000"
        ])

        assert exit_code == 0
        output = capsys.readouterr().out
        assert "Store registered" in output
        assert "12 King Street, Sydney, NSW 2000" in output

    def test_add_invalid_store(self, cli, capsys):
        exit_code = cli.run(["add-store", "--name", "Al Noor", "--address", "12 King Street", "--postcode", "ABC"])

        assert exit_code == 1
        assert "Postcode must contain 4 digits" in capsys.readouterr().out

    def test_add_application_and_approve(self, cli, service, store, capsys):
        assert cli.run(["add-application", str(store.id)]) == 0
        output = capsys.readouterr().out
        assert "(pending)" in output

        assert cli.run(["approve", "1", "--by", "reviewer"]) == 0
        output = capsys.readouterr().out
        assert "Certificate issued" in output
        assert "HAL-2025-1001" in output
        assert service.certificate_repo.find_by_certificate_number("HAL-2025-1001").issued_by == "reviewer"

    def test_issue(self, cli, store, approved_application, capsys):
        exit_code = cli.run(["issue", str(store.id), str(approved_application.id)])

        assert exit_code == 0
        output = capsys.readouterr().out
        assert "HAL-2025-1001" in output
        assert "10.03.2025-10.03.2026" in output

    def test_issue_duplicate(self, cli, store, approved_application, issued_certificate, capsys):
        exit_code = cli.run(["issue", str(store.id), str(approved_application.id)])

        assert exit_code == 1
        assert "already holds active certificate" in capsys.readouterr().out

    def test_verify_active(self, cli, issued_certificate, capsys):
        exit_code = cli.run(["verify", issued_certificate.certificate_number])

        assert exit_code == 0
        output = capsys.readouterr().out
        assert "Al Noor Butchery" in output
        assert "Days left: 365" in output
        assert "✓ VALID" in output

    def test_verify_expired(self, cli, issued_certificate, clock, capsys):
        clock.advance(days=366)

        assert cli.run(["verify", issued_certificate.certificate_number]) == 1
        assert "✗ EXPIRED" in capsys.readouterr().out

    @pytest.mark.parametrize("number", ["HAL-2025-9999", "garbage"])
    def test_verify_not_found(self, cli, number, capsys):
        assert cli.run(["verify", number]) == 1
        assert "not found" in capsys.readouterr().out

    def test_revoke(self, cli, issued_certificate, capsys):
        exit_code = cli.run(["revoke", issued_certificate.id, "--reason", "non-compliance", "--by", "admin"])

        assert exit_code == 0
        output = capsys.readouterr().out
        assert "revoked" in output
        assert "non-compliance" in output

        assert cli.run(["verify", issued_certificate.certificate_number]) == 1
        assert "✗ REVOKED" in capsys.readouterr().out

    def test_revoke_twice(self, cli, issued_certificate, capsys):
        cli.run(["revoke", issued_certificate.id, "--reason", "non-compliance"])
        capsys.readouterr()

        assert cli.run(["revoke", issued_certificate.id, "--reason", "other"]) == 1
        assert "already revoked" in capsys.readouterr().out

    def test_list(self, cli, issued_certificate, capsys):
        assert cli.run(["list"]) == 0
        output = capsys.readouterr().out
        assert issued_certificate.certificate_number in output
        assert "active" in output

        assert cli.run(["list", "--status", "revoked"]) == 0
        assert "No certificates found" in capsys.readouterr().out

    def test_stats(self, cli, issued_certificate, capsys):
        assert cli.run(["stats"]) == 0
        output = capsys.readouterr().out
        assert "Total: 1" in output
        assert "Active: 1" in output

    def test_pdf_and_qr(self, cli, issued_certificate, tmp_path):
        pdf_path = tmp_path / "certificate.pdf"
        qr_path = tmp_path / "qr.png"

        assert cli.run(["pdf", issued_certificate.certificate_number, "-o", str(pdf_path)]) == 0
        assert cli.run(["qr", issued_certificate.certificate_number, "-o", str(qr_path)]) == 0

        assert pdf_path.read_bytes().startswith(b"%PDF")
        assert qr_path.read_bytes() == issued_certificate.qr_code

    def test_no_command(self, cli, capsys):
        assert cli.run([]) == 0
        assert "usage" in capsys.readouterr().out

    def test_search(self, cli, issued_certificate, capsys):
        assert cli.run(["search", "noor"]) == 0
        output = capsys.readouterr().out
        assert issued_certificate.certificate_number in output
        assert "12 King Street, Sydney, NSW 2000" in output
        assert "✓ VALID" in output

    def test_search_without_match(self, cli, issued_certificate, capsys):
        assert cli.run(["search", "Crescent"]) == 1
        assert "No matching certificates found" in capsys.readouterr().out

    def test_search_query_too_short(self, cli, capsys):
        assert cli.run(["search", "ab"]) == 1
        assert "at least 3 characters" in capsys.readouterr().out

    def test_history(self, cli, service, issued_certificate, capsys):
        service.revoke_certificate(issued_certificate.id, "non-compliance", "auditor")

        assert cli.run(["history", issued_certificate.certificate_number]) == 0
        output = capsys.readouterr().out
        assert "issued" in output
        assert "auditor  (non-compliance)" in output

    def test_history_unknown(self, cli, capsys):
        assert cli.run(["history", "HAL-2025-4242"]) == 1
        assert "not found" in capsys.readouterr().out

    def test_store_certificates(self, cli, store, issued_certificate, capsys):
        assert cli.run(["store-certificates", str(store.id)]) == 0
        output = capsys.readouterr().out
        assert issued_certificate.certificate_number in output
        assert "10.03.2025-10.03.2026" in output

    def test_store_certificates_unknown_store(self, cli, capsys):
        assert cli.run(["store-certificates", "999"]) == 1
        assert "Store 999 not found" in capsys.readouterr().out

    def test_service_follows_given_settings(self, settings, tmp_path):
        other = settings.model_copy(update={"database_url": f"sqlite:///{tmp_path / 'cli.db'}"})

        cli = CertificateCLI(settings=other)
        try:
            assert cli.run(["init-db"]) == 0
        finally:
            cli.service.db_manager.dispose()

        assert cli.service.db_manager.database_url == other.database_url
        assert (tmp_path / "cli.db").exists()
