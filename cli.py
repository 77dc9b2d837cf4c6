"""
CLI for halal certificate issuance and verification
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from config.settings import Settings, get_settings
from halalcert.exceptions import CertificateError, CertificateNotFoundError, InvalidFormatError
from halalcert.models import ApplicationStatus, EffectiveStatus, ensure_utc
from halalcert.service import CertificateService

DATE_FORMAT = '%d.%m.%Y'

STATUS_LABELS = {
    EffectiveStatus.ACTIVE: "✓ VALID",
    EffectiveStatus.EXPIRED: "✗ EXPIRED",
    EffectiveStatus.REVOKED: "✗ REVOKED",
}


class CertificateCLI:
    """Command line interface for certificate management"""

    def __init__(self, service: Optional[CertificateService] = None,
                 settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.setup_logging()
        self.service = service or CertificateService(settings=self.settings)

    def setup_logging(self):
        """Configures logging"""
        self.settings.create_directories()
        logging.basicConfig(
            level=getattr(logging, self.settings.log_level),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=[
                logging.FileHandler(self.settings.log_file),
                logging.StreamHandler()
            ]
        )
        self.logger = logging.getLogger(__name__)

    def init_db(self, args) -> int:
        self.service.db_manager.create_tables()
        print("✓ Database tables created")
        return 0

    def add_store(self, args) -> int:
        """Registers a store"""
        store = self.service.register_store(
            name=args.name,
            address=args.address,
            city=args.city,
            state=args.state,
            postcode=args.postcode,
            business_type=args.business_type
        )
        print(f"✓ Store registered:")
        print(f"  ID: {store.id}")
        print(f"  Name: {store.name}")
        print(f"  Address: {store.full_address}")
        return 0

    def add_application(self, args) -> int:
        """Records a certification application"""
        status = ApplicationStatus.APPROVED if args.approved else ApplicationStatus.PENDING
        application = self.service.register_application(args.store_id, status)
        print(f"✓ Application {application.id} recorded for store {application.store_id} "
              f"({application.status.value})")
        return 0

    def approve(self, args) -> int:
        """Approves an application and issues its certificate"""
        certificate = self.service.approve_and_issue(args.application_id, args.by)
        self._print_issued(certificate)
        return 0

    def issue(self, args) -> int:
        """Issues a certificate for an approved application"""
        certificate = self.service.issue_certificate(args.store_id, args.application_id, args.by)
        self._print_issued(certificate)
        return 0

    def verify(self, args) -> int:
        """Verifies a certificate"""
        try:
            result = self.service.verify_certificate(args.certificate_number)
        except (InvalidFormatError, CertificateNotFoundError):
            print(f"✗ Certificate {args.certificate_number} not found")
            return 1

        print(f"Certificate {result.certificate_number}:")
        print(f"  Store: {result.store.name}")
        print(f"  Address: {result.store.full_address}")
        print(f"  Issued: {ensure_utc(result.issued_date).strftime(DATE_FORMAT)}")
        print(f"  Expires: {ensure_utc(result.expiry_date).strftime(DATE_FORMAT)}")
        if result.status == EffectiveStatus.ACTIVE:
            print(f"  Days left: {result.days_until_expiry}")
        print(f"  Status: {STATUS_LABELS[result.status]}")
        return 0 if result.valid else 1

    def revoke(self, args) -> int:
        """Revokes a certificate"""
        certificate = self.service.revoke_certificate(args.certificate_id, args.reason, args.by)
        print(f"✓ Certificate {certificate.certificate_number} revoked")
        print(f"  Reason: {certificate.revocation.reason}")
        return 0

    def list_certificates(self, args) -> int:
        """Lists certificates"""
        status = EffectiveStatus(args.status) if args.status else None
        items, total = self.service.list_certificates(status, args.search, args.page, args.limit)

        if not items:
            print("No certificates found")
            return 0

        print(f"Certificates (page {args.page}, {len(items)} of {total}):")
        for item in items:
            print(
                f"  {item.certificate_number}  {item.status.value:<8}  "
                f"{ensure_utc(item.expiry_date).strftime(DATE_FORMAT)}  "
                f"{item.store_name or '-'}  [{item.id}]"
            )
        return 0

    def stats(self, args) -> int:
        stats = self.service.get_statistics()
        print("Certificate statistics:")
        print(f"  Total: {stats['total_certificates']}")
        print(f"  Active: {stats['active_certificates']}")
        print(f"  Expired: {stats['expired_certificates']}")
        print(f"  Revoked: {stats['revoked_certificates']}")
        return 0

    def search(self, args) -> int:
        """Finds a certificate by number or store name"""
        try:
            result = self.service.search_certificate(args.query)
        except CertificateNotFoundError as e:
            print(f"✗ {e}")
            return 1

        print(f"Certificate {result.certificate_number}:")
        print(f"  Store: {result.store_name}")
        print(f"  Address: {result.store_address}")
        print(f"  Expires: {ensure_utc(result.expiry_date).strftime(DATE_FORMAT)}")
        print(f"  Status: {STATUS_LABELS[result.status]}")
        return 0

    def history(self, args) -> int:
        """Prints the audit trail of a certificate"""
        records = self.service.get_history(args.certificate_number)
        print(f"History of {args.certificate_number}:")
        for record in records:
            performed_at = ensure_utc(record.performed_at).strftime(f"{DATE_FORMAT} %H:%M")
            line = f"  {performed_at}  {record.action:<8}  {record.performed_by or '-'}"
            if record.details and record.details.get("reason"):
                line += f"  ({record.details['reason']})"
            print(line)
        return 0

    def store_certificates(self, args) -> int:
        """Lists all certificates of a store"""
        certificates = self.service.get_subject_certificates(args.store_id)
        if not certificates:
            print(f"Store {args.store_id} has no certificates")
            return 0

        now = self.service.clock()
        print(f"Certificates of store {args.store_id}:")
        for certificate in certificates:
            print(
                f"  {certificate.certificate_number}  "
                f"{certificate.effective_status(now).value:<8}  "
                f"{ensure_utc(certificate.issued_date).strftime(DATE_FORMAT)}"
                f"-{ensure_utc(certificate.expiry_date).strftime(DATE_FORMAT)}  [{certificate.id}]"
            )
        return 0

    def pdf(self, args) -> int:
        """Writes the printable certificate"""
        document = self.service.render_certificate_pdf(args.certificate_number)
        output = Path(args.output or f"{args.certificate_number}.pdf")
        output.write_bytes(document)
        print(f"✓ Certificate saved to {output}")
        return 0

    def qr(self, args) -> int:
        """Writes the certificate QR code"""
        png = self.service.get_qr_code(args.certificate_number)
        output = Path(args.output or f"{args.certificate_number}.png")
        output.write_bytes(png)
        print(f"✓ QR code saved to {output}")
        return 0

    def _print_issued(self, certificate):
        print(f"✓ Certificate issued:")
        print(f"  Number: {certificate.certificate_number}")
        print(f"  ID: {certificate.id}")
        print(f"  Valid: {ensure_utc(certificate.issued_date).strftime(DATE_FORMAT)}"
              f"-{ensure_utc(certificate.expiry_date).strftime(DATE_FORMAT)}")

    def build_parser(self) -> argparse.ArgumentParser:
        """Builds the argument parser"""
        parser = argparse.ArgumentParser(
            description="Halal certificate issuance and verification",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  %(prog)s init-db
  %(prog)s add-store --name "Al Noor Butchery" --address "12 King St" --city Sydney --state NSW --postcode 2000
  %(prog)s add-application 1
  %(prog)s approve 1 --by admin
  %(prog)s verify HAL-2025-1001
  %(prog)s search "Al Noor"
  %(prog)s history HAL-2025-1001
  %(prog)s revoke 3f0c... --reason "Supplier change not disclosed"
            """
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        init_parser = subparsers.add_parser('init-db', help='Create database tables')
        init_parser.set_defaults(handler=self.init_db)

        store_parser = subparsers.add_parser('add-store', help='Register a store')
        store_parser.add_argument('--name', required=True, help='Trading name')
        store_parser.add_argument('--address', required=True, help='Street address')
        store_parser.add_argument('--city', default='', help='City')
        store_parser.add_argument('--state', default='', help='State')
        store_parser.add_argument('--postcode', default='', help='Postcode (4 digits)')
        store_parser.add_argument('--business-type', default='', help='Business type')
        store_parser.set_defaults(handler=self.add_store)

        app_parser = subparsers.add_parser('add-application', help='Record a certification application')
        app_parser.add_argument('store_id', type=int, help='Store ID')
        app_parser.add_argument('--approved', action='store_true', help='Record as already approved')
        app_parser.set_defaults(handler=self.add_application)

        approve_parser = subparsers.add_parser('approve', help='Approve an application and issue its certificate')
        approve_parser.add_argument('application_id', type=int, help='Application ID')
        approve_parser.add_argument('--by', help='Approving admin')
        approve_parser.set_defaults(handler=self.approve)

        issue_parser = subparsers.add_parser('issue', help='Issue a certificate for an approved application')
        issue_parser.add_argument('store_id', type=int, help='Store ID')
        issue_parser.add_argument('application_id', type=int, help='Application ID')
        issue_parser.add_argument('--by', help='Issuing admin')
        issue_parser.set_defaults(handler=self.issue)

        verify_parser = subparsers.add_parser('verify', help='Verify a certificate')
        verify_parser.add_argument('certificate_number', help='Certificate number, e.g. HAL-2025-1001')
        verify_parser.set_defaults(handler=self.verify)

        revoke_parser = subparsers.add_parser('revoke', help='Revoke a certificate')
        revoke_parser.add_argument('certificate_id', help='Internal certificate ID')
        revoke_parser.add_argument('--reason', required=True, help='Reason for revocation')
        revoke_parser.add_argument('--by', help='Revoking admin')
        revoke_parser.set_defaults(handler=self.revoke)

        list_parser = subparsers.add_parser('list', help='List certificates')
        list_parser.add_argument('--status', choices=[s.value for s in EffectiveStatus],
                                 help='Effective status filter')
        list_parser.add_argument('--search', help='Number or store name fragment')
        list_parser.add_argument('--page', type=int, default=1, help='Page number')
        list_parser.add_argument('--limit', type=int, default=20, help='Page size')
        list_parser.set_defaults(handler=self.list_certificates)

        stats_parser = subparsers.add_parser('stats', help='Certificate statistics')
        stats_parser.set_defaults(handler=self.stats)

        search_parser = subparsers.add_parser('search', help='Find a certificate by number or store name')
        search_parser.add_argument('query', help='Certificate number or store name/address fragment')
        search_parser.set_defaults(handler=self.search)

        history_parser = subparsers.add_parser('history', help='Show the audit trail of a certificate')
        history_parser.add_argument('certificate_number', help='Certificate number')
        history_parser.set_defaults(handler=self.history)

        store_certs_parser = subparsers.add_parser('store-certificates', help='List all certificates of a store')
        store_certs_parser.add_argument('store_id', type=int, help='Store ID')
        store_certs_parser.set_defaults(handler=self.store_certificates)

        pdf_parser = subparsers.add_parser('pdf', help='Save the printable certificate')
        pdf_parser.add_argument('certificate_number', help='Certificate number')
        pdf_parser.add_argument('--output', '-o', help='Output file')
        pdf_parser.set_defaults(handler=self.pdf)

        qr_parser = subparsers.add_parser('qr', help='Save the certificate QR code')
        qr_parser.add_argument('certificate_number', help='Certificate number')
        qr_parser.add_argument('--output', '-o', help='Output file')
        qr_parser.set_defaults(handler=self.qr)

        return parser

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Parses arguments and runs the command, returns the exit code"""
        parser = self.build_parser()
        args = parser.parse_args(argv)

        if not args.command:
            parser.print_help()
            return 0

        try:
            return args.handler(args)
        except CertificateError as e:
            print(f"✗ Error: {e}")
            self.logger.error(f"Command {args.command} failed: {e}")
            return 1


def main():
    sys.exit(CertificateCLI().run())


if __name__ == '__main__':
    main()
