# halalcert/database.py - certificate store

"""
SQLAlchemy models and repositories of the certificate store.
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Tuple

from sqlalchemy import (
    create_engine, Column, String, Integer, DateTime, Text, LargeBinary, JSON,
    ForeignKey, Index, CheckConstraint, Uuid, and_, event, func, select, update, or_, text
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from config.settings import get_settings
from .exceptions import (
    AlreadyRevokedError, ApplicationNotFoundError, CertificateNotFoundError,
    DuplicateActiveCertificateError, DuplicateKeyError, StorageError,
    SubjectNotFoundError, ValidationError
)
from .models import (
    Application, ApplicationStatus, Certificate as CertificateModel,
    CertificateListItem, CertificateStatus, EffectiveStatus, HistoryRecord,
    Revocation, Store as StoreModel, derive_status, ensure_utc, utcnow
)

logger = logging.getLogger(__name__)

# Execution option marking a session as a write scope
WRITE_SCOPE_OPTION = "halalcert_write_scope"

Base = declarative_base()


class Store(Base):
    """Certified business (certificate subject)."""

    __tablename__ = "stores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, index=True)
    address = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False, default="")
    state = Column(String(50), nullable=False, default="")
    postcode = Column(String(10), nullable=False, default="")
    business_type = Column(String(100), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Store(id={self.id}, name={self.name})>"


class CertificationApplication(Base):
    """Certification application, state owned by the review workflow."""

    __tablename__ = "applications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ApplicationStatus.PENDING.value)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<CertificationApplication(id={self.id}, status={self.status})>"


class Certificate(Base):
    """Issued certificate."""

    __tablename__ = "certificates"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    certificate_number = Column(String(32), unique=True, nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("stores.id"), nullable=False, index=True)
    application_id = Column(Integer, ForeignKey("applications.id"), nullable=False)
    status = Column(String(16), nullable=False, default=CertificateStatus.ACTIVE.value)
    issued_date = Column(DateTime(timezone=True), nullable=False)
    expiry_date = Column(DateTime(timezone=True), nullable=False, index=True)
    qr_code = Column(LargeBinary, nullable=False)
    issued_by = Column(String(64), nullable=True)

    # Revocation, set once
    revocation_reason = Column(Text, nullable=True)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revoked_by = Column(String(64), nullable=True)

    __table_args__ = (
        # At most one active certificate per subject
        Index(
            'uq_certificate_active_subject', 'subject_id',
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index('idx_certificate_status', 'status'),
        CheckConstraint("status IN ('active', 'revoked')", name='ck_certificate_status'),
        CheckConstraint("issued_date < expiry_date", name='ck_certificate_dates'),
        CheckConstraint(
            "(status = 'active' AND revoked_at IS NULL AND revocation_reason IS NULL) OR "
            "(status = 'revoked' AND revoked_at IS NOT NULL AND revocation_reason IS NOT NULL)",
            name='ck_certificate_revocation'
        ),
    )

    def __repr__(self):
        return f"<Certificate(number={self.certificate_number}, status={self.status})>"


class CertificateSequence(Base):
    """Per-year certificate number counter."""

    __tablename__ = "certificate_sequences"

    year = Column(Integer, primary_key=True, autoincrement=False)
    last_value = Column(Integer, nullable=False)


class CertificateHistory(Base):
    """Audit trail of certificate changes."""

    __tablename__ = "certificate_history"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    certificate_number = Column(String(32), nullable=False)
    action = Column(String(50), nullable=False)  # 'issued', 'revoked'
    performed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    performed_by = Column(String(64), nullable=True)
    details = Column(JSON, nullable=True)

    __table_args__ = (
        Index('idx_history_certificate_number', 'certificate_number'),
        Index('idx_history_performed_at', 'performed_at'),
    )

    def __repr__(self):
        return f"<CertificateHistory(number={self.certificate_number}, action={self.action})>"


class KeyedLock:
    """Process-local mutual exclusion keyed by an arbitrary hashable value."""

    def __init__(self):
        self._lock = threading.Lock()
        self._locks: Dict[object, List] = {}

    @contextmanager
    def hold(self, key) -> Iterator[None]:
        with self._lock:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        entry[0].acquire()
        try:
            yield
        finally:
            entry[0].release()
            with self._lock:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]


class DatabaseManager:
    """Owns the engine and session factory."""

    def __init__(self, database_url: str = None):
        """
        Args:
            database_url: SQLAlchemy URL, defaults to the configured one
        """
        if database_url is None:
            database_url = get_settings().database_url

        self.database_url = database_url
        engine_kwargs = {"pool_pre_ping": True, "echo": False}

        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_recycle"] = 3600

        self.engine = create_engine(database_url, **engine_kwargs)
        if database_url.startswith("sqlite"):
            self._configure_sqlite()
        self.SessionLocal = sessionmaker(
            bind=self.engine, autoflush=False, expire_on_commit=False
        )

    def _configure_sqlite(self):
        """
        Lets SQLAlchemy emit BEGIN itself so that transactions and SAVEPOINTs
        behave on pysqlite, and enables foreign keys.

        Write scopes opened by ``transaction()`` start with BEGIN IMMEDIATE;
        reads use a deferred BEGIN and never take the write lock. File
        databases run in WAL mode so readers are not blocked by a writer.
        """
        use_wal = self.database_url not in ("sqlite://", "sqlite:///:memory:")

        @event.listens_for(self.engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if use_wal:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        @event.listens_for(self.engine, "begin")
        def _on_begin(conn):
            if conn.get_execution_options().get(WRITE_SCOPE_OPTION):
                # Writers queue on the busy timeout instead of failing on lock upgrade
                conn.exec_driver_sql("BEGIN IMMEDIATE")
            else:
                conn.exec_driver_sql("BEGIN")

    def create_tables(self):
        """Creates all tables."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created")

    def drop_tables(self):
        Base.metadata.drop_all(bind=self.engine)
        logger.info("Database tables dropped")

    def get_session(self) -> Session:
        """Returns a new session."""
        return self.SessionLocal()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Session scope committing on success and rolling back on any error.

        Raises:
            StorageError: For storage failures not classified by the caller
        """
        session = self.get_session()
        try:
            session.connection(execution_options={WRITE_SCOPE_OPTION: True})
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database transaction failed: {e}")
            raise StorageError(f"Database error: {e}") from e
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    def health_check(self) -> bool:
        """Checks the database connection."""
        try:
            with self.get_session() as session:
                session.execute(text("SELECT 1"))
                return True
        except SQLAlchemyError as e:
            logger.error(f"Database connection failed: {e}")
            return False

    def dispose(self):
        self.engine.dispose()


class CertificateRepository:
    """Certificate store: create, read and revoke, never delete."""

    def __init__(self, db_manager: DatabaseManager, sequence_start: int = None):
        """
        Args:
            db_manager: Database manager
            sequence_start: First sequence value of a new year
        """
        self.db_manager = db_manager
        if sequence_start is None:
            sequence_start = get_settings().sequence_start
        self.sequence_start = sequence_start
        self.subject_locks = KeyedLock()
        self.sequence_locks = KeyedLock()

    def next_sequence(self, session: Session, year: int) -> int:
        """
        Allocates the next sequence value for a year.

        Must run inside the issuing transaction while holding
        ``sequence_locks.hold(year)``; a rollback releases the value.

        Args:
            session: Session of the issuing transaction
            year: Certificate year

        Returns:
            int: Allocated sequence value
        """
        row = session.execute(
            select(CertificateSequence)
            .where(CertificateSequence.year == year)
            .with_for_update()
        ).scalar_one_or_none()

        if row is None:
            try:
                with session.begin_nested():
                    session.add(CertificateSequence(year=year, last_value=self.sequence_start - 1))
            except IntegrityError:
                # Another instance created the row first
                logger.info(f"Sequence row for {year} created concurrently")
            row = session.execute(
                select(CertificateSequence)
                .where(CertificateSequence.year == year)
                .with_for_update()
            ).scalar_one()

        row.last_value += 1
        session.flush()
        return row.last_value

    def number_exists(self, session: Session, certificate_number: str) -> bool:
        return session.execute(
            select(Certificate.id).where(Certificate.certificate_number == certificate_number)
        ).first() is not None

    def find_active_by_subject(self, session: Session, subject_id: int) -> Optional[CertificateModel]:
        """
        Finds the active certificate of a subject.

        Expiry does not matter here: an expired but unrevoked certificate
        keeps its stored active status.
        """
        row = session.execute(
            select(Certificate).where(
                Certificate.subject_id == subject_id,
                Certificate.status == CertificateStatus.ACTIVE.value
            )
        ).scalar_one_or_none()
        return self._to_model(row) if row else None

    def insert(self, session: Session, certificate_data: dict) -> CertificateModel:
        """
        Inserts a certificate together with its history record.

        Args:
            session: Session of the issuing transaction
            certificate_data: Column values of the certificate

        Returns:
            Certificate: Inserted certificate

        Raises:
            DuplicateKeyError: The number already exists
            DuplicateActiveCertificateError: The subject already has an active certificate
        """
        number = certificate_data["certificate_number"]
        if self.number_exists(session, number):
            raise DuplicateKeyError(f"Certificate number {number} already exists")

        row = Certificate(**certificate_data)
        try:
            with session.begin_nested():
                session.add(row)
                session.flush()
        except IntegrityError as e:
            message = str(e.orig)
            if "certificate_number" in message:
                raise DuplicateKeyError(f"Certificate number {number} already exists") from e
            if "subject_id" in message or "uq_certificate_active_subject" in message:
                raise DuplicateActiveCertificateError(
                    f"Subject {certificate_data['subject_id']} already has an active certificate"
                ) from e
            raise StorageError(f"Constraint violation while inserting {number}: {message}") from e

        self._add_history_record(
            session, number, "issued", certificate_data.get("issued_by"),
            {
                "subject_id": row.subject_id,
                "application_id": row.application_id,
                "expiry_date": row.expiry_date.isoformat(),
            }
        )
        return self._to_model(row)

    def get(self, certificate_id) -> Optional[CertificateModel]:
        """
        Gets a certificate by internal id.

        Args:
            certificate_id: UUID or its string form

        Returns:
            Optional[Certificate]: Certificate or None
        """
        key = self._parse_id(certificate_id)
        if key is None:
            return None
        try:
            with self.db_manager.get_session() as session:
                row = session.get(Certificate, key)
                return self._to_model(row) if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load certificate {certificate_id}: {e}") from e

    def find_by_certificate_number(self, certificate_number: str) -> Optional[CertificateModel]:
        """
        Gets a certificate by its public number.

        Args:
            certificate_number: Public number

        Returns:
            Optional[Certificate]: Certificate or None
        """
        try:
            with self.db_manager.get_session() as session:
                row = session.execute(
                    select(Certificate).where(Certificate.certificate_number == certificate_number)
                ).scalar_one_or_none()
                return self._to_model(row) if row else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load certificate {certificate_number}: {e}") from e

    def find_with_store(self, certificate_number: str) -> Optional[Tuple[CertificateModel, StoreModel]]:
        """Gets a certificate and its subject in one read."""
        try:
            with self.db_manager.get_session() as session:
                result = session.execute(
                    select(Certificate, Store)
                    .join(Store, Certificate.subject_id == Store.id)
                    .where(Certificate.certificate_number == certificate_number)
                ).first()
                if result is None:
                    return None
                certificate, store = result
                return self._to_model(certificate), StoreModel.model_validate(store)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load certificate {certificate_number}: {e}") from e

    def find_latest_by_store_query(self, query: str) -> Optional[Tuple[CertificateModel, StoreModel]]:
        """
        Latest certificate of the first store whose name or address contains ``query``.

        Stores without certificates are skipped.
        """
        pattern = f"%{query}%"
        try:
            with self.db_manager.get_session() as session:
                result = session.execute(
                    select(Certificate, Store)
                    .join(Store, Certificate.subject_id == Store.id)
                    .where(or_(Store.name.ilike(pattern), Store.address.ilike(pattern)))
                    .order_by(Store.id, Certificate.issued_date.desc())
                    .limit(1)
                ).first()
                if result is None:
                    return None
                certificate, store = result
                return self._to_model(certificate), StoreModel.model_validate(store)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to search certificates for {query!r}: {e}") from e

    def find_by_subject(self, subject_id: int) -> List[CertificateModel]:
        """All certificates of a subject, newest first."""
        try:
            with self.db_manager.get_session() as session:
                rows = session.execute(
                    select(Certificate)
                    .where(Certificate.subject_id == subject_id)
                    .order_by(Certificate.issued_date.desc())
                ).scalars().all()
                return [self._to_model(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load certificates of subject {subject_id}: {e}") from e

    def mark_revoked(self, certificate_id, reason: str, revoked_at: datetime,
                     revoked_by: Optional[str] = None) -> CertificateModel:
        """
        Revokes an active certificate with a compare-and-set update.

        Of two concurrent calls exactly one updates the row.

        Args:
            certificate_id: Internal id
            reason: Non-empty reason
            revoked_at: Time of revocation
            revoked_by: Actor

        Returns:
            Certificate: Revoked certificate

        Raises:
            CertificateNotFoundError: Unknown id
            AlreadyRevokedError: Certificate was revoked before
        """
        if not reason:
            raise ValidationError("Revocation reason is required")

        key = self._parse_id(certificate_id)
        if key is None:
            raise CertificateNotFoundError(f"Certificate {certificate_id} not found")

        with self.db_manager.transaction() as session:
            result = session.execute(
                update(Certificate)
                .where(
                    Certificate.id == key,
                    Certificate.status == CertificateStatus.ACTIVE.value
                )
                .values(
                    status=CertificateStatus.REVOKED.value,
                    revocation_reason=reason,
                    revoked_at=revoked_at,
                    revoked_by=revoked_by
                )
                .execution_options(synchronize_session=False)
            )

            row = session.get(Certificate, key, populate_existing=True)
            if row is None:
                raise CertificateNotFoundError(f"Certificate {certificate_id} not found")
            if result.rowcount != 1:
                raise AlreadyRevokedError(
                    f"Certificate {row.certificate_number} is already revoked"
                )

            self._add_history_record(
                session, row.certificate_number, "revoked", revoked_by, {"reason": reason}
            )
            return self._to_model(row)

    @staticmethod
    def _effective_status_clause(status: EffectiveStatus, now: datetime):
        """SQL condition selecting certificates whose derived status is ``status``."""
        if status == EffectiveStatus.REVOKED:
            return Certificate.status == CertificateStatus.REVOKED.value
        active = Certificate.status == CertificateStatus.ACTIVE.value
        if status == EffectiveStatus.EXPIRED:
            return and_(active, Certificate.expiry_date < now)
        return and_(active, Certificate.expiry_date >= now)

    def list_certificates(self, status: Optional[EffectiveStatus] = None, search: Optional[str] = None,
                          page: int = 1, limit: int = 20,
                          now: Optional[datetime] = None) -> Tuple[List[CertificateListItem], int]:
        """
        Admin listing with effective-status filter, search and pagination.

        Filtering, counting and paging run in SQL; the status condition
        selects the same rows as ``derive_status``.

        Args:
            status: Effective status filter
            search: Substring of the number or the store name
            page: Page number starting at 1
            limit: Page size
            now: Reference time for status derivation

        Returns:
            Tuple[List[CertificateListItem], int]: Page items and total matches
        """
        now = ensure_utc(now) if now is not None else utcnow()

        query = select(Certificate, Store).outerjoin(Store, Certificate.subject_id == Store.id)

        if status is not None:
            query = query.where(self._effective_status_clause(EffectiveStatus(status), now))

        if search:
            pattern = f"%{search}%"
            query = query.where(or_(
                Certificate.certificate_number.ilike(pattern),
                Store.name.ilike(pattern)
            ))

        page_query = (
            query
            .order_by(Certificate.issued_date.desc(), Certificate.certificate_number.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )

        try:
            with self.db_manager.get_session() as session:
                total = session.execute(
                    select(func.count()).select_from(query.subquery())
                ).scalar_one()
                rows = session.execute(page_query).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list certificates: {e}") from e

        items = [
            CertificateListItem(
                id=str(certificate.id),
                certificate_number=certificate.certificate_number,
                status=derive_status(certificate.status, certificate.expiry_date, now),
                issued_date=certificate.issued_date,
                expiry_date=certificate.expiry_date,
                store_name=store.name if store else None,
                store_city=store.city if store else None,
                store_state=store.state if store else None
            )
            for certificate, store in rows
        ]
        return items, total

    def get_statistics(self, now: Optional[datetime] = None) -> dict:
        """
        Counts certificates by effective status.

        Returns:
            dict: Statistics
        """
        if now is None:
            now = utcnow()

        try:
            with self.db_manager.get_session() as session:
                rows = session.execute(
                    select(Certificate.status, Certificate.expiry_date)
                ).all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to compute statistics: {e}") from e

        counts = {status: 0 for status in EffectiveStatus}
        for stored_status, expiry_date in rows:
            counts[derive_status(stored_status, expiry_date, now)] += 1

        return {
            "total_certificates": len(rows),
            "active_certificates": counts[EffectiveStatus.ACTIVE],
            "expired_certificates": counts[EffectiveStatus.EXPIRED],
            "revoked_certificates": counts[EffectiveStatus.REVOKED],
        }

    def get_history(self, certificate_number: str) -> List[HistoryRecord]:
        """
        Gets the audit trail of a certificate, oldest first.

        Args:
            certificate_number: Public number

        Returns:
            List[HistoryRecord]: History records
        """
        try:
            with self.db_manager.get_session() as session:
                rows = session.execute(
                    select(CertificateHistory)
                    .where(CertificateHistory.certificate_number == certificate_number)
                    .order_by(CertificateHistory.performed_at)
                ).scalars().all()
                return [HistoryRecord.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load history of {certificate_number}: {e}") from e

    def _add_history_record(self, session: Session, certificate_number: str,
                            action: str, performed_by: Optional[str], details: dict = None):
        session.add(CertificateHistory(
            certificate_number=certificate_number,
            action=action,
            performed_by=performed_by,
            details=details
        ))

    @staticmethod
    def _parse_id(certificate_id) -> Optional[uuid.UUID]:
        if isinstance(certificate_id, uuid.UUID):
            return certificate_id
        try:
            return uuid.UUID(str(certificate_id))
        except ValueError:
            return None

    @staticmethod
    def _to_model(row: Certificate) -> CertificateModel:
        """Converts an ORM row into the immutable record type."""
        revocation = None
        if row.status == CertificateStatus.REVOKED.value:
            revocation = Revocation(
                reason=row.revocation_reason,
                revoked_at=ensure_utc(row.revoked_at),
                revoked_by=row.revoked_by
            )

        return CertificateModel(
            id=str(row.id),
            certificate_number=row.certificate_number,
            subject_id=row.subject_id,
            application_id=row.application_id,
            status=CertificateStatus(row.status),
            issued_date=ensure_utc(row.issued_date),
            expiry_date=ensure_utc(row.expiry_date),
            qr_code=row.qr_code,
            issued_by=row.issued_by,
            revocation=revocation
        )


class SubjectRepository:
    """Stores and applications the certificate core reads."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def add_store(self, name: str, address: str, city: str = "", state: str = "",
                  postcode: str = "", business_type: str = "") -> StoreModel:
        with self.db_manager.transaction() as session:
            store = Store(
                name=name, address=address, city=city, state=state,
                postcode=postcode, business_type=business_type
            )
            session.add(store)
            session.flush()
            return StoreModel.model_validate(store)

    def get_store(self, store_id: int) -> Optional[StoreModel]:
        try:
            with self.db_manager.get_session() as session:
                store = session.get(Store, store_id)
                return StoreModel.model_validate(store) if store else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load store {store_id}: {e}") from e

    def add_application(self, store_id: int,
                        status: ApplicationStatus = ApplicationStatus.PENDING) -> Application:
        """
        Records a certification application.

        Raises:
            SubjectNotFoundError: Unknown store
        """
        with self.db_manager.transaction() as session:
            if session.get(Store, store_id) is None:
                raise SubjectNotFoundError(f"Store {store_id} not found")
            application = CertificationApplication(store_id=store_id, status=ApplicationStatus(status).value)
            session.add(application)
            session.flush()
            return self._application_model(application)

    def get_application(self, application_id: int) -> Optional[Application]:
        try:
            with self.db_manager.get_session() as session:
                application = session.get(CertificationApplication, application_id)
                return self._application_model(application) if application else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load application {application_id}: {e}") from e

    def set_application_status(self, application_id: int, status: ApplicationStatus) -> Application:
        """
        Records the decision of the review workflow.

        Raises:
            ApplicationNotFoundError: Unknown application
        """
        with self.db_manager.transaction() as session:
            application = session.get(CertificationApplication, application_id)
            if application is None:
                raise ApplicationNotFoundError(f"Application {application_id} not found")
            application.status = ApplicationStatus(status).value
            application.updated_at = utcnow()
            session.flush()
            return self._application_model(application)

    @staticmethod
    def _application_model(application: CertificationApplication) -> Application:
        return Application(
            id=application.id,
            store_id=application.store_id,
            status=ApplicationStatus(application.status),
            created_at=application.created_at,
            updated_at=application.updated_at
        )


_db_manager: Optional[DatabaseManager] = None
_certificate_repo: Optional[CertificateRepository] = None
_subject_repo: Optional[SubjectRepository] = None


def get_db_manager() -> DatabaseManager:
    """Returns the shared database manager."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


def get_certificate_repo() -> CertificateRepository:
    """Returns the shared certificate repository."""
    global _certificate_repo
    if _certificate_repo is None:
        _certificate_repo = CertificateRepository(get_db_manager())
    return _certificate_repo


def get_subject_repo() -> SubjectRepository:
    """Returns the shared subject repository."""
    global _subject_repo
    if _subject_repo is None:
        _subject_repo = SubjectRepository(get_db_manager())
    return _subject_repo
