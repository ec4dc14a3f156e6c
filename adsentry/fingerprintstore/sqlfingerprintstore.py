import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Field, Session, SQLModel, create_engine, func, select

from adsentry.core.config import DEFAULT_STORE_DB_URL, config
from adsentry.fingerprintstore.fingerprintstore import BaseFingerprintStore
from adsentry.models.alert import AlertFingerprint, utcnow_isoformat


class AlertFingerprintRecord(SQLModel, table=True):
    __tablename__ = "alert_fingerprint"

    key: str = Field(primary_key=True)
    tenant_id: str = Field(index=True)
    metric_or_check_id: str
    date: str = Field(index=True)
    severity: str
    created_at: str = Field(default_factory=utcnow_isoformat)
    task_id: Optional[str] = Field(default=None, nullable=True)
    task_url: Optional[str] = Field(default=None, nullable=True)

    @classmethod
    def from_fingerprint(cls, key: str, fingerprint: AlertFingerprint):
        return cls(key=key, **fingerprint.model_dump())

    def to_fingerprint(self) -> AlertFingerprint:
        return AlertFingerprint.model_validate(self.model_dump(exclude={"key"}))


class SqlFingerprintStore(BaseFingerprintStore):
    """
    Fingerprint ledger in a relational table.

    Every mutation is committed immediately and try_reserve relies on the
    primary key, so concurrent runs sharing a database never dispatch twice.
    """

    def __init__(self, db_url: Optional[str] = None, engine=None, **kwargs):
        super().__init__()
        if engine is None:
            db_url = db_url or config("STORE_DB_URL", default=DEFAULT_STORE_DB_URL)
            engine = create_engine(db_url)
        self.engine = engine
        SQLModel.metadata.create_all(
            self.engine, tables=[AlertFingerprintRecord.__table__]
        )

    def exists(self, key: str) -> bool:
        with Session(self.engine) as session:
            return session.get(AlertFingerprintRecord, key) is not None

    def get(self, key: str) -> Optional[AlertFingerprint]:
        with Session(self.engine) as session:
            record = session.get(AlertFingerprintRecord, key)
            return record.to_fingerprint() if record else None

    def set(self, key: str, fingerprint: AlertFingerprint):
        with Session(self.engine) as session:
            session.merge(AlertFingerprintRecord.from_fingerprint(key, fingerprint))
            session.commit()

    def try_reserve(self, key: str, fingerprint: AlertFingerprint) -> bool:
        with Session(self.engine) as session:
            session.add(AlertFingerprintRecord.from_fingerprint(key, fingerprint))
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                self.logger.debug("Fingerprint already reserved", extra={"key": key})
                return False
        return True

    def release(self, key: str):
        with Session(self.engine) as session:
            record = session.get(AlertFingerprintRecord, key)
            if record is not None:
                session.delete(record)
                session.commit()

    def cleanup(self, days_to_keep: int = 30) -> int:
        cutoff = (
            datetime.datetime.now(tz=datetime.timezone.utc).date()
            - datetime.timedelta(days=days_to_keep)
        ).isoformat()
        with Session(self.engine) as session:
            expired = session.exec(
                select(AlertFingerprintRecord).where(
                    AlertFingerprintRecord.date < cutoff
                )
            ).all()
            for record in expired:
                session.delete(record)
            session.commit()
        if expired:
            self.logger.info(
                f"Cleaned up {len(expired)} old fingerprints",
                extra={"days_to_keep": days_to_keep},
            )
        return len(expired)

    def save(self) -> bool:
        # mutations are already committed
        return False

    @property
    def count(self) -> int:
        with Session(self.engine) as session:
            return session.exec(
                select(func.count()).select_from(AlertFingerprintRecord)
            ).one()
