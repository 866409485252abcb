"""
SQLite storage backend for kahraba.

Every public method opens its own connection. Job reads share one read
transaction so a row and its timeline agree. Writes run inside
``BEGIN IMMEDIATE`` so the version check, the job row update, the timeline
append and the ledger inserts of one ``update_job`` call land together or not
at all.
"""

import contextlib
import json
import logging
import os
import sqlite3
from pathlib import Path
from typing import List, Optional, Sequence

from kahraba.audit.models import AuditEntry
from kahraba.jobs.models import AddOn, Job, JobStatus, TimelineEvent
from kahraba.ledger.models import Transaction, TransactionType
from kahraba.storage.schema import init_db
from kahraba.types import VersionConflictError, format_datetime, parse_datetime

logger = logging.getLogger(__name__)

DEFAULT_DB_NAME = "kahraba.db"

_JOB_COLUMNS = (
    "id, customer_id, customer_name, electrician_id, electrician_name, description, "
    "address, city, base_price, add_ons, pending_add_ons, payment_method, status, "
    "created_at, accepted_at, completed_at, cancelled_at, cancellation_reason, version"
)


def default_db_path() -> Path:
    """$KAHRABA_DATA_DIR/kahraba.db, falling back to ~/.kahraba."""
    base = os.environ.get("KAHRABA_DATA_DIR")
    root = Path(base) if base else Path.home() / ".kahraba"
    return root / DEFAULT_DB_NAME


class SQLiteStorage:
    """SQLite-backed MarketplaceStorage."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path) if db_path else default_db_path()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            init_db(conn)

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextlib.contextmanager
    def _connect(self):
        """Yield an autocommit connection and close it afterwards."""
        conn = self._get_conn()
        try:
            yield conn
        finally:
            conn.close()

    @contextlib.contextmanager
    def _transaction(self):
        """Yield a connection inside BEGIN IMMEDIATE; commit or roll back."""
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception as e:
                logger.debug(f"Transaction failed, rolling back: {e}")
                conn.execute("ROLLBACK")
                raise

    @contextlib.contextmanager
    def _snapshot(self):
        """Yield a connection inside a read transaction.

        Job rows and their timelines are separate tables; reading both under
        one BEGIN keeps them on the same WAL snapshot.
        """
        with self._connect() as conn:
            conn.execute("BEGIN")
            try:
                yield conn
            finally:
                conn.execute("COMMIT")

    def close(self):
        """Connections are per-operation; nothing to release."""
        pass

    # === Row mapping ===

    @staticmethod
    def _add_ons_to_json(add_ons) -> str:
        return json.dumps([a.to_dict() for a in add_ons])

    @staticmethod
    def _add_ons_from_json(raw: Optional[str]) -> tuple:
        return tuple(AddOn.from_dict(a) for a in json.loads(raw or "[]"))

    def _load_timeline(self, conn: sqlite3.Connection, job_id: str) -> tuple:
        rows = conn.execute(
            "SELECT status, timestamp, actor_role, actor_id, note FROM job_events "
            "WHERE job_id = ? ORDER BY seq",
            (job_id,),
        ).fetchall()
        return tuple(
            TimelineEvent(
                status=r["status"],
                timestamp=parse_datetime(r["timestamp"]),
                actor_role=r["actor_role"],
                actor_id=r["actor_id"],
                note=r["note"],
            )
            for r in rows
        )

    def _row_to_job(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Job:
        return Job(
            id=row["id"],
            customer_id=row["customer_id"],
            customer_name=row["customer_name"],
            electrician_id=row["electrician_id"],
            electrician_name=row["electrician_name"],
            description=row["description"],
            address=row["address"],
            city=row["city"],
            base_price=row["base_price"],
            add_ons=self._add_ons_from_json(row["add_ons"]),
            pending_add_ons=self._add_ons_from_json(row["pending_add_ons"]),
            payment_method=row["payment_method"],
            status=row["status"],
            timeline=self._load_timeline(conn, row["id"]),
            created_at=parse_datetime(row["created_at"]),
            accepted_at=parse_datetime(row["accepted_at"]),
            completed_at=parse_datetime(row["completed_at"]),
            cancelled_at=parse_datetime(row["cancelled_at"]),
            cancellation_reason=row["cancellation_reason"],
            version=row["version"],
        )

    def _job_values(self, job: Job) -> tuple:
        return (
            job.customer_id,
            job.customer_name,
            job.electrician_id,
            job.electrician_name,
            job.description,
            job.address,
            job.city,
            str(job.base_price),
            self._add_ons_to_json(job.add_ons),
            self._add_ons_to_json(job.pending_add_ons),
            job.payment_method,
            job.status.value,
            format_datetime(job.created_at),
            format_datetime(job.accepted_at),
            format_datetime(job.completed_at),
            format_datetime(job.cancelled_at),
            job.cancellation_reason,
        )

    @staticmethod
    def _insert_events(conn: sqlite3.Connection, job_id: str, events, start: int) -> None:
        conn.executemany(
            "INSERT INTO job_events (job_id, seq, status, timestamp, actor_role, actor_id, note) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    job_id,
                    start + i,
                    e.status.value,
                    format_datetime(e.timestamp),
                    e.actor_role.value,
                    e.actor_id,
                    e.note,
                )
                for i, e in enumerate(events)
            ],
        )

    @staticmethod
    def _insert_transactions(conn: sqlite3.Connection, transactions: Sequence[Transaction]) -> None:
        try:
            conn.executemany(
                "INSERT INTO transactions "
                "(id, electrician_id, job_id, type, amount, description, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        t.id,
                        t.electrician_id,
                        t.job_id,
                        t.type.value,
                        str(t.amount),
                        t.description,
                        format_datetime(t.created_at),
                    )
                    for t in transactions
                ],
            )
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Rejected ledger entry: {e}") from e

    # === Jobs ===

    def save_job(self, job: Job) -> str:
        with self._transaction() as conn:
            exists = conn.execute("SELECT 1 FROM jobs WHERE id = ?", (job.id,)).fetchone()
            if exists:
                raise ValueError(f"Job {job.id} already exists")
            conn.execute(
                f"INSERT INTO jobs ({_JOB_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (job.id, *self._job_values(job), job.version),
            )
            self._insert_events(conn, job.id, job.timeline, 0)
        return job.id

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._snapshot() as conn:
            row = conn.execute(f"SELECT {_JOB_COLUMNS} FROM jobs WHERE id = ?", (job_id,)).fetchone()
            return self._row_to_job(conn, row) if row else None

    @staticmethod
    def _job_filters(status, customer_id, electrician_id, unassigned) -> tuple:
        clauses = []
        params: list = []
        if status is not None:
            clauses.append("status = ?")
            params.append(JobStatus(status).value)
        if customer_id is not None:
            clauses.append("customer_id = ?")
            params.append(customer_id)
        if electrician_id is not None:
            clauses.append("electrician_id = ?")
            params.append(electrician_id)
        if unassigned:
            clauses.append("electrician_id IS NULL")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        customer_id: Optional[str] = None,
        electrician_id: Optional[str] = None,
        unassigned: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Job]:
        where, params = self._job_filters(status, customer_id, electrician_id, unassigned)
        with self._snapshot() as conn:
            rows = conn.execute(
                f"SELECT {_JOB_COLUMNS} FROM jobs {where} "
                "ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
                (*params, limit, offset),
            ).fetchall()
            return [self._row_to_job(conn, r) for r in rows]

    def count_jobs(
        self,
        status: Optional[JobStatus] = None,
        customer_id: Optional[str] = None,
        electrician_id: Optional[str] = None,
        unassigned: bool = False,
    ) -> int:
        where, params = self._job_filters(status, customer_id, electrician_id, unassigned)
        with self._connect() as conn:
            (count,) = conn.execute(f"SELECT COUNT(*) FROM jobs {where}", params).fetchone()
        return count

    def update_job(
        self,
        job: Job,
        expected_version: int,
        transactions: Sequence[Transaction] = (),
    ) -> bool:
        if job.version != expected_version + 1:
            raise ValueError(
                f"Job {job.id} must carry version {expected_version + 1}, got {job.version}"
            )

        with self._transaction() as conn:
            current = conn.execute("SELECT version FROM jobs WHERE id = ?", (job.id,)).fetchone()
            if current is None:
                return False
            if current["version"] != expected_version:
                raise VersionConflictError("jobs", job.id, expected_version, current["version"])

            stored = self._load_timeline(conn, job.id)
            if job.timeline[: len(stored)] != stored:
                raise ValueError(f"Timeline of job {job.id} is append-only")

            cursor = conn.execute(
                """
                UPDATE jobs SET
                    customer_id = ?, customer_name = ?, electrician_id = ?,
                    electrician_name = ?, description = ?, address = ?, city = ?,
                    base_price = ?, add_ons = ?, pending_add_ons = ?,
                    payment_method = ?, status = ?, created_at = ?, accepted_at = ?,
                    completed_at = ?, cancelled_at = ?, cancellation_reason = ?,
                    version = version + 1
                WHERE id = ? AND version = ?
                """,
                (*self._job_values(job), job.id, expected_version),
            )
            if cursor.rowcount == 0:
                raise VersionConflictError("jobs", job.id, expected_version, -1)

            self._insert_events(conn, job.id, job.timeline[len(stored) :], len(stored))
            if transactions:
                self._insert_transactions(conn, transactions)

        return True

    # === Ledger ===

    def append_transaction(self, transaction: Transaction) -> str:
        return self.append_transactions([transaction])[0]

    def append_transactions(self, transactions: Sequence[Transaction]) -> List[str]:
        with self._transaction() as conn:
            self._insert_transactions(conn, transactions)
        return [t.id for t in transactions]

    def list_transactions(
        self,
        electrician_id: Optional[str] = None,
        job_id: Optional[str] = None,
        tx_type: Optional[TransactionType] = None,
    ) -> List[Transaction]:
        clauses = []
        params: list = []
        if electrician_id is not None:
            clauses.append("electrician_id = ?")
            params.append(electrician_id)
        if job_id is not None:
            clauses.append("job_id = ?")
            params.append(job_id)
        if tx_type is not None:
            clauses.append("type = ?")
            params.append(TransactionType(tx_type).value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, electrician_id, job_id, type, amount, description, created_at "
                f"FROM transactions {where} ORDER BY rowid",
                params,
            ).fetchall()
        return [
            Transaction(
                id=r["id"],
                electrician_id=r["electrician_id"],
                job_id=r["job_id"],
                type=r["type"],
                amount=r["amount"],
                description=r["description"],
                created_at=parse_datetime(r["created_at"]),
            )
            for r in rows
        ]

    # === Audit ===

    def append_audit(self, entry: AuditEntry) -> str:
        with self._transaction() as conn:
            try:
                conn.execute(
                    "INSERT INTO audit_logs (id, admin_id, action, entity_type, entity_id, "
                    "reason, details, ip_address, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        entry.id,
                        entry.admin_id,
                        entry.action,
                        entry.entity_type,
                        entry.entity_id,
                        entry.reason,
                        json.dumps(entry.details, default=str),
                        entry.ip_address,
                        format_datetime(entry.created_at),
                    ),
                )
            except sqlite3.IntegrityError as e:
                raise ValueError(f"Rejected audit entry: {e}") from e
        return entry.id

    def list_audit(
        self,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        admin_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditEntry]:
        clauses = []
        params: list = []
        if entity_type is not None:
            clauses.append("entity_type = ?")
            params.append(entity_type)
        if entity_id is not None:
            clauses.append("entity_id = ?")
            params.append(entity_id)
        if admin_id is not None:
            clauses.append("admin_id = ?")
            params.append(admin_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, admin_id, action, entity_type, entity_id, reason, details, "
                f"ip_address, created_at FROM audit_logs {where} ORDER BY rowid DESC LIMIT ?",
                (*params, limit),
            ).fetchall()
        return [
            AuditEntry(
                id=r["id"],
                admin_id=r["admin_id"],
                action=r["action"],
                entity_type=r["entity_type"],
                entity_id=r["entity_id"],
                reason=r["reason"],
                details=json.loads(r["details"] or "{}"),
                ip_address=r["ip_address"],
                created_at=parse_datetime(r["created_at"]),
            )
            for r in rows
        ]
