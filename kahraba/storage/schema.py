"""Database schema for kahraba SQLite storage.

Contains:
- Schema DDL (SCHEMA)
- Schema version tracking (SCHEMA_VERSION)
- Database initialization (init_db)
"""

import logging
import sqlite3

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS jobs (
    id TEXT PRIMARY KEY,
    customer_id TEXT NOT NULL,
    customer_name TEXT,
    electrician_id TEXT,
    electrician_name TEXT,
    description TEXT NOT NULL DEFAULT '',
    address TEXT NOT NULL DEFAULT '',
    city TEXT NOT NULL DEFAULT '',
    base_price TEXT NOT NULL,
    add_ons TEXT NOT NULL DEFAULT '[]',
    pending_add_ons TEXT NOT NULL DEFAULT '[]',
    payment_method TEXT NOT NULL DEFAULT 'cash',
    status TEXT NOT NULL,
    created_at TEXT,
    accepted_at TEXT,
    completed_at TEXT,
    cancelled_at TEXT,
    cancellation_reason TEXT,
    version INTEGER NOT NULL DEFAULT 1
);

CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status);
CREATE INDEX IF NOT EXISTS idx_jobs_customer ON jobs(customer_id);
CREATE INDEX IF NOT EXISTS idx_jobs_electrician ON jobs(electrician_id);

-- Append-only timeline; seq is the 0-based position in the job's timeline
CREATE TABLE IF NOT EXISTS job_events (
    job_id TEXT NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
    seq INTEGER NOT NULL,
    status TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    actor_role TEXT NOT NULL,
    actor_id TEXT,
    note TEXT,
    PRIMARY KEY (job_id, seq)
);

CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    electrician_id TEXT NOT NULL,
    job_id TEXT,
    type TEXT NOT NULL,
    amount TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    created_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_transactions_electrician ON transactions(electrician_id);
CREATE INDEX IF NOT EXISTS idx_transactions_job ON transactions(job_id);

-- Settlement runs at most once per job
CREATE UNIQUE INDEX IF NOT EXISTS idx_transactions_settlement
    ON transactions(job_id, type)
    WHERE job_id IS NOT NULL AND type IN ('earning', 'commission');

-- Admin actions; details is a JSON object
CREATE TABLE IF NOT EXISTS audit_logs (
    id TEXT PRIMARY KEY,
    admin_id TEXT NOT NULL,
    action TEXT NOT NULL,
    entity_type TEXT NOT NULL,
    entity_id TEXT,
    reason TEXT NOT NULL,
    details TEXT NOT NULL DEFAULT '{}',
    ip_address TEXT,
    created_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_entity ON audit_logs(entity_type, entity_id);
CREATE INDEX IF NOT EXISTS idx_audit_admin ON audit_logs(admin_id);
"""


def init_db(conn: sqlite3.Connection) -> None:
    """Create tables and record the schema version."""
    conn.executescript(SCHEMA)
    row = conn.execute("SELECT version FROM schema_version").fetchone()
    if row is None:
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
        logger.info(f"Initialized kahraba schema v{SCHEMA_VERSION}")
    elif row[0] != SCHEMA_VERSION:
        logger.warning(f"Schema version {row[0]} found, expected {SCHEMA_VERSION}")
        conn.execute("UPDATE schema_version SET version = ?", (SCHEMA_VERSION,))
