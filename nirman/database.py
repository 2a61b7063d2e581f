"""
Database connection and schema management.
Supports both SQLite (local development) and PostgreSQL (production).

A work proposal is stored as one row in work_proposals plus one row per
stage sub-document (technical/administrative approval, tender, work order,
work progress ledger) and one row per installment.
"""
import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime

from nirman.config import DATABASE_PATH, DATABASE_URL, USE_POSTGRES

# PostgreSQL support
if USE_POSTGRES:
    import psycopg2
    from psycopg2.extras import RealDictCursor

logger = logging.getLogger(__name__)


class DictRow:
    """Wrapper to make psycopg2 results behave like sqlite3.Row"""
    def __init__(self, data):
        self._data = data
        self._keys = list(data.keys()) if data else []

    def __getitem__(self, key):
        if isinstance(key, int):
            return self._data[self._keys[key]]
        return self._data[key]

    def __iter__(self):
        return iter(self._data.values())

    def keys(self):
        return self._keys


def get_db_connection():
    """Create a database connection with row factory."""
    if USE_POSTGRES:
        return psycopg2.connect(DATABASE_URL)
    conn = sqlite3.connect(str(DATABASE_PATH))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


class PostgresCursorWrapper:
    """Wrapper to make PostgreSQL cursor behave like SQLite cursor"""
    def __init__(self, cursor, conn=None):
        self._cursor = cursor
        self._conn = conn

    def execute(self, query, params=None):
        # Convert SQLite ? placeholders to PostgreSQL %s
        query = query.replace('?', '%s')
        # Convert AUTOINCREMENT to SERIAL for PostgreSQL
        query = query.replace('INTEGER PRIMARY KEY AUTOINCREMENT', 'SERIAL PRIMARY KEY')
        # Convert SQLite PRAGMA (ignore in PostgreSQL)
        if query.strip().upper().startswith('PRAGMA'):
            return self
        if params:
            self._cursor.execute(query, params)
        else:
            self._cursor.execute(query)
        return self

    def fetchone(self):
        row = self._cursor.fetchone()
        return DictRow(row) if row else None

    def fetchall(self):
        rows = self._cursor.fetchall()
        return [DictRow(row) for row in rows]

    @property
    def lastrowid(self):
        self._cursor.execute("SELECT lastval()")
        return self._cursor.fetchone()['lastval']

    @property
    def rowcount(self):
        return self._cursor.rowcount


class PostgresConnection:
    """Connection facade exposing the sqlite3 connection methods used by the app."""
    def __init__(self, conn, cursor):
        self._conn = conn
        self._cursor = PostgresCursorWrapper(cursor, conn)

    def cursor(self):
        return self._cursor

    def execute(self, *args, **kwargs):
        return self._cursor.execute(*args, **kwargs)

    def commit(self):
        return self._conn.commit()

    def rollback(self):
        return self._conn.rollback()


@contextmanager
def get_db():
    """Context manager for database connections.

    Commits when the block exits cleanly, rolls back on any exception.
    """
    conn = get_db_connection()
    try:
        if USE_POSTGRES:
            yield PostgresConnection(conn, conn.cursor(cursor_factory=RealDictCursor))
        else:
            yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def now_str() -> str:
    """Timestamp string stored in TIMESTAMP columns (sortable, microsecond precision)."""
    return datetime.now().isoformat(sep=" ")


def get_current_fy() -> str:
    """Get current financial year in format: 2024-25"""
    today = date.today()
    if today.month >= 4:  # April onwards
        return f"{today.year}-{str(today.year + 1)[2:]}"
    else:  # Jan-Mar belongs to previous FY
        return f"{today.year - 1}-{str(today.year)[2:]}"


def generate_serial_number(cursor) -> str:
    """Generate proposal serial number: WP<YYYY><NNNNNN>"""
    year = date.today().year
    prefix = f"WP{year}"
    cursor.execute("""
        SELECT COUNT(*) AS existing FROM work_proposals
        WHERE serial_number LIKE ?
    """, (f"{prefix}%",))
    existing = cursor.fetchone()['existing'] or 0
    return f"{prefix}{existing + 1:06d}"


TABLES = [
    "installments",
    "work_progress",
    "work_orders",
    "tender_processes",
    "administrative_approvals",
    "technical_approvals",
    "work_proposals",
    "sessions",
    "users",
]


def init_database():
    """Initialize the database with all required tables."""
    with get_db() as conn:
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT UNIQUE NOT NULL,
                full_name TEXT NOT NULL,
                email TEXT UNIQUE NOT NULL,
                department TEXT,
                role TEXT NOT NULL,
                password_hash TEXT NOT NULL,
                is_active INTEGER DEFAULT 1,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                session_id TEXT PRIMARY KEY,
                user_id INTEGER NOT NULL,
                expires_at TIMESTAMP NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (user_id) REFERENCES users(id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS work_proposals (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                serial_number TEXT UNIQUE NOT NULL,
                name_of_work TEXT NOT NULL,
                work_description TEXT NOT NULL,
                type_of_work TEXT,
                work_agency TEXT,
                scheme TEXT,
                city TEXT,
                ward TEXT,
                work_department TEXT NOT NULL,
                approving_department TEXT,
                financial_year TEXT NOT NULL,
                sanction_amount REAL NOT NULL,
                is_tender_or_not INTEGER DEFAULT 0,
                appointed_engineer INTEGER,

                current_status TEXT NOT NULL DEFAULT 'Pending Technical Approval',
                work_progress_stage TEXT NOT NULL DEFAULT 'Pending Technical Approval',
                submitted_by INTEGER NOT NULL,
                submission_date TIMESTAMP,
                last_status_update TIMESTAMP,

                completion_date TIMESTAMP,
                final_cost REAL,
                completion_documents TEXT,

                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (submitted_by) REFERENCES users(id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS technical_approvals (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                proposal_id INTEGER UNIQUE NOT NULL,
                status TEXT DEFAULT 'Pending',
                approval_number TEXT,
                approval_date TIMESTAMP,
                amount_of_technical_sanction REAL,
                forwarding_date TIMESTAMP,
                remarks TEXT,
                rejection_reason TEXT,
                approved_by INTEGER,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (proposal_id) REFERENCES work_proposals(id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS administrative_approvals (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                proposal_id INTEGER UNIQUE NOT NULL,
                status TEXT DEFAULT 'Pending',
                by_govt_district_as TEXT,
                approval_number TEXT,
                approval_date TIMESTAMP,
                approved_amount REAL,
                remarks TEXT,
                rejection_reason TEXT,
                approved_by INTEGER,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (proposal_id) REFERENCES work_proposals(id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS tender_processes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                proposal_id INTEGER UNIQUE NOT NULL,
                tender_title TEXT,
                tender_id TEXT,
                department TEXT,
                issued_date DATE,
                remark TEXT,
                tender_status TEXT DEFAULT 'Not Started',
                contractor_name TEXT,
                contractor_contact TEXT,
                awarded_amount REAL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (proposal_id) REFERENCES work_proposals(id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS work_orders (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                proposal_id INTEGER UNIQUE NOT NULL,
                work_order_number TEXT UNIQUE NOT NULL,
                date_of_work_order DATE NOT NULL,
                contractor_or_gram_panchayat TEXT NOT NULL,
                work_order_amount REAL,
                remark TEXT,
                issued_by INTEGER,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (proposal_id) REFERENCES work_proposals(id)
            )
        """)

        # Financial/physical progress ledger; version guards read-modify-write
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS work_progress (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                proposal_id INTEGER UNIQUE NOT NULL,
                progress_percentage INTEGER DEFAULT 0,
                mb_stage TEXT,
                expenditure_amount REAL,
                sanctioned_amount REAL NOT NULL,
                total_amount_released REAL DEFAULT 0,
                remaining_balance REAL,
                last_updated_by INTEGER,
                version INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (proposal_id) REFERENCES work_proposals(id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS installments (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                proposal_id INTEGER NOT NULL,
                installment_no INTEGER NOT NULL,
                amount REAL NOT NULL,
                date DATE NOT NULL,
                description TEXT,
                created_by INTEGER,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE (proposal_id, installment_no),
                FOREIGN KEY (proposal_id) REFERENCES work_proposals(id)
            )
        """)

        # Indexes for the listing filters
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_proposals_status ON work_proposals(current_status)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_proposals_department ON work_proposals(work_department)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_proposals_fy ON work_proposals(financial_year)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_progress_updated ON work_progress(updated_at)")

        _create_admin_user(cursor)


def _create_admin_user(cursor):
    """Create default Super Admin user if not exists."""
    from nirman.auth import hash_password

    cursor.execute("SELECT id FROM users WHERE user_id = 'ADMIN'")
    if cursor.fetchone():
        return  # Admin already exists

    # Default admin password - should be changed after first login
    default_password = os.getenv("NIRMAN_ADMIN_PASSWORD", "Admin@Nirman2024")
    cursor.execute("""
        INSERT INTO users (user_id, full_name, email, department, role, password_hash, is_active)
        VALUES ('ADMIN', 'System Administrator', 'admin@nirman.gov.in', 'Administration', 'Super Admin', ?, 1)
    """, (hash_password(default_password),))

    logger.info("Created default admin user: admin@nirman.gov.in")


def reset_database():
    """Drop all tables and reinitialize (for development only)."""
    if USE_POSTGRES:
        with get_db() as conn:
            cursor = conn.cursor()
            for table in TABLES:
                cursor.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
    elif DATABASE_PATH.exists():
        DATABASE_PATH.unlink()
    init_database()
    logger.info("Database reset complete")
