"""
Database connection utilities
"""
import sqlite3
import time

from flask import current_app, g
from werkzeug.security import generate_password_hash

from utils.logger import get_logger
from utils.validators import validate_password, validate_username

logger = get_logger(__name__)

# Maximum retries for database operations
MAX_RETRIES = 3
RETRY_DELAY = 0.1  # 100ms delay between retries

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT UNIQUE NOT NULL,
    password_hash TEXT NOT NULL,
    role TEXT NOT NULL DEFAULT 'admin'
);

CREATE TABLE IF NOT EXISTS employees (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    first_name TEXT NOT NULL,
    last_name TEXT NOT NULL,
    email TEXT UNIQUE NOT NULL,
    department TEXT NOT NULL,
    position TEXT NOT NULL,
    photo_url TEXT,
    face_embedding TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS attendance_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    employee_id INTEGER NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
    date TEXT NOT NULL,
    check_in TEXT,
    check_out TEXT,
    status TEXT NOT NULL DEFAULT 'present',
    confidence REAL,
    verification_method TEXT NOT NULL DEFAULT 'face',
    UNIQUE (employee_id, date)
);

CREATE INDEX IF NOT EXISTS idx_attendance_date ON attendance_records(date);
CREATE INDEX IF NOT EXISTS idx_attendance_employee_id ON attendance_records(employee_id);
CREATE INDEX IF NOT EXISTS idx_employees_status ON employees(status);
"""


def connect(path):
    """
    Open a SQLite connection configured for the service.

    WAL allows concurrent readers while a scan is being written; foreign keys
    must be enabled per connection for the attendance cascade.
    """
    conn = sqlite3.connect(path, timeout=10.0)
    conn.row_factory = sqlite3.Row
    if path != ":memory:":
        conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA busy_timeout=10000")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def init_schema(conn):
    """Create tables and indexes if they don't exist"""
    conn.executescript(SCHEMA)
    conn.commit()


def seed_admin(conn, username, password):
    """
    Create the default admin account unless it already exists

    Raises:
        ValidationError: If the configured credentials are unusable
    """
    username = validate_username(username)
    password = validate_password(password)

    cur = conn.execute("SELECT id FROM users WHERE username=?", (username,))
    if cur.fetchone():
        return False
    conn.execute(
        "INSERT INTO users (username, password_hash, role) VALUES (?, ?, 'admin')",
        (username, generate_password_hash(password)),
    )
    conn.commit()
    logger.info(f"Default admin account created: {username}")
    return True


def init_db(app):
    """Create the schema and the default admin for an application"""
    conn = connect(app.config["DATABASE"])
    try:
        init_schema(conn)
        seed_admin(conn, app.config["DEFAULT_ADMIN_USERNAME"], app.config["DEFAULT_ADMIN_PASSWORD"])
    finally:
        conn.close()
    logger.info(f"Database initialized: {app.config['DATABASE']}")


def get_db():
    """
    Get database connection from Flask's g object (request context)
    """
    if "db" not in g:
        retries = 0
        while True:
            try:
                g.db = connect(current_app.config["DATABASE"])
                logger.debug("Database connection established")
                break
            except sqlite3.OperationalError as e:
                retries += 1
                message = str(e).lower()
                if ("database is locked" in message or "database is busy" in message) and retries < MAX_RETRIES:
                    logger.warning(f"Database locked, retrying ({retries}/{MAX_RETRIES})...")
                    time.sleep(RETRY_DELAY * retries)
                    continue
                logger.error(f"Database operational error: {str(e)}", exc_info=True)
                raise

    return g.db


def close_db(exception=None):
    """Close database connection at the end of request"""
    db = g.pop("db", None)
    if db is not None:
        try:
            # Rollback any uncommitted transactions before closing
            db.rollback()
            db.close()
            logger.debug("Database connection closed")
        except sqlite3.ProgrammingError:
            # Connection already closed
            pass

    if exception:
        logger.error(f"Exception in teardown: {str(exception)}", exc_info=exception)
