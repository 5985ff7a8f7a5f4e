import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from models import Account, PatientRecord, Role

logger = logging.getLogger(__name__)

SCHEMA = '''
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT UNIQUE NOT NULL COLLATE NOCASE,
        email TEXT UNIQUE NOT NULL,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL CHECK (role IN ('admin', 'doctor', 'patient')),
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        phone_number TEXT,
        is_active INTEGER NOT NULL DEFAULT 1,
        last_login TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS patients (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER UNIQUE NOT NULL,
        date_of_birth TEXT NOT NULL,
        gender TEXT NOT NULL CHECK (gender IN ('male', 'female', 'other')),
        phone_number TEXT,
        notes TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(id)
    );
'''

# Columns that may be changed after creation; everything else is fixed
ACCOUNT_PROFILE_FIELDS = {"first_name", "last_name", "phone_number"}
PATIENT_UPDATE_FIELDS = {"date_of_birth", "gender", "phone_number", "notes"}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _column_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return value


class Database:
    """SQLite-backed store for accounts and patient records.

    Every call opens its own connection, so one instance can be shared by
    all request threads.
    """

    def __init__(self, path: str):
        self.path = path

    @contextmanager
    def connect(self):
        """Database connection context manager"""
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row  # Enable dict-like access
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
        finally:
            conn.close()

    def init_schema(self):
        """Create tables if they do not exist yet"""
        with self.connect() as conn:
            conn.executescript(SCHEMA)
            conn.commit()
        logger.info("Database ready at %s", self.path)

    # Accounts

    def get_account(self, account_id: int) -> Optional[Account]:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (account_id,)).fetchone()
            return Account(**dict(row)) if row else None

    def find_account(self, identifier: str) -> Optional[Account]:
        """Look up an account by username or email, ignoring case"""
        identifier = identifier.strip().lower()
        with self.connect() as conn:
            row = conn.execute(
                '''
                SELECT * FROM users
                WHERE email = ? OR username = ?
                ORDER BY email = ? DESC
                LIMIT 1
                ''',
                (identifier, identifier, identifier),
            ).fetchone()
            return Account(**dict(row)) if row else None

    def identity_taken(self, username: str, email: str) -> bool:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM users WHERE username = ? OR email = ?",
                (username, email.lower()),
            ).fetchone()
            return row is not None

    def create_account(
        self,
        username: str,
        email: str,
        password_hash: str,
        role: Role,
        first_name: str,
        last_name: str,
        phone_number: Optional[str] = None,
    ) -> Account:
        """Insert a new account; raises sqlite3.IntegrityError on a duplicate identity"""
        now = _now()
        with self.connect() as conn:
            cursor = conn.execute(
                '''
                INSERT INTO users (username, email, password_hash, role, first_name,
                                   last_name, phone_number, is_active, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?, ?)
                ''',
                (username, email.lower(), password_hash, Role(role).value, first_name,
                 last_name, phone_number, now, now),
            )
            new_id = cursor.lastrowid
            conn.commit()
        return self.get_account(new_id)

    def list_accounts(self, role: Optional[Role] = None, active: Optional[bool] = None) -> List[Account]:
        query = "SELECT * FROM users"
        clauses, params = [], []
        if role is not None:
            clauses.append("role = ?")
            params.append(Role(role).value)
        if active is not None:
            clauses.append("is_active = ?")
            params.append(1 if active else 0)
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY id"
        with self.connect() as conn:
            return [Account(**dict(row)) for row in conn.execute(query, params).fetchall()]

    def record_login(self, account_id: int) -> None:
        with self.connect() as conn:
            conn.execute("UPDATE users SET last_login = ? WHERE id = ?", (_now(), account_id))
            conn.commit()

    def update_profile(self, account_id: int, changes: Dict[str, Any]) -> Optional[Account]:
        unknown = set(changes) - ACCOUNT_PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")
        self._update("users", account_id, changes)
        return self.get_account(account_id)

    def set_password_hash(self, account_id: int, password_hash: str) -> None:
        self._update("users", account_id, {"password_hash": password_hash})

    def set_active(self, account_id: int, active: bool) -> Optional[Account]:
        self._update("users", account_id, {"is_active": 1 if active else 0})
        return self.get_account(account_id)

    # Patient records

    def create_patient(self, user_id: int, date_of_birth, gender, phone_number=None, notes=None) -> PatientRecord:
        """Insert a patient record; raises sqlite3.IntegrityError if the user already has one"""
        now = _now()
        with self.connect() as conn:
            cursor = conn.execute(
                '''
                INSERT INTO patients (user_id, date_of_birth, gender, phone_number, notes,
                                      created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ''',
                (user_id, _column_value(date_of_birth), _column_value(gender), phone_number,
                 notes, now, now),
            )
            new_id = cursor.lastrowid
            conn.commit()
        return self.get_patient(new_id)

    def get_patient(self, patient_id: int) -> Optional[PatientRecord]:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM patients WHERE id = ?", (patient_id,)).fetchone()
            return PatientRecord(**dict(row)) if row else None

    def get_patient_by_user(self, user_id: int) -> Optional[PatientRecord]:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM patients WHERE user_id = ?", (user_id,)).fetchone()
            return PatientRecord(**dict(row)) if row else None

    def list_patients(self) -> List[PatientRecord]:
        with self.connect() as conn:
            rows = conn.execute("SELECT * FROM patients ORDER BY id").fetchall()
            return [PatientRecord(**dict(row)) for row in rows]

    def update_patient(self, patient_id: int, changes: Dict[str, Any]) -> Optional[PatientRecord]:
        unknown = set(changes) - PATIENT_UPDATE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")
        self._update("patients", patient_id, changes)
        return self.get_patient(patient_id)

    def delete_patient(self, patient_id: int) -> bool:
        with self.connect() as conn:
            cursor = conn.execute("DELETE FROM patients WHERE id = ?", (patient_id,))
            conn.commit()
            return cursor.rowcount > 0

    def _update(self, table: str, row_id: int, changes: Dict[str, Any]) -> None:
        # Column names come from the allow-lists above, never from request input
        changes = dict(changes, updated_at=_now())
        assignments = ", ".join(f"{column} = ?" for column in changes)
        params = [_column_value(value) for value in changes.values()]
        with self.connect() as conn:
            conn.execute(f"UPDATE {table} SET {assignments} WHERE id = ?", (*params, row_id))
            conn.commit()
