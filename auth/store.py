"""
auth/store.py -- Persistence layer for accounts.

Pattern: Repository + Data Mapper. AccountRepository is the interface the
login flow and routes depend on; two implementations satisfy it:

  SqlAccountStore       SQLAlchemy Core over any SQL URL. In production this
                        is the Supabase Postgres connection string; locally
                        it defaults to a SQLite file next to this module.
  InMemoryAccountStore  A dict behind a single threading.Lock. For tests and
                        local demos only; it is safe for FastAPI's worker
                        threads inside one process and nothing more.

Route and flow code never touches SQL directly, and never mutates an Account
returned by a store (both implementations hand out copies).

Security:
  All queries use bound parameters. No f-strings in SQL.
  Email lookups are exact (case-sensitive), matching the UNIQUE constraint.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from sqlalchemy import Boolean, Column, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import Account

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'semprecheio_auth.db'}"

# Fields update_account() accepts. Anything else is a programming error.
_MUTABLE_FIELDS = frozenset({"name", "password_hash", "role", "service_type", "phone", "is_active"})


class DuplicateEmail(Exception):
    """Raised by create_account() when the email is already registered."""


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class AccountRepository(Protocol):
    def has_accounts(self) -> bool: ...

    def create_account(self, account: Account) -> str: ...

    def get_by_id(self, account_id: str) -> Account | None: ...

    def get_by_email(self, email: str) -> Account | None: ...

    def get_active_by_email(self, email: str) -> Account | None: ...

    def list_accounts(self) -> list[Account]: ...

    def update_account(self, account_id: str, **fields) -> bool: ...

    def update_last_login(self, account_id: str) -> None: ...

    def ping(self) -> bool: ...

    def close(self) -> None: ...


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


def _check_fields(fields: dict) -> None:
    unknown = set(fields) - _MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown account fields: {sorted(unknown)!r}")


# ---------------------------------------------------------------------------
# SQL implementation
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text),
    Column("role", String(30)),  # NULL on legacy client rows; see auth.roles.derive_role
    Column("service_type", String(50)),
    Column("phone", String(20)),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("last_login", String(32)),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block on writes (SQLite only)."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


class SqlAccountStore:
    """SQLAlchemy Core repository for Account records.

    Usage:
        store = SqlAccountStore("postgresql+psycopg2://...")
        account_id = store.create_account(Account(email="a@b.com", name="A", password_hash=...))
        account = store.get_active_by_email("a@b.com")
        store.close()
    """

    def __init__(self, db_url: str = "") -> None:
        db_url = db_url or _DEFAULT_DB_URL
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, pool_pre_ping=True)
        if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def has_accounts(self) -> bool:
        with self.engine.connect() as conn:
            count = conn.execute(select(func.count()).select_from(_accounts)).scalar()
        return (count or 0) > 0

    def create_account(self, account: Account) -> str:
        """Insert a new account and return its id.

        Raises DuplicateEmail if the email is already registered. The UNIQUE
        constraint is the source of truth, so two concurrent registrations
        cannot both succeed.
        """
        account_id = account.id or _new_id()
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _accounts.insert().values(
                        id=account_id,
                        name=account.name,
                        email=account.email,
                        password_hash=account.password_hash,
                        role=account.role,
                        service_type=account.service_type,
                        phone=account.phone,
                        is_active=account.is_active,
                        created_at=account.created_at or _now_iso(),
                    )
                )
        except IntegrityError as exc:
            raise DuplicateEmail(account.email) from exc
        return account_id

    def get_by_id(self, account_id: str) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_email(self, email: str) -> Account | None:
        """Look up an account by exact email, active or not."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.email == email)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_active_by_email(self, email: str) -> Account | None:
        """Look up an active account by exact email. Inactive accounts are invisible to login."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _accounts.select().where((_accounts.c.email == email) & (_accounts.c.is_active.is_(True)))
            ).fetchone()
        return _row_to_account(row) if row is not None else None

    def list_accounts(self) -> list[Account]:
        with self.engine.connect() as conn:
            rows = conn.execute(_accounts.select().order_by(_accounts.c.created_at)).fetchall()
        return [_row_to_account(r) for r in rows]

    def update_account(self, account_id: str, **fields) -> bool:
        """Update mutable fields. Returns False if the account does not exist."""
        _check_fields(fields)
        if not fields:
            return self.get_by_id(account_id) is not None
        with self.engine.begin() as conn:
            result = conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(**fields))
        return result.rowcount > 0

    def update_last_login(self, account_id: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(last_login=_now_iso()))

    def ping(self) -> bool:
        """Round-trip to the database. False when it cannot be reached."""
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
        except SQLAlchemyError:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        name=row.name,
        email=row.email,
        password_hash=row.password_hash,
        role=row.role,
        service_type=row.service_type,
        phone=row.phone,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        last_login=row.last_login,
    )


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


class InMemoryAccountStore:
    """Dict-backed repository for tests and demos.

    Every method holds self._lock for its whole body, so the store is
    single-writer within one process. It is not shared across processes.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._accounts: dict[str, Account] = {}

    def has_accounts(self) -> bool:
        with self._lock:
            return bool(self._accounts)

    def create_account(self, account: Account) -> str:
        with self._lock:
            if any(a.email == account.email for a in self._accounts.values()):
                raise DuplicateEmail(account.email)
            account_id = account.id or _new_id()
            self._accounts[account_id] = replace(
                account,
                id=account_id,
                created_at=account.created_at or _now_iso(),
            )
            return account_id

    def get_by_id(self, account_id: str) -> Account | None:
        with self._lock:
            account = self._accounts.get(account_id)
            return replace(account) if account is not None else None

    def get_by_email(self, email: str) -> Account | None:
        with self._lock:
            for account in self._accounts.values():
                if account.email == email:
                    return replace(account)
            return None

    def get_active_by_email(self, email: str) -> Account | None:
        account = self.get_by_email(email)
        if account is None or not account.is_active:
            return None
        return account

    def list_accounts(self) -> list[Account]:
        with self._lock:
            ordered = sorted(self._accounts.values(), key=lambda a: a.created_at or "")
            return [replace(a) for a in ordered]

    def update_account(self, account_id: str, **fields) -> bool:
        _check_fields(fields)
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                return False
            self._accounts[account_id] = replace(account, **fields)
            return True

    def update_last_login(self, account_id: str) -> None:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is not None:
                self._accounts[account_id] = replace(account, last_login=_now_iso())

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        with self._lock:
            self._accounts.clear()
