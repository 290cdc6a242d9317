"""
rbac/store.py -- SQLAlchemy Core persistence layer for the RBAC graph.

Pattern: Repository + Data Mapper. RbacStore is the repository; the
_row_to_* functions are the mappers. Services and routes never touch SQL
directly.

Uses SQLAlchemy Core (not ORM) so the dataclasses in rbac/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change (DATABASE_URL), not a rewrite.

Transactions:
  Every public method accepts an optional `conn`. Without one, the method
  opens and commits its own short transaction. Inside `with
  store.transaction() as conn:` callers pass `conn=conn` to several methods
  so a check and the mutation it guards share one transaction. The graph
  manager and user directory rely on this for their invariants.

Constraints as the source of truth:
  UNIQUE(users.email), UNIQUE(roles.name), UNIQUE(permissions.name) and the
  composite primary key on role_permissions reject duplicates even when two
  requests pass the application-level check concurrently. The foreign key
  users.role_id -> roles.id (no cascade) rejects deleting a role that a user
  still references. Those violations surface as sqlalchemy IntegrityError,
  which callers downgrade to domain errors. SQLite only enforces foreign keys
  when PRAGMA foreign_keys=ON is set per connection -- see _set_sqlite_pragmas.

Security:
  All queries use bound parameters. No f-strings in SQL.

DB path: rbac/gridgate.db unless DATABASE_URL is set.

Layer rule: no imports from api/ or auth/.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
    text,
)
from sqlalchemy.engine import Connection, Engine

from core.config import DEFAULT_DB_URL
from rbac.models import Permission, Role, User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_roles = Table(
    "roles",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("description", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_permissions = Table(
    "permissions",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("description", Text),
    Column("resource", String(100)),  # classification tag, e.g. "users"
    Column("action", String(100)),  # classification tag, e.g. "manage"
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_role_permissions = Table(
    "role_permissions",
    metadata,
    Column("role_id", String(36), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False),
    Column("permission_id", String(36), ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False),
    Column("created_at", String(32), nullable=False),
    PrimaryKeyConstraint("role_id", "permission_id", name="pk_role_permission"),
)

_users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(255), nullable=False),
    Column("password_hash", Text, nullable=False),
    # No ON DELETE clause: the FK must reject deleting a role in use.
    Column("role_id", String(36), ForeignKey("roles.id"), nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("last_login", String(32)),
)


# ---------------------------------------------------------------------------
# Connection setup
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable foreign keys and WAL journal mode on every new SQLite connection.

    Both PRAGMAs are per-connection in SQLite and are not inherited by new
    connections from the pool. Without foreign_keys=ON the users.role_id
    constraint and the edge cascades are silently ignored.
    """
    dbapi_conn.execute("PRAGMA foreign_keys=ON")
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class RbacStore:
    """Repository for users, roles, permissions and role/permission edges.

    Usage:
        store = RbacStore()                                  # SQLite default
        store = RbacStore("postgresql://user:pw@host/db")    # PostgreSQL
        role_id = store.create_role(Role(name="editor"))
        with store.transaction() as conn:
            if store.count_users_with_role(role_id, conn=conn) == 0:
                store.delete_role(role_id, conn=conn)
        store.close()
    """

    def __init__(self, db_url: str = DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Open one transaction spanning several store calls.

        Commits when the block exits normally and rolls back when it raises,
        so a domain error raised between the check and the write leaves the
        database untouched.
        """
        with self.engine.begin() as conn:
            yield conn

    @contextmanager
    def _use(self, conn: Optional[Connection]) -> Iterator[Connection]:
        if conn is not None:
            yield conn
            return
        with self.engine.begin() as own:
            yield own

    def ping(self) -> None:
        """Run a trivial query. Raises sqlalchemy errors if the DB is unreachable."""
        with self._use(None) as conn:
            conn.execute(text("SELECT 1"))

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def create_role(self, role: Role, conn: Optional[Connection] = None) -> str:
        """Insert a role and return its new id.

        Raises sqlalchemy.exc.IntegrityError if the name is already taken.
        """
        role_id = _new_id()
        now = _now_iso()
        with self._use(conn) as c:
            c.execute(
                _roles.insert().values(
                    id=role_id,
                    name=role.name,
                    description=role.description,
                    created_at=now,
                    updated_at=now,
                )
            )
        return role_id

    def get_role(self, role_id: str, conn: Optional[Connection] = None) -> Optional[Role]:
        """Return the role with its permissions attached, or None."""
        with self._use(conn) as c:
            row = c.execute(_roles.select().where(_roles.c.id == role_id)).fetchone()
            if row is None:
                return None
            role = _row_to_role(row)
            role.permissions = self.get_role_permissions(role_id, conn=c)
        return role

    def get_role_by_name(self, name: str, conn: Optional[Connection] = None) -> Optional[Role]:
        """Look up a role by exact name. Permissions are not attached."""
        with self._use(conn) as c:
            row = c.execute(_roles.select().where(_roles.c.name == name)).fetchone()
        return _row_to_role(row) if row is not None else None

    def role_exists(self, role_id: str, conn: Optional[Connection] = None) -> bool:
        with self._use(conn) as c:
            row = c.execute(select(_roles.c.id).where(_roles.c.id == role_id)).fetchone()
        return row is not None

    def list_roles(self, conn: Optional[Connection] = None) -> list[Role]:
        """Return all roles, newest first, with permissions and user counts.

        Three queries regardless of role count: roles, edges joined to
        permission rows, and per-role user counts.
        """
        with self._use(conn) as c:
            role_rows = c.execute(_roles.select().order_by(_roles.c.created_at.desc())).fetchall()
            edge_rows = c.execute(
                select(_role_permissions.c.role_id, _permissions)
                .join(_permissions, _permissions.c.id == _role_permissions.c.permission_id)
                .order_by(_permissions.c.name)
            ).fetchall()
            count_rows = c.execute(
                select(_users.c.role_id, func.count().label("n")).group_by(_users.c.role_id)
            ).fetchall()

        perms_by_role: dict[str, list[Permission]] = {}
        for row in edge_rows:
            perms_by_role.setdefault(row.role_id, []).append(_row_to_permission(row))
        counts = {row.role_id: row.n for row in count_rows}

        roles = []
        for row in role_rows:
            role = _row_to_role(row)
            role.permissions = perms_by_role.get(role.id, [])
            role.user_count = counts.get(role.id, 0)
            roles.append(role)
        return roles

    def update_role(self, role_id: str, conn: Optional[Connection] = None, **fields) -> bool:
        """Update name and/or description. Returns False if role_id was not found.

        Raises sqlalchemy.exc.IntegrityError if the new name is already taken.
        """
        with self._use(conn) as c:
            result = c.execute(_roles.update().where(_roles.c.id == role_id).values(**fields, updated_at=_now_iso()))
        return result.rowcount > 0

    def delete_role(self, role_id: str, conn: Optional[Connection] = None) -> bool:
        """Delete a role and its edges. Returns False if role_id was not found.

        Edges are deleted explicitly as well as through ON DELETE CASCADE so
        backends without FK enforcement end in the same state. Raises
        sqlalchemy.exc.IntegrityError when a user still references the role
        and the backend enforces the foreign key.
        """
        with self._use(conn) as c:
            c.execute(_role_permissions.delete().where(_role_permissions.c.role_id == role_id))
            result = c.execute(_roles.delete().where(_roles.c.id == role_id))
        return result.rowcount > 0

    def count_users_with_role(self, role_id: str, conn: Optional[Connection] = None) -> int:
        with self._use(conn) as c:
            result = c.execute(select(func.count()).select_from(_users).where(_users.c.role_id == role_id)).scalar()
        return result or 0

    def get_role_permissions(self, role_id: str, conn: Optional[Connection] = None) -> list[Permission]:
        """Return the Permission records linked to role_id, ordered by name."""
        with self._use(conn) as c:
            rows = c.execute(
                select(_permissions)
                .join(_role_permissions, _role_permissions.c.permission_id == _permissions.c.id)
                .where(_role_permissions.c.role_id == role_id)
                .order_by(_permissions.c.name)
            ).fetchall()
        return [_row_to_permission(r) for r in rows]

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    def create_permission(self, permission: Permission, conn: Optional[Connection] = None) -> str:
        """Insert a permission and return its new id.

        Raises sqlalchemy.exc.IntegrityError if the name is already taken.
        """
        permission_id = _new_id()
        now = _now_iso()
        with self._use(conn) as c:
            c.execute(
                _permissions.insert().values(
                    id=permission_id,
                    name=permission.name,
                    description=permission.description,
                    resource=permission.resource,
                    action=permission.action,
                    created_at=now,
                    updated_at=now,
                )
            )
        return permission_id

    def get_permission(self, permission_id: str, conn: Optional[Connection] = None) -> Optional[Permission]:
        with self._use(conn) as c:
            row = c.execute(_permissions.select().where(_permissions.c.id == permission_id)).fetchone()
        return _row_to_permission(row) if row is not None else None

    def get_permission_by_name(self, name: str, conn: Optional[Connection] = None) -> Optional[Permission]:
        with self._use(conn) as c:
            row = c.execute(_permissions.select().where(_permissions.c.name == name)).fetchone()
        return _row_to_permission(row) if row is not None else None

    def permission_exists(self, permission_id: str, conn: Optional[Connection] = None) -> bool:
        with self._use(conn) as c:
            row = c.execute(select(_permissions.c.id).where(_permissions.c.id == permission_id)).fetchone()
        return row is not None

    def list_permissions(self, conn: Optional[Connection] = None) -> list[Permission]:
        """Return all permissions ordered by name."""
        with self._use(conn) as c:
            rows = c.execute(_permissions.select().order_by(_permissions.c.name)).fetchall()
        return [_row_to_permission(r) for r in rows]

    def update_permission(self, permission_id: str, conn: Optional[Connection] = None, **fields) -> bool:
        """Update mutable permission fields. Returns False if not found."""
        with self._use(conn) as c:
            result = c.execute(
                _permissions.update().where(_permissions.c.id == permission_id).values(**fields, updated_at=_now_iso())
            )
        return result.rowcount > 0

    def delete_permission(self, permission_id: str, conn: Optional[Connection] = None) -> bool:
        """Delete a permission and every edge pointing at it. Returns False if not found."""
        with self._use(conn) as c:
            c.execute(_role_permissions.delete().where(_role_permissions.c.permission_id == permission_id))
            result = c.execute(_permissions.delete().where(_permissions.c.id == permission_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def has_edge(self, role_id: str, permission_id: str, conn: Optional[Connection] = None) -> bool:
        with self._use(conn) as c:
            row = c.execute(
                select(_role_permissions.c.role_id).where(
                    (_role_permissions.c.role_id == role_id) & (_role_permissions.c.permission_id == permission_id)
                )
            ).fetchone()
        return row is not None

    def insert_edge(self, role_id: str, permission_id: str, conn: Optional[Connection] = None) -> None:
        """Insert one edge.

        Raises sqlalchemy.exc.IntegrityError if the edge already exists or if
        either endpoint is missing (FK).
        """
        with self._use(conn) as c:
            c.execute(
                _role_permissions.insert().values(
                    role_id=role_id,
                    permission_id=permission_id,
                    created_at=_now_iso(),
                )
            )

    def delete_edge(self, role_id: str, permission_id: str, conn: Optional[Connection] = None) -> bool:
        """Delete one edge. Returns False if it did not exist."""
        with self._use(conn) as c:
            result = c.execute(
                _role_permissions.delete().where(
                    (_role_permissions.c.role_id == role_id) & (_role_permissions.c.permission_id == permission_id)
                )
            )
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Resolution queries
    # ------------------------------------------------------------------

    def role_has_permission_named(self, role_id: str, name: str, conn: Optional[Connection] = None) -> bool:
        """Existence check: does role_id have an edge to a permission called name?"""
        with self._use(conn) as c:
            row = c.execute(
                select(_role_permissions.c.role_id)
                .join(_permissions, _permissions.c.id == _role_permissions.c.permission_id)
                .where((_role_permissions.c.role_id == role_id) & (_permissions.c.name == name))
                .limit(1)
            ).fetchone()
        return row is not None

    def permission_names_for_role(self, role_id: str, conn: Optional[Connection] = None) -> frozenset[str]:
        with self._use(conn) as c:
            rows = c.execute(
                select(_permissions.c.name)
                .join(_role_permissions, _role_permissions.c.permission_id == _permissions.c.id)
                .where(_role_permissions.c.role_id == role_id)
            ).fetchall()
        return frozenset(r.name for r in rows)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User, conn: Optional[Connection] = None) -> str:
        """Insert a user and return its new id.

        Raises sqlalchemy.exc.IntegrityError if the email already exists or
        role_id does not reference an existing role.
        """
        user_id = _new_id()
        now = _now_iso()
        with self._use(conn) as c:
            c.execute(
                _users.insert().values(
                    id=user_id,
                    email=user.email,
                    name=user.name,
                    password_hash=user.password_hash,
                    role_id=user.role_id,
                    is_active=1 if user.is_active else 0,
                    created_at=now,
                    updated_at=now,
                )
            )
        return user_id

    def get_user(self, user_id: str, conn: Optional[Connection] = None) -> Optional[User]:
        with self._use(conn) as c:
            row = c.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_user_by_email(self, email: str, conn: Optional[Connection] = None) -> Optional[User]:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self._use(conn) as c:
            row = c.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self, conn: Optional[Connection] = None) -> list[User]:
        """Return all users, newest first."""
        with self._use(conn) as c:
            rows = c.execute(_users.select().order_by(_users.c.created_at.desc())).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_user(self, user_id: str, conn: Optional[Connection] = None, **fields) -> bool:
        """Update mutable fields on an existing user.

        Accepted fields: email, name, password_hash, role_id, is_active.
        is_active must be passed as bool; this method converts to int.

        Returns True if a row was updated, False if user_id was not found.
        """
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0
        with self._use(conn) as c:
            result = c.execute(_users.update().where(_users.c.id == user_id).values(**fields, updated_at=_now_iso()))
        return result.rowcount > 0

    def delete_user(self, user_id: str, conn: Optional[Connection] = None) -> bool:
        with self._use(conn) as c:
            result = c.execute(_users.delete().where(_users.c.id == user_id))
        return result.rowcount > 0

    def update_last_login(self, user_id: str, conn: Optional[Connection] = None) -> None:
        """Stamp the current UTC timestamp as last_login for the given user."""
        with self._use(conn) as c:
            c.execute(_users.update().where(_users.c.id == user_id).values(last_login=_now_iso()))

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_role(row) -> Role:
    return Role(
        id=row.id,
        name=row.name,
        description=row.description,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_permission(row) -> Permission:
    return Permission(
        id=row.id,
        name=row.name,
        description=row.description,
        resource=row.resource,
        action=row.action,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        role_id=row.role_id,
        password_hash=row.password_hash,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
        last_login=row.last_login,
    )
