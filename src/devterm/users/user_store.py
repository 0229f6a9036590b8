# src/devterm/users/user_store.py

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import hmac
import json
import logging
import secrets
import sqlite3
import time
from pathlib import Path
from typing import Any

from ..core.errors import PersistenceError, ValidationError
from ..tasks.task_models import new_id
from .user_models import Role, User

logger = logging.getLogger(__name__)

_PBKDF2_ROUNDS = 120_000


def hash_password(password: str, salt: str) -> str:
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), _PBKDF2_ROUNDS)
    return digest.hex()


class UserStore:
    """
    SQLite user store (accounts, roles, XP, unlocked achievements).

    Same conventions as TaskStore: one connection per call, additive
    migrations, async public API running SQL in a worker thread.
    Passwords are stored as salted PBKDF2 hashes.
    """

    def __init__(self, db_path: str | Path = "devterm.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("UserStore ready db=%s", self._db_path)

    def close(self) -> None:
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL UNIQUE COLLATE NOCASE,
                    password_hash TEXT NOT NULL,
                    salt TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT 'DEVELOPER',
                    xp INTEGER NOT NULL DEFAULT 0,
                    achievements TEXT NOT NULL DEFAULT '[]',
                    created_at REAL NOT NULL
                )
                """
            )

            cur.execute("PRAGMA table_info(users)")
            cols = {row["name"] for row in cur.fetchall()}
            if "allowed_projects" not in cols:
                cur.execute("ALTER TABLE users ADD COLUMN allowed_projects TEXT NOT NULL DEFAULT '[]'")
                logger.info("UserStore migration: added column allowed_projects")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _str_to_list(s: str | None) -> list[str]:
        if not s:
            return []
        try:
            val = json.loads(s)
        except Exception:
            return []
        return [str(v) for v in val] if isinstance(val, list) else []

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=str(row["id"]),
            username=str(row["username"]),
            role=Role.from_db(row["role"]),
            xp=max(0, int(row["xp"] or 0)),
            achievements=self._str_to_list(row["achievements"]),
            allowed_projects=self._str_to_list(row["allowed_projects"]),
        )

    # ---- sync implementation ----

    def count_users(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM users").fetchone()
            return int(n)
        finally:
            conn.close()

    def _get_user_sync(self, user_id: str) -> User | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (str(user_id),)).fetchone()
            return self._row_to_user(row) if row else None
        finally:
            conn.close()

    def _list_users_sync(self) -> list[User]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM users ORDER BY created_at ASC").fetchall()
            return [self._row_to_user(r) for r in rows]
        finally:
            conn.close()

    def _save_user_sync(self, user: User) -> User:
        # Profile/gamification fields only; credentials are set by add_user.
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                UPDATE users
                SET username = ?, role = ?, xp = ?, achievements = ?, allowed_projects = ?
                WHERE id = ?
                """,
                (
                    user.username,
                    user.role.value,
                    max(0, int(user.xp)),
                    json.dumps(list(user.achievements)),
                    json.dumps(list(user.allowed_projects)),
                    user.id,
                ),
            )
            conn.commit()
            if cur.rowcount != 1:
                raise PersistenceError(f"User {user.id} does not exist", pending=user)
        finally:
            conn.close()
        saved = self._get_user_sync(user.id)
        if saved is None:
            raise PersistenceError(f"User {user.id} vanished right after save", pending=user)
        return saved

    def _delete_user_sync(self, user_id: str) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("DELETE FROM users WHERE id = ?", (str(user_id),))
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def _add_user_sync(self, username: str, password: str, role: Role, allowed_projects: list[str]) -> User:
        username = (username or "").strip()
        if not username or not password:
            raise ValidationError("Username and password are required", fields=["username", "password"])

        uid = new_id("u")
        salt = secrets.token_hex(16)
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO users(id, username, password_hash, salt, role, xp, achievements, allowed_projects, created_at)
                VALUES (?, ?, ?, ?, ?, 0, '[]', ?, ?)
                """,
                (uid, username, hash_password(password, salt), salt, role.value, json.dumps(allowed_projects), time.time()),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise ValidationError(f"User {username} already exists", fields=["username"]) from e
        finally:
            conn.close()
        logger.info("User created id=%s username=%s role=%s", uid, username, role.value)
        return User(id=uid, username=username, role=role, allowed_projects=list(allowed_projects))

    def _authenticate_sync(self, username: str, password: str) -> User | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM users WHERE username = ? COLLATE NOCASE", ((username or "").strip(),)
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        if not hmac.compare_digest(hash_password(password or "", row["salt"]), row["password_hash"]):
            return None
        return self._row_to_user(row)

    def _ensure_admin_sync(self, username: str, password: str) -> User | None:
        if self.count_users() > 0:
            return None
        logger.warning("No users found; seeding admin account username=%s", username)
        return self._add_user_sync(username, password, Role.ADMIN, [])

    # ---- public API (UserRepo + auth) ----

    async def _call(self, what: str, fn, *args: Any):
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.Error as e:
            logger.exception("UserStore %s failed", what)
            raise PersistenceError(f"User store error during {what}: {e}") from e

    async def save_user(self, user: User) -> User:
        return await self._call("save_user", self._save_user_sync, user)

    async def get_user(self, user_id: str) -> User | None:
        return await self._call("get_user", self._get_user_sync, user_id)

    async def list_users(self) -> list[User]:
        return await self._call("list_users", self._list_users_sync)

    async def delete_user(self, user_id: str) -> bool:
        return await self._call("delete_user", self._delete_user_sync, user_id)

    async def add_user(
        self,
        username: str,
        password: str,
        role: Role = Role.DEVELOPER,
        allowed_projects: list[str] | None = None,
    ) -> User:
        return await self._call("add_user", self._add_user_sync, username, password, role, list(allowed_projects or []))

    async def authenticate(self, username: str, password: str) -> User | None:
        return await self._call("authenticate", self._authenticate_sync, username, password)

    async def ensure_admin(self, username: str, password: str) -> User | None:
        """Create the seed ADMIN account when the table is empty."""
        return await self._call("ensure_admin", self._ensure_admin_sync, username, password)
