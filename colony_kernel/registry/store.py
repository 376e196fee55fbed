"""
Register Store: persists the request and lease registers across ticks.

Both registers are plain nested mappings (intent -> target -> agent -> tick)
and are stored as opaque JSON payloads keyed by register name.
Prototype: SQLite. The host may point it at a file to survive restarts.
"""

import json
import sqlite3
from typing import Optional, Tuple

from colony_kernel.models.allocation import Register

REQUEST_REGISTER = "request_register"
LEASE_REGISTER = "lease_register"


class RegisterStore:
    """Key/value store for the allocation registers."""

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the registers table if it doesn't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS registers (
                name TEXT PRIMARY KEY,
                tick INTEGER NOT NULL,
                payload TEXT NOT NULL,
                updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        self._conn.commit()

    def save(self, requests: Register, leases: Register, tick: int) -> None:
        """Replace both registers with the given mappings."""
        rows = [
            (REQUEST_REGISTER, tick, json.dumps(requests, sort_keys=True)),
            (LEASE_REGISTER, tick, json.dumps(leases, sort_keys=True)),
        ]
        self._conn.executemany(
            """
            INSERT INTO registers (name, tick, payload) VALUES (?, ?, ?)
            ON CONFLICT(name) DO UPDATE SET
                tick = excluded.tick,
                payload = excluded.payload,
                updated_at = datetime('now')
            """,
            rows,
        )
        self._conn.commit()

    def _load_one(self, name: str) -> Register:
        row = self._conn.execute(
            "SELECT payload FROM registers WHERE name = ?", (name,)
        ).fetchone()
        return json.loads(row["payload"]) if row else {}

    def load(self) -> Tuple[Register, Register]:
        """Return (requests, leases); empty mappings when nothing was saved."""
        return self._load_one(REQUEST_REGISTER), self._load_one(LEASE_REGISTER)

    def last_saved_tick(self) -> Optional[int]:
        row = self._conn.execute(
            "SELECT MAX(tick) AS tick FROM registers"
        ).fetchone()
        return row["tick"] if row else None

    def clear(self) -> None:
        self._conn.execute("DELETE FROM registers")
        self._conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
