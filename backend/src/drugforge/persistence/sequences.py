"""Sequence management for human-readable entity keys.

Provides sequential key generation with format: {ABBREV}-{SEQUENCE}
Example: GEN-00001, MAN-00042

One sequence per table. Each increment commits on its own, so callers
must draw keys before opening a transaction whose rollback should not
also discard the increment.

Supports both SQLite and PostgreSQL dialects.
"""

from drugforge.persistence.adapter import PersistenceAdapter


class SequenceService:
    """Manages sequences for entity key generation."""

    def __init__(self, db: PersistenceAdapter):
        self.db = db
        self._ensure_table()

    def _ensure_table(self) -> None:
        """Create the sequences table if it doesn't exist."""
        self.db.execute("""
            CREATE TABLE IF NOT EXISTS _sequences (
                name TEXT NOT NULL PRIMARY KEY,
                next_value INTEGER NOT NULL DEFAULT 1
            )
        """)

    def next_key(self, name: str, abbreviation: str) -> str:
        """Generate the next key for sequence ``name``.

        Args:
            name: The sequence name (normally the table name)
            abbreviation: Key prefix, e.g. "GEN"

        Returns:
            Formatted key like "GEN-00001"
        """
        value = self._get_and_increment(name)
        # Format: ABBREV-NNNNN (5 digits, zero-padded)
        return f"{abbreviation}-{value:05d}"

    def _get_and_increment(self, name: str) -> int:
        """Get the next sequence value and increment atomically."""
        if self.db.dialect == "postgresql":
            return self._get_and_increment_postgresql(name)
        return self._get_and_increment_sqlite(name)

    def _get_and_increment_sqlite(self, name: str) -> int:
        """SQLite implementation using SELECT + UPDATE/INSERT pattern."""
        with self.db.transaction():
            row = self.db.fetch_one(
                "SELECT next_value FROM _sequences WHERE name = ?",
                [name],
            )
            if row:
                current_value = row["next_value"]
                self.db.execute(
                    "UPDATE _sequences SET next_value = next_value + 1 WHERE name = ?",
                    [name],
                )
            else:
                # Insert new sequence starting at 1
                current_value = 1
                self.db.execute(
                    "INSERT INTO _sequences (name, next_value) VALUES (?, 2)",
                    [name],
                )
        return current_value

    def _get_and_increment_postgresql(self, name: str) -> int:
        """PostgreSQL implementation using INSERT ... ON CONFLICT DO UPDATE RETURNING.

        Atomic upsert avoids TOCTOU races; RETURNING gives us the value
        that was current before the increment so we return it to the caller.
        """
        rows = self.db.execute_returning(
            """
            INSERT INTO _sequences (name, next_value)
            VALUES (%s, 2)
            ON CONFLICT (name) DO UPDATE
                SET next_value = _sequences.next_value + 1
            RETURNING next_value - 1 AS current_value
            """,
            [name],
        )
        if not rows:
            raise RuntimeError("Sequence upsert returned no rows")
        return rows[0]["current_value"]

    def current_value(self, name: str) -> int:
        """Get the current sequence value without incrementing.

        Returns 0 if no sequence exists yet.
        """
        row = self.db.fetch_one(
            f"SELECT next_value - 1 AS current_value FROM _sequences "
            f"WHERE name = {self.db.placeholder}",
            [name],
        )
        return row["current_value"] if row else 0

    def reset(self, name: str, start_value: int = 1) -> None:
        """Reset a sequence to a specific value.

        Use with caution - can cause key collisions if rows exist.
        """
        if self.db.dialect == "postgresql":
            self.db.execute(
                """
                INSERT INTO _sequences (name, next_value)
                VALUES (%s, %s)
                ON CONFLICT (name) DO UPDATE
                    SET next_value = EXCLUDED.next_value
                """,
                [name, start_value],
            )
        else:
            self.db.execute(
                "INSERT OR REPLACE INTO _sequences (name, next_value) VALUES (?, ?)",
                [name, start_value],
            )
