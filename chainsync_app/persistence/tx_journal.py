"""Submitted-transaction journal for reconciling abandoned waits."""

import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import structlog


class TxStatus(str, Enum):
    """Lifecycle of a journaled transaction."""
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"
    UNCONFIRMED = "unconfirmed"      # Wait failed without a receipt; fate unknown


@dataclass
class JournalEntry:
    """Stored transaction with metadata."""
    id: int
    tx_hash: str
    deployment: str
    method_name: str
    signer: str
    gas_limit: int
    status: str
    operation_id: Optional[str]
    block_number: Optional[int]
    reason: Optional[str]
    submitted_at: str
    updated_at: str


class TransactionJournal:
    """SQLite-based record of every transaction handed to the endpoint."""

    def __init__(self, db_path: str = "transactions.db"):
        self.db_path = Path(db_path)
        self.logger = structlog.get_logger("tx.journal")
        self._lock = threading.Lock()

        self._init_database()

    def _init_database(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS transactions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    tx_hash TEXT NOT NULL UNIQUE,
                    deployment TEXT NOT NULL,
                    method_name TEXT NOT NULL,
                    signer TEXT NOT NULL,
                    gas_limit INTEGER NOT NULL,
                    status TEXT NOT NULL,
                    operation_id TEXT,
                    block_number INTEGER,
                    reason TEXT,
                    submitted_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_transactions_signer ON transactions(signer)
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_transactions_status ON transactions(status)
            """)

            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get database connection with proper error handling."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=30.0)
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            self.logger.error("Database error", error=str(e))
            raise
        finally:
            if conn:
                conn.close()

    def record_submitted(
        self,
        tx_hash: str,
        deployment: str,
        method_name: str,
        signer: str,
        gas_limit: int,
        operation_id: Optional[str] = None
    ) -> Optional[int]:
        """
        Record a transaction the endpoint has accepted.

        Args:
            tx_hash: Transaction hash returned by the endpoint
            deployment: Deployment name
            method_name: Contract method invoked
            signer: Sending address
            gas_limit: Padded gas limit the transaction was sent with
            operation_id: Engine operation that submitted it

        Returns:
            Row ID if stored successfully, None otherwise
        """
        with self._lock:
            try:
                with self._get_connection() as conn:
                    now = datetime.now(timezone.utc).isoformat()
                    cursor = conn.execute("""
                        INSERT OR REPLACE INTO transactions (
                            tx_hash, deployment, method_name, signer, gas_limit,
                            status, operation_id, submitted_at, updated_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """, (
                        tx_hash,
                        deployment,
                        method_name,
                        signer,
                        gas_limit,
                        TxStatus.SUBMITTED.value,
                        operation_id,
                        now,
                        now
                    ))
                    conn.commit()

                    self.logger.info(
                        "Transaction journaled",
                        tx_hash=tx_hash,
                        method=method_name,
                        signer=signer
                    )
                    return cursor.lastrowid

            except Exception as e:
                self.logger.error(
                    "Failed to journal transaction",
                    tx_hash=tx_hash,
                    method=method_name,
                    error=str(e)
                )
                return None

    def update_status(
        self,
        tx_hash: str,
        status: TxStatus,
        block_number: Optional[int] = None,
        reason: Optional[str] = None
    ) -> bool:
        """Update the status of a journaled transaction."""
        with self._lock:
            try:
                with self._get_connection() as conn:
                    cursor = conn.execute("""
                        UPDATE transactions SET
                            status = ?,
                            block_number = COALESCE(?, block_number),
                            reason = COALESCE(?, reason),
                            updated_at = ?
                        WHERE tx_hash = ?
                    """, (
                        status.value,
                        block_number,
                        reason,
                        datetime.now(timezone.utc).isoformat(),
                        tx_hash
                    ))
                    conn.commit()
                    return cursor.rowcount > 0

            except Exception as e:
                self.logger.error("Failed to update transaction status",
                                  tx_hash=tx_hash, error=str(e))
                return False

    def get(self, tx_hash: str) -> Optional[JournalEntry]:
        """Get a transaction by hash."""
        try:
            with self._get_connection() as conn:
                row = conn.execute("""
                    SELECT * FROM transactions WHERE tx_hash = ?
                """, (tx_hash,)).fetchone()

                if row:
                    return self._row_to_entry(row)
                return None

        except Exception as e:
            self.logger.error("Failed to get transaction", tx_hash=tx_hash, error=str(e))
            return None

    def get_by_signer(self, signer: str, limit: int = 100) -> list[JournalEntry]:
        """Most recent transactions sent by ``signer``."""
        try:
            with self._get_connection() as conn:
                rows = conn.execute("""
                    SELECT * FROM transactions WHERE signer = ?
                    ORDER BY id DESC LIMIT ?
                """, (signer, limit)).fetchall()

                return [self._row_to_entry(row) for row in rows]

        except Exception as e:
            self.logger.error("Failed to get transactions for signer", signer=signer, error=str(e))
            return []

    def get_unresolved(self, signer: Optional[str] = None) -> list[JournalEntry]:
        """Transactions whose on-chain fate the engine never observed."""
        statuses = (TxStatus.SUBMITTED.value, TxStatus.UNCONFIRMED.value)
        query = "SELECT * FROM transactions WHERE status IN (?, ?)"
        params: tuple[Any, ...] = statuses
        if signer is not None:
            query += " AND signer = ?"
            params = statuses + (signer,)
        query += " ORDER BY id"

        try:
            with self._get_connection() as conn:
                return [self._row_to_entry(row) for row in conn.execute(query, params).fetchall()]

        except Exception as e:
            self.logger.error("Failed to get unresolved transactions", error=str(e))
            return []

    def get_stats(self) -> dict[str, Any]:
        """Get journal statistics."""
        try:
            with self._get_connection() as conn:
                total_count = conn.execute("SELECT COUNT(*) FROM transactions").fetchone()[0]

                status_counts = {}
                for row in conn.execute("""
                    SELECT status, COUNT(*) as count FROM transactions GROUP BY status
                """):
                    status_counts[row[0]] = row[1]

                return {
                    "total_transactions": total_count,
                    "transactions_by_status": status_counts,
                }

        except Exception as e:
            self.logger.error("Failed to get stats", error=str(e))
            return {}

    def _row_to_entry(self, row: sqlite3.Row) -> JournalEntry:
        """Convert database row to JournalEntry object."""
        return JournalEntry(
            id=row["id"],
            tx_hash=row["tx_hash"],
            deployment=row["deployment"],
            method_name=row["method_name"],
            signer=row["signer"],
            gas_limit=row["gas_limit"],
            status=row["status"],
            operation_id=row["operation_id"],
            block_number=row["block_number"],
            reason=row["reason"],
            submitted_at=row["submitted_at"],
            updated_at=row["updated_at"]
        )
