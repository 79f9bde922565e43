"""
SQLite persistence layer for purchase orders.

Each PO is one row in ``purchase_orders``, addressed by its id.  Key fields
are denormalised into columns for filtering and statistics; the full record
(line items included) is kept as a JSON payload.

Every write is a compare-and-swap on ``revision``:

    UPDATE purchase_orders SET ..., revision = revision + 1
    WHERE id = ? AND revision = ?

so two writers racing on the same PO cannot silently overwrite each other;
the loser gets a Conflict.

The ``audit_log`` table is append-only and survives permanent deletion of
the PO it refers to.
"""
import json
import logging
import re
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from models.purchase_order import (
    PurchaseOrder,
    STATUS_PENDING_APPROVAL,
    STATUS_APPROVED,
    STATUS_ORDERED,
)
from models.result import AuditEntry
from .errors import Conflict, NotFound, ValidationError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS purchase_orders (
    id                     TEXT PRIMARY KEY,
    status                 TEXT    NOT NULL DEFAULT 'Draft',
    shipping_status        TEXT    NOT NULL DEFAULT 'Pending',
    archived               INTEGER NOT NULL DEFAULT 0,
    archived_at            TEXT,

    -- Key fields (denormalised for fast filtering / stats)
    supplier_id            TEXT    NOT NULL,
    supplier_name          TEXT,
    bill_number            TEXT,
    po_date                TEXT,
    expected_delivery_date TEXT,
    total_amount           REAL    NOT NULL DEFAULT 0,
    total_paid             REAL    NOT NULL DEFAULT 0,
    po_balance             REAL    NOT NULL DEFAULT 0,

    -- Full PurchaseOrder serialised as JSON (items included)
    data                   TEXT    NOT NULL,

    revision               INTEGER NOT NULL DEFAULT 1,
    created_at             TEXT    NOT NULL,
    updated_at             TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_po_status   ON purchase_orders (status);
CREATE INDEX IF NOT EXISTS idx_po_archived ON purchase_orders (archived);
CREATE INDEX IF NOT EXISTS idx_po_supplier ON purchase_orders (supplier_id);

CREATE TABLE IF NOT EXISTS audit_log (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    po_id       TEXT    NOT NULL,
    timestamp   TEXT    NOT NULL,   -- ISO-8601 UTC
    action      TEXT    NOT NULL,   -- created | updated | submitted | approved | rejected |
                                    -- ordered | cancelled | received | archived |
                                    -- restored | deleted | permanently_deleted
    actor       TEXT    NOT NULL DEFAULT 'system',
    detail      TEXT                -- optional JSON blob with action-specific context
);

CREATE INDEX IF NOT EXISTS idx_audit_po        ON audit_log (po_id);
CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log (timestamp DESC);
"""

_PENDING_STATUSES = (STATUS_PENDING_APPROVAL, STATUS_APPROVED, STATUS_ORDERED)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@contextmanager
def connect(db_path: Path) -> Iterator[sqlite3.Connection]:
    """Open a connection, commit on success, roll back on any exception."""
    conn = sqlite3.connect(str(db_path), timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


class Database:
    """Purchase order store backed by a single SQLite file."""

    def __init__(self, db_path: Path, id_prefix: str = "PO-", id_width: int = 3) -> None:
        self.db_path = db_path
        self.id_prefix = id_prefix
        self.id_width = id_width
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    def _conn(self):
        return connect(self.db_path)

    def _init_schema(self) -> None:
        with self._conn() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Database schema ready: %s", self.db_path)

    def ping(self) -> None:
        """Raise sqlite3.Error if the store cannot be reached."""
        with self._conn() as conn:
            conn.execute("SELECT 1 FROM purchase_orders LIMIT 1").fetchall()

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def insert_purchase_order(self, po: PurchaseOrder) -> PurchaseOrder:
        """
        Insert a new PO at revision 1.

        If ``po.id`` is empty the next id in sequence is allocated inside the
        same write transaction (``PO-001``, ``PO-002``, ...).  An explicit id
        that already exists is a ValidationError on field ``id``.
        """
        now = _now()
        with self._conn() as conn:
            conn.execute("BEGIN IMMEDIATE")
            if not po.id:
                po = po.model_copy(update={"id": self._next_id(conn)})
            po = po.model_copy(update={"revision": 1})
            try:
                conn.execute(
                    """
                    INSERT INTO purchase_orders (
                        id, status, shipping_status, archived, archived_at,
                        supplier_id, supplier_name, bill_number,
                        po_date, expected_delivery_date,
                        total_amount, total_paid, po_balance,
                        data, revision, created_at, updated_at
                    ) VALUES (
                        :id, :status, :shipping_status, :archived, :archived_at,
                        :supplier_id, :supplier_name, :bill_number,
                        :po_date, :expected_delivery_date,
                        :total_amount, :total_paid, :po_balance,
                        :data, :revision, :created_at, :updated_at
                    )
                    """,
                    {**self._row_params(po), "created_at": now, "updated_at": now},
                )
            except sqlite3.IntegrityError:
                raise ValidationError(
                    f"Purchase order with id {po.id} already exists", field="id"
                ) from None

        logger.info("DB inserted: %s  status=%s", po.id, po.status)
        return po

    def save_purchase_order(self, po: PurchaseOrder, expected_revision: int) -> PurchaseOrder:
        """
        Persist *po* if the stored revision still equals *expected_revision*.

        Returns the stored record with its revision bumped.  Raises NotFound
        if the PO has gone, Conflict if someone else wrote it first.
        """
        saved = po.model_copy(update={"revision": expected_revision + 1})
        with self._conn() as conn:
            conn.execute(
                """
                UPDATE purchase_orders SET
                    status                 = :status,
                    shipping_status        = :shipping_status,
                    archived               = :archived,
                    archived_at            = :archived_at,
                    supplier_id            = :supplier_id,
                    supplier_name          = :supplier_name,
                    bill_number            = :bill_number,
                    po_date                = :po_date,
                    expected_delivery_date = :expected_delivery_date,
                    total_amount           = :total_amount,
                    total_paid             = :total_paid,
                    po_balance             = :po_balance,
                    data                   = :data,
                    revision               = :revision,
                    updated_at             = :updated_at
                WHERE id = :id AND revision = :expected_revision
                """,
                {
                    **self._row_params(saved),
                    "updated_at": _now(),
                    "expected_revision": expected_revision,
                },
            )
            if conn.execute("SELECT changes()").fetchone()[0] == 0:
                row = conn.execute(
                    "SELECT revision FROM purchase_orders WHERE id=?", (po.id,)
                ).fetchone()
                if row is None:
                    raise NotFound("Purchase order", po.id)
                raise Conflict(po.id, expected_revision, row["revision"])

        logger.debug("DB saved: %s  revision=%d", saved.id, saved.revision)
        return saved

    def delete_purchase_order(self, po_id: str, expected_revision: Optional[int] = None) -> bool:
        """Remove a PO row entirely.  Returns True if a row was deleted."""
        with self._conn() as conn:
            if expected_revision is None:
                conn.execute("DELETE FROM purchase_orders WHERE id = ?", (po_id,))
            else:
                conn.execute(
                    "DELETE FROM purchase_orders WHERE id = ? AND revision = ?",
                    (po_id, expected_revision),
                )
            deleted = conn.execute("SELECT changes()").fetchone()[0] > 0
            if not deleted and expected_revision is not None:
                row = conn.execute(
                    "SELECT revision FROM purchase_orders WHERE id=?", (po_id,)
                ).fetchone()
                if row is not None:
                    raise Conflict(po_id, expected_revision, row["revision"])
        return deleted

    def log_audit(
        self,
        po_id: str,
        action: str,
        actor: str = "system",
        detail: Optional[dict] = None,
    ) -> None:
        """Append one entry to the audit log."""
        with self._conn() as conn:
            conn.execute(
                """INSERT INTO audit_log (po_id, timestamp, action, actor, detail)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    po_id,
                    _now(),
                    action,
                    actor,
                    json.dumps(detail) if detail is not None else None,
                ),
            )

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get_purchase_order(self, po_id: str) -> Optional[PurchaseOrder]:
        """Return the PO or None."""
        with self._conn() as conn:
            row = conn.execute(
                "SELECT data, revision FROM purchase_orders WHERE id=?", (po_id,)
            ).fetchone()
        return self._from_row(row) if row else None

    def list_purchase_orders(
        self,
        status: Optional[str] = None,
        archived: Optional[bool] = False,
        search: Optional[str] = None,
        limit: int = 500,
        offset: int = 0,
    ) -> list[PurchaseOrder]:
        """
        Return POs ordered newest id first.

        Args:
            status:   Filter by approval status, or None for all.
            archived: False for active records (default), True for the
                      archive, None for both.
            search:   Case-insensitive substring match on id, supplier name,
                      or bill number.
            limit:    Max rows to return.
            offset:   Pagination offset.
        """
        clauses: list[str] = []
        params: list = []

        if status:
            clauses.append("status = ?")
            params.append(status)
        if archived is not None:
            clauses.append("archived = ?")
            params.append(1 if archived else 0)
        if search:
            clauses.append("(id LIKE ? OR supplier_name LIKE ? OR bill_number LIKE ?)")
            like = f"%{search}%"
            params.extend([like, like, like])

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.extend([limit, offset])

        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT data, revision FROM purchase_orders
                {where}
                ORDER BY created_at DESC, id DESC
                LIMIT ? OFFSET ?
                """,
                params,
            ).fetchall()

        return [self._from_row(r) for r in rows]

    def get_stats(self) -> dict:
        """Return counts by status plus total and pending values."""
        with self._conn() as conn:
            row = conn.execute(
                """
                SELECT
                    COUNT(*) AS total,
                    SUM(CASE WHEN status = 'Draft'              THEN 1 ELSE 0 END) AS draft,
                    SUM(CASE WHEN status = 'Pending Approval'   THEN 1 ELSE 0 END) AS pending_approval,
                    SUM(CASE WHEN status = 'Approved'           THEN 1 ELSE 0 END) AS approved,
                    SUM(CASE WHEN status = 'Ordered'            THEN 1 ELSE 0 END) AS ordered,
                    SUM(CASE WHEN status = 'Partially Received' THEN 1 ELSE 0 END) AS partially_received,
                    SUM(CASE WHEN status = 'Received'           THEN 1 ELSE 0 END) AS received,
                    SUM(CASE WHEN status = 'Cancelled'          THEN 1 ELSE 0 END) AS cancelled,
                    SUM(CASE WHEN status = 'Rejected'           THEN 1 ELSE 0 END) AS rejected,
                    SUM(archived)      AS archived,
                    SUM(total_amount)  AS total_value,
                    SUM(CASE WHEN status IN (?, ?, ?) THEN total_amount ELSE 0 END) AS pending_value
                FROM purchase_orders
                """,
                _PENDING_STATUSES,
            ).fetchone()
        stats = {k: (row[k] or 0) for k in row.keys()}
        stats["total_value"] = round(stats["total_value"], 2)
        stats["pending_value"] = round(stats["pending_value"], 2)
        return stats

    def get_audit_log(self, po_id: str) -> list[AuditEntry]:
        """Return all audit entries for one PO, oldest first."""
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT id, po_id, timestamp, action, actor, detail
                   FROM audit_log WHERE po_id = ?
                   ORDER BY timestamp ASC, id ASC""",
                (po_id,),
            ).fetchall()
        return [self._audit_from_row(r) for r in rows]

    def get_recent_audit_log(self, limit: int = 200, offset: int = 0) -> list[AuditEntry]:
        """Return recent audit entries across all POs, newest first."""
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT id, po_id, timestamp, action, actor, detail
                   FROM audit_log
                   ORDER BY timestamp DESC, id DESC
                   LIMIT ? OFFSET ?""",
                (limit, offset),
            ).fetchall()
        return [self._audit_from_row(r) for r in rows]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _next_id(self, conn: sqlite3.Connection) -> str:
        highest = 0
        for row in conn.execute("SELECT id FROM purchase_orders"):
            digits = re.sub(r"\D", "", row["id"])
            if digits:
                highest = max(highest, int(digits))
        return f"{self.id_prefix}{highest + 1:0{self.id_width}d}"

    @staticmethod
    def _row_params(po: PurchaseOrder) -> dict:
        return {
            "id":                     po.id,
            "status":                 po.status,
            "shipping_status":        po.shipping_status,
            "archived":               1 if po.archived else 0,
            "archived_at":            po.archived_at,
            "supplier_id":            po.supplier_id,
            "supplier_name":          po.supplier_name,
            "bill_number":            po.bill_number,
            "po_date":                po.po_date,
            "expected_delivery_date": po.expected_delivery_date,
            "total_amount":           po.total_amount,
            "total_paid":             po.total_paid,
            "po_balance":             po.po_balance,
            "data":                   po.model_dump_json(),
            "revision":               po.revision,
        }

    @staticmethod
    def _from_row(row: sqlite3.Row) -> PurchaseOrder:
        po = PurchaseOrder.model_validate_json(row["data"])
        # The column is authoritative for the revision
        po.revision = row["revision"]
        return po

    @staticmethod
    def _audit_from_row(row: sqlite3.Row) -> AuditEntry:
        return AuditEntry(
            id=row["id"],
            po_id=row["po_id"],
            timestamp=row["timestamp"],
            action=row["action"],
            actor=row["actor"],
            detail=json.loads(row["detail"]) if row["detail"] else None,
        )
