"""
Central configuration for the purchasing service.

All paths, limits, and workflow switches are defined here.
Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. Environment variables
  2. config/procurement_settings.json  (admin-editable, persisted)
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

# Default data locations (relative to project root)
DEFAULT_DATA_DIR       = PROJECT_ROOT / "data"
DEFAULT_OUTPUT_DIR     = PROJECT_ROOT / "output"
DEFAULT_DB_PATH        = DEFAULT_OUTPUT_DIR / "procurement.db"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    # --- Storage ---
    db_path: Path = field(
        default_factory=lambda: Path(os.getenv("DB_PATH", str(DEFAULT_DB_PATH)))
    )

    # --- Collaborator seed data ---
    # The supplier directory is read from suppliers.csv on every start.
    # inventory.csv only seeds the ledger table the first time it is empty.
    suppliers_csv: Path = field(
        default_factory=lambda: Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR))) / "suppliers.csv"
    )
    inventory_csv: Path = field(
        default_factory=lambda: Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR))) / "inventory.csv"
    )

    # --- Purchase order numbering ---
    po_id_prefix: str = "PO-"
    po_id_width:  int = 3           # PO-001, PO-002, ...

    # --- Workflow rules ---
    require_future_delivery: bool = field(
        default_factory=lambda: _env_flag("REQUIRE_FUTURE_DELIVERY", True)
    )
    # When on, update() rejects calls that do not carry expected_revision.
    # Stale revisions are always rejected when they are supplied.
    require_revision: bool = field(
        default_factory=lambda: _env_flag("REQUIRE_REVISION", False)
    )

    # --- Batch operations ---
    batch_max_workers: int = field(
        default_factory=lambda: int(os.getenv("BATCH_MAX_WORKERS", "4"))
    )
    # 1 runs a batch sequentially in the caller's thread.

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from procurement_settings.json if present."""
        config_dir = Path(os.getenv("CONFIG_DIR", str(PROJECT_ROOT / "config")))
        settings_file = config_dir / "procurement_settings.json"
        if not settings_file.exists():
            return
        _type_map: dict[str, type] = {
            "require_future_delivery": bool,
            "require_revision":        bool,
            "batch_max_workers":       int,
            "po_id_prefix":            str,
            "po_id_width":             int,
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                if key in _type_map and hasattr(self, key):
                    setattr(self, key, _type_map[key](val))
        except Exception as exc:
            logger.warning("Failed to load procurement_settings.json: %s", exc)

    def ensure_output_dir(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
