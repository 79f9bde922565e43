"""
Supplier directory.

Read-only lookup of supplier identity and location, used to stamp a
supplier snapshot onto purchase orders.  Two lookups are offered:
  1. get(id)    exact id lookup, raises NotFound
  2. find(name) exact name/alias match, then fuzzy name match (rapidfuzz)
"""
import csv
import logging
from pathlib import Path
from typing import Optional

from rapidfuzz import fuzz

from models.supplier import Supplier
from .errors import NotFound

logger = logging.getLogger(__name__)

# Minimum fuzzy score (0-100) to accept a name match
FUZZY_THRESHOLD = 75


class SupplierDirectory:
    """
    Loads the supplier master list from CSV.

    CSV format (suppliers.csv):
      id, name, country, city, status, contact, email, phone, aliases
      aliases: pipe-separated alternative names, e.g. "TechSource|Tech Source LLC"
    """

    def __init__(self, suppliers_csv: str | Path, fuzzy_threshold: int = FUZZY_THRESHOLD):
        self.suppliers: dict[str, Supplier] = {}
        self.fuzzy_threshold = fuzzy_threshold
        self._load(Path(suppliers_csv))

    def _load(self, path: Path) -> None:
        if not path.exists():
            logger.warning("Suppliers CSV not found: %s; supplier directory is empty", path)
            return
        with open(path, newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            for row in reader:
                aliases_raw = row.get("aliases") or ""
                aliases = [a.strip() for a in aliases_raw.split("|") if a.strip()]
                status = (row.get("status") or "Active").strip().title()
                supplier = Supplier(
                    id=row["id"].strip(),
                    name=row["name"].strip(),
                    country=(row.get("country") or "").strip(),
                    city=(row.get("city") or "").strip(),
                    status="Inactive" if status == "Inactive" else "Active",
                    contact=(row.get("contact") or "").strip() or None,
                    email=(row.get("email") or "").strip() or None,
                    phone=(row.get("phone") or "").strip() or None,
                    aliases=aliases,
                )
                self.suppliers[supplier.id] = supplier
        logger.info("Loaded %d suppliers from %s", len(self.suppliers), path.name)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, supplier_id: str) -> Supplier:
        supplier = self.suppliers.get(supplier_id.strip())
        if supplier is None:
            raise NotFound("Supplier", supplier_id)
        return supplier

    def find(self, name: str) -> Optional[Supplier]:
        """
        Return the supplier best matching *name*, or None.

        Exact (case-insensitive) name or alias wins; otherwise the highest
        token_sort_ratio at or above the fuzzy threshold.
        """
        wanted = name.strip().lower()
        if not wanted or not self.suppliers:
            return None

        for s in self.suppliers.values():
            if any(n.lower() == wanted for n in s.all_names):
                return s

        best: Optional[Supplier] = None
        best_score = 0.0
        for s in self.suppliers.values():
            for candidate in s.all_names:
                score = fuzz.token_sort_ratio(wanted, candidate.lower())
                if score > best_score:
                    best, best_score = s, score

        if best is not None and best_score >= self.fuzzy_threshold:
            logger.info("Supplier matched by fuzzy name: %r -> %s (score %.0f)", name, best.name, best_score)
            return best

        logger.debug("No supplier match for %r (best score %.0f)", name, best_score)
        return None
