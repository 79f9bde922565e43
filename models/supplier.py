from pydantic import BaseModel
from typing import Optional, List, Literal


class Supplier(BaseModel):
    """
    A supplier from the supplier directory.
    aliases is a list of alternative names / trading names used for fuzzy lookup.
    """
    id: str                             # e.g. "SUP-001"
    name: str
    country: str = ""
    city: str = ""
    status: Literal["Active", "Inactive"] = "Active"
    contact: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    aliases: List[str] = []

    @property
    def is_active(self) -> bool:
        return self.status == "Active"

    @property
    def all_names(self) -> List[str]:
        """Return the canonical name plus all aliases for matching."""
        return [self.name] + self.aliases
