"""
items/models.py -- Domain dataclass for lost/found item reports.

Pure data container with zero logic. Validation lives in api/models.py
(transport) and ownership checks in auth/dependencies.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Item:
    """A lost or found report.

    reporter_cnic is the owner identity used by require_ownership(): only the
    user whose CNIC matches may edit, re-status or delete the report.

    id is None before the record is written to the database.
    """

    user_id: int
    reporter_cnic: str
    type: str  # "lost" | "found"
    title: str
    description: str
    category: str  # see api.models.CategoryEnum
    location: str
    contact_number: str
    status: str = "open"  # "open" | "closed"
    image_url: Optional[str] = None
    id: Optional[int] = None
    reported_at: str = ""  # ISO 8601, set by store on insert
