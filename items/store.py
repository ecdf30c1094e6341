"""
items/store.py -- SQLAlchemy Core persistence for item reports.

Pattern: Repository + Data Mapper (same as auth/store.py).
Route code never touches SQL directly.

The store knows nothing about who is asking. Ownership is enforced by the
Request Gate before any write method is called.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, select
from sqlalchemy.engine import Engine

from auth.store import make_engine
from core.config import get_settings
from items.models import Item

metadata = MetaData()

_items = Table(
    "items",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("reporter_cnic", String(13), nullable=False, index=True),
    Column("type", String(10), nullable=False),
    Column("title", String(200), nullable=False),
    Column("description", Text, nullable=False),
    Column("category", String(30), nullable=False),
    Column("location", String(200), nullable=False),
    Column("contact_number", String(20), nullable=False),
    Column("status", String(10), nullable=False, server_default="open"),
    Column("image_url", Text),
    Column("reported_at", String(32), nullable=False),
)

# Columns an owner may change through PUT /api/items/{id}.
_EDITABLE = frozenset({"type", "title", "description", "category", "location", "contact_number", "image_url"})


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ItemStore:
    def __init__(self, db_url: Optional[str] = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        metadata.create_all(self.engine)

    def create_item(self, item: Item) -> Item:
        """Insert a new report (status always starts as open) and return it."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _items.insert().values(
                    user_id=item.user_id,
                    reporter_cnic=item.reporter_cnic,
                    type=item.type,
                    title=item.title,
                    description=item.description,
                    category=item.category,
                    location=item.location,
                    contact_number=item.contact_number,
                    status="open",
                    image_url=item.image_url,
                    reported_at=_now_iso(),
                )
            )
            conn.commit()
            item_id = result.inserted_primary_key[0]
        return self.get_item(item_id)

    def get_item(self, item_id: int) -> Optional[Item]:
        with self.engine.connect() as conn:
            row = conn.execute(_items.select().where(_items.c.id == item_id)).fetchone()
        return _row_to_item(row) if row is not None else None

    def list_items(self, type: Optional[str] = None, category: Optional[str] = None) -> list[Item]:
        """Return reports newest first, optionally filtered by type and category."""
        query = select(_items)
        if type:
            query = query.where(_items.c.type == type)
        if category:
            query = query.where(_items.c.category == category)
        query = query.order_by(_items.c.reported_at.desc(), _items.c.id.desc())
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_item(r) for r in rows]

    def update_item(self, item_id: int, **fields) -> Optional[Item]:
        """Update editable fields. Returns the fresh record, or None if absent.

        Unknown field names raise ValueError rather than being ignored.
        """
        unknown = set(fields) - _EDITABLE
        if unknown:
            raise ValueError(f"Unknown item fields: {unknown!r}")
        if fields:
            with self.engine.connect() as conn:
                conn.execute(_items.update().where(_items.c.id == item_id).values(**fields))
                conn.commit()
        return self.get_item(item_id)

    def update_status(self, item_id: int, status: str) -> Optional[Item]:
        with self.engine.connect() as conn:
            result = conn.execute(_items.update().where(_items.c.id == item_id).values(status=status))
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_item(item_id)

    def delete_item(self, item_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_items.delete().where(_items.c.id == item_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


def _row_to_item(row) -> Item:
    return Item(
        id=row.id,
        user_id=row.user_id,
        reporter_cnic=row.reporter_cnic,
        type=row.type,
        title=row.title,
        description=row.description,
        category=row.category,
        location=row.location,
        contact_number=row.contact_number,
        status=row.status,
        image_url=row.image_url,
        reported_at=row.reported_at,
    )
