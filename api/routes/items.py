"""
api/routes/items.py -- Lost/found item report routes.

Routes:
  GET    /api/items               -- public; optional ?type=&category= filters
  GET    /api/items/{id}          -- public
  POST   /api/items               -- requires session; reporter = caller
  PUT    /api/items/{id}          -- requires session + ownership
  PATCH  /api/items/{id}/status   -- requires session + ownership
  DELETE /api/items/{id}          -- requires session + ownership

Ownership: the caller's CNIC must equal the report's reporter_cnic. The gate
runs after authentication (the route depends on require_authenticated) and
after the record is loaded, so a missing record is 404, not 403.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from api.models import CategoryEnum, ItemCreate, ItemResponse, ItemStatusUpdate, ItemTypeEnum
from auth.dependencies import require_authenticated, require_ownership
from auth.models import User
from core.errors import NotFound
from items.models import Item
from items.store import ItemStore

router = APIRouter(prefix="/items")


def _load_owned(store: ItemStore, item_id: int, user: User) -> Item:
    item = store.get_item(item_id)
    if item is None:
        raise NotFound("Item not found.")
    require_ownership(user, item.reporter_cnic)
    return item


@router.get("", response_model=list[ItemResponse])
def list_items(
    request: Request,
    type: Optional[ItemTypeEnum] = None,
    category: Optional[CategoryEnum] = None,
) -> list[ItemResponse]:
    store: ItemStore = request.app.state.item_store
    items = store.list_items(
        type=type.value if type else None,
        category=category.value if category else None,
    )
    return [ItemResponse.from_item(i) for i in items]


@router.get("/{item_id}", response_model=ItemResponse)
def get_item(request: Request, item_id: int) -> ItemResponse:
    store: ItemStore = request.app.state.item_store
    item = store.get_item(item_id)
    if item is None:
        raise NotFound("Item not found.")
    return ItemResponse.from_item(item)


@router.post("", response_model=ItemResponse, status_code=201)
def create_item(
    request: Request,
    body: ItemCreate,
    user: User = Depends(require_authenticated),
) -> ItemResponse:
    store: ItemStore = request.app.state.item_store
    item = store.create_item(
        Item(
            user_id=user.id,
            reporter_cnic=user.cnic,
            type=body.type.value,
            title=body.title,
            description=body.description,
            category=body.category.value,
            location=body.location,
            contact_number=body.contact_number,
            image_url=body.image_url,
        )
    )
    return ItemResponse.from_item(item)


@router.put("/{item_id}", response_model=ItemResponse)
def update_item(
    request: Request,
    item_id: int,
    body: ItemCreate,
    user: User = Depends(require_authenticated),
) -> ItemResponse:
    store: ItemStore = request.app.state.item_store
    _load_owned(store, item_id, user)
    fields = body.model_dump(mode="json")
    updated = store.update_item(item_id, **fields)
    if updated is None:
        raise NotFound("Item not found.")
    return ItemResponse.from_item(updated)


@router.patch("/{item_id}/status", response_model=ItemResponse)
def update_item_status(
    request: Request,
    item_id: int,
    body: ItemStatusUpdate,
    user: User = Depends(require_authenticated),
) -> ItemResponse:
    store: ItemStore = request.app.state.item_store
    _load_owned(store, item_id, user)
    updated = store.update_status(item_id, body.status.value)
    if updated is None:
        raise NotFound("Item not found.")
    return ItemResponse.from_item(updated)


@router.delete("/{item_id}", status_code=204)
def delete_item(
    request: Request,
    item_id: int,
    user: User = Depends(require_authenticated),
) -> Response:
    store: ItemStore = request.app.state.item_store
    _load_owned(store, item_id, user)
    store.delete_item(item_id)
    return Response(status_code=204)
