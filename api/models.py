"""
API request and response models for the Lost & Found REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
items/models.py, which own the internal domain representation. Route handlers
map between the two.

Credential fields on login/registration bodies are deliberately loose here
(length caps only). Format rules live in auth/policy.py so that a malformed
CNIC on login surfaces as NotAuthorized, exactly like an unlisted one, rather
than as a 422 that would reveal which check failed.
"""

from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from auth.models import AuthorizedCnic, User
from auth.policy import CNIC_PATTERN
from items.models import Item

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ItemTypeEnum(str, Enum):
    lost = "lost"
    found = "found"


class CategoryEnum(str, Enum):
    electronics = "electronics"
    clothing = "clothing"
    accessories = "accessories"
    documents = "documents"
    other = "other"


class ItemStatusEnum(str, Enum):
    open = "open"
    closed = "closed"


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------

_Identifier32 = Annotated[str, StringConstraints(strip_whitespace=True, max_length=32)]
_Identifier100 = Annotated[str, StringConstraints(strip_whitespace=True, max_length=100)]


class LoginRequest(BaseModel):
    """Body for POST /api/login.

    AUTH_MODE=cnic reads only cnic; AUTH_MODE=password reads username and
    password. Fields for the other mode are ignored.

    Identifiers are stripped of surrounding whitespace. Passwords are taken
    exactly as sent.
    """

    cnic: Optional[_Identifier32] = None
    username: Optional[_Identifier100] = None
    password: Optional[str] = Field(default=None, max_length=255)


class RegisterRequest(BaseModel):
    """Body for POST /api/register and POST /api/admin/register."""

    username: _Identifier100
    password: str = Field(max_length=255)
    cnic: _Identifier32


class AuthorizeCnicRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    cnic: str = Field(pattern=CNIC_PATTERN, description="13-digit CNIC, digits only.")


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a User. The password hash is never serialized."""

    id: int
    cnic: str
    username: Optional[str] = None
    is_admin: bool

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, cnic=user.cnic, username=user.username, is_admin=user.is_admin)


class AuthorizedCnicResponse(BaseModel):
    cnic: str
    added_by: int
    added_at: str

    @classmethod
    def from_entry(cls, entry: AuthorizedCnic) -> "AuthorizedCnicResponse":
        return cls(cnic=entry.cnic, added_by=entry.added_by, added_at=entry.added_at or "")


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


class ItemCreate(BaseModel):
    """Body for POST /api/items and PUT /api/items/{id}."""

    model_config = ConfigDict(str_strip_whitespace=True)

    type: ItemTypeEnum
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=5000)
    category: CategoryEnum
    location: str = Field(min_length=1, max_length=200)
    contact_number: str = Field(min_length=10, max_length=15, pattern=r"^\+?[\d\s-]+$")
    image_url: Optional[str] = Field(default=None, max_length=2048)


class ItemStatusUpdate(BaseModel):
    status: ItemStatusEnum


class ItemResponse(BaseModel):
    id: int
    user_id: int
    reporter_cnic: str
    type: str
    title: str
    description: str
    category: str
    location: str
    contact_number: str
    status: str
    image_url: Optional[str] = None
    reported_at: str

    @classmethod
    def from_item(cls, item: Item) -> "ItemResponse":
        return cls(
            id=item.id,
            user_id=item.user_id,
            reporter_cnic=item.reporter_cnic,
            type=item.type,
            title=item.title,
            description=item.description,
            category=item.category,
            location=item.location,
            contact_number=item.contact_number,
            status=item.status,
            image_url=item.image_url,
            reported_at=item.reported_at,
        )


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
