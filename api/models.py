"""
API request and response models for AuthGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are kept separate from the dataclasses in auth/models.py and
catalog/models.py, which own the internal domain representation. Route
handlers map between the two through the from_* factory methods below.

Wire format: JSON keys are camelCase (refreshToken, currentPassword,
isActive, ...). Models also accept snake_case input so Python clients and
tests can use field names directly.

Every response carries a "success" flag: True on the models below, False on
ErrorResponse. Clients branch on that one field instead of sniffing for
optional keys.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import User
from auth.tokens import TokenClaims, TokenPair
from catalog.models import Product

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"

# bcrypt only reads 72 bytes; 128 characters leaves room for multi-byte
# passphrases without accepting megabyte bodies.
PASSWORD_MAX_LENGTH = 128


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class _ApiResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    user = "user"
    admin = "admin"


# ---------------------------------------------------------------------------
# Auth request models
# ---------------------------------------------------------------------------


class RegisterRequest(_ApiModel):
    """Request body for POST /api/auth/register.

    Password strength is not checked here -- AuthService reports every
    unmet rule at once, which a field constraint cannot do.
    """

    name: str = Field(min_length=1, max_length=100)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=254)
    password: str = Field(min_length=1, max_length=PASSWORD_MAX_LENGTH)
    age: int = Field(gt=0, le=150)
    city: str = Field(min_length=1, max_length=100)


class LoginRequest(_ApiModel):
    email: str = Field(min_length=1, max_length=254)
    password: str = Field(min_length=1, max_length=PASSWORD_MAX_LENGTH)


class RefreshRequest(_ApiModel):
    refresh_token: str = Field(min_length=1)


class LogoutRequest(_ApiModel):
    """Optional body for POST /api/auth/logout. Omit refreshToken to log out everywhere."""

    refresh_token: Optional[str] = None


class ProfileUpdate(_ApiModel):
    """Request body for PUT /api/auth/profile.

    password and role are declared only so the service can reject them with
    a specific message instead of silently dropping them.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=254)
    age: Optional[int] = Field(default=None, gt=0, le=150)
    city: Optional[str] = Field(default=None, min_length=1, max_length=100)
    password: Optional[str] = None
    role: Optional[str] = None


class ChangePasswordRequest(_ApiModel):
    current_password: str = Field(min_length=1, max_length=PASSWORD_MAX_LENGTH)
    new_password: str = Field(min_length=1, max_length=PASSWORD_MAX_LENGTH)


# ---------------------------------------------------------------------------
# User management request models
# ---------------------------------------------------------------------------


class UserCreate(RegisterRequest):
    """Request body for POST /api/users (admin only). Admins may pick the role."""

    role: RoleEnum = RoleEnum.user
    is_active: bool = True


class UserUpdate(_ApiModel):
    """Request body for PUT /api/users/{user_id}. role and isActive are admin-only."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=254)
    age: Optional[int] = Field(default=None, gt=0, le=150)
    city: Optional[str] = Field(default=None, min_length=1, max_length=100)
    password: Optional[str] = Field(default=None, min_length=1, max_length=PASSWORD_MAX_LENGTH)
    role: Optional[RoleEnum] = None
    is_active: Optional[bool] = None


# ---------------------------------------------------------------------------
# Product request models
# ---------------------------------------------------------------------------


class ProductCreate(_ApiModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=2000)
    price: float = Field(gt=0)
    category: str = Field(min_length=1, max_length=100)
    in_stock: bool = True


class ProductUpdate(_ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    price: Optional[float] = Field(default=None, gt=0)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    in_stock: Optional[bool] = None


# ---------------------------------------------------------------------------
# User response models
# ---------------------------------------------------------------------------


class UserOut(_ApiResponse):
    """Full user view -- the user themself or an admin. Never includes credentials."""

    id: str
    name: str
    email: str
    age: int
    city: str
    role: RoleEnum
    is_active: bool
    last_login: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(**user.to_dict())


class PublicUserOut(_ApiResponse):
    """Reduced user view for listings and for other users."""

    id: str
    name: str
    email: str
    age: int
    city: str
    role: RoleEnum
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "PublicUserOut":
        return cls(**user.to_public_dict())


class TokensOut(_ApiResponse):
    access_token: str
    refresh_token: str
    token_type: str
    expires_in: int

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokensOut":
        return cls(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            token_type=pair.token_type,
            expires_in=pair.expires_in,
        )


class AuthResponse(_ApiResponse):
    """Response for register and login: the user plus a fresh token pair."""

    success: bool = True
    message: str
    user: UserOut
    tokens: TokensOut


class TokensResponse(_ApiResponse):
    success: bool = True
    message: str
    tokens: TokensOut


class MessageResponse(_ApiResponse):
    success: bool = True
    message: str


class UserResponse(_ApiResponse):
    success: bool = True
    message: Optional[str] = None
    user: UserOut


class UserListResponse(_ApiResponse):
    success: bool = True
    count: int
    users: list[PublicUserOut]


class UserStats(_ApiResponse):
    total_users: int
    active_users: int
    admin_users: int
    regular_users: int
    average_age: float
    cities: int
    users_by_city: dict[str, int]
    recent_logins: int


class UserStatsResponse(_ApiResponse):
    success: bool = True
    stats: UserStats


class TokenInfo(_ApiResponse):
    user_id: str
    email: str
    role: RoleEnum
    type: str
    iat: int
    exp: int

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> "TokenInfo":
        return cls(**claims.to_dict())


class ProtectedResponse(_ApiResponse):
    success: bool = True
    message: str
    user: UserOut
    token_info: TokenInfo


# ---------------------------------------------------------------------------
# Product response models
# ---------------------------------------------------------------------------


class ProductOut(_ApiResponse):
    id: str
    name: str
    description: str
    price: float
    category: str
    in_stock: bool
    created_by: str
    created_at: str
    updated_at: str

    @classmethod
    def from_product(cls, product: Product) -> "ProductOut":
        return cls(**product.to_dict())


class ProductResponse(_ApiResponse):
    success: bool = True
    message: Optional[str] = None
    product: ProductOut
    can_modify: Optional[bool] = None


class ProductListResponse(_ApiResponse):
    """Response for GET /api/products. authenticated reports whether optional auth found a caller."""

    success: bool = True
    count: int
    authenticated: bool = False
    products: list[ProductOut]


class CategoryListResponse(_ApiResponse):
    success: bool = True
    count: int
    categories: list[str]


class CategoryProductsResponse(_ApiResponse):
    success: bool = True
    category: str
    count: int
    products: list[ProductOut]


class CategoryCount(_ApiResponse):
    category: str
    count: int


class ProductStats(_ApiResponse):
    total_products: int
    available_products: int
    my_products: int
    my_available_products: int
    categories_count: int
    categories: list[str]
    top_categories: list[CategoryCount]


class ProductStatsResponse(_ApiResponse):
    success: bool = True
    stats: ProductStats


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorResponse(_ApiResponse):
    """Error envelope returned on every 4xx/5xx response.

    code is machine-readable (e.g. "token_expired" vs "unauthorized");
    errors lists field-level or rule-level messages when there are several.
    """

    success: bool = False
    message: str
    code: str
    errors: Optional[list[str]] = None
    detail: Optional[str] = None


class HealthResponse(_ApiResponse):
    status: str = "ok"
    version: str
    timestamp: str
    uptime_seconds: float
