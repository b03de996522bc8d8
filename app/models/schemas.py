"""
Pydantic models for request bodies, responses and the per-request auth context.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Analytics source payloads
# ---------------------------------------------------------------------------


class AnalyticsPoint(BaseModel):
    # Upstream data is not always clean. Unreadable dates are skipped when
    # bucketing; unreadable totals count as 0.
    date: Any = None
    total: Any = None


class AnalyticsMetric(BaseModel):
    label: str = ""
    data: list[AnalyticsPoint] = Field(default_factory=list)

    @field_validator("label", mode="before")
    @classmethod
    def label_as_text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("data", mode="before")
    @classmethod
    def drop_malformed_points(cls, v: Any) -> list:
        if not isinstance(v, list):
            return []
        return [point for point in v if isinstance(point, (dict, AnalyticsPoint))]


# ---------------------------------------------------------------------------
# Dashboard responses
# ---------------------------------------------------------------------------


class DashboardSummary(BaseModel):
    post_count: int
    channel_count: int
    impressions_total: int | float
    traffics_total: int | float


class PostsTrendPoint(BaseModel):
    date: str
    platform: str
    count: int


class TrafficShare(BaseModel):
    platform: str
    value: int | float
    percentage: float
    # Reserved for period-over-period change. No baseline exists yet.
    delta: int | float = 0


class ImpressionsPoint(BaseModel):
    date: str
    impressions: int | float


# ---------------------------------------------------------------------------
# Auth context
# ---------------------------------------------------------------------------


class AuthUser(BaseModel):
    """The user attached to a request. Has no password field on purpose."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True, extra="ignore")

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    activated: bool = False
    is_super_admin: bool = Field(default=False, alias="isSuperAdmin")


class OrganizationMember(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    role: str
    disabled: bool = False


class AuthOrganization(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    api_key: Optional[str] = None
    users: list[OrganizationMember] = Field(default_factory=list)


class AuthContext(BaseModel):
    user: AuthUser
    organization: AuthOrganization
    impersonating: bool = False


# ---------------------------------------------------------------------------
# Internal provisioning
# ---------------------------------------------------------------------------


class CreateInternalUserRequest(BaseModel):
    id: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    name: Optional[str] = None


class InternalUserCreated(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    user_id: str = Field(..., alias="userId")


# ---------------------------------------------------------------------------
# SSO proxy
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    vcode: str
    username: Optional[str] = None


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None


class SsoAccessData(BaseModel):
    access_token: str
    expires_at: int
    token_type: str


class SsoUser(BaseModel):
    id: str
    email: str
    username: Optional[str] = None


class SsoTokenResponse(BaseModel):
    success: bool
    access_data: SsoAccessData
    user: SsoUser
    message: Optional[str] = None


class LogoutResponse(BaseModel):
    success: bool = True
