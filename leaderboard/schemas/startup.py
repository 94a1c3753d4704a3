"""
Startup registration and leaderboard schemas

Registration input is sanitized and validated here so the services only
ever see clean values.
"""

import re
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MAX_NAME_LENGTH = 100
MAX_WEBSITE_URL_LENGTH = 500
MAX_FOUNDER_USERNAME_LENGTH = 50
MIN_PROJECT_ID_LENGTH = 4
MAX_PROJECT_ID_LENGTH = 100
MAX_APP_STORE_ID_LENGTH = 50
MIN_API_KEY_LENGTH = 10
MAX_API_KEY_LENGTH = 500

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_HTML_TAGS = re.compile(r"<[^>]*>")
_JS_PROTOCOL = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")

_PRIVATE_HOST_PREFIXES = ("127.", "192.168.", "10.", "172.16.")
_PRIVATE_HOSTS = {"localhost", "0.0.0.0", "::1"}


def sanitize_string(value: str) -> str:
    """Strip control characters, markup and script patterns; collapse whitespace"""
    value = value.replace("\0", "")
    value = _CONTROL_CHARS.sub("", value)
    value = _HTML_TAGS.sub("", value)
    value = _JS_PROTOCOL.sub("", value)
    value = _EVENT_HANDLER.sub("", value)
    return _WHITESPACE.sub(" ", value).strip()


class SortBy(str, Enum):
    REVENUE = "revenue"
    MRR = "mrr"


class StartupCreate(BaseModel):
    """Registration request for a new leaderboard entry"""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(...)
    website_url: Optional[str] = Field(default=None, alias="websiteUrl")
    app_store_id: Optional[str] = Field(default=None, alias="appStoreId")
    founder_username: Optional[str] = Field(default=None, alias="founderUsername")
    revenuecat_api_key: str = Field(..., alias="revenuecatApiKey")
    project_id: str = Field(..., alias="projectId")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = sanitize_string(v)
        if not v:
            raise ValueError("Name is required")
        if len(v) > MAX_NAME_LENGTH:
            raise ValueError(f"Name must be {MAX_NAME_LENGTH} characters or less")
        if re.search(r"[<>{}\[\]\\]", v):
            raise ValueError("Name contains invalid characters")
        return v

    @field_validator("project_id")
    @classmethod
    def validate_project_id(cls, v: str) -> str:
        v = sanitize_string(v)
        if len(v) < MIN_PROJECT_ID_LENGTH:
            raise ValueError(f"Project ID must be at least {MIN_PROJECT_ID_LENGTH} characters")
        if len(v) > MAX_PROJECT_ID_LENGTH:
            raise ValueError(f"Project ID must be {MAX_PROJECT_ID_LENGTH} characters or less")
        if not re.fullmatch(r"[a-zA-Z0-9_-]+", v):
            raise ValueError("Project ID contains invalid characters")
        return v

    @field_validator("revenuecat_api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        v = v.strip()
        if len(v) < MIN_API_KEY_LENGTH:
            raise ValueError("API key is too short")
        if len(v) > MAX_API_KEY_LENGTH:
            raise ValueError("API key is too long")
        if not v.startswith("sk_"):
            raise ValueError("Invalid API key format (must start with sk_)")
        if not re.fullmatch(r"[a-zA-Z0-9_]+", v):
            raise ValueError("API key contains invalid characters")
        return v

    @field_validator("website_url")
    @classmethod
    def validate_website_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = sanitize_string(v)
        if not v:
            return None
        if len(v) > MAX_WEBSITE_URL_LENGTH:
            raise ValueError(f"Website: URL must be {MAX_WEBSITE_URL_LENGTH} characters or less")

        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https"):
            raise ValueError("Website: URL must use http or https protocol")
        hostname = (parsed.hostname or "").lower()
        if not hostname:
            raise ValueError("Website: Invalid URL format")
        if hostname in _PRIVATE_HOSTS or hostname.startswith(_PRIVATE_HOST_PREFIXES):
            raise ValueError("Website: URL cannot point to private/local addresses")
        return v

    @field_validator("app_store_id")
    @classmethod
    def validate_app_store_id(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = sanitize_string(v)
        if not v:
            return None
        if len(v) > MAX_APP_STORE_ID_LENGTH:
            raise ValueError(f"App Store ID: must be {MAX_APP_STORE_ID_LENGTH} characters or less")
        if not v.isdigit():
            raise ValueError("App Store ID: must contain only numbers")
        return v

    @field_validator("founder_username")
    @classmethod
    def validate_founder_username(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = sanitize_string(v)
        if v.startswith("@"):
            v = v[1:]
        if not v:
            return None
        if len(v) > MAX_FOUNDER_USERNAME_LENGTH:
            raise ValueError(
                f"Twitter username: must be {MAX_FOUNDER_USERNAME_LENGTH} characters or less"
            )
        if not re.fullmatch(r"[a-zA-Z0-9_]+", v):
            raise ValueError("Twitter username: can only contain letters, numbers, and underscores")
        return v

    @model_validator(mode="after")
    def require_icon_source(self) -> "StartupCreate":
        # The App Store id or the website is needed to show an icon
        if not self.app_store_id and not self.website_url:
            raise ValueError(
                "Either App Store ID or Website is required (at least one to fetch the app icon)"
            )
        return self


class MetricsResponse(BaseModel):
    """Revenue figures returned to clients"""
    mrr: float = Field(default=0)
    revenue: float = Field(default=0)


class StartupSummary(BaseModel):
    id: int = Field(...)
    name: str = Field(...)


class RegistrationResponse(BaseModel):
    """Body of a successful registration"""
    success: bool = Field(default=True)
    startup: StartupSummary = Field(...)
    metrics: MetricsResponse = Field(...)


class LeaderboardEntry(BaseModel):
    """One public leaderboard row; never carries credentials"""
    id: int = Field(...)
    name: str = Field(...)
    website_url: Optional[str] = Field(default=None)
    founder_username: Optional[str] = Field(default=None)
    app_store_id: Optional[str] = Field(default=None)
    total_revenue: Decimal = Field(default=Decimal("0"))
    mrr: Decimal = Field(default=Decimal("0"))
    last_updated: Optional[datetime] = Field(default=None)
    created_at: Optional[datetime] = Field(default=None)
