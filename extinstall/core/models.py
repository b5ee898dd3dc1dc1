"""
Extension Installer Pydantic Models

Defines the data structures shared by the registry, the dispatcher and the
install handler: extension descriptors, endpoint identifiers, install
requests and install results.
"""

import re
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SLUG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]*$")

UNAUTHORIZED_DETAIL = "not permitted"


class ExtensionKind(str, Enum):
    """The two kinds of extension a host knows how to install."""
    PLUGIN = "plugin"
    THEME = "theme"


# --- Descriptor ---

class ExtensionDescriptor(BaseModel):
    """Registered metadata for one installable extension."""
    kind: ExtensionKind = Field(..., description="Plugin or theme")
    slug: str = Field(..., description="Unique, action-name safe identifier")
    display_name: str = Field(..., description="Human-readable name")
    locator: str = Field(
        ...,
        description="Plugin entry file relative to the plugins dir, or theme directory name",
    )
    download_source: Optional[str] = Field(None, description="http(s) URL of the package archive")
    activation_signal: Optional[str] = Field(
        None, description="Signal the extension fires when it activates itself"
    )
    activate: bool = Field(True, description="Activate after a successful install")

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("slug")
    @classmethod
    def _check_slug(cls, value: str) -> str:
        if not SLUG_PATTERN.match(value):
            raise ValueError(f"Invalid slug '{value}': use lowercase letters, digits, '-' and '_'")
        return value

    @field_validator("locator")
    @classmethod
    def _check_locator(cls, value: str) -> str:
        path = PurePosixPath(value)
        if not value or path.is_absolute() or ".." in path.parts or "\\" in value:
            raise ValueError(f"Locator must be a relative path inside the extension directory: '{value}'")
        return value

    @field_validator("download_source")
    @classmethod
    def _check_download_source(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.startswith(("http://", "https://")):
            raise ValueError(f"Download source must be an http(s) URL: '{value}'")
        return value

    @property
    def directory(self) -> str:
        """Top-level directory the extension occupies once installed."""
        return PurePosixPath(self.locator).parts[0]


# --- Dispatch ---

class EndpointId(BaseModel):
    """Typed key of one install endpoint in the dispatch table."""
    prefix: str = ""
    kind: ExtensionKind
    slug: str

    model_config = ConfigDict(frozen=True)

    @property
    def name(self) -> str:
        """External endpoint name the admin UI posts to."""
        parts = ["extinstall"]
        if self.prefix:
            parts.append(self.prefix)
        parts.append(f"install_{self.kind.value}_{self.slug}")
        return "_".join(parts)


class InstallRequest(BaseModel):
    """An incoming request from the administrative UI."""
    nonce: Optional[str] = Field(None, description="Token issued by the nonce service")
    user: str = Field("", description="Identity of the caller")
    slug: Optional[str] = Field(None, description="Slug the caller believes it is installing")
    request: Literal["install", "activate"] = Field("install", description="Requested operation")

    model_config = ConfigDict(extra="ignore")


# --- Results ---

class InstallOutcome(str, Enum):
    SUCCESS = "success"
    ALREADY_INSTALLED = "already_installed"
    DOWNLOAD_FAILED = "download_failed"
    INSTALL_FAILED = "install_failed"
    ACTIVATION_FAILED = "activation_failed"
    UNAUTHORIZED = "unauthorized"
    UNKNOWN_SLUG = "unknown_slug"


class InstallResult(BaseModel):
    """Outcome of one install or activate request."""
    outcome: InstallOutcome
    slug: str
    detail: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def success(self) -> bool:
        return self.outcome in (InstallOutcome.SUCCESS, InstallOutcome.ALREADY_INSTALLED)

    def to_response(self) -> Dict[str, Any]:
        """Convert to the JSON-like payload returned to the UI."""
        return {
            "success": self.success,
            "outcome": self.outcome.value,
            "detail": self.detail,
            "slug": self.slug,
        }
