"""
EXTINSTALL - Extension Installer

Registry and on-demand install/activate workflow for optional plugins and
themes inside a host application.
"""

from extinstall.core.models import (
    EndpointId,
    ExtensionDescriptor,
    ExtensionKind,
    InstallOutcome,
    InstallRequest,
    InstallResult,
)
from extinstall.core.registry import Registry
from extinstall.config import Settings, load_settings, load_registrations
from extinstall.events import EventBus
from extinstall.host import FilesystemHost, Host
from extinstall.installer import Installer
from extinstall.status import StatusOracle

__all__ = [
    # Models
    "EndpointId",
    "ExtensionDescriptor",
    "ExtensionKind",
    "InstallOutcome",
    "InstallRequest",
    "InstallResult",
    # Core
    "Registry",
    "EventBus",
    "StatusOracle",
    "Installer",
    "Host",
    "FilesystemHost",
    # Config
    "Settings",
    "load_settings",
    "load_registrations",
]
