"""
Status Oracle - Installed / Active Queries

Registered slugs are answered from their descriptor (locator, activation
signal). Unregistered slugs fall through to the host's live state, matched
by directory name, so extensions that are present but unknown to the
registry still report correctly.
"""

from extinstall.core.models import ExtensionDescriptor, ExtensionKind
from extinstall.core.registry import Registry
from extinstall.host import Host


class StatusOracle:
    def __init__(self, registry: Registry, host: Host):
        self.registry = registry
        self.host = host

    def is_installed(self, slug: str) -> bool:
        return self.is_plugin_installed(slug) or self.is_theme_installed(slug)

    def is_plugin_installed(self, slug: str) -> bool:
        descriptor = self.registry.lookup(ExtensionKind.PLUGIN, slug)
        if descriptor is not None:
            return self.descriptor_installed(descriptor)
        return self.host.is_plugin_installed(slug)

    def is_theme_installed(self, slug: str) -> bool:
        descriptor = self.registry.lookup(ExtensionKind.THEME, slug)
        if descriptor is not None:
            return self.descriptor_installed(descriptor)
        return self.host.is_theme_installed(slug)

    def is_active(self, slug: str) -> bool:
        descriptor = self.registry.find(slug)
        if descriptor is not None:
            return self.descriptor_active(descriptor)
        return self.host.is_plugin_active(slug) or self.host.active_theme() == slug

    def descriptor_installed(self, descriptor: ExtensionDescriptor) -> bool:
        if descriptor.kind is ExtensionKind.PLUGIN:
            return self.host.is_plugin_installed(descriptor.locator)
        return self.host.is_theme_installed(descriptor.locator)

    def descriptor_active(self, descriptor: ExtensionDescriptor) -> bool:
        if descriptor.activation_signal:
            return self.host.did_signal(descriptor.activation_signal)
        if descriptor.kind is ExtensionKind.PLUGIN:
            return self.host.is_plugin_active(descriptor.locator)
        return self.host.active_theme() == descriptor.locator
