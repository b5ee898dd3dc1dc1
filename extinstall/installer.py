"""
Installer - Composition Root and Registration API

Wires the registry, status oracle, nonce service, fetcher and dispatcher
together for one host. Construct one per process and pass it to whatever
needs it; there is no global instance.
"""

import logging
from typing import Any, Dict, List, Optional

from extinstall.config import Registrations, Settings
from extinstall.core.models import EndpointId, ExtensionDescriptor, ExtensionKind
from extinstall.core.registry import Registry
from extinstall.dispatch import Dispatcher
from extinstall.download import PackageFetcher
from extinstall.events import EventBus
from extinstall.handler import InstallContext
from extinstall.host import Host
from extinstall.nonce import NonceService
from extinstall.status import StatusOracle

logger = logging.getLogger(__name__)

DEFAULT_NONCE_NAME = "extinstall_resource_install"
NONCE_NAME_FILTER = "nonce_name"


class Installer:
    """
    Register extensions, answer status queries and serve install requests.

    Args:
        host: The host application (extension directories, activation, capabilities)
        settings: Installer settings; defaults are used when omitted
        bus: Event bus for registration notifications and filters
        fetcher: Package fetcher; built from settings when omitted
    """

    def __init__(
        self,
        host: Host,
        settings: Optional[Settings] = None,
        bus: Optional[EventBus] = None,
        fetcher: Optional[PackageFetcher] = None,
    ):
        self.settings = settings or Settings()
        self.host = host
        self.bus = bus or EventBus(prefix=self.settings.hook_prefix)
        self.dispatcher = Dispatcher(prefix=lambda: self.settings.hook_prefix)
        self.registry = Registry(bus=self.bus, binder=self.dispatcher)
        self.oracle = StatusOracle(self.registry, host)
        self.nonces = NonceService(self.settings.nonce_secret, lifetime=self.settings.nonce_lifetime)
        self.fetcher = fetcher or PackageFetcher(
            timeout=self.settings.download_timeout,
            max_bytes=self.settings.max_download_bytes,
        )
        self.dispatcher.context = InstallContext(
            registry=self.registry,
            oracle=self.oracle,
            host=host,
            nonces=self.nonces,
            nonce_name=self.get_nonce_name,
            fetcher=self.fetcher,
            install_timeout=self.settings.install_timeout,
        )

    # --- Registration API ---

    def register_plugin(
        self,
        slug: str,
        name: str,
        basename: str,
        download_url: Optional[str] = None,
        activation_signal: Optional[str] = None,
        activate: bool = True,
    ) -> EndpointId:
        """
        Register a plugin for installation / activation.

        Args:
            slug: Unique plugin slug
            name: Display name
            basename: Entry file relative to the plugins dir, e.g. ``demo/demo.py``
            download_url: Package URL; without one the plugin must already be present
            activation_signal: Signal the plugin fires once active
            activate: Activate right after installing

        Returns:
            The endpoint the admin UI posts install requests to
        """
        return self._register(ExtensionDescriptor(
            kind=ExtensionKind.PLUGIN,
            slug=slug,
            display_name=name,
            locator=basename,
            download_source=download_url,
            activation_signal=activation_signal,
            activate=activate,
        ))

    def register_theme(
        self,
        slug: str,
        name: str,
        stylesheet: str,
        download_url: Optional[str] = None,
        activation_signal: Optional[str] = None,
        activate: bool = True,
    ) -> EndpointId:
        """Register a theme; ``stylesheet`` is the theme's directory name."""
        return self._register(ExtensionDescriptor(
            kind=ExtensionKind.THEME,
            slug=slug,
            display_name=name,
            locator=stylesheet,
            download_source=download_url,
            activation_signal=activation_signal,
            activate=activate,
        ))

    def deregister_plugin(self, slug: str) -> bool:
        return self.registry.deregister(ExtensionKind.PLUGIN, slug)

    def deregister_theme(self, slug: str) -> bool:
        return self.registry.deregister(ExtensionKind.THEME, slug)

    def register_all(self, registrations: Registrations) -> List[EndpointId]:
        """Register everything listed in a registrations file, plugins first."""
        endpoints = []
        for plugin in registrations.plugins:
            endpoints.append(self.register_plugin(
                plugin.slug, plugin.name, plugin.basename,
                plugin.download_url, plugin.activation_signal, plugin.activate,
            ))
        for theme in registrations.themes:
            endpoints.append(self.register_theme(
                theme.slug, theme.name, theme.stylesheet,
                theme.download_url, theme.activation_signal, theme.activate,
            ))
        return endpoints

    def get_plugins(self) -> List[ExtensionDescriptor]:
        return self.registry.list(ExtensionKind.PLUGIN)

    def get_themes(self) -> List[ExtensionDescriptor]:
        return self.registry.list(ExtensionKind.THEME)

    # --- Status ---

    def is_installed(self, slug: str) -> bool:
        return self.oracle.is_installed(slug)

    def is_active(self, slug: str) -> bool:
        return self.oracle.is_active(slug)

    def is_plugin_installed(self, slug: str) -> bool:
        return self.oracle.is_plugin_installed(slug)

    def is_theme_installed(self, slug: str) -> bool:
        return self.oracle.is_theme_installed(slug)

    # --- Requests ---

    def get_nonce_name(self) -> str:
        return self.bus.apply_filters(NONCE_NAME_FILTER, DEFAULT_NONCE_NAME)

    def get_nonce(self, user: str = "") -> str:
        return self.nonces.create(self.get_nonce_name(), user)

    def get_js_object(self) -> str:
        """Name of the JS object the admin UI keeps installer state in."""
        return f"extinstall{self.settings.hook_prefix}"

    def get_endpoint_name(self, kind: ExtensionKind, slug: str) -> Optional[str]:
        endpoint = self.dispatcher.endpoint_for(kind, slug)
        return endpoint.name if endpoint else None

    def handle_request(self, endpoint_name: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.dispatcher.dispatch(endpoint_name, payload)

    def _register(self, descriptor: ExtensionDescriptor) -> EndpointId:
        self.registry.register(descriptor)
        return self.dispatcher.endpoint_for(descriptor.kind, descriptor.slug)
