"""
Install Handler - The Install / Activate Workflow

One handler is bound to each registered descriptor. A request runs through
strictly ordered stages and the first failing stage decides the result:

    authenticate -> authorize -> resolve -> check installed
        -> download -> install -> activate -> respond

Every failure is returned as an ``InstallResult``; nothing raised inside a
stage escapes ``handle``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from pydantic import ValidationError

from extinstall.core.errors import DownloadError, ExtInstallError, InstallError
from extinstall.core.locks import KeyedLocks
from extinstall.core.models import (
    UNAUTHORIZED_DETAIL,
    ExtensionDescriptor,
    ExtensionKind,
    InstallOutcome,
    InstallRequest,
    InstallResult,
)
from extinstall.core.registry import Registry
from extinstall.download import PackageFetcher
from extinstall.host import CAPABILITIES, Host
from extinstall.installers import INSTALLERS
from extinstall.nonce import NonceService
from extinstall.status import StatusOracle

logger = logging.getLogger(__name__)


@dataclass
class InstallContext:
    """Collaborators shared by every handler of one Installer."""
    registry: Registry
    oracle: StatusOracle
    host: Host
    nonces: NonceService
    nonce_name: Callable[[], str]
    fetcher: PackageFetcher
    install_timeout: float = 60.0
    locks: Optional[KeyedLocks] = None

    def __post_init__(self):
        if self.locks is None:
            self.locks = KeyedLocks()


class InstallHandler:
    def __init__(self, descriptor: ExtensionDescriptor, context: InstallContext):
        self.descriptor = descriptor
        self.context = context

    @property
    def slug(self) -> str:
        return self.descriptor.slug

    @property
    def kind(self) -> ExtensionKind:
        return self.descriptor.kind

    def handle(self, request: Union[InstallRequest, Dict[str, Any]]) -> InstallResult:
        """
        Run one install or activate request to completion.

        Args:
            request: An InstallRequest or the raw payload posted by the UI

        Returns:
            The InstallResult for this attempt
        """
        try:
            if not isinstance(request, InstallRequest):
                request = InstallRequest(**request)
        except (TypeError, ValidationError) as e:
            logger.warning(f"Rejecting malformed request for '{self.slug}': {e}")
            return self._unauthorized()

        try:
            return self._run(request)
        except Exception:
            logger.exception(f"Unexpected failure handling request for '{self.slug}'")
            return self._result(InstallOutcome.INSTALL_FAILED, "Unexpected error during install")

    def _run(self, request: InstallRequest) -> InstallResult:
        # Stage 1: authenticate
        if not self.context.nonces.verify(request.nonce, self.context.nonce_name(), request.user):
            logger.warning(f"Invalid or expired nonce for '{self.slug}' (user '{request.user}')")
            return self._unauthorized()

        # Stage 2: authorize
        capability = CAPABILITIES[(self.kind, request.request)]
        if not self.context.host.user_can(request.user, capability):
            logger.warning(f"User '{request.user}' lacks '{capability}' for '{self.slug}'")
            return self._unauthorized()

        # Stage 3: resolve
        descriptor = self.context.registry.lookup(self.kind, self.slug)
        if descriptor is None or (request.slug is not None and request.slug != self.slug):
            logger.warning(f"Request for '{request.slug or self.slug}' does not match a registered {self.kind.value}")
            return self._result(InstallOutcome.UNKNOWN_SLUG, "Extension is not registered")
        self.descriptor = descriptor

        # Install and activate for one slug never overlap; a waiter re-checks state
        with self.context.locks.hold((self.kind, self.slug)):
            if request.request == "activate":
                return self._activate_only(descriptor)
            return self._install(descriptor)

    def _install(self, descriptor: ExtensionDescriptor) -> InstallResult:
        oracle = self.context.oracle

        # Stage 4: already installed
        if oracle.descriptor_installed(descriptor):
            logger.info(f"{self.kind.value.capitalize()} '{self.slug}' already installed")
            return self._result(InstallOutcome.ALREADY_INSTALLED, f"{descriptor.display_name} is already installed")

        if not descriptor.download_source:
            return self._result(
                InstallOutcome.INSTALL_FAILED,
                f"{descriptor.display_name} is not installed and has no download source",
            )

        installer = INSTALLERS[self.kind](
            self.context.host.extension_dir(self.kind),
            timeout=self.context.install_timeout,
        )

        # Stages 5 and 6: download, install
        try:
            with self.context.fetcher.fetch(descriptor.download_source) as archive:
                try:
                    installer.install(descriptor, archive)
                except InstallError as e:
                    logger.warning(f"Install of '{self.slug}' failed: {e}")
                    return self._result(InstallOutcome.INSTALL_FAILED, str(e))
        except DownloadError as e:
            logger.warning(f"Download of '{self.slug}' failed: {e}")
            return self._result(InstallOutcome.DOWNLOAD_FAILED, str(e))

        if not oracle.descriptor_installed(descriptor):
            return self._result(
                InstallOutcome.INSTALL_FAILED,
                f"Package installed but '{descriptor.locator}' was not found",
            )

        # Stage 7: activate
        if descriptor.activate:
            failure = self._activate(descriptor)
            if failure is not None:
                return failure

        return self._result(InstallOutcome.SUCCESS, f"{descriptor.display_name} installed")

    def _activate_only(self, descriptor: ExtensionDescriptor) -> InstallResult:
        oracle = self.context.oracle
        if not oracle.descriptor_installed(descriptor):
            return self._result(InstallOutcome.INSTALL_FAILED, f"{descriptor.display_name} is not installed")
        if oracle.descriptor_active(descriptor):
            return self._result(InstallOutcome.SUCCESS, f"{descriptor.display_name} is already active")
        failure = self._activate(descriptor)
        if failure is not None:
            return failure
        return self._result(InstallOutcome.SUCCESS, f"{descriptor.display_name} activated")

    def _activate(self, descriptor: ExtensionDescriptor) -> Optional[InstallResult]:
        """Activate through the host; an activation failure never uninstalls."""
        host = self.context.host
        try:
            if self.kind is ExtensionKind.PLUGIN:
                host.activate_plugin(descriptor.locator)
            else:
                host.switch_theme(descriptor.locator)
            if descriptor.activation_signal:
                host.fire_signal(descriptor.activation_signal)
        except ExtInstallError as e:
            logger.warning(f"Activation of '{self.slug}' failed: {e}")
            return self._result(InstallOutcome.ACTIVATION_FAILED, str(e))
        except Exception as e:
            # hosts are injected; whatever they raise, the package stays installed
            logger.exception(f"Host failed to activate '{self.slug}'")
            return self._result(InstallOutcome.ACTIVATION_FAILED, f"Activation failed: {e}")

        logger.info(f"Activated {self.kind.value} '{self.slug}'")
        return None

    def _unauthorized(self) -> InstallResult:
        return self._result(InstallOutcome.UNAUTHORIZED, UNAUTHORIZED_DETAIL)

    def _result(self, outcome: InstallOutcome, detail: Optional[str] = None) -> InstallResult:
        return InstallResult(outcome=outcome, slug=self.slug, detail=detail)
