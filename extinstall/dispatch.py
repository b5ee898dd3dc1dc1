"""
Dispatcher - Endpoint Routing

Maps typed endpoint identifiers to the install handler of one registered
descriptor. The registry calls ``bind``/``unbind`` in lockstep with its own
mutations, so each slug has at most one live endpoint.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from extinstall.core.models import EndpointId, ExtensionDescriptor, ExtensionKind, InstallOutcome, InstallResult
from extinstall.handler import InstallContext, InstallHandler

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Routing table from endpoint names to install handlers.

    Args:
        prefix: Callable returning the current hook prefix
        context: Shared collaborators handed to every handler (set after the
            registry exists, since handlers need it)
    """

    def __init__(self, prefix: Callable[[], str], context: Optional[InstallContext] = None):
        self._prefix = prefix
        self.context = context
        self._handlers: Dict[EndpointId, InstallHandler] = {}
        self._by_slug: Dict[Tuple[ExtensionKind, str], EndpointId] = {}
        self._by_name: Dict[str, EndpointId] = {}
        self._lock = threading.Lock()

    def endpoint_id(self, kind: ExtensionKind, slug: str) -> EndpointId:
        return EndpointId(prefix=self._prefix(), kind=kind, slug=slug)

    def bind(self, descriptor: ExtensionDescriptor) -> EndpointId:
        if self.context is None:
            raise RuntimeError("Dispatcher has no install context")
        endpoint = self.endpoint_id(descriptor.kind, descriptor.slug)
        handler = InstallHandler(descriptor, self.context)
        with self._lock:
            self._unbind_locked(descriptor.kind, descriptor.slug)
            self._handlers[endpoint] = handler
            self._by_slug[(descriptor.kind, descriptor.slug)] = endpoint
            self._by_name[endpoint.name] = endpoint
        logger.debug(f"Bound endpoint {endpoint.name}")
        return endpoint

    def unbind(self, kind: ExtensionKind, slug: str) -> bool:
        with self._lock:
            return self._unbind_locked(kind, slug)

    def endpoint_for(self, kind: ExtensionKind, slug: str) -> Optional[EndpointId]:
        with self._lock:
            return self._by_slug.get((kind, slug))

    def endpoints(self) -> List[EndpointId]:
        with self._lock:
            return list(self._handlers)

    def handler_for(self, name: str) -> Optional[InstallHandler]:
        with self._lock:
            endpoint = self._by_name.get(name)
            return self._handlers.get(endpoint) if endpoint is not None else None

    def dispatch(self, name: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Route a request to its handler and return the response payload."""
        handler = self.handler_for(name)
        if handler is None:
            logger.warning(f"No endpoint named '{name}'")
            slug = payload.get("slug") if isinstance(payload, dict) else None
            result = InstallResult(
                outcome=InstallOutcome.UNKNOWN_SLUG,
                slug=str(slug or ""),
                detail="Extension is not registered",
            )
            return result.to_response()
        return handler.handle(payload).to_response()

    def _unbind_locked(self, kind: ExtensionKind, slug: str) -> bool:
        endpoint = self._by_slug.pop((kind, slug), None)
        if endpoint is None:
            return False
        self._handlers.pop(endpoint, None)
        self._by_name.pop(endpoint.name, None)
        logger.debug(f"Unbound endpoint {endpoint.name}")
        return True
