import logging
from typing import Dict, List, Optional, Protocol

from .locks import ReadWriteLock
from .models import ExtensionDescriptor, ExtensionKind
from ..events import DEREGISTERED, REGISTERED, EventBus

logger = logging.getLogger(__name__)


class Binder(Protocol):
    """Keeps one dispatch endpoint per registered descriptor."""

    def bind(self, descriptor: ExtensionDescriptor) -> None: ...

    def unbind(self, kind: ExtensionKind, slug: str) -> bool: ...


class Registry:
    def __init__(self, bus: Optional[EventBus] = None, binder: Optional[Binder] = None):
        self.bus = bus or EventBus()
        self.binder = binder
        # dicts keep insertion order, which is the listing order the UI shows
        self._extensions: Dict[ExtensionKind, Dict[str, ExtensionDescriptor]] = {
            kind: {} for kind in ExtensionKind
        }
        self._lock = ReadWriteLock()

    def register(self, descriptor: ExtensionDescriptor) -> None:
        """
        Insert a descriptor, replacing any previous one with the same slug.

        The old endpoint is unbound before the new one is bound, all under a
        single write lock, so two endpoints for one slug never coexist.
        """
        with self._lock.write():
            replaced = self._remove(descriptor.kind, descriptor.slug)
            self._extensions[descriptor.kind][descriptor.slug] = descriptor
            if self.binder is not None:
                self.binder.bind(descriptor)

        if replaced is not None:
            logger.info(f"Replaced {descriptor.kind.value} '{descriptor.slug}'")
            self._emit_deregistered(replaced)
        logger.info(f"Registered {descriptor.kind.value} '{descriptor.slug}' ({descriptor.display_name})")
        self.bus.emit(REGISTERED, {
            "kind": descriptor.kind.value,
            "slug": descriptor.slug,
            "name": descriptor.display_name,
            "locator": descriptor.locator,
            "download_source": descriptor.download_source,
        })

    def deregister(self, kind: ExtensionKind, slug: str) -> bool:
        with self._lock.write():
            removed = self._remove(kind, slug)
        if removed is None:
            return False
        logger.info(f"Deregistered {kind.value} '{slug}'")
        self._emit_deregistered(removed)
        return True

    def lookup(self, kind: ExtensionKind, slug: str) -> Optional[ExtensionDescriptor]:
        with self._lock.read():
            return self._extensions[kind].get(slug)

    def list(self, kind: ExtensionKind) -> List[ExtensionDescriptor]:
        with self._lock.read():
            return list(self._extensions[kind].values())

    def find(self, slug: str) -> Optional[ExtensionDescriptor]:
        """Look a slug up among plugins first, then themes."""
        with self._lock.read():
            for kind in ExtensionKind:
                descriptor = self._extensions[kind].get(slug)
                if descriptor is not None:
                    return descriptor
        return None

    def _remove(self, kind: ExtensionKind, slug: str) -> Optional[ExtensionDescriptor]:
        # caller holds the write lock
        descriptor = self._extensions[kind].pop(slug, None)
        if descriptor is not None and self.binder is not None:
            self.binder.unbind(kind, slug)
        return descriptor

    def _emit_deregistered(self, descriptor: ExtensionDescriptor) -> None:
        self.bus.emit(DEREGISTERED, {
            "kind": descriptor.kind.value,
            "slug": descriptor.slug,
        })
