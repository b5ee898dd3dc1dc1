import threading

import pytest
from unittest.mock import MagicMock

from extinstall.core.models import ExtensionDescriptor, ExtensionKind
from extinstall.core.registry import Registry
from extinstall.events import EventBus


def _descriptor(slug="demo-plugin", kind=ExtensionKind.PLUGIN, **overrides):
    data = dict(kind=kind, slug=slug, display_name=slug.title(), locator=f"{slug}/{slug}.py")
    if kind is ExtensionKind.THEME:
        data["locator"] = slug
    data.update(overrides)
    return ExtensionDescriptor(**data)


class RecordingBinder:
    def __init__(self):
        self.live = {}
        self.calls = []

    def bind(self, descriptor):
        key = (descriptor.kind, descriptor.slug)
        assert key not in self.live, "duplicate binding"
        self.live[key] = descriptor
        self.calls.append(("bind", descriptor.slug))

    def unbind(self, kind, slug):
        self.calls.append(("unbind", slug))
        return self.live.pop((kind, slug), None) is not None


@pytest.fixture
def binder():
    return RecordingBinder()


@pytest.fixture
def registry(binder):
    return Registry(bus=EventBus(), binder=binder)


def test_register_and_lookup(registry):
    descriptor = _descriptor()
    registry.register(descriptor)
    assert registry.lookup(ExtensionKind.PLUGIN, "demo-plugin") == descriptor
    assert registry.lookup(ExtensionKind.THEME, "demo-plugin") is None


def test_lookup_unknown_returns_none(registry):
    assert registry.lookup(ExtensionKind.PLUGIN, "missing") is None


def test_list_preserves_insertion_order(registry):
    for slug in ["zeta", "alpha", "mid"]:
        registry.register(_descriptor(slug))
    assert [d.slug for d in registry.list(ExtensionKind.PLUGIN)] == ["zeta", "alpha", "mid"]


def test_same_slug_in_both_kinds_is_allowed(registry):
    registry.register(_descriptor("shared"))
    registry.register(_descriptor("shared", kind=ExtensionKind.THEME))
    assert registry.lookup(ExtensionKind.PLUGIN, "shared") is not None
    assert registry.lookup(ExtensionKind.THEME, "shared") is not None


def test_reregister_replaces_descriptor_and_binding(registry, binder):
    registry.register(_descriptor(display_name="First"))
    registry.register(_descriptor(display_name="Second"))

    assert registry.lookup(ExtensionKind.PLUGIN, "demo-plugin").display_name == "Second"
    assert len(registry.list(ExtensionKind.PLUGIN)) == 1
    assert binder.calls == [("bind", "demo-plugin"), ("unbind", "demo-plugin"), ("bind", "demo-plugin")]
    assert len(binder.live) == 1


def test_many_reregistrations_leave_one_entry(registry, binder):
    for i in range(10):
        registry.register(_descriptor(display_name=f"v{i}"))
    assert len(registry.list(ExtensionKind.PLUGIN)) == 1
    assert list(binder.live) == [(ExtensionKind.PLUGIN, "demo-plugin")]
    assert registry.lookup(ExtensionKind.PLUGIN, "demo-plugin").display_name == "v9"


def test_deregister_unknown_returns_false_without_side_effects(registry, binder):
    listener = MagicMock()
    registry.bus.on("deregistered", listener)

    assert registry.deregister(ExtensionKind.PLUGIN, "missing") is False
    assert binder.calls == []
    listener.assert_not_called()


def test_deregister_known_removes_descriptor_and_binding(registry, binder):
    registry.register(_descriptor())
    assert registry.deregister(ExtensionKind.PLUGIN, "demo-plugin") is True
    assert registry.lookup(ExtensionKind.PLUGIN, "demo-plugin") is None
    assert binder.live == {}


def test_register_emits_registered_event(registry):
    events = []
    registry.bus.on("registered", events.append)
    registry.register(_descriptor(download_source="https://example.com/demo.zip"))

    assert len(events) == 1
    assert events[0].payload == {
        "kind": "plugin",
        "slug": "demo-plugin",
        "name": "Demo-Plugin",
        "locator": "demo-plugin/demo-plugin.py",
        "download_source": "https://example.com/demo.zip",
    }


def test_reregister_emits_deregistered_then_registered(registry):
    seen = []
    registry.bus.on("registered", lambda e: seen.append(e.event_type))
    registry.bus.on("deregistered", lambda e: seen.append(e.event_type))
    registry.register(_descriptor())
    registry.register(_descriptor())
    assert seen == ["registered", "deregistered", "registered"]


def test_find_prefers_plugins(registry):
    registry.register(_descriptor("shared", kind=ExtensionKind.THEME))
    registry.register(_descriptor("shared"))
    assert registry.find("shared").kind is ExtensionKind.PLUGIN
    assert registry.find("nothing") is None


def test_concurrent_registrations_keep_single_binding(registry, binder):
    def worker(i):
        registry.register(_descriptor(display_name=f"w{i}"))

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(registry.list(ExtensionKind.PLUGIN)) == 1
    assert len(binder.live) == 1
