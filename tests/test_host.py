import pytest

from extinstall.core.errors import ActivationError
from extinstall.core.models import ExtensionKind
from extinstall.host import FilesystemHost


def _install_plugin(host, name="demo-plugin", entry="demo-plugin.py"):
    (host.plugins_dir / name).mkdir()
    (host.plugins_dir / name / entry).write_text("# plugin")


def test_directories_created(host):
    assert host.plugins_dir.is_dir()
    assert host.themes_dir.is_dir()
    assert host.extension_dir(ExtensionKind.THEME) == host.themes_dir


def test_plugin_installed_by_locator(host):
    assert host.is_plugin_installed("demo-plugin/demo-plugin.py") is False
    _install_plugin(host)
    assert host.is_plugin_installed("demo-plugin/demo-plugin.py") is True
    assert host.is_plugin_installed("demo-plugin") is True
    assert host.installed_plugins() == ["demo-plugin"]


def test_locator_outside_directory_is_never_installed(host, tmp_path):
    (tmp_path / "secret.py").write_text("x")
    assert host.is_plugin_installed("../secret.py") is False


def test_activate_plugin_persists_state(host, tmp_path):
    _install_plugin(host)
    host.activate_plugin("demo-plugin/demo-plugin.py")

    reloaded = FilesystemHost(host.plugins_dir, host.themes_dir, host.state_file)
    assert reloaded.is_plugin_active("demo-plugin/demo-plugin.py") is True
    assert reloaded.is_plugin_active("demo-plugin") is True
    assert reloaded.is_plugin_active("other") is False


def test_activate_missing_plugin_raises(host):
    with pytest.raises(ActivationError):
        host.activate_plugin("ghost/ghost.py")


def test_switch_theme(host):
    (host.themes_dir / "dark").mkdir()
    assert host.active_theme() is None
    host.switch_theme("dark")
    assert host.active_theme() == "dark"
    assert host.installed_themes() == ["dark"]


def test_unreadable_state_file_treated_as_empty(host):
    host.state_file.write_text("{not json")
    assert host.active_theme() is None


def test_signals(host):
    assert host.did_signal("demo_loaded") is False
    host.fire_signal("demo_loaded")
    assert host.did_signal("demo_loaded") is True


def test_user_capabilities(host):
    assert host.user_can("admin", "install_plugins") is True
    assert host.user_can("editor", "install_plugins") is False
    assert host.user_can("editor", "edit_posts") is True
    assert host.user_can("nobody", "edit_posts") is False
