"""
Host - The Application Extensions Live In

Defines what the installer needs from its host application and ships a
directory-backed implementation. Installed state is whatever is on disk;
activation state is kept in a small JSON file next to the extensions.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Set

from extinstall.core.errors import ActivationError, HostError
from extinstall.core.models import ExtensionKind

logger = logging.getLogger(__name__)

# capability needed per (kind, operation)
CAPABILITIES = {
    (ExtensionKind.PLUGIN, "install"): "install_plugins",
    (ExtensionKind.PLUGIN, "activate"): "activate_plugins",
    (ExtensionKind.THEME, "install"): "install_themes",
    (ExtensionKind.THEME, "activate"): "switch_themes",
}


class Host(Protocol):
    def extension_dir(self, kind: ExtensionKind) -> Path: ...

    def is_plugin_installed(self, locator: str) -> bool: ...

    def is_plugin_active(self, locator: str) -> bool: ...

    def is_theme_installed(self, stylesheet: str) -> bool: ...

    def active_theme(self) -> Optional[str]: ...

    def activate_plugin(self, locator: str) -> None: ...

    def switch_theme(self, stylesheet: str) -> None: ...

    def did_signal(self, name: str) -> bool: ...

    def fire_signal(self, name: str) -> None: ...

    def user_can(self, user: str, capability: str) -> bool: ...


class FilesystemHost:
    """
    Host backed by two directories and a JSON state file.

    Args:
        plugins_dir: Directory holding one sub-directory per plugin
        themes_dir: Directory holding one sub-directory per theme
        state_file: JSON file storing active plugins and the active theme
        grants: Mapping of user -> capabilities; ``"*"`` grants everything
    """

    def __init__(
        self,
        plugins_dir: Path,
        themes_dir: Path,
        state_file: Optional[Path] = None,
        grants: Optional[Dict[str, Iterable[str]]] = None,
    ):
        self.plugins_dir = Path(plugins_dir)
        self.themes_dir = Path(themes_dir)
        self.state_file = Path(state_file) if state_file else self.plugins_dir.parent / "extinstall_state.json"
        self.grants: Dict[str, Set[str]] = {user: set(caps) for user, caps in (grants or {}).items()}
        self._signals: Set[str] = set()
        self._lock = threading.Lock()
        self.plugins_dir.mkdir(parents=True, exist_ok=True)
        self.themes_dir.mkdir(parents=True, exist_ok=True)

    def extension_dir(self, kind: ExtensionKind) -> Path:
        return self.plugins_dir if kind is ExtensionKind.PLUGIN else self.themes_dir

    # --- Installed state ---

    def is_plugin_installed(self, locator: str) -> bool:
        return _is_inside(self.plugins_dir, locator) and (self.plugins_dir / locator).exists()

    def is_theme_installed(self, stylesheet: str) -> bool:
        return _is_inside(self.themes_dir, stylesheet) and (self.themes_dir / stylesheet).is_dir()

    def installed_plugins(self) -> List[str]:
        return sorted(p.name for p in self.plugins_dir.iterdir() if p.is_dir() and not p.name.startswith("."))

    def installed_themes(self) -> List[str]:
        return sorted(p.name for p in self.themes_dir.iterdir() if p.is_dir() and not p.name.startswith("."))

    # --- Active state ---

    def is_plugin_active(self, locator: str) -> bool:
        active = self._load_state().get("active_plugins", [])
        if locator in active:
            return True
        # a bare directory name matches any active entry file inside it
        return any(entry.split("/", 1)[0] == locator for entry in active)

    def active_theme(self) -> Optional[str]:
        return self._load_state().get("active_theme")

    def activate_plugin(self, locator: str) -> None:
        if not self.is_plugin_installed(locator):
            raise ActivationError(f"Plugin file not found: {locator}")
        with self._lock:
            state = self._load_state()
            active = state.setdefault("active_plugins", [])
            if locator not in active:
                active.append(locator)
            self._save_state(state)
        logger.info(f"Activated plugin {locator}")

    def switch_theme(self, stylesheet: str) -> None:
        if not self.is_theme_installed(stylesheet):
            raise ActivationError(f"Theme directory not found: {stylesheet}")
        with self._lock:
            state = self._load_state()
            state["active_theme"] = stylesheet
            self._save_state(state)
        logger.info(f"Switched theme to {stylesheet}")

    # --- Signals ---

    def did_signal(self, name: str) -> bool:
        return name in self._signals

    def fire_signal(self, name: str) -> None:
        self._signals.add(name)

    # --- Capabilities ---

    def user_can(self, user: str, capability: str) -> bool:
        caps = self.grants.get(user, set())
        return "*" in caps or capability in caps

    def _load_state(self) -> dict:
        """Load the activation state, treating a missing or unreadable file as empty."""
        if self.state_file.exists():
            try:
                return json.loads(self.state_file.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Ignoring unreadable state file {self.state_file}: {e}")
        return {}

    def _save_state(self, data: dict) -> None:
        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.state_file.with_suffix(".tmp")
            tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
            tmp.replace(self.state_file)
        except OSError as e:
            raise HostError(f"Cannot write state file {self.state_file}: {e}") from e


def _is_inside(base: Path, relative: str) -> bool:
    try:
        target = (base / relative).resolve()
        root = base.resolve()
    except OSError:
        return False
    return target != root and root in target.parents
