"""
Kind Installers - Unpack Packages Into the Host

Plugins and themes are placed the same way: the archive is extracted into a
hidden staging directory inside the extension directory, checked, and then
renamed into place. A failed install leaves nothing under the final name.
"""

import logging
import shutil
import tarfile
import tempfile
import time
import zipfile
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Dict, List, Type

from extinstall.core.errors import InstallError
from extinstall.core.models import ExtensionDescriptor, ExtensionKind

logger = logging.getLogger(__name__)

THEME_MARKERS = ("style.css", "theme.yaml", "theme.yml")
COPY_CHUNK_SIZE = 64 * 1024


class PackageInstaller:
    """Shared extract-stage-rename logic; subclasses find the extension inside the package."""

    kind: ExtensionKind

    def __init__(self, extension_dir: Path, timeout: float = 60.0):
        self.extension_dir = Path(extension_dir)
        self.timeout = timeout

    def install(self, descriptor: ExtensionDescriptor, archive: Path) -> Path:
        """
        Install ``archive`` for ``descriptor``.

        Returns:
            Path of the installed file or directory

        Raises:
            InstallError: unsafe or malformed archive, permission error, timeout
        """
        deadline = time.monotonic() + self.timeout
        try:
            self.extension_dir.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=".extinstall-", dir=self.extension_dir))
        except OSError as e:
            raise InstallError(f"Cannot create staging directory in {self.extension_dir}: {e}") from e

        try:
            extracted = staging / "package"
            extracted.mkdir()
            _extract(archive, extracted, deadline)
            source = self.locate(descriptor, _package_root(extracted))
            target = self.extension_dir / descriptor.directory
            _check_deadline(deadline)
            _move_into_place(source, target, staging)
            logger.info(f"Installed {self.kind.value} '{descriptor.slug}' at {target}")
            return target
        except OSError as e:
            raise InstallError(f"Filesystem error installing '{descriptor.slug}': {e}") from e
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def locate(self, descriptor: ExtensionDescriptor, root: Path) -> Path:
        """Return the extracted path that becomes ``extension_dir/<descriptor.directory>``."""
        raise NotImplementedError


class PluginInstaller(PackageInstaller):
    kind = ExtensionKind.PLUGIN

    def locate(self, descriptor: ExtensionDescriptor, root: Path) -> Path:
        parts = PurePosixPath(descriptor.locator).parts
        if len(parts) == 1:
            # single-file plugin
            entry = root / parts[0]
            if not entry.is_file():
                raise InstallError(f"Plugin file '{parts[0]}' not found in package")
            return entry

        # archives may or may not repeat the plugin directory inside the wrapper
        for base in (root / parts[0], root):
            if base.joinpath(*parts[1:]).is_file():
                return base
        raise InstallError(f"Plugin entry file '{descriptor.locator}' not found in package")


class ThemeInstaller(PackageInstaller):
    kind = ExtensionKind.THEME

    def locate(self, descriptor: ExtensionDescriptor, root: Path) -> Path:
        for base in (root / descriptor.locator, root):
            if any((base / marker).is_file() for marker in THEME_MARKERS):
                return base
        raise InstallError(f"Theme package for '{descriptor.slug}' has no {' or '.join(THEME_MARKERS)}")


INSTALLERS: Dict[ExtensionKind, Type[PackageInstaller]] = {
    ExtensionKind.PLUGIN: PluginInstaller,
    ExtensionKind.THEME: ThemeInstaller,
}


def _extract(archive: Path, dest: Path, deadline: float) -> None:
    """Extract a zip or tar archive, refusing anything that would land outside ``dest``."""
    try:
        if zipfile.is_zipfile(archive):
            with zipfile.ZipFile(archive) as zf:
                for info in zf.infolist():
                    _check_deadline(deadline)
                    _check_member(dest, info.filename)
                    target = dest / info.filename
                    if info.is_dir():
                        target.mkdir(parents=True, exist_ok=True)
                        continue
                    with zf.open(info) as src:
                        _copy_stream(src, target, deadline)
        elif tarfile.is_tarfile(archive):
            with tarfile.open(archive) as tar:
                for member in tar.getmembers():
                    _check_deadline(deadline)
                    if not (member.isfile() or member.isdir()):
                        raise InstallError(f"Refusing archive member of unsupported type: {member.name}")
                    _check_member(dest, member.name)
                    target = dest / member.name
                    if member.isdir():
                        target.mkdir(parents=True, exist_ok=True)
                        continue
                    with tar.extractfile(member) as src:
                        _copy_stream(src, target, deadline)
        else:
            raise InstallError(f"Unsupported archive format: {archive.name}")
    except (zipfile.BadZipFile, tarfile.TarError) as e:
        raise InstallError(f"Corrupt archive: {e}") from e


def _copy_stream(src: BinaryIO, target: Path, deadline: float) -> None:
    """Copy one archive member in chunks so a huge member cannot outrun the deadline."""
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "wb") as out:
        while True:
            _check_deadline(deadline)
            chunk = src.read(COPY_CHUNK_SIZE)
            if not chunk:
                break
            out.write(chunk)


def _check_member(dest: Path, name: str) -> None:
    root = dest.resolve()
    target = (dest / name).resolve()
    if target != root and root not in target.parents:
        raise InstallError(f"Archive member escapes the install directory: {name}")


def _check_deadline(deadline: float) -> None:
    if time.monotonic() > deadline:
        raise InstallError("Install timeout exceeded")


def _package_root(extracted: Path) -> Path:
    """A package wrapped in a single top-level directory is rooted at that directory."""
    entries: List[Path] = [p for p in extracted.iterdir() if p.name != "__MACOSX"]
    if len(entries) == 1 and entries[0].is_dir():
        return entries[0]
    return extracted


def _move_into_place(source: Path, target: Path, staging: Path) -> None:
    """Rename ``source`` to ``target``; an existing broken copy is parked in staging first."""
    if target.exists() or target.is_symlink():
        stale = staging / "stale"
        target.rename(stale)
        try:
            source.rename(target)
        except OSError:
            stale.rename(target)
            raise
    else:
        source.rename(target)
