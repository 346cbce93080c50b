"""On-disk workspace preparation for a work order."""
from __future__ import annotations

import logging
import os
import shutil
import threading
from pathlib import Path

from .errors import PipelineError
from .errors import Stage
from .workorder import WorkOrder

logger = logging.getLogger(__name__)

# Guards only the shared base directory's check-and-create. Lives for the
# whole process.
_BASE_DIR_LOCK = threading.Lock()


def create_base_dir(base_dir: Path) -> bool:
    """Create ``base_dir`` if missing. Returns False when someone else won."""

    with _BASE_DIR_LOCK:
        if base_dir.exists():
            return False
        try:
            base_dir.mkdir(mode=0o700)
        except FileExistsError:
            return False
        return True


def make_private_dirs(path: Path) -> None:
    """Create ``path`` and every missing parent with mode 0700."""

    missing: list[Path] = []
    current = path
    while not current.exists():
        missing.append(current)
        current = current.parent
    for directory in reversed(missing):
        try:
            directory.mkdir(mode=0o700)
        except FileExistsError:
            if not directory.is_dir():
                raise


def _raise(exc: OSError) -> None:
    raise exc


def _contains(ancestor: Path, path: Path) -> bool:
    return ancestor == path or ancestor in path.parents


class WorkspaceManager:
    """Create the directory tree for a work order and purge leftovers."""

    def prepare_workspace(self, order: WorkOrder) -> None:
        self._ensure_base_dir(order)
        self._ensure_source_dir(order)
        self._purge_stray_entries(order)

    def _exists(self, order: WorkOrder, path: Path) -> bool:
        try:
            return path.exists()
        except OSError as exc:
            logger.error("[%s] Error checking [%s]: %s", order.package, path, exc)
            raise PipelineError(Stage.SETUP, order.package, path, "stat", exc) from exc

    def _ensure_base_dir(self, order: WorkOrder) -> None:
        if self._exists(order, order.base_dir):
            return
        order.respond(
            Stage.SETUP,
            order.base_dir,
            f"[{order.package}] Missing base directory [{order.base_dir}]. Creating it now.",
        )
        try:
            create_base_dir(order.base_dir)
        except OSError as exc:
            logger.error("[%s] Error creating base directory [%s]: %s", order.package, order.base_dir, exc)
            raise PipelineError(Stage.SETUP, order.package, order.base_dir, "create base directory", exc) from exc

    def _ensure_source_dir(self, order: WorkOrder) -> None:
        source = order.source_dir
        if self._exists(order, source):
            return
        order.respond(
            Stage.SETUP,
            source,
            f"[{order.package}] Missing repository directory structure [{source}]. Creating it now.",
        )
        try:
            make_private_dirs(source)
        except OSError as exc:
            logger.error("[%s] Error creating repository directory [%s]: %s", order.package, source, exc)
            raise PipelineError(Stage.SETUP, order.package, source, "create source directory", exc) from exc

    def _purge_stray_entries(self, order: WorkOrder) -> None:
        """Remove everything under the workspace that is outside the source dir."""

        source = order.source_dir
        try:
            walker = os.walk(order.workspace_dir, onerror=_raise)
            for current, dirnames, filenames in walker:
                current_path = Path(current)
                descend: list[str] = []
                for name in sorted(dirnames):
                    path = current_path / name
                    if path == source:
                        continue
                    if not path.is_symlink() and _contains(path, source):
                        descend.append(name)
                        continue
                    self._remove(order, path)
                dirnames[:] = descend
                for name in sorted(filenames):
                    self._remove(order, current_path / name)
        except OSError as exc:
            path = Path(exc.filename) if exc.filename else order.workspace_dir
            logger.error("[%s] Error walking workspace [%s]: %s", order.package, path, exc)
            raise PipelineError(Stage.SETUP, order.package, path, "walk workspace", exc) from exc

    def _remove(self, order: WorkOrder, path: Path) -> None:
        order.respond(Stage.SETUP, path, f"[{order.package}] Removing [{path}].")
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
        except OSError as exc:
            logger.error("[%s] Error removing [%s]: %s", order.package, path, exc)
            raise PipelineError(Stage.SETUP, order.package, path, "remove", exc) from exc


__all__ = ["WorkspaceManager", "create_base_dir", "make_private_dirs"]
