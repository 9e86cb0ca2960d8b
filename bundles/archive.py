"""Pack and unpack tar+gzip bundles with path sanitizing."""
from __future__ import annotations

import gzip
import os
import shutil
import stat
import tarfile
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Iterable, List, Optional

from .errors import ArchiveError
from .logs import BackupLogger, LOGGER

_CHUNK = 1024 * 1024


def _arcname(relative: str) -> str:
    """Return *relative* as a normalized forward-slash archive name."""
    normalized = os.path.normpath(relative)
    return PurePosixPath(normalized.replace(os.sep, "/")).as_posix()


def _add_file(archive: tarfile.TarFile, source: Path, arcname: str) -> None:
    info = source.stat()
    member = tarfile.TarInfo(name=arcname)
    member.size = info.st_size
    member.mode = stat.S_IMODE(info.st_mode)
    member.mtime = int(info.st_mtime)
    member.type = tarfile.REGTYPE
    with source.open("rb") as handle:
        archive.addfile(member, handle)


def _iter_files(directory: Path) -> Iterable[Path]:
    for item in sorted(directory.rglob("*")):
        if item.is_file():
            yield item


def _warn(logger: Optional[BackupLogger], event: str, **extra: object) -> None:
    if logger is not None:
        logger.warning(event, **extra)
    else:
        LOGGER.warning("%s %s", event, extra)


def _outside_base(relative: str) -> bool:
    if os.path.isabs(relative) or os.path.splitdrive(relative)[0]:
        return True
    normalized = os.path.normpath(relative)
    return normalized == os.pardir or normalized.startswith(os.pardir + os.sep)


def pack_paths(
    paths: Iterable[str],
    base_dir: Path,
    destination: Path,
    *,
    logger: Optional[BackupLogger] = None,
) -> List[str]:
    """Write the configured *paths* under *base_dir* into one bundle.

    Missing paths and paths that are absolute or climb out of *base_dir* are
    skipped with a warning. Directories are walked in sorted order and gzip
    headers carry no timestamp, so identical trees produce identical bundles.
    Returns the configured paths that were captured. On any failure the
    partial bundle is removed; I/O errors surface as :class:`ArchiveError`.
    """

    base = Path(base_dir)
    destination = Path(destination)
    captured: List[str] = []
    try:
        with destination.open("wb") as raw, gzip.GzipFile(
            filename="", fileobj=raw, mode="wb", mtime=0
        ) as compressed, tarfile.open(fileobj=compressed, mode="w", format=tarfile.PAX_FORMAT) as archive:
            for relative in paths:
                if _outside_base(relative):
                    _warn(logger, "backup_path_outside", path=relative)
                    continue
                source = base / relative
                if not source.exists():
                    _warn(logger, "backup_path_missing", path=relative)
                    continue
                if source.is_dir():
                    for item in _iter_files(source):
                        name = item.relative_to(base).as_posix()
                        _add_file(archive, item, name)
                        if logger is not None:
                            logger.info("archive_add", path=name)
                else:
                    name = _arcname(relative)
                    _add_file(archive, source, name)
                    if logger is not None:
                        logger.info("archive_add", path=name)
                captured.append(relative)
    except (OSError, tarfile.TarError) as exc:
        destination.unlink(missing_ok=True)
        raise ArchiveError(f"failed to write bundle {destination.name}: {exc}") from exc
    except BaseException:
        destination.unlink(missing_ok=True)
        raise
    return captured


def is_within(root: Path, candidate: Path) -> bool:
    """Return True if *candidate* lies strictly below *root*."""
    if candidate == root:
        return False
    return candidate.is_relative_to(root)


def _safe_target(root: Path, name: str) -> Optional[Path]:
    if not name or PurePosixPath(name).is_absolute():
        return None
    if os.name == "nt":
        windows = PureWindowsPath(name)
        if windows.drive or windows.root:
            return None
    candidate = Path(os.path.normpath(root / name))
    if not is_within(root, candidate):
        return None
    resolved = candidate.resolve()
    if not is_within(root, resolved):
        return None
    return resolved


def extract_bundle(
    bundle_path: Path,
    dest_dir: Path,
    *,
    logger: Optional[BackupLogger] = None,
) -> int:
    """Unpack *bundle_path* into *dest_dir* and return the number of files written.

    Members that would land outside *dest_dir* (absolute names, escaping
    ``..`` segments) and non-regular members are skipped without error.
    Directory members are not created on their own; parents are made as files
    are written.
    """

    root = Path(dest_dir).resolve()
    written = 0
    try:
        with tarfile.open(bundle_path, "r:gz") as archive:
            for member in archive:
                if member.isdir():
                    continue
                target = _safe_target(root, member.name) if member.isfile() else None
                if target is None:
                    if logger is not None:
                        logger.warning("archive_member_rejected", path=member.name)
                    continue
                source = archive.extractfile(member)
                if source is None:
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with source, target.open("wb") as handle:
                    shutil.copyfileobj(source, handle, _CHUNK)
                os.chmod(target, stat.S_IMODE(member.mode))
                if logger is not None:
                    logger.info("archive_extract", path=member.name)
                written += 1
    except (OSError, tarfile.TarError) as exc:
        raise ArchiveError(f"failed to extract {Path(bundle_path).name}: {exc}") from exc
    return written


def list_members(bundle_path: Path) -> List[str]:
    """Return the names of the regular files stored in *bundle_path*."""
    try:
        with tarfile.open(bundle_path, "r:gz") as archive:
            return [member.name for member in archive.getmembers() if member.isfile()]
    except (OSError, tarfile.TarError) as exc:
        raise ArchiveError(f"failed to read {Path(bundle_path).name}: {exc}") from exc


__all__ = ["extract_bundle", "is_within", "list_members", "pack_paths"]
