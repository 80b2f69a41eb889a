import errno
import os
import shutil
from pathlib import Path
from typing import List

from application.ports import (
    CrossDeviceError,
    DirEntry,
    FileStat,
    FileStoreError,
    FileStoreExistsError,
    FileStoreNotFoundError,
)


def _translate(exc: OSError, path: Path) -> FileStoreError:
    if isinstance(exc, FileNotFoundError):
        return FileStoreNotFoundError(f"Not found: {path}")
    if isinstance(exc, FileExistsError):
        return FileStoreExistsError(f"Already exists: {path}")
    if exc.errno == errno.EXDEV:
        return CrossDeviceError(f"EXDEV: cross-device move of {path}: {exc.strerror or exc}")
    return FileStoreError(str(exc))


class LocalFileStore:
    """FileStore backed by the local filesystem."""

    def stat(self, path: Path) -> FileStat:
        try:
            st = Path(path).stat()
        except OSError as exc:
            raise _translate(exc, path) from exc
        created = getattr(st, "st_birthtime", None) or st.st_ctime
        return FileStat(created=created, modified=st.st_mtime, is_dir=Path(path).is_dir())

    def read_file(self, path: Path) -> bytes:
        try:
            return Path(path).read_bytes()
        except OSError as exc:
            raise _translate(exc, path) from exc

    def write_file(self, path: Path, data: bytes) -> None:
        try:
            Path(path).write_bytes(data)
        except OSError as exc:
            raise _translate(exc, path) from exc

    def list_dir(self, path: Path) -> List[DirEntry]:
        try:
            return [DirEntry(name=entry.name, is_dir=entry.is_dir()) for entry in os.scandir(path)]
        except OSError as exc:
            raise _translate(exc, path) from exc

    def rename(self, old: Path, new: Path, overwrite: bool = False) -> None:
        if not overwrite and Path(new).exists():
            raise FileStoreExistsError(f"Already exists: {new}")
        try:
            if overwrite:
                os.replace(old, new)
            else:
                os.rename(old, new)
        except OSError as exc:
            raise _translate(exc, old) from exc

    def copy(self, old: Path, new: Path, overwrite: bool = False) -> None:
        if not overwrite and Path(new).exists():
            raise FileStoreExistsError(f"Already exists: {new}")
        try:
            if Path(old).is_dir():
                shutil.copytree(old, new, dirs_exist_ok=overwrite)
            else:
                shutil.copy2(old, new)
        except OSError as exc:
            raise _translate(exc, old) from exc

    def delete(self, path: Path, recursive: bool = False) -> None:
        target = Path(path)
        try:
            if target.is_dir():
                if recursive:
                    shutil.rmtree(target)
                else:
                    target.rmdir()
            else:
                target.unlink()
        except OSError as exc:
            raise _translate(exc, path) from exc

    def mkdir(self, path: Path, recursive: bool = True) -> None:
        try:
            Path(path).mkdir(parents=recursive, exist_ok=recursive)
        except OSError as exc:
            raise _translate(exc, path) from exc


__all__ = ["LocalFileStore"]
