from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol


class FileStoreError(Exception):
    """Underlying storage failure; the message of the original error is kept."""


class FileStoreNotFoundError(FileStoreError):
    pass


class FileStoreExistsError(FileStoreError):
    pass


class CrossDeviceError(FileStoreError):
    """Rename refused because source and destination live on different devices."""


@dataclass(frozen=True)
class FileStat:
    created: float
    modified: float
    is_dir: bool = False


@dataclass(frozen=True)
class DirEntry:
    name: str
    is_dir: bool


class FileStore(Protocol):
    def stat(self, path: Path) -> FileStat:
        ...

    def read_file(self, path: Path) -> bytes:
        ...

    def write_file(self, path: Path, data: bytes) -> None:
        ...

    def list_dir(self, path: Path) -> List[DirEntry]:
        ...

    def rename(self, old: Path, new: Path, overwrite: bool = False) -> None:
        ...

    def copy(self, old: Path, new: Path, overwrite: bool = False) -> None:
        ...

    def delete(self, path: Path, recursive: bool = False) -> None:
        ...

    def mkdir(self, path: Path, recursive: bool = True) -> None:
        ...


def exists(store: FileStore, path: Path) -> bool:
    try:
        store.stat(path)
    except FileStoreNotFoundError:
        return False
    return True


def stat_or_none(store: FileStore, path: Path) -> Optional[FileStat]:
    try:
        return store.stat(path)
    except FileStoreError:
        return None


def read_text(store: FileStore, path: Path) -> str:
    return store.read_file(path).decode("utf-8")


def read_text_if_exists(store: FileStore, path: Path) -> Optional[str]:
    try:
        return read_text(store, path)
    except FileStoreNotFoundError:
        return None


def write_text(store: FileStore, path: Path, text: str) -> None:
    store.write_file(path, text.encode("utf-8"))


def ensure_directory(store: FileStore, path: Path) -> None:
    if not exists(store, path):
        store.mkdir(path, recursive=True)


def list_markdown_files(store: FileStore, directory: Path) -> List[str]:
    """Names of ``*.md`` files directly inside ``directory`` (empty when missing)."""
    try:
        entries = store.list_dir(directory)
    except FileStoreNotFoundError:
        return []
    return sorted(entry.name for entry in entries if not entry.is_dir and entry.name.endswith(".md"))


__all__ = [
    "FileStoreError",
    "FileStoreNotFoundError",
    "FileStoreExistsError",
    "CrossDeviceError",
    "FileStat",
    "DirEntry",
    "FileStore",
    "exists",
    "stat_or_none",
    "read_text",
    "read_text_if_exists",
    "write_text",
    "ensure_directory",
    "list_markdown_files",
]
