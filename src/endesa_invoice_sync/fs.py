from __future__ import annotations

from pathlib import Path
from typing import Protocol, Union


PathLike = Union[str, Path]


class Filesystem(Protocol):
    def exists(self, path: PathLike) -> bool: ...

    def rename(self, old_path: PathLike, new_path: PathLike) -> None: ...

    def remove(self, path: PathLike) -> None: ...

    def ensure_dir(self, path: PathLike) -> None: ...


class LocalFilesystem:
    def exists(self, path: PathLike) -> bool:
        return Path(path).exists()

    def rename(self, old_path: PathLike, new_path: PathLike) -> None:
        # Path.replace overwrites an existing target (re-downloads of the same invoice).
        Path(old_path).replace(Path(new_path))

    def remove(self, path: PathLike) -> None:
        Path(path).unlink(missing_ok=True)

    def ensure_dir(self, path: PathLike) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)
