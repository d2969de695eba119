"""Resource reader/writer: the only place mosaic touches source and output files.

Responsibilities:
  1. Read source files as bytes or text; a missing file raises FileNotFoundError
     so callers can turn it into the right domain error.
  2. Confine resolved paths to a root directory (path traversal prevention).
  3. Write output atomically (temp file → rename), creating parent directories.
  4. Wrap every other OSError in FileSystemError (operation + path + cause).
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Iterator

from mosaic.errors import FileSystemError


def is_within(path: Path, root: Path) -> bool:
    """Return True if *path* is *root* or lies underneath it.

    Both paths are compared after normalisation, so ``..`` segments cannot
    escape the root.
    """
    path = Path(os.path.normpath(path))
    root = Path(os.path.normpath(root))
    return path == root or root in path.parents


def normalize(path: Path | str) -> Path:
    """Return an absolute, ``..``-free version of *path* without touching disk."""
    return Path(os.path.normpath(os.path.abspath(path)))


def atomic_write(path: Path, content: bytes | str) -> None:
    """Write *content* to *path* atomically (temp file, then rename).

    Creates parent directories if needed.

    Raises:
        FileSystemError: If the directory or file cannot be written.
    """
    path = Path(path)
    data = content.encode("utf-8") if isinstance(content, str) else content
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    except OSError as exc:
        raise FileSystemError("mkdir", path.parent, exc) from exc
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except OSError as exc:
        # Clean up temp file on error
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise FileSystemError("write", path, exc) from exc


class ResourceIO:
    """Filesystem access for one build.

    Reads go through ``read``/``read_text``; writes through ``write``/``copy``.
    The class holds no state besides the roots, so one instance may be shared
    by composition worker threads.
    """

    def __init__(self, source_root: Path, output_root: Path | None = None) -> None:
        self.source_root = normalize(source_root)
        self.output_root = normalize(output_root) if output_root is not None else None

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read(self, path: Path) -> bytes:
        """Return the bytes of *path*.

        Raises:
            FileNotFoundError: If *path* does not exist (or is a directory).
            FileSystemError: For any other OS-level failure.
        """
        try:
            return Path(path).read_bytes()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
            raise FileNotFoundError(str(path)) from exc
        except OSError as exc:
            raise FileSystemError("read", path, exc) from exc

    def read_text(self, path: Path) -> str:
        """Return *path* decoded as UTF-8 (undecodable bytes are replaced)."""
        return self.read(path).decode("utf-8", errors="replace")

    def exists(self, path: Path) -> bool:
        return Path(path).is_file()

    def stat_signature(self, path: Path) -> tuple[int, int] | None:
        """Return ``(mtime_ns, size)`` for *path*, or None if it is gone."""
        try:
            st = Path(path).stat()
        except OSError:
            return None
        return st.st_mtime_ns, st.st_size

    def list(self, directory: Path) -> Iterator[Path]:
        """Yield every regular file under *directory*, sorted, recursively.

        Directories are walked in sorted order so builds are deterministic.
        """
        directory = Path(directory)
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise FileSystemError("list", directory, exc) from exc
        for entry in entries:
            if entry.is_dir() and not entry.is_symlink():
                yield from self.list(entry)
            elif entry.is_file():
                yield normalize(entry)

    # ------------------------------------------------------------------
    # Path confinement
    # ------------------------------------------------------------------

    def confine(self, path: Path) -> Path | None:
        """Return the normalised *path* if it stays under the source root, else None."""
        resolved = normalize(path)
        if is_within(resolved, self.source_root):
            return resolved
        return None

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def write(self, path: Path, content: bytes | str) -> None:
        """Write *content* to *path* atomically; see atomic_write()."""
        atomic_write(path, content)

    def copy(self, source: Path, target: Path) -> None:
        """Copy *source* to *target*, preserving metadata."""
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
        except OSError as exc:
            raise FileSystemError("copy", source, exc) from exc

    def remove(self, path: Path) -> bool:
        """Delete *path* if present. Returns True if a file was removed."""
        try:
            Path(path).unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise FileSystemError("remove", path, exc) from exc
        return True

    def remove_tree(self, directory: Path) -> None:
        """Delete *directory* recursively; a missing directory is not an error."""
        try:
            shutil.rmtree(directory)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise FileSystemError("remove", directory, exc) from exc
