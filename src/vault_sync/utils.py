"""Utility functions for vault-sync."""

import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Atomically write bytes to a file.

    1. Writes to a temp file in the same directory and fsyncs it
    2. Renames it over the target (appears all-at-once)
    3. Fsyncs the parent directory so the rename is durable

    Directory fsync is best-effort; it is unsupported on Windows.

    Args:
        path: Target file path
        data: Content to write
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        mode="wb",
        delete=False,
        dir=path.parent,
        prefix=f".{path.name}.tmp-",
        suffix=""
    ) as f:
        f.write(data)
        f.flush()
        os.fsync(f.fileno())
        tmp = Path(f.name)

    try:
        os.replace(tmp, path)

        try:
            flags = os.O_RDONLY
            if hasattr(os, "O_DIRECTORY"):
                flags |= os.O_DIRECTORY

            dirfd = os.open(str(path.parent), flags)
            try:
                os.fsync(dirfd)
            finally:
                os.close(dirfd)
        except OSError:
            # Expected on Windows or filesystems without directory fsync
            pass
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def atomic_write_text(path: Path, text: str) -> None:
    """Atomically write UTF-8 text to a file."""
    atomic_write_bytes(path, text.encode("utf-8"))


def safe_target(root: Path, rel_path: str) -> Path:
    """Map a vault-relative path to an absolute one, refusing anything that escapes root.

    Args:
        root: Vault root directory
        rel_path: Relative POSIX path coming from a snapshot or the remote

    Returns:
        Absolute path under root

    Raises:
        ValueError: If path is empty, absolute, or traverses upwards
    """
    if not rel_path or not rel_path.strip():
        raise ValueError("Unsafe path: empty path")

    if (rel_path.startswith(("/", "\\")) or
        ".." in PurePosixPath(rel_path).parts or
        ".." in rel_path.split("\\")):
        raise ValueError(f"Unsafe path: {rel_path}")

    # The last component stays unresolved so a symlink is handled as the link itself
    candidate = root / rel_path
    target = candidate.parent.resolve() / candidate.name
    try:
        target.relative_to(root.resolve())
    except ValueError:
        raise ValueError(f"Path escapes vault root: {rel_path}")
    return target


def path_depth(path: str) -> int:
    """Number of separators in a POSIX path ("a/b/c" -> 2)."""
    return path.strip("/").count("/")


def parse_iso_timestamp(iso_string: str) -> float:
    """Parse an ISO 8601 timestamp into epoch seconds.

    Examples:
        "2025-08-26T02:51:17Z" -> 1756176677.0
        "2025-08-26T02:51:17+02:00" -> 1756169477.0
    """
    value = iso_string.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def format_timestamp(epoch: float) -> str:
    """Format epoch seconds for display ("2025-08-26 02:51:17")."""
    if not epoch:
        return "-"
    return datetime.fromtimestamp(epoch, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def get_iso_timestamp() -> str:
    """Get current UTC timestamp in ISO 8601 format."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
