"""File handler module: vault path resolution and encoding-aware read/write.

Vault paths are POSIX strings relative to the vault root (``Docs/a.md``).
Sync functions here are pure apart from file I/O; the vault wraps them
with ``run_sync()`` so the event loop never blocks on disk.
"""

from pathlib import Path, PurePosixPath

from charset_normalizer import from_bytes

# =============================================================================
# Path Resolution
# =============================================================================


def to_vault_path(root: Path, path: Path) -> str:
    """Return *path* relative to *root* as a POSIX string.

    Raises:
        ValueError: If *path* is not under *root*.
    """
    return path.resolve().relative_to(root.resolve()).as_posix()


def resolve_vault_path(root: Path, vault_path: str) -> Path:
    """Resolve a vault-relative path to an absolute path under *root*.

    Raises:
        ValueError: If the path is absolute, empty, or escapes the root.
    """
    if not vault_path or not vault_path.strip():
        raise ValueError("Vault path cannot be empty")
    posix = PurePosixPath(vault_path)
    if posix.is_absolute():
        raise ValueError(f"Vault path must be relative: {vault_path}")
    root_resolved = root.resolve()
    resolved = (root_resolved / Path(*posix.parts)).resolve()
    if not resolved.is_relative_to(root_resolved):
        raise ValueError(
            f"Vault path escapes the vault root: {vault_path}"
        )
    return resolved


def is_hidden(vault_path: str) -> bool:
    """True if any segment of *vault_path* starts with a dot."""
    return any(part.startswith(".") for part in vault_path.split("/"))


# =============================================================================
# File Read/Write
# =============================================================================


def decode_bytes(raw: bytes) -> tuple[str, str]:
    """Decode raw file bytes with automatic encoding detection.

    Defaults to UTF-8 for empty input or when detection fails.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    if not raw:
        return ("", "utf-8")

    result = from_bytes(raw).best()
    if result is None:
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        # ascii is a strict subset of utf-8
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def write_file(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Write content to a file, creating parent directories as needed.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode(encoding)
    path.write_bytes(encoded)
    return len(encoded)
