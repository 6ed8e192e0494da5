"""Path utilities, MIME detection, size formatting."""

from __future__ import annotations

import mimetypes
from pathlib import PurePosixPath

from .exceptions import InvalidPathError

ROOT_FOLDER = "root"
"""Sentinel folder path for the top level.  Never stored as a folder record."""

MAX_PATH_LENGTH = 4096
MAX_NAME_LENGTH = 255

# =============================================================================
# MIME types and preview categories
# =============================================================================

MIME_OVERRIDES = {
    ".md": "text/markdown",
    ".ts": "text/plain",
    ".tsx": "text/plain",
    ".webp": "image/webp",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
}

CODE_EXTENSIONS = {
    ".js", ".ts", ".tsx", ".jsx", ".py", ".rb", ".go", ".rs", ".java",
    ".c", ".cpp", ".h", ".hpp", ".cs", ".swift", ".kt", ".sh", ".bash",
    ".yaml", ".yml", ".toml", ".ini", ".cfg", ".conf", ".sql", ".graphql",
}


# =============================================================================
# Path Utilities
# =============================================================================


def normalize_folder(path: str | None) -> str:
    """Normalize a virtual folder path.

    - Strips leading and trailing slashes
    - Collapses repeated slashes
    - Maps the empty path and ``root`` to the ``root`` sentinel

    Segments are kept verbatim: ``..`` is *not* resolved, callers reject it
    with :func:`validate_folder`.

    Examples:
        normalize_folder("/photos/2024/") -> "photos/2024"
        normalize_folder("a//b") -> "a/b"
        normalize_folder("") -> "root"
    """
    if not path:
        return ROOT_FOLDER
    segments = [seg for seg in path.strip().split("/") if seg]
    if not segments:
        return ROOT_FOLDER
    joined = "/".join(segments)
    return ROOT_FOLDER if joined == ROOT_FOLDER else joined


def has_traversal(path: str) -> bool:
    """True when any ``/``-separated segment of *path* is ``..``."""
    return any(seg == ".." for seg in path.split("/"))


def validate_path(path: str) -> tuple[bool, str]:
    """Validate a path for security and compatibility issues.

    Returns:
        (is_valid, error_message) - error_message is empty if valid
    """
    if "\x00" in path:
        return False, "Path contains null bytes"

    for ch in path:
        code = ord(ch)
        if 0x01 <= code <= 0x1F:
            return False, f"Path contains control character: 0x{code:02x}"

    if len(path) > MAX_PATH_LENGTH:
        return False, f"Path too long (max {MAX_PATH_LENGTH} characters)"

    if has_traversal(path):
        return False, f"Path contains '..' segment: {path}"

    return True, ""


def validate_folder(path: str) -> str:
    """Normalize *path* and raise ``InvalidPathError`` if it is unsafe."""
    valid, error = validate_path(path or "")
    if not valid:
        raise InvalidPathError(error)
    return normalize_folder(path)


def validate_name(name: str) -> str:
    """Check a single file name and return it stripped."""
    name = (name or "").strip()
    if not name or name in (".", ".."):
        raise InvalidPathError(f"Invalid file name: {name!r}")
    if "/" in name:
        raise InvalidPathError(f"File name may not contain '/': {name!r}")
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidPathError(f"Filename too long (max {MAX_NAME_LENGTH} characters)")
    valid, error = validate_path(name)
    if not valid:
        raise InvalidPathError(error)
    return name


def make_blob_key(folder: str, name: str) -> str:
    """Compose the blob key for ``(folder, name)``: ``folder/name`` or bare ``name``."""
    return name if folder == ROOT_FOLDER else f"{folder}/{name}"


def split_key(path: str) -> tuple[str, str]:
    """Split a slash path into ``(folder, name)`` at the last slash.

    Examples:
        split_key("photos/sunset.jpg") -> ("photos", "sunset.jpg")
        split_key("notes.txt") -> ("root", "notes.txt")
    """
    idx = path.rfind("/")
    if idx < 0:
        return ROOT_FOLDER, path
    return path[:idx], path[idx + 1 :]


def parent_folder(path: str) -> str:
    """Return the parent of a folder path (``root`` for top-level folders)."""
    if path == ROOT_FOLDER:
        return ROOT_FOLDER
    idx = path.rfind("/")
    return ROOT_FOLDER if idx < 0 else path[:idx]


def folder_basename(path: str) -> str:
    """Last segment of a folder path."""
    return path.rsplit("/", 1)[-1]


def ancestors(path: str) -> list[str]:
    """Return *path* and every ancestor, nearest first, excluding ``root``.

    Examples:
        ancestors("a/b/c") -> ["a/b/c", "a/b", "a"]
        ancestors("root") -> []
    """
    if path == ROOT_FOLDER:
        return []
    parts = path.split("/")
    return ["/".join(parts[:i]) for i in range(len(parts), 0, -1)]


def is_same_or_descendant(path: str, folder: str) -> bool:
    """True when *path* equals *folder* or lies beneath it (segment boundary aware)."""
    if folder == ROOT_FOLDER:
        return True
    return path == folder or path.startswith(folder + "/")


def is_descendant(path: str, folder: str) -> bool:
    """True when *path* lies strictly beneath *folder*."""
    if folder == ROOT_FOLDER:
        return path != ROOT_FOLDER
    return path.startswith(folder + "/")


def replace_prefix(path: str, old: str, new: str) -> str:
    """Swap the *old* folder prefix of *path* for *new*, keeping the suffix verbatim."""
    if path == old:
        return new
    if not path.startswith(old + "/"):
        raise InvalidPathError(f"{path!r} is not under {old!r}")
    return new + path[len(old) :]


def immediate_child(path: str, parent: str) -> str | None:
    """Return the direct child of *parent* on the way to *path*, or ``None``.

    Examples:
        immediate_child("a/b/c", "a") -> "a/b"
        immediate_child("a/b", "root") -> "a"
        immediate_child("x/y", "a") -> None
    """
    if path == ROOT_FOLDER or not is_descendant(path, parent):
        return None
    rest = path if parent == ROOT_FOLDER else path[len(parent) + 1 :]
    head = rest.split("/", 1)[0]
    return head if parent == ROOT_FOLDER else f"{parent}/{head}"


# =============================================================================
# MIME / formatting
# =============================================================================


def guess_mime_type(filename: str) -> str:
    """Guess the MIME type of a file based on its name."""
    ext = PurePosixPath(filename).suffix.lower()
    if ext in MIME_OVERRIDES:
        return MIME_OVERRIDES[ext]
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or "application/octet-stream"


def preview_type(filename: str, mime_type: str) -> str:
    """Category used by the share page to pick a previewer."""
    if mime_type.startswith("image/"):
        return "image"
    if mime_type.startswith("video/"):
        return "video"
    if mime_type.startswith("audio/"):
        return "audio"
    if mime_type == "application/pdf":
        return "pdf"
    if mime_type.startswith("text/"):
        return "text"
    if PurePosixPath(filename).suffix.lower() in CODE_EXTENSIONS:
        return "code"
    return "none"


def format_bytes(size: int) -> str:
    """Human readable size, base 1024.

    Examples:
        format_bytes(0) -> "0 B"
        format_bytes(1536) -> "1.5 KB"
    """
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {units[i]}"


def validate_blob_key(key: str) -> str:
    """Raise ``InvalidPathError`` unless *key* is a usable blob key."""
    if not key or key.startswith("/") or key.endswith("/"):
        raise InvalidPathError(f"Invalid blob key: {key!r}")
    valid, error = validate_path(key)
    if not valid:
        raise InvalidPathError(error)
    return key
