"""Path resolution and sensitive-location checks shared by the filesystem tools."""

from pathlib import Path, PurePath

FORBIDDEN_EXTENSIONS = (
    ".env",
    ".pem",
    ".key",
    ".crt",
    ".p12",
    ".pfx",
    ".passwd",
    ".password",
    ".secret",
    ".credentials",
)

# Project metadata that may be edited but never deleted
PROTECTED_FILE_NAMES = (
    ".git",
    ".gitignore",
    ".npmrc",
    ".yarnrc",
    "package.json",
    "package-lock.json",
    "yarn.lock",
    "tsconfig.json",
)

FORBIDDEN_DIRS = (
    "/etc",
    "/var",
    "/usr",
    "/boot",
    "/root",
    "/sys",
    "/proc",
    "C:\\Windows",
    "C:\\Program Files",
    "C:\\Program Files (x86)",
)

PROTECTED_DIR_NAMES = (".git", "node_modules")


def resolve_path(raw: str, base_path: Path | str | None = None) -> Path:
    """Resolve a user or model supplied path against the runtime base path."""
    path = Path(str(raw)).expanduser()
    if not path.is_absolute():
        path = Path(base_path or Path.cwd()) / path
    return path.resolve()


def _suffix(path: PurePath) -> str:
    # Path(".env").suffix is empty; dotfiles count as their own extension
    name = path.name.lower()
    if name.startswith(".") and name.count(".") == 1:
        return name
    return path.suffix.lower()


def _forbidden_dir(path: Path) -> str | None:
    for raw in FORBIDDEN_DIRS:
        root = Path(raw)
        if not root.is_absolute():
            continue
        if path == root or root in path.parents:
            return raw
    return None


def check_access(path: Path, verb: str) -> str | None:
    """Return an error message when ``path`` must not be touched, else None.

    Args:
        path: Resolved path
        verb: Action for the message, e.g. ``read`` or ``write to``
    """
    ext = _suffix(path)
    if ext in FORBIDDEN_EXTENSIONS:
        return f"Cannot {verb} {ext} files for security reasons"
    directory = _forbidden_dir(path)
    if directory:
        return f"Cannot {verb} files in {directory} for security reasons"
    return None


def check_delete(path: Path) -> str | None:
    """Like ``check_access`` with the extra protections for deletion."""
    if _suffix(path) in FORBIDDEN_EXTENSIONS or path.name.lower() in PROTECTED_FILE_NAMES:
        return f"Cannot delete {path} - protected file type"
    directory = _forbidden_dir(path)
    if directory:
        return f"Cannot delete files in {directory} for security reasons"
    for name in PROTECTED_DIR_NAMES:
        if name in path.parts[:-1]:
            return f"Cannot delete files in {name} for security reasons"
    return None
