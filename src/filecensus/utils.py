import os
import stat
from pathlib import Path
from typing import Iterable, Optional, Tuple

from pathspec import PathSpec

_UNC_PREFIXES = ("\\\\", "//")
_TAG_SEPARATORS = str.maketrans({":": "_", "\\": "_", "/": "_"})


def makedir_exist_ok(path):
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def load_ignore_spec(ignore_file: Optional[Path]):
    if ignore_file is None:
        return None
    patterns = Path(ignore_file).read_text(encoding="utf-8").splitlines()
    ignore_spec = PathSpec.from_lines("gitwildmatch", patterns)
    return ignore_spec


def is_ignored(ignore_spec, root: str, path: str, is_dir: bool) -> bool:
    """Match ``path`` against a gitignore-style spec, relative to ``root``."""
    if ignore_spec is None:
        return False

    try:
        rel = os.path.relpath(path, root)
    except ValueError:
        return False

    if rel == os.curdir or rel.startswith(os.pardir):
        return False

    rel = rel.replace(os.sep, "/")
    if is_dir:
        rel = rel + "/"

    return bool(ignore_spec.match_file(rel))


# =====================================================
# Network paths
# =====================================================

def is_unc(path: str) -> bool:
    return str(path).startswith(_UNC_PREFIXES)


def unc_parts(path: str) -> Tuple[str, ...]:
    """Split ``\\\\host\\share\\sub`` into ``("host", "share", "sub")``."""
    body = str(path)[2:].replace("/", "\\")
    return tuple(p for p in body.split("\\") if p)


def unc_host(path: str) -> Optional[str]:
    parts = unc_parts(path)
    return parts[0] if parts else None


# =====================================================
# Normalization
# =====================================================

def is_utf8_encodable(path: str) -> bool:
    """False for names carrying surrogate escapes from undecodable bytes."""
    try:
        str(path).encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def normalize_root(raw: str) -> str:
    """
    Turn a raw root argument into its absolute form.

    Returns an empty string when nothing usable remains.
    """
    text = str(raw).strip().strip('"').strip()
    if not text:
        return ""

    if is_unc(text):
        parts = unc_parts(text)
        if not parts:
            return ""
        return "\\\\" + "\\".join(parts)

    return str(Path(text).expanduser().resolve())


def root_tag(root: str) -> str:
    """Filesystem-safe name for a root's archive and entry."""
    if is_unc(root):
        return "_".join(("UNC",) + unc_parts(root))

    tag = str(root).translate(_TAG_SEPARATORS).strip("_")
    return tag or "root"


def normalize_extensions(extensions: Optional[Iterable[str]]) -> Tuple[str, ...]:
    """``["EXE", ".txt", "*.log"]`` -> ``("exe", "txt", "log")``, order kept."""
    seen = []
    for ext in extensions or ():
        ext = str(ext).strip().lower()
        if ext.startswith("*"):
            ext = ext[1:]
        ext = ext.lstrip(".")
        if ext and ext not in seen:
            seen.append(ext)
    return tuple(seen)


# =====================================================
# CSV
# =====================================================

def quote_field(value: str) -> str:
    return '"' + str(value).replace('"', '""') + '"'


# =====================================================
# Reparse points
# =====================================================

def is_reparse_point(entry: os.DirEntry) -> bool:
    """
    True for symlinks, and on Windows for any entry carrying the reparse
    point attribute (junctions, mount points).
    """
    if entry.is_symlink():
        return True

    if os.name != "nt":
        return False

    try:
        st = entry.stat(follow_symlinks=False)
    except OSError:
        return False
    return bool(getattr(st, "st_file_attributes", 0) & stat.FILE_ATTRIBUTE_REPARSE_POINT)
