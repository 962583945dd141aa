import logging
import os
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

from .models import TARGETS_HEADER, Resolution, Root, Target
from .reachability import ReachabilityCache
from .utils import (
    is_ignored,
    is_reparse_point,
    is_unc,
    is_utf8_encodable,
    makedir_exist_ok,
    normalize_root,
    quote_field,
    unc_host,
)

logger = logging.getLogger(__name__)


def _printable(path: str) -> str:
    return str(path).encode("utf-8", "backslashreplace").decode("utf-8")


class RootResolver:
    """
    Stage 1: turn raw root strings into per-root target lists.

    Each root contributes itself (as a shallow target) and every immediate
    child directory that is not a reparse point. A failing root is skipped
    without affecting the others; when ``on_error`` is given it receives one
    line per skipped root.
    """

    def __init__(
        self,
        reachability: ReachabilityCache,
        *,
        ignore_spec=None,
        on_error: Optional[Callable[[str], None]] = None,
    ):
        self.reachability = reachability
        self.ignore_spec = ignore_spec
        self.on_error = on_error

    # --------
    # public
    # --------

    def resolve(self, raw_roots: Iterable[str]) -> Resolution:
        result = Resolution()
        seen = set()

        for raw in raw_roots:
            root = self._resolve_root(raw, result)
            if root is None or root.resolved in seen:
                continue

            try:
                targets = self._list_targets(root)
            except OSError as exc:
                self._skip(result, raw, f"enumeration failed: {exc}")
                continue

            seen.add(root.resolved)
            result.roots[root] = targets
            logger.info("root %s: %d targets", root.resolved, len(targets))

        return result

    @staticmethod
    def write_targets(resolution: Resolution, path: Union[str, Path]) -> Path:
        """Write the audit list: header ``Path``, one quoted path per line."""
        path = Path(path)
        makedir_exist_ok(path)

        paths = sorted({t.path for t in resolution.targets})

        with path.open("w", encoding="utf-8", newline="") as f:
            f.write(TARGETS_HEADER + "\n")
            for p in paths:
                f.write(quote_field(p) + "\n")
        return path

    # ----------------
    # internal logic
    # ----------------

    def _skip(self, result: Resolution, raw: str, reason: str) -> None:
        result.skipped.append(raw)
        self._report(f"[root] {_printable(raw)}: {reason}")

    def _report(self, line: str) -> None:
        logger.debug(line)
        if self.on_error is not None:
            self.on_error(line)

    def _resolve_root(self, raw: str, result: Resolution) -> Optional[Root]:
        if is_unc(str(raw).strip()):
            host = unc_host(str(raw).strip())
            if host is None or not self.reachability.probe(host):
                self._skip(result, raw, "host unreachable")
                return None
        else:
            host = None

        try:
            resolved = normalize_root(raw)
        except (OSError, RuntimeError) as exc:
            self._skip(result, raw, f"cannot resolve: {exc}")
            return None

        if not resolved:
            self._skip(result, raw, "empty path")
            return None

        if not is_utf8_encodable(resolved):
            self._skip(result, raw, "path is not valid UTF-8")
            return None

        if not os.path.isdir(resolved):
            self._skip(result, raw, "path does not exist")
            return None

        return Root(raw=raw, resolved=resolved, network=host is not None, host=host)

    def _list_targets(self, root: Root) -> List[Target]:
        targets = {Target(root.resolved, recursive=False)}

        with os.scandir(root.resolved) as entries:
            for entry in entries:
                if is_reparse_point(entry):
                    continue
                if not entry.is_dir(follow_symlinks=False):
                    continue
                if is_ignored(self.ignore_spec, root.resolved, entry.path, True):
                    continue
                if not is_utf8_encodable(entry.path):
                    self._report(f"[target] {_printable(entry.path)}: path is not valid UTF-8")
                    continue
                targets.add(Target(entry.path))

        return sorted(targets)
