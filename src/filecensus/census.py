import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .assembler import ZipAssembler, discard_sinks
from .config import CensusConfig, RunContext
from .errors import AssemblyError, SinkError
from .filters import build_extension_filter
from .models import Resolution, Root, RootOutcome, Target, WorkerResult
from .reachability import ReachabilityCache
from .resolver import RootResolver
from .utils import load_ignore_spec, root_tag
from .worker import run_pool

logger = logging.getLogger(__name__)


class ErrorLog:
    """
    Run-scoped failure log.

    Lines are only persisted when ``enabled`` (verbose errors); otherwise
    they are counted and dropped.
    """

    def __init__(self, path: Union[str, Path], enabled: bool):
        self.path = Path(path)
        self.enabled = enabled
        self.count = 0

    def append(self, line: str) -> None:
        self.extend([line])

    def extend(self, lines: Iterable[str]) -> None:
        lines = list(lines)
        if not lines:
            return
        self.count += len(lines)
        if not self.enabled:
            return

        stamp = datetime.now().isoformat(timespec="seconds")
        with self.path.open("a", encoding="utf-8", errors="backslashreplace") as f:
            for line in lines:
                f.write(f"{stamp} {line}\n")

    def merge(self, buffers: Iterable[Path]) -> None:
        """Fold worker error buffers into the log, then delete them."""
        for buf in buffers:
            with Path(buf).open("r", encoding="utf-8") as f:
                self.extend(line.rstrip("\n") for line in f if line.strip())
            Path(buf).unlink()


class Census:
    """
    Two-stage file census over a set of roots.

    Stage 1 resolves every root into targets once. Stage 2 runs root by
    root: a worker pool drains the root's targets into private sinks, then
    the sinks are merged into ``<RootTag>.zip``. A failing root never stops
    the run.

    Example
    -------
    >>> config = CensusConfig(roots=["/data"], throttle=8, include_ext=["exe"])
    >>> outcomes = Census(config).run()
    """

    def __init__(
        self,
        config: CensusConfig,
        *,
        reachability: Optional[ReachabilityCache] = None,
        context: Optional[RunContext] = None,
    ):
        self.config = config.validate()
        self.reachability = reachability or ReachabilityCache(timeout=config.probe_timeout)
        self.context = context

        self.extension_filter = build_extension_filter(config.include_ext)
        self.ignore_spec = load_ignore_spec(
            Path(config.ignore_file) if config.ignore_file is not None else None
        )
        self.assembler = ZipAssembler()

        self.resolution: Optional[Resolution] = None
        self.outcomes: List[RootOutcome] = []
        self.errors: Optional[ErrorLog] = None

    # --------
    # public
    # --------

    def run(self) -> List[RootOutcome]:
        if self.context is None:
            self.context = RunContext.create(self.config)
        ctx = self.context

        self.errors = ErrorLog(ctx.error_log, self.config.verbose_errors)
        self.outcomes = []
        self.resolution = None

        print(f"[census] Run directory: {ctx.run_dir}")

        try:
            resolver = RootResolver(
                self.reachability,
                ignore_spec=self.ignore_spec,
                on_error=self.errors.append,
            )
            self.resolution = resolver.resolve(self.config.roots)
            resolver.write_targets(self.resolution, ctx.target_file)

            print(
                f"[census] {len(self.resolution.roots)} root(s), "
                f"{len(self.resolution.targets)} target(s) -> {ctx.target_file}"
            )
            if not self.resolution.roots:
                print("[census] No valid roots were found.")

            for root, targets in self.resolution.roots.items():
                self.outcomes.append(self.scan_root(root, targets))
        finally:
            ctx.teardown()
            self._write_manifest()

        self._print_summary()
        return self.outcomes

    @property
    def found_roots(self) -> bool:
        return bool(self.resolution is not None and self.resolution.roots)

    def scan_root(self, root: Root, targets: List[Target]) -> RootOutcome:
        ctx = self.context
        tag = root_tag(root.resolved)
        archive = ctx.archive_for(tag)
        outcome = RootOutcome(root=root.resolved, tag=tag, targets=len(targets))

        start = time.time()
        results: List[WorkerResult] = []

        try:
            results = run_pool(
                root.resolved,
                targets,
                self.config.throttle,
                ctx.temp_dir,
                tag=tag,
                reachability=self.reachability,
                extension_filter=self.extension_filter,
                ignore_spec=self.ignore_spec,
                echo=self.config.echo_to_console,
            )
            self.errors.merge(r.error_path for r in results if r.error_path)

            parts = [(r.sink_path, r.rows) for r in results if r.sink_path]
            outcome.rows = self.assembler.assemble(archive, f"{tag}.csv", parts)
            outcome.archive = str(archive)
        except (AssemblyError, SinkError, OSError) as exc:
            outcome.status = "failed"
            outcome.error = str(exc)
            self.errors.append(f"[assembly] {root.resolved}: {exc}")
            logger.error("root %s failed: %s", root.resolved, exc)
            self._cleanup_root(tag)
            print(f"[census] FAILED {root.resolved}: {exc}")
            return outcome

        print(
            f"[census] {root.resolved}: {outcome.rows} file(s) -> {archive.name} "
            f"in {time.time() - start:.3f} seconds"
        )
        return outcome

    # ----------------
    # internal logic
    # ----------------

    def _cleanup_root(self, tag: str) -> None:
        temp_dir = self.context.temp_dir
        discard_sinks(temp_dir.glob(f"{tag}_w*.csv"))
        discard_sinks(temp_dir.glob(f"{tag}_w*.err"))

    def _write_manifest(self) -> None:
        ctx = self.context
        res = self.resolution
        data = {
            "run": ctx.stamp,
            "options": self.config.to_dict(),
            "filter": self.extension_filter.kind,
            "targets_file": str(ctx.target_file),
            "targets": len(res.targets) if res is not None else 0,
            "skipped_roots": list(res.skipped) if res is not None else [],
            "errors": self.errors.count,
            "roots": [o.to_dict() for o in self.outcomes],
        }

        with ctx.manifest.open("w", encoding="utf-8", errors="backslashreplace") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    def _print_summary(self) -> None:
        if not self.errors.count:
            print("[census] No errors were logged.")
        elif self.errors.enabled:
            print(f"[census] {self.errors.count} error(s) logged to {self.errors.path}")
        else:
            print(
                f"[census] {self.errors.count} error(s) occurred; "
                "rerun with --verbose-errors to record them."
            )
