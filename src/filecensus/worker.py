import logging
import os
import queue
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional

from .filters import ExtensionFilter, NoFilter
from .models import FileRecord, Target, WorkerResult
from .reachability import ReachabilityCache
from .sink import TempSink
from .utils import is_ignored, is_reparse_point, is_unc

logger = logging.getLogger(__name__)


class WorkQueue:
    """
    Closed FIFO of targets for one root.

    Every target is enqueued at construction; there is no ``put`` afterwards.
    ``take`` is atomic, so each target goes to exactly one caller.
    """

    def __init__(self, targets: Iterable[Target]):
        self._queue: "queue.SimpleQueue[Target]" = queue.SimpleQueue()
        self.total = 0
        for target in targets:
            self._queue.put(target)
            self.total += 1

    def take(self) -> Optional[Target]:
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def empty(self) -> bool:
        return self._queue.empty()

    def __len__(self) -> int:
        return self._queue.qsize()


class ScanWorker:
    """
    Drains a WorkQueue into a private TempSink.

    Failures are handled per directory and per entry: the failing path and
    reason go to a worker-local error buffer and the walk carries on with
    the remaining entries. Only sink I/O failures escape :meth:`run`, as
    :class:`~filecensus.errors.SinkError` or ``OSError``.
    """

    def __init__(
        self,
        index: int,
        root: str,
        work: WorkQueue,
        sink_path: Path,
        error_path: Path,
        *,
        reachability: ReachabilityCache,
        extension_filter: ExtensionFilter = NoFilter(),
        ignore_spec=None,
        echo: bool = False,
    ):
        self.index = index
        self.root = root
        self.work = work
        self.sink_path = Path(sink_path)
        self.error_path = Path(error_path)
        self.reachability = reachability
        self.extension_filter = extension_filter
        self.ignore_spec = ignore_spec
        self.echo = echo

        self.errors: List[str] = []
        self.items = 0

    # --------
    # public
    # --------

    def run(self) -> WorkerResult:
        with TempSink(self.sink_path) as sink:
            while True:
                target = self.work.take()
                if target is None:
                    break
                self.items += 1
                self._scan_target(target, sink)

            rows = sink.rows
            sink_path = sink.close()

        return WorkerResult(
            index=self.index,
            sink_path=sink_path,
            rows=rows,
            error_path=self._flush_errors(),
            items=self.items,
        )

    # ----------------
    # internal logic
    # ----------------

    def _record_error(self, path: str, exc) -> None:
        line = f"[subtree] {path}: {exc}"
        self.errors.append(line)
        logger.debug("worker %d: %s", self.index, line)

    def _flush_errors(self) -> Optional[Path]:
        if not self.errors:
            return None

        self.error_path.parent.mkdir(parents=True, exist_ok=True)
        with self.error_path.open("w", encoding="utf-8", errors="backslashreplace") as f:
            for line in self.errors:
                f.write(line + "\n")
        return self.error_path

    def _scan_target(self, target: Target, sink: TempSink) -> None:
        if is_unc(target.path) and not self.reachability.is_reachable(target.path):
            self._record_error(target.path, "host unreachable")
            return

        if not os.path.isdir(target.path):
            self._record_error(target.path, "target no longer exists")
            return

        self._walk(target, sink)

    def _walk(self, target: Target, sink: TempSink) -> None:
        matches = self.extension_filter.matches
        stack = [target.path]

        while stack:
            current = stack.pop()
            try:
                with os.scandir(current) as entries:
                    for entry in entries:
                        try:
                            self._visit(entry, target, stack, matches, sink)
                        except OSError as exc:
                            self._record_error(entry.path, exc)
            except OSError as exc:
                self._record_error(current, exc)

    def _visit(
        self,
        entry: os.DirEntry,
        target: Target,
        stack: List[str],
        matches,
        sink: TempSink,
    ) -> None:
        if is_reparse_point(entry):
            return

        if entry.is_dir(follow_symlinks=False):
            if target.recursive and not self._ignored(entry.path, True):
                stack.append(entry.path)
            return

        if not matches(entry.name):
            return
        if self._ignored(entry.path, False):
            return

        self._emit(entry, sink)

    def _emit(self, entry: os.DirEntry, sink: TempSink) -> None:
        try:
            size = entry.stat(follow_symlinks=False).st_size
        except OSError as exc:
            self._record_error(entry.path, exc)
            return

        try:
            sink.append(FileRecord(self.root, entry.path, size))
        except UnicodeEncodeError as exc:
            # undecodable name bytes surfaced as surrogates
            self._record_error(entry.path.encode("utf-8", "replace").decode("utf-8"), exc)
            return

        if self.echo:
            print(entry.path)

    def _ignored(self, path: str, is_dir: bool) -> bool:
        return is_ignored(self.ignore_spec, self.root, path, is_dir)


def run_pool(
    root: str,
    targets: Iterable[Target],
    throttle: int,
    temp_dir: Path,
    *,
    tag: str,
    reachability: ReachabilityCache,
    extension_filter: ExtensionFilter = NoFilter(),
    ignore_spec=None,
    echo: bool = False,
) -> List[WorkerResult]:
    """
    Scan all of a root's targets with ``throttle`` workers.

    Results come back through the executor's futures in worker order. An
    exception raised inside any worker (sink I/O) is re-raised here after
    the whole pool has stopped.
    """
    work = WorkQueue(targets)
    temp_dir = Path(temp_dir)

    workers = [
        ScanWorker(
            i,
            root,
            work,
            temp_dir / f"{tag}_w{i:03d}.csv",
            temp_dir / f"{tag}_w{i:03d}.err",
            reachability=reachability,
            extension_filter=extension_filter,
            ignore_spec=ignore_spec,
            echo=echo,
        )
        for i in range(throttle)
    ]

    logger.info("scanning %s: %d targets, %d workers", root, work.total, throttle)

    with ThreadPoolExecutor(max_workers=throttle, thread_name_prefix="census") as pool:
        futures = [pool.submit(w.run) for w in workers]

    return [f.result() for f in futures]
