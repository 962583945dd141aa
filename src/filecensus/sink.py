import csv
import logging
from pathlib import Path
from typing import Optional, Union

from .errors import SinkError
from .models import FileRecord

logger = logging.getLogger(__name__)

SINK_BUFFER_SIZE = 64 * 1024


class TempSink:
    """
    Append-only CSV row store owned by a single worker.

    Rows are written as ``"root","path",size`` (strings quoted, quotes
    doubled, size bare) in UTF-8 without a BOM through a 64 KB buffer.
    Use as a context manager: the buffer is flushed and the handle released
    on every exit path, and an empty sink deletes its file.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.rows = 0
        self._handle = None
        self._writer = None

    # --------
    # public
    # --------

    def open(self) -> "TempSink":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._handle = self.path.open(
            "w",
            encoding="utf-8",
            newline="",
            buffering=SINK_BUFFER_SIZE,
        )
        self._writer = csv.writer(
            self._handle,
            quoting=csv.QUOTE_NONNUMERIC,
            lineterminator="\n",
        )
        return self

    def append(self, record: FileRecord) -> None:
        if self._writer is None:
            raise RuntimeError("Sink is not open. Call open() first.")
        try:
            self._writer.writerow([record.root, record.path, int(record.size)])
        except OSError as exc:
            raise SinkError(self.path, exc) from exc
        self.rows += 1

    def close(self) -> Optional[Path]:
        """
        Flush and release the handle.

        Returns the sink path when it holds at least one row; an empty sink
        is removed and ``None`` is returned.
        """
        handle, self._handle, self._writer = self._handle, None, None
        if handle is not None:
            handle.close()

        if self.rows:
            return self.path

        self.discard()
        return None

    def discard(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    # ----------------
    # context manager
    # ----------------

    def __enter__(self) -> "TempSink":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._handle is not None:
            try:
                self.close()
            except OSError:
                if exc_type is None:
                    raise
                logger.debug("closing sink %s after failure", self.path, exc_info=True)
