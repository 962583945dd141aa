import logging
import shutil
import zipfile
from pathlib import Path
from typing import Iterable, Sequence, Tuple, Union

from .errors import AssemblyError
from .models import ARCHIVE_HEADER

logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024

SinkPart = Tuple[Path, int]


class ZipAssembler:
    """
    Stage 2: merge a root's sinks into ``<tag>.zip`` holding ``<tag>.csv``.

    Each sink is streamed into the deflated entry chunk by chunk, so memory
    stays flat regardless of row count. Sinks are concatenated in the order
    given; nothing is sorted.
    """

    def __init__(self, header: str = ARCHIVE_HEADER):
        self.header = header

    def assemble(
        self,
        archive: Union[str, Path],
        entry_name: str,
        parts: Sequence[SinkPart],
    ) -> int:
        """
        Write the archive and delete the sinks.

        Parameters
        ----------
        archive : str | pathlib.Path
            Destination ``.zip``; an existing file is replaced.
        entry_name : str
            Name of the single CSV entry inside the archive.
        parts : sequence of (path, rows)
            Non-empty sink files with the row count their worker reported.

        Returns
        -------
        int
            Data rows written, header excluded.

        Raises
        ------
        AssemblyError
            If any layer (file, archive, entry) fails to open, write or
            close. The partial archive is removed; sinks are left in place
            for the caller to clean up.
        """
        archive = Path(archive)
        archive.parent.mkdir(parents=True, exist_ok=True)

        try:
            if archive.exists():
                archive.unlink()

            with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                with zf.open(entry_name, "w", force_zip64=True) as entry:
                    entry.write((self.header + "\n").encode("utf-8"))
                    for path, _ in parts:
                        with Path(path).open("rb") as src:
                            shutil.copyfileobj(src, entry, COPY_CHUNK_SIZE)
        except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
            self._remove_partial(archive)
            raise AssemblyError(archive, exc) from exc

        rows = sum(n for _, n in parts)
        discard_sinks(path for path, _ in parts)

        logger.info("assembled %s: %d rows from %d sinks", archive, rows, len(parts))
        return rows

    @staticmethod
    def _remove_partial(archive: Path) -> None:
        try:
            archive.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("could not remove partial archive %s", archive, exc_info=True)


def discard_sinks(paths: Iterable[Union[str, Path]]) -> None:
    for path in paths:
        try:
            Path(path).unlink()
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("could not remove sink %s", path, exc_info=True)
