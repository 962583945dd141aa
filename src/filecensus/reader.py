import csv
import io
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Union

from .models import ARCHIVE_HEADER, FileRecord


@dataclass
class ArchiveSummary:
    archive: str
    rows: int = 0
    total_bytes: int = 0
    largest: Optional[FileRecord] = None


def iter_records(archive: Union[str, Path]) -> Iterator[FileRecord]:
    """
    Stream the FileRecords stored in a census archive.

    Raises
    ------
    ValueError
        If the archive does not hold exactly one entry or the header is
        not ``Root,Path,SizeBytes``.
    """
    with zipfile.ZipFile(archive) as zf:
        names = zf.namelist()
        if len(names) != 1:
            raise ValueError(f"{archive}: expected one entry, found {len(names)}")

        with zf.open(names[0]) as raw:
            text = io.TextIOWrapper(raw, encoding="utf-8", newline="")
            reader = csv.reader(text)

            header = next(reader, None)
            if header is None or ",".join(header) != ARCHIVE_HEADER:
                raise ValueError(f"{archive}: unexpected header {header!r}")

            for root, path, size in reader:
                yield FileRecord(root, path, int(size))


def read_records(archive: Union[str, Path]) -> List[FileRecord]:
    return list(iter_records(archive))


def summarize(archive: Union[str, Path]) -> ArchiveSummary:
    summary = ArchiveSummary(archive=str(archive))

    for record in iter_records(archive):
        summary.rows += 1
        summary.total_bytes += record.size
        if summary.largest is None or record.size > summary.largest.size:
            summary.largest = record

    return summary
