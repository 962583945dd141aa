from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Dict, List, Optional


ARCHIVE_HEADER = "Root,Path,SizeBytes"
TARGETS_HEADER = "Path"


@dataclass(frozen=True)
class Root:
    """
    A user-supplied scan root.

    ``resolved`` is the absolute form used as the root identifier in every
    FileRecord. ``network`` is True for UNC shares.
    """

    raw: str
    resolved: str
    network: bool = False
    host: Optional[str] = None


@dataclass(frozen=True, order=True)
class Target:
    """
    A top-level directory queued for scanning.

    The root itself is queued with ``recursive=False`` so that only the files
    directly inside it are listed; each child directory is its own recursive
    target.
    """

    path: str
    recursive: bool = True


@dataclass(frozen=True)
class FileRecord:
    root: str
    path: str
    size: int


@dataclass(frozen=True)
class WorkerResult:
    """Handoff message from one ScanWorker back to the coordinator."""

    index: int
    sink_path: Optional[Path]
    rows: int
    error_path: Optional[Path]
    items: int = 0


@dataclass
class RootOutcome:
    root: str
    tag: str
    targets: int = 0
    rows: int = 0
    archive: Optional[str] = None
    status: str = "ok"
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Resolution:
    """Stage 1 output: root -> sorted targets, plus the flat audit list."""

    roots: Dict[Root, List[Target]] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)

    @property
    def targets(self) -> List[Target]:
        return sorted({t for ts in self.roots.values() for t in ts})
