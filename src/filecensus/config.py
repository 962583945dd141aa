from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from .errors import ConfigurationError
from .reachability import DEFAULT_TIMEOUT

PathLike = Union[str, Path]

DEFAULT_THROTTLE = 4
RUN_STAMP_FORMAT = "%Y%m%d_%H%M%S"


@dataclass
class CensusConfig:
    """Options for one census run."""

    roots: List[str]
    throttle: int = DEFAULT_THROTTLE
    include_ext: List[str] = field(default_factory=list)
    echo_to_console: bool = False
    verbose_errors: bool = False
    target_file: Optional[PathLike] = None
    output_dir: PathLike = "census"
    temp_dir: Optional[PathLike] = None
    ignore_file: Optional[PathLike] = None
    probe_timeout: float = DEFAULT_TIMEOUT

    def validate(self) -> "CensusConfig":
        roots = [str(r).strip() for r in self.roots or [] if str(r).strip()]
        if not roots:
            raise ConfigurationError("At least one root path is required.")
        if int(self.throttle) < 1:
            raise ConfigurationError(f"Throttle must be a positive integer, got {self.throttle}.")
        if self.probe_timeout <= 0:
            raise ConfigurationError("Probe timeout must be positive.")
        if self.ignore_file is not None and not Path(self.ignore_file).is_file():
            raise ConfigurationError(f"Ignore file not found: {self.ignore_file}")

        self.roots = roots
        self.throttle = int(self.throttle)
        return self

    def to_dict(self) -> dict:
        return {
            "roots": list(self.roots),
            "throttle": self.throttle,
            "include_ext": list(self.include_ext or []),
            "echo_to_console": self.echo_to_console,
            "verbose_errors": self.verbose_errors,
            "ignore_file": str(self.ignore_file) if self.ignore_file else None,
            "probe_timeout": self.probe_timeout,
        }


@dataclass
class RunContext:
    """
    Directories scoping one invocation.

    ``run_dir`` holds the results (targets, archives, error log, manifest);
    ``temp_dir`` holds worker sinks and error buffers while a root is
    being scanned.
    """

    stamp: str
    run_dir: Path
    temp_dir: Path
    target_file: Path

    @classmethod
    def create(cls, config: CensusConfig, now: Optional[datetime] = None) -> "RunContext":
        stamp = (now or datetime.now()).strftime(RUN_STAMP_FORMAT)

        run_dir = Path(config.output_dir).expanduser().resolve() / stamp
        if config.temp_dir is not None:
            temp_dir = Path(config.temp_dir).expanduser().resolve() / stamp
        else:
            temp_dir = run_dir / "_tmp"

        target_file = (
            Path(config.target_file).expanduser().resolve()
            if config.target_file is not None
            else run_dir / "targets.csv"
        )

        run_dir.mkdir(parents=True, exist_ok=True)
        temp_dir.mkdir(parents=True, exist_ok=True)

        return cls(stamp=stamp, run_dir=run_dir, temp_dir=temp_dir, target_file=target_file)

    @property
    def error_log(self) -> Path:
        return self.run_dir / "errors.log"

    @property
    def manifest(self) -> Path:
        return self.run_dir / "run.json"

    def archive_for(self, tag: str) -> Path:
        return self.run_dir / f"{tag}.zip"

    def teardown(self) -> bool:
        """Remove the temp directory if nothing was left in it."""
        try:
            self.temp_dir.rmdir()
        except OSError:
            return False
        return True
