class CensusError(Exception):
    """Base class for all census failures."""


class ConfigurationError(CensusError):
    """Invalid run configuration (no usable roots, bad throttle)."""


class AssemblyError(CensusError):
    """
    Stage 2 failed to write a root's archive.

    Fatal for the root being assembled; the run moves on to the next root.
    """

    def __init__(self, archive, cause: Exception):
        self.archive = archive
        self.cause = cause
        super().__init__(f"failed to assemble {archive}: {cause}")


class SinkError(CensusError):
    """A worker could not write to its temp sink."""

    def __init__(self, path, cause: Exception):
        self.path = path
        self.cause = cause
        super().__init__(f"failed to write sink {path}: {cause}")
