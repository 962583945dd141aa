import os
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Union

from .utils import normalize_extensions


@dataclass(frozen=True)
class NoFilter:
    kind = "none"

    def matches(self, name: str) -> bool:
        return True


@dataclass(frozen=True)
class SingleExtensionSourceFilter:
    """
    One extension, tested on the raw entry name before any stat call.

    ``suffix`` is stored with its dot and lowercased (``".exe"``). A name that
    is nothing but the suffix (``".exe"``) has no extension and is rejected,
    matching what :class:`SetFilter` does through ``os.path.splitext``.
    """

    suffix: str
    kind = "single"

    def matches(self, name: str) -> bool:
        n = len(self.suffix)
        return len(name) > n and name[-n:].lower() == self.suffix


@dataclass(frozen=True)
class SetFilter:
    extensions: FrozenSet[str]
    kind = "set"

    def matches(self, name: str) -> bool:
        ext = os.path.splitext(name)[1]
        return ext[1:].lower() in self.extensions


ExtensionFilter = Union[NoFilter, SingleExtensionSourceFilter, SetFilter]


def build_extension_filter(extensions: Optional[Iterable[str]]) -> ExtensionFilter:
    """Pick the filtering strategy once for the whole run."""
    exts = normalize_extensions(extensions)

    if not exts:
        return NoFilter()
    if len(exts) == 1:
        return SingleExtensionSourceFilter("." + exts[0])
    return SetFilter(frozenset(exts))
