import logging
import socket
from typing import Callable, Dict, Optional

from .utils import is_unc, unc_host

logger = logging.getLogger(__name__)

SMB_PORT = 445
DEFAULT_TIMEOUT = 1.0


def tcp_probe(host: str, port: int = SMB_PORT, timeout: float = DEFAULT_TIMEOUT) -> bool:
    """
    Single TCP connect attempt against ``host:port``.

    Hosts that cannot be encoded for DNS (IDNA label too long, bad
    characters) count as unreachable.
    """
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except (OSError, UnicodeError) as exc:
        logger.debug("probe %s:%d failed: %s", host, port, exc)
        return False


class ReachabilityCache:
    """
    Per-run memo of host reachability, shared by the resolver and all
    scan workers.

    Lookups and stores are single dict operations, so no lock is taken.
    Two threads asking about the same unseen host at the same moment may
    both probe it; the last store wins. The probe is idempotent within a
    run, so both stores carry the same value and nothing is corrupted.
    Entries never expire.
    """

    def __init__(
        self,
        probe: Optional[Callable[[str], bool]] = None,
        *,
        port: int = SMB_PORT,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.port = port
        self.timeout = timeout
        self._probe = probe
        self._hosts: Dict[str, bool] = {}

    def probe(self, host: str) -> bool:
        key = host.lower()
        cached = self._hosts.get(key)
        if cached is not None:
            return cached

        if self._probe is not None:
            reachable = bool(self._probe(host))
        else:
            reachable = tcp_probe(host, self.port, self.timeout)

        self._hosts[key] = reachable
        logger.debug("host %s reachable=%s", host, reachable)
        return reachable

    def is_reachable(self, path: str) -> bool:
        """Local paths are always reachable and never touch the cache."""
        if not is_unc(path):
            return True

        host = unc_host(path)
        if host is None:
            return False
        return self.probe(host)

    def __contains__(self, host: str) -> bool:
        return host.lower() in self._hosts

    def __len__(self) -> int:
        return len(self._hosts)
