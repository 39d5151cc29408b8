import threading
from typing import Iterable


class PoolIdentitySet:
    """Pool addresses already known to the store, shared by all scan tasks.

    Seeded from the store at run start and grown as pools are accepted.
    Pools rejected for low liquidity are never added, so a later run with a
    lower threshold can reconsider them.
    """

    def __init__(self, addresses: Iterable[str] = ()):
        self._lock = threading.Lock()
        self._addresses = {a.lower() for a in addresses}

    def __contains__(self, address: str) -> bool:
        with self._lock:
            return address.lower() in self._addresses

    def __len__(self) -> int:
        with self._lock:
            return len(self._addresses)

    def add(self, address: str) -> None:
        with self._lock:
            self._addresses.add(address.lower())
