"""
Account Identifier Service

Single source of account identifiers for both the ledger registry and the
account request queue. Identifiers are issued from a monotonic counter and
are never reused; gaps are allowed (a reserved identifier whose request is
denied is simply never registered).
"""

import threading
from typing import Callable, Optional, Set

from .errors import LedgerIntegrityError


class IdentifierService:
    """
    Thread-safe monotonic identifier generator
    
    Args:
        prefix: Text placed before the counter value, e.g. "ACC"
        start: First counter value issued
        is_taken: Optional collision check, consulted for every candidate
    """
    
    def __init__(self, prefix: str = "ACC", start: int = 1001,
                 is_taken: Optional[Callable[[str], bool]] = None):
        self.prefix = prefix
        self._next = start
        self._issued: Set[str] = set()
        self._is_taken = is_taken
        self._lock = threading.Lock()
    
    @property
    def has_collision_check(self) -> bool:
        return self._is_taken is not None
    
    def set_collision_check(self, is_taken: Callable[[str], bool]) -> None:
        with self._lock:
            self._is_taken = is_taken
    
    def format(self, number: int) -> str:
        return f"{self.prefix}{number}"
    
    def next_identifier(self) -> str:
        """Issue the next unused identifier"""
        with self._lock:
            while True:
                candidate = self.format(self._next)
                self._next += 1
                if candidate in self._issued:
                    continue
                if self._is_taken and self._is_taken(candidate):
                    continue
                self._issued.add(candidate)
                return candidate
    
    def was_issued(self, identifier: str) -> bool:
        with self._lock:
            return identifier in self._issued
    
    def require_issued(self, identifier: str) -> None:
        """Fail hard if an identifier did not come from this service"""
        if not self.was_issued(identifier):
            raise LedgerIntegrityError(f"Identifier {identifier!r} was never issued by this ledger")
    
    @property
    def issued_count(self) -> int:
        with self._lock:
            return len(self._issued)
