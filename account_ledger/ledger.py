"""
Ledger Registry Module

The Ledger owns every Account, keyed by identifier, together with the
identifier service that names them. Registry reads and writes are
serialised by one lock; identifier generation has its own lock and is never
called while the registry lock is held.
"""

import logging
import threading
from decimal import Decimal
from typing import Dict, Iterator, Optional

from .accounts import (
    Account, validate_phone, DEFAULT_ANNUAL_RATE, DEFAULT_DAYS_PER_YEAR, DEFAULT_INTEREST_PLACES
)
from .amounts import ZERO
from .audit import AuditTrail, AuditEventType
from .errors import LedgerIntegrityError
from .identifiers import IdentifierService
from .logging_config import log_action

logger = logging.getLogger(__name__)


class Ledger:
    """
    Registry of accounts with create/lookup/delete/list and the daily
    interest sweep
    """
    
    def __init__(
        self,
        identifiers: Optional[IdentifierService] = None,
        audit_trail: Optional[AuditTrail] = None,
        annual_rate: Decimal = DEFAULT_ANNUAL_RATE,
        days_per_year: int = DEFAULT_DAYS_PER_YEAR,
        interest_places: int = DEFAULT_INTEREST_PLACES
    ):
        self._accounts: Dict[str, Account] = {}
        self._lock = threading.RLock()
        self.identifiers = identifiers or IdentifierService()
        if not self.identifiers.has_collision_check:
            self.identifiers.set_collision_check(self.__contains__)
        self.audit_trail = audit_trail
        self.annual_rate = annual_rate
        self.days_per_year = days_per_year
        self.interest_places = interest_places
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)
    
    def __contains__(self, identifier: str) -> bool:
        with self._lock:
            return identifier in self._accounts
    
    def reserve_identifier(self) -> str:
        """Issue an identifier now for an account that may be registered later"""
        return self.identifiers.next_identifier()
    
    def create(self, name: str, phone: str, secret: str) -> Account:
        """
        Create and register a new account with zero balance
        
        Raises:
            InvalidPhone: phone is not exactly 11 digits; no identifier is consumed
        """
        validate_phone(phone)
        identifier = self.identifiers.next_identifier()
        return self._register(identifier, name, phone, secret)
    
    def materialize(self, identifier: str, name: str, phone: str, secret: str) -> Account:
        """
        Register an account under a previously reserved identifier
        
        Raises:
            InvalidPhone: phone is not exactly 11 digits
            LedgerIntegrityError: identifier was not issued here or is already registered
        """
        validate_phone(phone)
        self.identifiers.require_issued(identifier)
        return self._register(identifier, name, phone, secret)
    
    def _register(self, identifier: str, name: str, phone: str, secret: str) -> Account:
        account = Account(
            identifier=identifier,
            name=name,
            phone=phone,
            secret=secret,
            audit_trail=self.audit_trail,
            interest_places=self.interest_places
        )
        with self._lock:
            if identifier in self._accounts:
                raise LedgerIntegrityError(f"Account {identifier} is already registered")
            self._accounts[identifier] = account
        
        log_action(logger, "info", f"Account {identifier} created",
                   action="create_account", resource=identifier)
        if self.audit_trail:
            self.audit_trail.log_event(
                event_type=AuditEventType.ACCOUNT_CREATED,
                entity_type="account",
                entity_id=identifier,
                metadata={'name': name}
            )
        return account
    
    def lookup(self, identifier: str) -> Optional[Account]:
        with self._lock:
            return self._accounts.get(identifier)
    
    def authenticate(self, identifier: str, secret: str) -> Optional[Account]:
        """Return the account if the identifier exists and the secret matches"""
        account = self.lookup(identifier)
        if account and account.verify_credential(secret):
            return account
        return None
    
    def delete(self, identifier: str) -> bool:
        """
        Remove an account from the registry
        
        Other accounts' histories (e.g. transfer counterparts) are untouched
        and the identifier is never issued again.
        """
        with self._lock:
            account = self._accounts.pop(identifier, None)
        if account is None:
            return False
        
        log_action(logger, "info", f"Account {identifier} deleted",
                   action="delete_account", resource=identifier)
        if self.audit_trail:
            self.audit_trail.log_event(
                event_type=AuditEventType.ACCOUNT_DELETED,
                entity_type="account",
                entity_id=identifier,
                metadata={'final_balance': account.balance}
            )
        return True
    
    def list_all(self) -> Iterator[Account]:
        """Iterate a snapshot of the registry in identifier issue order"""
        with self._lock:
            snapshot = list(self._accounts.values())
        yield from snapshot
    
    def transfer(self, source_id: str, target_id: str, amount) -> bool:
        """
        Resolve both identifiers and transfer between them
        
        Returns False when either account is missing, on a self-transfer or
        on insufficient funds.
        """
        source = self.lookup(source_id)
        target = self.lookup(target_id)
        if source is None or target is None:
            logger.info(f"Transfer {source_id} -> {target_id} rejected: account not found",
                        extra={'action': 'transfer', 'resource': source_id})
            return False
        return source.transfer(target, amount)
    
    def apply_interest_to_all(self) -> int:
        """
        Accrue one day of interest on every registered account
        
        Returns:
            Number of accounts credited
        """
        count = 0
        total = ZERO
        for account in self.list_all():
            record = account.apply_interest(self.annual_rate, self.days_per_year, self.interest_places)
            total += record.amount
            count += 1
        
        log_action(logger, "info", f"Interest applied to {count} accounts",
                   action="apply_interest", extra={'total_interest': str(total)})
        if self.audit_trail:
            self.audit_trail.log_event(
                event_type=AuditEventType.INTEREST_SWEEP,
                entity_type="ledger",
                entity_id="all",
                metadata={'accounts': count, 'total_interest': total}
            )
        return count
    
    def total_balance(self) -> Decimal:
        return sum((account.balance for account in self.list_all()), ZERO)
