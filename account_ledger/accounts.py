"""
Account Module

Accounts hold identity, credentials, a non-negative balance and an
append-only transaction history. Every balance change goes through
Account._post, which applies the signed amount and appends exactly one
TransactionRecord for it. Each account serialises its own mutations with
a re-entrant lock; transfers hold both accounts' locks, taken in
identifier order.
"""

import hmac
import logging
import re
import threading
from decimal import Decimal
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from .amounts import ZERO, quantize, require_positive, to_decimal
from .audit import AuditTrail, AuditEventType
from .errors import InvalidPhone, LedgerIntegrityError
from .transactions import (
    TransactionRecord, ACCOUNT_CREATED, DEPOSIT, WITHDRAWAL, INTEREST,
    DEFAULT_DESCRIPTION_WIDTH, transfer_to, transfer_from
)

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"[0-9]{11}")

DEFAULT_ANNUAL_RATE = Decimal("0.05")
DEFAULT_DAYS_PER_YEAR = 365
# Decimal places interest is rounded to before posting
DEFAULT_INTEREST_PLACES = 8


def is_valid_phone(phone: str) -> bool:
    return isinstance(phone, str) and PHONE_PATTERN.fullmatch(phone) is not None


def validate_phone(phone: str) -> str:
    """Return the phone unchanged, or raise InvalidPhone"""
    if not is_valid_phone(phone):
        raise InvalidPhone(phone)
    return phone


class AccountStatement:
    """
    Read-only view of an account's history.
    Each iteration starts from the first record and walks a snapshot taken
    when that iteration begins.
    """
    
    def __init__(self, account: 'Account'):
        self._account = account
    
    def __iter__(self) -> Iterator[TransactionRecord]:
        with self._account._lock:
            snapshot = tuple(self._account._history)
        yield from snapshot
    
    def __len__(self) -> int:
        with self._account._lock:
            return len(self._account._history)
    
    def lines(self, width: int = DEFAULT_DESCRIPTION_WIDTH) -> Iterator[str]:
        for record in self:
            yield record.format_line(width)


class Account:
    """
    Credentialed balance holder with an immutable transaction history

    The identifier is fixed at construction; the ledger registry keys on it.
    """

    def __init__(
        self,
        identifier: str,
        name: str,
        phone: str,
        secret: str,
        audit_trail: Optional[AuditTrail] = None,
        created_at: Optional[datetime] = None,
        interest_places: int = DEFAULT_INTEREST_PLACES
    ):
        validate_phone(phone)
        self._identifier = identifier
        self.name = name
        self.phone = phone
        self.secret = secret
        self.audit_trail = audit_trail
        self.created_at = created_at or datetime.now(timezone.utc)
        self.interest_places = interest_places
        self._balance = ZERO
        self._lock = threading.RLock()
        # Every account starts with a zero-amount creation record
        self._history: List[TransactionRecord] = [
            TransactionRecord(ACCOUNT_CREATED, ZERO, self.created_at)
        ]

    def __repr__(self) -> str:
        return f"Account(identifier={self._identifier!r}, name={self.name!r}, phone={self.phone!r})"

    @property
    def identifier(self) -> str:
        return self._identifier

    @property
    def balance(self) -> Decimal:
        with self._lock:
            return self._balance
    
    @property
    def history(self) -> tuple:
        with self._lock:
            return tuple(self._history)
    
    def verify_credential(self, secret: str) -> bool:
        """Compare a supplied secret against the stored one"""
        if not isinstance(secret, str):
            return False
        return hmac.compare_digest(self.secret.encode("utf-8"), secret.encode("utf-8"))
    
    def _post(self, amount: Decimal, description: str) -> TransactionRecord:
        """
        Apply a signed balance change and append its record.
        Caller must hold self._lock. Only Account methods call this, including
        the counterpart side of a transfer.

        The record carries the change actually applied to the balance, which
        differs from `amount` only if the sum had to be rounded to the decimal
        context precision.
        """
        new_balance = self._balance + amount
        if new_balance < ZERO:
            raise LedgerIntegrityError(
                f"Posting {amount} to {self.identifier} would leave a negative balance"
            )
        record = TransactionRecord(description, new_balance - self._balance)
        self._balance = new_balance
        self._history.append(record)
        return record
    
    def _audit(self, event_type: AuditEventType, metadata: Dict[str, Any],
               user_id: Optional[str] = None) -> None:
        if self.audit_trail:
            self.audit_trail.log_event(
                event_type=event_type,
                entity_type="account",
                entity_id=self.identifier,
                metadata=metadata,
                user_id=user_id or self.identifier
            )
    
    def deposit(self, amount) -> TransactionRecord:
        """
        Credit the account
        
        Raises:
            InvalidAmount: amount is not strictly positive
        """
        amount = require_positive(amount)
        with self._lock:
            record = self._post(amount, DEPOSIT)
            balance = self._balance
        
        logger.debug(f"Deposited {amount} to {self.identifier}",
                     extra={'action': 'deposit', 'resource': self.identifier})
        self._audit(AuditEventType.DEPOSIT, {'amount': amount, 'balance': balance})
        return record
    
    def withdraw(self, amount) -> bool:
        """
        Debit the account if funds allow
        
        Returns:
            True on success; False on insufficient funds, in which case
            neither balance nor history changes
        
        Raises:
            InvalidAmount: amount is not strictly positive
        """
        amount = require_positive(amount)
        with self._lock:
            if self._balance < amount:
                available = self._balance
                record = None
            else:
                record = self._post(-amount, WITHDRAWAL)
                available = self._balance
        
        if record is None:
            logger.info(f"Withdrawal of {amount} from {self.identifier} rejected: insufficient funds",
                        extra={'action': 'withdraw', 'resource': self.identifier})
            return False
        
        logger.debug(f"Withdrew {amount} from {self.identifier}",
                     extra={'action': 'withdraw', 'resource': self.identifier})
        self._audit(AuditEventType.WITHDRAWAL, {'amount': amount, 'balance': available})
        return True
    
    def transfer(self, other: 'Account', amount) -> bool:
        """
        Move funds to another account in one atomic step
        
        Both locks are held, in identifier order, while the debit and the
        credit are posted, so no other operation can observe one without
        the other.
        
        Returns:
            True on success; False for a self-transfer or insufficient funds
        
        Raises:
            InvalidAmount: amount is not strictly positive
        """
        amount = require_positive(amount)
        if other is self or other.identifier == self.identifier:
            logger.info(f"Transfer from {self.identifier} to itself rejected",
                        extra={'action': 'transfer', 'resource': self.identifier})
            return False
        
        first, second = sorted((self, other), key=lambda account: account.identifier)
        with first._lock, second._lock:
            if self._balance < amount:
                completed = False
            else:
                self._post(-amount, transfer_to(other.identifier))
                other._post(amount, transfer_from(self.identifier))
                completed = True
        
        if not completed:
            logger.info(f"Transfer of {amount} from {self.identifier} to {other.identifier} "
                        f"rejected: insufficient funds",
                        extra={'action': 'transfer', 'resource': self.identifier})
            return False
        
        logger.debug(f"Transferred {amount} from {self.identifier} to {other.identifier}",
                     extra={'action': 'transfer', 'resource': self.identifier})
        self._audit(AuditEventType.TRANSFER, {'amount': -amount, 'to_account_id': other.identifier})
        other._audit(AuditEventType.TRANSFER, {'amount': amount, 'from_account_id': self.identifier},
                     user_id=self.identifier)
        return True
    
    def apply_interest(self, annual_rate=None,
                       days_per_year: int = DEFAULT_DAYS_PER_YEAR,
                       places: Optional[int] = None) -> TransactionRecord:
        """
        Accrue one day of simple interest: balance * (annual_rate / days_per_year),
        rounded half-up to `places` decimal places (default: the account's
        interest_places) before it is posted
        
        A zero balance still appends a zero-amount INTEREST record.
        """
        rate = DEFAULT_ANNUAL_RATE if annual_rate is None else to_decimal(annual_rate)
        daily_rate = rate / Decimal(days_per_year)
        places = self.interest_places if places is None else places
        with self._lock:
            interest = quantize(self._balance * daily_rate, places)
            record = self._post(interest, INTEREST)
        
        self._audit(AuditEventType.INTEREST_POSTED, {'amount': record.amount, 'daily_rate': daily_rate})
        return record
    
    def statement(self) -> AccountStatement:
        return AccountStatement(self)
    
    def statement_lines(self, width: int = DEFAULT_DESCRIPTION_WIDTH) -> Iterator[str]:
        return self.statement().lines(width)
    
    def to_dict(self) -> Dict[str, Any]:
        """Presentation summary; the secret is never included"""
        with self._lock:
            return {
                'identifier': self.identifier,
                'name': self.name,
                'phone': self.phone,
                'balance': str(self._balance),
                'transaction_count': len(self._history),
                'created_at': self.created_at.isoformat(),
            }
