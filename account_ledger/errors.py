"""
Ledger Error Types

Business-rule failures are local and non-fatal: they leave every account,
registry and request exactly as they were before the call.
LedgerIntegrityError is the only fatal condition.
"""

from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base class for all ledger errors"""
    pass


class InvalidPhone(LedgerError, ValueError):
    """Phone number does not match the 11-digit pattern"""
    
    def __init__(self, phone: str):
        self.phone = phone
        super().__init__(f"Invalid phone number {phone!r}: expected exactly 11 digits")


class InvalidAmount(LedgerError, ValueError):
    """Amount is not a positive decimal value"""
    
    def __init__(self, amount, reason: str = "Amount must be positive"):
        self.amount = amount
        super().__init__(f"{reason}: {amount!r}")


class InsufficientFunds(LedgerError):
    """Requested debit exceeds the available balance"""
    
    def __init__(self, account_id: str, balance: Decimal, requested: Decimal):
        self.account_id = account_id
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"Insufficient funds in {account_id}: available {balance}, requested {requested}"
        )


class SelfTransfer(LedgerError):
    """Transfer source and target are the same account"""
    
    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Cannot transfer from account {account_id} to itself")


class AlreadyResolved(LedgerError):
    """Approve or deny called on a request that is no longer pending"""
    
    def __init__(self, target_id: str, status: Optional[str] = None):
        self.target_id = target_id
        self.status = status
        super().__init__(f"Account request {target_id} is already {status or 'resolved'}")


class LedgerIntegrityError(LedgerError):
    """Registry or identifier state is corrupt (programmer error)"""
    pass
