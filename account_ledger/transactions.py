"""
Transaction Record Module

Immutable, timestamped, signed-amount entries that make up an account's
history. Positive amounts are credits, negative amounts are debits.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict

from .amounts import ZERO, format_signed


# Record descriptions
ACCOUNT_CREATED = "ACCOUNT CREATED"
DEPOSIT = "DEPOSIT"
WITHDRAWAL = "WITHDRAWAL"
INTEREST = "INTEREST"
TRANSFER_TO_PREFIX = "TRANSFER_TO:"
TRANSFER_FROM_PREFIX = "TRANSFER_FROM:"

DEFAULT_DESCRIPTION_WIDTH = 26


def transfer_to(account_id: str) -> str:
    return f"{TRANSFER_TO_PREFIX}{account_id}"


def transfer_from(account_id: str) -> str:
    return f"{TRANSFER_FROM_PREFIX}{account_id}"


@dataclass(frozen=True)
class TransactionRecord:
    """
    One balance change on one account.
    Frozen: records are never edited once appended to a history.
    """
    description: str
    amount: Decimal
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    
    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))
    
    @property
    def is_credit(self) -> bool:
        return self.amount > ZERO
    
    @property
    def is_debit(self) -> bool:
        return self.amount < ZERO
    
    @property
    def counterpart_id(self):
        """Counterpart account identifier for transfer records, else None"""
        for prefix in (TRANSFER_TO_PREFIX, TRANSFER_FROM_PREFIX):
            if self.description.startswith(prefix):
                return self.description[len(prefix):]
        return None
    
    def format_line(self, width: int = DEFAULT_DESCRIPTION_WIDTH) -> str:
        """Render as a statement line: [date] description  signed amount"""
        return f"[{self.timestamp.date().isoformat()}] {self.description:<{width}} {format_signed(self.amount)}"
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'description': self.description,
            'amount': str(self.amount),
        }
