"""
Account Ledger

An in-memory account ledger with immutable transaction histories, atomic
transfers, daily interest accrual and an approval workflow for new accounts.
All monetary values use Decimal.
"""

__version__ = "1.0.0"
