"""
Ledger System Wiring

Builds a ledger, its identifier service, the account request queue and the
audit trail from a LedgerConfig. Components are passed explicitly; there is
no module-level ledger instance.
"""

from typing import Optional

from .account_requests import RequestQueue
from .audit import AuditEventStore, AuditTrail
from .config import LedgerConfig, get_config
from .identifiers import IdentifierService
from .ledger import Ledger
from .logging_config import LOGGER_NAME, setup_logging


class LedgerSystem:
    """Ledger with all collaborators initialized"""
    
    def __init__(self, config: Optional[LedgerConfig] = None,
                 event_store: Optional[AuditEventStore] = None):
        self.config = config or get_config()
        self.event_store = event_store if event_store is not None else AuditEventStore()
        
        self.audit_trail = AuditTrail(self.event_store) if self.config.enable_audit_logging else None
        self.identifiers = IdentifierService(
            prefix=self.config.account_id_prefix,
            start=self.config.account_id_start
        )
        self.ledger = Ledger(
            identifiers=self.identifiers,
            audit_trail=self.audit_trail,
            annual_rate=self.config.annual_interest_rate,
            days_per_year=self.config.days_per_year,
            interest_places=self.config.interest_calculation_precision
        )
        self.requests = RequestQueue(self.identifiers, self.audit_trail)
    
    def configure_logging(self):
        return setup_logging(self.config.log_level, LOGGER_NAME, self.config.log_format)
    
    def statement_lines(self, identifier: str):
        """Rendered statement for one account, or None if it does not exist"""
        account = self.ledger.lookup(identifier)
        if account is None:
            return None
        return list(account.statement_lines(self.config.statement_description_width))
