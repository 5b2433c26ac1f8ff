"""
Account Request Workflow Module

An existing account holder can ask for a new account to be opened on behalf
of someone else. Requests wait in a queue until an administrator approves
them (the ledger then opens the account under the identifier reserved at
submission) or denies them. Requests are never removed, so the queue doubles
as an audit trail of who asked for what.

    PENDING --approve--> APPROVED
    PENDING --deny-----> DENIED
"""

import logging
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from .accounts import Account
from .audit import AuditTrail, AuditEventType
from .errors import AlreadyResolved, InvalidPhone, LedgerIntegrityError
from .identifiers import IdentifierService
from .logging_config import log_action

logger = logging.getLogger(__name__)


class RequestStatus(Enum):
    """Lifecycle of an account request; APPROVED and DENIED are terminal"""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DENIED = "DENIED"


class AccountRequest:
    """
    Pending ask to open an account.
    Identifiers and status are read-only; the status is changed only by
    RequestQueue.approve / RequestQueue.deny.
    """
    
    def __init__(self, target_id: str, requester_id: str, name: str, phone: str, secret: str,
                 submitted_at: Optional[datetime] = None):
        self._target_id = target_id
        self._requester_id = requester_id
        self.name = name
        self.phone = phone
        self.secret = secret
        self._status = RequestStatus.PENDING
        self._submitted_at = submitted_at or datetime.now(timezone.utc)
        self._resolved_at: Optional[datetime] = None
    
    def __repr__(self) -> str:
        return (f"AccountRequest(target_id={self._target_id!r}, requester_id={self._requester_id!r}, "
                f"name={self.name!r}, status={self._status.value})")
    
    @property
    def target_id(self) -> str:
        return self._target_id
    
    @property
    def requester_id(self) -> str:
        return self._requester_id
    
    @property
    def status(self) -> RequestStatus:
        return self._status
    
    @property
    def submitted_at(self) -> datetime:
        return self._submitted_at
    
    @property
    def resolved_at(self) -> Optional[datetime]:
        return self._resolved_at
    
    @property
    def is_pending(self) -> bool:
        return self._status == RequestStatus.PENDING
    
    @property
    def is_resolved(self) -> bool:
        return not self.is_pending
    
    def _resolve(self, status: RequestStatus) -> None:
        """Terminal transition; caller holds the queue lock and has checked PENDING"""
        self._status = status
        self._resolved_at = datetime.now(timezone.utc)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            'target_id': self.target_id,
            'requester_id': self.requester_id,
            'name': self.name,
            'phone': self.phone,
            'status': self.status.value,
            'submitted_at': self.submitted_at.isoformat(),
            'resolved_at': self.resolved_at.isoformat() if self.resolved_at else None,
        }


class RequestQueue:
    """Ordered store of account requests and their approval workflow"""
    
    def __init__(self, identifiers: IdentifierService, audit_trail: Optional[AuditTrail] = None):
        self.identifiers = identifiers
        self.audit_trail = audit_trail
        self._requests: List[AccountRequest] = []
        self._by_target: Dict[str, AccountRequest] = {}
        self._lock = threading.RLock()
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)
    
    def _audit(self, event_type: AuditEventType, request: AccountRequest,
               user_id: Optional[str] = None) -> None:
        if self.audit_trail:
            self.audit_trail.log_event(
                event_type=event_type,
                entity_type="account_request",
                entity_id=request.target_id,
                metadata={'requester_id': request.requester_id, 'status': request.status},
                user_id=user_id
            )
    
    def submit(self, requester_id: str, name: str, phone: str, secret: str) -> AccountRequest:
        """
        Queue a PENDING request and reserve its target identifier
        
        The ledger registry is not touched and the phone is not validated
        until approval.
        """
        target_id = self.identifiers.next_identifier()
        request = AccountRequest(
            target_id=target_id,
            requester_id=requester_id,
            name=name,
            phone=phone,
            secret=secret
        )
        with self._lock:
            if target_id in self._by_target:
                raise LedgerIntegrityError(f"Identifier {target_id} is already reserved by another request")
            self._requests.append(request)
            self._by_target[target_id] = request
        
        log_action(logger, "info", f"Account request {target_id} submitted",
                   user_id=requester_id, action="submit_request", resource=target_id)
        self._audit(AuditEventType.REQUEST_SUBMITTED, request, requester_id)
        return request
    
    def get(self, target_id: str) -> Optional[AccountRequest]:
        with self._lock:
            return self._by_target.get(target_id)
    
    def list_all(self) -> Iterator[AccountRequest]:
        with self._lock:
            snapshot = list(self._requests)
        yield from snapshot
    
    def list_pending(self) -> Iterator[AccountRequest]:
        """PENDING requests in submission order"""
        for request in self.list_all():
            if request.is_pending:
                yield request
    
    def list_for_requester(self, requester_id: str) -> Iterator[AccountRequest]:
        for request in self.list_all():
            if request.requester_id == requester_id:
                yield request
    
    def _require_known(self, request: AccountRequest) -> None:
        if self._by_target.get(request.target_id) is not request:
            raise LedgerIntegrityError(f"Account request {request.target_id} does not belong to this queue")
    
    def approve(self, request: AccountRequest, ledger, approved_by: Optional[str] = None) -> Account:
        """
        Open the requested account and mark the request APPROVED
        
        The status check, the ledger call and the transition happen under the
        queue lock, so a request cannot be approved twice or approved after
        being denied.
        
        Raises:
            AlreadyResolved: request is not PENDING
            InvalidPhone: stored phone is invalid; the request stays PENDING
        """
        with self._lock:
            self._require_known(request)
            if not request.is_pending:
                raise AlreadyResolved(request.target_id, request.status.value)
            try:
                account = ledger.materialize(request.target_id, request.name,
                                             request.phone, request.secret)
            except InvalidPhone:
                log_action(logger, "warning",
                           f"Account request {request.target_id} not approved: invalid phone",
                           user_id=approved_by, action="approve_request", resource=request.target_id)
                raise
            request._resolve(RequestStatus.APPROVED)
        
        log_action(logger, "info", f"Account request {request.target_id} approved",
                   user_id=approved_by, action="approve_request", resource=request.target_id)
        self._audit(AuditEventType.REQUEST_APPROVED, request, approved_by)
        return account
    
    def deny(self, request: AccountRequest, denied_by: Optional[str] = None) -> None:
        """
        Mark the request DENIED; the ledger is not involved
        
        Raises:
            AlreadyResolved: request is not PENDING
        """
        with self._lock:
            self._require_known(request)
            if not request.is_pending:
                raise AlreadyResolved(request.target_id, request.status.value)
            request._resolve(RequestStatus.DENIED)
        
        log_action(logger, "info", f"Account request {request.target_id} denied",
                   user_id=denied_by, action="deny_request", resource=request.target_id)
        self._audit(AuditEventType.REQUEST_DENIED, request, denied_by)
