"""
Test suite for the account request workflow

Tests submission, pending listing, approval, denial, the terminal-state
rules and the retryable invalid-phone approval.
"""

import threading

import pytest
from decimal import Decimal

from account_ledger.account_requests import AccountRequest, RequestQueue, RequestStatus
from account_ledger.audit import AuditTrail, AuditEventType
from account_ledger.errors import AlreadyResolved, InvalidPhone, LedgerIntegrityError
from account_ledger.ledger import Ledger
from account_ledger.transactions import ACCOUNT_CREATED


@pytest.fixture
def audit_trail():
    return AuditTrail()


@pytest.fixture
def ledger(audit_trail):
    return Ledger(audit_trail=audit_trail)


@pytest.fixture
def queue(ledger, audit_trail):
    return RequestQueue(ledger.identifiers, audit_trail)


@pytest.fixture
def requester(ledger):
    return ledger.create("Alice", "01234567890", "pw")


class TestSubmit:
    """Test request submission"""
    
    def test_submit_creates_pending_request(self, queue, ledger, requester):
        request = queue.submit(requester.identifier, "Carol", "01112223334", "carol-pw")
        
        assert request.status == RequestStatus.PENDING
        assert request.is_pending and not request.is_resolved
        assert request.requester_id == requester.identifier
        assert request.target_id == "ACC1002"
        assert request.resolved_at is None
        # The ledger is not touched
        assert ledger.lookup(request.target_id) is None
        assert len(ledger) == 1
    
    def test_reserved_identifier_never_collides(self, queue, ledger, requester):
        """Test that the ledger and the queue share one identifier space"""
        request = queue.submit(requester.identifier, "Carol", "01112223334", "pw")
        created = ledger.create("Dave", "01234567890", "pw")
        another = queue.submit(requester.identifier, "Erin", "01112223334", "pw")
        
        assert len({request.target_id, created.identifier, another.target_id, requester.identifier}) == 4
    
    def test_submit_does_not_validate_phone(self, queue, requester):
        request = queue.submit(requester.identifier, "Carol", "123", "pw")
        assert request.is_pending
    
    def test_secret_hidden(self, queue, requester):
        request = queue.submit(requester.identifier, "Carol", "01112223334", "carol-pw")
        
        assert "carol-pw" not in repr(request)
        assert "secret" not in request.to_dict()
        assert request.to_dict()['status'] == "PENDING"

    def test_status_is_read_only(self, queue, ledger, requester):
        """Test that status only changes through approve or deny"""
        request = queue.submit(requester.identifier, "Carol", "01112223334", "pw")
        
        with pytest.raises(AttributeError):
            request.status = RequestStatus.APPROVED
        with pytest.raises(AttributeError):
            request.target_id = "ACC9999"
        
        assert request.is_pending
        queue.approve(request, ledger)
        assert request.status == RequestStatus.APPROVED


class TestListing:
    """Test listing requests"""
    
    def test_list_pending_in_submission_order(self, queue, ledger, requester):
        first = queue.submit(requester.identifier, "A", "01112223334", "pw")
        second = queue.submit(requester.identifier, "B", "01112223334", "pw")
        third = queue.submit(requester.identifier, "C", "01112223334", "pw")
        
        queue.deny(second)
        
        assert list(queue.list_pending()) == [first, third]
        assert list(queue.list_all()) == [first, second, third]
        assert len(queue) == 3
    
    def test_get_and_filter_by_requester(self, queue, ledger, requester):
        other = ledger.create("Bob", "09876543210", "pw")
        mine = queue.submit(requester.identifier, "A", "01112223334", "pw")
        theirs = queue.submit(other.identifier, "B", "01112223334", "pw")
        
        assert queue.get(mine.target_id) is mine
        assert queue.get("ACC9999") is None
        assert list(queue.list_for_requester(other.identifier)) == [theirs]


class TestApprove:
    """Test approval"""
    
    def test_approve_creates_account(self, queue, ledger, requester):
        """Test that approval opens the account under the reserved identifier"""
        request = queue.submit(requester.identifier, "Carol", "01112223334", "carol-pw")
        
        account = queue.approve(request, ledger)
        
        assert account.identifier == request.target_id
        assert ledger.lookup(request.target_id) is account
        assert account.balance == Decimal('0')
        assert len(account.history) == 1
        assert account.history[0].description == ACCOUNT_CREATED
        assert account.name == "Carol"
        assert account.verify_credential("carol-pw")
        assert request.status == RequestStatus.APPROVED
        assert request.resolved_at is not None
        assert list(queue.list_pending()) == []
    
    def test_approve_invalid_phone_stays_pending(self, queue, ledger, requester):
        """Test that a bad phone fails approval but leaves the request retryable"""
        request = queue.submit(requester.identifier, "Carol", "123", "pw")
        
        with pytest.raises(InvalidPhone):
            queue.approve(request, ledger)
        
        assert request.status == RequestStatus.PENDING
        assert ledger.lookup(request.target_id) is None
        assert list(queue.list_pending()) == [request]
        
        # Still deniable afterwards
        queue.deny(request)
        assert request.status == RequestStatus.DENIED
    
    def test_double_approval_rejected(self, queue, ledger, requester):
        request = queue.submit(requester.identifier, "Carol", "01112223334", "pw")
        queue.approve(request, ledger)
        
        with pytest.raises(AlreadyResolved):
            queue.approve(request, ledger)
        assert request.status == RequestStatus.APPROVED
        assert len(ledger) == 2
    
    def test_approve_after_deny_rejected(self, queue, ledger, requester):
        request = queue.submit(requester.identifier, "Carol", "01112223334", "pw")
        queue.deny(request)
        
        with pytest.raises(AlreadyResolved, match="DENIED"):
            queue.approve(request, ledger)
        assert request.status == RequestStatus.DENIED
        assert ledger.lookup(request.target_id) is None
    
    def test_foreign_request_rejected(self, queue, ledger):
        stranger = AccountRequest(
            target_id="ACC7777",
            requester_id="ACC1001",
            name="X",
            phone="01112223334",
            secret="pw"
        )
        with pytest.raises(LedgerIntegrityError):
            queue.approve(stranger, ledger)
        assert stranger.status == RequestStatus.PENDING
    
    def test_concurrent_approval_only_once(self, queue, ledger, requester):
        """Test that racing approvals open exactly one account"""
        request = queue.submit(requester.identifier, "Carol", "01112223334", "pw")
        outcomes = []
        
        def approve():
            try:
                queue.approve(request, ledger)
                outcomes.append("approved")
            except AlreadyResolved:
                outcomes.append("already")
        
        threads = [threading.Thread(target=approve) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        
        assert outcomes.count("approved") == 1
        assert outcomes.count("already") == 7
        assert len(ledger) == 2


class TestDeny:
    """Test denial"""
    
    def test_deny(self, queue, ledger, requester):
        """Test that denial never creates the reserved account"""
        request = queue.submit(requester.identifier, "Carol", "01112223334", "pw")
        
        queue.deny(request)
        
        assert request.status == RequestStatus.DENIED
        assert request.resolved_at is not None
        assert ledger.lookup(request.target_id) is None
        assert len(ledger) == 1
    
    def test_double_deny_rejected(self, queue, requester):
        request = queue.submit(requester.identifier, "Carol", "01112223334", "pw")
        queue.deny(request)
        
        with pytest.raises(AlreadyResolved):
            queue.deny(request)
    
    def test_deny_after_approve_rejected(self, queue, ledger, requester):
        request = queue.submit(requester.identifier, "Carol", "01112223334", "pw")
        queue.approve(request, ledger)
        
        with pytest.raises(AlreadyResolved, match="APPROVED"):
            queue.deny(request)
        assert request.status == RequestStatus.APPROVED


class TestRequestAudit:
    """Test audit events for the workflow"""
    
    def test_lifecycle_is_audited(self, queue, ledger, requester, audit_trail):
        approved = queue.submit(requester.identifier, "Carol", "01112223334", "pw")
        denied = queue.submit(requester.identifier, "Dave", "01112223334", "pw")
        queue.approve(approved, ledger, approved_by="admin")
        queue.deny(denied, denied_by="admin")
        
        events = audit_trail.get_events_for_entity("account_request", approved.target_id)
        assert [e.event_type for e in events] == [
            AuditEventType.REQUEST_SUBMITTED,
            AuditEventType.REQUEST_APPROVED,
        ]
        assert events[0].user_id == requester.identifier
        assert events[1].user_id == "admin"
        assert events[1].metadata['status'] == "APPROVED"
        
        denied_events = audit_trail.get_events_for_entity("account_request", denied.target_id)
        assert denied_events[-1].event_type == AuditEventType.REQUEST_DENIED
        assert audit_trail.verify_integrity()['valid']
