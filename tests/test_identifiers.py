"""
Test suite for the identifier service

Tests monotonic issue, collision checks, issue tracking and thread safety.
"""

import threading

import pytest

from account_ledger.errors import LedgerIntegrityError
from account_ledger.identifiers import IdentifierService


class TestIdentifierService:
    """Test identifier generation"""
    
    def test_monotonic_sequence(self):
        service = IdentifierService(prefix="ACC", start=1001)
        
        assert [service.next_identifier() for _ in range(3)] == ["ACC1001", "ACC1002", "ACC1003"]
        assert service.issued_count == 3
    
    def test_collision_check_skips_taken(self):
        """Test that candidates already in use are skipped"""
        taken = {"X1", "X2"}
        service = IdentifierService(prefix="X", start=1, is_taken=taken.__contains__)
        
        assert service.next_identifier() == "X3"
    
    def test_set_collision_check(self):
        service = IdentifierService(prefix="X", start=1)
        assert not service.has_collision_check
        
        service.set_collision_check(lambda candidate: candidate == "X1")
        
        assert service.has_collision_check
        assert service.next_identifier() == "X2"
    
    def test_was_issued(self):
        service = IdentifierService()
        identifier = service.next_identifier()
        
        assert service.was_issued(identifier)
        assert not service.was_issued("ACC9999")
        service.require_issued(identifier)
        with pytest.raises(LedgerIntegrityError, match="never issued"):
            service.require_issued("ACC9999")
    
    def test_concurrent_issue_is_unique(self):
        """Test that concurrent callers never receive the same identifier"""
        service = IdentifierService()
        issued = []
        lock = threading.Lock()
        
        def worker():
            for _ in range(100):
                identifier = service.next_identifier()
                with lock:
                    issued.append(identifier)
        
        threads = [threading.Thread(target=worker) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        
        assert len(issued) == 500
        assert len(set(issued)) == 500
