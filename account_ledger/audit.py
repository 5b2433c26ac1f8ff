"""
Audit Trail Module

Hash-chained immutable audit log with SHA-256 for tamper detection.
Every committed ledger and workflow state change is logged here.
"""

import hashlib
import json
import threading
import uuid
from datetime import datetime, timezone
from dataclasses import dataclass, asdict
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Any

from .errors import LedgerIntegrityError


class AuditEventType(Enum):
    """Types of audit events"""
    # Account events
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_DELETED = "account_deleted"
    
    # Balance events
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"
    INTEREST_POSTED = "interest_posted"
    INTEREST_SWEEP = "interest_sweep"
    
    # Account request events
    REQUEST_SUBMITTED = "request_submitted"
    REQUEST_APPROVED = "request_approved"
    REQUEST_DENIED = "request_denied"


def _convert_value(value):
    if isinstance(value, Decimal):
        return str(value)
    elif isinstance(value, datetime):
        return value.isoformat()
    elif isinstance(value, Enum):
        return value.value
    elif isinstance(value, dict):
        return {k: _convert_value(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return [_convert_value(v) for v in value]
    return value


@dataclass
class AuditEvent:
    """
    Immutable audit event with hash chaining for tamper detection
    """
    id: str
    sequence: int
    created_at: datetime
    event_type: AuditEventType
    entity_type: str  # account, account_request or ledger
    entity_id: str
    previous_hash: str
    current_hash: str
    metadata: Dict[str, Any]
    user_id: Optional[str] = None
    
    def __post_init__(self):
        # Metadata must be JSON serializable for hashing and storage
        self.metadata = {k: _convert_value(v) for k, v in (self.metadata or {}).items()}
    
    def calculate_hash(self) -> str:
        """
        Calculate SHA-256 hash of this event
        Hash includes all fields except current_hash to prevent circular reference
        """
        hash_data = {
            'id': self.id,
            'sequence': self.sequence,
            'created_at': self.created_at.isoformat(),
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'previous_hash': self.previous_hash,
            'user_id': self.user_id,
            'metadata': self.metadata
        }
        json_data = json.dumps(hash_data, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(json_data.encode('utf-8')).hexdigest()
    
    def verify_hash(self) -> bool:
        return self.current_hash == self.calculate_hash()
    
    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result['created_at'] = self.created_at.isoformat()
        result['event_type'] = self.event_type.value
        return result
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditEvent':
        data = dict(data)
        if isinstance(data['created_at'], str):
            data['created_at'] = datetime.fromisoformat(data['created_at'])
        if isinstance(data['event_type'], str):
            data['event_type'] = AuditEventType(data['event_type'])
        return cls(**data)


class AuditEventStore:
    """
    Append-only, in-memory event table keyed by sequence number.
    Events go in and come out as JSON copies, so callers never share
    mutable state with the store.
    """
    
    def __init__(self):
        self._events: List[Dict[str, Any]] = []
        self._lock = threading.RLock()
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
    
    def append(self, data: Dict[str, Any]) -> None:
        """Store the next event; its sequence must follow the last one"""
        with self._lock:
            expected = len(self._events) + 1
            if data['sequence'] != expected:
                raise LedgerIntegrityError(
                    f"Audit event sequence {data['sequence']} out of order, expected {expected}"
                )
            self._events.append(json.loads(json.dumps(data, default=str)))
    
    def latest(self) -> Optional[Dict[str, Any]]:
        with self._lock:
            if not self._events:
                return None
            return json.loads(json.dumps(self._events[-1]))
    
    def all(self) -> List[Dict[str, Any]]:
        """Every event in sequence order"""
        with self._lock:
            return [json.loads(json.dumps(event)) for event in self._events]
    
    def find(self, **filters) -> List[Dict[str, Any]]:
        """Events whose fields equal every given filter, in sequence order"""
        with self._lock:
            return [
                json.loads(json.dumps(event)) for event in self._events
                if all(event.get(key) == value for key, value in filters.items())
            ]


class AuditTrail:
    """
    Hash-chained audit trail for tamper detection.
    Events are ordered by sequence number, not timestamp, so events logged
    within the same clock tick still chain deterministically.
    """
    
    def __init__(self, store: Optional[AuditEventStore] = None):
        self.store = store if store is not None else AuditEventStore()
        self._lock = threading.Lock()
        self._last_hash: Optional[str] = None
        self._sequence = 0
        self._load_chain_head()
    
    def _load_chain_head(self) -> None:
        """Resume the chain from whatever the store already holds"""
        latest = self.store.latest()
        if latest:
            self._last_hash = latest['current_hash']
            self._sequence = latest['sequence']
    
    def log_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None
    ) -> AuditEvent:
        """
        Log an audit event with hash chaining
        
        Args:
            event_type: Type of audit event
            entity_type: Type of entity being audited
            entity_id: ID of the entity
            metadata: Additional event-specific data
            user_id: ID of the account holder or admin who initiated the action
            
        Returns:
            Created AuditEvent
        """
        with self._lock:
            event = AuditEvent(
                id=str(uuid.uuid4()),
                sequence=self._sequence + 1,
                created_at=datetime.now(timezone.utc),
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                previous_hash=self._last_hash or "",
                current_hash="",  # Calculated below
                metadata=metadata or {},
                user_id=user_id
            )
            event.current_hash = event.calculate_hash()
            
            self.store.append(event.to_dict())
            self._sequence = event.sequence
            self._last_hash = event.current_hash
            
            return event
    
    def get_events_for_entity(
        self,
        entity_type: str,
        entity_id: str,
        limit: Optional[int] = None
    ) -> List[AuditEvent]:
        """Get audit events for one entity, oldest first"""
        events = [
            AuditEvent.from_dict(data)
            for data in self.store.find(entity_type=entity_type, entity_id=entity_id)
        ]
        if limit:
            events = events[-limit:]  # Most recent N
        return events
    
    def get_events_by_type(self, event_type: AuditEventType, limit: Optional[int] = None) -> List[AuditEvent]:
        """Get audit events of a single type, oldest first"""
        events = [AuditEvent.from_dict(data) for data in self.store.find(event_type=event_type.value)]
        if limit:
            events = events[-limit:]
        return events
    
    def get_all_events(self) -> List[AuditEvent]:
        return [AuditEvent.from_dict(data) for data in self.store.all()]
    
    def verify_integrity(self) -> Dict[str, Any]:
        """
        Verify the integrity of the entire audit chain
        
        Returns:
            Dictionary with integrity check results
        """
        result = {
            'valid': True,
            'total_events': 0,
            'hash_errors': [],
            'chain_breaks': []
        }
        
        events = self.get_all_events()
        result['total_events'] = len(events)
        
        previous_hash = ""
        for position, event in enumerate(events):
            if not event.verify_hash():
                result['valid'] = False
                result['hash_errors'].append({
                    'event_id': event.id,
                    'position': position,
                    'expected_hash': event.calculate_hash(),
                    'actual_hash': event.current_hash
                })
            if event.previous_hash != previous_hash:
                result['valid'] = False
                result['chain_breaks'].append({
                    'event_id': event.id,
                    'position': position,
                    'expected_previous_hash': previous_hash,
                    'actual_previous_hash': event.previous_hash
                })
            previous_hash = event.current_hash
        
        return result
    
    def count_events(self) -> int:
        return len(self.store)
    
    def get_latest_hash(self) -> Optional[str]:
        return self._last_hash
