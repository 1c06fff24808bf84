import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

NOT_AVAILABLE = "N/A"


class PresenceStatus(str, Enum):
    AVAILABLE = "Available"
    BUSY = "Busy"
    OFFLINE = "Offline"
    ON_QUEUE = "On Queue"
    AWAY = "Away"
    MEETING = "Meeting"


class EdgeStatus(str, Enum):
    ONLINE = "Online"
    OFFLINE = "Offline"
    DEGRADED = "Degraded"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class Credential:
    access_token: str = field(repr=False)
    api_host: str
    region: str
    expires_at: float

    def is_live(self, now=None, margin=60):
        """True while the token is usable for at least `margin` more seconds."""
        current = time.time() if now is None else now
        return bool(self.access_token) and self.expires_at > (current + margin)


@dataclass(frozen=True)
class DivisionRef:
    id: str = NOT_AVAILABLE
    name: str = NOT_AVAILABLE


@dataclass(frozen=True)
class PresenceRecord:
    id: str
    name: str
    status: PresenceStatus
    division: DivisionRef
    email: Optional[str] = None
    department: Optional[str] = None
    title: Optional[str] = None
    extension: Optional[str] = None
    version: Optional[int] = None


@dataclass(frozen=True)
class SkillDefinition:
    id: str
    name: str


@dataclass(frozen=True)
class SkillAssignment:
    skill_id: str
    name: str
    proficiency: int


@dataclass(frozen=True)
class TableSummary:
    id: str
    name: str
    description: Optional[str] = None


@dataclass(frozen=True)
class Column:
    name: str
    type: str = "string"
    is_primary_key: bool = False


@dataclass(frozen=True)
class Resolved:
    """Primary key found. `fallback` marks the single-required-field heuristic."""
    name: str
    fallback: bool = False


@dataclass(frozen=True)
class Unresolved:
    reason: str = ""


PrimaryKey = Union[Resolved, Unresolved]


@dataclass(frozen=True)
class TableSchema:
    id: str
    name: str
    primary_key: PrimaryKey
    columns: Dict[str, Column]
    description: Optional[str] = None

    @property
    def primary_key_field(self):
        if isinstance(self.primary_key, Resolved):
            return self.primary_key.name
        return None

    def ordered_column_names(self):
        """Primary key first, remaining columns alphabetically."""
        names = sorted(self.columns)
        pk = self.primary_key_field
        if pk and pk in self.columns:
            names.remove(pk)
            return [pk] + names
        return names


@dataclass(frozen=True)
class QueueRecord:
    id: str
    name: str
    division: DivisionRef
    on_queue_count: int = 0
    interacting_count: int = 0
    waiting_count: int = 0


@dataclass(frozen=True)
class MetricSample:
    name: str
    value: float
    timestamp: datetime


@dataclass(frozen=True)
class EdgeRecord:
    id: str
    name: str
    status: EdgeStatus
    description: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    api_version: Optional[str] = None
    software_version: Optional[str] = None
    metrics: Dict[str, MetricSample] = field(default_factory=dict)


@dataclass(frozen=True)
class PropertyChange:
    property: str
    old_values: List[str] = field(default_factory=list)
    new_values: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class AuditEntry:
    id: str
    timestamp: Optional[datetime] = None
    service_name: Optional[str] = None
    action: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    entity_name: Optional[str] = None
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    status: Optional[str] = None
    remote_ips: List[str] = field(default_factory=list)
    changes: List[PropertyChange] = field(default_factory=list)


@dataclass(frozen=True)
class ParticipantSummary:
    participant_id: str
    name: Optional[str] = None
    purpose: Optional[str] = None
    media_type: Optional[str] = None


@dataclass(frozen=True)
class ConversationSummary:
    conversation_id: str
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    duration_ms: Optional[int] = None
    originating_direction: Optional[str] = None
    media_type: Optional[str] = None
    division_ids: List[str] = field(default_factory=list)
    participants: List[ParticipantSummary] = field(default_factory=list)
