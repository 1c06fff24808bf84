import logging
import math
from datetime import datetime, timezone

from genesys_ops.models import (
    NOT_AVAILABLE,
    AuditEntry,
    ConversationSummary,
    DivisionRef,
    EdgeRecord,
    ParticipantSummary,
    PresenceRecord,
    PropertyChange,
    QueueRecord,
    SkillAssignment,
    SkillDefinition,
)
from genesys_ops.monitor import monitor
from genesys_ops.status_helpers import map_edge_status, map_presence

PROFICIENCY_MIN = 1
PROFICIENCY_MAX = 5


def _get_val(obj, path, default=None):
    """Safely get a value from a nested dict."""
    curr = obj
    for p in path.split('.'):
        if not isinstance(curr, dict):
            return default
        curr = curr.get(p)
        if curr is None:
            return default
    return curr


def _text(value):
    """Stripped string, or None for absent/blank values."""
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _as_list(value):
    return value if isinstance(value, list) else []


def parse_timestamp(value):
    """ISO-8601 (with 'Z') or epoch milliseconds -> aware UTC datetime, None when unparsable.

    Values without an offset are taken as UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            if isinstance(value, (int, float)):
                return datetime.fromtimestamp(float(value) / 1000, tz=timezone.utc)
            parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except (ValueError, OverflowError, OSError):
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def clamp_proficiency(value):
    try:
        number = float(value)
    except (TypeError, ValueError):
        return PROFICIENCY_MIN
    if math.isnan(number):
        return PROFICIENCY_MIN
    if math.isinf(number):
        return PROFICIENCY_MAX if number > 0 else PROFICIENCY_MIN
    return max(PROFICIENCY_MIN, min(PROFICIENCY_MAX, int(round(number))))


def map_collection(items, normalizer, label="item"):
    """Normalize every item, skipping (and logging) the ones that fail."""
    out = []
    for index, raw in enumerate(items or []):
        try:
            record = normalizer(raw)
        except Exception as e:
            item_id = raw.get("id") if isinstance(raw, dict) else None
            monitor.log_error(
                "NORMALIZE",
                f"Skipped {label} #{index}" + (f" ({item_id})" if item_id else ""),
                f"{type(e).__name__}: {e}",
                level=logging.WARNING,
            )
            continue
        if record is not None:
            out.append(record)
    return out


def extract_extension(contact_info):
    """Phone extension from a user's contact channels.

    Prefers the PRIMARY phone entry that has an extension, then any phone
    entry that has one.
    """
    phones = [
        c for c in _as_list(contact_info)
        if isinstance(c, dict) and str(c.get("mediaType") or "").upper() == "PHONE" and _text(c.get("extension"))
    ]
    for c in phones:
        if str(c.get("type") or "").upper() == "PRIMARY":
            return _text(c.get("extension"))
    if phones:
        return _text(phones[0].get("extension"))
    return None


def normalize_division(raw):
    return DivisionRef(
        id=_text(_get_val(raw, "id")) or NOT_AVAILABLE,
        name=_text(_get_val(raw, "name")) or NOT_AVAILABLE,
    )


def normalize_user(raw):
    contact_info = _as_list(_get_val(raw, "primaryContactInfo")) + _as_list(_get_val(raw, "addresses"))
    version = _get_val(raw, "version")
    return PresenceRecord(
        id=raw["id"],
        name=_text(raw.get("name")) or "Unknown User",
        status=map_presence(_get_val(raw, "presence.presenceDefinition.systemPresence")),
        division=normalize_division(raw.get("division")),
        email=_text(raw.get("email")),
        department=_text(raw.get("department")),
        title=_text(raw.get("title")),
        extension=extract_extension(contact_info),
        version=int(version) if isinstance(version, (int, float)) else None,
    )


def normalize_skill_definition(raw):
    return SkillDefinition(id=raw["id"], name=_text(raw.get("name")) or raw["id"])


def normalize_skill_assignment(raw):
    """Entries missing id, name or proficiency are dropped (None)."""
    skill_id = _text(_get_val(raw, "id"))
    name = _text(_get_val(raw, "name"))
    proficiency = _get_val(raw, "proficiency")
    if not skill_id or not name or proficiency is None:
        return None
    return SkillAssignment(skill_id=skill_id, name=name, proficiency=clamp_proficiency(proficiency))


def normalize_queue(raw):
    return QueueRecord(
        id=raw["id"],
        name=_text(raw.get("name")) or raw["id"],
        division=normalize_division(raw.get("division")),
    )


def normalize_edge(raw, metrics=None):
    return EdgeRecord(
        id=raw["id"],
        name=_text(raw.get("name")) or raw["id"],
        status=map_edge_status(raw.get("state"), raw.get("onlineStatus")),
        description=_text(raw.get("description")),
        make=_text(raw.get("make")),
        model=_text(raw.get("model")),
        api_version=_text(raw.get("apiVersion")),
        software_version=_text(_get_val(raw, "softwareVersion")) or _text(_get_val(raw, "softwareStatus.version.version")),
        metrics=dict(metrics or {}),
    )


def _string_values(values):
    return [str(v) for v in _as_list(values) if v is not None]


def normalize_audit_entry(raw):
    changes = raw.get("propertyChanges") or raw.get("changes")
    return AuditEntry(
        id=raw["id"],
        timestamp=parse_timestamp(raw.get("eventDate") or raw.get("timestamp")),
        service_name=_text(raw.get("serviceName")),
        action=_text(raw.get("action")),
        entity_type=_text(raw.get("entityType")),
        entity_id=_text(_get_val(raw, "entity.id")),
        entity_name=_text(_get_val(raw, "entity.name")),
        user_id=_text(_get_val(raw, "user.id")),
        user_name=_text(_get_val(raw, "user.name")),
        status=_text(raw.get("status")),
        remote_ips=_string_values(raw.get("remoteIp")),
        changes=[
            PropertyChange(
                property=_text(c.get("property")) or NOT_AVAILABLE,
                old_values=_string_values(c.get("oldValues")),
                new_values=_string_values(c.get("newValues")),
            )
            for c in _as_list(changes) if isinstance(c, dict)
        ],
    )


def summarize_participant(raw):
    sessions = _as_list(raw.get("sessions"))
    first_session = sessions[0] if sessions and isinstance(sessions[0], dict) else {}
    return ParticipantSummary(
        participant_id=_text(raw.get("participantId")) or NOT_AVAILABLE,
        name=_text(raw.get("participantName")),
        purpose=_text(raw.get("purpose")),
        media_type=_text(first_session.get("mediaType")),
    )


def primary_media_type(participants, raw_participants=None):
    """Media type of the first participant's first session.

    When that summary has none, any populated session media type in the raw
    participant list is used instead.
    """
    if participants and participants[0].media_type:
        return participants[0].media_type
    for p in _as_list(raw_participants):
        if not isinstance(p, dict):
            continue
        for s in _as_list(p.get("sessions")):
            media_type = _text(_get_val(s, "mediaType"))
            if media_type:
                return media_type
    return None


def normalize_conversation(raw):
    raw_participants = _as_list(raw.get("participants"))
    participants = map_collection(
        [p for p in raw_participants if isinstance(p, dict)], summarize_participant, label="participant"
    )
    start = parse_timestamp(raw.get("conversationStart"))
    end = parse_timestamp(raw.get("conversationEnd"))
    duration_ms = None
    if start and end:
        duration_ms = max(0, int((end - start).total_seconds() * 1000))
    return ConversationSummary(
        conversation_id=raw["conversationId"],
        start=start,
        end=end,
        duration_ms=duration_ms,
        originating_direction=_text(raw.get("originatingDirection")),
        media_type=primary_media_type(participants, raw_participants),
        division_ids=_string_values(raw.get("divisionIds")),
        participants=participants,
    )
