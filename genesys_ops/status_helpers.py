import logging

from genesys_ops.models import EdgeStatus, PresenceStatus

logger = logging.getLogger(__name__)

_PRESENCE_MAP = {
    "AVAILABLE": PresenceStatus.AVAILABLE,
    "IDLE": PresenceStatus.AVAILABLE,
    "BUSY": PresenceStatus.BUSY,
    "MEAL": PresenceStatus.BUSY,
    "TRAINING": PresenceStatus.BUSY,
    "AWAY": PresenceStatus.AWAY,
    "BREAK": PresenceStatus.AWAY,
    "ON_QUEUE": PresenceStatus.ON_QUEUE,
    "MEETING": PresenceStatus.MEETING,
    "OFFLINE": PresenceStatus.OFFLINE,
}
# Display names map to themselves ("On Queue" -> On Queue).
for _status in PresenceStatus:
    _PRESENCE_MAP.setdefault(_status.value.upper(), _status)

_EDGE_ONLINE_MAP = {
    "ONLINE": EdgeStatus.ONLINE,
    "DEGRADED": EdgeStatus.DEGRADED,
    "OFFLINE": EdgeStatus.OFFLINE,
}


def map_presence(raw=None):
    """Translate a Genesys system presence into one of the six PresenceStatus values.

    Unknown values fall back to Offline and are logged; missing values fall
    back to Offline silently.
    """
    if raw is None:
        return PresenceStatus.OFFLINE
    key = str(raw).strip().upper()
    if not key:
        return PresenceStatus.OFFLINE
    status = _PRESENCE_MAP.get(key)
    if status is None:
        logger.warning("Unknown Genesys system presence: %s", raw)
        return PresenceStatus.OFFLINE
    return status


def map_edge_status(state=None, online_status=None):
    state_key = str(state or "").strip().upper()
    if state_key == "ACTIVE":
        return _EDGE_ONLINE_MAP.get(str(online_status or "").strip().upper(), EdgeStatus.UNKNOWN)
    if state_key == "INACTIVE":
        return EdgeStatus.OFFLINE
    return EdgeStatus.UNKNOWN
