import dataclasses
import logging
from datetime import datetime, timezone

from genesys_ops.api import GenesysAPI
from genesys_ops.auth import SessionProvider
from genesys_ops.config import Settings
from genesys_ops.datatables import RowCoordinator
from genesys_ops.errors import (
    AuthenticationError,
    ConfigurationError,
    GenesysError,
    InvalidQueryError,
    NotFoundError,
    PartialDataError,
)
from genesys_ops.monitor import monitor
from genesys_ops.normalizers import (
    map_collection,
    normalize_audit_entry,
    normalize_conversation,
    normalize_division,
    normalize_edge,
    normalize_queue,
    normalize_skill_definition,
    normalize_user,
)
from genesys_ops.processor import (
    join_observations,
    latest_by_metric,
    parse_edge_metric_samples,
)
from genesys_ops.skills import SkillReconciler

MAX_AUDIT_RANGE_DAYS = 31
MAX_CONVERSATION_RANGE_DAYS = 7


def _to_utc(dt):
    if not isinstance(dt, datetime):
        raise InvalidQueryError("start and end must be datetime values")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def build_interval(start, end, max_days):
    """ISO-8601 interval string, validated against the platform's range limit."""
    start_utc, end_utc = _to_utc(start), _to_utc(end)
    if end_utc <= start_utc:
        raise InvalidQueryError("The end of the date range must be after its start.")
    if (end_utc - start_utc).total_seconds() > max_days * 86400:
        raise InvalidQueryError(f"The date range cannot exceed {max_days} days. Please select a shorter period.")
    fmt = "%Y-%m-%dT%H:%M:%S.000Z"
    return f"{start_utc.strftime(fmt)}/{end_utc.strftime(fmt)}"


def _degrade(operation, error):
    partial = PartialDataError(operation, error)
    monitor.log_error("PARTIAL_DATA", str(partial), repr(error), level=logging.WARNING)
    return partial


class DataManager:
    """Entry point for the dashboard pages.

    Each method is one page-level read or write: it authenticates through the
    shared SessionProvider, issues the raw calls and returns normalized records.
    """

    def __init__(self, api):
        self.api = api
        self.skills = SkillReconciler(api)
        self.rows = RowCoordinator(api)

    @classmethod
    def from_settings(cls, settings=None):
        """Composition root: settings (default: environment) -> session -> api -> manager."""
        sessions = SessionProvider(settings or Settings.from_env())
        return cls(GenesysAPI(sessions))

    # --- Users and divisions ---

    def get_users(self):
        raw = self.api.get_users(expand=("presence", "division"))
        users = map_collection(raw, normalize_user, label="user")
        return sorted(users, key=lambda u: u.name.lower())

    def get_divisions(self):
        divisions = map_collection(self.api.get_divisions(), normalize_division, label="division")
        return sorted(divisions, key=lambda d: d.name.lower())

    def update_user_division(self, user_id, division_id):
        """Move a user to another division.

        The patch carries the user's current version; a stale version comes
        back as VersionConflictError and is not retried.
        """
        current = self.api.get_user(user_id)
        if not isinstance(current, dict) or not current.get("id"):
            raise NotFoundError(f"User {user_id} not found", status_code=404, path=f"/api/v2/users/{user_id}")
        body = {"division": {"id": division_id}, "version": current.get("version")}
        updated = self.api.patch_user(user_id, body)
        if isinstance(updated, dict) and updated.get("id"):
            return normalize_user(updated)
        return normalize_user({**current, "division": {"id": division_id, "name": None}})

    # --- Skills ---

    def get_all_skills(self):
        skills = map_collection(self.api.get_routing_skills(), normalize_skill_definition, label="skill")
        return sorted(skills, key=lambda s: s.name.lower())

    def get_user_skills(self, user_id):
        return self.skills.fetch(user_id)

    def update_user_skills(self, user_id, desired):
        return self.skills.reconcile(user_id, desired)

    # --- Queues ---

    def get_queue_dashboard(self):
        queues = map_collection(self.api.get_queues(), normalize_queue, label="queue")
        observations = []
        if queues:
            try:
                observations = self.api.get_queue_observations([q.id for q in queues])
            except (ConfigurationError, AuthenticationError):
                raise
            except GenesysError as e:
                _degrade("queue observations", e)
        return sorted(join_observations(queues, observations, key_of=lambda q: q.id), key=lambda q: q.name.lower())

    # --- Edges ---

    def _edge_metrics(self, edge_id):
        try:
            payload = self.api.get_edge_metrics(edge_id)
        except (ConfigurationError, AuthenticationError):
            raise
        except GenesysError as e:
            _degrade(f"edge metrics for {edge_id}", e)
            return {}
        return latest_by_metric(parse_edge_metric_samples(payload))

    def get_edges(self):
        edges = map_collection(self.api.get_edges(), normalize_edge, label="edge")
        edges = [dataclasses.replace(e, metrics=self._edge_metrics(e.id)) for e in edges]
        return sorted(edges, key=lambda e: e.name.lower())

    # --- Audits and conversations ---

    def query_audit_logs(self, start, end, service_name=None, action=None, entity_type=None,
                         user_id=None, page_number=1, page_size=25):
        interval = build_interval(start, end, MAX_AUDIT_RANGE_DAYS)
        filters = []
        for name, value in (("Action", action), ("EntityType", entity_type), ("UserId", user_id)):
            if value and str(value).strip():
                filters.append({"property": name, "value": str(value).strip()})
        raw = self.api.query_audits_realtime(
            interval,
            service_name=service_name,
            filters=filters or None,
            page_number=page_number,
            page_size=page_size,
        )
        return map_collection(raw, normalize_audit_entry, label="audit entry")

    def search_conversations(self, start, end, conversation_id=None, page_number=1, page_size=25):
        interval = build_interval(start, end, MAX_CONVERSATION_RANGE_DAYS)
        conv_id = (conversation_id or "").strip() or None
        raw = self.api.query_conversation_details(
            interval, conversation_id=conv_id, page_number=page_number, page_size=page_size
        )
        return map_collection(raw, normalize_conversation, label="conversation")

    # --- Data tables ---

    def get_data_tables(self):
        return self.rows.list_tables()

    def get_data_table_schema(self, table_id):
        return self.rows.get_schema(table_id)

    def get_data_table_rows(self, table_id, show_empty_fields=True):
        return self.rows.list_rows(table_id, show_empty_fields=show_empty_fields)

    def add_data_table_row(self, schema, payload):
        return self.rows.create_row(schema, payload)

    def update_data_table_row(self, schema, row_id, payload):
        return self.rows.update_row(schema, row_id, payload)

    def delete_data_table_row(self, schema, row_id):
        self.rows.delete_row(schema, row_id)

    # --- Diagnostics ---

    def get_api_usage(self, minutes=1, limit=20):
        """Call counters, the recent call rate, and the latest calls and errors."""
        stats = monitor.get_stats()
        stats["calls_per_minute"] = monitor.get_rate_per_minute(minutes)
        stats["recent_calls"] = monitor.get_recent_calls(limit=limit)
        stats["recent_errors"] = monitor.get_errors(limit=limit)
        return stats
