import math

from genesys_ops.errors import (
    DuplicateKeyError,
    MissingKeyValueError,
    SchemaIncompleteError,
    UpstreamError,
)
from genesys_ops.models import Resolved, TableSummary
from genesys_ops.monitor import monitor
from genesys_ops.normalizers import _text, map_collection
from genesys_ops.schema import build_table_schema

_DUPLICATE_MARKERS = ("duplicate", "already exists", "already.exists", "conflict")


def coerce_nan(payload):
    """Copy of the payload with NaN numbers replaced by None."""
    out = {}
    for key, value in (payload or {}).items():
        if isinstance(value, float) and math.isnan(value):
            out[key] = None
        else:
            out[key] = value
    return out


def _is_duplicate_key(error):
    if error.status_code == 409:
        return True
    text = f"{error.code or ''} {error.platform_message or ''}".lower()
    return error.status_code == 400 and any(marker in text for marker in _DUPLICATE_MARKERS)


def _normalize_table_summary(raw):
    return TableSummary(id=raw["id"], name=_text(raw.get("name")) or raw["id"], description=_text(raw.get("description")))


class RowCoordinator:
    """Create, update and delete data table rows against a resolved primary key.

    Every precondition is checked before the request is sent: a table whose
    key could not be inferred, or a payload without a key value, never
    reaches the network.
    """

    def __init__(self, api):
        self.api = api

    def list_tables(self):
        tables = map_collection(self.api.get_datatables(), _normalize_table_summary, label="data table")
        return sorted(tables, key=lambda t: t.name.lower())

    def get_schema(self, table_id):
        return build_table_schema(self.api.get_datatable(table_id))

    def list_rows(self, table_id, show_empty_fields=True):
        return [row for row in self.api.get_datatable_rows(table_id, show_empty_fields=show_empty_fields)
                if isinstance(row, dict)]

    @staticmethod
    def require_primary_key(schema):
        if not isinstance(schema.primary_key, Resolved):
            reason = getattr(schema.primary_key, "reason", "") or "unknown"
            raise SchemaIncompleteError(
                f"Primary key not identified for data table '{schema.name}' ({reason}); writes are disabled."
            )
        return schema.primary_key.name

    @staticmethod
    def _require_value(value, field):
        text = "" if value is None else str(value).strip()
        if not text:
            raise MissingKeyValueError(f"A value for the key field '{field}' is required.", field=field)
        return value

    def create_row(self, schema, payload):
        pk = self.require_primary_key(schema)
        body = coerce_nan(payload)
        key_value = self._require_value(body.get(pk), pk)
        try:
            return self.api.create_datatable_row(schema.id, body)
        except UpstreamError as e:
            if _is_duplicate_key(e):
                monitor.log_error("DATATABLES", f"Duplicate key '{key_value}' in {schema.id}", str(e))
                raise DuplicateKeyError(key_value, table_id=schema.id) from e
            raise

    def update_row(self, schema, row_id, payload):
        pk = self.require_primary_key(schema)
        row_key = self._require_value(row_id, pk)
        body = coerce_nan(payload)
        # The key itself cannot be changed through an update.
        body[pk] = row_key
        return self.api.update_datatable_row(schema.id, row_key, body)

    def delete_row(self, schema, row_id):
        pk = self.require_primary_key(schema)
        row_key = self._require_value(row_id, pk)
        self.api.delete_datatable_row(schema.id, row_key)
