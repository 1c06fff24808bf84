"""Primary-key inference and column normalization for Architect data tables.

The platform does not always report a table's key. The inference runs in
tiers and stops at the first one that yields a name:

1. ``schema["key"]`` when it is a non-empty string after trimming.
2. ``schema["required"]`` when it holds exactly one string that names a
   declared property. This is a heuristic, so the result is flagged as a
   fallback and logged.
3. Otherwise the key is ``Unresolved`` and every write is refused.
"""
import logging
from collections import OrderedDict

from genesys_ops.models import Column, Resolved, TableSchema, Unresolved

logger = logging.getLogger(__name__)

DEFAULT_COLUMN_TYPE = "string"


def _as_dict(value):
    return value if isinstance(value, dict) else {}


def infer_primary_key(schema, table_label=None):
    schema = _as_dict(schema)
    label = table_label or "data table"

    key = schema.get("key")
    if isinstance(key, str) and key.strip():
        return Resolved(key.strip())

    properties = _as_dict(schema.get("properties"))
    required = schema.get("required")
    if isinstance(required, list) and len(required) == 1 and isinstance(required[0], str):
        candidate = required[0]
        if candidate in properties:
            logger.warning(
                "Primary key for %s inferred from the single required field '%s' (fallback, no schema.key)",
                label, candidate,
            )
            return Resolved(candidate, fallback=True)

    if isinstance(key, str):
        reason = "schema.key is an empty string"
    elif "key" in schema:
        reason = f"schema.key is not a string ({type(key).__name__})"
    elif not schema:
        reason = "schema is missing"
    else:
        reason = "schema.key is absent and no single required field names a property"
    logger.warning("Primary key for %s could not be determined: %s", label, reason)
    return Unresolved(reason)


def resolve_column_type(definition):
    """Declared type of one property: a plain string, or nested one level as {"type": {"type": str}}."""
    declared = _as_dict(definition).get("type")
    if isinstance(declared, str):
        return declared
    if isinstance(declared, dict) and isinstance(declared.get("type"), str):
        return declared["type"]
    return DEFAULT_COLUMN_TYPE


def normalize_columns(schema, primary_key):
    pk_name = primary_key.name if isinstance(primary_key, Resolved) else None
    columns = OrderedDict()
    for name, definition in _as_dict(_as_dict(schema).get("properties")).items():
        columns[name] = Column(
            name=name,
            type=resolve_column_type(definition),
            is_primary_key=(name == pk_name),
        )
    return columns


def build_table_schema(raw_table):
    """Turn a raw ``GET /flows/datatables/{id}?expand=schema`` body into a TableSchema."""
    raw_table = _as_dict(raw_table)
    table_id = raw_table.get("id") or ""
    name = raw_table.get("name") or table_id
    schema = raw_table.get("schema")
    primary_key = infer_primary_key(schema, table_label=f"{table_id} (name: {name})")
    return TableSchema(
        id=table_id,
        name=name,
        description=raw_table.get("description"),
        primary_key=primary_key,
        columns=normalize_columns(schema, primary_key),
    )
