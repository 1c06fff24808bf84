import dataclasses
from enum import Enum

import pandas as pd

from genesys_ops.models import MetricSample
from genesys_ops.normalizers import _as_list, _get_val, parse_timestamp

# Observation metric -> QueueRecord gauge
QUEUE_GAUGES = {
    "oOnQueueUsers": "on_queue_count",
    "oInteracting": "interacting_count",
    "oWaiting": "waiting_count",
}

EDGE_METRIC_CPU = "cpu"
EDGE_METRIC_MEMORY = "memory"
EDGE_METRIC_RTT = "rtt"


def _as_number(value):
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return number


def latest_by_metric(samples):
    """Latest sample per metric name.

    Samples without a timestamp or value are ignored, so a series with no
    usable sample is absent from the result. On equal timestamps the first
    sample in input order wins.
    """
    latest = {}
    for sample in samples or []:
        if sample is None or sample.timestamp is None or _as_number(sample.value) is None:
            continue
        current = latest.get(sample.name)
        if current is None or sample.timestamp > current.timestamp:
            latest[sample.name] = sample
    return latest


def _cpu_percent(processors):
    values = []
    for p in _as_list(processors):
        active = _as_number(_get_val(p, "activeTimePct"))
        if active is None:
            idle = _as_number(_get_val(p, "idlePct"))
            active = (100.0 - idle) if idle is not None else None
        if active is not None:
            values.append(active)
    if not values:
        return None
    return round(sum(values) / len(values), 2)


def _memory_percent(memory):
    entries = [m for m in _as_list(memory) if isinstance(m, dict)]
    physical = [m for m in entries if str(m.get("type") or "").lower() == "physical"]
    for m in physical or entries:
        total = _as_number(m.get("totalBytes"))
        available = _as_number(m.get("availableBytes"))
        if total and available is not None:
            return round((total - available) / total * 100.0, 2)
    return None


def parse_edge_metric_samples(payload):
    """Flatten raw edge metric payloads into MetricSamples.

    Accepts one metrics snapshot or a list of them. A snapshot either carries
    a single ``{metric|name, value, timestamp}`` sample or the platform's
    edge metrics shape (``processors``, ``memory``, ``rtt``) stamped with
    ``eventTime``.
    """
    snapshots = payload if isinstance(payload, list) else [payload]
    samples = []
    for snap in snapshots:
        if not isinstance(snap, dict):
            continue
        ts = parse_timestamp(snap.get("eventTime") or snap.get("timestamp") or snap.get("dateTime"))
        name = snap.get("metric") or snap.get("name")
        if name and "value" in snap:
            value = _as_number(snap.get("value"))
            if value is not None:
                samples.append(MetricSample(name=str(name), value=value, timestamp=ts))
            continue
        cpu = _cpu_percent(snap.get("processors"))
        if cpu is not None:
            samples.append(MetricSample(name=EDGE_METRIC_CPU, value=cpu, timestamp=ts))
        memory = _memory_percent(snap.get("memory"))
        if memory is not None:
            samples.append(MetricSample(name=EDGE_METRIC_MEMORY, value=memory, timestamp=ts))
        rtt = _as_number(snap.get("rttMs", snap.get("rtt")))
        if rtt is not None:
            samples.append(MetricSample(name=EDGE_METRIC_RTT, value=rtt, timestamp=ts))
    return samples


def observation_gauges(result):
    """Gauge values carried by one observation result (counts summed over qualifiers)."""
    gauges = {}
    for dp in _as_list(_get_val(result, "data")):
        field = QUEUE_GAUGES.get(_get_val(dp, "metric"))
        if not field:
            continue
        count = _as_number(_get_val(dp, "stats.count"))
        if count is None:
            continue
        gauges[field] = gauges.get(field, 0) + max(0, int(count))
    return gauges


def join_observations(entities, observations, key_of=None, group_key="queueId"):
    """Overlay observation gauges onto entities by id.

    Entities without a matching result keep their default gauges, results for
    unknown ids are dropped. Returns new records; inputs are left untouched.
    """
    key_of = key_of or (lambda e: e.id)
    by_key = {}
    for result in _as_list(observations):
        key = _get_val(result, f"group.{group_key}")
        if key is None:
            continue
        merged = by_key.setdefault(key, {})
        for field, value in observation_gauges(result).items():
            merged[field] = merged.get(field, 0) + value

    joined = []
    for entity in entities or []:
        gauges = by_key.get(key_of(entity))
        joined.append(dataclasses.replace(entity, **gauges) if gauges else entity)
    return joined


def _flatten(value):
    if isinstance(value, Enum):
        return value.value
    return value


def to_frame(records):
    """DataFrame with one row per record; nested dataclasses become prefixed columns."""
    rows = []
    for record in records or []:
        row = {}
        for key, value in dataclasses.asdict(record).items():
            if key == "metrics" and isinstance(value, dict):
                for metric_name, sample in value.items():
                    row[metric_name] = sample.get("value")
                    row[f"{metric_name}_at"] = sample.get("timestamp")
            elif isinstance(value, dict):
                for sub_key, sub_value in value.items():
                    row[f"{key}_{sub_key}"] = _flatten(sub_value)
            else:
                row[key] = _flatten(value)
        rows.append(row)
    return pd.DataFrame(rows)


def rows_frame(schema, rows):
    """Data table rows as a DataFrame with columns in display order (primary key first)."""
    columns = schema.ordered_column_names()
    df = pd.DataFrame(list(rows or []))
    for col in columns:
        if col not in df.columns:
            df[col] = None
    return df[columns] if columns else df
