import random
import time
from urllib.parse import quote

import requests

from genesys_ops.errors import (
    NotFoundError,
    UpstreamError,
    UpstreamTimeoutError,
    VersionConflictError,
)
from genesys_ops.monitor import Stopwatch, monitor

QUEUE_OBSERVATION_METRICS = ["oOnQueueUsers", "oInteracting", "oWaiting"]


def _error_from_response(response, path, method):
    """Build the typed error for a non-2xx response, keeping the platform's message and trace id."""
    body = {}
    try:
        body = response.json() or {}
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    message = body.get("message") or body.get("error") or (response.text or "")[:500] or response.reason
    details = body.get("details")
    if isinstance(details, list) and details and isinstance(details[0], dict):
        first = details[0]
        extra = first.get("errorMessage") or first.get("errorCode")
        if extra and extra not in str(message):
            message = f"{message} ({extra})"
    status = response.status_code
    kwargs = dict(status_code=status, code=body.get("code"), context_id=body.get("contextId"), path=path)
    if status == 404:
        return NotFoundError(message or f"{method} {path} not found", **kwargs)
    if status == 409:
        return VersionConflictError(message or "Conflict", **kwargs)
    if status in (408, 504):
        return UpstreamTimeoutError(message or "Gateway timeout", **kwargs)
    return UpstreamError(message, **kwargs)


class GenesysAPI:
    HTTP_429_RETRY_SECONDS = 60
    HTTP_429_MAX_RETRIES = 3
    HTTP_429_MAX_TOTAL_WAIT_SECONDS = 180
    HTTP_429_WAIT_CAP_SECONDS = 120

    def __init__(self, session_provider, http_session=None, sleep=time.sleep):
        self.sessions = session_provider
        self.timeout = session_provider.settings.http_timeout
        self.page_size = session_provider.settings.page_size
        self._http = http_session or requests.Session()
        self._http.headers.update({"Content-Type": "application/json"})
        self._sleep = sleep

    def _headers(self):
        credential = self.sessions.ensure_authenticated()
        return credential.api_host, {
            "Authorization": f"Bearer {credential.access_token}",
            "Content-Type": "application/json",
        }

    def _get_retry_after_seconds(self, response, default_seconds=None):
        default_wait = max(1, int(default_seconds or self.HTTP_429_RETRY_SECONDS or 1))
        cap = max(1, int(self.HTTP_429_WAIT_CAP_SECONDS or 120))
        if response is None:
            return min(default_wait, cap)
        retry_after = (getattr(response, "headers", None) or {}).get("Retry-After")
        if retry_after is None:
            return min(default_wait, cap)
        try:
            wait_s = int(float(str(retry_after).strip()))
        except ValueError:
            return min(default_wait, cap)
        return min(max(1, wait_s), cap)

    def _can_retry_429(self, retry_count):
        max_retries = int(self.HTTP_429_MAX_RETRIES or 0)
        if max_retries <= 0:
            return False
        return retry_count <= max_retries

    def _next_429_wait(self, response, retry_count, total_wait_seconds):
        if not self._can_retry_429(retry_count):
            return None, total_wait_seconds
        wait_s = self._get_retry_after_seconds(response)
        # Small jitter avoids synchronized bursts after Retry-After.
        wait_s += random.uniform(0, 0.5)
        projected_wait = float(total_wait_seconds) + float(wait_s)
        max_total_wait = int(self.HTTP_429_MAX_TOTAL_WAIT_SECONDS or 0)
        if max_total_wait > 0 and projected_wait > max_total_wait:
            return None, projected_wait
        return wait_s, projected_wait

    def _request(self, method, path, params=None, json=None, timeout=None):
        module = f"API_{method}"
        retry_429_count = 0
        total_wait_429 = 0.0
        reauthenticated = False
        while True:
            api_host, headers = self._headers()
            watch = Stopwatch()
            try:
                response = self._http.request(
                    method,
                    f"{api_host}{path}",
                    headers=headers,
                    params=params,
                    json=json,
                    timeout=timeout or self.timeout,
                )
            except requests.exceptions.Timeout as e:
                monitor.log_api_call(path, method=method, status_code=None, duration_ms=watch.elapsed_ms)
                monitor.log_error(module, f"Timeout on {path}", str(e))
                raise UpstreamTimeoutError(f"Request timed out after {timeout or self.timeout}s", path=path)
            except requests.exceptions.RequestException as e:
                monitor.log_api_call(path, method=method, status_code=None, duration_ms=watch.elapsed_ms)
                monitor.log_error(module, f"System Error on {path}", str(e))
                raise UpstreamError(f"Connection error: {e}", path=path)

            status_code = response.status_code
            monitor.log_api_call(path, method=method, status_code=status_code, duration_ms=watch.elapsed_ms)
            if 200 <= status_code < 300:
                if status_code in (202, 204) or not response.content:
                    return {"status": status_code}
                try:
                    return response.json()
                except ValueError:
                    return {"status": status_code}

            if status_code == 429:
                retry_429_count += 1
                wait_s, projected_wait = self._next_429_wait(response, retry_429_count, total_wait_429)
                if wait_s is not None:
                    total_wait_429 = projected_wait
                    monitor.log_error(
                        module,
                        f"HTTP 429 on {path}; retrying in {wait_s:.2f}s (attempt {retry_429_count}, total_wait={total_wait_429:.2f}s)",
                    )
                    self._sleep(wait_s)
                    continue
                monitor.log_error(
                    module,
                    f"HTTP 429 retry budget exceeded on {path} (attempt {retry_429_count}, total_wait={projected_wait:.2f}s)",
                )

            if status_code == 401:
                self.sessions.invalidate()
                if not reauthenticated:
                    monitor.log_error(module, f"Token rejected (401) on {path}; re-authenticating once.")
                    reauthenticated = True
                    continue

            detail = None
            if response.text:
                detail = response.text if len(response.text) <= 2000 else response.text[:2000] + "...(truncated)"
            monitor.log_error(module, f"HTTP {status_code} on {path}", detail)
            raise _error_from_response(response, path, method)

    def _get(self, path, params=None):
        return self._request("GET", path, params=params)

    def _post(self, path, data, params=None, timeout=None):
        return self._request("POST", path, params=params, json=data, timeout=timeout)

    def _put(self, path, data):
        return self._request("PUT", path, json=data)

    def _patch(self, path, data=None):
        return self._request("PATCH", path, json=data or {})

    def _delete(self, path, params=None):
        return self._request("DELETE", path, params=params)

    def _page_params(self, page_size=None, page_number=1, **extra):
        params = {"pageSize": int(page_size or self.page_size), "pageNumber": max(1, int(page_number or 1))}
        params.update({k: v for k, v in extra.items() if v is not None})
        return params

    @staticmethod
    def _entities(data):
        entities = data.get("entities") if isinstance(data, dict) else None
        return entities if isinstance(entities, list) else []

    # --- Users, divisions, skills ---

    def get_users(self, page_size=None, expand=("presence", "division")):
        params = self._page_params(page_size, expand=",".join(expand) if expand else None)
        return self._entities(self._get("/api/v2/users", params=params))

    def get_user(self, user_id, expand=None):
        params = {"expand": ",".join(expand)} if expand else None
        return self._get(f"/api/v2/users/{user_id}", params=params)

    def patch_user(self, user_id, body):
        return self._patch(f"/api/v2/users/{user_id}", body)

    def get_divisions(self, page_size=None):
        return self._entities(self._get("/api/v2/authorization/divisions", params=self._page_params(page_size)))

    def get_routing_skills(self, page_size=200):
        return self._entities(self._get("/api/v2/routing/skills", params=self._page_params(page_size)))

    def get_user_routing_skills(self, user_id, page_size=None):
        return self._entities(
            self._get(f"/api/v2/users/{user_id}/routingskills", params=self._page_params(page_size))
        )

    def replace_user_routing_skills(self, user_id, skills):
        """Replace the user's whole skill set with `skills` ([{id, proficiency, state}])."""
        return self._entities(self._put(f"/api/v2/users/{user_id}/routingskills/bulk", skills))

    # --- Architect data tables ---

    def get_datatables(self, page_size=None):
        return self._entities(self._get("/api/v2/flows/datatables", params=self._page_params(page_size)))

    def get_datatable(self, table_id):
        return self._get(f"/api/v2/flows/datatables/{table_id}", params={"expand": "schema"})

    def get_datatable_rows(self, table_id, show_empty_fields=True, page_size=200):
        params = self._page_params(page_size, showbrief="false" if show_empty_fields else "true")
        return self._entities(self._get(f"/api/v2/flows/datatables/{table_id}/rows", params=params))

    def create_datatable_row(self, table_id, row):
        return self._post(f"/api/v2/flows/datatables/{table_id}/rows", row)

    def update_datatable_row(self, table_id, row_id, row):
        return self._put(f"/api/v2/flows/datatables/{table_id}/rows/{quote(str(row_id), safe='')}", row)

    def delete_datatable_row(self, table_id, row_id):
        return self._delete(f"/api/v2/flows/datatables/{table_id}/rows/{quote(str(row_id), safe='')}")

    # --- Queues ---

    def get_queues(self, page_size=None):
        return self._entities(self._get("/api/v2/routing/queues", params=self._page_params(page_size)))

    def get_queue_observations(self, queue_ids, metrics=None):
        if not queue_ids:
            return []
        predicates = [{"type": "dimension", "dimension": "queueId", "value": qid} for qid in queue_ids]
        query = {
            "filter": {"type": "or", "predicates": predicates},
            "metrics": list(metrics or QUEUE_OBSERVATION_METRICS),
        }
        data = self._post("/api/v2/analytics/queues/observations/query", query)
        results = data.get("results") if isinstance(data, dict) else None
        return results if isinstance(results, list) else []

    # --- Telephony edges ---

    def get_edges(self, page_size=None):
        return self._entities(self._get("/api/v2/telephony/providers/edges", params=self._page_params(page_size)))

    def get_edge_metrics(self, edge_id):
        return self._get(f"/api/v2/telephony/providers/edges/{edge_id}/metrics")

    # --- Audits and conversations ---

    def query_audits_realtime(self, interval, service_name=None, filters=None, page_number=1, page_size=25):
        payload = {
            "interval": interval,
            "pageNumber": max(1, int(page_number or 1)),
            "pageSize": max(1, min(int(page_size or 25), 500)),
            "sort": [{"name": "Timestamp", "sortOrder": "descending"}],
        }
        if service_name:
            payload["serviceName"] = str(service_name).strip()
        if filters:
            payload["filters"] = filters
        data = self._post("/api/v2/audits/query/realtime", payload, params={"expand": "user"}, timeout=30)
        entities = data.get("entities") if isinstance(data, dict) else None
        return entities if isinstance(entities, list) else []

    def query_conversation_details(self, interval, conversation_id=None, page_number=1, page_size=25):
        query = {
            "interval": interval,
            "order": "desc",
            "orderBy": "conversationStart",
            "paging": {"pageSize": max(1, min(int(page_size or 25), 100)), "pageNumber": max(1, int(page_number or 1))},
        }
        if conversation_id:
            query["conversationFilters"] = [{
                "type": "and",
                "predicates": [{"type": "dimension", "dimension": "conversationId", "operator": "matches",
                                "value": conversation_id}],
            }]
        data = self._post("/api/v2/analytics/conversations/details/query", query, timeout=30)
        conversations = data.get("conversations") if isinstance(data, dict) else None
        return conversations if isinstance(conversations, list) else []
