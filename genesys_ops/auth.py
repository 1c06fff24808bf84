import logging
import threading
import time

import requests

from genesys_ops.errors import AuthenticationError, UpstreamError, UpstreamTimeoutError
from genesys_ops.models import Credential
from genesys_ops.monitor import Stopwatch, monitor

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_LIFETIME_SECONDS = 3600
EXPIRY_MARGIN_SECONDS = 60


def _auth_error_from_response(response):
    body = {}
    try:
        body = response.json() or {}
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    error_code = body.get("error")
    description = body.get("error_description") or body.get("description") or body.get("message")
    text = (response.text or "")[:500]

    if error_code == "invalid_client" or "invalid_client" in text:
        message = (
            "Genesys Cloud authentication failed: Invalid client ID or secret, "
            "or client not authorized for client_credential grant."
        )
    elif error_code == "unauthorized_client":
        message = (
            "Genesys Cloud authentication failed: Client is not authorized to use the "
            "client_credential grant type. Please check OAuth client configuration in Genesys Cloud."
        )
    else:
        message = f"Auth failed ({response.status_code}): {description or text or 'no detail'}"
    return AuthenticationError(message, status_code=response.status_code, error_code=error_code)


class SessionProvider:
    """Owns the bearer credential for one organization.

    Built once by the composition root and passed to everything that talks to
    the platform. The first access is serialized, so concurrent callers share
    one token exchange. A credential close to expiry is re-acquired.
    """

    def __init__(self, settings, session=None, clock=time.time):
        self.settings = settings
        self._http = session or requests.Session()
        self._clock = clock
        self._credential = None
        self._lock = threading.Lock()

    @property
    def credential(self):
        return self._credential

    def ensure_authenticated(self):
        cached = self._credential
        if cached is not None and cached.is_live(self._clock(), EXPIRY_MARGIN_SECONDS):
            return cached
        with self._lock:
            cached = self._credential
            if cached is not None and cached.is_live(self._clock(), EXPIRY_MARGIN_SECONDS):
                return cached
            self.settings.validate()
            self._credential = self._login()
            return self._credential

    def invalidate(self):
        """Drop the cached credential, e.g. after the platform answered 401."""
        with self._lock:
            self._credential = None

    def _login(self):
        settings = self.settings
        token_url = f"{settings.login_host}/oauth/token"
        watch = Stopwatch()
        try:
            response = self._http.post(
                token_url,
                data={"grant_type": "client_credentials"},
                auth=(settings.client_id, settings.client_secret),
                timeout=settings.http_timeout,
            )
        except requests.exceptions.Timeout as e:
            monitor.log_api_call("/oauth/token", method="POST", status_code=None, duration_ms=watch.elapsed_ms)
            monitor.log_error("AUTH", f"Token exchange timed out after {settings.http_timeout}s", str(e))
            raise UpstreamTimeoutError(f"Token exchange timed out: {e}", path="/oauth/token")
        except requests.exceptions.RequestException as e:
            monitor.log_api_call("/oauth/token", method="POST", status_code=None, duration_ms=watch.elapsed_ms)
            monitor.log_error("AUTH", "Connection error during token exchange", str(e))
            raise UpstreamError(f"Connection error: {e}", path="/oauth/token")

        monitor.log_api_call("/oauth/token", method="POST", status_code=response.status_code, duration_ms=watch.elapsed_ms)
        if response.status_code != 200:
            error = _auth_error_from_response(response)
            monitor.log_error("AUTH", str(error), response.text[:500] if response.text else None)
            raise error

        try:
            token_data = response.json()
            access_token = token_data["access_token"]
        except (ValueError, KeyError, TypeError):
            monitor.log_error("AUTH", "Token response did not contain an access token")
            raise AuthenticationError("Genesys Cloud authentication failed: malformed token response.",
                                      status_code=response.status_code)
        try:
            lifetime = int(token_data.get("expires_in") or DEFAULT_TOKEN_LIFETIME_SECONDS)
        except (TypeError, ValueError):
            lifetime = DEFAULT_TOKEN_LIFETIME_SECONDS

        logger.info("Authenticated with Genesys Cloud (%s), token valid for %ss", settings.region, lifetime)
        return Credential(
            access_token=access_token,
            api_host=settings.api_host,
            region=settings.region,
            expires_at=self._clock() + lifetime,
        )
