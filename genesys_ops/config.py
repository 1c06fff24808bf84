import os
from dataclasses import dataclass, field

from genesys_ops.errors import ConfigurationError

DEFAULT_HTTP_TIMEOUT_SECONDS = 10
DEFAULT_PAGE_SIZE = 100

# Region name -> host suffix. API at https://api.<suffix>, login at https://login.<suffix>.
REGION_HOSTS = {
    "mypurecloud.com": "mypurecloud.com",
    "mypurecloud.ie": "mypurecloud.ie",
    "mypurecloud.de": "mypurecloud.de",
    "mypurecloud.jp": "mypurecloud.jp",
    "mypurecloud.com.au": "mypurecloud.com.au",
    "usw2.pure.cloud": "usw2.pure.cloud",
    "cac1.pure.cloud": "cac1.pure.cloud",
    "euw2.pure.cloud": "euw2.pure.cloud",
    "euc2.pure.cloud": "euc2.pure.cloud",
    "aps1.pure.cloud": "aps1.pure.cloud",
    "apne2.pure.cloud": "apne2.pure.cloud",
    "apne3.pure.cloud": "apne3.pure.cloud",
    "sae1.pure.cloud": "sae1.pure.cloud",
    "mec1.pure.cloud": "mec1.pure.cloud",
    "use2.us-gov-pure.cloud": "use2.us-gov-pure.cloud",
    # SDK-style region names
    "us_east_1": "mypurecloud.com",
    "eu_west_1": "mypurecloud.ie",
    "eu_central_1": "mypurecloud.de",
    "ap_northeast_1": "mypurecloud.jp",
    "ap_southeast_2": "mypurecloud.com.au",
    "us_west_2": "usw2.pure.cloud",
    "ca_central_1": "cac1.pure.cloud",
    "eu_west_2": "euw2.pure.cloud",
    "eu_central_2": "euc2.pure.cloud",
    "ap_south_1": "aps1.pure.cloud",
    "ap_northeast_2": "apne2.pure.cloud",
    "ap_northeast_3": "apne3.pure.cloud",
    "sa_east_1": "sae1.pure.cloud",
    "me_central_1": "mec1.pure.cloud",
    "us_east_2": "use2.us-gov-pure.cloud",
}


def resolve_region_host(region):
    """Return the host suffix for a region name, or None if the region is unknown."""
    raw = str(region or "").strip().lower()
    if not raw:
        return None
    return REGION_HOSTS.get(raw)


def _env_float(env, name, default):
    raw = env.get(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    """Connection settings for one Genesys Cloud organization."""

    client_id: str = ""
    client_secret: str = field(default="", repr=False)
    region: str = ""
    http_timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS
    page_size: int = DEFAULT_PAGE_SIZE

    @classmethod
    def from_env(cls, environ=None):
        env = os.environ if environ is None else environ
        return cls(
            client_id=(env.get("GENESYS_CLIENT_ID") or "").strip(),
            client_secret=(env.get("GENESYS_CLIENT_SECRET") or "").strip(),
            region=(env.get("GENESYS_REGION") or "").strip(),
            http_timeout=_env_float(env, "GENESYS_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT_SECONDS),
        )

    @property
    def region_host(self):
        return resolve_region_host(self.region)

    @property
    def api_host(self):
        host = self.region_host
        return f"https://api.{host}" if host else None

    @property
    def login_host(self):
        host = self.region_host
        return f"https://login.{host}" if host else None

    def validate(self):
        """Raise ConfigurationError when credentials or region are unusable."""
        missing = [
            name for name, value in (
                ("GENESYS_CLIENT_ID", self.client_id),
                ("GENESYS_CLIENT_SECRET", self.client_secret),
                ("GENESYS_REGION", self.region),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"API credentials or region not configured. Missing: {', '.join(missing)}"
            )
        if not self.region_host:
            raise ConfigurationError(f'Invalid Genesys Cloud region specified: "{self.region}".')
        if self.http_timeout <= 0:
            raise ConfigurationError("HTTP timeout must be positive")
        return self
