import threading
import unittest

import requests

from genesys_ops.auth import SessionProvider
from genesys_ops.config import Settings
from genesys_ops.errors import (
    AuthenticationError,
    ConfigurationError,
    UpstreamError,
    UpstreamTimeoutError,
)
from genesys_ops.monitor import monitor

from fakes import SETTINGS, FakeHTTP, make_response


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _token(value="abc", expires_in=3600):
    return make_response(200, {"access_token": value, "expires_in": expires_in, "token_type": "bearer"})


class SessionProviderTests(unittest.TestCase):
    def setUp(self):
        monitor.reset()
        self.clock = FakeClock()

    def _provider(self, *responses, settings=SETTINGS, delay=0):
        self.http = FakeHTTP(*responses, delay=delay)
        return SessionProvider(settings, session=self.http, clock=self.clock)

    def test_missing_configuration_is_reported_before_any_request(self):
        provider = self._provider(_token(), settings=Settings(client_id="c", region="mypurecloud.ie"))
        with self.assertRaises(ConfigurationError) as ctx:
            provider.ensure_authenticated()
        self.assertIn("GENESYS_CLIENT_SECRET", str(ctx.exception))
        self.assertEqual(self.http.calls, [])

    def test_unknown_region_is_a_configuration_error(self):
        provider = self._provider(_token(), settings=Settings("c", "s", "moon_base_1"))
        with self.assertRaises(ConfigurationError) as ctx:
            provider.ensure_authenticated()
        self.assertIn("moon_base_1", str(ctx.exception))

    def test_token_exchange(self):
        provider = self._provider(_token("tok-1"))
        credential = provider.ensure_authenticated()
        self.assertEqual(credential.access_token, "tok-1")
        self.assertEqual(credential.api_host, "https://api.mypurecloud.ie")
        self.assertEqual(credential.expires_at, 1000.0 + 3600)
        method, url, kwargs = self.http.calls[0]
        self.assertEqual(url, "https://login.mypurecloud.ie/oauth/token")
        self.assertEqual(kwargs["data"], {"grant_type": "client_credentials"})
        self.assertEqual(kwargs["auth"], ("client", "secret"))
        self.assertEqual(kwargs["timeout"], SETTINGS.http_timeout)

    def test_live_credential_is_reused(self):
        provider = self._provider(_token("tok-1"), _token("tok-2"))
        first = provider.ensure_authenticated()
        self.clock.now += 1800
        self.assertIs(provider.ensure_authenticated(), first)
        self.assertEqual(len(self.http.calls), 1)

    def test_credential_near_expiry_is_replaced(self):
        provider = self._provider(_token("tok-1"), _token("tok-2"))
        provider.ensure_authenticated()
        self.clock.now += 3600 - 30
        self.assertEqual(provider.ensure_authenticated().access_token, "tok-2")

    def test_invalidate_forces_new_exchange(self):
        provider = self._provider(_token("tok-1"), _token("tok-2"))
        provider.ensure_authenticated()
        provider.invalidate()
        self.assertIsNone(provider.credential)
        self.assertEqual(provider.ensure_authenticated().access_token, "tok-2")

    def test_invalid_client_message(self):
        provider = self._provider(make_response(401, {"error": "invalid_client", "description": "bad"}))
        with self.assertRaises(AuthenticationError) as ctx:
            provider.ensure_authenticated()
        self.assertIn("Invalid client ID or secret", str(ctx.exception))
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertIsNone(provider.credential)
        self.assertTrue(monitor.get_errors(module="AUTH"))

    def test_unauthorized_client_message(self):
        provider = self._provider(make_response(400, {"error": "unauthorized_client"}))
        with self.assertRaises(AuthenticationError) as ctx:
            provider.ensure_authenticated()
        self.assertIn("not authorized to use the client_credential grant", str(ctx.exception))
        self.assertEqual(ctx.exception.error_code, "unauthorized_client")

    def test_other_rejections_keep_status_and_text(self):
        provider = self._provider(make_response(503, text="maintenance"))
        with self.assertRaises(AuthenticationError) as ctx:
            provider.ensure_authenticated()
        self.assertEqual(str(ctx.exception), "Auth failed (503): maintenance")

    def test_malformed_token_body(self):
        provider = self._provider(make_response(200, {"token_type": "bearer"}))
        with self.assertRaises(AuthenticationError):
            provider.ensure_authenticated()

    def test_timeout_and_connection_errors(self):
        provider = self._provider(requests.exceptions.ConnectTimeout("slow"))
        with self.assertRaises(UpstreamTimeoutError):
            provider.ensure_authenticated()
        provider = self._provider(requests.exceptions.ConnectionError("dns"))
        with self.assertRaises(UpstreamError):
            provider.ensure_authenticated()

    def test_concurrent_first_access_shares_one_exchange(self):
        provider = self._provider(_token("tok-1"), _token("tok-2"), delay=0.05)
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(provider.ensure_authenticated().access_token)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(len(self.http.calls), 1)
        self.assertEqual(results, ["tok-1"] * 8)


class SettingsTests(unittest.TestCase):
    def test_from_env(self):
        settings = Settings.from_env({
            "GENESYS_CLIENT_ID": " id ",
            "GENESYS_CLIENT_SECRET": "secret",
            "GENESYS_REGION": "eu_west_1",
            "GENESYS_HTTP_TIMEOUT": "15",
        })
        self.assertEqual(settings.client_id, "id")
        self.assertEqual(settings.http_timeout, 15.0)
        self.assertEqual(settings.api_host, "https://api.mypurecloud.ie")
        self.assertIs(settings.validate(), settings)
        self.assertNotIn("secret", repr(settings))

    def test_bad_timeout(self):
        with self.assertRaises(ConfigurationError):
            Settings.from_env({"GENESYS_HTTP_TIMEOUT": "soon"})
        with self.assertRaises(ConfigurationError):
            Settings.from_env({"GENESYS_HTTP_TIMEOUT": "-1"})


if __name__ == "__main__":
    unittest.main()
