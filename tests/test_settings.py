import json
import tempfile
import unittest
from pathlib import Path

from obsfs.errors import ConfigurationError
from obsfs.settings import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_WRITE_BUFFER_MB,
    MIB,
    SettingsStorage,
    StoredDefaults,
    load_settings,
)


class FakeKeychain:
    def __init__(self, secrets=None):
        self.secrets = dict(secrets or {})
        self.get_calls = []

    def get_secret(self, access_key: str) -> str:
        self.get_calls.append(access_key)
        return self.secrets.get(access_key, "")


BASE_ENV = {
    "OBS_ACCESS_KEY_ID": "ak",
    "OBS_SECRET_ACCESS_KEY": "sk",
    "OBS_ENDPOINT": "obs.cn-north-4.example.com",
}


class SettingsStorageTests(unittest.TestCase):
    def test_load_returns_defaults_when_missing(self):
        with tempfile.TemporaryDirectory() as tmp:
            storage = SettingsStorage(Path(tmp) / "settings.json")

            self.assertEqual(StoredDefaults(), storage.load())

    def test_load_sanitizes_invalid_values(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            payload = {
                "endpoint": 42,
                "access_key": "  ak  ",
                "write_buffer_mb": "nope",
                "max_attempts": -5,
            }
            path.write_text(json.dumps(payload), encoding="utf-8")

            defaults = SettingsStorage(path).load()

            self.assertEqual("", defaults.endpoint)
            self.assertEqual("ak", defaults.access_key)
            self.assertEqual(DEFAULT_WRITE_BUFFER_MB, defaults.write_buffer_mb)
            self.assertEqual(DEFAULT_MAX_ATTEMPTS, defaults.max_attempts)

    def test_load_ignores_corrupt_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            path.write_text("{not json", encoding="utf-8")

            self.assertEqual(StoredDefaults(), SettingsStorage(path).load())

    def test_save_sanitizes_minimum_values(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "nested" / "settings.json"
            storage = SettingsStorage(path)

            storage.save(StoredDefaults(endpoint="https://obs", write_buffer_mb=0, max_attempts=-1))

            saved = json.loads(path.read_text(encoding="utf-8"))
            self.assertEqual("https://obs", saved["endpoint"])
            self.assertEqual(1, saved["write_buffer_mb"])
            self.assertEqual(1, saved["max_attempts"])
            self.assertNotIn("secret_key", saved)


class LoadSettingsTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.storage = SettingsStorage(Path(self._tmp.name) / "settings.json")

    def tearDown(self):
        self._tmp.cleanup()

    def test_reads_environment(self):
        env = dict(BASE_ENV, OBS_WRITE_BUFFER_MB="16", OBS_MAX_ATTEMPTS="5", OBS_REGION="cn-north-4")

        settings = load_settings(env, storage=self.storage, keychain=FakeKeychain())

        self.assertEqual("ak", settings.access_key)
        self.assertEqual("sk", settings.secret_key)
        self.assertEqual("https://obs.cn-north-4.example.com", settings.endpoint)
        self.assertEqual(16 * MIB, settings.write_buffer_size)
        self.assertEqual(5, settings.max_attempts)
        self.assertEqual("cn-north-4", settings.region)

    def test_default_write_buffer_is_64_mib(self):
        settings = load_settings(BASE_ENV, storage=self.storage, keychain=FakeKeychain())

        self.assertEqual(64 * MIB, settings.write_buffer_size)
        self.assertIsNone(settings.region)

    def test_accepts_legacy_buffer_variable(self):
        env = dict(BASE_ENV, DMLC_OBS_WRITE_BUFFER_MB="8")

        settings = load_settings(env, storage=self.storage, keychain=FakeKeychain())

        self.assertEqual(8 * MIB, settings.write_buffer_size)

    def test_missing_variables_raise_configuration_error(self):
        for name in BASE_ENV:
            env = {key: value for key, value in BASE_ENV.items() if key != name}
            with self.subTest(missing=name):
                with self.assertRaises(ConfigurationError) as ctx:
                    load_settings(env, storage=self.storage, keychain=FakeKeychain())
                self.assertIn(name, str(ctx.exception))

    def test_secret_falls_back_to_keychain(self):
        env = {key: value for key, value in BASE_ENV.items() if key != "OBS_SECRET_ACCESS_KEY"}
        keychain = FakeKeychain({"ak": "from-keychain"})

        settings = load_settings(env, storage=self.storage, keychain=keychain)

        self.assertEqual("from-keychain", settings.secret_key)
        self.assertEqual(["ak"], keychain.get_calls)

    def test_file_supplies_non_secret_defaults(self):
        self.storage.save(StoredDefaults(endpoint="http://local:9000", access_key="file-ak", write_buffer_mb=2))
        env = {"OBS_SECRET_ACCESS_KEY": "sk"}

        settings = load_settings(env, storage=self.storage, keychain=FakeKeychain())

        self.assertEqual("file-ak", settings.access_key)
        self.assertEqual("http://local:9000", settings.endpoint)
        self.assertEqual(2 * MIB, settings.write_buffer_size)


if __name__ == "__main__":
    unittest.main()
