import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from conductor_client.config import DEFAULT_API_BASE, TOKEN_KEY, load_config, load_env_file

_KEYS = (
    "CONDUCTOR_API_BASE",
    "CONDUCTOR_SESSION_TOKEN",
    "CONDUCTOR_RUNS_POLL_SEC",
    "CONDUCTOR_STATS_POLL_SEC",
    "CONDUCTOR_GET_RETRIES",
)


def _clean_env():
    return {k: v for k, v in os.environ.items() if k not in _KEYS}


class TestConfigLoading(unittest.TestCase):
    def test_defaults_without_env_file(self):
        with tempfile.TemporaryDirectory() as tmp, patch.dict("os.environ", _clean_env(), clear=True):
            with self.assertLogs("conductor_client.config", level="WARNING"):
                cfg = load_config(Path(tmp))
        self.assertEqual(cfg.api_base, DEFAULT_API_BASE)
        self.assertEqual(cfg.session_token, "")
        self.assertEqual(cfg.runs_poll_sec, 3.0)
        self.assertEqual(cfg.stats_poll_sec, 5.0)
        self.assertEqual(cfg.env_path, Path(tmp) / ".env")

    def test_env_file_values_and_process_env_precedence(self):
        with tempfile.TemporaryDirectory() as tmp:
            (Path(tmp) / ".env").write_text(
                "# comment\nCONDUCTOR_API_BASE=http://10.0.0.2:9000/v1/\n"
                "CONDUCTOR_SESSION_TOKEN=\"file-token\"\nCONDUCTOR_RUNS_POLL_SEC=abc\n",
                encoding="utf-8",
            )
            env = _clean_env()
            env["CONDUCTOR_SESSION_TOKEN"] = "env-token"
            env["CONDUCTOR_GET_RETRIES"] = "0"
            with patch.dict("os.environ", env, clear=True):
                cfg = load_config(Path(tmp))
        self.assertEqual(cfg.api_base, "http://10.0.0.2:9000/v1")
        self.assertEqual(cfg.session_token, "env-token")
        self.assertEqual(cfg.runs_poll_sec, 3.0)
        self.assertEqual(cfg.get_retries, 1)

    def test_load_env_file_skips_noise(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / ".env"
            path.write_text(f"\nnot a pair\n{TOKEN_KEY}=abc\n", encoding="utf-8")
            self.assertEqual(load_env_file(path), {TOKEN_KEY: "abc"})
            self.assertEqual(load_env_file(Path(tmp) / "missing.env"), {})


if __name__ == "__main__":
    unittest.main()
