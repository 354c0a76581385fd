#!/usr/bin/env python3
"""
Tests for owner-folder bootstrap and environment tunables
"""

import os
import sys
import json
import tempfile
from pathlib import Path

sys.path.insert(0, os.path.dirname(__file__))

from config import Tunables, load_config, parse_int_env, read_boss_override
from errors import ConfigError

APPSTATE = {"api_id": 12345, "api_hash": "test_hash", "session": "1AbCdEf"}


def _make_owner(root: Path, owner: str = "1000", appstate=APPSTATE) -> Path:
    user_dir = root / "users" / owner
    user_dir.mkdir(parents=True)
    if appstate is not None:
        (user_dir / "appstate.json").write_text(
            appstate if isinstance(appstate, str) else json.dumps(appstate), encoding="utf-8"
        )
    return user_dir


def _expect_config_error(owner, root):
    try:
        load_config(owner, root)
    except ConfigError as e:
        return str(e)
    raise AssertionError("Expected ConfigError")


def test_missing_owner_argument():
    """No owner id is fatal"""
    with tempfile.TemporaryDirectory() as tmp:
        assert "Usage" in _expect_config_error(None, Path(tmp))
        assert "Usage" in _expect_config_error("", Path(tmp))


def test_missing_user_folder():
    """Unknown owner folder is fatal"""
    with tempfile.TemporaryDirectory() as tmp:
        assert "User folder not found" in _expect_config_error("nobody", Path(tmp))


def test_missing_or_invalid_appstate():
    """appstate.json must exist and be JSON"""
    with tempfile.TemporaryDirectory() as tmp:
        _make_owner(Path(tmp), "a", appstate=None)
        _make_owner(Path(tmp), "b", appstate="{broken")
        assert "appstate.json" in _expect_config_error("a", Path(tmp))
        assert "appstate.json" in _expect_config_error("b", Path(tmp))


def test_valid_config_paths_and_photos_dir():
    """Paths derive from the owner folder and photos/ is created"""
    print("🔄 Testing config bootstrap...")
    with tempfile.TemporaryDirectory() as tmp:
        user_dir = _make_owner(Path(tmp))
        config = load_config("1000", Path(tmp))
        assert config.owner_id == "1000"
        assert config.boss_id == "1000"
        assert config.appstate == APPSTATE
        assert config.locks_path == user_dir / "locks.json"
        assert config.photos_dir.is_dir()
        assert config.log_path == user_dir / "bot.log"
    print("   ✅ Config bootstrap working")


def test_admin_override():
    """First non-empty line of admin.txt replaces the boss"""
    with tempfile.TemporaryDirectory() as tmp:
        user_dir = _make_owner(Path(tmp))
        (user_dir / "admin.txt").write_text("\n   \n  777  \n888\n", encoding="utf-8")
        assert load_config("1000", Path(tmp)).boss_id == "777"

        (user_dir / "admin.txt").write_text("\n\n", encoding="utf-8")
        assert read_boss_override(user_dir / "admin.txt") is None
        assert load_config("1000", Path(tmp)).boss_id == "1000"


def test_tunables_from_env():
    """Tunables read the environment with clamping and defaults"""
    keys = ["PORT", "NICK_DELAY_MS", "NICK_RETRY_BASE_MS", "SAVE_INTERVAL_SECONDS"]
    old = {k: os.environ.get(k) for k in keys}
    try:
        os.environ["PORT"] = "8080"
        os.environ["NICK_DELAY_MS"] = "not-a-number"
        os.environ["NICK_RETRY_BASE_MS"] = "999999"
        os.environ["SAVE_INTERVAL_SECONDS"] = "0"
        tun = Tunables.from_env()
        assert tun.port == 8080
        assert tun.nick_delay_ms == 700
        assert tun.nick_retry_base_ms == 60000
        assert tun.save_interval_seconds == 1
        assert parse_int_env("SURELY_UNSET_VAR_XYZ", 5, 0, 10) == 5
    finally:
        for k, v in old.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v


def main():
    """Run all tests"""
    print("🧪 Config Tests")
    print("=" * 50)
    tests = [
        test_missing_owner_argument,
        test_missing_user_folder,
        test_missing_or_invalid_appstate,
        test_valid_config_paths_and_photos_dir,
        test_admin_override,
        test_tunables_from_env,
    ]
    passed = 0
    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"   ❌ {test.__name__} failed: {e}")
    print(f"\nTests: {passed}/{len(tests)} passed")
    return 0 if passed == len(tests) else 1


if __name__ == '__main__':
    sys.exit(main())
