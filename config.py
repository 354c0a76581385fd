"""
Startup configuration for the lock bot.

Layout (per owner ID passed on the command line):
    users/<ownerID>/appstate.json   session bundle consumed at login
    users/<ownerID>/admin.txt       optional boss override (first non-empty line)
    users/<ownerID>/locks.json      persisted lock state
    users/<ownerID>/photos/         cached locked images

Tunables come from the environment (optionally a .env file), clamped to sane ranges.
"""

import os
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from errors import ConfigError

logger = logging.getLogger("lockbot")


def parse_int_env(name: str, default: int, min_v: int, max_v: int) -> int:
    val_raw = os.getenv(name, str(default)).strip()
    if not val_raw.isdigit():
        logger.warning(f"{name} invalid; using default {default}")
        return default
    val = int(val_raw)
    if val < min_v or val > max_v:
        logger.warning(f"{name} out of bounds ({val}); clamping to range {min_v}-{max_v}")
        val = max(min_v, min(val, max_v))
    return val


@dataclass(frozen=True)
class Tunables:
    port: int = 3000
    nick_delay_ms: int = 700
    nick_retry_base_ms: int = 250
    nick_retry_step_ms: int = 200
    save_interval_seconds: int = 60
    download_timeout_seconds: int = 30

    @classmethod
    def from_env(cls) -> "Tunables":
        return cls(
            port=parse_int_env("PORT", 3000, min_v=1, max_v=65535),
            nick_delay_ms=parse_int_env("NICK_DELAY_MS", 700, min_v=0, max_v=60000),
            nick_retry_base_ms=parse_int_env("NICK_RETRY_BASE_MS", 250, min_v=0, max_v=60000),
            nick_retry_step_ms=parse_int_env("NICK_RETRY_STEP_MS", 200, min_v=0, max_v=60000),
            save_interval_seconds=parse_int_env("SAVE_INTERVAL_SECONDS", 60, min_v=1, max_v=86400),
            download_timeout_seconds=parse_int_env("DOWNLOAD_TIMEOUT_SECONDS", 30, min_v=1, max_v=600),
        )


@dataclass(frozen=True)
class BotConfig:
    owner_id: str
    boss_id: str
    user_dir: Path
    appstate: dict
    tunables: Tunables

    @property
    def appstate_path(self) -> Path:
        return self.user_dir / "appstate.json"

    @property
    def admin_path(self) -> Path:
        return self.user_dir / "admin.txt"

    @property
    def locks_path(self) -> Path:
        return self.user_dir / "locks.json"

    @property
    def photos_dir(self) -> Path:
        return self.user_dir / "photos"

    @property
    def log_path(self) -> Path:
        return self.user_dir / "bot.log"


def read_boss_override(admin_path: Path) -> Optional[str]:
    """First non-empty line of admin.txt, or None."""
    try:
        if not admin_path.exists():
            return None
        for line in admin_path.read_text(encoding="utf-8").splitlines():
            if line.strip():
                return line.strip()
    except OSError as e:
        logger.warning(f"Could not read {admin_path}: {e}")
    return None


def load_config(owner_id: Optional[str], root: Optional[Path] = None) -> BotConfig:
    load_dotenv()
    if not owner_id:
        raise ConfigError("Missing admin UID arg. Usage: python bot.py <adminUID>")
    owner_id = str(owner_id)

    root = Path(root or os.getenv("LOCKBOT_ROOT") or Path.cwd())
    user_dir = root / "users" / owner_id
    if not user_dir.is_dir():
        raise ConfigError(f"User folder not found: {user_dir}")

    appstate_path = user_dir / "appstate.json"
    try:
        appstate = json.loads(appstate_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(f"Failed reading appstate.json: {e}") from e

    photos_dir = user_dir / "photos"
    try:
        photos_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning(f"Could not create {photos_dir}: {e}")

    boss_id = read_boss_override(user_dir / "admin.txt") or owner_id

    return BotConfig(
        owner_id=owner_id,
        boss_id=boss_id,
        user_dir=user_dir,
        appstate=appstate,
        tunables=Tunables.from_env(),
    )
