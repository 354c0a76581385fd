#!/usr/bin/env python3
"""
Lock Bot Status Checker
Validates an owner folder and summarizes its persisted locks

Usage:
    python check_status.py <ownerID>
"""

import sys
from pathlib import Path

from config import BotConfig, load_config
from errors import ConfigError
from locks import LockStore


def check_configuration(owner_id):
    """Check the owner folder the same way the bot does at startup"""
    print("🔍 Checking owner configuration...")

    try:
        config = load_config(owner_id)
    except ConfigError as e:
        print(f"❌ {e}")
        return None

    print(f"✅ User folder: {config.user_dir}")
    missing = [k for k in ("api_id", "api_hash", "session") if k not in config.appstate]
    if missing:
        print(f"❌ appstate.json missing keys: {', '.join(missing)}")
        return None
    print("✅ appstate.json loaded")

    if config.boss_id != config.owner_id:
        print(f"👑 Boss overridden by admin.txt: {config.boss_id}")
    else:
        print(f"👑 Boss: {config.boss_id}")

    tun = config.tunables
    print(f"🌐 Keepalive port: {tun.port}")
    print(f"⏱️  Nick pacing: {tun.nick_delay_ms}ms, retry backoff {tun.nick_retry_base_ms}+n*{tun.nick_retry_step_ms}ms")
    return config


def check_locks(config: BotConfig):
    """Summarize locks.json"""
    print("\n🔒 Checking locks...")

    if not config.locks_path.exists():
        print("💡 locks.json not found - bot starts with no locks")
        return True

    store = LockStore(config.locks_path)
    locks = store.load()
    counts = store.counts()
    print(f"📝 Locked group names: {counts['groupNames']}")
    print(f"📝 Nickname-locked threads: {counts['nicknames']} "
          f"({sum(len(m) for m in locks.nicknames.values())} members)")
    print(f"📝 Photo locks: {counts['groupPics']}")

    ok = True
    for thread_id, pic in locks.group_pics.items():
        if pic.file and Path(pic.file).exists():
            print(f"✅ {thread_id}: cached photo present")
        else:
            print(f"⚠️  {thread_id}: cached photo missing ({pic.file}) - run /photolock on again")
            ok = False
    return ok


def main(argv=None):
    """Run all checks"""
    argv = sys.argv if argv is None else argv
    print("Lock Bot Status Checker")
    print("=" * 50)

    config = check_configuration(argv[1] if len(argv) > 1 else None)
    if config is None:
        print("\n⚠️  Bot cannot start. Please fix the issues above.")
        return 1

    locks_ok = check_locks(config)

    print("\n" + "=" * 50)
    if locks_ok:
        print("🎉 All checks passed! Bot is ready to run.")
    else:
        print("⚠️  Bot can start, but some photo locks cannot be enforced.")
    print(f"💡 To start the bot, run: python bot.py {config.owner_id}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
