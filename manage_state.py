#!/usr/bin/env python3
"""
State Management Utility

This script provides utilities to inspect and maintain the persisted state:
- Show state statistics
- List the notification history
- Prune history older than the retention window
- Reset the timetable snapshot
"""

import sys
from datetime import timedelta
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from pydantic import ValidationError

from scheduler.history import HistoryStore
from scheduler.store import StateStore
from utilities.config import SNAPSHOT_FILE_NAME, STATE_FILE_NAME, UntisFeedConfig, load_config
from utilities.logger import setup_logging


def open_store(config: UntisFeedConfig) -> StateStore:
    return StateStore(config.get_data_dir(), state_file=STATE_FILE_NAME, snapshot_file=SNAPSHOT_FILE_NAME)


def show_statistics(config: UntisFeedConfig) -> None:
    """Show counts of the persisted state."""
    print("\n" + "="*80)
    print("📊 STATE STATISTICS")
    print("="*80)

    store = open_store(config)
    state = store.load_state()
    snapshot = store.load_snapshot()
    history = HistoryStore(state).all()

    print(f"📁 Data directory: {store.data_dir}")
    print(f"🔍 Delivered fingerprints: {len(state.seen)}")
    print(f"📰 History items: {len(history)}")
    if snapshot is None:
        print("🗓️  Timetable snapshot: none (next refresh initializes it)")
    else:
        print(f"🗓️  Timetable snapshot: {len(snapshot)} entries")
    if history:
        print(f"⏱️  Newest item: {history[0].date.isoformat()}")
        print(f"⏱️  Oldest item: {history[-1].date.isoformat()}")


def list_history(config: UntisFeedConfig) -> None:
    """List history items, most recent first."""
    print("\n" + "="*80)
    print("📋 NOTIFICATION HISTORY")
    print("="*80)

    state = open_store(config).load_state()
    items = HistoryStore(state).all()

    if not items:
        print("❌ No notifications in history")
        return

    print(f"✅ Found {len(items)} notifications:")
    print()
    for i, item in enumerate(items, 1):
        print(f"{i:3d}. {item.title}")
        print(f"     Date: {item.date.isoformat()}")
        print(f"     Fingerprint: {item.id[:16]}...")
        if item.description:
            print(f"     {item.description}")
        print()


def prune_history(config: UntisFeedConfig) -> int:
    """Apply the retention window now and save the state."""
    store = open_store(config)
    state = store.load_state()
    history = HistoryStore(state, retention=timedelta(days=config.history_retention_days))

    removed = history.prune()
    if not store.save_state(state):
        print("❌ Error saving state")
        sys.exit(1)

    print(f"🗑️  Removed {removed} notifications older than {config.history_retention_days} days")
    print(f"📰 {len(history)} notifications remain")
    return removed


def reset_snapshot(config: UntisFeedConfig) -> None:
    """Delete the timetable snapshot so the next refresh starts without notifications."""
    store = open_store(config)
    if store.delete_snapshot():
        print(f"✅ Deleted {store.snapshot_path}")
    else:
        print(f"ℹ️  No snapshot at {store.snapshot_path}")


COMMANDS = {
    "stats": show_statistics,
    "history": list_history,
    "prune": prune_history,
    "reset-snapshot": reset_snapshot,
}


def main(argv=None):
    """Main function."""
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print("Usage: python manage_state.py [stats|history|prune|reset-snapshot]")
        print()
        print("Commands:")
        print("  stats           - Show state statistics")
        print("  history         - List notification history")
        print("  prune           - Remove notifications older than the retention window")
        print("  reset-snapshot  - Delete the timetable snapshot")
        sys.exit(1)

    command = argv[0].lower()
    if command not in COMMANDS:
        print(f"❌ Unknown command: {command}")
        print(f"Available commands: {', '.join(COMMANDS)}")
        sys.exit(1)

    try:
        config = load_config()
    except ValidationError as e:
        print(f"❌ Invalid configuration: {e}")
        sys.exit(1)

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )

    COMMANDS[command](config)


if __name__ == "__main__":
    main()
