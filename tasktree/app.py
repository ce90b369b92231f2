"""tasktree CLI — main application entry point."""

from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from tasktree.engine.config import TreeConfig
from tasktree.engine.errors import TaskTreeError

logger = logging.getLogger(__name__)

DEFAULT_LOG_FILE = Path.home() / ".tasktree" / "logs" / "tasktree.log"


def _configure_logging(config: TreeConfig, verbose: bool) -> None:
    """Log to a rotating file; mirror to stderr when verbose."""
    level = logging.DEBUG if verbose else getattr(logging, config.log_level, logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s [pid=%(process)d] %(message)s"
    )

    log_file = Path(config.log_file) if config.log_file else DEFAULT_LOG_FILE
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=2_000_000, backupCount=5, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    except OSError as exc:
        print(f"Warning: cannot write log file {log_file}: {exc}", file=sys.stderr)

    if verbose:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)


def _resolve_config(args) -> TreeConfig:
    """Env -> YAML -> saved preferences -> command-line flags."""
    from tasktree.engine.yaml_config import discover_config_path, load_yaml_config
    from tasktree.shared.services.preferences import UserPreferences

    config_path = Path(args.config) if args.config else discover_config_path()
    config = load_yaml_config(config_path)

    prefs_path = Path(args.prefs) if args.prefs else None
    if UserPreferences.exists(prefs_path):
        UserPreferences.load(prefs_path).apply_to(config)

    if args.tree is not None:
        config.task_tree_view_enabled = args.tree
        if args.tree:
            config.experiments = True
    if args.hide_inactive:
        config.hide_inactive_sessions = True
    return config


def _run_rename(snapshot_path: Path, task_id: str, title: str) -> None:
    from tasktree.engine.task_tree import build_task_tree
    from tasktree.shared.services.snapshot import load_snapshot, save_snapshot
    from tasktree.shared.services.task_metadata import rename_task

    snapshot = load_snapshot(snapshot_path)
    tasks = build_task_tree(snapshot.sessions, snapshot.machines)
    task = next((t for t in tasks if t.id == task_id), None)
    if task is None:
        raise TaskTreeError(f"Task not found: {task_id}")
    updated = rename_task(task, snapshot.sessions.values(), title)
    save_snapshot(snapshot_path, snapshot.with_sessions(updated))
    print(f"Renamed {task_id} on {len(updated)} session(s).")


def _print_snapshot(snapshot_path: Path, config: TreeConfig, as_json: bool) -> None:
    from tasktree.engine.task_tree import build_task_tree
    from tasktree.shared.formatters.list_view import format_list_items
    from tasktree.shared.services.list_view import (
        build_session_list_view_data,
        filter_visible_items,
    )
    from tasktree.shared.services.snapshot import load_snapshot

    snapshot = load_snapshot(snapshot_path)
    if as_json:
        tasks = build_task_tree(snapshot.sessions, snapshot.machines)
        print(json.dumps([task.to_dict() for task in tasks], indent=2))
        return

    items = build_session_list_view_data(snapshot.sessions, snapshot.machines, config)
    items = filter_visible_items(items, config.hide_inactive_sessions)
    if not items:
        print("No sessions.", file=sys.stderr)
        return
    for line in format_list_items(items):
        print(line)


def main(argv: list[str] | None = None) -> None:
    import argparse

    parser = argparse.ArgumentParser(
        prog="tasktree",
        description="tasktree — group agent sessions into Task -> Machine -> Session trees",
    )
    parser.add_argument(
        "snapshot", metavar="SNAPSHOT",
        help="JSON snapshot with 'sessions' and 'machines' collections",
    )
    parser.add_argument(
        "--config", metavar="PATH",
        help="YAML config file (default: .tasktree/tasktree.yaml if present)",
    )
    parser.add_argument(
        "--prefs", metavar="PATH",
        help="Preferences file (default: ~/.tasktree/preferences.json)",
    )
    view = parser.add_mutually_exclusive_group()
    view.add_argument(
        "--tree", dest="tree", action="store_true", default=None,
        help="Force the Task -> Machine -> Session layout",
    )
    view.add_argument(
        "--flat", dest="tree", action="store_false",
        help="Force the default day-grouped layout",
    )
    parser.add_argument(
        "--hide-inactive", action="store_true",
        help="Hide inactive sessions",
    )
    parser.add_argument(
        "--json", action="store_true",
        help="Print the task tree as JSON and exit",
    )
    parser.add_argument(
        "--tui", action="store_true",
        help="Open the interactive terminal UI",
    )
    parser.add_argument(
        "--rename", nargs=2, metavar=("TASK_ID", "TITLE"),
        help="Manually rename a task across its sessions and save the snapshot",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable debug logging on stderr",
    )
    args = parser.parse_args(argv)
    snapshot_path = Path(args.snapshot)

    try:
        config = _resolve_config(args)
        _configure_logging(config, args.verbose)
        logger.info(
            "tasktree starting snapshot=%s tree=%s hide_inactive=%s",
            snapshot_path, config.task_tree_active, config.hide_inactive_sessions,
        )

        if args.rename:
            _run_rename(snapshot_path, *args.rename)
        elif args.tui:
            from tasktree.tui.app import TaskTreeApp

            prefs_path = Path(args.prefs) if args.prefs else None
            TaskTreeApp(snapshot_path, config=config, prefs_path=prefs_path).run()
        else:
            _print_snapshot(snapshot_path, config, args.json)
    except TaskTreeError as exc:
        logger.error("%s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
