#!/usr/bin/env python3
"""
FocusGate - Main Entry Point

Pomodoro focus sessions for Hyprland: restricts which workspaces you can
switch to and which apps you can launch until the session ends.

Usage:
    focusgate daemon                 # Run the daemon (one per user)
    focusgate send start 1,2@50      # Send a command to the daemon
    focusgate status                 # Print the session status
    focusgate run firefox            # Launch an app if the session allows it
"""

import sys
import json
import shlex
import signal
import logging
import argparse
import threading
import subprocess

import config
from config import load_settings, reload_env, validate_settings
from core import SessionController
from instance_lock import check_single_instance, get_existing_pid, release_instance_lock
from screen.hyprland import HyprlandEventListener, HyprlandHost
from screen.notifier import DesktopNotifier
from sync.command_client import send_command
from sync.command_server import CommandServer
from tracking.state_file import StateFilePublisher

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format=config.LOG_FORMAT
)
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_COMMAND_FAILED = 1
EXIT_NOT_RUNNING = 2


def run_daemon(use_host: bool = True) -> int:
    """
    Run the FocusGate daemon until SIGINT/SIGTERM.

    SIGHUP re-reads the .env file and applies the new settings.

    Args:
        use_host: Connect to Hyprland (disable for headless testing).

    Returns:
        Process exit code.
    """
    if not check_single_instance():
        existing_pid = get_existing_pid()
        pid_info = f" (PID: {existing_pid})" if existing_pid else ""
        print(f"\nFocusGate is already running{pid_info}.")
        print("Only one daemon can run at a time.\n")
        return EXIT_COMMAND_FAILED

    settings, warnings = validate_settings(load_settings())

    notifier = DesktopNotifier(enabled=settings.notifications_enabled)
    if settings.notifications_enabled and not notifier.is_available():
        logger.warning("notify-send not found; notifications will only be logged")

    host = HyprlandHost() if use_host else None
    controller = SessionController(
        host=host,
        notifier=notifier,
        persistence=StateFilePublisher(),
        settings=settings,
    )
    if warnings:
        notifier.notify("Config warnings: " + "; ".join(warnings), config.SEVERITY_WARNING)

    server = CommandServer(controller)
    try:
        server.start()
    except OSError as e:
        logger.error(f"Could not open command socket {config.SOCKET_PATH}: {e}")
        return EXIT_COMMAND_FAILED

    listener = None
    if use_host:
        listener = HyprlandEventListener(controller.handle_workspace_changed)
        listener.start()

    stop_event = threading.Event()
    reload_event = threading.Event()

    def _request_stop(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        stop_event.set()

    def _request_reload(signum, frame):
        reload_event.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)
    signal.signal(signal.SIGHUP, _request_reload)

    logger.info("FocusGate daemon running")
    try:
        while not stop_event.wait(1.0):
            if reload_event.is_set():
                reload_event.clear()
                reload_env()
                new_settings = load_settings()
                notifier.enabled = new_settings.notifications_enabled
                controller.reload_config(new_settings)
    finally:
        if listener is not None:
            listener.stop()
        server.stop()
        controller.shutdown()
        release_instance_lock()
        logger.info("FocusGate daemon stopped")

    return EXIT_OK


def run_send(command: str, payload: str, as_json: bool = False) -> int:
    """Send one command to the daemon and print the reply."""
    try:
        response = send_command(command, payload)
    except ConnectionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_NOT_RUNNING

    if as_json:
        print(json.dumps(response))
    else:
        print(response.get("message", ""))
    return EXIT_OK if response.get("ok") else EXIT_COMMAND_FAILED


def run_app(command_args) -> int:
    """Ask the daemon whether the app may start, then launch it detached."""
    command_line = " ".join(shlex.quote(arg) for arg in command_args)
    try:
        response = send_command("spawn", command_line)
    except ConnectionError:
        # No daemon, no session: nothing to enforce
        response = {"ok": True}

    if not response.get("ok"):
        print(response.get("message", "Launch blocked"), file=sys.stderr)
        return EXIT_COMMAND_FAILED

    try:
        subprocess.Popen(command_args, start_new_session=True)
    except OSError as e:
        print(f"Error: could not launch {command_args[0]}: {e}", file=sys.stderr)
        return EXIT_COMMAND_FAILED
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="focusgate",
        description="FocusGate - Pomodoro focus sessions for Hyprland",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands for `send`:
  start [workspaces][@minutes]   e.g. start 1,2@50
  stop [force]    pause    resume    toggle [workspaces]
  allow <id>      disallow <id>      except <windowClass>
  status          confirm <answer>
  allowapp <name> disallowapp <name>
        """
    )
    subparsers = parser.add_subparsers(dest="mode")

    daemon = subparsers.add_parser("daemon", help="Run the FocusGate daemon")
    daemon.add_argument(
        "--no-host",
        action="store_true",
        help="Don't connect to Hyprland (commands and timer only)",
    )

    send = subparsers.add_parser("send", help="Send a command to the running daemon")
    send.add_argument("command", help="Command name, e.g. start")
    send.add_argument("payload", nargs="*", help="Command argument")
    send.add_argument("--json", action="store_true", help="Print the raw JSON reply")

    status = subparsers.add_parser("status", help="Show the current session")
    status.add_argument("--json", action="store_true", help="Print the state snapshot as JSON")

    run = subparsers.add_parser("run", help="Launch an app unless the session blocks it")
    run.add_argument("app", nargs=argparse.REMAINDER, help="Command line to launch")

    return parser


def main() -> None:
    """Parse arguments and run the selected mode."""
    parser = build_parser()
    args = parser.parse_args()

    if args.mode == "daemon":
        try:
            code = run_daemon(use_host=not args.no_host)
        except Exception as e:
            logger.error(f"Fatal error: {e}", exc_info=True)
            code = EXIT_COMMAND_FAILED
    elif args.mode == "send":
        code = run_send(args.command, " ".join(args.payload), as_json=args.json)
    elif args.mode == "status":
        if args.json:
            try:
                print(json.dumps(send_command("snapshot", "").get("snapshot", {})))
                code = EXIT_OK
            except ConnectionError as e:
                print(f"Error: {e}", file=sys.stderr)
                code = EXIT_NOT_RUNNING
        else:
            code = run_send("status", "")
    elif args.mode == "run":
        if not args.app:
            parser.error("run needs a command to launch")
        code = run_app(args.app)
    else:
        parser.print_help()
        code = EXIT_COMMAND_FAILED

    sys.exit(code)


if __name__ == "__main__":
    main()
