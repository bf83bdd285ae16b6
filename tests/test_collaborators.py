"""
Tests for the desktop-facing pieces: state file, notifier, Hyprland
bridge, command socket and instance lock.
"""

import json
import shutil
import socket
import sys
import tempfile
import time
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

import config
from core import SessionController
from instance_lock import InstanceLock
from screen.hyprland import HyprlandEventListener, HyprlandHost, parse_window, parse_workspace_event
from screen.notifier import DesktopNotifier
from sync.command_client import send_command
from sync.command_server import CommandServer, handle_request_line
from tracking.state_file import StateFilePublisher

WAIT_TIMEOUT = 2.0


class TestStateFilePublisher(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.path = self.temp_dir / "state.json"
        self.publisher = StateFilePublisher(self.path)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_publish_and_read(self):
        snapshot = {"active": True, "state": "working", "remaining": "24:59", "workspaces": [1]}
        self.publisher.publish(snapshot)

        self.assertEqual(json.loads(self.path.read_text()), snapshot)
        self.assertEqual(self.publisher.read(), snapshot)

    def test_clear_removes_file(self):
        self.publisher.publish({"active": True})
        self.publisher.clear()
        self.assertFalse(self.path.exists())
        self.assertIsNone(self.publisher.read())

        # Clearing twice is fine
        self.publisher.clear()

    def test_no_temp_files_left(self):
        self.publisher.publish({"active": True, "remaining": "01:00"})
        self.publisher.publish({"active": True, "remaining": "00:59"})
        self.assertEqual([p.name for p in self.temp_dir.iterdir()], ["state.json"])

    def test_corrupt_file_reads_as_none(self):
        self.path.write_text("{not json")
        self.assertIsNone(self.publisher.read())


class TestDesktopNotifier(unittest.TestCase):

    @patch("screen.notifier.subprocess.Popen")
    def test_notify_builds_command(self, mock_popen):
        notifier = DesktopNotifier()

        self.assertTrue(notifier.notify("Break time!", config.SEVERITY_INFO, 3000))

        args = mock_popen.call_args[0][0]
        self.assertEqual(args[0], "notify-send")
        self.assertIn("--expire-time", args)
        self.assertEqual(args[args.index("--expire-time") + 1], "3000")
        self.assertEqual(args[-1], "Break time!")

    @patch("screen.notifier.subprocess.Popen")
    def test_multiline_message_splits_body(self, mock_popen):
        DesktopNotifier().notify("Solve to stop: 1 + 2 = ?\nUse: confirm", config.SEVERITY_WARNING)

        args = mock_popen.call_args[0][0]
        self.assertEqual(args[-2:], ["Solve to stop: 1 + 2 = ?", "Use: confirm"])
        self.assertEqual(args[args.index("--expire-time") + 1], "4000")

    @patch("screen.notifier.subprocess.Popen", side_effect=FileNotFoundError)
    def test_missing_binary(self, mock_popen):
        self.assertFalse(DesktopNotifier().notify("hi"))

    @patch("screen.notifier.subprocess.Popen", side_effect=OSError("fork failed"))
    def test_os_error(self, mock_popen):
        self.assertFalse(DesktopNotifier().notify("hi"))

    @patch("screen.notifier.subprocess.run")
    @patch("screen.notifier.subprocess.Popen")
    def test_does_not_wait_for_notify_send(self, mock_popen, mock_run):
        self.assertTrue(DesktopNotifier().notify("Workspace 5 is restricted!"))
        mock_run.assert_not_called()
        mock_popen.return_value.wait.assert_not_called()
        mock_popen.return_value.communicate.assert_not_called()

    @patch("screen.notifier.subprocess.Popen")
    def test_disabled(self, mock_popen):
        self.assertFalse(DesktopNotifier(enabled=False).notify("hi"))
        mock_popen.assert_not_called()


class TestHyprlandParsing(unittest.TestCase):

    def test_workspace_events(self):
        self.assertEqual(parse_workspace_event("workspacev2>>3,3"), 3)
        self.assertEqual(parse_workspace_event("workspacev2>>-98,special:scratch"), -98)
        self.assertEqual(parse_workspace_event("workspace>>5"), 5)
        self.assertIsNone(parse_workspace_event("workspace>>special:scratch"))
        self.assertIsNone(parse_workspace_event("activewindow>>kitty,~"))
        self.assertIsNone(parse_workspace_event("garbage"))

    def test_parse_window(self):
        data = {
            "address": "0x55d1",
            "class": "kitty",
            "title": "~",
            "floating": True,
            "workspace": {"id": -98, "name": "special:scratch"},
        }
        window = parse_window(data)
        self.assertEqual(window.window_class, "kitty")
        self.assertTrue(window.is_floating)
        self.assertTrue(window.on_special_workspace)

    def test_parse_empty_window(self):
        self.assertIsNone(parse_window({}))


class TestHyprlandHost(unittest.TestCase):

    @patch("screen.hyprland.subprocess.run")
    def test_current_workspace(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout='{"id": 4, "name": "4"}', stderr="")
        self.assertEqual(HyprlandHost().get_current_workspace(), 4)
        self.assertEqual(mock_run.call_args[0][0], ["hyprctl", "-j", "activeworkspace"])

    @patch("screen.hyprland.subprocess.run")
    def test_switch_to_workspace(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="ok", stderr="")
        self.assertTrue(HyprlandHost().switch_to_workspace(2))
        self.assertEqual(mock_run.call_args[0][0], ["hyprctl", "dispatch", "workspace", "2"])

    @patch("screen.hyprland.subprocess.run", side_effect=FileNotFoundError)
    def test_missing_hyprctl(self, mock_run):
        host = HyprlandHost()
        self.assertIsNone(host.get_current_workspace())
        self.assertIsNone(host.get_active_window())
        self.assertFalse(host.switch_to_workspace(1))

    @patch("screen.hyprland.subprocess.run")
    def test_bad_json(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="not json", stderr="")
        self.assertIsNone(HyprlandHost().get_current_workspace())


class TestHyprlandEventListener(unittest.TestCase):

    def test_forwards_workspace_changes(self):
        handler = MagicMock()
        listener = HyprlandEventListener(handler)
        listener.handle_line("workspace>>2")
        listener.handle_line("workspacev2>>3,3")
        listener.handle_line("workspace>>3")
        self.assertEqual([c[0][0] for c in handler.call_args_list], [2, 3])

    def test_handler_errors_are_contained(self):
        listener = HyprlandEventListener(MagicMock(side_effect=RuntimeError("boom")))
        listener.handle_line("workspacev2>>1,1")

    def test_multibyte_name_split_across_reads(self):
        temp_dir = Path(tempfile.mkdtemp(prefix="fg"))
        socket_path = temp_dir / "socket2.sock"
        server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        server.settimeout(WAIT_TIMEOUT)
        server.bind(str(socket_path))
        server.listen(1)

        listener = HyprlandEventListener(MagicMock(), socket_path=socket_path)
        listener.handle_line = MagicMock()
        try:
            self.assertTrue(listener.start())
            conn, _ = server.accept()
            with conn:
                # Split inside the two-byte UTF-8 encoding of the final character
                conn.sendall(b"workspacev2>>7,caf\xc3")
                time.sleep(0.1)
                conn.sendall(b"\xa9\n")

                deadline = time.monotonic() + WAIT_TIMEOUT
                while not listener.handle_line.called and time.monotonic() < deadline:
                    time.sleep(0.01)
                listener.stop()

            listener.handle_line.assert_called_once_with("workspacev2>>7,caf\u00e9")
        finally:
            listener.stop()
            server.close()
            shutil.rmtree(temp_dir, ignore_errors=True)

    def test_start_without_hyprland(self):
        with patch.dict("os.environ", {}, clear=True):
            listener = HyprlandEventListener(MagicMock())
            self.assertFalse(listener.start())


class TestCommandSocket(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp(prefix="fg"))
        self.socket_path = self.temp_dir / "fg.sock"
        self.controller = SessionController(clock=lambda: 1000.0)

    def tearDown(self):
        self.controller.shutdown()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_request_line_dispatch(self):
        response = handle_request_line(self.controller, b'{"command": "start", "payload": "2@30"}\n')
        self.assertTrue(response["ok"])
        self.assertEqual(response["snapshot"]["workspaces"], [2])
        self.assertEqual(response["snapshot"]["remaining"], "30:00")

    def test_malformed_request(self):
        self.assertFalse(handle_request_line(self.controller, b"not json\n")["ok"])
        self.assertFalse(handle_request_line(self.controller, b'{"payload": "1"}\n')["ok"])

    def test_round_trip_over_socket(self):
        server = CommandServer(self.controller, self.socket_path)
        server.start()
        try:
            response = send_command("start", "1,2", socket_path=self.socket_path)
            self.assertTrue(response["ok"])
            self.assertIn("Allowed workspaces: 1, 2", response["message"])

            status = send_command("status", socket_path=self.socket_path)
            self.assertTrue(status["message"].startswith("Session: WORKING"))
        finally:
            server.stop()
        self.assertFalse(self.socket_path.exists())

    def test_client_without_daemon(self):
        with self.assertRaises(ConnectionError):
            send_command("status", socket_path=self.socket_path)


class TestInstanceLock(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.lock_file = self.temp_dir / "instance.lock"

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_second_lock_fails(self):
        first = InstanceLock(self.lock_file)
        second = InstanceLock(self.lock_file)
        try:
            self.assertTrue(first.acquire())
            self.assertFalse(second.acquire())
        finally:
            first.release()
            second.release()

    def test_release_allows_reacquire(self):
        with InstanceLock(self.lock_file) as lock:
            self.assertTrue(lock.is_acquired())
        self.assertFalse(self.lock_file.exists())

        again = InstanceLock(self.lock_file)
        self.assertTrue(again.acquire())
        again.release()


if __name__ == "__main__":
    unittest.main()
