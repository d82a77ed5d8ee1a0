#!/usr/bin/env python3
"""
Tests for the adb-backed device surface and the root shell.
"""

import subprocess
import sys
import unittest
from pathlib import Path
from unittest.mock import patch

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from display_profiles.shell import CapabilityUnavailable, DebugShell, RootShell
from display_profiles.system import (
    AdbError, AdbSystem, DisplayMetrics, SettingWriteDenied, check_adb_available,
)


def completed(stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def responder(responses):
    """subprocess.run replacement answering local-transport commands by their text."""
    def run(args, **kwargs):
        return completed(responses.get(" ".join(args), ""))
    return run


class TestAdbSystem(unittest.TestCase):

    def test_shell_prefix(self):
        self.assertEqual(AdbSystem().shell_prefix(), ["adb", "shell"])
        self.assertEqual(AdbSystem(serial="abc").shell_prefix(), ["adb", "-s", "abc", "shell"])
        self.assertEqual(AdbSystem(transport="local").shell_prefix(), [])

    def test_unknown_transport(self):
        with self.assertRaises(ValueError):
            AdbSystem(transport="usb")

    @patch('display_profiles.system.subprocess.run')
    def test_adb_joins_device_command(self, mock_run):
        mock_run.return_value = completed("1\n")
        self.assertEqual(AdbSystem(serial="abc").get_int("system", "user_rotation"), 1)
        args = mock_run.call_args[0][0]
        self.assertEqual(args, ["adb", "-s", "abc", "shell", "settings get system user_rotation"])

    @patch('display_profiles.system.subprocess.run')
    def test_unset_setting_is_none(self, mock_run):
        mock_run.return_value = completed("null\n")
        self.assertIsNone(AdbSystem(transport="local").get_int("secure", "screensaver_enabled"))

    @patch('display_profiles.system.subprocess.run')
    def test_denied_write(self, mock_run):
        mock_run.return_value = completed(stderr="java.lang.SecurityException: Permission denial")
        with self.assertRaises(SettingWriteDenied):
            AdbSystem(transport="local").put_int("system", "dev_force_show_navbar", 1)

    @patch('display_profiles.system.subprocess.run')
    def test_allowed_write(self, mock_run):
        mock_run.return_value = completed()
        AdbSystem(transport="local").put_int("system", "screen_brightness", 0)
        self.assertEqual(mock_run.call_args[0][0], ["settings", "put", "system", "screen_brightness", "0"])

    @patch('display_profiles.system.subprocess.run')
    def test_display_metrics_prefer_override_and_follow_rotation(self, mock_run):
        mock_run.side_effect = responder({
            "wm size": "Physical size: 1080x1920\nOverride size: 720x1280\n",
            "wm density": "Physical density: 480\n",
            "dumpsys input": "  SurfaceOrientation: 1\n",
        })
        metrics = AdbSystem(transport="local").display_metrics()
        self.assertEqual(metrics, DisplayMetrics(1280, 720, 480))
        self.assertTrue(metrics.is_landscape)

    @patch('display_profiles.system.subprocess.run')
    def test_display_metrics_unavailable(self, mock_run):
        mock_run.side_effect = responder({})
        self.assertIsNone(AdbSystem(transport="local").display_metrics())

    @patch('display_profiles.system.subprocess.run')
    def test_ui_mode(self, mock_run):
        system = AdbSystem(transport="local")
        for output, expected in (("mCurUiMode=0x13", "car"), ("mCurUiMode=0x12", "desk"),
                                 ("mCurUiMode=0x11", "normal"), ("", "normal")):
            with self.subTest(output=output):
                mock_run.side_effect = responder({"dumpsys uimode": output})
                self.assertEqual(system.ui_mode(), expected)

    @patch('display_profiles.system.subprocess.run')
    def test_radios_need_the_hardware_feature(self, mock_run):
        mock_run.side_effect = responder({
            "pm list features": "feature:android.hardware.wifi\nfeature:reqGlEsVersion=0x30002\n",
            "settings get global wifi_on": "1",
        })
        system = AdbSystem(transport="local")
        self.assertIs(system.radio_enabled("wifi"), True)
        self.assertIsNone(system.radio_enabled("bluetooth"))

    @patch('display_profiles.system.subprocess.run')
    def test_package_version(self, mock_run):
        mock_run.side_effect = responder({
            "dumpsys package com.android.chrome": "    versionCode=1 minSdk=24\n    versionName=120.0.6099.43\n",
        })
        system = AdbSystem(transport="local")
        self.assertEqual(system.package_version("com.android.chrome"), "120.0.6099.43")
        self.assertIsNone(system.package_version("com.chrome.dev"))

    @patch('display_profiles.system.subprocess.run')
    def test_launcher_package(self, mock_run):
        mock_run.return_value = completed("priority=0 preferredOrder=0\ncom.android.launcher3/.Launcher\n")
        self.assertEqual(AdbSystem(transport="local").launcher_package(), "com.android.launcher3")

    @patch('display_profiles.system.subprocess.run')
    def test_external_display(self, mock_run):
        system = AdbSystem(transport="local")
        mock_run.return_value = completed("mDisplayId=0\nmDisplayId=2\n")
        self.assertTrue(system.external_display_connected())
        mock_run.return_value = completed("mDisplayId=0\n")
        self.assertFalse(system.external_display_connected())

    @patch('display_profiles.system.subprocess.run')
    def test_path_exists_uses_exit_code(self, mock_run):
        mock_run.return_value = completed(returncode=1)
        self.assertFalse(AdbSystem(transport="local").path_exists("/sys/nothing"))

    @patch('display_profiles.system.subprocess.run')
    def test_process_pid(self, mock_run):
        mock_run.return_value = completed("812 813\n")
        self.assertEqual(AdbSystem(transport="local").process_pid("com.android.systemui"), 812)

    @patch('display_profiles.system.time.sleep')
    @patch('display_profiles.system.subprocess.run')
    def test_retries_then_raises(self, mock_run, mock_sleep):
        mock_run.side_effect = subprocess.CalledProcessError(1, ["svc"], stderr="error: device offline")
        system = AdbSystem(retry_count=3)
        with self.assertRaises(AdbError):
            system.set_radio("wifi", True)
        self.assertEqual(mock_run.call_count, 3)
        self.assertEqual(mock_sleep.call_count, 2)

    @patch('display_profiles.system.subprocess.run')
    def test_failed_read_is_none(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(["adb"], 15)
        self.assertIsNone(AdbSystem(retry_count=1).get_int("system", "user_rotation"))

    @patch('display_profiles.system.subprocess.run')
    def test_missing_adb(self, mock_run):
        mock_run.side_effect = FileNotFoundError("adb")
        with self.assertRaises(AdbError):
            AdbSystem().set_radio("bluetooth", False)
        self.assertEqual(mock_run.call_count, 1)


class TestCheckAdbAvailable(unittest.TestCase):

    @patch('display_profiles.system.subprocess.run')
    def test_device_attached(self, mock_run):
        mock_run.return_value = completed("List of devices attached\nemulator-5554\tdevice\n\n")
        available, message = check_adb_available()
        self.assertTrue(available)
        self.assertIn("1 device", message)

    @patch('display_profiles.system.subprocess.run')
    def test_unauthorized_device(self, mock_run):
        mock_run.return_value = completed("List of devices attached\nR58M\tunauthorized\n")
        self.assertFalse(check_adb_available()[0])

    @patch('display_profiles.system.subprocess.run')
    def test_adb_not_installed(self, mock_run):
        mock_run.side_effect = FileNotFoundError()
        available, message = check_adb_available()
        self.assertFalse(available)
        self.assertIn("not found", message)


class TestRootShell(unittest.TestCase):

    @patch('display_profiles.shell.subprocess.run')
    def test_available_when_su_is_root(self, mock_run):
        mock_run.return_value = completed("uid=0(root) gid=0(root)\n")
        self.assertTrue(RootShell(["adb", "shell"]).is_available())
        self.assertEqual(mock_run.call_args[0][0], ["adb", "shell", "su", "-c", "id"])

    @patch('display_profiles.shell.subprocess.run')
    def test_unavailable_without_su(self, mock_run):
        mock_run.return_value = completed(stderr="/system/bin/sh: su: not found", returncode=127)
        self.assertFalse(RootShell(["adb", "shell"]).is_available())

    @patch('display_profiles.shell.subprocess.run')
    def test_batch_runs_in_one_session(self, mock_run):
        mock_run.return_value = completed()
        RootShell(["adb", "shell"]).run(["wm size 720x1280", "", "sleep 2 && pkill com.android.systemui"])
        mock_run.assert_called_once()
        self.assertEqual(mock_run.call_args[0][0], ["adb", "shell", "su"])
        self.assertEqual(mock_run.call_args[1]["input"],
                         "wm size 720x1280\nsleep 2 && pkill com.android.systemui\nexit\n")

    @patch('display_profiles.shell.subprocess.run')
    def test_empty_batch_runs_nothing(self, mock_run):
        RootShell().run(["", ""])
        mock_run.assert_not_called()

    @patch('display_profiles.shell.subprocess.run')
    def test_missing_shell(self, mock_run):
        mock_run.side_effect = FileNotFoundError("adb")
        with self.assertRaises(CapabilityUnavailable):
            RootShell(["adb", "shell"]).run(["wm size reset"])

    def test_debug_shell_records(self):
        shell = DebugShell()
        shell.run(["wm density 320", ""])
        self.assertTrue(shell.is_available())
        self.assertEqual(shell.history, [["wm density 320"]])


if __name__ == '__main__':
    unittest.main()
