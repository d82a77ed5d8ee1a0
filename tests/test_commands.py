#!/usr/bin/env python3
"""
Tests for the privileged command catalog.
"""

import sys
import unittest
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from display_profiles import commands
from display_profiles.commands import RestartMethod


class TestDisplayCommands(unittest.TestCase):
    """Resolution, density and overscan command spelling."""

    def test_size_command_uses_wm_on_modern_platforms(self):
        self.assertEqual(commands.size_command("1920x1080", 23), "wm size 1920x1080")
        self.assertEqual(commands.size_command("reset", 18), "wm size reset")

    def test_size_command_uses_am_on_old_platforms(self):
        self.assertEqual(commands.size_command("1280x720", 17), "am display-size 1280x720")

    def test_density_command_versions(self):
        self.assertEqual(commands.density_command("240", 23), "wm density 240")
        self.assertEqual(commands.density_command("reset", 17), "am display-density reset")

    def test_safe_mode_commands(self):
        self.assertEqual(commands.safe_mode_size_command("1920x1080"),
                         "settings put global display_size_forced 1920,1080")
        self.assertEqual(commands.safe_mode_size_command("reset"),
                         "settings put global display_size_forced null")
        self.assertEqual(commands.safe_mode_size_command(None),
                         "settings put global display_size_forced null")
        self.assertEqual(commands.safe_mode_density_command("320"),
                         "settings put global display_density_forced 320")
        self.assertEqual(commands.safe_mode_density_command(None),
                         "settings put global display_density_forced null")

    def test_overscan_inset_order(self):
        self.assertEqual(commands.overscan_command(1, 2, 3, 4), "wm overscan 1,2,3,4")
        self.assertEqual(commands.overscan_reset_command(), "wm overscan reset")


class TestSettingCommands(unittest.TestCase):
    """Simple on/off setting commands."""

    def test_switches(self):
        self.assertEqual(commands.navbar_command(True), "settings put secure dev_force_show_navbar 1")
        self.assertEqual(commands.show_touches_command(False), "settings put system show_touches 0")
        self.assertEqual(commands.daydreams_command(True), "settings put secure screensaver_enabled 1")
        self.assertEqual(commands.daydreams_charging_command(False),
                         "settings put secure screensaver_activate_on_sleep 0")

    def test_rotation_commands(self):
        self.assertEqual(
            commands.rotation_command(commands.DOCK_DESK),
            "am broadcast -a android.intent.action.DOCK_EVENT --ei android.intent.extra.DOCK_STATE 1",
        )
        pre, post = commands.rotation_pre_post_commands()
        self.assertTrue(pre.endswith("screensaver_activate_on_dock 0"))
        self.assertTrue(post.endswith("screensaver_activate_on_dock 1"))

    def test_stay_on(self):
        self.assertEqual(commands.stay_on_command(1), "settings put global stay_on_while_plugged_in 1")

    def test_immersive_modes(self):
        self.assertEqual(commands.immersive_command("immersive-mode"),
                         "settings put global policy_control immersive.full=*")
        self.assertEqual(commands.immersive_command("status-only"),
                         "settings put global policy_control immersive.navigation=*")
        self.assertEqual(commands.immersive_command("do-nothing"),
                         "settings put global policy_control null")

    def test_unknown_immersive_mode_rejected(self):
        with self.assertRaises(ValueError):
            commands.immersive_command("fullscreen")

    def test_sysfs_write(self):
        self.assertEqual(commands.sysfs_write_command("/sys/x", 0), "echo 0 > /sys/x")


class TestBrowserCommands(unittest.TestCase):
    """Browser desktop-mode flag file and channel detection."""

    def test_flag_file_contains_user_agent(self):
        content = commands.chrome_flag_content("120.0")
        self.assertIn("Chrome/120.0", content)
        self.assertTrue(content.startswith('chrome --user-agent="'))

    def test_chrome_command_writes_flag_file(self):
        command = commands.chrome_command("120.0")
        self.assertIn(commands.CHROME_FLAG_FILE, command)
        self.assertIn("Chrome/120.0", command)

    def test_force_stop_per_channel(self):
        self.assertEqual(commands.chrome_force_stop_command(2), "am force-stop com.chrome.dev")
        self.assertEqual(commands.chrome_force_stop_command(1), "am force-stop com.chrome.beta")
        self.assertEqual(commands.chrome_force_stop_command(0), "am force-stop com.android.chrome")

    def test_most_featureful_channel_wins(self):
        installed = {"com.android.chrome": "100", "com.chrome.beta": "101"}
        self.assertEqual(commands.detect_browser_channel(installed.get), (1, "101"))

    def test_no_browser_installed(self):
        self.assertEqual(commands.detect_browser_channel(lambda package: None), (0, ""))


class TestRefreshCommands(unittest.TestCase):
    """Compositor and window manager restart strategies."""

    def test_restart_methods(self):
        self.assertEqual(commands.restart_method(18, True), RestartMethod.KILL_PID)
        self.assertEqual(commands.restart_method(19, True), RestartMethod.AM_RESTART)
        self.assertEqual(commands.restart_method(22, False), RestartMethod.KILL_PID)
        self.assertEqual(commands.restart_method(23, False), RestartMethod.PKILL)

    def test_refresh_command_delays(self):
        self.assertEqual(commands.ui_refresh_command(23, True), "sleep 1 && am restart")
        self.assertEqual(commands.ui_refresh_command(23, False), "sleep 2 && pkill com.android.systemui")
        self.assertEqual(commands.ui_refresh_command(21, False, pid=1234), "sleep 2 && kill 1234")

    def test_kill_pid_refresh_without_pid_is_empty(self):
        self.assertEqual(commands.ui_refresh_command(21, False), "")
        self.assertEqual(commands.ui_refresh_command(18, True), "")

    def test_secondary_refresh(self):
        self.assertEqual(commands.ui_refresh_command2("com.android.launcher3"),
                         "sleep 1 && am force-stop com.android.launcher3")


class TestHelpers(unittest.TestCase):

    def test_first_existing(self):
        exists = {"/b", "/c"}.__contains__
        self.assertEqual(commands.first_existing(["/a", "/b", "/c"], exists), "/b")
        self.assertIsNone(commands.first_existing(["/a"], exists))

    def test_last_existing(self):
        exists = {"/b", "/c"}.__contains__
        self.assertEqual(commands.last_existing(["/a", "/b", "/c"], exists), "/c")
        self.assertIsNone(commands.last_existing(["/a"], exists))


if __name__ == '__main__':
    unittest.main()
