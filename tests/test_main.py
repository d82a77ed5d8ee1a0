#!/usr/bin/env python3
"""
Tests for the command line application wiring.
"""

import io
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import yaml

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from fakes import FakeShell, FakeSystem, NATIVE_DENSITY, NATIVE_HEIGHT, NATIVE_WIDTH

import main
from display_profiles.config import Profile, ProfileStore, QUICK_ACTIONS
from display_profiles.state import CurrentStateStore
from display_profiles.system import WIFI


def write_config(root: Path, transport: str = "local", on_change=None) -> Path:
    path = root / "config.yaml"
    data = {
        'device': {
            'transport': transport,
            'sdk_int': 23,
            'native_width': NATIVE_WIDTH,
            'native_height': NATIVE_HEIGHT,
            'native_density': NATIVE_DENSITY,
        },
        'hooks': {'on_change': on_change},
    }
    with open(path, 'w') as f:
        yaml.safe_dump(data, f)
    return path


class AppTestCase(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)
        self.system = FakeSystem()
        self.shell = FakeShell(self.system)

        for target, value in (('display_profiles.system.AdbSystem', self.system),
                              ('display_profiles.shell.RootShell', self.shell)):
            patcher = patch(target, return_value=value)
            patcher.start()
            self.addCleanup(patcher.stop)

        stdout = patch('sys.stdout', new_callable=io.StringIO)
        self.stdout = stdout.start()
        self.addCleanup(stdout.stop)

        ProfileStore(self.root / "profiles").save(
            "tv", Profile(profile_name="TV", size="720x1280", show_touches=True,
                          ui_refresh_strategy="restart-compositor"))

    def tearDown(self):
        self.tmp.cleanup()

    def make_app(self, **config):
        app = main.DisplayProfilesApp(config_path=write_config(self.root, **config))
        self.addCleanup(app.close)
        return app

    def stored_state(self):
        return CurrentStateStore(self.root / "current.yaml").load()

    def all_commands(self):
        return [command for batch in self.shell.batches for command in batch]


class TestToggle(AppTestCase):

    def test_toggle_keeps_the_active_profile(self):
        app = self.make_app()
        self.assertEqual(app.load("tv"), 0)

        self.assertEqual(app.toggle("wifi_on"), 0)

        state = self.stored_state()
        self.assertEqual(state.filename, QUICK_ACTIONS)
        self.assertEqual(state.size, "720x1280")
        self.assertTrue(state.show_touches)
        self.assertTrue(state.wifi_on)
        self.assertTrue(self.system.radios[WIFI])
        self.assertEqual(self.system.metrics.width, 720)
        self.assertNotIn("wm size reset", self.all_commands())

    def test_unknown_field(self):
        app = self.make_app()
        self.assertEqual(app.toggle("size"), 1)
        self.assertIn("cannot toggle 'size'", self.stdout.getvalue())
        self.assertEqual(self.shell.batches, [])


class TestOnChangeHook(AppTestCase):

    @patch('main.subprocess.run')
    def test_hook_gets_the_active_profile(self, mock_run):
        app = self.make_app(on_change="notify-profile")
        app.load("tv")

        mock_run.assert_called_once()
        self.assertEqual(mock_run.call_args[0][0], "notify-profile")
        env = mock_run.call_args[1]['env']
        self.assertEqual(env['DISPLAY_PROFILE'], "tv")
        self.assertEqual(env['DISPLAY_PROFILE_NAME'], "TV")

    @patch('main.subprocess.run')
    def test_hook_after_turn_off_has_no_profile(self, mock_run):
        app = self.make_app(on_change="notify-profile")
        app.load("tv")
        app.turn_off()

        env = mock_run.call_args[1]['env']
        self.assertEqual(env['DISPLAY_PROFILE'], "")
        self.assertEqual(env['DISPLAY_PROFILE_NAME'], "")

    @patch('main.subprocess.run')
    def test_no_hook_configured(self, mock_run):
        self.make_app().load("tv")
        mock_run.assert_not_called()


class TestCheckCombination(AppTestCase):

    def test_unsafe_combination(self):
        path = write_config(self.root)
        self.assertEqual(main.check_combination("720x1280", "480", path), 1)
        self.assertIn("known to break the display", self.stdout.getvalue())

    def test_safe_combination(self):
        path = write_config(self.root)
        self.assertEqual(main.check_combination("1080x1920", "480", path), 0)

    def test_unreadable_display(self):
        self.system.metrics = None
        path = write_config(self.root)
        self.assertEqual(main.check_combination("1080x1920", "480", path), 1)


class TestDeviceCheck(AppTestCase):

    @patch('display_profiles.system.check_adb_available')
    def test_local_transport_skips_adb(self, mock_check):
        self.assertTrue(self.make_app().check_device())
        mock_check.assert_not_called()

    @patch('display_profiles.system.check_adb_available')
    def test_missing_device_is_reported(self, mock_check):
        mock_check.return_value = (False, "No device attached")
        self.assertFalse(self.make_app(transport="adb").check_device())
        self.assertIn("Error: No device attached", self.stdout.getvalue())

    @patch('display_profiles.system.check_adb_available')
    def test_check_combination_needs_a_device(self, mock_check):
        mock_check.return_value = (False, "No device attached")
        path = write_config(self.root, transport="adb")
        self.assertEqual(main.check_combination("1080x1920", "480", path), 1)

    @patch('main.setup_logging')
    @patch('display_profiles.system.check_adb_available')
    def test_cli_stops_before_touching_the_device(self, mock_check, mock_logging):
        mock_check.return_value = (False, "No device attached")
        path = write_config(self.root, transport="adb")
        with patch('sys.argv', ['display-profiles', '--config', str(path), '--load', 'tv']):
            self.assertEqual(main.main(), 1)
        self.assertEqual(self.shell.batches, [])
        self.assertTrue(self.stored_state().not_active)


if __name__ == '__main__':
    unittest.main()
