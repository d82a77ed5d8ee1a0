#!/usr/bin/env python3
"""
Display Profiles - Device Setting Profiles for Android
======================================================

Switch an Android device between display setups (external monitor, TV,
tablet mode) and back, over adb or from a shell on the device.

Usage:
    python main.py [--config PATH] [--debug] [--dry-run] COMMAND

    Commands:
        --load NAME         Apply a stored profile
        --off               Undo the active profile
        --toggle FIELD      Toggle one setting through the quick actions profile
        --status            Show the active profile and captured originals
        --list              List stored profiles
        --resume            Run commands deferred by a window manager restart
        --check RES DPI     Check a resolution/density pair against the blacklist

    Options:
        --config PATH       Path to configuration file
        --debug             Enable debug logging
        --dry-run           Log privileged commands instead of running them
        --force-refresh     Refresh the UI on the next load even if nothing changed
        --force-safe-mode   Clear forced size/density on the next load
"""

import argparse
import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Optional

import yaml


# Set up logging first
def setup_logging(debug: bool = False, log_file: Optional[Path] = None):
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO

    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=handlers,
    )

logger = logging.getLogger(__name__)


def check_combination(resolution: str, density: str, config_path: Optional[Path] = None) -> int:
    """Check a resolution/density pair against the live display."""
    from display_profiles.blacklist import is_blacklisted
    from display_profiles.config import Config
    from display_profiles.engine import ReconciliationEngine
    from display_profiles.system import AdbSystem, check_adb_available

    config = Config(config_path)
    config.load()
    if config.transport == "adb":
        available, msg = check_adb_available()
        if not available:
            print(f"Error: {msg}")
            return 1
    system = AdbSystem(config.transport, config.serial, config.adb_retry_count, config.adb_timeout)
    dims = ReconciliationEngine(config, system).current_dimensions()
    if dims is None:
        print("Error: could not read the current display metrics")
        return 1

    width, height, current_density = dims
    if is_blacklisted(resolution, density, height, width, current_density, config.landscape):
        print(f"✗ {resolution} @ {density} is known to break the display "
              f"(current {width}x{height} @ {current_density})")
        return 1
    print(f"✓ {resolution} @ {density} is allowed")
    return 0


class DisplayProfilesApp:
    """
    Main application controller.

    Wires configuration, the device surface, the privileged shell and the
    stores into a PlanExecutor.
    """

    def __init__(self, config_path: Optional[Path] = None, dry_run: bool = False):
        from display_profiles.config import Config, ProfileStore
        from display_profiles.engine import ReconciliationEngine
        from display_profiles.executor import PlanExecutor
        from display_profiles.shell import DebugShell, RootShell
        from display_profiles.state import CurrentStateStore
        from display_profiles.system import AdbSystem

        self.config = Config(config_path)
        self.config.load()

        self.system = AdbSystem(
            transport=self.config.transport,
            serial=self.config.serial,
            retry_count=self.config.adb_retry_count,
            timeout=self.config.adb_timeout,
        )
        if dry_run or self.config.debug_mode:
            self.shell = DebugShell()
        else:
            self.shell = RootShell(self.system.shell_prefix())

        self.profiles = ProfileStore(self.config.profiles_dir)
        self.state = CurrentStateStore(self.config.state_file)
        self.engine = ReconciliationEngine(self.config, self.system)
        self.executor = PlanExecutor(
            self.config, self.engine, self.system, self.shell, self.profiles, self.state,
        )
        self.executor.add_state_change_callback(self._on_state_change)

    def _on_state_change(self, filename: Optional[str], snapshot):
        """Run the configured on-change hook."""
        command = self.config.on_change_command
        if not command:
            return
        env = dict(os.environ)
        env['DISPLAY_PROFILE'] = filename or ""
        env['DISPLAY_PROFILE_NAME'] = "" if snapshot.not_active else (snapshot.profile_name or "")
        try:
            subprocess.run(command, shell=True, env=env, timeout=30, check=True)
            logger.debug(f"Ran on-change hook: {command}")
        except subprocess.CalledProcessError as e:
            logger.warning(f"On-change hook exited with {e.returncode}")
        except subprocess.TimeoutExpired:
            logger.warning("On-change hook timed out")

    def check_device(self) -> bool:
        """Check that adb can reach a device when the adb transport is used."""
        from display_profiles.system import check_adb_available

        if self.config.transport != "adb":
            return True
        available, msg = check_adb_available()
        if not available:
            print(f"Error: {msg}")
            return False
        logger.debug(msg)
        return True

    def load(self, name: str) -> int:
        from display_profiles.config import ProfileNotFound

        try:
            future = self.executor.submit_load(name)
            loaded = future.result()
        except ProfileNotFound as e:
            print(f"Error: {e}")
            return 1
        if not loaded:
            print("Error: root access is not available")
            return 1
        print(f"Profile '{name}' loaded")
        return 0

    def turn_off(self) -> int:
        if not self.executor.submit_turn_off().result():
            print("Error: root access is not available")
            return 1
        print("Profile turned off")
        return 0

    def toggle(self, field: str) -> int:
        """Toggle one setting on top of the quick actions profile."""
        from display_profiles.config import TOGGLEABLE

        if field not in TOGGLEABLE:
            print(f"Error: cannot toggle '{field}'. Choose from: {', '.join(TOGGLEABLE)}")
            return 1
        if not self.executor.toggle(field):
            print("Error: root access is not available")
            return 1
        print(f"Toggled '{field}'")
        return 0

    def status(self) -> int:
        snapshot = self.state.load()
        if snapshot.not_active:
            print("No profile is active")
        else:
            print(f"Active profile: {snapshot.profile_name} ({snapshot.filename})")
        print()
        print(yaml.safe_dump(snapshot.to_dict(), default_flow_style=False, sort_keys=False))
        pending = self.state.load_pending()
        if pending:
            print(f"{len(pending)} deferred command(s), run with --resume")
        return 0

    def list_profiles(self) -> int:
        entries = self.profiles.list_profiles()
        if not entries:
            print(f"No profiles in {self.profiles.profiles_dir}")
            return 0
        active = self.state.load()
        for name, title in entries:
            marker = "*" if not active.not_active and active.filename == name else " "
            print(f" {marker} {name:20s} {title}")
        return 0

    def resume(self) -> int:
        count = self.executor.resume()
        print(f"Ran {count} deferred command(s)")
        return 0

    def close(self):
        self.executor.shutdown()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Display Profiles - device setting profiles for Android",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        '--config', '-c',
        type=Path,
        help='Path to configuration file'
    )
    parser.add_argument(
        '--debug', '-d',
        action='store_true',
        help='Enable debug logging'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Log privileged commands instead of running them'
    )
    parser.add_argument(
        '--force-refresh',
        action='store_true',
        help='Refresh the UI on the next load'
    )
    parser.add_argument(
        '--force-safe-mode',
        action='store_true',
        help='Clear forced size/density on the next load'
    )

    commands = parser.add_mutually_exclusive_group(required=True)
    commands.add_argument(
        '--load', '-l',
        metavar='NAME',
        help='Apply a stored profile'
    )
    commands.add_argument(
        '--off',
        action='store_true',
        help='Undo the active profile'
    )
    commands.add_argument(
        '--toggle', '-t',
        metavar='FIELD',
        help='Toggle one setting through the quick actions profile'
    )
    commands.add_argument(
        '--status',
        action='store_true',
        help='Show the active profile and exit'
    )
    commands.add_argument(
        '--list',
        action='store_true',
        help='List stored profiles and exit'
    )
    commands.add_argument(
        '--resume',
        action='store_true',
        help='Run commands deferred by a window manager restart'
    )
    commands.add_argument(
        '--check',
        nargs=2,
        metavar=('RES', 'DPI'),
        help='Check a resolution/density pair and exit'
    )

    args = parser.parse_args()

    # Setup logging
    log_file = None
    if args.load or args.off or args.toggle or args.resume:
        log_file = Path.home() / ".local" / "share" / "display-profiles" / "display-profiles.log"
    setup_logging(args.debug, log_file)

    if args.check:
        return check_combination(args.check[0], args.check[1], args.config)

    app = DisplayProfilesApp(config_path=args.config, dry_run=args.dry_run)
    try:
        if not (args.status or args.list) and not app.check_device():
            return 1

        if args.force_refresh or args.force_safe_mode:
            app.executor.request_refresh(args.force_refresh, args.force_safe_mode)

        if args.load:
            return app.load(args.load)
        if args.off:
            return app.turn_off()
        if args.toggle:
            return app.toggle(args.toggle)
        if args.status:
            return app.status()
        if args.list:
            return app.list_profiles()
        if args.resume:
            return app.resume()
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=args.debug)
        return 1
    finally:
        app.close()


if __name__ == '__main__':
    sys.exit(main())
