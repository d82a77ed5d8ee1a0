"""
Plan Executor - Runs reconciliation passes against the device
=============================================================

Owns the snapshot: every pass reads it, runs the engine, applies direct
actions and the privileged plan, then persists it. One lock keeps passes
from interleaving; one worker per direction queues background requests.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional

from .config import Config, Profile, ProfileStore, QUICK_ACTIONS, TOGGLE, TOGGLEABLE
from .engine import ReconciliationEngine
from .plan import CommandPlan, DirectAction, RADIO
from .shell import CapabilityUnavailable, PrivilegedShell
from .state import CurrentStateSnapshot, CurrentStateStore
from .system import AdbError, SettingWriteDenied, SystemSurface

logger = logging.getLogger(__name__)

StateChangeCallback = Callable[[Optional[str], CurrentStateSnapshot], None]


class PlanExecutor:
    """
    Runs load and turn-off passes one at a time.

    Callbacks registered with add_state_change_callback() are called with
    the active profile name (None when nothing is active) and the stored
    snapshot after every pass, including aborted ones.
    """

    def __init__(
        self,
        config: Config,
        engine: ReconciliationEngine,
        system: SystemSurface,
        shell: PrivilegedShell,
        profile_store: ProfileStore,
        state_store: CurrentStateStore,
    ):
        self.config = config
        self.engine = engine
        self.system = system
        self.shell = shell
        self.profile_store = profile_store
        self.state_store = state_store

        self._pass_lock = threading.Lock()
        self._load_worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="profile-load")
        self._off_worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="profile-off")
        self._state_change_callbacks: List[StateChangeCallback] = []

    def add_state_change_callback(self, callback: StateChangeCallback):
        """Add callback for state changes."""
        self._state_change_callbacks.append(callback)

    def _notify(self, snapshot: CurrentStateSnapshot):
        filename = None if snapshot.not_active else snapshot.filename
        for callback in self._state_change_callbacks:
            try:
                callback(filename, snapshot)
            except Exception as e:
                logger.error(f"State change callback error: {e}")

    def shutdown(self, wait: bool = True):
        self._load_worker.shutdown(wait=wait)
        self._off_worker.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    def submit_load(self, name: str) -> Future:
        """Queue a load pass on the load worker."""
        return self._load_worker.submit(self.load_profile, name)

    def submit_turn_off(self) -> Future:
        """Queue a turn-off pass on the turn-off worker."""
        return self._off_worker.submit(self.turn_off)

    def load_profile(self, name: str) -> bool:
        """
        Load a profile by name.

        Returns:
            True if the pass ran, False if it was aborted for lack of
            elevated access

        Raises:
            ProfileNotFound: If no such profile is stored
        """
        profile = self.profile_store.get(name)

        with self._pass_lock:
            snapshot = self.state_store.load()

            if not self.shell.is_available():
                logger.error(f"Root access is not available; profile '{name}' was not loaded")
                self._notify(snapshot)
                return False

            logger.info(f"Loading profile '{name}'")
            result = self.engine.reconcile_load(profile, snapshot)
            new = result.snapshot
            new.filename = name

            self._apply_actions(result.actions, result.plan)
            self._run_plan(result.plan)
            self.state_store.save(new)

            if name == QUICK_ACTIONS:
                if result.resolved_profile is not None:
                    self.profile_store.save(QUICK_ACTIONS, result.resolved_profile)
            else:
                self.profile_store.clear_quick_actions()

            logger.info(f"Profile '{name}' loaded")
            self._notify(new)
            return True

    def turn_off(self) -> bool:
        """
        Undo the active profile.

        Returns:
            True if the pass ran, False if restoration was deferred for lack
            of elevated access
        """
        with self._pass_lock:
            snapshot = self.state_store.load()
            snapshot.filename_backup = snapshot.filename
            snapshot.filename = None

            if not self.shell.is_available():
                logger.error("Root access is not available; turn-off deferred")
                snapshot.filename = snapshot.filename_backup
                snapshot.filename_backup = None
                self.state_store.save(snapshot)
                self._notify(snapshot)
                return False

            logger.info(f"Turning off profile '{snapshot.filename_backup}'")
            result = self.engine.reconcile_off(snapshot)

            self._apply_actions(result.actions, result.plan)
            self._run_plan(result.plan)
            self.state_store.save(result.snapshot)
            self.profile_store.clear_quick_actions()

            logger.info("Profile turned off")
            self._notify(result.snapshot)
            return True

    def toggle(self, field: str) -> bool:
        """
        Toggle one setting through the quick actions profile.

        The toggle is layered on the stored quick actions profile, or on the
        values the active profile applied, so nothing else changes.

        Returns:
            Result of the load pass

        Raises:
            ValueError: If the field cannot be toggled
        """
        if field not in TOGGLEABLE:
            raise ValueError(f"Cannot toggle '{field}'")

        if self.profile_store.exists(QUICK_ACTIONS):
            base = self.profile_store.get(QUICK_ACTIONS)
        else:
            snapshot = self.state_store.load()
            if snapshot.not_active:
                base = Profile(profile_name="Quick Actions")
            else:
                base = snapshot.applied_profile(default_name="Quick Actions")
        self.profile_store.save(QUICK_ACTIONS, base.replace(quick_action_toggle=field, **{field: TOGGLE}))
        return self.load_profile(QUICK_ACTIONS)

    def resume(self) -> int:
        """
        Run commands deferred by a window manager restart.

        Returns:
            Number of commands run
        """
        with self._pass_lock:
            if not self.state_store.load_pending():
                logger.debug("No deferred commands")
                return 0
            if not self.shell.is_available():
                logger.error("Root access is not available; deferred commands kept")
                return 0
            pending = self.state_store.take_pending()
            logger.info(f"Running {len(pending)} deferred command(s)")
            self.shell.run(pending)
            return len(pending)

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    def _apply_actions(self, actions: List[DirectAction], plan: CommandPlan):
        """Apply direct actions; a denied write falls back into the plan."""
        for action in actions:
            try:
                if action.namespace == RADIO:
                    self.system.set_radio(action.key, bool(action.value))
                else:
                    self.system.put_int(action.namespace, action.key, action.value)
                logger.debug(f"Applied {action}")
            except SettingWriteDenied as e:
                if action.fallback_slot is not None:
                    logger.info(f"{action} denied, using privileged command instead")
                    plan.set(action.fallback_slot, action.fallback_command)
                else:
                    logger.warning(f"{action} denied: {e}")
            except AdbError as e:
                # Remaining actions still run
                logger.warning(f"Could not apply {action}: {e}")

    def _run_plan(self, plan: CommandPlan):
        # Commands still deferred from an earlier pass run ahead of this one
        carried = self.state_store.load_pending()
        if carried:
            logger.info(f"Running {len(carried)} command(s) deferred by an earlier pass")
        commands = carried + plan.commands()
        deferred = plan.deferred()
        self.state_store.save_pending(deferred)
        if deferred:
            logger.info(f"Deferred {len(deferred)} command(s) until resume")
        if not commands:
            logger.debug("Command plan is empty")
            return
        try:
            self.shell.run(commands)
        except CapabilityUnavailable as e:
            logger.error(f"Privileged commands not run: {e}")

    def request_refresh(self, force_ui_refresh: bool = False, force_safe_mode: bool = False):
        """Set one-shot flags consumed by the next load pass."""
        with self._pass_lock:
            snapshot = self.state_store.load()
            snapshot.force_ui_refresh = snapshot.force_ui_refresh or force_ui_refresh
            snapshot.force_safe_mode = snapshot.force_safe_mode or force_safe_mode
            self.state_store.save(snapshot)
