"""
Command Plan - Ordered privileged command slots and direct actions
==================================================================
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .config import Profile
from .state import CurrentStateSnapshot


class Slot(Enum):
    """Named positions in a command plan."""
    DENSITY = "density"
    DENSITY_REPEAT = "density-repeat"
    SIZE = "size"
    OVERSCAN = "overscan"
    ROTATION_PRE = "rotation-pre"
    ROTATION = "rotation"
    ROTATION_POST = "rotation-post"
    CHROME_SET = "chrome-set"
    CHROME_RESTART = "chrome-restart"
    IMMERSIVE = "immersive"
    NAVBAR = "navbar"
    DAYDREAM = "daydream"
    DAYDREAM_CHARGING = "daydream-charging"
    SAFE_MODE_DENSITY = "safe-mode-density"
    SAFE_MODE_SIZE = "safe-mode-size"
    STAY_ON = "stay-on"
    SHOW_TOUCHES = "show-touches"
    REFRESH_PRIMARY = "refresh-primary"
    REFRESH_SECONDARY = "refresh-secondary"
    VIBRATION = "vibration"
    BACKLIGHT = "backlight"


# Execution order for both directions. Turn-off never fills the safe-mode slots.
STANDARD_ORDER: Tuple[Slot, ...] = (
    Slot.DENSITY,
    Slot.DENSITY_REPEAT,
    Slot.SIZE,
    Slot.OVERSCAN,
    Slot.ROTATION_PRE,
    Slot.ROTATION,
    Slot.ROTATION_POST,
    Slot.CHROME_SET,
    Slot.CHROME_RESTART,
    Slot.IMMERSIVE,
    Slot.NAVBAR,
    Slot.DAYDREAM,
    Slot.DAYDREAM_CHARGING,
    Slot.SAFE_MODE_DENSITY,
    Slot.SAFE_MODE_SIZE,
    Slot.STAY_ON,
    Slot.SHOW_TOUCHES,
    Slot.REFRESH_PRIMARY,
    Slot.REFRESH_SECONDARY,
    Slot.VIBRATION,
    Slot.BACKLIGHT,
)

# Order used when the window manager is restarted. The restart kills the
# process that would run anything after it, so the window manager restart
# goes last and the remaining slots are deferred to the resume step.
WINDOW_MANAGER_RESTART_ORDER: Tuple[Slot, ...] = (
    Slot.DENSITY,
    Slot.SIZE,
    Slot.OVERSCAN,
    Slot.CHROME_SET,
    Slot.CHROME_RESTART,
    Slot.IMMERSIVE,
    Slot.NAVBAR,
    Slot.DAYDREAM,
    Slot.DAYDREAM_CHARGING,
    Slot.STAY_ON,
    Slot.SHOW_TOUCHES,
    Slot.REFRESH_PRIMARY,
)

# Slots that are dropped rather than deferred in window-manager-restart mode
WINDOW_MANAGER_RESTART_DROPPED = frozenset({Slot.DENSITY_REPEAT, Slot.REFRESH_SECONDARY})


class CommandPlan:
    """
    Privileged commands produced by one reconciliation pass.

    Each slot holds at most one command; empty slots are skipped.
    """

    def __init__(self):
        self._slots: Dict[Slot, str] = {}
        self.window_manager_restart = False

    def set(self, slot: Slot, command: str):
        if command:
            self._slots[slot] = command
        else:
            self._slots.pop(slot, None)

    def get(self, slot: Slot) -> str:
        return self._slots.get(slot, "")

    def is_empty(self) -> bool:
        return not self._slots

    def slots(self) -> Dict[Slot, str]:
        return dict(self._slots)

    def order(self) -> Tuple[Slot, ...]:
        if self.window_manager_restart:
            return WINDOW_MANAGER_RESTART_ORDER
        return STANDARD_ORDER

    def commands(self) -> List[str]:
        """Commands to run now, in execution order."""
        return [self._slots[slot] for slot in self.order() if self._slots.get(slot)]

    def deferred(self) -> List[str]:
        """Commands held back for the resume step (window manager restart only)."""
        if not self.window_manager_restart:
            return []
        immediate = set(WINDOW_MANAGER_RESTART_ORDER)
        return [self._slots[slot] for slot in STANDARD_ORDER
                if slot not in immediate
                and slot not in WINDOW_MANAGER_RESTART_DROPPED
                and self._slots.get(slot)]

    def __repr__(self):
        filled = ", ".join(f"{slot.value}={cmd!r}" for slot, cmd in self._slots.items())
        return f"CommandPlan({filled})"


# Namespace used by direct actions that flip a radio instead of a setting
RADIO = "radio"


@dataclass(frozen=True)
class DirectAction:
    """
    A setting change made through the unprivileged settings API.

    If the platform refuses the write and a fallback is given, the fallback
    command is put into the plan instead.
    """
    namespace: str              # "system", "secure", "global" or RADIO
    key: str
    value: int
    fallback_slot: Optional[Slot] = None
    fallback_command: str = ""

    def __str__(self):
        return f"{self.namespace}/{self.key}={self.value}"


@dataclass
class ReconciliationResult:
    """Everything a pass produced."""
    plan: CommandPlan
    actions: List[DirectAction] = field(default_factory=list)
    snapshot: Optional[CurrentStateSnapshot] = None
    # Resolved profile to write back (quick actions only)
    resolved_profile: Optional[Profile] = None
