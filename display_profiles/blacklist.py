"""
Blacklist - Resolution/density combinations known to break the display
======================================================================

The table below was collected from device reports; there is no formula
behind it. Each band pairs a set of densities with the resolutions that
are unsafe at those densities.
"""

import logging
from dataclasses import dataclass
from typing import FrozenSet, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlacklistBand:
    """One forbidden (density, resolution) band, in landscape terms."""
    # "reset" density matches when the current dpi passes this test
    density_min: int = 0
    density_max: int = 10_000
    densities: FrozenSet[str] = frozenset()
    # "reset" resolution matches when the current size passes this test
    reset_width_max: int = 10_000
    reset_height_max: int = 10_000
    reset_width_min: int = 0
    reset_height_min: int = 0
    resolutions: FrozenSet[str] = frozenset()


BANDS: Tuple[BlacklistBand, ...] = (
    BlacklistBand(
        density_min=480,
        densities=frozenset({"480", "560", "640"}),
        reset_width_max=1280, reset_height_max=800,
        resolutions=frozenset({
            "1280x800", "1280x768", "1280x720", "1024x768",
            "960x600", "854x480", "800x600", "800x480",
        }),
    ),
    BlacklistBand(
        density_min=320,
        densities=frozenset({"320", "400", "480", "560", "640"}),
        reset_width_max=960, reset_height_max=600,
        resolutions=frozenset({"960x600", "854x480", "800x600", "800x480"}),
    ),
    BlacklistBand(
        density_max=160,
        densities=frozenset({"120", "160"}),
        reset_width_min=2560, reset_height_min=1440,
        resolutions=frozenset({"2560x1440", "2560x1600"}),
    ),
    BlacklistBand(
        density_max=120,
        densities=frozenset({"120"}),
        reset_width_min=1920, reset_height_min=1080,
        resolutions=frozenset({
            "1920x1080", "1920x1200", "2048x1536", "2560x1440", "2560x1600",
        }),
    ),
)


def _swap(resolution: str) -> str:
    width, _, height = resolution.partition("x")
    return f"{height}x{width}"


def _density_matches(band: BlacklistBand, requested: str, current_density: int) -> bool:
    if requested == "reset":
        return band.density_min <= current_density <= band.density_max
    return requested in band.densities


def _resolution_matches(band: BlacklistBand, requested: str, long_side: int,
                        short_side: int, landscape: bool) -> bool:
    if requested == "reset":
        return (band.reset_width_min <= long_side <= band.reset_width_max
                and band.reset_height_min <= short_side <= band.reset_height_max)
    if not landscape:
        requested = _swap(requested)
    return requested in band.resolutions


def is_blacklisted(requested_res: str, requested_dpi: str, current_height: int,
                   current_width: int, current_dpi: int, landscape: bool) -> bool:
    """
    Check whether a resolution/density pair is unsafe to apply.

    Args:
        requested_res: Requested resolution "WxH" or "reset"
        requested_dpi: Requested density or "reset"
        current_height: Current display height in pixels
        current_width: Current display width in pixels
        current_dpi: Current display density
        landscape: True if the device's native orientation is landscape

    Returns:
        True if the combination is known to break the display pipeline
    """
    # Portrait tables are the landscape ones with both axes swapped
    if landscape:
        long_side, short_side = current_width, current_height
    else:
        long_side, short_side = current_height, current_width

    for band in BANDS:
        if (_density_matches(band, requested_dpi, current_dpi)
                and _resolution_matches(band, requested_res, long_side, short_side, landscape)):
            logger.debug(f"Blacklisted: {requested_res} @ {requested_dpi} "
                         f"(current {current_width}x{current_height} @ {current_dpi})")
            return True
    return False
