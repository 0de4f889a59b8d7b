"""
Identity Keys and Name Normalization
Shared helpers used by every section to address entities across documents
"""

import re
from typing import Dict, Optional, Tuple

ItemKey = Tuple[int, int]
TakeKey = Tuple[int, int, int]

# Tolerance used when comparing time positions
TIME_EPSILON = 0.001


def track_label(track_index: int) -> str:
    return f"track[{track_index}]"


def item_label(track_index: int, item_index: int) -> str:
    return f"track[{track_index}]/item[{item_index}]"


def take_label(track_index: int, item_index: int, take_index: int) -> str:
    return f"track[{track_index}]/item[{item_index}]/take[{take_index}]"


# ============================================================================
# ENVELOPE NAMES
# ============================================================================

_PARENTHETICAL = re.compile(r"\s*\([^()]*\)")

# Envelopes a destination can create on demand, keyed by normalized name
TRACK_ENVELOPE_KEYS: Dict[str, str] = {
    "volume": "Volume",
    "volume (pre-fx)": "Volume (Pre-FX)",
    "pan": "Pan",
    "pan (pre-fx)": "Pan (Pre-FX)",
}

TAKE_ENVELOPE_KEYS: Dict[str, str] = {
    "volume": "Volume",
    "pan": "Pan",
    "mute": "Mute",
    "pitch": "Pitch",
    "rate": "Playrate",
}


def normalize_track_envelope_name(name: Optional[str]) -> str:
    """
    Fold a track envelope name to its lookup key

    "Track Volume (Pre-FX)" -> "volume (pre-fx)", "Pan (Some Plugin)" -> "pan".
    Only the pre-FX qualifier survives.
    """
    n = (name or "").lower()
    n = re.sub(r"track\s+", "", n)
    n = _PARENTHETICAL.sub(lambda m: " (pre-fx)" if "pre-fx" in m.group(0) else "", n)
    n = re.sub(r"\s+", " ", n)
    return n.strip()


def normalize_take_envelope_name(name: Optional[str]) -> str:
    """
    Fold a take envelope name to its lookup key

    "Take Playrate" -> "rate", "Volume (Pre-FX)" -> "volume".
    """
    n = (name or "").lower()
    n = re.sub(r"^take\s+", "", n)
    n = _PARENTHETICAL.sub("", n)
    n = re.sub(r"\s+", "", n)
    return n.replace("playrate", "rate")


# ============================================================================
# DECODING TABLES
# ============================================================================

FADE_SHAPES: Dict[int, str] = {
    0: "Linear",
    1: "Fast Start",
    2: "Fast End",
    3: "Slow Start/End",
    4: "Sharp Curve",
    5: "Smooth Curve",
    6: "No Curve",
}

PAN_MODES: Dict[int, str] = {
    -1: "Project Default",
    0: "Classic 3.x",
    3: "New Balance",
    5: "Stereo Pan",
    6: "Dual Pan",
}


def fade_shape_name(shape: int) -> str:
    """Human-readable fade shape, "Unknown" when out of range"""
    return FADE_SHAPES.get(int(shape), "Unknown")


def pan_mode_name(mode: int) -> str:
    return PAN_MODES.get(int(mode), "Unknown")
