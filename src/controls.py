# controls.py
# Turns raw host input (names, key presses, swipe vectors) into move directions.

from typing import Dict, Optional

from core import DIRECTION

SWIPE_MIN_DISTANCE = 30

KEY_BINDINGS: Dict[str, DIRECTION] = {
    'w': DIRECTION.UP,
    'a': DIRECTION.LEFT,
    's': DIRECTION.DOWN,
    'd': DIRECTION.RIGHT,
    'arrowup': DIRECTION.UP,
    'arrowleft': DIRECTION.LEFT,
    'arrowdown': DIRECTION.DOWN,
    'arrowright': DIRECTION.RIGHT,
}

def parse_direction(value: object) -> Optional[DIRECTION]:
    """
    Maps a direction name, key name or DIRECTION member to a DIRECTION.
    Args:
        value: e.g. DIRECTION.UP, "up", "LEFT", "ArrowDown" or "d".
    Returns:
        Optional[DIRECTION]: None for anything unrecognised.
    """
    if isinstance(value, DIRECTION):
        return value
    if not isinstance(value, str):
        return None

    key = value.strip().lower()
    for direction in DIRECTION:
        if direction.value == key:
            return direction
    return KEY_BINDINGS.get(key)

def direction_from_swipe(dx: float, dy: float,
                         min_distance: float = SWIPE_MIN_DISTANCE) -> Optional[DIRECTION]:
    """
    Picks a direction from a swipe displacement in screen coordinates (y grows downward).

    Swipes shorter than min_distance on both axes are ignored. Otherwise the axis
    with the larger absolute displacement wins; a tie counts as vertical.
    Args:
        dx (float): Horizontal displacement, positive to the right.
        dy (float): Vertical displacement, positive downward.
        min_distance (float): Minimum displacement on at least one axis.
    Returns:
        Optional[DIRECTION]: The swipe direction, or None if too short.
    """
    if abs(dx) < min_distance and abs(dy) < min_distance:
        return None
    if abs(dx) > abs(dy):
        return DIRECTION.RIGHT if dx > 0 else DIRECTION.LEFT
    return DIRECTION.DOWN if dy > 0 else DIRECTION.UP
