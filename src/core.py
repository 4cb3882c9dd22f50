# core.py
# Board-level logic for the sliding-tile game: line merging, moves, spawning and end checks.

import logging
import random
from enum import Enum
from typing import List, NamedTuple, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

BOARD_SIZE = 4
CELL_COUNT = BOARD_SIZE * BOARD_SIZE
DEFAULT_WIN_VALUE = 2048
FOUR_TILE_PROBABILITY = 0.1
INITIAL_TILES = 2

class GameStatus(Enum):
    """Represents the current progress state of the game."""
    ACTIVE = "active"
    WON = "won"
    WON_CONTINUING = "won_continuing"
    OVER = "over"  # No move can change the grid

class DIRECTION(Enum):
    """Represents the possible move directions."""
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"

class MoveResult(NamedTuple):
    """Outcome of sliding the whole grid in one direction."""
    changed: bool
    score_delta: int

class SpawnResult(NamedTuple):
    """Where a new tile was placed and its value."""
    index: int
    value: int

# --- Grid Helper Functions ---

def new_grid() -> List[int]:
    """Returns an empty grid (all cells 0)."""
    return [0] * CELL_COUNT

def _is_tile_value(value: int) -> bool:
    return isinstance(value, int) and value >= 2 and (value & (value - 1)) == 0

def validate_grid(grid: Sequence[int]) -> List[int]:
    """
    Checks that a grid has the right size and only holds empty cells or tiles.
    Args:
        grid (Sequence[int]): Row-major cell values.
    Returns:
        List[int]: A copy of the grid as a list.
    Raises:
        ValueError: If the grid is the wrong length or holds an invalid value.
    """
    cells = list(grid)
    if len(cells) != CELL_COUNT:
        raise ValueError(f"Grid must hold exactly {CELL_COUNT} cells, got {len(cells)}.")
    for index, value in enumerate(cells):
        if value != 0 and not _is_tile_value(value):
            raise ValueError(f"Cell {index} holds {value!r}; expected 0 or a power of 2 >= 2.")
    return cells

def to_rows(grid: Sequence[int]) -> List[List[int]]:
    """
    Splits a row-major grid into BOARD_SIZE rows, for display.
    Args:
        grid (Sequence[int]): Row-major cell values.
    Returns:
        List[List[int]]: One list per row.
    """
    return [list(grid[r * BOARD_SIZE:(r + 1) * BOARD_SIZE]) for r in range(BOARD_SIZE)]

def from_rows(rows: Sequence[Sequence[int]]) -> List[int]:
    """
    Flattens a list of rows into a row-major grid.
    Raises:
        ValueError: If the rows do not form a BOARD_SIZE x BOARD_SIZE square.
    """
    if len(rows) != BOARD_SIZE or not all(len(row) == BOARD_SIZE for row in rows):
        raise ValueError(f"Board must be a {BOARD_SIZE}x{BOARD_SIZE} matrix.")
    return validate_grid([value for row in rows for value in row])

def get_empty_cells(grid: Sequence[int]) -> List[int]:
    """
    Get indices of empty (0-value) cells in the given grid.
    Args:
        grid (Sequence[int]): The grid to check.
    Returns:
        List[int]: Row-major indices of empty cells, ascending.
    """
    return [index for index, value in enumerate(grid) if value == 0]

# --- Line Manipulation ---

def merge_line(line: Sequence[int]) -> Tuple[List[int], int]:
    """
    Slides a line toward index 0 and merges equal neighbours.

    Non-zero values keep their relative order. Each equal adjacent pair merges
    once into a cell of double the value; the merged cell does not merge again
    in the same pass, so [2, 2, 2, 2] becomes [4, 4, 0, 0], not [8, 0, 0, 0].
    Args:
        line (Sequence[int]): The line to process, 0 for empty.
    Returns:
        Tuple[List[int], int]: The new line, padded with zeros to the input
                               length, and the sum of all merged values.
    """
    tiles = [value for value in line if value != 0]
    merged: List[int] = []
    score_delta = 0
    read_idx = 0

    while read_idx < len(tiles):
        current_val = tiles[read_idx]
        if read_idx + 1 < len(tiles) and current_val == tiles[read_idx + 1]:
            merged_value = current_val * 2
            merged.append(merged_value)
            score_delta += merged_value
            read_idx += 2  # Skip the partner that was consumed
        else:
            merged.append(current_val)
            read_idx += 1

    merged += [0] * (len(line) - len(merged))
    return merged, score_delta

def line_indices(direction: DIRECTION, line_number: int) -> List[int]:
    """
    Grid indices of one row or column, in the order tiles travel toward.

    Merging always happens toward the front of this list: LEFT and UP read
    the row/column as-is, RIGHT and DOWN read it reversed.
    Args:
        direction (DIRECTION): The move direction.
        line_number (int): Row number for LEFT/RIGHT, column number for UP/DOWN.
    Returns:
        List[int]: BOARD_SIZE grid indices.
    Raises:
        ValueError: If an invalid direction is specified.
    """
    if direction in (DIRECTION.LEFT, DIRECTION.RIGHT):
        indices = [line_number * BOARD_SIZE + col for col in range(BOARD_SIZE)]
    elif direction in (DIRECTION.UP, DIRECTION.DOWN):
        indices = [row * BOARD_SIZE + line_number for row in range(BOARD_SIZE)]
    else:
        raise ValueError(f"Invalid direction specified: {direction!r}.")

    if direction in (DIRECTION.RIGHT, DIRECTION.DOWN):
        indices.reverse()
    return indices

# --- Core Game Move Processing ---

def apply_move(grid: List[int], direction: DIRECTION) -> MoveResult:
    """
    Slides every row or column of the grid in place.

    Rows and columns are handled independently. No tile is spawned here.
    Args:
        grid (List[int]): The grid to modify.
        direction (DIRECTION): The direction to move.
    Returns:
        MoveResult: Whether any cell changed, and the score gained.
    Raises:
        ValueError: If an invalid direction is specified.
    """
    changed = False
    score_delta = 0

    for line_number in range(BOARD_SIZE):
        indices = line_indices(direction, line_number)
        before = [grid[i] for i in indices]
        after, line_delta = merge_line(before)

        if after != before:
            changed = True
            for index, value in zip(indices, after):
                grid[index] = value
        score_delta += line_delta

    return MoveResult(changed, score_delta)

# --- Tile Spawning ---

def add_random_tile(grid: List[int], rng: Optional[random.Random] = None) -> Optional[SpawnResult]:
    """
    Adds a new tile (90% chance of 2, 10% chance of 4) to a random empty cell.
    Args:
        grid (List[int]): The grid to modify in place.
        rng: Source of randomness with ``choice`` and ``random``; defaults to
             the ``random`` module.
    Returns:
        Optional[SpawnResult]: The placement, or None if the grid was full.
    """
    empty_cells = get_empty_cells(grid)
    if not empty_cells:
        logger.debug("No empty cell to spawn into; grid left unchanged.")
        return None

    source = rng if rng is not None else random
    index = source.choice(empty_cells)
    value = 4 if source.random() < FOUR_TILE_PROBABILITY else 2
    grid[index] = value
    return SpawnResult(index, value)

# --- Game State Checks ---

def has_reached_win_value(grid: Sequence[int], win_value: int = DEFAULT_WIN_VALUE) -> bool:
    """
    Check if a tile with win_value exists.
    Args:
        grid (Sequence[int]): The grid.
        win_value (int): The tile value that signifies a win. Default is 2048.
    Returns:
        bool: True if the win value is on the grid.
    """
    return any(value == win_value for value in grid)

def can_move(grid: Sequence[int]) -> bool:
    """
    Checks whether any move could still change the grid.

    True if a cell is empty, or two horizontally or vertically adjacent cells
    hold the same value. Adjacency never wraps across row boundaries.
    Args:
        grid (Sequence[int]): The grid.
    Returns:
        bool: False only for a full grid without equal neighbours.
    """
    if any(value == 0 for value in grid):
        return True

    for row in range(BOARD_SIZE):
        for col in range(BOARD_SIZE):
            value = grid[row * BOARD_SIZE + col]
            if col < BOARD_SIZE - 1 and grid[row * BOARD_SIZE + col + 1] == value:
                return True
            if row < BOARD_SIZE - 1 and grid[(row + 1) * BOARD_SIZE + col] == value:
                return True
    return False
