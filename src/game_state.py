# game_state.py
# One game session: owns the grid and score and runs each turn through the core.
#
# A GameState assumes a single writer. Hosts must finish one call before making
# the next, or hold a lock around each apply_move/new_game call.

import logging
import random
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import core
from controls import parse_direction
from core import GameStatus

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class GameSnapshot:
    """Read-only view of a session for renderers."""
    grid: Tuple[int, ...]
    score: int
    best_score: int
    status: GameStatus
    won: bool
    win_value: int

    def rows(self) -> List[List[int]]:
        return core.to_rows(self.grid)

@dataclass(frozen=True)
class MoveOutcome:
    """Result of one apply_move call."""
    status: GameStatus
    grid: Tuple[int, ...]
    score: int
    score_delta: int
    won_just_now: bool
    best_score_candidate: Optional[int]
    changed: bool

def _coerce_best_score(value: object) -> int:
    """Best score supplied by the host; anything unusable counts as 0."""
    try:
        best = int(value)
    except (TypeError, ValueError, OverflowError):
        logger.warning("Ignoring unreadable best score %r; starting from 0.", value)
        return 0
    if best < 0:
        logger.warning("Ignoring negative best score %d; starting from 0.", best)
        return 0
    return best

class GameState:
    """
    Turn orchestration and the ACTIVE -> WON -> WON_CONTINUING / OVER state machine.

    Win and loss are independent: a won game keeps its ``won`` flag after it
    runs out of moves and becomes OVER.
    Args:
        win_value (int): Tile value that wins the game. Power of 2, at least 4.
        best_score: Previously stored best score; invalid values fall back to 0.
        rng: Random source handed to the spawner (``choice`` and ``random``).
        seed (int): Seed for a private ``random.Random`` when no rng is given.
    Raises:
        ValueError: If win_value is not a power of 2 >= 4.
    """

    def __init__(self, win_value: int = core.DEFAULT_WIN_VALUE, best_score: object = 0,
                 rng: Optional[random.Random] = None, seed: Optional[int] = None):
        if not isinstance(win_value, int) or win_value < 4 or win_value & (win_value - 1):
            raise ValueError("Win value must be a power of 2 of at least 4.")
        self._win_value = win_value
        self._best_score = _coerce_best_score(best_score)
        self._rng = rng if rng is not None else random.Random(seed)
        self._grid: List[int] = core.new_grid()
        self._score = 0
        self._status = GameStatus.ACTIVE
        self._won = False
        self.new_game()

    @classmethod
    def from_grid(cls, cells: Sequence[int], score: int = 0,
                  status: GameStatus = GameStatus.ACTIVE, **kwargs) -> "GameState":
        """
        Restores a session from an explicit grid, without spawning.
        Args:
            cells (Sequence[int]): Row-major grid.
            score (int): Current score.
            status (GameStatus): Current status; WON/WON_CONTINUING also set ``won``.
                A grid with no move left is restored as OVER whatever status is given.
            **kwargs: Passed to the constructor (win_value, best_score, rng, seed).
        Raises:
            ValueError: If the grid or score is invalid, or the status does not fit the grid.
        """
        if score < 0:
            raise ValueError("Score must be non-negative.")
        state = cls(**kwargs)
        grid = core.validate_grid(cells)
        has_win_tile = core.has_reached_win_value(grid, state._win_value)
        movable = core.can_move(grid)

        if status in (GameStatus.WON, GameStatus.WON_CONTINUING) and not has_win_tile:
            raise ValueError(f"Status {status.name} needs a {state._win_value} tile on the grid.")
        if status is GameStatus.OVER and movable:
            raise ValueError("Status OVER needs a grid with no move left.")

        state._grid = grid
        state._score = score
        state._won = status in (GameStatus.WON, GameStatus.WON_CONTINUING) or (
            status is GameStatus.OVER and has_win_tile)
        state._status = status if movable else GameStatus.OVER
        if score > state._best_score:
            state._best_score = score
        return state

    # --- Read-only accessors ---

    @property
    def grid(self) -> Tuple[int, ...]:
        return tuple(self._grid)

    @property
    def score(self) -> int:
        return self._score

    @property
    def best_score(self) -> int:
        return self._best_score

    @property
    def status(self) -> GameStatus:
        return self._status

    @property
    def won(self) -> bool:
        return self._won

    @property
    def win_value(self) -> int:
        return self._win_value

    def snapshot(self) -> GameSnapshot:
        return GameSnapshot(
            grid=self.grid,
            score=self._score,
            best_score=self._best_score,
            status=self._status,
            won=self._won,
            win_value=self._win_value,
        )

    # --- Operations ---

    def new_game(self) -> GameSnapshot:
        """Empties the grid, spawns the starting tiles and resets score and status."""
        self._grid = core.new_grid()
        for _ in range(core.INITIAL_TILES):
            core.add_random_tile(self._grid, self._rng)
        self._score = 0
        self._status = GameStatus.ACTIVE
        self._won = False
        logger.debug("New game started: %s", self._grid)
        return self.snapshot()

    def _unchanged(self) -> MoveOutcome:
        return MoveOutcome(
            status=self._status,
            grid=self.grid,
            score=self._score,
            score_delta=0,
            won_just_now=False,
            best_score_candidate=None,
            changed=False,
        )

    def apply_move(self, direction: object) -> MoveOutcome:
        """
        Plays one turn.

        Unrecognised directions, moves after game over and moves that change
        nothing all leave the session untouched. An effective move adds its score,
        raises the best score if beaten, spawns one tile, then checks for a first
        win and for game over.
        Args:
            direction: A DIRECTION, or anything ``controls.parse_direction`` accepts.
        Returns:
            MoveOutcome: New status/grid/score plus what happened this turn.
        """
        move = parse_direction(direction)
        if move is None:
            logger.debug("Ignoring unrecognised direction %r.", direction)
            return self._unchanged()
        if self._status is GameStatus.OVER:
            return self._unchanged()

        result = core.apply_move(self._grid, move)
        if not result.changed:
            return self._unchanged()

        self._score += result.score_delta
        best_candidate = None
        if self._score > self._best_score:
            self._best_score = self._score
            best_candidate = self._best_score

        core.add_random_tile(self._grid, self._rng)

        won_just_now = False
        if self._status is GameStatus.ACTIVE and core.has_reached_win_value(self._grid, self._win_value):
            self._status = GameStatus.WON
            self._won = True
            won_just_now = True
            logger.debug("Reached %d with score %d.", self._win_value, self._score)

        if not core.can_move(self._grid):
            self._status = GameStatus.OVER
            logger.debug("No moves left; final score %d.", self._score)

        return MoveOutcome(
            status=self._status,
            grid=self.grid,
            score=self._score,
            score_delta=result.score_delta,
            won_just_now=won_just_now,
            best_score_candidate=best_candidate,
            changed=True,
        )

    def continue_after_win(self) -> None:
        """Keeps playing after a win: WON becomes WON_CONTINUING. Other statuses are left alone."""
        if self._status is GameStatus.WON:
            self._status = GameStatus.WON_CONTINUING
        else:
            logger.debug("continue_after_win ignored in status %s.", self._status.name)
