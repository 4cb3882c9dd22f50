import logging
import threading
import uuid
from collections import OrderedDict
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request, Response
from pydantic import BaseModel, Field
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

import core
from controls import direction_from_swipe, parse_direction
from game_state import GameSnapshot, GameState

logger = logging.getLogger(__name__)

MAX_SESSIONS = 1000

# Initialize the rate limiter
limiter = Limiter(key_func=get_remote_address)
app = FastAPI(
    title="2048 Game API",
    description="Play the 2048 game over HTTP. Games are held in server memory; "\
                "the client keeps its game_id and persists its own best score.",
    version="1.0.0"
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


class GameSession:
    """A game plus the lock that serialises every call into it."""

    def __init__(self, game: GameState):
        self.game = game
        self.lock = threading.Lock()


class SessionStore:
    """
    Games by id, holding at most max_sessions of them.

    Adding a game beyond the cap evicts the one used least recently.
    """

    def __init__(self, max_sessions: int = MAX_SESSIONS):
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1.")
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, GameSession]" = OrderedDict()
        self._lock = threading.Lock()

    def add(self, game_id: str, session: GameSession) -> None:
        with self._lock:
            self._sessions[game_id] = session
            self._sessions.move_to_end(game_id)
            while len(self._sessions) > self.max_sessions:
                evicted_id, _ = self._sessions.popitem(last=False)
                logger.info("Evicted idle game %s.", evicted_id)

    def get(self, game_id: str) -> Optional[GameSession]:
        with self._lock:
            session = self._sessions.get(game_id)
            if session is not None:
                self._sessions.move_to_end(game_id)
            return session

    def remove(self, game_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(game_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __contains__(self, game_id: object) -> bool:
        with self._lock:
            return game_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


app.state.sessions = SessionStore()

# --- Pydantic Models for API requests and responses ---

class NewGameSettings(BaseModel):
    """Settings for creating a new game."""
    win_value: int = Field(
        default=core.DEFAULT_WIN_VALUE,
        ge=4,
        description="The tile value to reach for winning the game (a power of 2, e.g. 2048)."
    )
    best_score: Optional[int] = Field(
        default=0,
        description="Best score stored by the client from earlier games. Invalid values count as 0."
    )
    seed: Optional[int] = Field(
        default=None,
        description="Seed for tile spawning, for reproducible games."
    )

class SwipeData(BaseModel):
    """A touch gesture displacement in screen coordinates."""
    dx: float = Field(..., description="Horizontal displacement, positive to the right.")
    dy: float = Field(..., description="Vertical displacement, positive downward.")

class GameStateData(BaseModel):
    """Represents the complete state of a game instance."""
    game_id: str = Field(..., description="Identifier of the game session.")
    board: List[List[int]] = Field(..., description="The 4 x 4 game board, represented as a list of rows.")
    score: int = Field(..., ge=0, description="Current score of the game.")
    best_score: int = Field(..., ge=0, description="Best score seen by this session.")
    status: core.GameStatus = Field(
        ...,
        description="Current progress state of the game (active, won, won_continuing, over)."
    )
    won: bool = Field(..., description="True once the win value has been reached in this game.")
    win_value: int = Field(..., gt=0, description="The tile value required to win this game instance.")
    board_size: int = Field(..., gt=0, description="The dimension N of the N x N board.")

class MoveRequestData(BaseModel):
    """Data required to make a move. A recognised direction takes precedence over a swipe."""
    direction: Optional[str] = Field(
        default=None,
        description="Direction of the move (up, down, left, right, or an arrow key name)."
    )
    swipe: Optional[SwipeData] = Field(
        default=None,
        description="Swipe gesture to decode into a direction when no direction is given."
    )

class MoveResponseData(GameStateData):
    """Response after a move, including the new game state and move effectiveness."""
    score_delta: int = Field(..., ge=0, description="Points gained by this move.")
    won_just_now: bool = Field(..., description="True only on the move that first reached the win value.")
    best_score_candidate: Optional[int] = Field(
        default=None,
        description="New best score for the client to store, if this move set one."
    )
    move_was_effective: bool = Field(
        ...,
        description="True if the move resulted in a change to the board state, False otherwise."
    )
    message: Optional[str] = Field(
        default=None,
        description="An optional message, e.g., if a move was ignored or the game ended."
    )

# --- Helpers ---

def _state_data(game_id: str, snapshot: GameSnapshot) -> GameStateData:
    return GameStateData(
        game_id=game_id,
        board=snapshot.rows(),
        score=snapshot.score,
        best_score=snapshot.best_score,
        status=snapshot.status,
        won=snapshot.won,
        win_value=snapshot.win_value,
        board_size=core.BOARD_SIZE
    )

def _get_session(request: Request, game_id: str) -> GameSession:
    session = request.app.state.sessions.get(game_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"No game with id {game_id}.")
    return session

# --- API Endpoints ---

@app.post("/game/new", response_model=GameStateData, summary="Start a New 2048 Game")
@limiter.limit("100/minute")
def start_new_game(request: Request, settings: NewGameSettings):
    """
    Starts a new game session.

    - **win_value**: Tile value to reach to win (e.g., 2048). Default is 2048.
    - **best_score**: The client's stored best score. Default is 0.
    - **seed**: Optional seed for reproducible tile spawning.

    Returns the initial game state with two random tiles, score 0 and status active.
    """
    try:
        game = GameState(win_value=settings.win_value, best_score=settings.best_score, seed=settings.seed)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Unexpected error in /game/new: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred during game creation: {str(e)}")

    game_id = uuid.uuid4().hex
    request.app.state.sessions.add(game_id, GameSession(game))
    logger.info("Created game %s (win value %d).", game_id, settings.win_value)
    return _state_data(game_id, game.snapshot())


@app.get("/game/{game_id}", response_model=GameStateData, summary="Get a Game's Current State")
@limiter.limit("100/minute")
def get_game(request: Request, game_id: str):
    """Returns the current state of a game without changing it."""
    session = _get_session(request, game_id)
    with session.lock:
        return _state_data(game_id, session.game.snapshot())


@app.post("/game/{game_id}/move", response_model=MoveResponseData, summary="Make a Move in the Game")
@limiter.limit("100/minute")
def make_move(request: Request, game_id: str, request_data: MoveRequestData):
    """
    Processes a player's move in the game.

    Send either a `direction` or a `swipe` vector. The API will:
    1. Slide and merge the tiles.
    2. If the board changed, add a new random tile (2 or 4) and update the score.
    3. Update the game status (active, won, won_continuing, over).

    Unrecognised directions and moves that change nothing leave the game as it was.
    """
    session = _get_session(request, game_id)

    direction = parse_direction(request_data.direction)
    if direction is None and request_data.swipe is not None:
        direction = direction_from_swipe(request_data.swipe.dx, request_data.swipe.dy)

    try:
        with session.lock:
            outcome = session.game.apply_move(direction)
            snapshot = session.game.snapshot()
    except Exception as e:
        logger.error("Unexpected error in /game/%s/move: %s", game_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected server error occurred while processing the move: {str(e)}")

    message_for_client: Optional[str] = None
    if direction is None:
        message_for_client = "Unrecognised direction; move ignored."
    elif not outcome.changed:
        message_for_client = "Move was not effective; board state unchanged."

    # Enhance client message based on game status
    if outcome.won_just_now:
        message_for_client = "Congratulations! You won!"
    elif snapshot.status == core.GameStatus.OVER:
        message_for_client = "Game Over. No more valid moves."

    state = _state_data(game_id, snapshot)
    return MoveResponseData(
        **state.model_dump(),
        score_delta=outcome.score_delta,
        won_just_now=outcome.won_just_now,
        best_score_candidate=outcome.best_score_candidate,
        move_was_effective=outcome.changed,
        message=message_for_client
    )


@app.post("/game/{game_id}/continue", response_model=GameStateData, summary="Keep Playing After a Win")
@limiter.limit("100/minute")
def continue_game(request: Request, game_id: str):
    """
    Keeps playing after reaching the win value: status won becomes won_continuing.

    In any other status the game is returned unchanged.
    """
    session = _get_session(request, game_id)
    with session.lock:
        session.game.continue_after_win()
        return _state_data(game_id, session.game.snapshot())


@app.post("/game/{game_id}/restart", response_model=GameStateData, summary="Restart a Game Session")
@limiter.limit("100/minute")
def restart_game(request: Request, game_id: str):
    """Starts over in the same session. The best score is kept."""
    session = _get_session(request, game_id)
    with session.lock:
        snapshot = session.game.new_game()
    return _state_data(game_id, snapshot)


@app.delete("/game/{game_id}", status_code=204, response_class=Response, summary="End a Game Session")
@limiter.limit("100/minute")
def delete_game(request: Request, game_id: str):
    """Forgets a game. Later requests for its id return 404."""
    if not request.app.state.sessions.remove(game_id):
        raise HTTPException(status_code=404, detail=f"No game with id {game_id}.")
    logger.info("Deleted game %s.", game_id)
    return Response(status_code=204)
