# cli_driver.py
# This file is intended to be run to play the 2048 game on the CLI

import argparse
import logging
import os
from pathlib import Path
from typing import Callable, List, Optional

import core
from controls import parse_direction
from core import GameStatus
from game_state import GameSnapshot, GameState

logger = logging.getLogger(__name__)

DEFAULT_BEST_FILE = Path.home() / ".slide2048_best"

# --- Best Score Storage ---

def load_best_score(path: Path) -> int:
    """
    Reads the stored best score. A missing or unreadable file counts as 0.
    Args:
        path (Path): The file holding the best score as plain text.
    Returns:
        int: The stored best score, or 0.
    """
    try:
        return max(0, int(path.read_text(encoding="utf-8").strip()))
    except FileNotFoundError:
        return 0
    except (OSError, ValueError) as e:
        logger.warning("Could not read best score from %s: %s", path, e)
        return 0

def save_best_score(path: Path, best_score: int) -> None:
    """Writes the best score. Failures are logged and otherwise ignored."""
    try:
        path.write_text(f"{best_score}\n", encoding="utf-8")
    except OSError as e:
        logger.warning("Could not save best score to %s: %s", path, e)

# --- Display Function ---

def display_board_state(snapshot: GameSnapshot, output: Callable[[str], None] = print):
    """Prints the board, score, best score and game status to the console."""
    output(f"\nScore: {snapshot.score}    Best: {snapshot.best_score}")
    status_message = {
        GameStatus.ACTIVE: f"Status: {snapshot.status.name}",
        GameStatus.WON: "YOU WON!",
        GameStatus.WON_CONTINUING: "Status: WON, still playing",
        GameStatus.OVER: "GAME OVER!"
    }
    output(status_message[snapshot.status])

    for row in snapshot.rows():
        output("\t".join(str(value) if value else "." for value in row))
    output("-" * (core.BOARD_SIZE * 6))

# --- Game Loop ---

def play(game: GameState, best_file: Path, read: Optional[Callable[[str], str]] = None,
         output: Callable[[str], None] = print) -> GameSnapshot:
    """
    Runs the interactive loop until the player quits or declines a new game after game over.
    Args:
        game (GameState): The session to play.
        best_file (Path): Where new best scores are written.
        read: Prompt-and-read function, ``input`` by default.
        output: Line printer, ``print`` by default.
    Returns:
        GameSnapshot: The final state.
    """
    if read is None:
        read = input
    display_board_state(game.snapshot(), output)

    while True:
        if game.status == GameStatus.OVER:
            output("No more moves possible. Better luck next time!")
            answer = read("Start a new game? (y/n): ").strip().lower()
            if answer != 'y':
                break
            display_board_state(game.new_game(), output)
            continue

        move_input = read("Enter move (W/A/S/D for Up/Left/Down/Right, N for new game, Q to quit): ").strip()
        command = move_input.upper()

        if command == 'Q':
            output("Quitting game.")
            break
        if command == 'N':
            display_board_state(game.new_game(), output)
            continue

        chosen_direction = parse_direction(move_input)
        if chosen_direction is None:
            output("Invalid input. Use W, A, S, D.")
            continue

        outcome = game.apply_move(chosen_direction)
        if not outcome.changed:
            output("Move did not change the board. Try a different direction.")
            continue

        if outcome.best_score_candidate is not None:
            save_best_score(best_file, outcome.best_score_candidate)

        display_board_state(game.snapshot(), output)

        if outcome.won_just_now:
            output(f"Congratulations! You reached the {game.win_value} tile!")
            answer = read("Keep playing? (y/n): ").strip().lower()
            if answer == 'y':
                game.continue_after_win()
            else:
                display_board_state(game.new_game(), output)

    return game.snapshot()

def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description="Play 2048 in the terminal.")
    parser.add_argument("--win-value", type=int, default=core.DEFAULT_WIN_VALUE,
                        help="Tile value that wins the game (default: 2048).")
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible tile spawning.")
    parser.add_argument("--best-file", type=Path,
                        default=Path(os.environ.get("SLIDE2048_BEST_FILE", DEFAULT_BEST_FILE)),
                        help="File used to keep the best score between sessions.")
    parser.add_argument("--verbose", action="store_true", help="Log game events.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    try:
        game = GameState(win_value=args.win_value, best_score=load_best_score(args.best_file), seed=args.seed)
    except ValueError as e:
        parser.error(str(e))

    final = play(game, args.best_file)
    print("\n--- Final Board State ---")
    display_board_state(final)

if __name__ == "__main__":
    main()
