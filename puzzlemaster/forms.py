"""Edit-form fields <-> Puzzle records."""
from pydantic import BaseModel

from puzzlemaster.aggregator import PuzzleAggregator
from puzzlemaster.errors import ValidationError
from puzzlemaster.schemas import SQL_INT_MAX, Puzzle


def _digits_to_int(text: str) -> int | None:
    """Keep ASCII digits only; None when nothing is left or the value overflows."""
    digits = "".join(c for c in text if c in "0123456789")
    if not digits:
        return None
    value = int(digits)
    return value if value <= SQL_INT_MAX else None


class PuzzleForm(BaseModel):
    """Raw text as typed into the edit form."""

    title: str = ""
    hint1: str = ""
    hint2: str = ""
    hint3: str = ""
    time_limit_sec: str = ""
    solved: bool = False
    attempts: str = ""

    @classmethod
    def from_puzzle(cls, puzzle: Puzzle) -> "PuzzleForm":
        return cls(
            title=puzzle.title,
            hint1=puzzle.hint1 or "",
            hint2=puzzle.hint2 or "",
            hint3=puzzle.hint3 or "",
            time_limit_sec="" if puzzle.time_limit_sec is None else str(puzzle.time_limit_sec),
            solved=puzzle.solved,
            attempts=str(puzzle.attempts),
        )

    def to_puzzle(self, puzzle_id: int = 0) -> Puzzle:
        """Build a record; blank hints become absent, numbers keep only their digits."""
        return Puzzle(
            id=puzzle_id,
            title=self.title,
            hint1=self.hint1,
            hint2=self.hint2,
            hint3=self.hint3,
            time_limit_sec=_digits_to_int(self.time_limit_sec),
            solved=self.solved,
            attempts=_digits_to_int(self.attempts) or 0,
        )


def save_form(aggregator: PuzzleAggregator, form: PuzzleForm, puzzle_id: int = 0):
    """Add a new puzzle (id 0) or update an existing one from the form."""
    if not form.title.strip():
        raise ValidationError("Puzzle title must not be blank")
    puzzle = form.to_puzzle(puzzle_id)
    if puzzle.is_new:
        return aggregator.add_puzzle(puzzle)
    return aggregator.update_puzzle(puzzle)
