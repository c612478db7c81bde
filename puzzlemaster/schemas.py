from pydantic import BaseModel, Field, field_validator

# Largest value an INTEGER column holds
SQL_INT_MAX = 2**63 - 1


# Puzzles
class Puzzle(BaseModel):
    model_config = {"frozen": True, "from_attributes": True}

    id: int = 0  # 0 = not yet persisted, storage assigns the real id
    title: str
    hint1: str | None = None
    hint2: str | None = None
    hint3: str | None = None
    time_limit_sec: int | None = Field(default=None, ge=0, le=SQL_INT_MAX)  # None = no limit
    solved: bool = False
    attempts: int = Field(default=0, ge=0, le=SQL_INT_MAX)

    @field_validator("hint1", "hint2", "hint3", mode="before")
    @classmethod
    def blank_hint_is_absent(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def is_new(self) -> bool:
        return self.id == 0


# Aggregated state
class PuzzleUiState(BaseModel):
    model_config = {"frozen": True}

    all_puzzles: tuple[Puzzle, ...] = ()  # id descending
    ranking: tuple[Puzzle, ...] = ()  # solved only, fastest then fewest attempts
