from sqlalchemy import String, Integer, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from puzzlemaster.db import Base


class PuzzleRow(Base):
    __tablename__ = "puzzle"
    # AUTOINCREMENT on SQLite so deleted ids are never handed out again
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    hint1: Mapped[str | None] = mapped_column(String, nullable=True)
    hint2: Mapped[str | None] = mapped_column(String, nullable=True)
    hint3: Mapped[str | None] = mapped_column(String, nullable=True)
    time_limit_sec: Mapped[int | None] = mapped_column(Integer, nullable=True)
    solved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"PuzzleRow(id={self.id!r}, title={self.title!r}, solved={self.solved!r})"
