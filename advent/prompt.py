"""Per-day narrative content and the puzzle answer rule."""

from __future__ import annotations

import enum
import re
from datetime import date
from typing import Dict, List

from advent.errors import ContentConfigError, MissingPromptError
from advent.records import WILDCARD_ANSWER
from advent.store import Store

_INDEX_PATTERN = re.compile(r"\d+")


class PuzzleFormat(str, enum.Enum):
    TEXT = "text"
    BUTTON = "button"


class Prompt:
    """Authored content for one day.

    Grouped lines (``part1``, ``part2``, ``done``, ``story``) come either from numbered
    keys such as ``part1_prompt_1``/``part1_prompt_2`` or from a single multi-line
    ``part1`` block.
    """

    def __init__(self, day: date, store: Store):
        self.day = day
        data = store.prompt_for(day)
        if data is None:
            raise MissingPromptError(f"Missing advent prompt for {day.isoformat()}")
        self._data: Dict[str, str] = data

    # before check-in
    def part1_prompts(self) -> List[str]:
        return self._lines_for("part1")

    # checked in, puzzle pending
    def part2_prompts(self) -> List[str]:
        return self._lines_for("part2")

    def done_prompts(self) -> List[str]:
        return self._lines_for("done")

    def story_lines(self) -> List[str]:
        return self._lines_for("story")

    def puzzle_prompt(self) -> str:
        return self.field("puzzle_prompt")

    def puzzle_format(self) -> PuzzleFormat:
        value = self.field("puzzle_format").lower() or PuzzleFormat.TEXT.value
        try:
            return PuzzleFormat(value)
        except ValueError:
            raise ContentConfigError(
                f"Unknown puzzle_format {value!r} for {self.day.isoformat()}"
            ) from None

    def puzzle_answer(self) -> str:
        return self.field("puzzle_answer")

    def matches(self, attempt) -> bool:
        """Wildcard/blank answers and button days accept anything; otherwise casefolded equality."""
        answer = self.puzzle_answer()
        if not answer or answer == WILDCARD_ANSWER:
            return True
        if self.puzzle_format() is PuzzleFormat.BUTTON:
            return True
        return str(attempt or "").strip().casefold() == answer.casefold()

    def field(self, name: str) -> str:
        value = self._data.get(name)
        return "" if value is None else str(value).strip()

    def to_dict(self) -> Dict[str, object]:
        return {
            "day": self.day.isoformat(),
            "part1": self.part1_prompts(),
            "part2": self.part2_prompts(),
            "done": self.done_prompts(),
            "story": self.story_lines(),
            "puzzle_prompt": self.puzzle_prompt(),
            "puzzle_format": self.puzzle_format().value,
        }

    def _lines_for(self, prefix: str) -> List[str]:
        return self._prefixed_lines(prefix) or self._block_lines(prefix)

    def _prefixed_lines(self, prefix: str) -> List[str]:
        marker = f"{prefix}_"
        keys = [key for key in self._data if key.startswith(marker)]
        keys.sort(key=lambda key: _index_for(key[len(marker):]))
        return [line for line in (self.field(key) for key in keys) if line]

    def _block_lines(self, prefix: str) -> List[str]:
        raw = self.field(prefix)
        if not raw:
            return []
        return [line.strip() for line in raw.splitlines() if line.strip()]


def _index_for(suffix: str) -> int:
    match = _INDEX_PATTERN.search(suffix)
    return int(match.group(0)) if match else 0
