"""Advent Calendar package: day check-ins, riddles and the voucher lottery."""

from .calendar import AdventCalendar
from .check_in import CheckIn, Stage
from .prompt import Prompt, PuzzleFormat
from .reward import Reward
from .routes import create_advent_blueprint
from .store import MemoryStore, Store, build_store

__all__ = [
    "AdventCalendar",
    "CheckIn",
    "MemoryStore",
    "Prompt",
    "PuzzleFormat",
    "Reward",
    "Stage",
    "Store",
    "build_store",
    "create_advent_blueprint",
]
