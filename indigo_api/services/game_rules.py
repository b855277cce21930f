"""Mini-game rules: grades, rewards, levels and economy constants.

Pure functions only; no DB access. Shared by scoring, the economy services
and the task detector.
"""

from dataclasses import dataclass
from enum import Enum
import math


class Grade(str, Enum):
    SSS = "SSS"
    SS = "SS"
    S = "S"
    A = "A"
    B = "B"
    C = "C"


# Lowest total score for each grade, checked top-down.
GRADE_BOUNDARIES: list[tuple[Grade, int]] = [
    (Grade.SSS, 95),
    (Grade.SS, 90),
    (Grade.S, 80),
    (Grade.A, 70),
    (Grade.B, 60),
    (Grade.C, 0),
]

# Ascending order, used for "at least grade X" checks.
GRADE_ORDER: list[str] = ["C", "B", "A", "S", "SS", "SSS"]

GRADE_REWARDS: dict[str, tuple[int, int]] = {
    "SSS": (200, 100),
    "SS": (150, 70),
    "S": (100, 50),
    "A": (70, 30),
    "B": (50, 20),
    "C": (30, 10),
}

# Levels
LEVEL_BASE_EXP = 100
LEVEL_EXPONENT = 1.5
MAX_LEVEL = 100

# Dye depth considered "harmonious"
OPTIMAL_DYE_DEPTH = (0.4, 0.8)

# Inventory
DEFAULT_INVENTORY_SIZE = 20
MAX_RECENT = 5
INVENTORY_EXPANSION_COST = 100
INVENTORY_EXPANSION_SLOTS = 5

# Shop
DEFAULT_LISTING_SLOTS = 5
MAX_LISTING_SLOTS = 20
DEFAULT_SHOP_NAME = "我的蓝染坊"
SHOP_THEMES = ("traditional", "modern", "zen", "vintage", "fantasy")
MAX_LISTING_PRICE = 99999

# Player defaults
DEFAULT_DYE_HOUSE_NAME = "无名染坊"
DEFAULT_CURRENCY = 100

TEST_MODE_HEADER = "X-Game-Test-Mode"
TEST_USER_ID = "00000000-0000-0000-0000-000000000000"


def grade_for(score: float) -> str:
    """Map a 0-100 total score to its grade."""
    for grade, minimum in GRADE_BOUNDARIES:
        if score >= minimum:
            return grade.value
    return Grade.C.value


def grade_rank(grade: str) -> int:
    """Position of a grade in ascending order, -1 when unknown."""
    try:
        return GRADE_ORDER.index(grade)
    except ValueError:
        return -1


def rewards_for(grade: str) -> tuple[int, int]:
    """(exp, currency) granted for a scored cloth of the given grade."""
    return GRADE_REWARDS.get(grade, GRADE_REWARDS["C"])


def exp_for_level(level: int) -> int:
    """Experience needed to go from `level` to `level + 1`."""
    return math.floor(LEVEL_BASE_EXP * math.pow(level, LEVEL_EXPONENT))


@dataclass
class LevelProgress:
    level: int
    exp: int
    leveled_up: bool
    levels_gained: int = 0


def apply_experience(level: int, exp: int, gained: int) -> LevelProgress:
    """Add experience and roll over into as many levels as it covers.

    Leftover experience carries into the next level. At MAX_LEVEL the
    experience keeps accumulating but the level stays put.
    """
    new_level = level
    new_exp = exp + max(0, gained)
    while new_level < MAX_LEVEL and new_exp >= exp_for_level(new_level):
        new_exp -= exp_for_level(new_level)
        new_level += 1
    return LevelProgress(
        level=new_level,
        exp=new_exp,
        leveled_up=new_level > level,
        levels_gained=new_level - level,
    )
