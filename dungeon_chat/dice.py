"""`/roll` command parsing. Only d20 is supported at the table."""

import random
import re

from dungeon_chat.errors import ValidationError

ROLL_COMMAND = re.compile(r"^/roll\s+d(\d+)$", re.IGNORECASE)
ROLL_RESULT = re.compile(r"rolled\s+d\d+:\s*(\d+)", re.IGNORECASE)
SUPPORTED_SIDES = 20


def parse_roll_command(text: str, rng: random.Random | None = None) -> tuple[int, int] | None:
    """Return (sides, result) for a roll command, None for ordinary text."""
    trimmed = text.strip()
    if not trimmed.startswith("/roll"):
        return None

    match = ROLL_COMMAND.match(trimmed)
    if not match:
        raise ValidationError("Use /roll d20 to roll a twenty-sided die.")
    sides = int(match.group(1))
    if sides <= 0:
        raise ValidationError("Invalid die size.")
    if sides != SUPPORTED_SIDES:
        raise ValidationError("Only d20 rolls are supported right now.")

    rng = rng or random
    return sides, rng.randint(1, sides)


def format_roll(sides: int, result: int) -> str:
    return f"rolled d{sides}: {result}"


def roll_result(body: str) -> int | None:
    """Read the number back out of a roll message body."""
    match = ROLL_RESULT.search(body)
    return int(match.group(1)) if match else None
