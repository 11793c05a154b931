"""AI-suggested backstory, skills and equipment for a class/race pair."""

import json
import logging
import math
import re
from typing import Any

from dungeon_chat.errors import ValidationError
from dungeon_chat.llm import LLM
from dungeon_chat.models import CharacterDetails, EquipmentItem
from dungeon_chat.prompts import CHARACTER_DETAILS_SYSTEM, build_character_details_prompt

logger = logging.getLogger(__name__)

MAX_SKILLS = 3

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


class DetailsParseError(RuntimeError):
    """The model's reply was not the JSON object we asked for."""


def _quantity(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 1
    if not math.isfinite(number):
        return 1
    return max(1, math.floor(number))


def normalize_details(data: dict[str, Any]) -> CharacterDetails:
    """Trim strings, drop blank skills and nameless items, clamp quantities."""
    skills = data.get("skills")
    equipment = data.get("equipment")
    return CharacterDetails(
        backstory=str(data.get("backstory") or "").strip(),
        skills=[str(s).strip() for s in skills if str(s).strip()][:MAX_SKILLS]
        if isinstance(skills, list) else [],
        equipment=[
            EquipmentItem(
                name=str(item.get("name") or "").strip(),
                type=str(item.get("type") or "").strip(),
                quantity=_quantity(item.get("quantity", 1)),
            )
            for item in equipment
            if isinstance(item, dict) and str(item.get("name") or "").strip()
        ] if isinstance(equipment, list) else [],
    )


def parse_details(text: str) -> CharacterDetails:
    cleaned = _FENCE.sub("", text.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise DetailsParseError("Failed to parse details JSON") from e
    if not isinstance(data, dict):
        raise DetailsParseError("Failed to parse details JSON")
    return normalize_details(data)


async def generate_character_details(llm: LLM, class_name: str, race: str) -> CharacterDetails:
    class_name = (class_name or "").strip()
    race = (race or "").strip()
    if not class_name or not race:
        raise ValidationError("Missing class or race")

    prompt = build_character_details_prompt(class_name, race)
    text = await llm.complete("character_details", CHARACTER_DETAILS_SYSTEM, [{"role": "user", "content": prompt}])
    try:
        return parse_details(text)
    except DetailsParseError:
        logger.warning("character details reply was not JSON: %r", text[:200])
        raise
