"""Skill registry — the fixed instruction text of each agent role.

Skills are read from disk once at startup and never change afterwards,
so a SkillSet is safe to share between any number of concurrent requests.
A missing or blank skill file is fatal at startup, never per request.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING

from deploymate.config import SKILL_ROLES
from deploymate.errors import SkillNotFoundError

if TYPE_CHECKING:
    from deploymate.config import AppConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Skill:
    role: str
    text: str
    source: str  # file the text was read from


class SkillSet:
    """Immutable role → Skill mapping."""

    def __init__(self, skills: Mapping[str, Skill]) -> None:
        self._skills = MappingProxyType(dict(skills))

    def get(self, role: str) -> Skill:
        """Look up a skill by role. Raises SkillNotFoundError if unknown."""
        if role not in self._skills:
            raise SkillNotFoundError(
                f"Unknown skill '{role}'. Available skills: {sorted(self._skills)}"
            )
        return self._skills[role]

    def __len__(self) -> int:
        return len(self._skills)


def load_skills(config: AppConfig, base: Path | None = None) -> SkillSet:
    """Read every configured skill file and validate it is non-blank."""
    directory = config.skills_dir(base)
    skills: dict[str, Skill] = {}

    for role in SKILL_ROLES:
        path = directory / config.skills.files[role]
        if not path.is_file():
            raise SkillNotFoundError(f"Skill '{role}' not found: {path.resolve()}")

        text = path.read_text(encoding="utf-8")
        if not text.strip():
            raise SkillNotFoundError(f"Skill '{role}' is empty: {path.resolve()}")

        skills[role] = Skill(role=role, text=text, source=str(path))
        logger.debug(f"Loaded skill '{role}' ({len(text)} chars) from {path}")

    logger.info(f"Loaded {len(skills)} skills from {directory}")
    return SkillSet(skills)


def select_chat_skill(skills: SkillSet, mode: str | None) -> Skill:
    """Follow-up chat uses the reviewer in review mode, the clarifier otherwise."""
    return skills.get("reviewer" if mode == "review" else "clarifier")
