"""Shared fixtures: the shipped config, a stand-in skill set, and a
scripted model collaborator that records every call it receives."""

from __future__ import annotations

from pathlib import Path

import pytest

from deploymate.agents import cache as graph_cache
from deploymate.config import SKILL_ROLES, AppConfig, load_config
from deploymate.runtime import AgentRuntime
from deploymate.skills import Skill, SkillSet

ROOT = Path(__file__).resolve().parent.parent


class ScriptedModel:
    """Fake model: answers ``"<role> output"`` unless told otherwise.

    replies  — role → response content (str or list of blocks)
    fail_on  — roles whose call raises, like a transport failure would
    """

    def __init__(self, replies: dict | None = None, fail_on: tuple[str, ...] = ()) -> None:
        self.replies = replies or {}
        self.fail_on = set(fail_on)
        self.calls: list[tuple[str, list]] = []

    async def __call__(self, system, turns):
        role = system[len("skill:"):] if system.startswith("skill:") else "snapshot"
        self.calls.append((role, list(turns)))
        if role in self.fail_on:
            raise RuntimeError(f"{role} call failed: 529 overloaded")
        return self.replies.get(role, f"{role} output")

    def roles(self) -> list[str]:
        return [role for role, _ in self.calls]

    def last_message(self, role: str) -> str:
        for called, turns in reversed(self.calls):
            if called == role:
                return turns[-1].content
        raise AssertionError(f"{role} was never called")


@pytest.fixture
def config() -> AppConfig:
    return load_config(ROOT / "config.yaml")


@pytest.fixture
def skills() -> SkillSet:
    return SkillSet(
        {role: Skill(role=role, text=f"skill:{role}", source="test") for role in SKILL_ROLES}
    )


@pytest.fixture
def model() -> ScriptedModel:
    return ScriptedModel()


@pytest.fixture
def runtime(config: AppConfig, skills: SkillSet, model: ScriptedModel) -> AgentRuntime:
    return AgentRuntime(config, skills, model)


@pytest.fixture(autouse=True)
def fresh_graph_cache():
    """Compiled graphs are cached per process; start and end every test empty."""
    graph_cache.invalidate()
    yield
    graph_cache.invalidate()
