"""Configuration loader — reads config.yaml, validates with Pydantic.

Holds the model settings, the skill file table, the ordered pipeline
definition, the readiness phrase table and the snapshot cadence.
Loaded once at startup; read-only afterwards.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from string import Formatter
from typing import Literal, get_args

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

SkillRole = Literal[
    "clarifier",
    "generator",
    "reviewer",
    "cost_estimator",
    "pipeline_builder",
]
SKILL_ROLES: tuple[str, ...] = get_args(SkillRole)

DEFAULT_CONFIG_PATH = "config.yaml"


def template_fields(template: str) -> set[str]:
    """Return the top-level placeholder names used by a str.format template."""
    names = set()
    for _, field_name, _, _ in Formatter().parse(template):
        if field_name is None:
            continue
        name = field_name.split(".")[0].split("[")[0]
        if not name:
            raise ValueError(f"Positional placeholder not allowed in template: {template!r}")
        names.add(name)
    return names


class ModelConfig(BaseModel):
    """Anthropic model used for every agent call."""

    name: str = "claude-sonnet-4-6"
    max_tokens: int = Field(default=4096, gt=0)


class SkillsConfig(BaseModel):
    """Where the five skill files live."""

    directory: str = "skills"
    files: dict[SkillRole, str]

    @field_validator("files")
    @classmethod
    def all_roles_present(cls, v: dict[str, str]) -> dict[str, str]:
        missing = [role for role in SKILL_ROLES if role not in v]
        if missing:
            raise ValueError(f"Missing skill files for roles: {missing}")
        return v


class PipelineStepConfig(BaseModel):
    """One step of the generation pipeline."""

    kind: str          # result type emitted for this step, e.g. "terraform"
    skill: SkillRole
    running_label: str
    done_label: str
    template: str      # placeholders: {description} or an earlier step's kind


class PipelineConfig(BaseModel):
    """Ordered pipeline definition. Step ids are 1-based positions."""

    steps: list[PipelineStepConfig]
    done_message: str = "All done! Your infrastructure is ready to deploy."

    @model_validator(mode="after")
    def validate_steps(self) -> PipelineConfig:
        if not self.steps:
            raise ValueError("A pipeline must have at least one step")

        available = {"description"}
        for index, step in enumerate(self.steps, start=1):
            if step.kind in available:
                raise ValueError(f"Step {index} reuses result kind '{step.kind}'")
            unknown = template_fields(step.template) - available
            if unknown:
                raise ValueError(
                    f"Step {index} ('{step.kind}') references unknown placeholders "
                    f"{sorted(unknown)}. Available: {sorted(available)}"
                )
            available.add(step.kind)
        return self


class ReadinessConfig(BaseModel):
    """Phrase table: pattern → what the phrasing means. Matching ignores case."""

    phrases: dict[str, str]

    @field_validator("phrases")
    @classmethod
    def must_have_phrases(cls, v: dict[str, str]) -> dict[str, str]:
        if not v:
            raise ValueError("At least one readiness phrase is required")
        return v


class SnapshotConfig(BaseModel):
    """Conversation compaction cadence."""

    every_turns: int = Field(default=8, gt=0)
    keep_recent_turns: int = Field(default=4, ge=0)
    instruction: str


class AppConfig(BaseModel):
    """Top-level service configuration."""

    model: ModelConfig = ModelConfig()
    skills: SkillsConfig
    pipeline: PipelineConfig
    readiness: ReadinessConfig
    snapshot: SnapshotConfig

    # Auth & CORS
    api_key: str | None = None
    allowed_origins: list[str] = ["*"]

    def skills_dir(self, base: Path | None = None) -> Path:
        """Resolve the skills directory, relative paths against ``base``."""
        directory = Path(self.skills.directory)
        if not directory.is_absolute() and base is not None:
            directory = base / directory
        return directory


# ---------------------------------------------------------------------------
# Module-level config cache
# ---------------------------------------------------------------------------

_config: AppConfig | None = None
_config_path: Path | None = None


def load_config(path: str | os.PathLike | None = None) -> AppConfig:
    """Read config.yaml from disk, validate, and cache."""
    global _config, _config_path

    config_file = Path(path or os.environ.get("DEPLOYMATE_CONFIG", DEFAULT_CONFIG_PATH))
    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_file.resolve()}")

    raw = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
    _config = AppConfig(**raw)
    _config_path = config_file.resolve()

    logger.info(
        f"Loaded config from {_config_path}: "
        f"model={_config.model.name}, steps={len(_config.pipeline.steps)}, "
        f"readiness_phrases={len(_config.readiness.phrases)}"
    )
    return _config


def get_config() -> AppConfig:
    """Return cached config. Raises if not yet loaded."""
    if _config is None:
        raise RuntimeError("Config not loaded — call load_config() first")
    return _config


def config_dir() -> Path:
    """Directory of the loaded config file; relative paths resolve against it."""
    if _config_path is None:
        raise RuntimeError("Config not loaded — call load_config() first")
    return _config_path.parent
