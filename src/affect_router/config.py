"""Centralised settings loaded from environment / .env file.

Two layers live here:

- :class:`EngineConfig` — the immutable bundle of classifier and
  questioning constants that every engine function receives explicitly.
- :class:`Settings` — process-level configuration (logging, API server,
  question bank location) plus env overrides for every engine constant.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class EngineConfig(BaseModel):
    """Thresholds and tunables for one classification run.

    Defaults are the hand-authored constants the rule tables were tuned
    against.  Tests build alternate instances to probe the decision
    policy without touching module state.
    """

    model_config = ConfigDict(frozen=True)

    # ── Decision policy ───────────────────────────────────────
    t_dom: float = Field(0.20, ge=0.0, le=1.0)
    t_mix: float = Field(0.08, ge=0.0, le=1.0)
    delta_mix: float = Field(0.03, ge=0.0, le=1.0)
    delta_probe: float = Field(0.0002, ge=0.0, le=1.0)

    # ── Softmax ───────────────────────────────────────────────
    softmax_temperature: float = Field(0.9, gt=0.0)
    softmax_eps: float = Field(1e-6, ge=0.0)

    # ── Smoothed accumulation (interactive probing) ───────────
    smoothing_alpha: float = Field(0.6, gt=0.0, le=1.0)
    smoothing_cap: float = Field(1.5, gt=0.0)

    # ── Baseline scale ────────────────────────────────────────
    scale_max: int = Field(7, ge=3)

    # ── Adaptive questioning ──────────────────────────────────
    min_questions: int = Field(4, ge=0)
    max_questions: int = Field(12, ge=1)
    stop_min_gap: float = Field(0.005, ge=0.0, le=1.0)
    not_sure_window: int = Field(5, ge=1)
    not_sure_threshold: int = Field(3, ge=1)

    # ── Macro flip ────────────────────────────────────────────
    flip_min_strength: float = Field(0.7, ge=0.0, le=1.0)
    flip_margin: float = Field(0.2, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_consistency(self) -> "EngineConfig":
        if self.scale_max % 2 == 0:
            raise ValueError("scale_max must be odd so the scale has a midpoint")
        if self.min_questions > self.max_questions:
            raise ValueError("min_questions cannot exceed max_questions")
        if self.not_sure_threshold > self.not_sure_window:
            raise ValueError("not_sure_threshold cannot exceed not_sure_window")
        return self


DEFAULT_ENGINE_CONFIG = EngineConfig()


class Settings(BaseSettings):
    """All runtime configuration for the affect router.

    Values are read from environment variables first, then from a *.env*
    file located at the project root.  Every variable lives in the flat
    ``AFFECT_ROUTER_`` namespace.
    """

    model_config = SettingsConfigDict(
        env_prefix="AFFECT_ROUTER_",
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Logging ───────────────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # ── API server ────────────────────────────────────────────
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # ── Content ───────────────────────────────────────────────
    question_bank_path: Path | None = None  # JSON file; built-in bank if unset

    # ── Engine overrides (see EngineConfig) ───────────────────
    t_dom: float = DEFAULT_ENGINE_CONFIG.t_dom
    t_mix: float = DEFAULT_ENGINE_CONFIG.t_mix
    delta_mix: float = DEFAULT_ENGINE_CONFIG.delta_mix
    delta_probe: float = DEFAULT_ENGINE_CONFIG.delta_probe
    softmax_temperature: float = DEFAULT_ENGINE_CONFIG.softmax_temperature
    softmax_eps: float = DEFAULT_ENGINE_CONFIG.softmax_eps
    smoothing_alpha: float = DEFAULT_ENGINE_CONFIG.smoothing_alpha
    smoothing_cap: float = DEFAULT_ENGINE_CONFIG.smoothing_cap
    scale_max: int = DEFAULT_ENGINE_CONFIG.scale_max
    min_questions: int = DEFAULT_ENGINE_CONFIG.min_questions
    max_questions: int = DEFAULT_ENGINE_CONFIG.max_questions
    stop_min_gap: float = DEFAULT_ENGINE_CONFIG.stop_min_gap
    not_sure_window: int = DEFAULT_ENGINE_CONFIG.not_sure_window
    not_sure_threshold: int = DEFAULT_ENGINE_CONFIG.not_sure_threshold
    flip_min_strength: float = DEFAULT_ENGINE_CONFIG.flip_min_strength
    flip_margin: float = DEFAULT_ENGINE_CONFIG.flip_margin

    def engine_config(self) -> EngineConfig:
        """Build a validated :class:`EngineConfig` from these settings."""
        return EngineConfig(
            **{name: getattr(self, name) for name in EngineConfig.model_fields}
        )


@lru_cache
def get_settings() -> Settings:
    """Return a cached :class:`Settings` singleton."""
    return Settings()


def get_engine_config() -> EngineConfig:
    """Engine constants for the running process (env overrides applied)."""
    return get_settings().engine_config()
