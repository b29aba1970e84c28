"""Configuration models for the turn router."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ClassifierConfig(BaseModel):
    """Configures the complexity classifier stages and model call budget."""

    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    max_tokens: int = Field(default=150, ge=16)
    history_window: int = Field(default=3, ge=0, le=3)
    model_timeout_seconds: float = Field(default=15.0, gt=0.0)
    fallback_word_limit: int = Field(default=30, ge=1)
    fallback_confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    safety_net_confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    default_model_confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    heuristic_years: tuple[str, ...] = ("2024", "2025")


class TrackerConfig(BaseModel):
    """Configures which conversation messages carry tool-status events."""

    message_type: str = Field(default="tool-executing", min_length=1)
    user_role: str = Field(default="user", min_length=1)


class ModelSettings(BaseModel):
    """Per-request model routing (provider, model id, optional local endpoint)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    provider: str | None = None
    selected_model: str | None = Field(default=None, alias="selectedModel")
    local_model_url: str | None = Field(default=None, alias="localModelUrl")
