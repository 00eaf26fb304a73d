from __future__ import annotations
from dataclasses import dataclass
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class Message(BaseModel):
    role: str = Field(..., pattern=r"^(user|assistant|system)$")
    content: str


class ContextProject(BaseModel):
    """Rows come straight from the dashboard tables, so any field may be missing or oddly typed."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[Any] = None
    category: Optional[Any] = None
    location: Optional[Any] = None


class ContextReview(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[Any] = None
    content: Optional[Any] = None


class ContextData(BaseModel):
    """Public snapshot of the studio (published projects, review excerpts) used for grounding."""

    model_config = ConfigDict(extra="ignore")

    projects: Optional[List[ContextProject]] = None
    reviews: Optional[List[ContextReview]] = None


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    contextData: Optional[ContextData] = Field(default=None, alias="context_data")

    model_config = ConfigDict(populate_by_name=True)


class ErrorResponse(BaseModel):
    error: str


@dataclass
class UpstreamChunk:
    """One decoded provider frame; only lives while the stream is being translated."""

    content_delta: Optional[str] = None
    finish_reason: Optional[str] = None

    @classmethod
    def from_payload(cls, obj: Any) -> "UpstreamChunk":
        if not isinstance(obj, dict):
            raise ValueError(f"expected a JSON object, got {type(obj).__name__}")
        choices = obj.get("choices")
        ch0 = choices[0] if isinstance(choices, list) and choices and isinstance(choices[0], dict) else {}
        delta = ch0.get("delta") or {}
        content = delta.get("content") if isinstance(delta, dict) else None
        return cls(
            content_delta=content if isinstance(content, str) else None,
            finish_reason=ch0.get("finish_reason") or None,
        )
