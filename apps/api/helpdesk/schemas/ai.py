"""AI triage schemas."""

from uuid import UUID

from pydantic import BaseModel, Field


class SuggestRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=2000)
    done_actions: list[str] = Field(default_factory=list, max_length=20)
    rejected_actions: list[str] = Field(default_factory=list, max_length=20)
    prior_suggestions: list[str] = Field(default_factory=list, max_length=20)


class SuggestResponse(BaseModel):
    source: str
    suggestions: list[str]
    department_id: UUID | None = None
    department_guess: str | None = None
    confidence: float | None = None
    priority_hint: str | None = None
    rationale: str | None = None
    next_action: str | None = None
    follow_up_questions: list[str] = Field(default_factory=list)
