"""AI triage suggestions for new tickets."""

import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from helpdesk.core.async_utils import run_async
from helpdesk.core.config import settings
from helpdesk.core.exceptions import UpstreamError
from helpdesk.db.models import Department
from helpdesk.services.ai_provider import (
    GeminiSuggestionProvider,
    HeuristicSuggestionProvider,
    Suggestion,
    SuggestionProvider,
    SuggestionRequest,
)

logger = logging.getLogger(__name__)


@dataclass
class SuggestionResult:
    source: str
    suggestions: list[str]
    department_id: UUID | None = None
    department_guess: str | None = None
    confidence: float | None = None
    priority_hint: str | None = None
    rationale: str | None = None
    next_action: str | None = None
    follow_up_questions: list[str] = field(default_factory=list)


def get_provider() -> SuggestionProvider | None:
    """Configured remote provider, or None when only the heuristic is available."""
    if not settings.GEMINI_API_KEY:
        return None
    return GeminiSuggestionProvider(
        settings.GEMINI_API_KEY,
        model=settings.GEMINI_MODEL,
        timeout=settings.AI_TIMEOUT_SECONDS,
    )


def _match_department(departments: list[Department], guess: str | None) -> Department | None:
    if not guess:
        return None
    wanted = guess.strip().lower()
    for department in departments:
        if department.name.lower() == wanted:
            return department
    return None


def suggest(
    db: Session,
    request: SuggestionRequest,
    *,
    provider: SuggestionProvider | None = None,
    allow_fallback: bool = True,
) -> SuggestionResult:
    """
    Suggest troubleshooting steps, a department and a priority.

    The remote provider is tried first; on failure (or an empty answer) the
    heuristic answers instead unless ``allow_fallback`` is False, in which
    case UpstreamError/OperationTimeoutError propagate.
    """
    departments = list(
        db.scalars(
            select(Department).where(Department.is_active.is_(True)).order_by(Department.name)
        ).all()
    )
    names = [d.name for d in departments]

    provider = provider if provider is not None else get_provider()
    suggestion: Suggestion | None = None
    if provider is not None:
        try:
            suggestion = run_async(
                provider.suggest(request, names), timeout=settings.AI_TIMEOUT_SECONDS
            )
        except UpstreamError:
            if not allow_fallback:
                raise
            logger.warning("Suggestion provider %s failed, using heuristic", provider.name)
        else:
            if not suggestion.is_meaningful:
                suggestion = None

    if suggestion is None:
        suggestion = run_async(HeuristicSuggestionProvider().suggest(request, names))

    department = _match_department(departments, suggestion.department_guess)
    logger.info(
        "Suggestion source=%s department=%s confidence=%s",
        suggestion.source,
        department.id if department else None,
        suggestion.confidence,
    )
    return SuggestionResult(
        source=suggestion.source,
        suggestions=suggestion.suggestions,
        department_id=department.id if department else None,
        department_guess=department.name if department else None,
        confidence=suggestion.confidence,
        priority_hint=suggestion.priority_hint,
        rationale=suggestion.rationale,
        next_action=suggestion.next_action,
        follow_up_questions=suggestion.follow_up_questions,
    )
