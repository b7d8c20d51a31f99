"""AI triage suggestions."""

from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from helpdesk.core.deps import get_current_actor, get_db
from helpdesk.schemas.ai import SuggestRequest, SuggestResponse
from helpdesk.services import ai_service
from helpdesk.services.ai_provider import SuggestionRequest

router = APIRouter(prefix="/ai", tags=["AI"], dependencies=[Depends(get_current_actor)])


@router.post("/suggest", response_model=SuggestResponse)
def suggest(body: SuggestRequest, db: Session = Depends(get_db)):
    """Troubleshooting steps, department and priority guess for a draft ticket."""
    result = ai_service.suggest(
        db,
        SuggestionRequest(
            title=body.title,
            description=body.description,
            done_actions=body.done_actions,
            rejected_actions=body.rejected_actions,
            prior_suggestions=body.prior_suggestions,
        ),
    )
    return SuggestResponse(**asdict(result))
