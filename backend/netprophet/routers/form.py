"""Prediction form endpoints: dependent-field edits on per-match drafts."""

from fastapi import APIRouter, Depends

from netprophet.models.prediction import FormEditRequest, FormView, MatchSnapshot, SlipEntry
from netprophet.models.session import FormSubmitRequest
from netprophet.services.session_service import SessionServices, get_session

router = APIRouter(prefix="/api/form", tags=["form"])


@router.post("/view", response_model=FormView)
async def get_form(match: MatchSnapshot, services: SessionServices = Depends(get_session)):
    """Current draft for the match card, with stage and live multiplier."""
    return services.form_view(match)


@router.post("/edit", response_model=FormView)
async def edit_form(body: FormEditRequest, services: SessionServices = Depends(get_session)):
    prediction = services.edit_draft(body.match, body.field, body.value)
    return services.form_view(body.match, prediction)


@router.delete("/{match_id}")
async def clear_form(match_id: str, services: SessionServices = Depends(get_session)):
    """Reset every field of the match form and drop its draft."""
    services.clear_draft(match_id)
    return {"message": "Form cleared."}


@router.post("/submit", response_model=SlipEntry)
async def submit_form(body: FormSubmitRequest, services: SessionServices = Depends(get_session)):
    """Add the match draft to the slip. The draft is kept for further edits."""
    fields = {
        "match_id": body.match.id,
        "match": body.match,
        "prediction": services.get_draft(body.match.id),
    }
    if body.bet_amount is not None:
        fields["bet_amount"] = body.bet_amount
    return await services.slip.add_prediction(SlipEntry(**fields))
