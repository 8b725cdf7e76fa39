from fastapi import APIRouter, Depends, HTTPException

from reviewlens.api.dependencies import get_synthesizer
from reviewlens.models.theme import Theme
from reviewlens.schemas.action import SynthesisResult, SynthesizeRequest
from reviewlens.services.synthesis import ActionSynthesizer

router = APIRouter(tags=["synthesis"])


@router.post("/synthesize", response_model=SynthesisResult)
async def synthesize_theme(
    payload: SynthesizeRequest,
    synthesizer: ActionSynthesizer = Depends(get_synthesizer),
):
    if synthesizer.db.get(Theme, payload.theme_id) is None:
        raise HTTPException(status_code=404, detail="Theme not found")
    return await synthesizer.synthesize(payload.theme_id)
