from typing import Literal, Optional, Union

from fastapi import APIRouter, Depends, Query

from reviewlens.api.dependencies import get_pipeline
from reviewlens.schemas.ingest import AlreadyProcessed, DebugResult, IngestRequest, IngestResult
from reviewlens.services.pipeline import IngestionPipeline

router = APIRouter(prefix="/ingest", tags=["ingest"])


@router.post("/run", response_model=Union[IngestResult, AlreadyProcessed, DebugResult])
async def run_ingestion(
    payload: IngestRequest,
    debug: Optional[Literal["emb", "clu", "ev"]] = Query(default=None),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    return await pipeline.run(payload, debug=debug)
