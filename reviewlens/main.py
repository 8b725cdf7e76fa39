import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from openai import APIError

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
    ]
)

from reviewlens.api.routes import ingest, insights, synthesize
from reviewlens.core.config import settings
from reviewlens.core.errors import InvalidInputError, PipelineError
from reviewlens.db.session import init_db
from reviewlens.schemas.ingest import ErrorOut
from reviewlens.services.retry import is_transport_error

logger = logging.getLogger(__name__)

init_db()

app = FastAPI(title="Review Theme Service")

app.include_router(ingest.router)
app.include_router(insights.router)
app.include_router(synthesize.router)


def _error_response(status_code: int, kind: str, exc: BaseException) -> JSONResponse:
    body = ErrorOut(
        error=kind,
        message=str(exc),
        stack=None if settings.is_production else "".join(traceback.format_exception(exc)),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    body = ErrorOut(error="validation", message=f"{location}: {message}" if location else message)
    return JSONResponse(status_code=400, content=body.model_dump(exclude_none=True))


@app.exception_handler(PipelineError)
async def pipeline_exception_handler(request: Request, exc: PipelineError):
    status_code = 400 if isinstance(exc, InvalidInputError) else 500
    if status_code == 500:
        logger.error("Run failed (%s): %s", exc.kind, exc)
    return _error_response(status_code, exc.kind, exc)


@app.exception_handler(APIError)
async def provider_exception_handler(request: Request, exc: APIError):
    logger.error("Provider call failed: %s", exc)
    return _error_response(502, "transport", exc)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    if is_transport_error(exc):
        logger.error("Transport failure: %s", exc)
        return _error_response(502, "transport", exc)
    logger.error("Unhandled error: %s", exc, exc_info=exc)
    return _error_response(500, "internal", exc)


@app.get("/health")
def health():
    return {"status": "ok"}
