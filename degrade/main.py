from pathlib import PurePath
from typing import Optional
from urllib.parse import quote
import logging
import re

from fastapi import FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from degrade.config import EngineConfig
from degrade.core.errors import DecodeError, DegradeError, InvalidInput, InvalidParameter, ProcessingFailure
from degrade.core.io import get_encoder
from degrade.params.quality import describe_levels
from degrade.params.schema import PARAM_SCHEMA
from degrade.pipeline import process_async

# Configure Logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("degrade")

config = EngineConfig.from_env()

app = FastAPI(
    title="Degrade Engine",
    version="1.0.0",
    description="Lo-fi audio degradation engine",
)

# CORS (Allow Frontend)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _status_for(error: DegradeError) -> int:
    if isinstance(error, InvalidInput):
        return 400
    if isinstance(error, DecodeError):
        return 415 if error.reason == "unsupported" else 422
    if isinstance(error, InvalidParameter):
        return 422
    return 500


@app.exception_handler(DegradeError)
async def degrade_error_handler(request: Request, exc: DegradeError):
    status = _status_for(exc)
    if isinstance(exc, ProcessingFailure):
        logger.error("Processing failed for %s: %s", request.url.path, exc)
    else:
        logger.warning("Rejected %s: %s", request.url.path, exc)
    body = {"status": "error", "error": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, DecodeError):
        body["reason"] = exc.reason
    return JSONResponse(status_code=status, content=body)


@app.get("/health")
async def health_check():
    return {"status": "ok", "service": "degrade-engine"}


@app.get("/quality-levels")
async def quality_levels():
    """Level descriptions and the settings each level resolves to."""
    return {"levels": describe_levels(), "schema": PARAM_SCHEMA}


def download_name(filename: Optional[str], extension: str = ".wav") -> str:
    """compressed_<stem><ext>, the name the processed file is offered under."""
    stem = PurePath(filename).stem if filename else "audio"
    return f"compressed_{stem or 'audio'}{extension}"


def content_disposition(name: str) -> str:
    """Attachment header safe for any name: ASCII fallback plus RFC 5987 UTF-8 form."""
    fallback = re.sub(r'[^\x20-\x7e]|["\\]', "_", name)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(name, safe='')}"


@app.post("/process")
async def process_endpoint(
    request: Request,
    quality: Optional[int] = Query(None),
    distortion_type: Optional[str] = Query(None),
    distortion_amount: Optional[float] = Query(None),
    bit_depth: Optional[int] = Query(None),
    sample_rate: Optional[int] = Query(None),
    noise: Optional[bool] = Query(None),
    crackle: Optional[bool] = Query(None),
    intensity: Optional[float] = Query(None),
    output_gain: Optional[float] = Query(None),
    seed: Optional[int] = Query(None),
    filename: Optional[str] = Query(None),
):
    """
    Degrades the raw audio in the request body.
    Returns the processed WAV as an attachment.
    """
    overrides = {
        "quality": quality,
        "distortion_type": distortion_type,
        "distortion_amount": distortion_amount,
        "target_bit_depth": bit_depth,
        "target_sample_rate": sample_rate,
        "noise_enabled": noise,
        "crackle_enabled": crackle,
        "intensity": intensity,
        "output_gain": output_gain,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}

    declared = request.headers.get("content-length")
    if declared is not None:
        try:
            declared_bytes = int(declared)
        except ValueError:
            raise InvalidInput(f"Invalid Content-Length {declared!r}")
        if declared_bytes > config.max_input_bytes:
            raise InvalidInput(f"Input is {declared_bytes} bytes, limit is {config.max_input_bytes}")

    data = await request.body()
    content_type = request.headers.get("content-type")
    wav_bytes = await process_async(
        data,
        overrides,
        content_type=content_type,
        seed=seed,
        config=config,
    )
    encoder = get_encoder("wav")
    return Response(
        content=wav_bytes,
        media_type=encoder.media_type,
        headers={"Content-Disposition": content_disposition(download_name(filename, encoder.extension))},
    )


if __name__ == "__main__":
    uvicorn.run("degrade.main:app", host="0.0.0.0", port=8000, reload=True)
