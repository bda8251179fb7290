import io
import json
import logging
from functools import lru_cache
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, StreamingResponse
from PIL import Image, UnidentifiedImageError
from pydantic import ValidationError

from core.config import PipelineConfig
from core.errors import ConfigurationError, InvalidRequestError, PlanGenerationError
from core.models import (
    GenerationRequest,
    PredictionBatchResult,
    PredictionOptions,
    PredictionResultItem,
    ScenarioCatalog,
)
from pipeline.model_client import ModelClient
from pipeline.prediction_generator import PredictionGenerator, new_batch_summary

logger = logging.getLogger(__name__)

router = APIRouter()


# --------------------------------------------------------------------------------------
# Dependencies
# --------------------------------------------------------------------------------------
@lru_cache(maxsize=1)
def _gemini_client() -> ModelClient:
    from pipeline.gemini_client import GeminiModelClient
    return GeminiModelClient(PipelineConfig())


def get_client() -> ModelClient:
    try:
        return _gemini_client()
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=e.to_dict())


def _reference_image(data: bytes, config: PipelineConfig) -> Tuple[bytes, str]:
    """Identify the uploaded reference with Pillow and return bytes the render model accepts.

    Camera MPO files are JPEGs with extra frames and are sent as-is under
    ``image/jpeg``. Readable formats outside ``SUPPORTED_REFERENCE_MIME_TYPES``
    (BMP, GIF, TIFF, ...) are re-encoded to PNG.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise HTTPException(status_code=400, detail=f"Reference file is not a readable image: {e}")

    mime_type = "image/jpeg" if fmt == "MPO" else Image.MIME.get(fmt or "")
    if mime_type in config.SUPPORTED_REFERENCE_MIME_TYPES:
        return data, mime_type

    # verify() leaves the image unusable, so reopen before converting
    try:
        with Image.open(io.BytesIO(data)) as img:
            has_alpha = "A" in img.getbands() or "transparency" in img.info
            converted = img.convert("RGBA" if has_alpha else "RGB")
    except (OSError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Unsupported image format: {fmt} ({e})")
    buf = io.BytesIO()
    converted.save(buf, format="PNG")
    logger.info("Re-encoded %s reference image to PNG", fmt)
    return buf.getvalue(), "image/png"


async def case_request(
    file: UploadFile = File(...),
    name: str = Form(""),
    gender: str = Form("Unspecified"),
    age_at_missing: Optional[int] = Form(None),
    years_missing: Optional[int] = Form(None),
    location: str = Form(""),
    scenario: str = Form(PipelineConfig.AUTO_DETECT_SCENARIO),
    additional_details: str = Form(""),
    variation_count: int = Form(PipelineConfig.DEFAULT_VARIATIONS),
) -> GenerationRequest:
    image_bytes = await file.read()
    if not image_bytes or age_at_missing is None or years_missing is None:
        raise HTTPException(status_code=400, detail="Missing critical data (Image, Age, or Years Missing).")
    image_bytes, mime_type = _reference_image(image_bytes, PipelineConfig())
    try:
        return GenerationRequest(
            reference_image=image_bytes,
            reference_mime_type=mime_type,
            name=name,
            gender=gender,
            age_at_missing=age_at_missing,
            years_missing=years_missing,
            location=location,
            scenario=scenario,
            additional_details=additional_details,
            variation_count=variation_count,
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=400,
            detail=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()],
        )


def prediction_options(options: Optional[str] = Form(None)) -> Optional[PredictionOptions]:
    # send JSON string in a form field named "options"
    if not options:
        return None
    try:
        return PredictionOptions(**json.loads(options))
    except (ValueError, TypeError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid 'options' JSON: {e}")


# --------------------------------------------------------------------------------------
# Routes
# --------------------------------------------------------------------------------------
@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/scenarios", response_model=ScenarioCatalog)
def scenarios():
    config = PipelineConfig()
    return ScenarioCatalog(
        auto_detect=config.AUTO_DETECT_SCENARIO,
        scenarios=list(config.SCENARIOS),
        genders=list(config.GENDERS),
        min_variations=config.MIN_VARIATIONS,
        max_variations=config.MAX_VARIATIONS,
        default_variations=config.DEFAULT_VARIATIONS,
    )


@router.post("/predictions", response_model=PredictionBatchResult)
async def create_predictions(
    request: GenerationRequest = Depends(case_request),
    opts: Optional[PredictionOptions] = Depends(prediction_options),
    save: bool = Form(False),
    client: ModelClient = Depends(get_client),
):
    generator = PredictionGenerator(client=client, options=opts)
    items: List[PredictionResultItem] = []
    try:
        summary = await run_in_threadpool(generator.generate_batch, request, items.append)
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    except PlanGenerationError as e:
        raise HTTPException(status_code=502, detail=e.to_dict())

    saved = generator.save_results(items, request.name, summary.batch_id) if save else []
    result = PredictionBatchResult(items=items, summary=summary, saved_files=saved)
    return JSONResponse(content=json.loads(result.model_dump_json()))


@router.post("/predictions/stream")
async def stream_predictions(
    request: GenerationRequest = Depends(case_request),
    opts: Optional[PredictionOptions] = Depends(prediction_options),
    save: bool = Form(False),
    client: ModelClient = Depends(get_client),
):
    generator = PredictionGenerator(client=client, options=opts)
    summary = new_batch_summary()
    # Plan before the response starts so a plan failure is still a proper HTTP error.
    try:
        variations = await run_in_threadpool(generator.plan, request, None, summary)
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    except PlanGenerationError as e:
        raise HTTPException(status_code=502, detail=e.to_dict())

    def ndjson_lines():
        delivered: List[PredictionResultItem] = []
        for item in generator.stream(request, variations=variations, summary=summary):
            if save:
                delivered.append(item)
            yield json.dumps({"type": "result", "item": item.model_dump(mode="json")}) + "\n"
        complete = {"type": "complete", "summary": summary.model_dump(mode="json"), "saved_files": []}
        if save:
            # the complete line is always the last line of the stream
            try:
                complete["saved_files"] = generator.save_results(delivered, request.name, summary.batch_id)
            except OSError as e:
                logger.exception("[BATCH] %s saving results failed", summary.batch_id)
                complete["save_error"] = str(e)
        yield json.dumps(complete) + "\n"

    return StreamingResponse(ndjson_lines(), media_type="application/x-ndjson")
