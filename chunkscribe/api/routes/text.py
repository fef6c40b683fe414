"""
Text API routes (outline and bullet points over arbitrary text).
"""
from fastapi import APIRouter, Depends, HTTPException
from functools import lru_cache
from pydantic import BaseModel
import logging

from ...ai import CompletionClient, create_bulletpoints, create_outline
from ...config import Config
from ...services.text_processing_service import TextProcessingError

logger = logging.getLogger(__name__)
config = Config()
router = APIRouter(prefix="/api", tags=["text"])


class TextRequest(BaseModel):
    text: str = ""


@lru_cache(maxsize=1)
def _build_completion_client() -> CompletionClient:
    return CompletionClient.from_llm()


@lru_cache(maxsize=1)
def _build_language_completion_client() -> CompletionClient:
    return CompletionClient.from_llm(config.language_detection_llm)


def get_completion_client() -> CompletionClient:
    try:
        return _build_completion_client()
    except ValueError as e:
        logger.error(f"Completion client unavailable: {e}")
        raise HTTPException(status_code=500, detail=str(e))


def get_language_completion_client() -> CompletionClient:
    try:
        return _build_language_completion_client()
    except ValueError as e:
        logger.error(f"Language detection client unavailable: {e}")
        raise HTTPException(status_code=500, detail=str(e))


def _require_text(request: TextRequest) -> str:
    text = request.text or ""
    if not text.strip():
        logger.info("No text provided", extra={"event": "no_text_provided"})
        raise HTTPException(status_code=400, detail="No text provided")
    return text


@router.post("/outline")
async def outline(
    request: TextRequest,
    completion: CompletionClient = Depends(get_completion_client),
    language_completion: CompletionClient = Depends(get_language_completion_client),
):
    """Create a speaker outline for the given script."""
    text = _require_text(request)
    try:
        response = await create_outline(completion, text, language_completion=language_completion)
    except Exception as e:
        logger.error(f"Error creating outline: {e}")
        raise HTTPException(status_code=502, detail="Error creating response")
    return {"response": response}


@router.post("/bulletpoints")
async def bulletpoints(
    request: TextRequest,
    completion: CompletionClient = Depends(get_completion_client),
):
    """Turn the given text into bullet points, part by part."""
    text = _require_text(request)
    try:
        response = await create_bulletpoints(completion, text, config.completion_token_budget)
    except TextProcessingError as e:
        logger.error(f"Error creating bulletpoints: {e}")
        raise HTTPException(status_code=502, detail="Error creating response")
    return {"response": response}
