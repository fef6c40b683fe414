"""
Transcription API routes (audio upload -> corrected transcript).
"""
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from functools import lru_cache
from typing import Optional
import logging

from ...audio_utils import SegmentationError
from ...services.media_service import MediaService, save_upload_to_temp
from ...services.transcription_service import TranscriptionError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["transcription"])


@lru_cache(maxsize=1)
def get_media_service() -> MediaService:
    return MediaService()


@router.post("/transcribe")
async def transcribe_audio(
    audio: Optional[UploadFile] = File(None),
    media_service: MediaService = Depends(get_media_service),
):
    """Transcribe an uploaded recording and return the raw and corrected transcript."""
    if audio is None or not audio.filename:
        logger.info("No file provided", extra={"event": "no_file_provided"})
        raise HTTPException(status_code=400, detail="No file provided")

    try:
        audio_path = await save_upload_to_temp(audio, audio.filename)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    finally:
        await audio.close()

    try:
        return await media_service.transcribe_file(audio_path, correct=True, remove_source=True)
    except SegmentationError as e:
        logger.error(f"Error splitting audio: {e}", extra={"event": "error_splitting_audio"})
        raise HTTPException(status_code=422, detail="Error splitting audio")
    except TranscriptionError as e:
        logger.error(f"Transcription failed: {e}")
        raise HTTPException(status_code=502, detail="Error transcribing audio")
    except ValueError as e:
        logger.error(f"Transcription misconfigured: {e}")
        raise HTTPException(status_code=500, detail=str(e))
