"""
Transcript processing endpoints.

POST /process-transcript  multipart, one PDF in the `transcript` field
POST /process-text        { text }

Both return candidate action items for the user to review; nothing is
written to Google Tasks here. Decode failures come back as
{success: false, message} with HTTP 200 so the page can show them inline.
"""
from typing import List

from fastapi import APIRouter, Depends, Request

from app.models.session import TokenBundle
from app.models.tasks import ActionItem, ProcessTextRequest
from app.middleware.security import verify_csrf
from app.services.extraction_service import ActionItemExtractor
from app.services.pdf_service import extract_pdf_text
from app.services.session_service import get_current_tokens
from app.services.upload_service import read_transcript_upload
from app.services.validation import clean_extracted_text, validate_transcript_text
from app.utils.logger import get_logger
from app.utils.errors import ProcessingError

router = APIRouter()
logger = get_logger(__name__)
extractor = ActionItemExtractor()


def _extraction_response(items: List[ActionItem], source: str) -> dict:
    if not items:
        return {
            "success": True,
            "message": f"{source} processed successfully, but no action items were found.",
            "tasks": [],
        }
    return {
        "success": True,
        "message": f"Found {len(items)} potential action items. Please review and select the ones you want to add.",
        "tasks": [item.model_dump(by_alias=True) for item in items],
    }


@router.post("/process-transcript", dependencies=[Depends(verify_csrf)])
async def process_transcript(request: Request, tokens: TokenBundle = Depends(get_current_tokens)):
    """Extract action items from an uploaded PDF transcript."""
    upload = await read_transcript_upload(request)

    try:
        text = clean_extracted_text(extract_pdf_text(upload.data))
        logger.info(f"PDF parsed successfully, text length: {len(text)}")
        items = await extractor.extract(text)
    except ProcessingError as e:
        logger.error(f"Error processing transcript: {e.message}")
        return {"success": False, "message": f"Error processing transcript: {e.message}"}
    finally:
        upload.discard()

    logger.info(f"Action items extracted from transcript: {len(items)}")
    return _extraction_response(items, "Transcript")


@router.post("/process-text", dependencies=[Depends(verify_csrf)])
async def process_text(body: ProcessTextRequest, tokens: TokenBundle = Depends(get_current_tokens)):
    """Extract action items from pasted transcript text."""
    text = validate_transcript_text(body.text)
    items = await extractor.extract(text)

    logger.info(f"Action items extracted from text: {len(items)}")
    return _extraction_response(items, "Text")
