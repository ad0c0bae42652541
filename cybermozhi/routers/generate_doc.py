import logging
from typing import Optional

from fastapi import APIRouter, Depends

from cybermozhi.core.deps import get_document_tool
from cybermozhi.core.exceptions import CyberMozhiError
from cybermozhi.models.documents import LegalDocumentInput, LegalDocumentOutput
from cybermozhi.services.document_drafter import DocumentDraftingTool
from cybermozhi.utils.encryption import get_current_user_optional
from cybermozhi.utils.http_errors import to_http_exception

router = APIRouter()
logger = logging.getLogger("DocumentRouter")


@router.post("/generate-document", response_model=LegalDocumentOutput)
async def generate_document(
    request: LegalDocumentInput,
    current_user: Optional[dict] = Depends(get_current_user_optional),
    document_tool: DocumentDraftingTool = Depends(get_document_tool),
):
    """
    Drafts an FIR, complaint letter or takedown notice from the incident
    details. Fields the user did not give are left as bracketed placeholders.
    """
    who = current_user["username"] if current_user else "guest"
    logger.info(f"Generating '{request.document_type}' for {who}")
    try:
        return await document_tool.draft(request)
    except CyberMozhiError as e:
        logger.error(f"Error in generate_document: {e}")
        raise to_http_exception(e)
