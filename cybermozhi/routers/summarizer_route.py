import logging

from fastapi import APIRouter, Depends

from cybermozhi.core.deps import get_invoker
from cybermozhi.core.exceptions import CyberMozhiError
from cybermozhi.llm.invoker import ModelInvoker
from cybermozhi.models.attack_schema import CyberAttackInput, CyberAttackOutput
from cybermozhi.services.attack_summarizer import summarize_attack
from cybermozhi.utils.http_errors import to_http_exception

router = APIRouter()
logger = logging.getLogger("SummarizerRouter")


@router.post("/summarize-attack", response_model=CyberAttackOutput)
async def summarize_attack_endpoint(request: CyberAttackInput, invoker: ModelInvoker = Depends(get_invoker)):
    try:
        return await summarize_attack(invoker, request)
    except CyberMozhiError as e:
        logger.error(f"Error in summarize_attack: {e}")
        raise to_http_exception(e)
