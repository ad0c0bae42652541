import logging

from cybermozhi.llm.invoker import ModelInvoker
from cybermozhi.llm.templates import ATTACK_SUMMARY
from cybermozhi.models.attack_schema import CyberAttackInput, CyberAttackOutput

logger = logging.getLogger("AttackSummarizer")


async def summarize_attack(invoker: ModelInvoker, request: CyberAttackInput) -> CyberAttackOutput:
    """Summarize a described cyber attack and name the Indian laws that apply to it."""
    logger.info(f"Summarizing attack description ({len(request.description)} chars)")
    return await invoker.invoke(ATTACK_SUMMARY, request)
