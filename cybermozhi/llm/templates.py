"""
Prompt templates: versioned instructions plus the declared input/output shape
and safety policy for every capability sent to the model.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, Type

from pydantic import BaseModel

from cybermozhi.llm.chatbot_prompt import build_chat_prompt, get_cyber_law_assistant_prompt
from cybermozhi.llm.generate_doc_prompt import build_document_prompt, document_drafter_instruction
from cybermozhi.llm.summary_prompt import (
    attack_summary_instruction,
    build_attack_summary_prompt,
    build_title_prompt,
    title_instruction,
)
from cybermozhi.models.attack_schema import CyberAttackInput, CyberAttackOutput
from cybermozhi.models.chat_schema import ChatAnswerInput, ChatAnswerOutput, ChatTitleInput, ChatTitleOutput
from cybermozhi.models.documents import DraftNarrative, LegalDocumentInput

CHAT_ANSWER = "chat_answer"
DOCUMENT_DRAFT = "document_draft"
CHAT_TITLE = "chat_title"
ATTACK_SUMMARY = "attack_summary"

# (category, threshold) pairs, named as the Gemini API names them.
CHAT_SAFETY: Tuple[Tuple[str, str], ...] = (
    ("HARM_CATEGORY_DANGEROUS_CONTENT", "BLOCK_ONLY_HIGH"),
    ("HARM_CATEGORY_HARASSMENT", "BLOCK_MEDIUM_AND_ABOVE"),
    ("HARM_CATEGORY_HATE_SPEECH", "BLOCK_MEDIUM_AND_ABOVE"),
    ("HARM_CATEGORY_SEXUALLY_EXPLICIT", "BLOCK_MEDIUM_AND_ABOVE"),
)

DOCUMENT_SAFETY: Tuple[Tuple[str, str], ...] = (
    ("HARM_CATEGORY_DANGEROUS_CONTENT", "BLOCK_ONLY_HIGH"),
    ("HARM_CATEGORY_HARASSMENT", "BLOCK_MEDIUM_AND_ABOVE"),
)


@dataclass(frozen=True)
class PromptTemplate:
    id: str
    version: int
    system_instruction: str
    render: Callable[[BaseModel], str]
    input_model: Type[BaseModel]
    output_model: Type[BaseModel]
    # JSON mode parses the whole reply into output_model; text mode puts the
    # reply into output_model's `text_field`.
    json_output: bool = False
    text_field: Optional[str] = None
    safety_settings: Tuple[Tuple[str, str], ...] = ()
    temperature: Optional[float] = None
    model: Optional[str] = None


DOCUMENT_TOOL_NAME = "legalDocumentGeneratorTool"

DOCUMENT_TOOL_DESCRIPTION = (
    "Generates legal document drafts (FIR, Complaint Letter, Takedown Notice) based on user-provided details "
    "about a cyber incident. Use this when a user explicitly asks to draft a legal document."
)

DOCUMENT_TOOL_PARAMETERS = {
    "type": "OBJECT",
    "properties": {
        "documentType": {
            "type": "STRING",
            "enum": ["FIR", "ComplaintLetter", "TakedownNotice"],
            "description": (
                "'FIR' for a First Information Report, 'ComplaintLetter' for a general complaint to police/cyber cell, "
                "or 'TakedownNotice' for copyright/defamation issues."
            ),
        },
        "incidentDetails": {
            "type": "STRING",
            "description": "What happened, when, who was involved, and any evidence available.",
        },
        "userName": {"type": "STRING", "description": "The user's full name."},
        "userContact": {"type": "STRING", "description": "The user's phone or email."},
        "accusedDetails": {
            "type": "STRING",
            "description": "Details about the accused person or entity, if known (name, username, website, email).",
        },
    },
    "required": ["documentType", "incidentDetails"],
}


TEMPLATES: Dict[str, PromptTemplate] = {
    CHAT_ANSWER: PromptTemplate(
        id=CHAT_ANSWER,
        version=2,
        system_instruction=get_cyber_law_assistant_prompt(),
        render=build_chat_prompt,
        input_model=ChatAnswerInput,
        output_model=ChatAnswerOutput,
        text_field="answer",
        safety_settings=CHAT_SAFETY,
    ),
    DOCUMENT_DRAFT: PromptTemplate(
        id=DOCUMENT_DRAFT,
        version=2,
        system_instruction=document_drafter_instruction(),
        render=build_document_prompt,
        input_model=LegalDocumentInput,
        output_model=DraftNarrative,
        json_output=True,
        safety_settings=DOCUMENT_SAFETY,
        temperature=0.3,
    ),
    CHAT_TITLE: PromptTemplate(
        id=CHAT_TITLE,
        version=1,
        system_instruction=title_instruction(),
        render=build_title_prompt,
        input_model=ChatTitleInput,
        output_model=ChatTitleOutput,
        json_output=True,
        temperature=0.2,
    ),
    ATTACK_SUMMARY: PromptTemplate(
        id=ATTACK_SUMMARY,
        version=1,
        system_instruction=attack_summary_instruction(),
        render=build_attack_summary_prompt,
        input_model=CyberAttackInput,
        output_model=CyberAttackOutput,
        json_output=True,
        safety_settings=CHAT_SAFETY,
    ),
}


def get_template(template_id: str) -> PromptTemplate:
    try:
        return TEMPLATES[template_id]
    except KeyError:
        raise KeyError(f"Unknown prompt template '{template_id}'") from None
