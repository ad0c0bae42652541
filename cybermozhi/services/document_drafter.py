"""
Document Drafting Tool
Drafts an FIR, complaint letter or takedown notice. The model writes the
narrative; the letter around it is assembled here so that names, addresses and
dates only ever come from the request or stay bracketed placeholders.
"""

import logging
from typing import Callable, Dict, List, Optional

from cybermozhi.core.exceptions import EmptyOutputError
from cybermozhi.llm.invoker import ModelInvoker, ToolBinding
from cybermozhi.llm.templates import (
    DOCUMENT_DRAFT,
    DOCUMENT_TOOL_DESCRIPTION,
    DOCUMENT_TOOL_NAME,
    DOCUMENT_TOOL_PARAMETERS,
)
from cybermozhi.models.documents import DraftNarrative, LegalDocumentInput, LegalDocumentOutput

logger = logging.getLogger("DocumentDrafter")

DISCLAIMER = (
    "***Disclaimer: This is an AI-generated draft for initial correspondence. It is not a substitute for formal "
    "legal advice. Please review and edit it carefully, and consult a legal professional for serious matters.***"
)

DRAFT_UNAVAILABLE = (
    "Sorry, I was unable to generate the document at this time. The request may have been blocked by the "
    "safety policy. Please try rephrasing your request."
)

NAME_PLACEHOLDER = "[YOUR FULL NAME]"
CONTACT_PLACEHOLDER = "[YOUR PHONE NUMBER / EMAIL]"
ADDRESS_PLACEHOLDER = "[YOUR FULL ADDRESS]"
DATE_PLACEHOLDER = "[DATE]"
ACCUSED_PLACEHOLDER = "[ACCUSED'S NAME / DETAILS, IF KNOWN]"
EVIDENCE_PLACEHOLDER = "[LIST YOUR EVIDENCE: SCREENSHOTS, TRANSACTION IDS, URLS, ETC.]"
URL_PLACEHOLDER = "[URL(S) OF THE INFRINGING / UNLAWFUL CONTENT]"
OFFENCE_PLACEHOLDER = "[NATURE OF THE OFFENCE]"


def _or(value: Optional[str], placeholder: str) -> str:
    return value.strip() if value and value.strip() else placeholder


def _bullets(items: List[str], placeholder: str) -> str:
    cleaned = [item.strip() for item in items if item and item.strip()]
    if not cleaned:
        return f"- {placeholder}"
    return "\n".join(f"- {item}" for item in cleaned)


def render_fir(request: LegalDocumentInput, narrative: DraftNarrative) -> str:
    name = _or(request.user_name, NAME_PLACEHOLDER)
    contact = _or(request.user_contact, CONTACT_PLACEHOLDER)
    offence = _or(narrative.offence_summary, OFFENCE_PLACEHOLDER)
    laws = _bullets(narrative.applicable_laws, "[RELEVANT SECTIONS OF THE IT ACT, 2000 / IPC]")
    return f"""**To,**
The Officer in Charge,
[POLICE STATION / CYBER CRIME CELL]
[ADDRESS OF THE POLICE STATION]

**From,**
{name}
{ADDRESS_PLACEHOLDER}
{contact}

**Date:** {DATE_PLACEHOLDER}

**Subject: Filing of First Information Report (F.I.R) regarding {offence}**

Respected Sir/Madam,

I, {name}, contactable at {contact}, wish to report the following incident.

### Details of the Incident
{narrative.incident_account.strip()}

### Details of the Accused
{_or(request.accused_details, ACCUSED_PLACEHOLDER)}

### Evidence Available
{_bullets(narrative.evidence, EVIDENCE_PLACEHOLDER)}

### Applicable Provisions
{laws}

I request you to kindly register an FIR under the relevant sections of the Information Technology Act, 2000 and the Indian Penal Code, investigate the matter and take appropriate legal action against the accused.

Yours Sincerely,

{name}"""


def render_complaint_letter(request: LegalDocumentInput, narrative: DraftNarrative) -> str:
    name = _or(request.user_name, NAME_PLACEHOLDER)
    contact = _or(request.user_contact, CONTACT_PLACEHOLDER)
    offence = _or(narrative.offence_summary, OFFENCE_PLACEHOLDER)
    return f"""**To,**
The Station House Officer / Cyber Crime Cell,
[POLICE STATION / CYBER CRIME CELL NAME]
[ADDRESS]

**From,**
{name}
{ADDRESS_PLACEHOLDER}
{contact}

**Date:** {DATE_PLACEHOLDER}

**Subject: Complaint regarding {offence}**

Dear Sir/Madam,

{narrative.incident_account.strip()}

**Person(s) / entity responsible:** {_or(request.accused_details, ACCUSED_PLACEHOLDER)}

**Supporting evidence:**
{_bullets(narrative.evidence, EVIDENCE_PLACEHOLDER)}

**Relevant laws:**
{_bullets(narrative.applicable_laws, "[RELEVANT SECTIONS, IF KNOWN]")}

I kindly request you to investigate this matter and take appropriate action against the persons responsible. I am willing to provide any further information or documents required.

Thanking you,

Yours faithfully,

{name}"""


def render_takedown_notice(request: LegalDocumentInput, narrative: DraftNarrative) -> str:
    name = _or(request.user_name, NAME_PLACEHOLDER)
    contact = _or(request.user_contact, CONTACT_PLACEHOLDER)
    issue = _or(narrative.offence_summary, "[NATURE OF THE ISSUE, E.G. COPYRIGHT INFRINGEMENT / DEFAMATORY CONTENT]")
    return f"""**To,**
The Grievance Officer / Legal Department,
[HOSTING PROVIDER/PLATFORM NAME - PLEASE SPECIFY]

**Date:** {DATE_PLACEHOLDER}

**Subject: Notice for Takedown of Unlawful Content under Section 79 of the Information Technology Act, 2000 ({issue})**

Dear Sir/Madam,

I, {name}, am writing to notify you of content hosted on your platform that is unlawful and infringes my rights.

### Content to be Removed
- {URL_PLACEHOLDER}

**Uploaded / posted by:** {_or(request.accused_details, ACCUSED_PLACEHOLDER)}

### Why the Content is Unlawful
{narrative.incident_account.strip()}

**Applicable provisions:**
{_bullets(narrative.applicable_laws, "[RELEVANT SECTIONS, IF KNOWN]")}

**Supporting evidence:**
{_bullets(narrative.evidence, EVIDENCE_PLACEHOLDER)}

I state in good faith that the use of the material described above is not authorized by me, my agent or the law, and that the information in this notice is accurate to the best of my knowledge.

As an intermediary, you are required under Section 79 of the Information Technology Act, 2000 and the Intermediary Guidelines to remove or disable access to this content expeditiously upon receiving actual knowledge of it. I request that you do so and confirm the action taken.

For any follow-up, I can be reached at {contact}.

Sincerely,

{name}"""


RENDERERS: Dict[str, Callable[[LegalDocumentInput, DraftNarrative], str]] = {
    "FIR": render_fir,
    "ComplaintLetter": render_complaint_letter,
    "TakedownNotice": render_takedown_notice,
}


def assemble_document(request: LegalDocumentInput, narrative: DraftNarrative) -> str:
    """Skeleton for the document type, filled from the request and the narrative, disclaimer last."""
    body = RENDERERS[request.document_type](request, narrative)
    return f"{body}\n\n---\n\n{DISCLAIMER}"


class DocumentDraftingTool:
    def __init__(self, invoker: ModelInvoker) -> None:
        self.invoker = invoker

    async def draft(self, request: LegalDocumentInput) -> LegalDocumentOutput:
        logger.info(f"Drafting {request.document_type} document")
        try:
            narrative = await self.invoker.invoke(DOCUMENT_DRAFT, request)
        except EmptyOutputError as e:
            logger.warning(f"No usable draft for {request.document_type}: {e}")
            return LegalDocumentOutput(generated_document=DRAFT_UNAVAILABLE)

        document = assemble_document(request, narrative)
        logger.info(f"Drafted {request.document_type} document ({len(document)} chars)")
        return LegalDocumentOutput(generated_document=document)

    def binding(
        self,
        user_name: Optional[str] = None,
        user_contact: Optional[str] = None,
        on_draft: Optional[Callable[[str], None]] = None,
    ) -> ToolBinding:
        """Expose `draft` to the model. Missing name/contact are filled from the caller's turn."""

        async def handler(arguments: LegalDocumentInput) -> LegalDocumentOutput:
            updates = {}
            if not arguments.user_name and user_name:
                updates["user_name"] = user_name
            if not arguments.user_contact and user_contact:
                updates["user_contact"] = user_contact
            request = arguments.model_copy(update=updates) if updates else arguments
            result = await self.draft(request)
            if on_draft is not None:
                on_draft(result.generated_document)
            return result

        return ToolBinding(
            name=DOCUMENT_TOOL_NAME,
            description=DOCUMENT_TOOL_DESCRIPTION,
            parameters=DOCUMENT_TOOL_PARAMETERS,
            input_model=LegalDocumentInput,
            output_model=LegalDocumentOutput,
            handler=handler,
        )
