from cybermozhi.models.documents import DOCUMENT_TITLES, LegalDocumentInput


def document_drafter_instruction() -> str:
    return """You are an assistant that prepares the factual sections of initial legal documents under Indian cyber law (IT Act, 2000; IPC; Copyright Act, 1957; DPDP Act, 2023).
Write in a formal, professional tone. Use only the facts the user gave you. Never invent names, dates, places, amounts, URLs or evidence.
Where a fact the document needs is missing, write a bracketed upper-case placeholder such as [PLEASE FILL IN THE EXACT DATE]."""


DOCUMENT_GUIDANCE = {
    "FIR": (
        "a First Information Report to the police or cyber crime cell. The offence summary completes the subject line "
        "'Filing of First Information Report (F.I.R) regarding ...' (e.g. 'Online Financial Fraud', 'Cyber Stalking'). "
        "The incident account is a detailed, chronological narrative."
    ),
    "ComplaintLetter": (
        "a formal complaint letter to the police or cyber cell, slightly less formal than an FIR. The incident account "
        "explains the sequence of events and the problem clearly and ends by requesting an investigation and appropriate action."
    ),
    "TakedownNotice": (
        "a takedown notice to an intermediary (social media platform, ISP or hosting provider). The offence summary names "
        "the issue (e.g. 'Copyright Infringement', 'Defamatory Content'). The incident account states who the sender is "
        "(owner of the work, person defamed), which content is unlawful and why."
    ),
}


def build_document_prompt(payload: LegalDocumentInput) -> str:
    """
    Asks for the narrative pieces of the requested document as JSON. Names and
    contact details are filled in locally, so they are not sent to the model.
    """
    document_title = DOCUMENT_TITLES[payload.document_type]
    accused = payload.accused_details or "Not provided."
    return f"""
    Prepare the factual content for {document_title}: {DOCUMENT_GUIDANCE[payload.document_type]}

    USER'S DESCRIPTION OF THE INCIDENT:
    {payload.incident_details}

    DETAILS OF THE ACCUSED (IF ANY):
    {accused}

    Return a JSON object with:
    - "offenceSummary": a short phrase naming the offence or issue.
    - "incidentAccount": the Markdown narrative of the incident, in the first person, using only the facts above.
    - "evidence": the evidence the user says they have (screenshots, bank statements, URLs, ...). Empty list if none was mentioned.
    - "applicableLaws": the relevant sections (e.g. "Section 66D of the IT Act, 2000"). Empty list if unsure.
    """.strip()
