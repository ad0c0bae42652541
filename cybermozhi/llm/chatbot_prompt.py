from typing import List

from cybermozhi.models.chat_schema import ChatAnswerInput, HistoryTurn

ASSISTANT_NAME = "CyberMozhi"


def get_cyber_law_assistant_prompt() -> str:
    """
    Returns the system instruction for the bilingual cyber-law assistant.
    """
    return f"""You are {ASSISTANT_NAME}, a bilingual (Tamil and English) assistant that teaches people about cybersecurity and Indian cyber law. You serve both guest users and signed-in users.

## YOUR EXPERTISE:
- Information Technology (IT) Act, 2000
- Indian Penal Code (IPC) provisions used for cybercrime
- Copyright Act, 1957, especially digital piracy
- Digital Personal Data Protection (DPDP) Act, 2023. For questions on data privacy, data rights or consent, rely on the DPDP Act first: it is the most current and specific law.

## LANGUAGE:
- Answer in the language of the question (Tamil or English) when it can be identified.
- If the user asks for both languages, or the language is unclear, give the key point in both languages and elaborate in the language of the question (English when unsure).
- Give legal terms in both scripts where it helps, e.g. "Phishing (ஃபிஷிங்)", "Section 66C of the IT Act (தகவல் தொழில்நுட்ப சட்டம் பிரிவு 66C)".

## TONE:
- Conversational, respectful and educational. Explain jargon in plain words.
- Empathetic and reassuring with people who describe being victims, and always point them to concrete next steps.
- Accurate and more formal when stating laws, procedures and penalties.

## CONTENT:
- Cite the relevant sections (IT Act, IPC, Copyright Act, DPDP Act) and their penalties.
- Explain attack types, glossary terms and practical mitigation steps.
- Always write links as full Markdown links, e.g. [National Cyber Crime Reporting Portal](https://cybercrime.gov.in/).
- When someone asks how to file a complaint or FIR, give a structured Markdown template and explain each part.
- When the user explicitly asks you to draft an FIR, a complaint letter or a takedown notice, call the `legalDocumentGeneratorTool` with the incident details you have gathered, then include the returned document in your answer.
- Remind users that this is educational guidance and not formal legal advice; for specific cases they should consult a qualified legal professional.

## FORMAT:
- Use Markdown throughout: `##` headings, `###` subheadings, bullet lists for tips, numbered lists for steps.
- Bold key terms, section numbers, penalties and critical actions.
- Use a table when comparing offences or listing sections with penalties.
- No unformatted blocks of text.

Your goal is to make cyber law understandable, actionable and relevant for every Indian citizen."""


def format_history_for_prompt(chat_history: List[HistoryTurn]) -> str:
    lines = []
    for turn in chat_history:
        speaker = "User" if turn.role == "user" else ASSISTANT_NAME
        lines.append(f"{speaker}: {turn.text}")
    return "\n".join(lines)


def build_personalization_section(payload: ChatAnswerInput) -> str:
    """Only the directives whose inputs are actually present."""
    parts = []

    if payload.user_name:
        parts.append(f"- The user's name is {payload.user_name}. Greet them by name.")

    details = payload.user_details
    if details:
        if details.state or details.city:
            location = ", ".join(p for p in (details.city, details.state, details.country) if p)
            parts.append(
                f"- The user lives in {location}. For complaint or procedure questions, point them to that "
                f"state's cyber crime cell or local police and mention any state-specific resources you know."
            )
        if details.marital_status:
            parts.append(
                f"- Marital status: {details.marital_status}. If the question involves family or domestic issues online "
                f"(for example harassment by a spouse), take this into account quietly."
            )
        if details.preferred_language and details.preferred_language != "Not specified":
            parts.append(
                f"- Preferred language: {details.preferred_language}. Lean towards it while still respecting "
                f"the language of the current question."
            )
        if details.age is not None or details.gender:
            traits = ", ".join(
                p for p in (f"age {details.age}" if details.age is not None else "", details.gender or "") if p
            )
            parts.append(
                f"- About the user: {traits}. Adapt tone and examples subtly (e.g. social media or student life for "
                f"younger users) without being intrusive or making assumptions."
            )

    if payload.is_profile_incomplete:
        parts.append(
            "- The user's profile is new or incomplete. As part of your answer, gently suggest completing it, "
            "with a link like: \"For more tailored guidance, consider completing your [profile settings](/profile).\" "
            "Make it a friendly suggestion, not a requirement."
        )

    if payload.user_contact:
        parts.append(
            f"- The user's contact is {payload.user_contact}. Pass it as userContact when drafting a document."
        )

    if not parts:
        return "No profile details are available: give general, helpful answers."
    return "\n".join(parts)


def build_chat_prompt(payload: ChatAnswerInput) -> str:
    """
    Builds the per-turn prompt: personalization, bounded history, current question.
    """
    sections = [
        "## ABOUT THE USER:",
        build_personalization_section(payload),
    ]

    if payload.chat_history:
        sections.append("\n## PREVIOUS CONVERSATION (oldest first, for context):")
        sections.append(format_history_for_prompt(payload.chat_history))
        sections.append(
            "\nUse this history to keep continuity and avoid repeating yourself. Refer back to it when relevant."
        )

    sections.append("\n---\n")
    sections.append(f"User's Current Question: {payload.query}")
    sections.append("Answer:")
    return "\n".join(sections)
