from cybermozhi.models.attack_schema import CyberAttackInput
from cybermozhi.models.chat_schema import ChatTitleInput


def title_instruction() -> str:
    return "You name chat conversations. Reply with a short, relevant title of at most 5 words."


def build_title_prompt(payload: ChatTitleInput) -> str:
    return f"""Based on the following user query, generate a short, relevant title for the chat session. The title should be a maximum of 5 words.

User Query: {payload.query}"""


def attack_summary_instruction() -> str:
    return "You are an expert in Indian cyber law. Be accurate and concise, and cite section numbers."


def build_attack_summary_prompt(payload: CyberAttackInput) -> str:
    return f"""Given a description of a cyber attack, provide a summary of the attack and identify the relevant Indian cyber laws that apply to it (IT Act, 2000; IPC; Copyright Act, 1957; DPDP Act, 2023).

Description: {payload.description}"""
