"""Tests for the chat turn lifecycle."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
from google.genai import errors

from cybermozhi.core.config import Settings
from cybermozhi.core.exceptions import (
    AllQuotaExhaustedError,
    ConfigurationError,
    EmptyOutputError,
    InvalidInputError,
    TransportError,
)
from cybermozhi.llm.key_pool import KeyPool, KeyPoolRotator
from cybermozhi.llm.llm_client import ModelGateway
from cybermozhi.llm.templates import CHAT_ANSWER, CHAT_TITLE, DOCUMENT_DRAFT
from cybermozhi.models.chat_schema import ChatAnswerOutput, ChatTitleOutput, HistoryTurn, TurnRequest
from cybermozhi.models.documents import DraftNarrative, LegalDocumentInput
from cybermozhi.models.profile_schema import UserProfile
from cybermozhi.services.conversation import (
    EMPTY_OUTPUT_MESSAGE,
    ERROR_ALL_QUOTA_EXHAUSTED,
    ERROR_INVALID_REQUEST,
    HIGH_TRAFFIC_MESSAGE,
    ConversationController,
    fallback_title,
    normalize_history,
)
from cybermozhi.services.document_drafter import DISCLAIMER
from tests.conftest import FakeInvoker

USER_ID = "665f1c2e8b3f4a0012345678"
ANSWER = ChatAnswerOutput(answer="## Phishing\nPhishing is a scam that tricks you into revealing secrets.")


def signed_in(query="What is phishing?", **fields) -> TurnRequest:
    return TurnRequest(query=query, authenticated=True, user_id=USER_ID, **fields)


def controller_for(invoker, chat_store, profile_store, settings) -> ConversationController:
    return ConversationController(invoker, chat_store, profile_store, settings)


def text_response(text):
    return SimpleNamespace(text=text, function_calls=None, prompt_feedback=None, candidates=[])


def gemini_rotator(settings, keys, *responses):
    client = Mock()
    client.aio.models.generate_content = AsyncMock(side_effect=list(responses))
    gateway = ModelGateway(settings, client_factory=lambda api_key: client)
    return KeyPoolRotator(KeyPool(keys), gateway), client.aio.models.generate_content


def default_settings() -> Settings:
    return Settings(_env_file=None, gemini_api_keys="key-aaaa,key-bbbb")


def test_chat_titles_are_off_by_default():
    assert default_settings().generate_chat_titles is False


async def test_new_session_turn_on_first_key(chat_store, profile_store):
    settings = default_settings()
    rotator, generate = gemini_rotator(settings, settings.api_keys, text_response("Phishing is a scam."))
    controller = controller_for(rotator, chat_store, profile_store, settings)

    result = await controller.handle_turn(signed_in())

    assert result.answer == "Phishing is a scam."
    assert result.error is None
    assert result.new_chat_session_id is not None
    assert generate.await_count == 1
    assert rotator.pool.cursor.position == 1
    assert chat_store.sessions[result.new_chat_session_id].title == "What is phishing?"
    assert chat_store.roles(result.new_chat_session_id) == ["user", "model"]


async def test_exhausted_pool_answers_high_traffic(chat_store, profile_store):
    def quota():
        return errors.ClientError(429, {"error": {"code": 429, "message": "quota", "status": "RESOURCE_EXHAUSTED"}})

    settings = default_settings()
    rotator, generate = gemini_rotator(settings, settings.api_keys, quota(), quota())
    controller = controller_for(rotator, chat_store, profile_store, settings)

    result = await controller.handle_turn(signed_in(query="How do I report a fake loan app?"))

    assert result.answer == HIGH_TRAFFIC_MESSAGE
    assert result.error == ERROR_ALL_QUOTA_EXHAUSTED
    assert generate.await_count == 2
    assert rotator.pool.cursor.position == 2
    assert chat_store.roles(result.new_chat_session_id) == ["user"]


async def test_new_session_is_created_lazily_with_user_then_model(settings, chat_store, profile_store):
    controller = controller_for(FakeInvoker({CHAT_ANSWER: ANSWER}), chat_store, profile_store, settings)

    result = await controller.handle_turn(signed_in())

    messages = chat_store.messages[result.new_chat_session_id]
    assert [m.role for m in messages] == ["user", "model"]
    assert messages[0].text == "What is phishing?"
    assert messages[1].text == ANSWER.answer
    assert result.chat_session_id == result.new_chat_session_id


async def test_session_messages_alternate_over_several_turns(settings, chat_store, profile_store):
    controller = controller_for(FakeInvoker({CHAT_ANSWER: ANSWER}), chat_store, profile_store, settings)

    first = await controller.handle_turn(signed_in())
    session_id = first.new_chat_session_id
    for query in ("Is it punishable?", "Which section applies?", "How do I complain?"):
        result = await controller.handle_turn(signed_in(query=query, chat_session_id=session_id))
        assert result.new_chat_session_id is None
        assert result.chat_session_id == session_id

    messages = await chat_store.list_messages(USER_ID, session_id)
    assert [m.role for m in messages] == ["user", "model"] * 4
    timestamps = [m.timestamp for m in messages]
    assert timestamps == sorted(timestamps)


@pytest.mark.parametrize(
    "error",
    [
        AllQuotaExhaustedError(2),
        EmptyOutputError("blocked by safety"),
        ConfigurationError("no credentials"),
        TransportError("503 UNAVAILABLE: model overloaded", status_code=503),
        InvalidInputError(CHAT_ANSWER),
        RuntimeError("unexpected"),
    ],
)
async def test_turn_always_answers(settings, chat_store, profile_store, error):
    controller = controller_for(FakeInvoker({CHAT_ANSWER: error}), chat_store, profile_store, settings)

    result = await controller.handle_turn(signed_in())

    assert result.answer.strip()
    assert result.error is not None
    assert chat_store.roles(result.new_chat_session_id) == ["user"]


async def test_failure_messages_are_specific(settings, chat_store, profile_store):
    invoker = FakeInvoker({CHAT_ANSWER: EmptyOutputError("blocked")})
    result = await controller_for(invoker, chat_store, profile_store, settings).handle_turn(signed_in())
    assert result.answer == EMPTY_OUTPUT_MESSAGE

    invoker = FakeInvoker({CHAT_ANSWER: TransportError("404 NOT_FOUND: model missing", status_code=404)})
    result = await controller_for(invoker, chat_store, profile_store, settings).handle_turn(signed_in())
    assert "404 NOT_FOUND: model missing" in result.answer


async def test_turn_answers_when_the_store_is_down(settings, chat_store, profile_store):
    chat_store.fail_create = True
    chat_store.fail_list = True
    profile_store.fail_get = True
    controller = controller_for(FakeInvoker({CHAT_ANSWER: ANSWER}), chat_store, profile_store, settings)

    result = await controller.handle_turn(signed_in())

    assert result.answer == ANSWER.answer
    assert result.new_chat_session_id is None
    assert chat_store.sessions == {}


async def test_failed_answer_write_still_returns_answer(settings, chat_store, profile_store):
    chat_store.fail_append_roles = {"model"}
    controller = controller_for(FakeInvoker({CHAT_ANSWER: ANSWER}), chat_store, profile_store, settings)

    result = await controller.handle_turn(signed_in())

    assert result.answer == ANSWER.answer
    assert result.error is None
    assert chat_store.roles(result.new_chat_session_id) == ["user"]


@pytest.mark.parametrize(
    "request_",
    [
        TurnRequest(query="   "),
        TurnRequest(query="", authenticated=True, user_id=USER_ID),
        TurnRequest(query="What is phishing?", authenticated=True),
    ],
)
async def test_invalid_requests_have_no_side_effects(settings, chat_store, profile_store, request_):
    invoker = FakeInvoker({CHAT_ANSWER: ANSWER})
    controller = controller_for(invoker, chat_store, profile_store, settings)

    result = await controller.handle_turn(request_)

    assert result.error == ERROR_INVALID_REQUEST
    assert result.answer
    assert invoker.calls == []
    assert chat_store.sessions == {}
    assert profile_store.get_calls == 0


async def test_guest_turn_uses_client_history_and_stores_nothing(settings, chat_store, profile_store):
    invoker = FakeInvoker({CHAT_ANSWER: ANSWER})
    history = [HistoryTurn(role="user", text="Hi"), HistoryTurn(role="model", text="Vanakkam! How can I help?")]
    controller = controller_for(invoker, chat_store, profile_store, settings)

    result = await controller.handle_turn(TurnRequest(query="What is phishing?", chat_history=history))

    assert result.answer == ANSWER.answer
    assert result.new_chat_session_id is None
    assert chat_store.sessions == {}
    assert profile_store.get_calls == 0
    payload = invoker.last_data(CHAT_ANSWER)
    assert payload.chat_history == history
    assert payload.is_profile_incomplete is False


async def test_existing_session_reads_history_from_the_store(settings, chat_store, profile_store):
    session = chat_store.add_session(USER_ID)
    await chat_store.append_message(USER_ID, session.id, "user", "What is vishing?")
    await chat_store.append_message(USER_ID, session.id, "model", "Voice phishing over phone calls.")
    seen_before_invoke = []

    async def answer(data, tools):
        seen_before_invoke.extend(chat_store.roles(session.id))
        return ANSWER

    invoker = FakeInvoker({CHAT_ANSWER: answer})
    stale = [HistoryTurn(role="user", text="stale client copy"), HistoryTurn(role="model", text="stale")]
    controller = controller_for(invoker, chat_store, profile_store, settings)

    await controller.handle_turn(signed_in(query="And smishing?", chat_session_id=session.id, chat_history=stale))

    payload = invoker.last_data(CHAT_ANSWER)
    assert [turn.text for turn in payload.chat_history] == ["What is vishing?", "Voice phishing over phone calls."]
    # The user message is stored before the model is called.
    assert seen_before_invoke == ["user", "model", "user"]
    assert chat_store.roles(session.id) == ["user", "model", "user", "model"]


async def test_history_window_is_bounded(settings, chat_store, profile_store):
    settings.chat_history_window = 4
    session = chat_store.add_session(USER_ID)
    for i in range(6):
        await chat_store.append_message(USER_ID, session.id, "user", f"question {i}")
        await chat_store.append_message(USER_ID, session.id, "model", f"answer {i}")
    invoker = FakeInvoker({CHAT_ANSWER: ANSWER})

    await controller_for(invoker, chat_store, profile_store, settings).handle_turn(
        signed_in(query="next", chat_session_id=session.id)
    )

    history = invoker.last_data(CHAT_ANSWER).chat_history
    assert [turn.text for turn in history] == ["question 4", "answer 4", "question 5", "answer 5"]


async def test_odd_history_window_still_starts_with_user(settings, chat_store, profile_store):
    settings.chat_history_window = 5
    history = []
    for i in range(4):
        history.append(HistoryTurn(role="user", text=f"question {i}"))
        history.append(HistoryTurn(role="model", text=f"answer {i}"))
    invoker = FakeInvoker({CHAT_ANSWER: ANSWER})

    await controller_for(invoker, chat_store, profile_store, settings).handle_turn(
        TurnRequest(query="next", chat_history=history)
    )

    sent = invoker.last_data(CHAT_ANSWER).chat_history
    assert [turn.role for turn in sent] == ["user", "model", "user", "model"]
    assert [turn.text for turn in sent] == ["question 2", "answer 2", "question 3", "answer 3"]


async def test_history_read_failure_falls_back_to_client_history(settings, chat_store, profile_store):
    session = chat_store.add_session(USER_ID)
    chat_store.fail_list = True
    client_history = [HistoryTurn(role="user", text="Hi"), HistoryTurn(role="model", text="Hello!")]
    invoker = FakeInvoker({CHAT_ANSWER: ANSWER})

    result = await controller_for(invoker, chat_store, profile_store, settings).handle_turn(
        signed_in(chat_session_id=session.id, chat_history=client_history)
    )

    assert result.error is None
    assert invoker.last_data(CHAT_ANSWER).chat_history == client_history


async def test_profile_is_fetched_when_not_supplied(settings, chat_store, profile_store):
    profile_store.profiles[USER_ID] = UserProfile(display_name="Priya", state="Tamil Nadu", city="Chennai")
    invoker = FakeInvoker({CHAT_ANSWER: ANSWER})

    await controller_for(invoker, chat_store, profile_store, settings).handle_turn(signed_in())

    payload = invoker.last_data(CHAT_ANSWER)
    assert payload.user_details.state == "Tamil Nadu"
    assert payload.user_name == "Priya"
    assert payload.is_profile_incomplete is False


async def test_profile_failure_degrades_to_no_profile(settings, chat_store, profile_store):
    profile_store.fail_get = True
    invoker = FakeInvoker({CHAT_ANSWER: ANSWER})

    result = await controller_for(invoker, chat_store, profile_store, settings).handle_turn(signed_in())

    payload = invoker.last_data(CHAT_ANSWER)
    assert result.error is None
    assert payload.user_details is None
    assert payload.is_profile_incomplete is True


async def test_client_incomplete_flag_wins(settings, chat_store, profile_store):
    invoker = FakeInvoker({CHAT_ANSWER: ANSWER})

    await controller_for(invoker, chat_store, profile_store, settings).handle_turn(
        signed_in(user_details=UserProfile(city="Madurai"), is_profile_incomplete=False)
    )

    assert invoker.last_data(CHAT_ANSWER).is_profile_incomplete is False
    assert profile_store.get_calls == 0


async def test_generated_title_is_used(settings, chat_store, profile_store):
    settings.generate_chat_titles = True
    invoker = FakeInvoker({CHAT_TITLE: ChatTitleOutput(title='"Understanding Phishing"'), CHAT_ANSWER: ANSWER})

    result = await controller_for(invoker, chat_store, profile_store, settings).handle_turn(signed_in())

    assert chat_store.sessions[result.new_chat_session_id].title == "Understanding Phishing"
    assert invoker.templates_called() == [CHAT_TITLE, CHAT_ANSWER]


async def test_title_failure_falls_back_to_truncated_query(settings, chat_store, profile_store):
    settings.generate_chat_titles = True
    query = "Someone created a fake Instagram account using my photos, what can I do?"
    invoker = FakeInvoker({CHAT_TITLE: AllQuotaExhaustedError(2), CHAT_ANSWER: ANSWER})

    result = await controller_for(invoker, chat_store, profile_store, settings).handle_turn(signed_in(query=query))

    title = chat_store.sessions[result.new_chat_session_id].title
    assert title == query[:40] + "..."
    assert result.answer == ANSWER.answer


async def test_drafted_document_is_appended_to_the_answer(settings, chat_store, profile_store):
    narrative = DraftNarrative(offence_summary="Online Financial Fraud", incident_account="I lost Rs. 5,000.")

    async def answer_with_draft(data, tools):
        await tools[0].handler(LegalDocumentInput(document_type="FIR", incident_details="Lost Rs. 5,000 via UPI."))
        return ChatAnswerOutput(answer="Here is a draft FIR you can adapt.")

    invoker = FakeInvoker({CHAT_ANSWER: answer_with_draft, DOCUMENT_DRAFT: narrative})

    result = await controller_for(invoker, chat_store, profile_store, settings).handle_turn(
        signed_in(query="Please draft an FIR", user_name="Arun Kumar")
    )

    assert result.answer.startswith("Here is a draft FIR you can adapt.")
    assert "Arun Kumar" in result.answer
    assert result.answer.endswith(DISCLAIMER)
    assert invoker.last_data(DOCUMENT_DRAFT).user_name == "Arun Kumar"


def test_normalize_history_drops_unanswered_and_orphaned_turns():
    turns = [
        HistoryTurn(role="model", text="cut off reply"),
        HistoryTurn(role="user", text="failed question"),
        HistoryTurn(role="user", text="q1"),
        HistoryTurn(role="model", text="a1"),
        HistoryTurn(role="user", text="q2"),
    ]

    assert [t.text for t in normalize_history(turns)] == ["q1", "a1"]


def test_fallback_title():
    assert fallback_title("What is phishing?") == "What is phishing?"
    assert fallback_title("a" * 45) == "a" * 40 + "..."
