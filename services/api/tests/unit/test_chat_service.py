import re
import threading

from health_agent.chat import service
from health_agent.chat.sessions import ChatSessionStore
from health_agent.errors import ErrorKind, ProviderUnavailable
from health_agent.models import ChatRole, Failure, Success


def test_new_session_id_format():
    sid = service.new_session_id()
    assert re.fullmatch(r"chat_\d{13}_[a-z0-9]{7}", sid)
    assert sid != service.new_session_id()


def test_send_message_records_both_turns(fake_llm, chat_store):
    fake_llm.reply({"reply": "Try a short walk after dinner."})
    sid, outcome = service.send_message("Any tips for the evening?")
    assert isinstance(outcome, Success)
    assert sid.startswith("chat_")
    turns = chat_store.get_context(sid)
    assert [t.role for t in turns] == [ChatRole.USER, ChatRole.ASSISTANT]
    assert turns[1].text == outcome.value.reply


def test_second_turn_sees_history(fake_llm, chat_store):
    fake_llm.reply({"reply": "Nice to meet you, Sam."}, {"reply": "Your name is Sam."})
    service.send_message("My name is Sam", session_id="s-1")
    service.send_message("What is my name?", session_id="s-1")
    assert "User: My name is Sam" in fake_llm.last_prompt
    assert "Assistant: Nice to meet you, Sam." in fake_llm.last_prompt
    assert len(chat_store.get_context("s-1")) == 4


def test_failed_turn_keeps_user_message(fake_llm, chat_store):
    fake_llm.reply(ProviderUnavailable("openai", "timeout"))
    sid, outcome = service.send_message("hello", session_id="s-2")
    assert isinstance(outcome, Failure)
    assert outcome.kind is ErrorKind.PROVIDER_UNAVAILABLE
    assert [t.text for t in chat_store.get_context(sid)] == ["hello"]


def test_empty_message_rejected(fake_llm, chat_store):
    sid, outcome = service.send_message("   ", session_id="s-3")
    assert outcome.kind is ErrorKind.INVALID_INPUT
    assert chat_store.get_context(sid) == ()
    assert fake_llm.calls == []


def test_explicit_store_is_used(fake_llm):
    store = ChatSessionStore(limit=2)
    fake_llm.reply({"reply": "ok"})
    service.send_message("one", session_id="x", sessions=store)
    service.send_message("two", session_id="x", sessions=store)
    assert [t.text for t in store.get_context("x")] == ["two", "ok"]


def test_concurrent_turns_for_one_session_are_serialized(fake_llm, chat_store):
    fake_llm.reply({"reply": "noted"})

    threads = [
        threading.Thread(target=service.send_message, args=(f"message {n}",), kwargs={"session_id": "s-4"})
        for n in range(6)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    roles = [t.role for t in chat_store.get_context("s-4")]
    assert roles == [ChatRole.USER, ChatRole.ASSISTANT] * 6


def test_blank_session_id_starts_a_new_session(fake_llm, chat_store):
    fake_llm.reply({"reply": "Hello!"})
    sid, outcome = service.send_message("hi", session_id="   ")
    assert isinstance(outcome, Success)
    assert re.fullmatch(r"chat_\d{13}_[a-z0-9]{7}", sid)
    assert chat_store.session_ids() == (sid,)


def test_session_id_is_trimmed(fake_llm, chat_store):
    fake_llm.reply({"reply": "Hello!"})
    sid, _ = service.send_message("hi", session_id="  s-5 ")
    assert sid == "s-5"
    assert len(chat_store.get_context("s-5")) == 2
