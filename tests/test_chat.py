import pytest

from dealdesk.chat import FALLBACK_REPLY, ChatError, conversation_title, normalize_chat_reply
from dealdesk.config import DEAL_CHAT_WEBHOOK_URL, PORTFOLIO_CHAT_WEBHOOK_URL
from dealdesk.db import ConversationMessage, Deal
from dealdesk.integrations import IntegrationError


@pytest.fixture
def deal(db):
    deal = Deal(company_name="Hooli", status="completed")
    db.add(deal)
    db.commit()
    return deal.id


@pytest.mark.parametrize(
    "raw, expected",
    [
        ({"message": "Bonjour"}, "Bonjour"),
        ({"output": "Voici le résumé"}, "Voici le résumé"),
        ({"response": "OK"}, "OK"),
        ([{"output": "From a list"}], "From a list"),
        ({"message": "", "output": "Second key"}, "Second key"),
        ({}, FALLBACK_REPLY),
    ],
)
def test_normalize_chat_reply(raw, expected):
    assert normalize_chat_reply(raw) == expected


@pytest.mark.parametrize("raw", [None, "plain text", [], ["text"]])
def test_normalize_chat_reply_rejects_non_objects(raw):
    with pytest.raises(ChatError, match="Format de réponse invalide"):
        normalize_chat_reply(raw)


def test_conversation_title_is_truncated():
    assert conversation_title("Quel est le burn ?") == "Quel est le burn ?"
    assert conversation_title("x" * 60) == "x" * 50 + "..."


def test_deal_chat_creates_and_continues_conversation(client, integrations, deal):
    integrations.post_json.return_value = [{"output": "ARR de 1,2M€"}]
    resp = client.post(f"/deals/{deal}/chat", json={"message": "  Quel est l'ARR ?  "})
    assert resp.status_code == 200
    body = resp.json()
    conversation_id = body["conversation"]["id"]
    assert body["conversation"]["title"] == "Quel est l'ARR ?"
    assert body["user_message"]["content"] == "Quel est l'ARR ?"
    assert body["assistant_message"]["role"] == "assistant"
    assert body["assistant_message"]["content"] == "ARR de 1,2M€"

    url, payload = integrations.post_json.call_args.args
    assert url == DEAL_CHAT_WEBHOOK_URL
    assert payload == {
        "message": "Quel est l'ARR ?",
        "conversation_id": conversation_id,
        "deal_id": deal,
        "company_name": "Hooli",
    }

    integrations.post_json.return_value = {"message": "Environ 18 mois"}
    resp = client.post(
        f"/deals/{deal}/chat", json={"message": "Et le runway ?", "conversation_id": conversation_id}
    )
    assert resp.json()["conversation"]["id"] == conversation_id

    messages = client.get(f"/conversations/{conversation_id}/messages").json()
    assert [(m["role"], m["content"]) for m in messages] == [
        ("user", "Quel est l'ARR ?"),
        ("assistant", "ARR de 1,2M€"),
        ("user", "Et le runway ?"),
        ("assistant", "Environ 18 mois"),
    ]
    (listed,) = client.get(f"/deals/{deal}/conversations").json()
    assert listed["id"] == conversation_id


def test_company_chat_uses_portfolio_agent(client, integrations, company):
    integrations.post_json.return_value = {"response": ""}
    resp = client.post(f"/companies/{company['id']}/chat", json={"message": "Résume le Q3"})
    assert resp.status_code == 200
    assert resp.json()["assistant_message"]["content"] == FALLBACK_REPLY

    url, payload = integrations.post_json.call_args.args
    assert url == PORTFOLIO_CHAT_WEBHOOK_URL
    assert payload["portfolio_company_id"] == company["id"]
    assert [c["title"] for c in client.get(f"/companies/{company['id']}/conversations").json()] == [
        "Résume le Q3"
    ]


def test_conversations_listed_most_recent_first(client, integrations, company):
    integrations.post_json.return_value = {"output": "ok"}
    path = f"/companies/{company['id']}/chat"
    first = client.post(path, json={"message": "Premier"}).json()["conversation"]["id"]
    second = client.post(path, json={"message": "Second"}).json()["conversation"]["id"]
    client.post(path, json={"message": "Relance", "conversation_id": first})

    listed = client.get(f"/companies/{company['id']}/conversations").json()
    assert [c["id"] for c in listed] == [first, second]


def test_question_is_kept_when_agent_fails(client, integrations, deal):
    integrations.post_json.side_effect = IntegrationError("Webhook failed: 500")
    resp = client.post(f"/deals/{deal}/chat", json={"message": "Bonjour"})
    assert resp.status_code == 502
    assert "Webhook failed: 500" in resp.json()["detail"]

    (conversation,) = client.get(f"/deals/{deal}/conversations").json()
    messages = client.get(f"/conversations/{conversation['id']}/messages").json()
    assert [(m["role"], m["content"]) for m in messages] == [("user", "Bonjour")]


def test_invalid_agent_answer_is_a_bad_gateway(client, integrations, deal):
    integrations.post_json.return_value = None
    resp = client.post(f"/deals/{deal}/chat", json={"message": "Bonjour"})
    assert resp.status_code == 502
    assert "Format de réponse invalide" in resp.json()["detail"]


def test_chat_rejects_unknown_targets(client, integrations, deal, company):
    integrations.post_json.return_value = {"output": "ok"}
    assert client.post("/deals/missing/chat", json={"message": "Bonjour"}).status_code == 404
    assert client.post("/companies/missing/chat", json={"message": "Bonjour"}).status_code == 404
    assert client.post(f"/deals/{deal}/chat", json={"message": "   "}).status_code == 422

    deal_thread = client.post(f"/deals/{deal}/chat", json={"message": "Bonjour"}).json()
    resp = client.post(
        f"/companies/{company['id']}/chat",
        json={"message": "Bonjour", "conversation_id": deal_thread["conversation"]["id"]},
    )
    assert resp.status_code == 404


def test_delete_conversation_removes_messages(client, integrations, db, company):
    integrations.post_json.return_value = {"output": "ok"}
    reply = client.post(f"/companies/{company['id']}/chat", json={"message": "Bonjour"}).json()
    conversation_id = reply["conversation"]["id"]

    assert client.delete(f"/conversations/{conversation_id}").status_code == 204
    assert client.get(f"/conversations/{conversation_id}/messages").status_code == 404
    assert client.get(f"/companies/{company['id']}/conversations").json() == []
    assert db.query(ConversationMessage).count() == 0
    assert client.delete(f"/conversations/{conversation_id}").status_code == 404
