"""Tests for SiteBotServer class."""

import os

import pytest
import requests

from sitebot_server.rag.indexer import SiteIndex
from sitebot_server.rag.knowledge_base import KnowledgeBase
from sitebot_server.server import EMPTY_MESSAGE_REPLY, NO_KNOWLEDGE_MARKER, SiteBotServer


class ChatRecorder:
    """Stands in for call_chat and remembers the messages it was sent."""

    def __init__(self, reply="We make videos.", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def __call__(self, messages, config, temperature=0.0):
        self.calls.append({"messages": messages, "temperature": temperature})
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def site_index(rag_config, embeddings):
    return SiteIndex(rag_config, embeddings)


@pytest.fixture
def server(server_config, site_index, tmp_path):
    server_config.SYSTEM_PROMPT_PATH = str(tmp_path / "missing_prompt.md")
    return SiteBotServer(server_config, site_index)


@pytest.fixture
def client(server):
    server.app.config["TESTING"] = True
    return server.app.test_client()


@pytest.fixture
def chat_recorder(monkeypatch):
    recorder = ChatRecorder()
    monkeypatch.setattr("sitebot_server.server.call_chat", recorder)
    return recorder


def publish(index, kb):
    index._live = kb


@pytest.mark.unit
class TestSiteBotServer:
    """Test SiteBotServer initialization and prompt assembly."""

    def test_server_initialization(self, server_config, site_index):
        server = SiteBotServer(server_config, site_index)

        assert server.config is server_config
        assert server.index is site_index
        assert server.app is not None
        assert "SiteBot" in server.default_system_prompt

    def test_system_prompt_loading_default(self, server_config, site_index, tmp_path):
        server_config.SYSTEM_PROMPT_PATH = str(tmp_path / "nonexistent.md")
        server = SiteBotServer(server_config, site_index, default_system_prompt="Custom default prompt")

        assert server.get_system_prompt() == "Custom default prompt"

    def test_system_prompt_loading_from_file(self, server_config, site_index, tmp_path):
        prompt_file = tmp_path / "prompt.md"
        prompt_file.write_text("You answer questions about Example Films.")
        server_config.SYSTEM_PROMPT_PATH = str(prompt_file)

        server = SiteBotServer(server_config, site_index)

        assert server.get_system_prompt() == "You answer questions about Example Films."

    def test_system_prompt_reloaded_on_change(self, server_config, site_index, tmp_path):
        prompt_file = tmp_path / "prompt.md"
        prompt_file.write_text("Original prompt")
        server_config.SYSTEM_PROMPT_PATH = str(prompt_file)
        server = SiteBotServer(server_config, site_index)

        assert server.get_system_prompt() == "Original prompt"

        prompt_file.write_text("Updated prompt")
        stat = prompt_file.stat()
        os.utime(prompt_file, (stat.st_atime, stat.st_mtime + 10))

        assert server.get_system_prompt() == "Updated prompt"

    def test_build_messages_with_knowledge(self, server):
        messages = server.build_messages("What do you do?", "[Source] https://example.com\nWe film.\n\n", "fi")

        assert messages[0]["role"] == "system"
        assert "Answer in Finnish." in messages[0]["content"]
        assert "Knowledge:\n[Source] https://example.com\nWe film." in messages[0]["content"]
        assert messages[1] == {"role": "user", "content": "What do you do?"}

    def test_build_messages_without_knowledge(self, server):
        messages = server.build_messages("Hello", "", "en")

        assert messages[0]["content"].endswith(NO_KNOWLEDGE_MARKER)
        assert "Answer in English." in messages[0]["content"]

    def test_unknown_language_falls_back_to_english(self, server):
        messages = server.build_messages("Hej", "", "de")

        assert "Answer in English." in messages[0]["content"]


@pytest.mark.unit
class TestEndpoints:
    """Test Flask endpoints."""

    def test_health_endpoint(self, client, server_config):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert data["backend"] == server_config.BACKEND_TYPE
        assert data["model"] == server_config.CHAT_MODEL

    def test_kb_status_empty(self, client):
        response = client.get("/kb-status")

        assert response.status_code == 200
        data = response.get_json()
        assert data["chunks"] == 0
        assert data["vocab"] == 0
        assert data["reindexing"] is False

    def test_kb_status_reports_live_generation(self, client, server, make_knowledge_base):
        publish(server.index, make_knowledge_base([("https://example.com/services", "We produce video")]))

        data = client.get("/kb-status").get_json()

        assert data["chunks"] == 1
        assert data["embedded"] == 1
        assert data["vocab"] > 0

    def test_reindex_started(self, client, server, monkeypatch):
        monkeypatch.setattr(server.index, "start_background_reindex", lambda: object())

        response = client.post("/reindex")

        assert response.status_code == 202
        assert response.get_json()["ok"] is True

    def test_reindex_already_running(self, client, server, monkeypatch):
        monkeypatch.setattr(server.index, "start_background_reindex", lambda: None)

        response = client.post("/reindex")

        assert response.status_code == 409
        assert response.get_json()["ok"] is False

    def test_chat_invalid_json(self, client, chat_recorder):
        response = client.post("/chat", data="not valid json", content_type="application/json")

        assert response.status_code == 400
        assert "error" in response.get_json()
        assert chat_recorder.calls == []

    def test_chat_non_object_json(self, client, chat_recorder):
        response = client.post("/chat", json=["hello"])

        assert response.status_code == 400

    @pytest.mark.parametrize("payload", [{}, {"message": ""}, {"message": "   "}])
    def test_chat_empty_message(self, client, chat_recorder, payload):
        response = client.post("/chat", json=payload)

        assert response.status_code == 200
        assert response.get_json() == {"reply": EMPTY_MESSAGE_REPLY}
        assert chat_recorder.calls == []

    def test_chat_without_knowledge(self, client, chat_recorder):
        response = client.post("/chat", json={"message": "What do you do?"})

        assert response.get_json() == {"reply": "We make videos."}
        system = chat_recorder.calls[0]["messages"][0]["content"]
        assert NO_KNOWLEDGE_MARKER in system

    def test_chat_with_knowledge(self, client, server, chat_recorder, make_knowledge_base):
        publish(
            server.index,
            make_knowledge_base(
                [
                    ("https://example.com/services", "We produce commercial video content"),
                    ("https://example.com/contact", "Call us at 555-0100"),
                ]
            ),
        )

        response = client.post("/chat", json={"message": "video production services", "lang": "fi"})

        assert response.status_code == 200
        call = chat_recorder.calls[0]
        system = call["messages"][0]["content"]
        assert "Answer in Finnish." in system
        assert "Knowledge:\n[Source] https://example.com/services" in system
        assert call["messages"][1]["content"] == "video production services"
        assert call["temperature"] == server.config.DEFAULT_TEMPERATURE

    def test_chat_backend_timeout(self, client, chat_recorder):
        chat_recorder.error = requests.Timeout("read timed out")

        response = client.post("/chat", json={"message": "Hello"})

        assert response.status_code == 200
        assert response.get_json()["reply"].startswith("Error: Backend request timed out")

    def test_chat_backend_unreachable(self, client, chat_recorder):
        chat_recorder.error = requests.ConnectionError("refused")

        response = client.post("/chat", json={"message": "Hello"})

        assert "Could not connect" in response.get_json()["reply"]

    def test_chat_backend_error(self, client, chat_recorder):
        chat_recorder.error = ValueError("bad payload")

        response = client.post("/chat", json={"message": "Hello"})

        assert response.get_json()["reply"] == "Error: bad payload"

    def test_chat_empty_reply(self, client, chat_recorder):
        chat_recorder.reply = ""

        response = client.post("/chat", json={"message": "Hello"})

        assert response.get_json()["reply"] == "(no reply)"

    def test_chat_reads_generation_live_at_request_time(self, client, server, chat_recorder, make_knowledge_base):
        client.post("/chat", json={"message": "video"})
        publish(server.index, make_knowledge_base([("https://example.com/services", "We produce video")]))
        client.post("/chat", json={"message": "video"})

        first, second = (c["messages"][0]["content"] for c in chat_recorder.calls)
        assert NO_KNOWLEDGE_MARKER in first
        assert "[Source] https://example.com/services" in second

    def test_cors_headers(self, client):
        response = client.get("/health", headers={"Origin": "https://example.com"})

        assert response.headers.get("Access-Control-Allow-Origin") in ("*", "https://example.com")


@pytest.mark.unit
def test_empty_generation_is_default(site_index):
    assert isinstance(site_index.live, KnowledgeBase)
    assert site_index.live.is_empty
