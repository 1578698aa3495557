"""Tests for the instruction settings routes and server-rendered pages."""

from unittest.mock import patch

from execution.prompt_builder import DEFAULT_INSTRUCTIONS


class TestSettingsApi:
    def test_defaults(self, client):
        response = client.get("/api/settings")
        assert response.status_code == 200
        body = response.json()
        assert body["instructions"] == {"system": None, "style": None, "technical": None}
        assert body["effective"] == DEFAULT_INSTRUCTIONS
        assert body["defaults"] == DEFAULT_INSTRUCTIONS

    def test_save_partial(self, client):
        response = client.put("/api/settings", json={"style": "Lyrical and spare"})
        body = response.json()
        assert body["instructions"]["style"] == "Lyrical and spare"
        assert body["effective"]["style"] == "Lyrical and spare"
        assert body["effective"]["system"] == DEFAULT_INSTRUCTIONS["system"]

    def test_blank_override_falls_back_to_default(self, client):
        body = client.put("/api/settings", json={"technical": ""}).json()
        assert body["effective"]["technical"] == DEFAULT_INSTRUCTIONS["technical"]

    def test_reset(self, client):
        client.put("/api/settings", json={"system": "Be a poet"})
        body = client.post("/api/settings/reset/system").json()
        assert body["instructions"]["system"] is None
        assert body["effective"]["system"] == DEFAULT_INSTRUCTIONS["system"]

    def test_reset_unknown_block(self, client):
        response = client.post("/api/settings/reset/tone")
        assert response.status_code == 400

    def test_saved_overrides_reach_the_prompt(self, client, make_response):
        client.put("/api/settings", json={"style": "Write like a noir narrator"})
        project_id = client.post("/api/projects", json={"title": "Dark City"}).json()["id"]
        with patch("execution.completion.llm_client.chat", return_value=make_response("ok")) as chat:
            client.post(f"/api/projects/{project_id}/messages", json={"message": "hello"})
        system_prompt = chat.call_args[0][0][0]["content"]
        assert "Write like a noir narrator" in system_prompt


class TestPages:
    def test_index(self, client, created_project):
        response = client.get("/")
        assert response.status_code == 200
        assert "Test Web Project" in response.text
        assert f"DOC.{created_project[-4:]}" in response.text

    def test_index_with_no_projects(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "Untitled Document" in response.text
        assert "Start a conversation" in response.text

    def test_settings_page(self, client):
        response = client.get("/settings")
        assert response.status_code == 200
        assert "Style Instructions (default)" in response.text

    def test_settings_page_shows_override(self, client):
        client.put("/api/settings", json={"style": "Lyrical and spare"})
        response = client.get("/settings")
        assert "Lyrical and spare" in response.text
        assert "Style Instructions (default)" not in response.text
