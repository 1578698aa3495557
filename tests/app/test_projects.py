"""Tests for project management routes."""

from unittest.mock import MagicMock, patch

from app.chat_engine import SendInFlightError
from execution.completion import CompletionResult, RateLimitError


class TestListAndCreate:
    def test_list_creates_a_project_when_empty(self, client):
        response = client.get("/api/projects")
        assert response.status_code == 200
        body = response.json()
        assert len(body["projects"]) == 1
        assert body["current_project_id"] == body["projects"][0]["id"]

    def test_create(self, client):
        response = client.post("/api/projects", json={"title": "Neon Dreams"})
        assert response.status_code == 201
        body = response.json()
        assert body["title"] == "Neon Dreams"
        assert body["outline"] == ""
        assert body["history"] == {
            "can_undo": False,
            "can_redo": False,
            "current_history_index": 0,
            "revision_count": 1,
        }

    def test_create_without_title(self, client):
        response = client.post("/api/projects", json={})
        assert response.json()["title"] == "Untitled Document"

    def test_created_project_is_current(self, client, created_project):
        response = client.get("/api/projects/current")
        assert response.json()["id"] == created_project


class TestGetAndDelete:
    def test_get(self, client, created_project):
        response = client.get(f"/api/projects/{created_project}")
        assert response.status_code == 200
        assert response.json()["title"] == "Test Web Project"

    def test_get_missing(self, client):
        response = client.get("/api/projects/nope")
        assert response.status_code == 404
        assert response.json() == {"error": "Project 'nope' not found"}

    def test_delete(self, client, created_project):
        other = client.post("/api/projects", json={"title": "Other"}).json()["id"]
        response = client.delete(f"/api/projects/{other}")
        assert response.status_code == 200
        assert response.json() == {"deleted": other, "current_project_id": created_project}
        assert client.get(f"/api/projects/{other}").status_code == 404

    def test_delete_missing(self, client):
        assert client.delete("/api/projects/nope").status_code == 404

    def test_select(self, client, created_project):
        client.post("/api/projects", json={"title": "Other"})
        response = client.post(f"/api/projects/{created_project}/select")
        assert response.status_code == 200
        assert client.get("/api/projects/current").json()["id"] == created_project


class TestEdits:
    def test_rename(self, client, created_project):
        response = client.put(f"/api/projects/{created_project}/title", json={"title": "Paper Tigers"})
        assert response.json()["title"] == "Paper Tigers"

    def test_custom_instructions(self, client, created_project):
        response = client.put(
            f"/api/projects/{created_project}/custom-instructions",
            json={"custom_instructions": "Set in 1940s Los Angeles"},
        )
        assert response.json()["custom_instructions"] == "Set in 1940s Los Angeles"

    def test_outline_undo_redo(self, client, created_project):
        base = f"/api/projects/{created_project}"
        client.put(f"{base}/outline", json={"outline": "A"})
        client.put(f"{base}/outline", json={"outline": "B"})

        undone = client.post(f"{base}/undo").json()
        assert undone["outline"] == "A"
        assert undone["history"]["can_redo"] is True

        redone = client.post(f"{base}/redo").json()
        assert redone["outline"] == "B"
        assert redone["history"]["can_redo"] is False

    def test_undo_without_history_is_409(self, client, created_project):
        response = client.post(f"/api/projects/{created_project}/undo")
        assert response.status_code == 409
        assert response.json() == {"error": "cannot undo"}

    def test_redo_at_latest_is_409(self, client, created_project):
        client.put(f"/api/projects/{created_project}/outline", json={"outline": "A"})
        assert client.post(f"/api/projects/{created_project}/redo").status_code == 409

    def test_clear(self, client, created_project):
        base = f"/api/projects/{created_project}"
        client.put(f"{base}/outline", json={"outline": "A"})
        body = client.post(f"{base}/clear").json()
        assert body["title"] == "Untitled Document"
        assert body["outline"] == ""
        assert body["history"]["can_undo"] is True

    def test_export(self, client, created_project):
        client.put(f"/api/projects/{created_project}/outline", json={"outline": "FADE IN:"})
        response = client.get(f"/api/projects/{created_project}/export")
        assert response.status_code == 200
        assert response.text == "FADE IN:"
        assert response.headers["content-disposition"] == 'attachment; filename="test_web_project.txt"'


class TestMessages:
    def test_document_message(self, client, created_project):
        result = CompletionResult(is_document=True, outline="CITY - NIGHT", suggested_title="Glass Houses")
        with patch("app.chat_engine.generate_completion", MagicMock(return_value=result)):
            response = client.post(
                f"/api/projects/{created_project}/messages",
                json={"message": "Write the outline"},
            )
        assert response.status_code == 200
        body = response.json()
        assert body["result"] == {"outline": "CITY - NIGHT", "suggestedTitle": "Glass Houses"}
        assert body["project"]["title"] == "Glass Houses"
        assert body["project"]["history"]["can_undo"] is True
        assert [m["sender"] for m in body["project"]["chat_history"]] == ["user", "assistant"]

    def test_failed_message_carries_status(self, client, created_project):
        failing = MagicMock(side_effect=RateLimitError("Rate limit exceeded"))
        with patch("app.chat_engine.generate_completion", failing):
            response = client.post(
                f"/api/projects/{created_project}/messages",
                json={"message": "hi"},
            )
        assert response.status_code == 429
        body = response.json()
        assert body["error"]["status"] == 429
        assert body["assistant_message"]["message"].startswith("I apologize")

    def test_empty_message_is_400(self, client, created_project):
        response = client.post(f"/api/projects/{created_project}/messages", json={"message": "  "})
        assert response.status_code == 400
        assert response.json()["error"] == "Message is required"

    def test_missing_project_is_404(self, client):
        response = client.post("/api/projects/nope/messages", json={"message": "hi"})
        assert response.status_code == 404

    def test_deleted_while_pending_is_404(self, client, store, created_project):
        def delete_then_reply(request):
            store.delete_project(created_project)
            return CompletionResult(is_document=False, chat_response="ok")

        with patch("app.chat_engine.generate_completion", delete_then_reply):
            response = client.post(
                f"/api/projects/{created_project}/messages",
                json={"message": "hi"},
            )
        assert response.status_code == 404
        assert response.json() == {"error": f"Project '{created_project}' not found"}

    def test_title_only_reply_keeps_outline(self, client, created_project):
        client.put(f"/api/projects/{created_project}/outline", json={"outline": "KITCHEN - NIGHT"})
        result = CompletionResult(is_document=True, outline="", suggested_title="Paper Tigers")
        with patch("app.chat_engine.generate_completion", MagicMock(return_value=result)):
            response = client.post(
                f"/api/projects/{created_project}/messages",
                json={"message": "Update the outline"},
            )
        assert response.status_code == 502
        assert response.json()["project"]["outline"] == "KITCHEN - NIGHT"

    def test_in_flight_is_409(self, client, created_project):
        busy = SendInFlightError("A message for this project is already being processed")
        with patch("app.routers.projects.send_message", side_effect=busy):
            response = client.post(
                f"/api/projects/{created_project}/messages",
                json={"message": "hi"},
            )
        assert response.status_code == 409
