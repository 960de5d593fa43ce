"""Tests for the burn-up JSON API."""

import json
from datetime import date
from unittest.mock import patch

import pytest

from jira_burnup.burnup import build_burnup_model
from jira_burnup.dates import date_to_ms
from jira_burnup.exceptions import (
    ConfigNotFoundError,
    JiraAuthError,
    JiraRateLimitError,
    NoIssuesFoundError,
)
from jira_burnup.models import BuildBurnupInput, BurnupIssue
from jira_burnup.web.app import create_app
from jira_burnup.web.routes import demo_stories


@pytest.fixture
def client():
    app = create_app()
    app.config["TESTING"] = True
    return app.test_client()


def _stories():
    stories = [
        {"key": f"SO-{d}", "created": "2025-01-02",
         "resolutiondate": f"2025-01-{d}T16:00:00.000+0000",
         "statusCategory": "Done", "status": "Done"}
        for d in (20, 21, 22, 23)
    ]
    stories += [
        {"key": f"SO-F{d}", "created": "2025-01-02",
         "resolutiondate": f"2025-02-{d}T16:00:00.000+0000",
         "statusCategory": "Done", "status": "Done"}
        for d in (17, 18, 19, 20, 21, 22)
    ]
    stories += [
        {"key": f"SO-O{n}", "created": "2025-01-02", "statusCategory": "To Do", "status": "To Do"}
        for n in range(10)
    ]
    return stories


def _payload(**overrides):
    payload = {
        "stories": _stories(),
        "sprint_start": "2025-01-01",
        "target_date": "2025-04-30",
        "fte": 2,
        "today": "2025-03-03",
    }
    payload.update(overrides)
    return payload


class TestHealth:
    """Tests for /health."""

    @patch("jira_burnup.web.routes.config_exists", return_value=True)
    def test_ok(self, mock_exists, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.get_json() == {"status": "ok", "config_loaded": True}

    @patch("jira_burnup.web.routes.config_exists", return_value=False)
    def test_missing_config(self, mock_exists, client):
        response = client.get("/health")
        assert response.status_code == 503
        assert response.get_json()["config_loaded"] is False


class TestApiBurnupFromStories:
    """Tests for POST /api/burnup with posted stories."""

    def test_builds_model(self, client):
        response = client.post("/api/burnup", json=_payload())
        assert response.status_code == 200
        body = response.get_json()
        assert body["originDate"] == "2025-01-06"
        assert body["latestScope"] == 20
        assert body["projection"]["hasSignal"] is True
        assert body["velocitySlider"] == {"min": 1, "max": 6}
        assert body["scopeSlider"]["enabled"] is True
        assert body["scopeSlider"]["baselineScope"] == 20

    def test_calibrates_to_required_pace(self, client):
        body = client.post("/api/burnup", json=_payload()).get_json()
        required = body["projection"]["requiredStoriesPerSprintToHitTarget"]
        assert required == pytest.approx(10 / (58 / 14))
        assert body["projection"]["projectedDonePerSprint"] == pytest.approx(required)
        assert body["daysDeltaFromTarget"] == 0
        assert body["isOnTrack"] is True

    def test_velocity_reprojects(self, client):
        response = client.post("/api/burnup", json=_payload(velocity=4))
        body = response.get_json()
        assert body["projection"]["projectedDonePerSprint"] == pytest.approx(4.0)
        assert body["projection"]["projectedCompletionDate"] == "2025-04-07"

    def test_velocity_clamped_to_slider_range(self, client):
        fast = client.post("/api/burnup", json=_payload(velocity=10)).get_json()
        assert fast["projection"]["projectedDonePerSprint"] == pytest.approx(6.0)
        assert fast["projection"]["projectedCompletionDate"] == "2025-03-26"

        slow = client.post("/api/burnup", json=_payload(velocity=0.25)).get_json()
        assert slow["projection"]["projectedDonePerSprint"] == pytest.approx(1.0)

    def test_scope_override(self, client):
        response = client.post("/api/burnup", json=_payload(scope_override=40))
        body = response.get_json()
        assert body["latestScope"] == 40
        assert body["sprints"][3]["scopeAtEnd"] == 20
        assert body["sprints"][4]["scopeAtEnd"] == 40

    def test_invalid_target_gives_empty_model(self, client):
        response = client.post("/api/burnup", json=_payload(target_date="later"))
        assert response.status_code == 200
        body = response.get_json()
        assert body["sprints"] == []
        assert body["projection"]["hasSignal"] is False

    def test_rejects_non_object_body(self, client):
        response = client.post("/api/burnup", json=[1, 2])
        assert response.status_code == 400

    def test_rejects_bad_stories(self, client):
        response = client.post("/api/burnup", json=_payload(stories="SO-1"))
        assert response.status_code == 400
        assert "stories" in response.get_json()["error"]

    def test_rejects_bad_numbers(self, client):
        assert client.post("/api/burnup", json=_payload(fte="lots")).status_code == 400
        assert client.post(
            "/api/burnup", json=_payload(sprint_length_days=2.5)
        ).status_code == 400

    @pytest.mark.parametrize("field", ["sprint_length_days", "fte", "velocity", "scope_override"])
    @pytest.mark.parametrize("literal", ["Infinity", "-Infinity", "NaN"])
    def test_rejects_non_finite_numbers(self, client, field, literal):
        body = json.dumps(_payload()).rstrip("}") + f', "{field}": {literal}}}'
        response = client.post("/api/burnup", data=body, content_type="application/json")
        assert response.status_code == 400
        assert field in response.get_json()["error"]


class TestApiBurnupFromJira:
    """Tests for POST /api/burnup backed by a JIRA query."""

    @patch("jira_burnup.web.routes.fetch_burnup")
    def test_project_builds_default_jql(self, mock_fetch, client):
        mock_fetch.return_value = build_burnup_model(
            BuildBurnupInput(
                stories=[BurnupIssue(created="2025-01-02")],
                sprint_start_iso="2025-01-06",
                dev_completion_iso="2025-06-01",
                today_iso="2025-02-01",
            )
        )
        response = client.post("/api/burnup", json={
            "project": "so", "sprint_start": "2025-01-06", "target_date": "2025-06-01",
        })
        assert response.status_code == 200
        jql = mock_fetch.call_args.args[0]
        assert jql.startswith("project = SO AND type = Story")
        assert mock_fetch.call_args.kwargs["sprint_fte"] is None

    @pytest.mark.parametrize(
        "error, status",
        [
            (ConfigNotFoundError("missing"), 503),
            (JiraAuthError("denied"), 401),
            (JiraRateLimitError("slow"), 429),
        ],
    )
    @patch("jira_burnup.web.routes.fetch_burnup")
    def test_error_mapping(self, mock_fetch, client, error, status):
        mock_fetch.side_effect = error
        response = client.post("/api/burnup", json={"jql": "project = SO"})
        assert response.status_code == status
        assert response.get_json()["error"] == str(error)

    @patch("jira_burnup.web.routes.fetch_burnup")
    def test_no_issues_is_warning(self, mock_fetch, client):
        mock_fetch.side_effect = NoIssuesFoundError("No stories found matching your query.")
        response = client.post("/api/burnup", json={"jql": "project = SO"})
        assert response.status_code == 200
        assert "warning" in response.get_json()


class TestApiBurnupDemo:
    """Tests for GET /api/burnup/demo."""

    @patch("jira_burnup.web.routes.today_ms", return_value=date_to_ms(date(2025, 3, 3)))
    def test_demo_has_signal(self, mock_today, client):
        response = client.get("/api/burnup/demo")
        assert response.status_code == 200
        body = response.get_json()
        assert body["today"] == "2025-03-03"
        assert body["hasAnyDone"] is True
        assert body["projection"]["hasSignal"] is True
        assert body["latestScope"] == 35

    @patch("jira_burnup.web.routes.today_ms", return_value=date_to_ms(date(2025, 3, 3)))
    def test_demo_rejects_bad_velocity(self, mock_today, client):
        response = client.get("/api/burnup/demo?velocity=fast")
        assert response.status_code == 400

    def test_demo_stories_include_withdrawn(self):
        stories = demo_stories(date(2025, 3, 3))
        assert len(stories) == 36
        assert sum(1 for s in stories if s["status"] == "Withdrawn") == 1
        assert sum(1 for s in stories if s["statusCategory"] == "Done") == 18
