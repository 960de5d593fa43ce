"""HTTP route handlers for the JIRA Burn-up JSON API."""

import logging
import math
from datetime import timedelta

from flask import Blueprint, jsonify, request

from jira_burnup.burnup import (
    build_burnup_model,
    build_scope_adjusted_model,
    burnup_model_to_dict,
    calibrated_velocity,
    recompute_projection_with_fte,
    recompute_projection_with_velocity,
    scope_slider_config,
    velocity_slider_bounds,
)
from jira_burnup.config import config_exists
from jira_burnup.dates import ms_to_date, today_ms
from jira_burnup.exceptions import (
    BurnupError,
    ConfigNotFoundError,
    InvalidConfigError,
    InvalidInputError,
    InvalidJqlError,
    JiraAuthError,
    JiraConnectionError,
    JiraRateLimitError,
    NoIssuesFoundError,
)
from jira_burnup.models import BuildBurnupInput, BurnupModel
from jira_burnup.normalize import issue_from_dict
from jira_burnup.service import default_story_jql, fetch_burnup

logger = logging.getLogger(__name__)

bp = Blueprint("main", __name__)


def _error(message: str, status: int):
    return jsonify({"error": message}), status


def _optional_float(payload: dict, name: str) -> float | None:
    value = payload.get(name)
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be a number")
    if not math.isfinite(number):
        raise InvalidInputError(f"{name} must be a finite number")
    return number


def _optional_int(payload: dict, name: str) -> int | None:
    value = _optional_float(payload, name)
    if value is None:
        return None
    if value < 1 or value != int(value):
        raise InvalidInputError(f"{name} must be a positive whole number")
    return int(value)


def _model_response(model: BurnupModel, payload: dict, calibrate: bool = True):
    """Apply slider adjustments from the request and serialize the model.

    A posted velocity is clamped to the slider range. Without one, a fresh
    build is re-projected at the pace needed to hit the target.
    """
    low, high = velocity_slider_bounds(model)
    velocity = _optional_float(payload, "velocity")
    if velocity is not None:
        velocity = min(max(velocity, low), high)
    elif calibrate:
        velocity = calibrated_velocity(
            model, model.projection.projected_done_per_sprint or 0.0
        )
    if velocity is not None:
        model = recompute_projection_with_velocity(model, velocity)

    scope_slider = scope_slider_config(model)
    scope_override = _optional_float(payload, "scope_override")
    if scope_override is not None and scope_slider.enabled:
        model = build_scope_adjusted_model(model, scope_override)

    body = burnup_model_to_dict(model)
    body["velocitySlider"] = {"min": low, "max": high}
    body["scopeSlider"] = {
        "enabled": scope_slider.enabled,
        "baselineScope": scope_slider.baseline_scope,
        "min": scope_slider.min,
        "max": scope_slider.max,
    }
    return jsonify(body)


@bp.route("/health")
def health():
    """Health check endpoint."""
    config_loaded = config_exists()
    if config_loaded:
        return jsonify({"status": "ok", "config_loaded": True})
    else:
        return jsonify({
            "status": "error",
            "config_loaded": False,
            "message": "Configuration not found",
        }), 503


@bp.route("/api/burnup", methods=["POST"])
def api_burnup():
    """Build a burn-up from posted stories, or from a JIRA query."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return _error("Request body must be a JSON object.", 400)

    sprint_start = str(payload.get("sprint_start") or "")
    target_date = str(payload.get("target_date") or "")
    today = payload.get("today") or None

    try:
        fte = _optional_float(payload, "fte")
        sprint_length_days = _optional_int(payload, "sprint_length_days")

        if "stories" in payload:
            raw_stories = payload["stories"]
            if not isinstance(raw_stories, list) or not all(
                isinstance(s, dict) for s in raw_stories
            ):
                raise InvalidInputError("stories must be a list of objects")
            data = BuildBurnupInput(
                stories=[issue_from_dict(s) for s in raw_stories],
                sprint_start_iso=sprint_start,
                dev_completion_iso=target_date,
                sprint_fte=fte or 0.0,
                today_iso=today,
                sprint_length_days=sprint_length_days or 14,
            )
            model = build_burnup_model(data, now_ms=today_ms())
        else:
            jql = payload.get("jql") or None
            if not jql and payload.get("project"):
                jql = default_story_jql(str(payload["project"]).strip().upper())
            model = fetch_burnup(
                jql,
                sprint_start_iso=sprint_start,
                dev_completion_iso=target_date,
                sprint_fte=fte,
                sprint_length_days=sprint_length_days,
                today_iso=today,
            )

        return _model_response(model, payload)
    except InvalidInputError as e:
        return _error(str(e), 400)
    except ConfigNotFoundError as e:
        return _error(str(e), 503)
    except InvalidConfigError as e:
        return _error(str(e), 503)
    except JiraAuthError as e:
        return _error(str(e), 401)
    except JiraRateLimitError as e:
        return _error(str(e), 429)
    except JiraConnectionError as e:
        return _error(str(e), 503)
    except InvalidJqlError as e:
        return _error(str(e), 400)
    except NoIssuesFoundError as e:
        return jsonify({"warning": str(e)}), 200
    except BurnupError as e:
        logger.exception("Burn-up request failed")
        return _error(str(e), 500)


def demo_stories(today) -> list[dict]:
    """Stories for a project that started ten weeks before ``today``."""

    def d(offset_days):
        return (today + timedelta(days=offset_days)).isoformat()

    stories = []
    for n in range(36):
        created = -70 + n * 2
        story = {
            "key": f"DEMO-{n + 1}",
            "created": d(created) + "T09:00:00.000+0000",
            "statusCategory": "To Do",
            "status": "To Do",
        }
        if n < 18:
            story.update({
                "resolutiondate": d(created + 14) + "T16:30:00.000+0000",
                "statusCategory": "Done",
                "status": "Done",
            })
        elif n < 22:
            story.update({"statusCategory": "In Progress", "status": "In Progress"})
        elif n == 30:
            story["status"] = "Withdrawn"
        stories.append(story)
    return stories


@bp.route("/api/burnup/demo")
def api_burnup_demo():
    """Burn-up built from demo stories (no JIRA credentials needed)."""
    today = ms_to_date(today_ms())
    data = BuildBurnupInput(
        stories=[issue_from_dict(s) for s in demo_stories(today)],
        sprint_start_iso=(today - timedelta(days=70)).isoformat(),
        dev_completion_iso=(today + timedelta(days=90)).isoformat(),
        sprint_fte=1.0,
        today_iso=today.isoformat(),
    )
    model = build_burnup_model(data)

    fte = request.args.get("fte", type=float)
    if fte is not None:
        model = recompute_projection_with_fte(model, fte)

    try:
        return _model_response(model, request.args.to_dict(), calibrate=fte is None)
    except InvalidInputError as e:
        return _error(str(e), 400)
