"""Flask application factory for the JIRA Burn-up JSON API."""

from flask import Flask


def create_app() -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)

    app.config["SECRET_KEY"] = "jira-burnup-local-dev"
    app.json.sort_keys = False

    from jira_burnup.web.routes import bp
    app.register_blueprint(bp)

    return app
