import logging
import os
from pathlib import Path
from typing import Any, Optional

from flask import Flask, jsonify, session

from extensions import db
from advent import create_advent_blueprint
from advent.calendar import DEFAULT_TIMEZONE
from advent.store import build_store

# Try to import Supabase client
try:
    from supabase import create_client, Client  # type: ignore
except Exception:
    create_client, Client = None, None


# ====== Feature toggles ======
def _env_flag(name: str, default: bool) -> bool:
    """Parse truthy feature-toggle values from the environment."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


USE_SUPABASE = _env_flag("USE_SUPABASE", False)
ADVENT_DAY_OVERRIDE_ENABLED = _env_flag("ADVENT_DAY_OVERRIDE_ENABLED", False)


def _default_config(root_path: Path) -> dict:
    data_dir = root_path / "data"
    return {
        "USE_SUPABASE": USE_SUPABASE,
        "ADVENT_STORE_BACKEND": os.environ.get("ADVENT_STORE_BACKEND", "sql"),
        "ADVENT_DATA_PATH": os.environ.get("ADVENT_DATA_PATH", str(data_dir / "advent.json")),
        "ADVENT_CONFIG_PATH": os.environ.get("ADVENT_CONFIG_PATH"),
        "ADVENT_TIMEZONE": os.environ.get("ADVENT_TIMEZONE", DEFAULT_TIMEZONE),
        "ADVENT_END_DATE": os.environ.get("ADVENT_END_DATE"),
        "ADVENT_DAY_OVERRIDE_ENABLED": ADVENT_DAY_OVERRIDE_ENABLED,
        "SQLALCHEMY_DATABASE_URI": os.environ.get("DATABASE_URL", f"sqlite:///{data_dir / 'app.db'}"),
        "SQLALCHEMY_TRACK_MODIFICATIONS": False,
    }


def _init_supabase(app: Flask) -> Optional[Any]:
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_KEY")
    if not (app.config.get("USE_SUPABASE") and create_client and url and key):
        return None
    try:
        client = create_client(url, key)
    except Exception as exc:
        app.logger.warning("Could not init Supabase client: %s", exc)
        return None
    return client


def get_current_user() -> Optional[dict]:
    """Return the logged-in visitor from the session, or None."""
    user_id = session.get("user_id")
    if not user_id:
        return None
    return {"id": user_id, "name": session.get("user_name")}


def create_app(config: Optional[dict] = None) -> Flask:
    app = Flask(__name__)
    app.secret_key = os.environ.get("FLASK_SECRET_KEY") or os.urandom(24)

    for key, value in _default_config(Path(app.root_path)).items():
        app.config.setdefault(key, value)
    app.config.update(config or {})

    if not app.debug:
        app.logger.setLevel(logging.INFO)

    if app.config["ADVENT_STORE_BACKEND"] in ("sql", "file"):
        Path(app.root_path, "data").mkdir(parents=True, exist_ok=True)

    db.init_app(app)
    app.config.setdefault("SUPABASE_CLIENT", _init_supabase(app))

    with app.app_context():
        db.create_all()

    # one store per process; everything else gets it from app.config
    if app.config.get("ADVENT_STORE") is None:
        app.config["ADVENT_STORE"] = build_store(app)

    app.register_blueprint(
        create_advent_blueprint(
            app.config.get("ADVENT_USER_PROVIDER") or get_current_user,
            day_override_enabled=bool(app.config.get("ADVENT_DAY_OVERRIDE_ENABLED")),
        )
    )

    @app.errorhandler(404)
    @app.errorhandler(500)
    def show_error(err):
        status_code = getattr(err, "code", 500) or 500
        return jsonify({"status": "error", "reason": getattr(err, "description", "Server error")}), status_code

    return app


if __name__ == "__main__":
    create_app().run(debug=_env_flag("FLASK_DEBUG", False))
