"""JSON Advent Blueprint; the host app injects its session-based user lookup."""

from __future__ import annotations

from datetime import date
from typing import Callable, Optional, Tuple, Union

from flask import Blueprint, current_app, jsonify, request

from advent.calendar import AdventCalendar, today_in
from advent.content import DEFAULT_END_DATE
from advent.errors import AdventError, NoEligibleDrawsError
from advent.message import submit_message
from advent.records import coerce_date
from advent.reward import VOUCHER_MILESTONES

UserProvider = Callable[[], Optional[dict]]


def create_advent_blueprint(
    current_user_provider: UserProvider,
    *,
    blueprint_name: str = "advent",
    url_prefix: Optional[str] = "/advent",
    unauthorized_message: str = "Please log in to open your Advent Calendar.",
    day_override_enabled: bool = False,
) -> Blueprint:
    """Factory so the main app can inject who is allowed to play."""
    bp = Blueprint(blueprint_name, __name__, url_prefix=url_prefix)

    def _require_user() -> Union[dict, Tuple[object, int]]:
        user = current_user_provider()
        if user:
            return user
        return jsonify({"status": "error", "reason": unauthorized_message}), 401

    def _today() -> date:
        return today_in(current_app.config.get("ADVENT_TIMEZONE"))

    def _resolve_day() -> date:
        if not day_override_enabled:
            return _today()
        raw_value = request.args.get("day") or request.form.get("day")
        if not raw_value:
            return _today()
        candidate = coerce_date(raw_value)
        if candidate is None:
            raise AdventError(
                "Day override must be an ISO date like 2025-12-01.",
                payload={"status": "error", "reason": "invalid_day_override"},
            )
        return candidate

    def _calendar() -> AdventCalendar:
        return AdventCalendar(
            _resolve_day(),
            current_app.config["ADVENT_STORE"],
            milestones=current_app.config.get("ADVENT_VOUCHER_MILESTONES") or VOUCHER_MILESTONES,
            end_date=coerce_date(current_app.config.get("ADVENT_END_DATE")) or DEFAULT_END_DATE,
        )

    def _payload_value(name: str) -> str:
        body = request.get_json(silent=True) or {}
        value = body.get(name) if isinstance(body, dict) else None
        if value is None:
            value = request.form.get(name)
        return "" if value is None else str(value)

    @bp.errorhandler(AdventError)
    def _advent_error(exc: AdventError):
        if exc.status_code >= 500:
            current_app.logger.error("Advent request failed: %s", exc)
        payload = {"status": "error", **exc.payload}
        return jsonify(payload), exc.status_code

    @bp.get("")
    def view_calendar():
        user = _require_user()
        if not isinstance(user, dict):
            return user
        return jsonify({"status": "ok", **_calendar().state()})

    @bp.post("/check-in")
    def check_in():
        user = _require_user()
        if not isinstance(user, dict):
            return user
        calendar = _calendar()
        calendar.check_in()
        return jsonify({"status": "ok", **calendar.state()})

    @bp.post("/reset-check-in")
    def reset_check_in():
        user = _require_user()
        if not isinstance(user, dict):
            return user
        calendar = _calendar()
        forgot_puzzle = calendar.reset_check_in()
        return jsonify({"status": "ok", "puzzle_forgotten": forgot_puzzle, **calendar.state()})

    @bp.post("/puzzle")
    def solve_puzzle():
        user = _require_user()
        if not isinstance(user, dict):
            return user
        calendar = _calendar()
        attempt = _payload_value("puzzle_answer")
        solved = calendar.attempt_puzzle(attempt)
        payload = {"status": "ok", "correct": solved, **calendar.state()}
        if not solved:
            payload["attempt"] = attempt
            payload["reason"] = "That is not correct. Try again?"
        return jsonify(payload)

    @bp.post("/vouchers/draw")
    def draw_voucher():
        user = _require_user()
        if not isinstance(user, dict):
            return user
        calendar = _calendar()
        try:
            award = calendar.draw_voucher()
        except NoEligibleDrawsError:
            next_goal = calendar.next_milestone()
            reason = (
                f"Next draw unlocks at {next_goal} stars. Keep checking in!"
                if next_goal
                else "You have already unlocked every draw milestone."
            )
            return jsonify({"status": "error", "error": NoEligibleDrawsError.reason, "reason": reason}), 409
        return jsonify({"status": "ok", "voucher": award.to_dict(today=calendar.day)})

    @bp.post("/vouchers/<voucher_id>/redeem")
    def redeem_voucher(voucher_id: str):
        user = _require_user()
        if not isinstance(user, dict):
            return user
        calendar = _calendar()
        voucher = calendar.redeem_voucher(voucher_id)
        return jsonify({"status": "ok", "voucher": voucher.to_dict(today=calendar.day)})

    @bp.post("/messages")
    def leave_message():
        user = _require_user()
        if not isinstance(user, dict):
            return user
        entry = submit_message(_payload_value("message"), current_app.config["ADVENT_STORE"])
        return jsonify({"status": "ok", "message": entry.to_dict()}), 201

    return bp
