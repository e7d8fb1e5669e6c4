"""
Privacy API Blueprint.

Endpoints under /api/privacy/* for operators and home automation:
status, panic mode, profile management, camera and default settings,
audit export and retention, schedule re-evaluation and webhook setup.

The PrivacyContext is attached as ``privacy_api.context`` by
create_web_interface().
"""

from flask import Blueprint, Response, jsonify, request

from logging_config import get_logger
from web.services import privacy_service

logger = get_logger(__name__)

# Create Blueprint
privacy_api = Blueprint("privacy_api", __name__, url_prefix="/api/privacy")
privacy_api.context = None


def _context():
    context = privacy_api.context
    if context is None:
        raise RuntimeError("Privacy API used before a PrivacyContext was attached")
    return context


def _not_found(e: KeyError):
    message = e.args[0] if e.args else "Not found"
    return jsonify({"status": "error", "message": message}), 404


def _invalid(errors: list[str]):
    return jsonify({"status": "error", "errors": errors}), 400


@privacy_api.route("/status", methods=["GET"])
def status():
    return jsonify(privacy_service.get_status(_context()))


@privacy_api.route("/panic", methods=["GET", "POST"])
def panic():
    context = _context()
    if request.method == "GET":
        return jsonify({"panic_mode": context.is_panic_mode_active()})

    payload = request.get_json(silent=True) or {}
    if "enabled" not in payload:
        return jsonify({"status": "error", "message": "Missing 'enabled'"}), 400

    result = privacy_service.set_panic_mode(context, payload["enabled"])
    logger.info(f"Panic mode set to {result['panic_mode']} via API")
    return jsonify(result)


@privacy_api.route("/profiles", methods=["GET"])
def profiles():
    return jsonify(privacy_service.list_profiles(_context()))


@privacy_api.route("/profiles", methods=["POST"])
def create_profile():
    profile, errors = privacy_service.create_profile(
        _context(), request.get_json(silent=True)
    )
    if errors:
        return _invalid(errors)
    logger.info(f"Profile {profile['name']} created via API")
    return jsonify({"status": "success", "profile": profile}), 201


@privacy_api.route("/profiles/<profile_id>", methods=["PUT"])
def update_profile(profile_id):
    try:
        profile, errors = privacy_service.update_profile(
            _context(), profile_id, request.get_json(silent=True)
        )
    except KeyError as e:
        return _not_found(e)

    if errors:
        return _invalid(errors)
    return jsonify({"status": "success", "profile": profile})


@privacy_api.route("/profiles/<profile_id>", methods=["DELETE"])
def delete_profile(profile_id):
    try:
        privacy_service.delete_profile(_context(), profile_id)
    except KeyError as e:
        return _not_found(e)
    return jsonify({"status": "success"})


@privacy_api.route("/profiles/<profile_id>/activate", methods=["POST"])
def activate_profile(profile_id):
    try:
        return jsonify(privacy_service.activate_profile(_context(), profile_id))
    except KeyError as e:
        return _not_found(e)


@privacy_api.route("/profiles/<profile_id>/deactivate", methods=["POST"])
def deactivate_profile(profile_id):
    try:
        return jsonify(privacy_service.deactivate_profile(_context(), profile_id))
    except KeyError as e:
        return _not_found(e)


@privacy_api.route("/cameras/<camera_id>", methods=["GET"])
def camera(camera_id):
    try:
        return jsonify(privacy_service.get_camera(_context(), camera_id))
    except KeyError as e:
        return _not_found(e)


@privacy_api.route("/cameras/<camera_id>/settings", methods=["POST"])
def camera_settings(camera_id):
    payload = request.get_json(silent=True)
    try:
        success, errors = privacy_service.update_camera_settings(
            _context(), camera_id, payload
        )
    except KeyError as e:
        return _not_found(e)

    if not success:
        return _invalid(errors)
    return jsonify({"status": "success"})


@privacy_api.route("/settings/defaults", methods=["GET", "PUT"])
def default_settings():
    context = _context()
    if request.method == "GET":
        return jsonify(privacy_service.get_default_settings(context))

    settings, errors = privacy_service.set_default_settings(
        context, request.get_json(silent=True)
    )
    if errors:
        return _invalid(errors)
    return jsonify({"status": "success", "settings": settings})


@privacy_api.route("/audit", methods=["GET"])
def audit():
    fmt = request.args.get("format", "json")
    count = request.args.get("count", type=int)
    result = privacy_service.get_audit_log(_context(), fmt=fmt, count=count)
    if fmt == "text":
        return Response(result, mimetype="text/plain")
    return jsonify(result)


@privacy_api.route("/audit", methods=["DELETE"])
def clear_audit():
    privacy_service.clear_audit_log(_context())
    return jsonify({"status": "success"})


@privacy_api.route("/audit/retention", methods=["PUT"])
def audit_retention():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict) or "days" not in payload:
        return _invalid(["Missing 'days'"])

    result, errors = privacy_service.set_retention_days(_context(), payload["days"])
    if errors:
        return _invalid(errors)
    return jsonify({"status": "success", **result})


@privacy_api.route("/schedules/check", methods=["POST"])
def schedules_check():
    return jsonify(privacy_service.force_schedule_check(_context()))


@privacy_api.route("/webhook/test", methods=["POST"])
def webhook_test():
    result = privacy_service.run_webhook_test(_context())
    return jsonify(result), (200 if result["success"] else 502)


@privacy_api.route("/webhook", methods=["GET", "PUT"])
def webhook():
    context = _context()
    if request.method == "GET":
        return jsonify({"webhook": privacy_service.get_webhook_config(context)})

    config, errors = privacy_service.set_webhook_config(
        context, request.get_json(silent=True)
    )
    if errors:
        return _invalid(errors)
    logger.info(f"Webhook {'configured' if config else 'disabled'} via API")
    return jsonify({"status": "success", "webhook": config})
