# ------------------------------------------------------------------------------
# web_interface.py
# ------------------------------------------------------------------------------

import logging

from flask import Flask, jsonify

from web.blueprints.privacy_api import privacy_api


def create_web_interface(context):
    """
    Creates and returns the Flask server exposing the privacy API.

    Args:
        context: The application's PrivacyContext.

    Returns:
        Dict with the Flask ``server`` and a ``run`` function.
    """
    logger = logging.getLogger(__name__)

    server = Flask(__name__)

    privacy_api.context = context
    server.register_blueprint(privacy_api)

    @server.route("/health")
    def health():
        return jsonify({"status": "ok"})

    def run(debug=False, host="0.0.0.0", port=8050):
        logger.info(f"Starting privacy API on {host}:{port}")
        server.run(debug=debug, host=host, port=port, use_reloader=False)

    return {"server": server, "run": run}
