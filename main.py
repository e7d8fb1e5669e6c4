# ------------------------------------------------------------------------------
# Main Script for the Camera Privacy Manager
# main.py
# ------------------------------------------------------------------------------
import atexit
import json

from config import get_config
config = get_config()
from logging_config import get_logger
logger = get_logger(__name__)

from core.privacy_context import PrivacyContext

# --------------------------------------------------------------------------
# Configuration Parameters
# --------------------------------------------------------------------------
_debug = config["DEBUG_MODE"]

logger.info(f"Debug mode is {'enabled' if _debug else 'disabled'}.")
_safe_config = {k: v for k, v in config.items() if k != "WEBHOOK_HEADERS"}
logger.info(f"Configuration: {json.dumps(_safe_config, indent=2)}")

# -----------------------------
# Build the Privacy Context
# -----------------------------
# Cameras are registered by the device integration through
# camera.privacy_guard.attach_guard(context, ...).
context = PrivacyContext.from_config(config)
context.start()

# Register the cleanup function
atexit.register(context.shutdown)

# -----------------------------
# Import and Run the Web Interface
# -----------------------------
from web.web_interface import create_web_interface

# Expose the Flask server as the WSGI app.
interface = create_web_interface(context)
app = interface["server"]

if __name__ == '__main__':
    try:
        interface["run"](debug=_debug, host=config["WEB_HOST"], port=config["WEB_PORT"])
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received. Shutting down privacy manager...")
        context.shutdown()
