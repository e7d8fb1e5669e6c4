import json

import requests

USER_AGENT = "CameraPrivacyManager/1.0"
DEFAULT_TIMEOUT = 10.0


class WebhookDeliveryError(Exception):
    """Raised when the endpoint answers with a non-2xx status."""

    def __init__(self, status_code, reason=""):
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"HTTP {status_code}: {reason}".rstrip(": "))


def build_headers(extra_headers=None):
    """
    Returns the request headers: JSON content type, the fixed User-Agent
    and any operator-configured headers (which win on conflict).
    """
    headers = {
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }
    if extra_headers:
        headers.update(extra_headers)
    return headers


def send_webhook(url, payload, extra_headers=None, timeout=DEFAULT_TIMEOUT):
    """
    POSTs a JSON payload to the webhook endpoint.

    :param url: Endpoint URL.
    :param payload: JSON-serialisable dict.
    :param extra_headers: Optional dict merged over the default headers.
    :param timeout: Seconds before the transport gives up.
    :raises WebhookDeliveryError: On a non-2xx response.
    :raises requests.RequestException: On transport errors.
    """
    response = requests.post(
        url,
        data=json.dumps(payload),
        headers=build_headers(extra_headers),
        timeout=timeout,
    )
    if not 200 <= response.status_code < 300:
        raise WebhookDeliveryError(response.status_code, response.reason or "")
    return response
