import json
import logging
import time

logger = logging.getLogger(__name__)

# Raw bodies on these paths carry payment data and are only trusted with
# their signature, so they are never written to the log.
UNLOGGED_BODY_PREFIXES = ("/api/webhooks/",)
REDACTED_FIELDS = {"password", "card_number", "cvv", "client_secret", "client_handle"}
MAX_LOGGED_BODY = 2000


def _redact(body: str) -> str:
    try:
        data = json.loads(body)
    except ValueError:
        return body[:MAX_LOGGED_BODY]
    if isinstance(data, dict):
        data = {k: "***" if k in REDACTED_FIELDS else v for k, v in data.items()}
    return json.dumps(data, default=str)[:MAX_LOGGED_BODY]


class RequestResponseLoggingMiddleware:
    """
    Logs every API call: method, path, caller, status and duration, plus
    request and response bodies with credentials and checkout handles masked.
    Webhook bodies are never logged.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        skip_body = request.path.startswith(UNLOGGED_BODY_PREFIXES)
        request_body = ""
        content_type = request.META.get("CONTENT_TYPE", "")

        if skip_body:
            request_body = "<Webhook body not logged>"
        elif "multipart/form-data" in content_type:
            request_body = "<Multipart form data - body not logged>"
        elif request.method in ["POST", "PUT", "PATCH"] and request.body:
            try:
                request_body = _redact(request.body.decode("utf-8"))
            except UnicodeDecodeError:
                request_body = "<Could not decode body>"

        logger.info(
            f"API Request: {request.method} {request.get_full_path()} Body: {request_body}"
        )

        started = time.monotonic()
        response = self.get_response(request)
        elapsed_ms = (time.monotonic() - started) * 1000

        user = getattr(request, "user", None)
        user_id = user.pk if user is not None and user.is_authenticated else "-"
        response_type = response.get("Content-Type", "")

        if skip_body:
            response_content = "<Webhook response not logged>"
        elif getattr(response, "streaming", False):
            response_content = "<Streaming content>"
        elif response_type.startswith("application/json"):
            try:
                response_content = _redact(response.content.decode("utf-8"))
            except UnicodeDecodeError:
                response_content = "<Could not decode content>"
        else:
            response_content = f"<Content-Type: {response_type}>"

        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            f"API Response: {request.method} {request.get_full_path()} user={user_id} "
            f"Status: {response.status_code} ({elapsed_ms:.0f} ms) Content: {response_content}"
        )

        return response
