from rest_framework.response import Response

from airswitch.exceptions import AirswitchError


def error_response(exc: AirswitchError) -> Response:
    return Response(exc.as_dict(), status=exc.status_code)
