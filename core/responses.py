"""
Success envelope for API responses.

Paginated lists are wrapped by StandardPagination; everything else goes
through success_response() or EnvelopeMixin so clients always see
``{"success": true, "data": ...}``.
"""
from rest_framework import status
from rest_framework.response import Response


def success_response(data=None, message=None, status_code=status.HTTP_200_OK):
    body = {'success': True}
    if message:
        body['message'] = message
    if data is not None:
        body['data'] = data
    return Response(body, status=status_code)


class EnvelopeMixin:
    """Wrap generic view responses that are not already enveloped."""

    def finalize_response(self, request, response, *args, **kwargs):
        data = getattr(response, 'data', None)
        if (
            status.is_success(response.status_code)
            and data is not None
            and not (isinstance(data, dict) and 'success' in data)
        ):
            response.data = {'success': True, 'data': data}
        return super().finalize_response(request, response, *args, **kwargs)
