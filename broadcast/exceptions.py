import logging

from rest_framework import exceptions as drf_exceptions
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from broadcast.errors import BroadcastError

logger = logging.getLogger(__name__)


def _error_code(exc) -> str:
    if isinstance(exc, BroadcastError):
        return exc.default_code
    if isinstance(exc, drf_exceptions.ValidationError):
        return 'validation_error'
    if isinstance(exc, drf_exceptions.NotFound):
        return 'not_found'
    return 'api_error'


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.error('Unhandled API error: %s', exc, exc_info=exc)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    error = {'code': _error_code(exc), 'message': detail}
    if isinstance(exc, BroadcastError):
        error['retryable'] = exc.retryable
        if resp.status_code >= 500:
            logger.error('%s: %s', exc.default_code, detail)
    resp.data = {'ok': False, 'error': error}
    return resp
