import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

from .exceptions import Bin2WinError

logger = logging.getLogger('bin2win.core')


def api_exception_handler(exc, context):
    """
    DRF exception handler that also understands Bin2WinError.

    Domain errors become `{'error': ..., 'code': ..., 'errors': [...]}` with the
    status code carried by the exception class. Everything else is left to DRF.
    """
    if isinstance(exc, Bin2WinError):
        request = context.get('request')
        logger.info(f"{exc.code} on {request.path if request else '-'}: {exc.message}")
        data = {'error': exc.message, 'code': exc.code}
        if exc.errors:
            data['errors'] = exc.errors
        return Response(data, status=exc.status_code)

    response = exception_handler(exc, context)
    if response is None:
        logger.error(f"Unhandled API error: {exc}", exc_info=exc)
    return response
