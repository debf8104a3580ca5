"""
Domain errors for the broadcast and display services.

They subclass DRF's ``APIException`` so a service may raise them
directly and the view layer gets the right status code for free.  The
project exception handler turns them into the ``{'ok': False, ...}``
envelope.
"""
from rest_framework import status
from rest_framework.exceptions import APIException


class BroadcastError(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'broadcast service error'
    default_code = 'server_error'
    retryable = False


class ValidationError(BroadcastError):
    """Missing or malformed input; the caller must fix the request."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'invalid input'
    default_code = 'validation_error'


class NotFoundError(BroadcastError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'not found'
    default_code = 'not_found'


class UpstreamUnavailable(BroadcastError):
    """The database could not be reached or failed; safe to retry."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'storage temporarily unavailable'
    default_code = 'upstream_unavailable'
    retryable = True


class InternalInconsistency(BroadcastError):
    """A state invariant was violated.  Never swallowed."""
    default_detail = 'internal state inconsistency'
    default_code = 'internal_inconsistency'
