import logging

from django.db import Error as DBError, connections
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def healthz(request):
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
        return JsonResponse({'ok': True, 'db': bool(row and row[0] == 1)})
    except DBError as e:
        logger.warning('Health check failed: %s', e)
        return JsonResponse({'ok': False, 'error': str(e)}, status=503)
