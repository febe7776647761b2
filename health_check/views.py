from django.http import HttpRequest, JsonResponse
from django.db import connection
from django.db.utils import DatabaseError
from django.utils import timezone

from whatsapp import kapso
from whatsapp.llm import llm_configured

import logging
logger = logging.getLogger(__name__)


def health_check(request: HttpRequest) -> JsonResponse:
    """
    Health check endpoint for monitoring and load balancers.

    Verifies database connectivity and reports which vendors are configured.

    Returns:
        JsonResponse with status 200 if healthy, 500 if unhealthy
    """
    vendors = {
        'kapso_configured': kapso.is_configured(),
        'llm_configured': llm_configured(),
    }
    try:
        connection.ensure_connection()
    except DatabaseError as e:
        logger.error(f"Health check failed: {e}")
        return JsonResponse({
            'status': 'unhealthy',
            'error': str(e),
            'timestamp': timezone.now().isoformat(),
            **vendors,
        }, status=500)

    return JsonResponse({
        'status': 'healthy',
        'database': 'connected',
        'timestamp': timezone.now().isoformat(),
        **vendors,
    })
