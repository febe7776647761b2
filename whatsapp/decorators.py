import hmac
from functools import wraps

from django.conf import settings
from django.http import JsonResponse


def cron_secret_required(view_func):
    """
    Require "Authorization: Bearer <CRON_SECRET>" when CRON_SECRET is set.

    Without a configured secret the endpoint stays open, which is what local
    development and the test suite rely on.
    """
    @wraps(view_func)
    def _wrapped_view(request, *args, **kwargs):
        secret = settings.CRON_SECRET
        if secret:
            auth_header = request.headers.get('Authorization', '')
            if not hmac.compare_digest(auth_header, f'Bearer {secret}'):
                return JsonResponse({'success': False, 'error': 'Unauthorized'}, status=401)
        return view_func(request, *args, **kwargs)
    return _wrapped_view
