from django.contrib.auth.decorators import login_required
from django.http import HttpRequest, JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET

from objectives.utils import local_today
from .services import get_or_create_stats


@login_required
@require_GET
def user_stats(request: HttpRequest) -> JsonResponse:
    """
    XP, level, streak and badges of the signed-in user.

    Path: /api/gamification/stats/
    Method: GET
    """
    stats = get_or_create_stats(request.user)
    return JsonResponse(stats.to_dict(today=local_today(timezone.now())))
