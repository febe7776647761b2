import json

from django.contrib.auth.decorators import login_required
from django.http import HttpRequest, JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods, require_POST

from objectives.models import Checkin
from whatsapp import kapso
from whatsapp.decorators import cron_secret_required
from whatsapp.phones import normalize_phone
from .models import Assignment
from .reminders import send_assignment_reminders
from .services import RESPONSES, can_notify, notify_helper, record_response

import logging
logger = logging.getLogger(__name__)


def _json_body(request: HttpRequest):
    try:
        data = json.loads(request.body or b'{}')
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


@login_required
@require_POST
def create_assignment(request: HttpRequest) -> JsonResponse:
    """
    Hand one of the signed-in user's pending steps to a helper.

    Path: /api/assignments/
    POST body: {"checkin_id": 1, "helper_name": "Ana", "helper_contact": "987654321",
                "contact_type": "whatsapp", "custom_message": "..."}
    """
    data = _json_body(request)
    if data is None:
        return JsonResponse({'success': False, 'error': 'Invalid JSON'}, status=400)

    checkin_id = data.get('checkin_id')
    helper_name = str(data.get('helper_name') or '').strip()
    helper_contact = str(data.get('helper_contact') or '').strip()
    contact_type = data.get('contact_type') or ''
    if not checkin_id or not helper_name or not helper_contact or not contact_type:
        return JsonResponse({'success': False, 'error': 'Faltan campos requeridos'}, status=400)
    if contact_type not in Assignment.ContactType.values:
        return JsonResponse(
            {'success': False, 'error': "contact_type debe ser 'whatsapp' o 'email'"},
            status=400,
        )

    checkin = Checkin.objects.select_related('objective').filter(pk=checkin_id).first()
    if checkin is None:
        return JsonResponse({'success': False, 'error': 'Paso no encontrado'}, status=404)
    if checkin.objective.user_id != request.user.pk:
        return JsonResponse({'success': False, 'error': 'No tienes permiso para asignar este paso'}, status=403)

    if contact_type == Assignment.ContactType.WHATSAPP:
        helper_contact = normalize_phone(helper_contact)

    now = timezone.now()
    assignment = Assignment.objects.create_for_checkin(
        owner=request.user,
        checkin=checkin,
        helper_name=helper_name,
        helper_contact=helper_contact,
        contact_type=contact_type,
        now=now,
        custom_message=str(data.get('custom_message') or '').strip(),
    )
    logger.info(f"User {request.user.pk} assigned checkin {checkin.pk} to {helper_name} ({contact_type})")

    notification_sent = False
    notification_error = None
    if can_notify(contact_type):
        result = notify_helper(assignment, now)
        notification_sent = result.success
        notification_error = result.error

    return JsonResponse({
        'success': True,
        'assignment': assignment.to_dict(),
        'public_url': assignment.public_url,
        'notification_sent': notification_sent,
        'notification_error': notification_error,
    })


@csrf_exempt
@require_http_methods(['GET', 'POST'])
def assignment_detail(request: HttpRequest, token: str) -> JsonResponse:
    """
    Public endpoint behind the helper's link.

    Path: /api/assignments/<token>/
    GET: what is being asked
    POST body: {"response": "completed" | "declined", "message": "..."}
    """
    now = timezone.now()

    if request.method == 'POST':
        data = _json_body(request)
        if data is None:
            return JsonResponse({'success': False, 'error': 'Invalid JSON'}, status=400)
        response = data.get('response')
        if response not in RESPONSES:
            return JsonResponse(
                {'success': False, 'error': "response debe ser 'completed' o 'declined'"},
                status=400,
            )

    assignment = (
        Assignment.objects.select_related('owner', 'checkin__objective')
        .filter(access_token=token)
        .first()
    )
    if assignment is None:
        return JsonResponse({'success': False, 'error': 'Solicitud no encontrada'}, status=404)

    if assignment.is_expired(now):
        if assignment.status == Assignment.Status.PENDING:
            assignment.mark_expired()
        return JsonResponse({'success': False, 'error': 'Esta solicitud ha expirado'}, status=410)

    if request.method == 'GET':
        return JsonResponse({'success': True, 'assignment': assignment.to_public_dict()})

    if assignment.status != Assignment.Status.PENDING:
        return JsonResponse({'success': False, 'error': 'Esta solicitud ya fue respondida'}, status=409)

    try:
        record_response(assignment, response, now, message=str(data.get('message') or '').strip())
    except ValueError:
        # Answered concurrently
        return JsonResponse({'success': False, 'error': 'Esta solicitud ya fue respondida'}, status=409)

    return JsonResponse({
        'success': True,
        'message': '¡Gracias por tu ayuda!' if response == Assignment.Status.COMPLETED
        else 'Entendido, gracias por avisar.',
    })


@csrf_exempt
@cron_secret_required
@require_http_methods(['GET', 'POST'])
def run_assignment_reminders_view(request: HttpRequest) -> JsonResponse:
    """
    Daily cron endpoint for helper follow-ups.

    Path: /api/assignments/reminders/run/
    """
    if not kapso.is_configured():
        logger.warning("KAPSO_API_KEY not configured, skipping assignment reminders")
        return JsonResponse({'success': True, 'skipped': True, 'reason': 'KAPSO_API_KEY not configured'})

    run = send_assignment_reminders(timezone.now())
    return JsonResponse(run.to_dict(), status=200 if run.success else 502)
