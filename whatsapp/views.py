import json
from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.decorators import login_required
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from objectives.utils import local_now
from . import kapso
from .decorators import cron_secret_required
from .interpreter import handle_inbound_message
from .llm import llm_messages_enabled
from .models import Reminder, WhatsAppConfig
from .payloads import extract_inbound_message, extract_status_updates
from .phones import normalize_phone
from .reminders import preview_ranking, run_reminders
from .slots import get_schedule, get_slot, resolve_slot

import logging
logger = logging.getLogger(__name__)

User = get_user_model()


def _int_param(value: Optional[str]) -> Optional[int]:
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@csrf_exempt
@cron_secret_required
@require_http_methods(['GET', 'POST'])
def run_reminders_view(request: HttpRequest) -> JsonResponse:
    """
    Cron endpoint for the WhatsApp reminder slots.

    Path: /api/whatsapp/reminders/run/
    GET: current slot, local time and schedule (no side effects);
         ?user_id= adds that user's objective ranking
    POST: run the current slot
        ?slot=NIGHT_REVIEW  force a slot (ignores the once-per-day rule)
        ?user_id=42         only this user
        ?dry_run=true       log without sending
    """
    now = timezone.now()
    forced_slot = request.GET.get('slot') or None
    user_id = _int_param(request.GET.get('user_id'))

    try:
        slot = get_slot(forced_slot) if forced_slot else resolve_slot(now)
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)}, status=400)

    if request.method == 'GET':
        data = {
            'current_slot': slot.slot_type if slot else None,
            'local_time': local_now(now).strftime('%Y-%m-%d %H:%M'),
            'schedule': get_schedule(),
            'kapso_configured': kapso.is_configured(),
            'llm_messages': llm_messages_enabled(),
        }
        if user_id is not None:
            user = User.objects.filter(pk=user_id).first()
            if user is None:
                return JsonResponse({'success': False, 'error': 'User not found'}, status=404)
            data['ranking'] = preview_ranking(user, now, slot)
        return JsonResponse(data)

    dry_run = request.GET.get('dry_run', '').lower() in ('1', 'true', 'yes')
    run = run_reminders(now, forced_slot=forced_slot, user_id=user_id, dry_run=dry_run)
    status = 200 if run.success else 502
    return JsonResponse(run.to_dict(), status=status)


def _verify_challenge(request: HttpRequest) -> HttpResponse:
    mode = request.GET.get('hub.mode')
    token = request.GET.get('hub.verify_token')
    challenge = request.GET.get('hub.challenge', '')
    if mode == 'subscribe' and token == settings.KAPSO_WEBHOOK_VERIFY_TOKEN:
        logger.info("WhatsApp webhook verified")
        return HttpResponse(challenge, content_type='text/plain')
    logger.warning("WhatsApp webhook verification failed")
    return HttpResponse('Forbidden', status=403)


@csrf_exempt
@require_http_methods(['GET', 'POST'])
def webhook(request: HttpRequest) -> HttpResponse:
    """
    Kapso webhook: subscription handshake (GET), inbound messages and
    delivery statuses (POST).

    POST always answers 200 once the signature checks out, so the vendor
    does not retry payloads we cannot use.
    """
    if request.method == 'GET':
        return _verify_challenge(request)

    if settings.KAPSO_WEBHOOK_SECRET:
        signature = request.headers.get('X-Webhook-Signature', '')
        if not signature or not kapso.verify_webhook_signature(request.body, signature):
            logger.warning("Rejected WhatsApp webhook with missing or invalid signature")
            return JsonResponse({'success': False, 'error': 'Invalid signature'}, status=403)

    try:
        payload = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning(f"Unparseable WhatsApp webhook body: {request.body[:500]!r}")
        return JsonResponse({'success': True, 'note': 'invalid json'})

    now = timezone.now()

    try:
        return _handle_payload(payload, now)
    except Exception as e:
        logger.error(f"Error processing WhatsApp webhook: {e}", exc_info=True)
        return JsonResponse({'success': True, 'note': 'processing error'})


def _handle_payload(payload, now) -> JsonResponse:
    statuses = extract_status_updates(payload)
    if statuses:
        delivered = 0
        for update in statuses:
            if update.status in ('delivered', 'read'):
                delivered += Reminder.objects.mark_delivered(update.message_id, update.timestamp or now)
        logger.info(f"Processed {len(statuses)} status update(s), {delivered} reminder(s) delivered")
        return JsonResponse({'success': True, 'statuses': len(statuses), 'delivered': delivered})

    inbound = extract_inbound_message(payload)
    if inbound is None:
        logger.info(f"No message in WhatsApp webhook payload: {json.dumps(payload)[:1000]}")
        return JsonResponse({'success': True, 'note': 'no message found'})

    logger.info(f"WhatsApp message from {inbound.sender} ({inbound.shape}): {inbound.text[:100]!r}")
    result = handle_inbound_message(inbound, now)
    return JsonResponse({'success': True, **result.to_dict()})


@login_required
@require_http_methods(['GET', 'POST'])
def whatsapp_config(request: HttpRequest) -> JsonResponse:
    """
    Read or save the signed-in user's WhatsApp number.

    Path: /api/whatsapp/config/
    POST body: {"phone_number": "987 654 321"}
    """
    if request.method == 'GET':
        config = WhatsAppConfig.objects.filter(user=request.user).first()
        return JsonResponse({
            'success': True,
            'config': config.to_dict() if config else None,
        })

    try:
        data = json.loads(request.body or b'{}')
    except json.JSONDecodeError:
        return JsonResponse({'success': False, 'error': 'Invalid JSON'}, status=400)

    phone = normalize_phone(str(data.get('phone_number') or ''))
    if not phone:
        return JsonResponse({'success': False, 'error': 'Número de teléfono requerido'}, status=400)

    config, created = WhatsAppConfig.objects.update_or_create(
        user=request.user,
        defaults={'phone_number': phone, 'is_active': True},
    )
    logger.info(f"WhatsApp config {'created' if created else 'updated'} for user {request.user.pk}: {phone}")
    return JsonResponse({
        'success': True,
        'message': 'Configuración guardada',
        'phone_number': config.phone_number,
    })
