"""
Step assignments: hand a pending step to a helper and act on their answer.

Helpers are reached over WhatsApp (Kapso) or email and answer through the
assignment's public link. Owners hear back on WhatsApp when they have an
active config, otherwise by email.
"""
from datetime import datetime
from smtplib import SMTPException
from typing import Optional

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction

from gamification.services import CheckinReward, record_checkin
from objectives.models import Checkin
from whatsapp import kapso
from whatsapp.kapso import SendResult
from whatsapp.models import WhatsAppConfig
from .models import Assignment

import logging
logger = logging.getLogger(__name__)

RESPONSES = (Assignment.Status.COMPLETED, Assignment.Status.DECLINED)


def helper_request_message(assignment: Assignment) -> str:
    message = (
        f"¡Hola {assignment.helper_name}! 👋\n\n"
        f"{assignment.owner_name()} te pide ayuda con un paso de su objetivo:\n"
        f"📌 *{assignment.checkin.step_title}*"
    )
    if assignment.custom_message:
        message += f"\n\n💬 \"{assignment.custom_message}\""
    message += f"\n\nCuando lo tengas, avísale aquí:\n{assignment.public_url}"
    return message


def helper_reminder_message(assignment: Assignment, final: bool = False) -> str:
    if final:
        return (
            f"Hola {assignment.helper_name}, último recordatorio 🙏\n\n"
            f"{assignment.owner_name()} sigue esperando tu ayuda con:\n"
            f"📌 *{assignment.checkin.step_title}*\n\n"
            f"Si no puedes, también puedes decirlo aquí:\n{assignment.public_url}"
        )
    return (
        f"Hola {assignment.helper_name} 👋 Te recuerdo el paso que te pidió {assignment.owner_name()}:\n"
        f"📌 *{assignment.checkin.step_title}*\n\n"
        f"{assignment.public_url}"
    )


def owner_response_message(assignment: Assignment) -> str:
    step = assignment.checkin.step_title
    if assignment.status == Assignment.Status.COMPLETED:
        message = f"✅ {assignment.helper_name} completó *{step}*. ¡Paso registrado!"
    else:
        message = f"🙅 {assignment.helper_name} no puede ayudarte con *{step}*."
    if assignment.response_message:
        message += f"\n\n💬 \"{assignment.response_message}\""
    return message


def owner_no_answer_message(assignment: Assignment) -> str:
    return (
        f"⏳ {assignment.helper_name} aún no responde sobre *{assignment.checkin.step_title}*. "
        f"Le envié un último recordatorio."
    )


def owner_expired_message(assignment: Assignment) -> str:
    return (
        f"⌛ La solicitud a {assignment.helper_name} para *{assignment.checkin.step_title}* expiró "
        f"sin respuesta. ¿Lo intentas tú o se lo pides a alguien más?"
    )


def _send_email(to: str, subject: str, text: str) -> SendResult:
    try:
        send_mail(
            subject=subject,
            message=text,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[to],
            fail_silently=False,
        )
    except (SMTPException, OSError) as e:
        logger.error(f"Failed to email {to}: {e}")
        return SendResult(success=False, error=str(e))
    return SendResult(success=True)


def send_to_helper(assignment: Assignment, text: str) -> SendResult:
    if assignment.contact_type == Assignment.ContactType.EMAIL:
        return _send_email(assignment.helper_contact, f"{assignment.owner_name()} te pide ayuda", text)
    return kapso.send_whatsapp_message(assignment.helper_contact, text)


def send_to_owner(assignment: Assignment, text: str) -> SendResult:
    config = WhatsAppConfig.objects.filter(user=assignment.owner, is_active=True).first()
    if config is not None and kapso.is_configured():
        result = kapso.send_whatsapp_message(config.phone_number, text)
        if result.success:
            return result
        logger.warning(f"WhatsApp to owner {assignment.owner_id} failed ({result.error}), trying email")
    if assignment.owner.email:
        return _send_email(assignment.owner.email, "Novedades de tu paso en Vicu", text)
    logger.info(f"Owner {assignment.owner_id} of assignment {assignment.pk} has no contact channel")
    return SendResult(success=False, error='owner has no contact channel')


def notify_helper(assignment: Assignment, now: datetime) -> SendResult:
    """
    Send the initial request to the helper and stamp notification_sent_at on success.

    The reminder cron only follows up on assignments that were notified.
    """
    result = send_to_helper(assignment, helper_request_message(assignment))
    if result.success:
        assignment.notification_sent_at = now
        assignment.notification_message_id = result.message_id or ''
        assignment.save(update_fields=['notification_sent_at', 'notification_message_id'])
        logger.info(f"Notified helper of assignment {assignment.pk} via {assignment.contact_type}")
    else:
        logger.warning(f"Could not notify helper of assignment {assignment.pk}: {result.error}")
    return result


def can_notify(contact_type: str) -> bool:
    return contact_type == Assignment.ContactType.EMAIL or kapso.is_configured()


def record_response(
    assignment: Assignment,
    response: str,
    now: datetime,
    message: str = '',
) -> Optional[CheckinReward]:
    """
    Store the helper's answer.

    A completed assignment completes the step for the owner: the checkin is
    marked done, the objective streak moves and the owner gets the XP.

    Returns:
        The owner's CheckinReward when the step was completed, else None

    Raises:
        ValueError: response is not completed/declined or the assignment
            was already answered
    """
    if response not in RESPONSES:
        raise ValueError(f"Invalid response: {response}")

    reward = None
    with transaction.atomic():
        assignment = Assignment.objects.select_for_update().select_related('checkin__objective').get(pk=assignment.pk)
        if assignment.status != Assignment.Status.PENDING:
            raise ValueError(f"Assignment {assignment.pk} already {assignment.status}")

        assignment.status = response
        assignment.response_message = message
        assignment.responded_at = now
        assignment.save(update_fields=['status', 'response_message', 'responded_at'])

        checkin = assignment.checkin
        if response == Assignment.Status.COMPLETED and checkin.status != Checkin.Status.DONE:
            checkin.source = Checkin.Source.HELPER
            checkin.save(update_fields=['source'])
            checkin.mark_done(now)
            checkin.objective.register_progress(now)
            reward = record_checkin(assignment.owner, now)

    logger.info(f"Helper answered assignment {assignment.pk}: {response}")
    send_to_owner(assignment, owner_response_message(assignment))
    return reward
