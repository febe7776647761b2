"""
Inbound WhatsApp reply handling.

An inbound message is matched to its sender, then to the sender's most
recent open reminder. The reply is resolved to an action, first against the
reminder's own option map ("1" -> "commit_today") and then with the keyword
parser kept for replies to older, option-less messages. Each action applies
one state change and answers with one confirmation.
"""
import re
import unicodedata
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

from django.contrib.auth.models import AbstractUser
from django.db import transaction

from gamification.services import record_checkin
from objectives.models import Checkin, Objective
from objectives.utils import local_today
from . import kapso
from .llm import generate_alternative_step
from .messages import (
    ACK_MESSAGES,
    DEFAULT_STEP,
    LATER_MESSAGE,
    ONBOARDING_MESSAGE,
    PAUSE_DAYS,
    RECEIVED_MESSAGE,
    WELCOME_MESSAGE,
    SlotMessage,
    build_follow_up,
    done_message,
    hint_message,
    paused_message,
    rethink_message,
)
from .models import Reminder, ResponseAction, WhatsAppConfig
from .payloads import InboundMessage
from .reminders import record_sent

import logging
logger = logging.getLogger(__name__)

GREETING_WORDS = {'hola', 'activar'}
GREETING_MESSAGES = {'hi', 'hello'}

DONE_WORDS = {'listo', 'hecho', 'done', 'si', 'ok', 'ya'}
LATER_WORDS = {'manana', 'luego', 'despues', 'later'}
LATER_PHRASES = ('no puedo',)
ALTERNATIVE_WORDS = {'otra', 'diferente', 'alternativa', 'cambiar', 'dificil'}

LEGACY_CODES = {
    '1': ResponseAction.DONE,
    '2': ResponseAction.LATER,
    '3': ResponseAction.ALTERNATIVE,
}

ALTERNATIVE_ACTIONS = {
    ResponseAction.CHANGE_STEP,
    ResponseAction.SMALLER_STEP,
    ResponseAction.STUCK,
    ResponseAction.ALTERNATIVE,
}
PENDING_STEP_ACTIONS = {
    ResponseAction.COMMIT_TODAY,
    ResponseAction.DO_NOW,
    ResponseAction.LATER,
}
PAUSE_ACTIONS = {
    ResponseAction.PAUSE_OBJECTIVE,
    ResponseAction.PAUSE_WEEK,
}

# Outcomes
ONBOARDING = 'onboarding'
UNKNOWN_SENDER = 'unknown_sender'
WELCOME = 'welcome'
ACTION = 'action'
UNRECOGNIZED = 'unrecognized'
RECEIVED = 'received'


def _fold(text: str) -> str:
    """Lowercase and strip accents so "Mañana" and "manana" compare equal."""
    decomposed = unicodedata.normalize('NFKD', text.strip().lower())
    return ''.join(c for c in decomposed if not unicodedata.combining(c))


def _words(text: str) -> set:
    return set(re.findall(r'\w+', _fold(text)))


def is_greeting(text: str) -> bool:
    folded = _fold(text)
    return folded in GREETING_MESSAGES or bool(_words(text) & GREETING_WORDS)


def _leading_code(text: str) -> Optional[str]:
    """The reply code a message starts with ("1", "2. ok"), but not "10" or "123"."""
    stripped = text.strip()
    if not stripped or not stripped[0].isdigit():
        return None
    if len(stripped) > 1 and stripped[1].isdigit():
        return None
    return stripped[0]


def resolve_contextual(text: str, response_options: Optional[Dict[str, str]]) -> Optional[str]:
    """Match the leading reply code against the reminder's option map."""
    if not response_options:
        return None
    code = _leading_code(text)
    if code is None:
        return None
    action = response_options.get(code)
    if action not in ResponseAction.values:
        return None
    return action


def parse_legacy_response(text: str) -> Optional[str]:
    """
    Keyword parsing for replies without an option map.

    Bare 1/2/3 map to done/later/alternative. Deferrals are checked before
    affirmatives so "ya no puedo" reads as later.
    """
    code = _leading_code(text)
    if code in LEGACY_CODES:
        return LEGACY_CODES[code]

    folded = _fold(text)
    words = _words(text)
    if words & LATER_WORDS or any(phrase in folded for phrase in LATER_PHRASES):
        return ResponseAction.LATER
    if words & ALTERNATIVE_WORDS:
        return ResponseAction.ALTERNATIVE
    if words & DONE_WORDS:
        return ResponseAction.DONE
    return None


def resolve_action(text: str, response_options: Optional[Dict[str, str]]) -> Optional[str]:
    return resolve_contextual(text, response_options) or parse_legacy_response(text)


@dataclass
class ActionTarget:
    """What a reply acts on: an objective and, optionally, the step it was about."""
    objective: Optional[Objective] = None
    checkin: Optional[Checkin] = None
    step_title: str = ''
    step_description: str = ''
    alternative_step: str = ''

    @classmethod
    def from_reminder(cls, reminder: Reminder) -> 'ActionTarget':
        return cls(
            objective=reminder.objective,
            checkin=reminder.checkin,
            step_title=reminder.step_title,
            step_description=reminder.step_description,
        )

    @classmethod
    def from_pending_step(cls, user: AbstractUser) -> Optional['ActionTarget']:
        """Latest pending step of an active objective, for replies outside a reminder."""
        checkin = (
            Checkin.objects.pending()
            .filter(
                objective__user=user,
                objective__status__in=Objective.ACTIVE_STATUSES,
                objective__deleted_at__isnull=True,
            )
            .select_related('objective')
            .order_by('-created_at')
            .first()
        )
        if checkin is None:
            return None
        return cls(
            objective=checkin.objective,
            checkin=checkin,
            step_title=checkin.step_title,
            step_description=checkin.step_description,
        )

    @property
    def pending_checkin(self) -> Optional[Checkin]:
        if self.checkin is not None and self.checkin.status == Checkin.Status.PENDING:
            return self.checkin
        return None

    def prepare(self, action: str) -> None:
        """Fetch the easier step an alternative reply needs, before any transaction opens."""
        if action in ALTERNATIVE_ACTIONS and self.objective is not None and not self.alternative_step:
            self.alternative_step = generate_alternative_step(self.objective.title, self.step_title)


@dataclass
class ActionOutcome:
    reply: str
    follow_up: Optional[SlotMessage] = None


@dataclass
class InterpretResult:
    outcome: str
    action: Optional[str] = None
    reply: Optional[str] = None
    user_id: Optional[int] = None
    reminder_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            'outcome': self.outcome,
            'action': self.action,
            'user_id': self.user_id,
            'reminder_id': self.reminder_id,
        }


def _complete_step(user: AbstractUser, target: ActionTarget, now: datetime) -> ActionOutcome:
    checkin = target.pending_checkin
    if checkin is not None:
        checkin.mark_done(now)
    elif target.objective is not None:
        Checkin.objects.create(
            objective=target.objective,
            step_title=target.step_title or DEFAULT_STEP,
            step_description=target.step_description or 'Micro-paso completado vía WhatsApp',
            status=Checkin.Status.DONE,
            source=Checkin.Source.WHATSAPP,
            day_date=local_today(now),
            completed_at=now,
            created_at=now,
        )

    reward = record_checkin(user, now)
    streak = target.objective.register_progress(now) if target.objective else reward.streak_days
    return ActionOutcome(reply=done_message(streak, reward.level if reward.leveled_up else None))


def _ensure_pending_step(target: ActionTarget, now: datetime) -> None:
    if target.objective is None or target.pending_checkin is not None:
        return
    Checkin.objects.add_pending(
        target.objective,
        target.step_title or DEFAULT_STEP,
        now,
        step_description=target.step_description,
    )


def _propose_alternative(target: ActionTarget, now: datetime) -> ActionOutcome:
    if target.objective is None:
        return ActionOutcome(reply=RECEIVED_MESSAGE)
    target.prepare(ResponseAction.ALTERNATIVE)
    step_title = target.alternative_step
    checkin = Checkin.objects.add_pending(
        target.objective,
        step_title,
        now,
        step_description='Alternativa sugerida vía WhatsApp',
        effort=Checkin.Effort.VERY_SMALL,
    )
    follow_up = build_follow_up(step_title)
    follow_up.checkin = checkin
    return ActionOutcome(reply=follow_up.text, follow_up=follow_up)


def apply_action(action: str, user: AbstractUser, target: ActionTarget, now: datetime) -> ActionOutcome:
    """
    Apply the state change of one action and return its confirmation.

    Raises:
        ValueError: action is outside the response vocabulary
    """
    if action == ResponseAction.DONE:
        return _complete_step(user, target, now)

    if action in PENDING_STEP_ACTIONS:
        _ensure_pending_step(target, now)
        if action == ResponseAction.LATER:
            return ActionOutcome(reply=LATER_MESSAGE)
        return ActionOutcome(reply=ACK_MESSAGES[action])

    if action in ALTERNATIVE_ACTIONS:
        return _propose_alternative(target, now)

    if action in PAUSE_ACTIONS:
        if target.objective is None:
            return ActionOutcome(reply=RECEIVED_MESSAGE)
        until = local_today(now) + timedelta(days=PAUSE_DAYS)
        target.objective.pause(until)
        return ActionOutcome(reply=paused_message(target.objective.title, until))

    if action == ResponseAction.RETHINK_OBJECTIVE:
        if target.objective is None:
            return ActionOutcome(reply=RECEIVED_MESSAGE)
        target.objective.status = Objective.Status.ADJUSTING
        target.objective.save(update_fields=['status', 'updated_at'])
        return ActionOutcome(reply=rethink_message(target.objective.title))

    if action in ACK_MESSAGES:
        return ActionOutcome(reply=ACK_MESSAGES[action])

    raise ValueError(f"Unknown response action: {action}")


def _send_reply(phone: str, text: str):
    if not kapso.is_configured():
        logger.warning(f"KAPSO_API_KEY not configured, not replying to {phone}")
        return None
    result = kapso.send_whatsapp_message(phone, text)
    if not result.success:
        logger.error(f"Failed to reply to {phone}: {result.error}")
    return result


def _send_outcome(config: WhatsAppConfig, outcome: ActionOutcome, target: ActionTarget, now: datetime) -> None:
    result = _send_reply(config.phone_number, outcome.reply)
    if outcome.follow_up is None or result is None or not result.success:
        return
    follow_up_reminder = Reminder(
        user=config.user,
        slot_type=outcome.follow_up.slot_type,
        slot_date=local_today(now),
    )
    record_sent(follow_up_reminder, outcome.follow_up, result.message_id, now, objective=target.objective)


def handle_inbound_message(inbound: InboundMessage, now: datetime) -> InterpretResult:
    """
    Interpret one inbound message and answer it.

    Args:
        inbound: normalized message from the webhook payload
        now: instant the message is processed at

    Returns:
        InterpretResult with the outcome and, when one applied, the action
    """
    text = inbound.text
    config = WhatsAppConfig.objects.find_by_phone(inbound.sender)

    if config is None:
        if is_greeting(text):
            logger.info(f"Greeting from unknown number {inbound.sender}, sending onboarding")
            _send_reply(inbound.sender, ONBOARDING_MESSAGE)
            return InterpretResult(outcome=ONBOARDING, reply=ONBOARDING_MESSAGE)
        logger.info(f"Ignoring message from unknown number {inbound.sender}")
        return InterpretResult(outcome=UNKNOWN_SENDER)

    user = config.user
    reminder = Reminder.objects.latest_open(user)

    if reminder is not None:
        action = resolve_action(text, reminder.response_options)
        if action is None:
            reply = WELCOME_MESSAGE if is_greeting(text) else hint_message(list(reminder.response_options))
            _send_reply(config.phone_number, reply)
            return InterpretResult(
                outcome=WELCOME if is_greeting(text) else UNRECOGNIZED,
                reply=reply,
                user_id=user.pk,
                reminder_id=reminder.pk,
            )

        target = ActionTarget.from_reminder(reminder)
        target.prepare(action)
        with transaction.atomic():
            outcome = apply_action(action, user, target, now)
            reminder.mark_responded(text, action, now)
        logger.info(f"User {user.pk} answered reminder {reminder.pk} with {action}")
        _send_outcome(config, outcome, target, now)
        return InterpretResult(
            outcome=ACTION,
            action=action,
            reply=outcome.reply,
            user_id=user.pk,
            reminder_id=reminder.pk,
        )

    if is_greeting(text):
        _send_reply(config.phone_number, WELCOME_MESSAGE)
        return InterpretResult(outcome=WELCOME, reply=WELCOME_MESSAGE, user_id=user.pk)

    action = parse_legacy_response(text)
    target = ActionTarget.from_pending_step(user) if action else None
    if action and target:
        target.prepare(action)
        outcome = apply_action(action, user, target, now)
        logger.info(f"User {user.pk} answered pending step {target.checkin.pk} with {action}")
        _send_outcome(config, outcome, target, now)
        return InterpretResult(outcome=ACTION, action=action, reply=outcome.reply, user_id=user.pk)

    _send_reply(config.phone_number, RECEIVED_MESSAGE)
    return InterpretResult(outcome=RECEIVED, reply=RECEIVED_MESSAGE, user_id=user.pk)
