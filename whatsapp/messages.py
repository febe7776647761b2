"""
WhatsApp copy: slot reminder templates and reply confirmations.

Every slot template carries its reply options. The option map
({"1": "commit_today", ...}) is stored on the Reminder and is what the
webhook interpreter resolves numeric replies against, so the labels shown
to the user and the stored map always come from the same tuple.
"""
from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional, Sequence, Tuple

from objectives.context import DayContext, ObjectiveContext
from objectives.models import Checkin
from objectives.utils import local_today
from .models import ResponseAction, SlotType

DIGIT_EMOJI = {'1': '1️⃣', '2': '2️⃣', '3': '3️⃣'}

MICRO_STEPS = (
    "Abre el documento/app relacionado",
    "Escribe solo 1 oración sobre el tema",
    "Busca 1 recurso que te ayude",
    "Envía 1 mensaje a alguien que pueda ayudarte",
    "Dedica solo 5 minutos al objetivo",
)
DEFAULT_STEP = "Avanza un paso"
FALLBACK_ALTERNATIVE_STEP = "Pensar en el siguiente paso por 1 minuto"
STALLED_DAYS = 3
PAUSE_DAYS = 7


@dataclass(frozen=True)
class ResponseOption:
    code: str
    action: str
    label: str


MORNING_FOCUS_OPTIONS = (
    ResponseOption('1', ResponseAction.COMMIT_TODAY, 'Lo haré hoy'),
    ResponseOption('2', ResponseAction.CHANGE_STEP, 'Cambiar paso'),
    ResponseOption('3', ResponseAction.PAUSE_OBJECTIVE, 'Pausar objetivo'),
)
LATE_MORNING_OPTIONS = (
    ResponseOption('1', ResponseAction.SMALLER_STEP, 'Necesito un paso más pequeño'),
    ResponseOption('2', ResponseAction.LATER, 'Más tarde'),
    ResponseOption('3', ResponseAction.STUCK, 'Me trabé'),
)
AFTERNOON_MICRO_OPTIONS = (
    ResponseOption('1', ResponseAction.DO_NOW, 'Lo hago ahora'),
    ResponseOption('2', ResponseAction.SKIP_TODAY, 'Hoy ya fue'),
)
NIGHT_PROGRESS_OPTIONS = (
    ResponseOption('1', ResponseAction.FEELING_GOOD, 'Bien'),
    ResponseOption('2', ResponseAction.FEELING_TIRED, 'Cansado'),
    ResponseOption('3', ResponseAction.FEELING_MEH, 'Meh'),
)
NIGHT_STALLED_OPTIONS = (
    ResponseOption('1', ResponseAction.RETHINK_OBJECTIVE, 'Replantear objetivo'),
    ResponseOption('2', ResponseAction.KEEP_SAME, 'Mantenerlo igual'),
    ResponseOption('3', ResponseAction.PAUSE_WEEK, 'Pausarlo 1 semana'),
)
NIGHT_NO_PROGRESS_OPTIONS = (
    ResponseOption('1', ResponseAction.STILL_PRIORITY, 'Sigue siendo prioridad'),
    ResponseOption('2', ResponseAction.MAYBE_PAUSE, 'Quizás pausar una semana'),
    ResponseOption('3', ResponseAction.UNSURE, 'No sé'),
)
FOLLOW_UP_OPTIONS = (
    ResponseOption('1', ResponseAction.DONE, 'Listo'),
    ResponseOption('2', ResponseAction.LATER, 'Mañana'),
)


def format_options(options: Sequence[ResponseOption], heading: str = 'Responde:') -> str:
    lines = [f"{DIGIT_EMOJI.get(o.code, o.code)} {o.label}" for o in options]
    return '\n'.join([heading, *lines]) if heading else '\n'.join(lines)


def options_map(options: Sequence[ResponseOption]) -> Dict[str, str]:
    return {o.code: str(o.action) for o in options}


@dataclass
class SlotMessage:
    """A reminder ready to send: copy, reply options and what it is about."""
    slot_type: str
    body: str
    options: Tuple[ResponseOption, ...]
    objective_context: Optional[ObjectiveContext] = None
    step_title: str = ''
    step_description: str = ''
    checkin: Optional[Checkin] = None
    style: str = ''
    options_heading: str = 'Responde:'

    @property
    def text(self) -> str:
        return f"{self.body}\n\n{format_options(self.options, self.options_heading)}"

    @property
    def response_options(self) -> Dict[str, str]:
        return options_map(self.options)

    @property
    def objective(self):
        return self.objective_context.objective if self.objective_context else None


def pick_micro_step(ctx: ObjectiveContext, today: date) -> str:
    """Deterministic per objective and day, so a retried run proposes the same step."""
    index = (today.toordinal() + ctx.id) % len(MICRO_STEPS)
    return MICRO_STEPS[index]


def build_morning_focus(ctx: ObjectiveContext) -> SlotMessage:
    step = ctx.next_step
    step_title = step.step_title if step else DEFAULT_STEP
    body = (
        f"🎯 Hoy tu foco es: *{ctx.title}*\n\n"
        f"Tu siguiente paso mínimo:\n"
        f"📌 {step_title}"
    )
    return SlotMessage(
        slot_type=SlotType.MORNING_FOCUS,
        body=body,
        options=MORNING_FOCUS_OPTIONS,
        objective_context=ctx,
        step_title=step_title,
        step_description=step.step_description if step else '',
        checkin=step,
    )


def build_late_morning_push(ctx: ObjectiveContext) -> SlotMessage:
    step = ctx.next_step
    body = f"Aún no avanzas en *{ctx.title}* hoy."
    if step:
        body += f"\n\nTu paso pendiente: {step.step_title}"
    return SlotMessage(
        slot_type=SlotType.LATE_MORNING_PUSH,
        body=body,
        options=LATE_MORNING_OPTIONS,
        objective_context=ctx,
        step_title=step.step_title if step else '',
        step_description=step.step_description if step else '',
        checkin=step,
    )


def build_afternoon_micro(ctx: ObjectiveContext, today: date) -> SlotMessage:
    micro_step = pick_micro_step(ctx, today)
    body = (
        f"Te propongo un paso ridículamente pequeño para *{ctx.title}*:\n\n"
        f"📌 *{micro_step}* (≤ 5 min)"
    )
    return SlotMessage(
        slot_type=SlotType.AFTERNOON_MICRO,
        body=body,
        options=AFTERNOON_MICRO_OPTIONS,
        objective_context=ctx,
        step_title=micro_step,
        step_description='Micro-paso sugerido vía WhatsApp',
    )


def build_night_review(ctx: ObjectiveContext, had_progress: bool) -> SlotMessage:
    if had_progress:
        return SlotMessage(
            slot_type=SlotType.NIGHT_REVIEW,
            body=f"✅ Hoy avanzaste en *{ctx.title}*.",
            options=NIGHT_PROGRESS_OPTIONS,
            objective_context=ctx,
            options_heading='¿Cómo te sientes?',
        )

    if ctx.days_without_progress >= STALLED_DAYS:
        return SlotMessage(
            slot_type=SlotType.NIGHT_REVIEW,
            body=f"Llevas {ctx.days_without_progress} días sin avanzar en *{ctx.title}*.",
            options=NIGHT_STALLED_OPTIONS,
            objective_context=ctx,
        )

    return SlotMessage(
        slot_type=SlotType.NIGHT_REVIEW,
        body=f"Hoy no moviste *{ctx.title}*.",
        options=NIGHT_NO_PROGRESS_OPTIONS,
        objective_context=ctx,
    )


def build_slot_message(slot_type: str, ctx: ObjectiveContext, day: DayContext) -> Optional[SlotMessage]:
    """
    Build the templated reminder for a slot.

    Returns:
        SlotMessage, or None when the slot does not apply (the mid-day
        nudges are only sent while the user has no progress today)
    """
    if slot_type == SlotType.MORNING_FOCUS:
        return build_morning_focus(ctx)
    if slot_type == SlotType.LATE_MORNING_PUSH:
        if day.has_progress_today:
            return None
        return build_late_morning_push(ctx)
    if slot_type == SlotType.AFTERNOON_MICRO:
        if day.has_progress_today:
            return None
        return build_afternoon_micro(ctx, local_today(day.now))
    if slot_type == SlotType.NIGHT_REVIEW:
        return build_night_review(ctx, had_progress=ctx.has_progress_today)
    raise ValueError(f"No template for slot {slot_type}")


def build_follow_up(step_title: str) -> SlotMessage:
    """The 'easier step' prompt sent after change_step/smaller_step/stuck/alternative."""
    return SlotMessage(
        slot_type=SlotType.FOLLOW_UP,
        body=f"Ok, ¿qué tal esto?\n→ {step_title}",
        options=FOLLOW_UP_OPTIONS,
        step_title=step_title,
        options_heading='',
    )


# Replies to inbound messages

ONBOARDING_MESSAGE = (
    "¡Hola! 👋 Para recibir recordatorios, primero activa WhatsApp desde Vicu:\n\n"
    "1. Entra a vicu.vercel.app\n"
    "2. Toca el ícono de WhatsApp\n"
    "3. Ingresa tu número"
)
WELCOME_MESSAGE = (
    "¡Hola! 👋 Ya estás conectado a Vicu. "
    "Te escribiré con tus recordatorios; responde con el número de la opción que elijas."
)
RECEIVED_MESSAGE = "👍 Recibido. Te escribo en el próximo recordatorio."
LATER_MESSAGE = "👍 Te recuerdo mañana temprano."

ACK_MESSAGES = {
    ResponseAction.COMMIT_TODAY: "💪 ¡Vamos! Cuando lo termines, responde *listo*.",
    ResponseAction.DO_NOW: "⚡ ¡Dale! Son solo 5 minutos. Responde *listo* al terminar.",
    ResponseAction.SKIP_TODAY: "👌 Ok, hoy descansamos. Mañana seguimos.",
    ResponseAction.FEELING_GOOD: "🙌 ¡Qué bien! Mañana seguimos con esa energía.",
    ResponseAction.FEELING_TIRED: "😴 Descansa. Mañana te propongo algo más liviano.",
    ResponseAction.FEELING_MEH: "🙂 Gracias por contarme. Un paso a la vez.",
    ResponseAction.KEEP_SAME: "👍 Lo mantenemos igual. Mañana te escribo.",
    ResponseAction.STILL_PRIORITY: "💪 Perfecto, mañana le damos prioridad.",
    ResponseAction.MAYBE_PAUSE: "🤔 Ok. Si mañana sigue sin avanzar, te propongo pausarlo.",
    ResponseAction.UNSURE: "🙂 Está bien no saber. Mañana lo vemos con calma.",
}


def done_message(streak_days: int, leveled_up_to: Optional[int] = None) -> str:
    plural = 's' if streak_days > 1 else ''
    message = f"✅ ¡Hecho! Paso registrado.\n🔥 Racha: {streak_days} día{plural}\n\nMañana seguimos 💪"
    if leveled_up_to:
        message += f"\n⭐ Subiste a nivel {leveled_up_to}"
    return message


def paused_message(title: str, until: date) -> str:
    return f"⏸️ Pausé *{title}* hasta el {until:%d/%m}. Te vuelvo a escribir ese día."


def rethink_message(title: str) -> str:
    return f"🔄 Marqué *{title}* para replantear. Entra a Vicu y ajustamos el objetivo juntos."


def hint_message(codes: Sequence[str]) -> str:
    codes = sorted(codes) or ['1', '2', '3']
    if len(codes) == 1:
        joined = codes[0]
    else:
        joined = f"{', '.join(codes[:-1])} o {codes[-1]}"
    return f"No entendí. Responde {joined}."
