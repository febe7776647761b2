"""
LLM-written reminder copy.

The model only rewrites the body of a slot reminder in one of a handful of
styles; the reply options always come from the slot template. Any failure
(API error, unparsable JSON, empty text) falls back to a fixed template of
the same style, so a send is never aborted because of the LLM.
"""
import json
from typing import Dict, List, Sequence

from django.conf import settings
from openai import OpenAI

from objectives.context import ObjectiveContext
from .messages import DEFAULT_STEP, FALLBACK_ALTERNATIVE_STEP, SlotMessage
from .models import SlotType

import logging
logger = logging.getLogger(__name__)

MOTIVATIONAL = 'motivational'
TACTICAL = 'tactical'
REFLECTIVE = 'reflective'
CELEBRATORY = 'celebratory'
GENTLE = 'gentle'
CURIOUS = 'curious'

STYLES = (MOTIVATIONAL, TACTICAL, REFLECTIVE, CELEBRATORY, GENTLE, CURIOUS)
STYLE_MEMORY = 2
HISTORY_SIZE = 8

STYLE_GUIDES = {
    MOTIVATIONAL: "Energía y empuje; resalta la racha y el progreso acumulado.",
    TACTICAL: "Directo y práctico; nombra el siguiente paso concreto.",
    REFLECTIVE: "Calmado; invita a pensar qué funcionó y qué no.",
    CELEBRATORY: "Festeja el avance de hoy sin exagerar.",
    GENTLE: "Sin culpa ni presión; propone retomar con algo mínimo.",
    CURIOUS: "Haz una pregunta que despierte curiosidad por avanzar.",
}

STYLE_TEMPLATES = {
    MOTIVATIONAL: "🔥 Llevas {streak} día{streak_plural} de racha con *{title}*. ¡No la sueltes hoy!\n📌 {step}",
    TACTICAL: "📋 *{title}*: tu siguiente paso concreto es\n📌 {step}",
    REFLECTIVE: "🌙 Piensa un momento en *{title}*: ¿qué te acercó hoy y qué te frenó?",
    CELEBRATORY: "🎉 ¡Ya avanzaste hoy en *{title}*! Cada paso cuenta.",
    GENTLE: "🌱 Sin presión: han pasado {days} días desde tu último avance en *{title}*. Un paso mínimo basta.\n📌 {step}",
    CURIOUS: "🤔 ¿Qué sería lo más pequeño que podrías hacer hoy por *{title}*?\n📌 {step}",
}

REMINDER_SYSTEM_PROMPT = """Eres Vicu, un coach breve y cálido que escribe recordatorios por WhatsApp en español.

REGLAS:
- Máximo 280 caracteres
- Usa *negritas* de WhatsApp solo para el nombre del objetivo
- Máximo 2 emojis
- No incluyas opciones numeradas; se agregan después
- No repitas frases de los mensajes anteriores
- Estilo: {style} ({guide})

Responde SOLO con un objeto JSON: {{"message": "<texto>"}}"""

ALTERNATIVE_SYSTEM_PROMPT = """El usuario dijo que no puede hacer la acción sugerida. Genera una alternativa MÁS FÁCIL.

REGLAS:
- Acción más pequeña/fácil que la original
- Que se pueda hacer en 1 minuto
- Máximo 10 palabras
- Sin emojis
- Empezar con verbo en infinitivo"""


def llm_configured() -> bool:
    return bool(settings.OPENAI_API_KEY)


def llm_messages_enabled() -> bool:
    return settings.VICU_LLM_MESSAGES and llm_configured()


def _chat(messages: List[Dict[str, str]], json_mode: bool = False, max_tokens: int = 300) -> str:
    client = OpenAI(api_key=settings.OPENAI_API_KEY, timeout=settings.OPENAI_TIMEOUT_SECONDS)
    kwargs = {}
    if json_mode:
        kwargs['response_format'] = {'type': 'json_object'}
    completion = client.chat.completions.create(
        model=settings.OPENAI_MODEL,
        messages=messages,
        temperature=0.8,
        max_tokens=max_tokens,
        **kwargs,
    )
    return (completion.choices[0].message.content or '').strip()


def preferred_style(ctx: ObjectiveContext, slot_type: str) -> str:
    if ctx.has_progress_today:
        return CELEBRATORY
    if ctx.days_without_progress >= 3:
        return GENTLE
    if ctx.streak_days >= 3:
        return MOTIVATIONAL
    if ctx.next_step is not None:
        return TACTICAL
    if slot_type == SlotType.NIGHT_REVIEW:
        return REFLECTIVE
    return CURIOUS


def fitting_styles(ctx: ObjectiveContext) -> set:
    """Styles whose wording holds for the objective's current state."""
    styles = {TACTICAL, REFLECTIVE, CURIOUS}
    if ctx.has_progress_today:
        styles.add(CELEBRATORY)
    if ctx.days_without_progress >= 1:
        styles.add(GENTLE)
    if ctx.streak_days >= 1:
        styles.add(MOTIVATIONAL)
    return styles


def choose_style(ctx: ObjectiveContext, slot_type: str, recent_styles: Sequence[str] = ()) -> str:
    """
    Pick the style that fits the objective, skipping the last styles used.

    When the preferred style was used recently, the next style in STYLES
    order that fits the objective and was not used recently is taken
    instead. With no such style the preferred one is repeated.
    """
    preferred = preferred_style(ctx, slot_type)
    avoid = set(list(recent_styles)[:STYLE_MEMORY])
    if preferred not in avoid:
        return preferred
    fitting = fitting_styles(ctx)
    start = STYLES.index(preferred)
    for offset in range(1, len(STYLES)):
        candidate = STYLES[(start + offset) % len(STYLES)]
        if candidate in fitting and candidate not in avoid:
            return candidate
    return preferred


def fallback_body(style: str, ctx: ObjectiveContext, step_title: str = '') -> str:
    return STYLE_TEMPLATES[style].format(
        title=ctx.title,
        step=step_title or DEFAULT_STEP,
        streak=ctx.streak_days,
        streak_plural='s' if ctx.streak_days != 1 else '',
        days=ctx.days_without_progress,
    )


def _objective_brief(ctx: ObjectiveContext, message: SlotMessage) -> dict:
    return {
        'objetivo': ctx.title,
        'descripcion': ctx.objective.description[:500],
        'momento_del_dia': message.slot_type,
        'paso': message.step_title or None,
        'racha_dias': ctx.streak_days,
        'dias_sin_avance': ctx.days_without_progress,
        'pasos_hechos_hoy': ctx.done_today,
        'fecha_limite': ctx.deadline.isoformat() if ctx.deadline else None,
    }


def generate_reminder_body(message: SlotMessage, style: str, history: Sequence[str]) -> str:
    """
    Ask the model for the reminder body.

    Raises:
        ValueError: the model answered without a usable "message" field
    """
    ctx = message.objective_context
    history_text = '\n---\n'.join(history) if history else '(ninguno)'
    prompt_messages = [
        {
            'role': 'system',
            'content': REMINDER_SYSTEM_PROMPT.format(style=style, guide=STYLE_GUIDES[style]),
        },
        {
            'role': 'user',
            'content': (
                f"Contexto:\n{json.dumps(_objective_brief(ctx, message), ensure_ascii=False)}\n\n"
                f"Últimos mensajes enviados:\n{history_text}"
            ),
        },
    ]
    raw = _chat(prompt_messages, json_mode=True)
    data = json.loads(raw)
    body = data.get('message') if isinstance(data, dict) else None
    if not isinstance(body, str) or not body.strip():
        raise ValueError(f"LLM response without message: {raw[:200]}")
    return body.strip()


def personalize(
    message: SlotMessage,
    recent_messages: Sequence[str] = (),
    recent_styles: Sequence[str] = (),
) -> SlotMessage:
    """
    Rewrite a slot reminder body in a chosen style.

    Leaves the message untouched when LLM messages are disabled or it is
    not about an objective.
    """
    ctx = message.objective_context
    if ctx is None or not llm_messages_enabled():
        return message

    style = choose_style(ctx, message.slot_type, recent_styles)
    try:
        message.body = generate_reminder_body(message, style, list(recent_messages)[:HISTORY_SIZE])
    except Exception as e:
        logger.warning(f"LLM reminder generation failed ({style}), using template: {e}")
        message.body = fallback_body(style, ctx, message.step_title)
    message.style = style
    return message


def generate_alternative_step(objective_title: str, original_step: str = '') -> str:
    """Suggest an easier step than the one the user could not do."""
    if not llm_configured():
        return FALLBACK_ALTERNATIVE_STEP
    try:
        step = _chat(
            [
                {'role': 'system', 'content': ALTERNATIVE_SYSTEM_PROMPT},
                {
                    'role': 'user',
                    'content': (
                        f'Objetivo: "{objective_title}"\n'
                        f'Acción original que no pudo hacer: "{original_step or DEFAULT_STEP}"\n\n'
                        f'Genera una alternativa más fácil:'
                    ),
                },
            ],
            max_tokens=50,
        )
    except Exception as e:
        logger.warning(f"LLM alternative step failed, using fallback: {e}")
        return FALLBACK_ALTERNATIVE_STEP
    return step.strip().strip('"') or FALLBACK_ALTERNATIVE_STEP
