"""
Tests for LLM-written reminder copy. The OpenAI call itself is always mocked.
"""
import json
from datetime import datetime, timezone as dt_timezone
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings

from objectives.context import DayContext, ObjectiveContext
from objectives.models import Objective
from .llm import (
    CELEBRATORY,
    CURIOUS,
    GENTLE,
    MOTIVATIONAL,
    REFLECTIVE,
    TACTICAL,
    _chat,
    choose_style,
    fitting_styles,
    generate_alternative_step,
    personalize,
)
from .messages import FALLBACK_ALTERNATIVE_STEP, build_slot_message
from .models import SlotType

User = get_user_model()

NOW = datetime(2025, 1, 15, 13, 0, tzinfo=dt_timezone.utc)


class ChooseStyleTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='ana', email='ana@example.com', password='x')
        self.objective = Objective.objects.create(user=self.user, title='Lanzar podcast')

    def _ctx(self, **kwargs):
        return ObjectiveContext(objective=self.objective, **kwargs)

    def test_preferred_styles(self):
        self.assertEqual(choose_style(self._ctx(done_today=1), SlotType.NIGHT_REVIEW), CELEBRATORY)
        self.assertEqual(choose_style(self._ctx(days_without_progress=4), SlotType.MORNING_FOCUS), GENTLE)
        self.objective.streak_days = 5
        self.assertEqual(choose_style(self._ctx(), SlotType.MORNING_FOCUS), MOTIVATIONAL)
        self.objective.streak_days = 0
        self.assertEqual(choose_style(self._ctx(), SlotType.NIGHT_REVIEW), REFLECTIVE)
        self.assertEqual(choose_style(self._ctx(), SlotType.MORNING_FOCUS), CURIOUS)

    def test_recent_styles_are_avoided(self):
        ctx = self._ctx(done_today=1)
        style = choose_style(ctx, SlotType.NIGHT_REVIEW, recent_styles=[CELEBRATORY, GENTLE])
        self.assertNotIn(style, (CELEBRATORY, GENTLE))
        self.assertEqual(style, CURIOUS)

    def test_only_last_two_styles_count(self):
        ctx = self._ctx(done_today=1)
        style = choose_style(ctx, SlotType.NIGHT_REVIEW, recent_styles=[TACTICAL, GENTLE, CELEBRATORY])
        self.assertEqual(style, CELEBRATORY)

    def test_rotation_skips_styles_that_do_not_fit(self):
        """Without progress today the rotation never lands on celebrating or a 0-day gap."""
        ctx = self._ctx()
        style = choose_style(ctx, SlotType.NIGHT_REVIEW, recent_styles=[REFLECTIVE, CURIOUS])
        self.assertEqual(style, TACTICAL)

        stalled = self._ctx(days_without_progress=2)
        style = choose_style(stalled, SlotType.NIGHT_REVIEW, recent_styles=[REFLECTIVE, TACTICAL])
        self.assertEqual(style, GENTLE)

    def test_fitting_styles(self):
        self.assertEqual(fitting_styles(self._ctx()), {TACTICAL, REFLECTIVE, CURIOUS})
        self.objective.streak_days = 2
        self.assertEqual(
            fitting_styles(self._ctx(done_today=1)),
            {TACTICAL, REFLECTIVE, CURIOUS, CELEBRATORY, MOTIVATIONAL},
        )


class PersonalizeTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='ana', email='ana@example.com', password='x')
        self.objective = Objective.objects.create(user=self.user, title='Lanzar podcast')
        self.ctx = ObjectiveContext(objective=self.objective, days_without_progress=1)
        self.day = DayContext(user=self.user, now=NOW, objectives=[self.ctx])

    def _message(self):
        return build_slot_message(SlotType.MORNING_FOCUS, self.ctx, self.day)

    @patch('whatsapp.llm._chat')
    def test_disabled_keeps_template(self, mock_chat):
        message = self._message()
        body = message.body

        result = personalize(message)

        self.assertEqual(result.body, body)
        self.assertEqual(result.style, '')
        mock_chat.assert_not_called()

    @override_settings(VICU_LLM_MESSAGES=True, OPENAI_API_KEY='sk-test')
    @patch('whatsapp.llm._chat')
    def test_llm_body_keeps_options(self, mock_chat):
        mock_chat.return_value = json.dumps({'message': '¿Qué harías hoy por *Lanzar podcast*?'})

        result = personalize(self._message(), recent_messages=['anterior'])

        self.assertEqual(result.body, '¿Qué harías hoy por *Lanzar podcast*?')
        self.assertEqual(result.style, CURIOUS)
        self.assertIn('1️⃣ Lo haré hoy', result.text)
        prompt = mock_chat.call_args.args[0][1]['content']
        self.assertIn('anterior', prompt)

    @override_settings(VICU_LLM_MESSAGES=True, OPENAI_API_KEY='sk-test')
    @patch('whatsapp.llm._chat', return_value='not json')
    def test_invalid_llm_output_falls_back_to_style_template(self, mock_chat):
        result = personalize(self._message())

        self.assertEqual(result.style, CURIOUS)
        self.assertIn('¿Qué sería lo más pequeño que podrías hacer hoy por *Lanzar podcast*?', result.body)

    @override_settings(VICU_LLM_MESSAGES=True, OPENAI_API_KEY='sk-test')
    @patch('whatsapp.llm._chat', side_effect=RuntimeError('API down'))
    def test_api_error_falls_back(self, mock_chat):
        result = personalize(self._message())
        self.assertIn('Lanzar podcast', result.body)


class AlternativeStepTests(TestCase):

    @override_settings(OPENAI_API_KEY='')
    def test_unconfigured_fallback(self):
        self.assertEqual(generate_alternative_step('Lanzar podcast', 'Grabar intro'), FALLBACK_ALTERNATIVE_STEP)

    @override_settings(OPENAI_API_KEY='sk-test')
    @patch('whatsapp.llm._chat', return_value='"Escribir el título del episodio"')
    def test_generated_step(self, mock_chat):
        step = generate_alternative_step('Lanzar podcast', 'Grabar intro')
        self.assertEqual(step, 'Escribir el título del episodio')
        self.assertIn('Grabar intro', mock_chat.call_args.args[0][1]['content'])

    @override_settings(OPENAI_API_KEY='sk-test')
    @patch('whatsapp.llm._chat', side_effect=RuntimeError('API down'))
    def test_error_fallback(self, mock_chat):
        self.assertEqual(generate_alternative_step('Lanzar podcast'), FALLBACK_ALTERNATIVE_STEP)



class ChatClientTests(TestCase):

    @override_settings(OPENAI_API_KEY='sk-test', OPENAI_TIMEOUT_SECONDS=7.5)
    @patch('whatsapp.llm.OpenAI')
    def test_client_has_timeout(self, mock_openai):
        completion = mock_openai.return_value.chat.completions.create.return_value
        completion.choices[0].message.content = ' Abrir el guion '

        self.assertEqual(_chat([{'role': 'user', 'content': 'hola'}]), 'Abrir el guion')
        mock_openai.assert_called_once_with(api_key='sk-test', timeout=7.5)
