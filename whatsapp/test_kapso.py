"""
Tests for the Kapso client.
"""
import hashlib
import hmac
from unittest.mock import MagicMock, patch

import requests
from django.test import SimpleTestCase, override_settings

from . import kapso


def _response(status_code=200, json_data=None, text=''):
    response = MagicMock()
    response.ok = status_code < 400
    response.status_code = status_code
    response.json.return_value = json_data if json_data is not None else {}
    response.text = text
    return response


@override_settings(KAPSO_API_KEY='test-key', KAPSO_PHONE_NUMBER_ID='123', KAPSO_API_BASE='https://kapso.test/v24.0/')
class SendMessageTests(SimpleTestCase):

    @patch('whatsapp.kapso.requests.post')
    def test_send_text_message(self, mock_post):
        mock_post.return_value = _response(json_data={'messages': [{'id': 'wamid.1'}]})

        result = kapso.send_whatsapp_message('+51 987-654-321', 'Hola')

        self.assertTrue(result.success)
        self.assertEqual(result.message_id, 'wamid.1')
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], 'https://kapso.test/v24.0/123/messages')
        self.assertEqual(kwargs['headers']['X-API-Key'], 'test-key')
        self.assertEqual(kwargs['json']['to'], '51987654321')
        self.assertEqual(kwargs['json']['text'], {'body': 'Hola', 'preview_url': False})

    @patch('whatsapp.kapso.requests.post')
    def test_api_error(self, mock_post):
        mock_post.return_value = _response(status_code=400, text='bad number')

        result = kapso.send_whatsapp_message('51987654321', 'Hola')

        self.assertFalse(result.success)
        self.assertIn('400', result.error)

    @patch('whatsapp.kapso.requests.post', side_effect=requests.ConnectionError('boom'))
    def test_network_error_does_not_raise(self, mock_post):
        result = kapso.send_whatsapp_message('51987654321', 'Hola')
        self.assertFalse(result.success)
        self.assertIn('boom', result.error)


class UnconfiguredTests(SimpleTestCase):

    @override_settings(KAPSO_API_KEY='')
    @patch('whatsapp.kapso.requests.post')
    def test_not_configured(self, mock_post):
        result = kapso.send_whatsapp_message('51987654321', 'Hola')

        self.assertFalse(result.success)
        self.assertFalse(kapso.is_configured())
        mock_post.assert_not_called()


@override_settings(KAPSO_WEBHOOK_SECRET='s3cret')
class SignatureTests(SimpleTestCase):

    def _sign(self, body):
        return hmac.new(b's3cret', body, hashlib.sha256).hexdigest()

    def test_valid_signature(self):
        body = b'{"a": 1}'
        self.assertTrue(kapso.verify_webhook_signature(body, self._sign(body)))
        self.assertTrue(kapso.verify_webhook_signature(body, f'sha256={self._sign(body)}'))

    def test_invalid_signature(self):
        self.assertFalse(kapso.verify_webhook_signature(b'{"a": 1}', self._sign(b'{"a": 2}')))
        self.assertFalse(kapso.verify_webhook_signature(b'{"a": 1}', ''))
