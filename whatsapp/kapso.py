"""
Kapso WhatsApp client.

Kapso exposes a Meta Cloud API compatible endpoint authenticated with an
X-API-Key header. Sends are never retried: a failed send is reported back
to the caller as a SendResult with success=False.
"""
import hashlib
import hmac
from dataclasses import dataclass
from typing import Optional

import requests
from django.conf import settings

from .phones import digits_only

import logging
logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'success': self.success,
            'message_id': self.message_id,
            'error': self.error,
        }


def is_configured() -> bool:
    return bool(settings.KAPSO_API_KEY)


def _messages_url() -> str:
    return f"{settings.KAPSO_API_BASE.rstrip('/')}/{settings.KAPSO_PHONE_NUMBER_ID}/messages"


def _post_message(payload: dict) -> SendResult:
    if not is_configured():
        return SendResult(success=False, error='KAPSO_API_KEY not configured')

    try:
        response = requests.post(
            _messages_url(),
            headers={
                'Content-Type': 'application/json',
                'X-API-Key': settings.KAPSO_API_KEY,
            },
            json=payload,
            timeout=settings.KAPSO_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.error(f"Kapso request failed: {e}")
        return SendResult(success=False, error=str(e))

    if not response.ok:
        logger.error(f"Kapso API error {response.status_code}: {response.text[:500]}")
        return SendResult(success=False, error=f"Kapso API error {response.status_code}: {response.text[:200]}")

    try:
        data = response.json()
    except ValueError:
        data = {}

    messages = data.get('messages') or [{}]
    message_id = messages[0].get('id') if isinstance(messages[0], dict) else None
    logger.info(f"Kapso message sent to {payload.get('to')}: {message_id}")
    return SendResult(success=True, message_id=message_id)


def send_whatsapp_message(to: str, text: str) -> SendResult:
    """
    Send a free-text WhatsApp message.

    Args:
        to: destination number in any format ("+51 987-654-321" works)
        text: message body

    Returns:
        SendResult with the vendor message id on success
    """
    payload = {
        'messaging_product': 'whatsapp',
        'recipient_type': 'individual',
        'to': digits_only(to),
        'type': 'text',
        'text': {
            'body': text,
            'preview_url': False,
        },
    }
    return _post_message(payload)


def verify_webhook_signature(body: bytes, signature: str) -> bool:
    """
    Check the HMAC-SHA256 signature Kapso puts on webhook calls.

    Accepts both a bare hex digest and the "sha256=<hex>" form.
    """
    secret = settings.KAPSO_WEBHOOK_SECRET
    if not secret or not signature:
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    received = signature.split('=', 1)[1] if signature.startswith('sha256=') else signature
    return hmac.compare_digest(expected, received.strip())
