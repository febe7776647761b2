"""
Inbound webhook payload extraction.

Kapso has delivered inbound messages in several shapes over time. Each
shape is handled by one extractor; extractors are tried in order and the
first one that yields a sender and a text wins. The Meta passthrough shape
is checked against a pinned JSON Schema of the Cloud API v24 webhook
rather than probed field by field.
"""
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from typing import Any, Callable, List, Optional

import jsonschema

import logging
logger = logging.getLogger(__name__)

META_API_VERSION = 'v24.0'

META_WEBHOOK_SCHEMA = {
    '$schema': 'http://json-schema.org/draft-07/schema#',
    'title': f'Meta WhatsApp Cloud API webhook ({META_API_VERSION})',
    'type': 'object',
    'required': ['entry'],
    'properties': {
        'object': {'type': 'string'},
        'entry': {
            'type': 'array',
            'minItems': 1,
            'items': {
                'type': 'object',
                'required': ['changes'],
                'properties': {
                    'id': {'type': 'string'},
                    'changes': {
                        'type': 'array',
                        'items': {
                            'type': 'object',
                            'required': ['value'],
                            'properties': {
                                'field': {'type': 'string'},
                                'value': {
                                    'type': 'object',
                                    'properties': {
                                        'messaging_product': {'type': 'string'},
                                        'contacts': {
                                            'type': 'array',
                                            'items': {
                                                'type': 'object',
                                                'properties': {
                                                    'wa_id': {'type': 'string'},
                                                    'profile': {'type': 'object'},
                                                },
                                            },
                                        },
                                        'messages': {
                                            'type': 'array',
                                            'items': {
                                                'type': 'object',
                                                'required': ['from', 'type'],
                                                'properties': {
                                                    'from': {'type': 'string'},
                                                    'id': {'type': 'string'},
                                                    'timestamp': {'type': 'string'},
                                                    'type': {'type': 'string'},
                                                    'text': {
                                                        'type': 'object',
                                                        'properties': {'body': {'type': 'string'}},
                                                    },
                                                },
                                            },
                                        },
                                        'statuses': {
                                            'type': 'array',
                                            'items': {
                                                'type': 'object',
                                                'required': ['id', 'status'],
                                                'properties': {
                                                    'id': {'type': 'string'},
                                                    'status': {'type': 'string'},
                                                    'recipient_id': {'type': 'string'},
                                                    'timestamp': {'type': 'string'},
                                                },
                                            },
                                        },
                                    },
                                },
                            },
                        },
                    },
                },
            },
        },
    },
}


@dataclass
class InboundMessage:
    """A normalized inbound text message."""
    sender: str
    text: str
    message_id: str = ''
    contact_name: str = ''
    shape: str = ''


@dataclass
class StatusUpdate:
    message_id: str
    status: str
    recipient: str = ''
    timestamp: Optional[datetime] = None


def _message_text(message: Any) -> str:
    """Text of a message dict: plain text, template button or interactive reply."""
    if not isinstance(message, dict):
        return ''
    text = message.get('text')
    if isinstance(text, dict) and text.get('body'):
        return str(text['body'])
    if isinstance(text, str) and text:
        return text
    if isinstance(message.get('body'), str) and message['body']:
        return message['body']
    button = message.get('button')
    if isinstance(button, dict) and button.get('text'):
        return str(button['text'])
    interactive = message.get('interactive')
    if isinstance(interactive, dict):
        reply = interactive.get('button_reply') or interactive.get('list_reply') or {}
        if reply.get('title'):
            return str(reply['title'])
    return ''


def _build(sender: Any, text: str, message: dict, shape: str, contact_name: str = '') -> Optional[InboundMessage]:
    if not sender or not text or not text.strip():
        return None
    return InboundMessage(
        sender=str(sender),
        text=text.strip(),
        message_id=str(message.get('id') or ''),
        contact_name=contact_name or '',
        shape=shape,
    )


def extract_kapso_event(payload: dict) -> Optional[InboundMessage]:
    """
    {"event": "whatsapp.message.received", "data": {"message": {...}, "contact": {...}}}

    Older events carry the message flat in data: {"data": {"from": "...", "body": "..."}}.
    """
    data = payload.get('data')
    if 'event' not in payload or not isinstance(data, dict):
        return None
    contact = data.get('contact')
    if not isinstance(contact, dict):
        contact = {}
    name = contact.get('name', '')
    message = data.get('message')
    if isinstance(message, dict):
        sender = message.get('from') or contact.get('wa_id')
        result = _build(sender, _message_text(message), message, 'kapso_event', name)
        if result:
            return result
    sender = data.get('from') or contact.get('wa_id')
    return _build(sender, _message_text(data), data, 'kapso_event', name)


def is_meta_payload(payload: dict) -> bool:
    if 'entry' not in payload:
        return False
    try:
        jsonschema.validate(payload, META_WEBHOOK_SCHEMA)
    except jsonschema.ValidationError as e:
        logger.warning(f"Payload with 'entry' does not match Meta {META_API_VERSION} schema: {e.message}")
        return False
    return True


def _meta_values(payload: dict):
    for entry in payload.get('entry', []):
        for change in entry.get('changes', []):
            yield change.get('value') or {}


def extract_meta(payload: dict) -> Optional[InboundMessage]:
    """Meta Cloud API passthrough: entry[].changes[].value.messages[]."""
    if not is_meta_payload(payload):
        return None
    for value in _meta_values(payload):
        contacts = value.get('contacts') or [{}]
        contact_name = (contacts[0].get('profile') or {}).get('name', '')
        for message in value.get('messages') or []:
            result = _build(message.get('from'), _message_text(message), message, 'meta', contact_name)
            if result:
                return result
    return None


def extract_direct(payload: dict) -> Optional[InboundMessage]:
    """{"from": "...", "text": {"body": "..."}} or {"from": "...", "body": "..."}"""
    return _build(payload.get('from'), _message_text(payload), payload, 'direct')


def extract_wrapped(payload: dict) -> Optional[InboundMessage]:
    """{"message": {"from": "...", "text": ...}}"""
    message = payload.get('message')
    if not isinstance(message, dict):
        return None
    return _build(message.get('from'), _message_text(message), message, 'wrapped')


EXTRACTORS: List[Callable[[dict], Optional[InboundMessage]]] = [
    extract_kapso_event,
    extract_meta,
    extract_direct,
    extract_wrapped,
]


def extract_inbound_message(payload: Any) -> Optional[InboundMessage]:
    """
    Normalize an inbound webhook payload.

    Returns:
        InboundMessage from the first extractor that recognizes the shape,
        or None when none does
    """
    if not isinstance(payload, dict):
        return None
    for extractor in EXTRACTORS:
        try:
            result = extractor(payload)
        except (AttributeError, IndexError, KeyError, TypeError) as e:
            logger.debug(f"{extractor.__name__} could not read payload: {e}")
            continue
        if result is not None:
            return result
    return None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(int(value), tz=dt_timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


def extract_status_updates(payload: Any) -> List[StatusUpdate]:
    """
    Delivery/read receipts, from Meta "statuses" or Kapso status events.
    """
    if not isinstance(payload, dict):
        return []

    event = payload.get('event')
    if isinstance(event, str) and event.endswith(('.delivered', '.read')):
        data = payload.get('data')
        message = data.get('message') if isinstance(data, dict) else None
        if isinstance(message, dict) and message.get('id'):
            return [StatusUpdate(
                message_id=str(message['id']),
                status=event.rsplit('.', 1)[1],
                recipient=str(message.get('to') or ''),
            )]
        return []

    if not is_meta_payload(payload):
        return []

    updates = []
    for value in _meta_values(payload):
        for status in value.get('statuses') or []:
            if not isinstance(status, dict) or not status.get('id') or not status.get('status'):
                continue
            updates.append(StatusUpdate(
                message_id=str(status['id']),
                status=str(status['status']),
                recipient=status.get('recipient_id', ''),
                timestamp=_parse_timestamp(status.get('timestamp')),
            ))
    return updates
