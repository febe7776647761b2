import re

COUNTRY_CODES = (
    '51', '57', '52', '54', '56', '55', '593', '58', '591', '595', '598',
    '507', '506', '502', '503', '504', '505', '34', '1', '44', '33', '49',
    '39', '351', '1809', '1787',
)
DEFAULT_COUNTRY_CODE = '51'


def digits_only(phone: str) -> str:
    return re.sub(r'\D', '', phone or '')


def normalize_phone(phone: str) -> str:
    """
    Normalize a user-entered number to E.164 ("+51987654321").

    Numbers that do not start with a known country code are treated as
    Peruvian numbers, with any leading zeros stripped.
    """
    raw = re.sub(r'\s+', '', phone or '')
    digits = digits_only(raw)
    if not digits:
        return ''
    if raw.startswith('+') or digits.startswith(COUNTRY_CODES):
        return f"+{digits}"
    return f"+{DEFAULT_COUNTRY_CODE}{digits.lstrip('0')}"
