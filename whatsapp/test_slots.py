"""
Tests for slot resolution and phone number handling.
"""
from datetime import date, datetime, timedelta, timezone as dt_timezone

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase

from .models import SlotType, WhatsAppConfig
from .phones import digits_only, normalize_phone
from .slots import get_schedule, get_slot, get_slots_for_day, resolve_slot

User = get_user_model()


def lima(year, month, day, hour, minute=0):
    """Aware UTC instant for a Lima wall-clock time."""
    return datetime(year, month, day, hour, minute, tzinfo=dt_timezone.utc) + timedelta(hours=5)


class SlotResolutionTests(SimpleTestCase):

    def test_weekday_slots(self):
        # Wednesday
        self.assertIsNone(resolve_slot(lima(2025, 1, 15, 7, 59)))
        self.assertEqual(resolve_slot(lima(2025, 1, 15, 8, 0)).slot_type, SlotType.MORNING_FOCUS)
        self.assertEqual(resolve_slot(lima(2025, 1, 15, 11, 29)).slot_type, SlotType.MORNING_FOCUS)
        self.assertEqual(resolve_slot(lima(2025, 1, 15, 11, 30)).slot_type, SlotType.LATE_MORNING_PUSH)
        self.assertEqual(resolve_slot(lima(2025, 1, 15, 16, 45)).slot_type, SlotType.AFTERNOON_MICRO)
        self.assertEqual(resolve_slot(lima(2025, 1, 15, 21, 30)).slot_type, SlotType.NIGHT_REVIEW)
        self.assertEqual(resolve_slot(lima(2025, 1, 15, 18, 59)).slot_type, SlotType.AFTERNOON_MICRO)

    def test_saturday_only_morning(self):
        self.assertEqual(resolve_slot(lima(2025, 1, 18, 9, 0)).slot_type, SlotType.MORNING_FOCUS)
        self.assertEqual(resolve_slot(lima(2025, 1, 18, 22, 0)).slot_type, SlotType.MORNING_FOCUS)
        self.assertEqual(len(get_slots_for_day(date(2025, 1, 18))), 1)

    def test_sunday_has_no_slots(self):
        self.assertIsNone(resolve_slot(lima(2025, 1, 19, 9, 0)))
        self.assertEqual(get_slots_for_day(date(2025, 1, 19)), ())

    def test_local_offset_decides_the_day(self):
        """Saturday 23:00 in Lima is already Sunday in UTC."""
        instant = datetime(2025, 1, 19, 4, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(resolve_slot(instant).slot_type, SlotType.MORNING_FOCUS)

    def test_get_slot(self):
        self.assertEqual(get_slot('night_review').slot_type, SlotType.NIGHT_REVIEW)
        with self.assertRaises(ValueError):
            get_slot('LUNCH')

    def test_schedule(self):
        schedule = get_schedule()
        self.assertEqual([s['time'] for s in schedule], ['08:00', '11:30', '16:30', '21:30'])
        self.assertTrue(schedule[0]['saturday'])
        self.assertFalse(schedule[3]['saturday'])


class PhoneTests(SimpleTestCase):

    def test_normalize_phone(self):
        self.assertEqual(normalize_phone('987 654 321'), '+51987654321')
        self.assertEqual(normalize_phone('0987654321'), '+51987654321')
        self.assertEqual(normalize_phone('+51 987-654-321'), '+51987654321')
        self.assertEqual(normalize_phone('573001234567'), '+573001234567')
        self.assertEqual(normalize_phone('+44 7700 900123'), '+447700900123')
        self.assertEqual(normalize_phone('   '), '')

    def test_digits_only(self):
        self.assertEqual(digits_only('+51 (987) 654-321'), '51987654321')


class FindByPhoneTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='ana', email='ana@example.com', password='x')
        self.config = WhatsAppConfig.objects.create(user=self.user, phone_number='+51987654321')

    def test_exact_match(self):
        self.assertEqual(WhatsAppConfig.objects.find_by_phone('51987654321'), self.config)

    def test_suffix_match_without_country_code(self):
        self.assertEqual(WhatsAppConfig.objects.find_by_phone('987654321'), self.config)
        self.assertEqual(WhatsAppConfig.objects.find_by_phone('+1 51987654321'), self.config)

    def test_no_match(self):
        self.assertIsNone(WhatsAppConfig.objects.find_by_phone('912345678'))
        self.assertIsNone(WhatsAppConfig.objects.find_by_phone(''))

    def test_inactive_config_is_not_matched(self):
        self.config.is_active = False
        self.config.save()

        self.assertIsNone(WhatsAppConfig.objects.find_by_phone('51987654321'))
        self.assertIsNone(WhatsAppConfig.objects.find_by_phone('987654321'))

    def test_phone_digits_kept_in_sync(self):
        self.config.phone_number = '+51911111111'
        self.config.save(update_fields=['phone_number'])
        self.config.refresh_from_db()
        self.assertEqual(self.config.phone_digits, '51911111111')
