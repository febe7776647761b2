import re
import secrets
from datetime import datetime, timedelta

from django.conf import settings
from django.db import models
from django.contrib.auth import get_user_model

from objectives.models import Checkin

User = get_user_model()


def generate_access_token() -> str:
    return secrets.token_urlsafe(24)


class AssignmentManager(models.Manager):

    def create_for_checkin(
        self,
        owner,
        checkin: Checkin,
        helper_name: str,
        helper_contact: str,
        contact_type: str,
        now: datetime,
        custom_message: str = '',
    ) -> 'Assignment':
        return self.create(
            owner=owner,
            checkin=checkin,
            helper_name=helper_name,
            helper_contact=helper_contact,
            contact_type=contact_type,
            custom_message=custom_message,
            token_expires_at=now + timedelta(days=settings.ASSIGNMENT_TOKEN_TTL_DAYS),
            created_at=now,
        )

    def awaiting_helper(self):
        """Pending assignments whose helper was actually notified."""
        return self.filter(
            status=Assignment.Status.PENDING,
            notification_sent_at__isnull=False,
        )


class Assignment(models.Model):
    """A pending step handed to a helper, who answers through a public link."""

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        COMPLETED = 'completed', 'Completed'
        DECLINED = 'declined', 'Declined'
        EXPIRED = 'expired', 'Expired'

    class ContactType(models.TextChoices):
        WHATSAPP = 'whatsapp', 'WhatsApp'
        EMAIL = 'email', 'Email'

    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name='assignments')
    checkin = models.ForeignKey(Checkin, on_delete=models.CASCADE, related_name='assignments')
    helper_name = models.CharField(max_length=100)
    helper_contact = models.CharField(max_length=254)
    contact_type = models.CharField(
        max_length=10,
        choices=ContactType.choices,
        default=ContactType.WHATSAPP,
    )
    custom_message = models.TextField(blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    access_token = models.CharField(max_length=64, unique=True, default=generate_access_token, editable=False)
    token_expires_at = models.DateTimeField()
    response_message = models.TextField(blank=True)
    responded_at = models.DateTimeField(null=True, blank=True)
    notification_sent_at = models.DateTimeField(null=True, blank=True)
    notification_message_id = models.CharField(max_length=100, blank=True)
    reminder_count = models.PositiveSmallIntegerField(default=0)
    last_reminder_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField()

    objects = AssignmentManager()

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'notification_sent_at'], name='assignment_status_notified_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.checkin.step_title} → {self.helper_name} ({self.status})"

    @property
    def public_url(self) -> str:
        return f"{settings.SITE_URL.rstrip('/')}/s/{self.access_token}"

    def is_expired(self, now: datetime) -> bool:
        return self.token_expires_at <= now

    def mark_expired(self) -> None:
        self.status = self.Status.EXPIRED
        self.save(update_fields=['status'])

    def owner_name(self) -> str:
        """Full name, else the capitalized first chunk of the email ("ana.p@x" -> "Ana")."""
        full_name = self.owner.get_full_name()
        if full_name:
            return full_name
        if self.owner.email:
            chunk = re.split(r'[._-]', self.owner.email.split('@')[0])[0]
            if chunk:
                return chunk.capitalize()
        return 'Tu amigo'

    def days_since_created(self, now: datetime) -> int:
        return int((now - self.created_at).total_seconds() // 86400)

    def to_public_dict(self) -> dict:
        """What the helper sees behind the link."""
        checkin = self.checkin
        return {
            'helper_name': self.helper_name,
            'owner_name': self.owner_name(),
            'status': self.status,
            'custom_message': self.custom_message or None,
            'step_title': checkin.step_title,
            'step_description': checkin.step_description or None,
            'objective_title': checkin.objective.title,
            'expires_at': self.token_expires_at.isoformat(),
        }

    def to_dict(self) -> dict:
        return {
            'id': self.pk,
            'checkin_id': self.checkin_id,
            'helper_name': self.helper_name,
            'helper_contact': self.helper_contact,
            'contact_type': self.contact_type,
            'custom_message': self.custom_message or None,
            'status': self.status,
            'access_token': self.access_token,
            'token_expires_at': self.token_expires_at.isoformat(),
            'notification_sent_at': self.notification_sent_at.isoformat() if self.notification_sent_at else None,
            'reminder_count': self.reminder_count,
            'created_at': self.created_at.isoformat(),
        }
