from typing import Any
from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AbstractUser
from django.utils import timezone

from objectives.models import Objective
from .models import UserStats
from .services import record_project_completed

User = get_user_model()


@receiver(post_save, sender=User)
def create_user_stats(
    sender: type[AbstractUser],
    instance: AbstractUser,
    created: bool,
    **kwargs: Any
) -> None:
    """Create UserStats when User is created."""
    if created:
        UserStats.objects.create(user=instance)


@receiver(pre_save, sender=Objective)
def remember_previous_status(sender: type[Objective], instance: Objective, **kwargs: Any) -> None:
    if instance.pk is None:
        instance._previous_status = None
        return
    instance._previous_status = (
        Objective.objects.filter(pk=instance.pk).values_list('status', flat=True).first()
    )


@receiver(post_save, sender=Objective)
def reward_achieved_objective(
    sender: type[Objective],
    instance: Objective,
    created: bool,
    **kwargs: Any
) -> None:
    """Reward the owner the first time an objective becomes achieved."""
    if instance.status != Objective.Status.ACHIEVED:
        return
    if getattr(instance, '_previous_status', None) == Objective.Status.ACHIEVED:
        return
    record_project_completed(instance.user, timezone.now())
