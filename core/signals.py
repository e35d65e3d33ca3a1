"""
Django signals for account lifecycle side effects.

Deactivating a user blacklists their outstanding refresh tokens so no new
access tokens can be minted for the account.
"""

import logging

from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from .models import User
from .tokens import revoke_user_refresh_tokens

logger = logging.getLogger(__name__)


@receiver(pre_save, sender=User)
def remember_previous_active_state(sender, instance, **kwargs):
    """
    Stash the stored ``is_active`` value on the instance before it is overwritten.
    """
    if instance._state.adding:
        instance._was_active = None
        return

    instance._was_active = (
        sender.objects.filter(pk=instance.pk).values_list('is_active', flat=True).first()
    )


@receiver(post_save, sender=User)
def revoke_tokens_on_deactivation(sender, instance, created, **kwargs):
    """
    Blacklist refresh tokens when an account goes from active to inactive.
    """
    if created or instance.is_active:
        return

    if getattr(instance, '_was_active', None):
        revoked = revoke_user_refresh_tokens(instance)
        logger.info(f"User {instance.pk} deactivated; {revoked} refresh tokens revoked")
