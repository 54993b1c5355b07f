from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from airswitch.services.wallet import WalletService


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_wallet_for_new_user(sender, instance, created, **kwargs):
    if created:
        WalletService.create_wallet(instance)
