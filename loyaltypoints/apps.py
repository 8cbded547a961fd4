from django.apps import AppConfig


class LoyaltypointsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'loyaltypoints'
    verbose_name = 'Points ledger'
