from django.apps import AppConfig
from django.conf import settings


class TransportConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'transport'
    verbose_name = 'Dog Transport'

    payment_gateway = None
    push_notifier = None
    background_check_client = None

    def ready(self):
        from . import signals  # noqa: F401
        from .background_checks import BackgroundCheckClient
        from .notifications import PushNotifier
        from .payments import PaymentGateway

        self.payment_gateway = PaymentGateway(
            secret_key=settings.STRIPE_SECRET_KEY,
            currency=settings.PAYMENT_CURRENCY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        )
        self.push_notifier = PushNotifier(
            url=settings.EXPO_PUSH_URL,
            timeout=settings.PUSH_TIMEOUT_SECONDS,
            enabled=settings.PUSH_ENABLED,
        )
        self.background_check_client = BackgroundCheckClient(
            api_key=settings.CHECKR_API_KEY,
            base_url=settings.CHECKR_API_URL,
            timeout=settings.CHECKR_TIMEOUT_SECONDS,
        )
