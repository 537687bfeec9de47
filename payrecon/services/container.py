import logging
from dataclasses import dataclass

from payrecon.core.config import Settings
from payrecon.services.effects import PaymentEffects
from payrecon.services.invoices import InvoiceGenerator
from payrecon.services.midtrans import MidtransClient
from payrecon.services.notifications import Notifier, build_notifier
from payrecon.services.reconciler import PendingReconciler


logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    midtrans: MidtransClient
    notifier: Notifier
    effects: PaymentEffects
    reconciler: PendingReconciler

    def close(self) -> None:
        try:
            self.notifier.close()
        except Exception as exc:
            logger.warning("Notifier shutdown failed: %s", exc)


def build_services(settings: Settings) -> Services:
    midtrans = MidtransClient.from_settings(settings)
    if not midtrans.server_key:
        logger.warning("Midtrans server key is not configured; webhook signatures will be rejected")
    notifier = build_notifier(settings)
    effects = PaymentEffects(
        InvoiceGenerator(settings.invoice_dir),
        notifier,
        public_base_url=settings.public_base_url,
    )
    reconciler = PendingReconciler(midtrans, effects, delay_seconds=settings.reconcile_delay_seconds)
    logger.info("Services ready: notifier=%s production=%s", notifier.name, settings.midtrans_is_production)
    return Services(settings=settings, midtrans=midtrans, notifier=notifier, effects=effects, reconciler=reconciler)
