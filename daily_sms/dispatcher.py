import logging
import threading
from datetime import datetime, timezone
from typing import Callable
from daily_sms.address import resolve_address
from daily_sms.backends import DeliveryBackend
from daily_sms.exceptions import DeliveryError, PersistenceError
from daily_sms.message_queue import MessageQueue
from daily_sms.models import DispatchResult, ScheduleConfig

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Sends the oldest unsent message, at most one per run.

    Runs are single-flight: a second trigger blocks until the run in
    progress finishes, then sees the queue as that run left it. Selecting
    the message, sending it and marking it sent all happen under one lock,
    so two overlapping triggers can never deliver the same message twice.

    Delivery is at-least-once. If the backend accepts a message but the
    process dies before the sent flag is persisted, the message goes out
    again on the next run.
    """

    def __init__(self, queue: MessageQueue, backend: DeliveryBackend,
                 config_provider: Callable[[], ScheduleConfig],
                 now: Callable[[], datetime] = None):
        self.queue = queue
        self.backend = backend
        self.config_provider = config_provider
        self.now = now or (lambda: datetime.now(timezone.utc))
        self._run_lock = threading.Lock()

    def run_once(self) -> DispatchResult:
        with self._run_lock:
            return self._run()

    def _run(self) -> DispatchResult:
        logger.info("Checking for messages to send...")

        message = self.queue.oldest_unsent()
        if message is None:
            logger.warning("No messages to send")
            return DispatchResult.no_message_queued()

        if self.backend is None or not self.backend.is_configured():
            logger.warning("✗ Delivery backend not configured - cannot send SMS")
            return DispatchResult.backend_unconfigured(message.id)

        config = self.config_provider()
        if config is None or not (config.destination or '').strip():
            logger.warning("✗ No phone number configured")
            return DispatchResult.destination_missing(message.id)

        if self.backend.requires_address_translation:
            address = resolve_address(config.destination, config.carrier)
        else:
            address = config.destination

        logger.info(f"Sending message {message.id} to {address} via {self.backend.name}...")
        try:
            receipt = self.backend.send(address, message.text)
        except DeliveryError as e:
            logger.error(f"✗ Error sending message {message.id}: {e}")
            return DispatchResult.delivery_failed(message.id, str(e))
        except Exception as e:
            logger.error(f"✗ Unexpected error sending message {message.id}: {e}", exc_info=True)
            return DispatchResult.delivery_failed(message.id, str(e))

        try:
            self.queue.mark_sent(message.id, self.now().isoformat())
        except PersistenceError as e:
            # Already delivered; the flag stays set in memory and is
            # written out with the next successful save.
            logger.error(f"Message {message.id} sent but not persisted as sent: {e}")

        logger.info(f"✓ Message {message.id} sent successfully")
        return DispatchResult.sent(message.id, receipt)
