import logging
import threading
import time
from datetime import datetime, timezone
from typing import List, Optional
from daily_sms.exceptions import PersistenceError, ValidationError
from daily_sms.models import Message

logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class MessageQueue:
    """
    In-memory mirror of the persisted message list.

    Every mutation is written through to the store before it returns. If
    the write fails the in-memory list is restored, so memory and disk
    never disagree about which messages exist.
    """

    def __init__(self, persistence, clock=time.time):
        self.persistence = persistence
        self.clock = clock
        self.messages: List[Message] = []
        self._last_id = 0
        self.lock = threading.RLock()

    def load(self):
        """Replace the in-memory list with what the store holds"""
        with self.lock:
            self.messages = sorted(self.persistence.load_messages(), key=lambda m: m.id)
            self._last_id = max((m.id for m in self.messages), default=0)
            logger.info(f"Loaded {len(self.messages)} messages")

    def _next_id(self) -> int:
        # Millisecond timestamp, bumped past the last id on collisions
        candidate = int(self.clock() * 1000)
        self._last_id = max(candidate, self._last_id + 1)
        return self._last_id

    def enqueue(self, text: str) -> Message:
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Message text must be a non-empty string")

        with self.lock:
            previous_last_id = self._last_id
            message = Message(
                id=self._next_id(),
                text=text,
                sent=False,
                created_at=_utc_now()
            )
            self.messages.append(message)
            try:
                self.persistence.save_messages(self.messages)
            except PersistenceError:
                self.messages.pop()
                self._last_id = previous_last_id
                raise

        logger.info(f"Message added: {message.id}")
        return message

    def remove(self, message_id: int) -> bool:
        with self.lock:
            index = self._index_of(message_id)
            if index is None:
                return False

            removed = self.messages.pop(index)
            try:
                self.persistence.save_messages(self.messages)
            except PersistenceError:
                self.messages.insert(index, removed)
                raise

        logger.info(f"Message deleted: {message_id}")
        return True

    def get(self, message_id: int) -> Optional[Message]:
        with self.lock:
            index = self._index_of(message_id)
            return None if index is None else self.messages[index]

    def oldest_unsent(self) -> Optional[Message]:
        """Lowest-id message that has not been sent yet"""
        with self.lock:
            unsent = [m for m in self.messages if not m.sent]
            return min(unsent, key=lambda m: m.id) if unsent else None

    def mark_sent(self, message_id: int, when: str):
        """
        Record that a message was delivered. Idempotent.

        The in-memory transition is kept even if the write fails: the message
        has already left, so a later successful save carries it to disk.
        """
        with self.lock:
            index = self._index_of(message_id)
            if index is None:
                logger.warning(f"Cannot mark unknown message {message_id} as sent")
                return

            message = self.messages[index]
            if message.sent:
                return

            message.sent = True
            message.sent_at = when
            self.persistence.save_messages(self.messages)

    def snapshot(self) -> List[Message]:
        """Copies of the current messages, safe to hand to other threads"""
        with self.lock:
            return [Message(**vars(m)) for m in self.messages]

    def counts(self) -> dict:
        with self.lock:
            sent = sum(1 for m in self.messages if m.sent)
            return {'queued': len(self.messages) - sent, 'sent': sent}

    def _index_of(self, message_id: int) -> Optional[int]:
        for i, message in enumerate(self.messages):
            if message.id == message_id:
                return i
        return None
