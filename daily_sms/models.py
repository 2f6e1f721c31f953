from dataclasses import dataclass
from enum import Enum
from typing import Optional
import json


@dataclass
class Message:
    """A queued text message, sent at most once"""
    id: int
    text: str
    sent: bool
    created_at: str  # ISO-8601 timestamp
    sent_at: Optional[str] = None

    def to_dict(self):
        return {
            'id': self.id,
            'text': self.text,
            'sent': self.sent,
            'createdAt': self.created_at,
            'sentAt': self.sent_at
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=int(data['id']),
            text=data['text'],
            sent=bool(data.get('sent', False)),
            created_at=data.get('createdAt'),
            sent_at=data.get('sentAt')
        )


@dataclass
class ScheduleConfig:
    """Recipient and daily delivery time; replaced wholesale on update"""
    destination: str
    send_time: str  # "HH:MM", 24-hour, server local time
    carrier: Optional[str] = None

    def to_dict(self):
        return {
            'phoneNumber': self.destination,
            'sendTime': self.send_time,
            'carrier': self.carrier
        }

    @classmethod
    def from_dict(cls, data):
        destination = data.get('phoneNumber') or data.get('destination') or ''
        carrier = data.get('carrier')
        return cls(
            destination=str(destination),
            send_time=data.get('sendTime') or data.get('send_time'),
            carrier=str(carrier) if carrier is not None else None
        )

    def to_json(self):
        return json.dumps(self.to_dict(), indent=2)


@dataclass
class DeliveryReceipt:
    """What a delivery backend hands back after accepting a message"""
    backend: str
    destination: str
    reference: Optional[str] = None

    def to_dict(self):
        return {
            'backend': self.backend,
            'destination': self.destination,
            'reference': self.reference
        }


class DispatchStatus(Enum):
    SENT = "SENT"
    NO_MESSAGE_QUEUED = "NO_MESSAGE_QUEUED"
    BACKEND_UNCONFIGURED = "BACKEND_UNCONFIGURED"
    DESTINATION_MISSING = "DESTINATION_MISSING"
    DELIVERY_FAILED = "DELIVERY_FAILED"


_STATUS_TEXT = {
    DispatchStatus.SENT: 'Message sent!',
    DispatchStatus.NO_MESSAGE_QUEUED: 'No messages queued',
    DispatchStatus.BACKEND_UNCONFIGURED: 'Delivery backend not configured',
    DispatchStatus.DESTINATION_MISSING: 'No phone number configured',
}


@dataclass
class DispatchResult:
    """Outcome of one dispatch run"""
    status: DispatchStatus
    message_id: Optional[int] = None
    receipt: Optional[DeliveryReceipt] = None
    reason: Optional[str] = None

    @classmethod
    def sent(cls, message_id: int, receipt: DeliveryReceipt):
        return cls(DispatchStatus.SENT, message_id=message_id, receipt=receipt)

    @classmethod
    def no_message_queued(cls):
        return cls(DispatchStatus.NO_MESSAGE_QUEUED)

    @classmethod
    def backend_unconfigured(cls, message_id: int):
        return cls(DispatchStatus.BACKEND_UNCONFIGURED, message_id=message_id)

    @classmethod
    def destination_missing(cls, message_id: int):
        return cls(DispatchStatus.DESTINATION_MISSING, message_id=message_id)

    @classmethod
    def delivery_failed(cls, message_id: int, reason: str):
        return cls(DispatchStatus.DELIVERY_FAILED, message_id=message_id, reason=reason)

    @property
    def success(self) -> bool:
        return self.status == DispatchStatus.SENT

    def to_dict(self):
        return {
            'success': self.success,
            'status': self.status.value,
            'message': self.reason or _STATUS_TEXT[self.status],
            'message_id': self.message_id,
            'receipt': self.receipt.to_dict() if self.receipt else None
        }
