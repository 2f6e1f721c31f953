import asyncio
import logging
from abc import ABC, abstractmethod
from email.message import EmailMessage
from email.utils import make_msgid

import aiosmtplib
import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from twilio.base.exceptions import TwilioException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client as TwilioClient

from daily_sms.config import Config
from daily_sms.exceptions import DeliveryError
from daily_sms.models import DeliveryReceipt

logger = logging.getLogger(__name__)

SMTP_HOSTS = {
    'gmail': 'smtp.gmail.com',
    'outlook': 'smtp-mail.outlook.com',
    'hotmail': 'smtp-mail.outlook.com',
    'yahoo': 'smtp.mail.yahoo.com',
}


class DeliveryBackend(ABC):
    """
    A transport that delivers one text body to one destination address.

    Backends that talk to an email-to-SMS gateway set
    ``requires_address_translation`` so the dispatcher resolves the phone
    number to a gateway address first; carrier APIs take the number as-is.
    """

    name = 'backend'
    requires_address_translation = False

    @abstractmethod
    def is_configured(self) -> bool:
        """True when credentials for the transport are present"""

    @abstractmethod
    def send(self, destination: str, body: str) -> DeliveryReceipt:
        """Deliver body, or raise DeliveryError"""


class TwilioBackend(DeliveryBackend):
    """Sends SMS through the Twilio REST API"""

    name = 'twilio'

    def __init__(self, account_sid: str, auth_token: str, from_number: str,
                 timeout: float = 30, client=None):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    @property
    def client(self):
        if self._client is None:
            self._client = TwilioClient(
                self.account_sid,
                self.auth_token,
                http_client=TwilioHttpClient(timeout=self.timeout)
            )
        return self._client

    def send(self, destination: str, body: str) -> DeliveryReceipt:
        try:
            message = self.client.messages.create(
                body=body,
                from_=self.from_number,
                to=destination
            )
        except TwilioException as e:
            raise DeliveryError(f"Twilio rejected message: {e}", backend=self.name) from e
        except OSError as e:
            raise DeliveryError(f"Twilio request failed: {e}", backend=self.name) from e

        logger.info(f"Twilio accepted message {message.sid}")
        return DeliveryReceipt(backend=self.name, destination=destination, reference=message.sid)


class EmailGatewayBackend(DeliveryBackend):
    """Sends SMS by emailing the carrier's email-to-SMS gateway over SMTP"""

    name = 'email_gateway'
    requires_address_translation = True

    def __init__(self, host: str, port: int, username: str, password: str,
                 timeout: float = 30, smtp_send=aiosmtplib.send):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout
        self.smtp_send = smtp_send

    def is_configured(self) -> bool:
        return bool(self.host and self.username and self.password)

    def send(self, destination: str, body: str) -> DeliveryReceipt:
        email = EmailMessage()
        email['From'] = self.username
        email['To'] = destination
        # Empty subject keeps the SMS clean on most gateways
        email['Subject'] = ''
        email['Message-ID'] = make_msgid(domain=self.username.rpartition('@')[2] or None)
        email.set_content(body)

        try:
            # Runs on the dispatcher thread, which has no event loop of its own
            refused, _ = asyncio.run(self.smtp_send(
                email,
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                start_tls=True,
                timeout=self.timeout
            ))
        except (aiosmtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"SMTP delivery to {destination} failed: {e}", backend=self.name) from e

        if refused:
            raise DeliveryError(f"Gateway refused recipients: {refused}", backend=self.name)

        return DeliveryReceipt(backend=self.name, destination=destination, reference=email['Message-ID'])


class SESBackend(DeliveryBackend):
    """Sends SMS by emailing the carrier gateway through Amazon SES"""

    name = 'ses'
    requires_address_translation = True

    def __init__(self, config: Config, sender: str, ses_client=None):
        self.sender = sender
        self._config = config
        self._client = ses_client

    def is_configured(self) -> bool:
        return bool(self.sender)

    @property
    def client(self):
        if self._client is None:
            timeout = self._config.SEND_TIMEOUT
            self._client = boto3.client(
                'ses',
                config=BotoConfig(connect_timeout=timeout, read_timeout=timeout),
                **self._config.aws_client_kwargs()
            )
        return self._client

    def send(self, destination: str, body: str) -> DeliveryReceipt:
        try:
            response = self.client.send_email(
                Source=self.sender,
                Destination={'ToAddresses': [destination]},
                Message={
                    'Subject': {'Data': ''},
                    'Body': {'Text': {'Data': body}}
                }
            )
        except (ClientError, BotoCoreError) as e:
            raise DeliveryError(f"SES delivery to {destination} failed: {e}", backend=self.name) from e

        return DeliveryReceipt(backend=self.name, destination=destination, reference=response['MessageId'])


def create_backend(config: Config) -> DeliveryBackend:
    """Build the delivery backend selected by DELIVERY_BACKEND"""
    if config.DELIVERY_BACKEND == 'twilio':
        backend = TwilioBackend(
            config.TWILIO_ACCOUNT_SID,
            config.TWILIO_AUTH_TOKEN,
            config.TWILIO_PHONE_NUMBER,
            timeout=config.SEND_TIMEOUT
        )
    elif config.DELIVERY_BACKEND == 'ses':
        backend = SESBackend(config, config.SES_SENDER)
    else:
        host = config.SMTP_HOST or SMTP_HOSTS.get((config.EMAIL_SERVICE or '').lower())
        backend = EmailGatewayBackend(
            host,
            config.SMTP_PORT,
            config.EMAIL_USER,
            config.EMAIL_PASS,
            timeout=config.SEND_TIMEOUT
        )

    if backend.is_configured():
        logger.info(f"✓ Delivery backend '{backend.name}' initialized")
    else:
        logger.warning(f"⚠ Delivery backend '{backend.name}' has no credentials - sending will not work")
    return backend
