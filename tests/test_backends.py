from unittest import mock

import aiosmtplib
import boto3
import pytest
from botocore.stub import Stubber
from twilio.base.exceptions import TwilioRestException

from daily_sms.backends import (
    EmailGatewayBackend, SESBackend, TwilioBackend, create_backend
)
from daily_sms.config import Config
from daily_sms.exceptions import DeliveryError


class TestTwilioBackend:

    def test_configuration_requires_all_credentials(self):
        assert TwilioBackend("AC1", "token", "+15550000000").is_configured()
        assert not TwilioBackend("AC1", None, "+15550000000").is_configured()
        assert not TwilioBackend("AC1", "token", "").is_configured()

    def test_send_uses_raw_number(self):
        client = mock.MagicMock()
        client.messages.create.return_value = mock.MagicMock(sid="SM123")
        backend = TwilioBackend("AC1", "token", "+15550000000", client=client)

        receipt = backend.send("+15551234567", "Hello")

        assert not backend.requires_address_translation
        client.messages.create.assert_called_once_with(
            body="Hello", from_="+15550000000", to="+15551234567"
        )
        assert receipt.reference == "SM123"
        assert receipt.backend == "twilio"

    def test_rejected_message_raises_delivery_error(self):
        client = mock.MagicMock()
        client.messages.create.side_effect = TwilioRestException(400, "/Messages", msg="invalid To")
        backend = TwilioBackend("AC1", "token", "+15550000000", client=client)

        with pytest.raises(DeliveryError) as excinfo:
            backend.send("+1555", "Hello")

        assert excinfo.value.backend == "twilio"


class TestEmailGatewayBackend:

    def _backend(self, smtp_send):
        return EmailGatewayBackend(
            "smtp.gmail.com", 587, "me@example.com", "app-password",
            timeout=10, smtp_send=smtp_send
        )

    def test_sends_through_smtp_with_empty_subject(self):
        smtp_send = mock.AsyncMock(return_value=({}, "250 OK"))
        backend = self._backend(smtp_send)

        receipt = backend.send("5551234567@tmomail.net", "Hello")

        smtp_send.assert_awaited_once()
        sent = smtp_send.call_args[0][0]
        assert smtp_send.call_args[1] == {
            'hostname': "smtp.gmail.com",
            'port': 587,
            'username': "me@example.com",
            'password': "app-password",
            'start_tls': True,
            'timeout': 10
        }
        assert sent['To'] == "5551234567@tmomail.net"
        assert sent['Subject'] == ""
        assert sent.get_content().strip() == "Hello"
        assert receipt.reference == sent['Message-ID']
        assert backend.requires_address_translation

    def test_connection_error_raises_delivery_error(self):
        smtp_send = mock.AsyncMock(side_effect=aiosmtplib.SMTPConnectError("connection refused"))

        with pytest.raises(DeliveryError):
            self._backend(smtp_send).send("5551234567@tmomail.net", "Hello")

    def test_socket_error_raises_delivery_error(self):
        smtp_send = mock.AsyncMock(side_effect=OSError("network unreachable"))

        with pytest.raises(DeliveryError):
            self._backend(smtp_send).send("5551234567@tmomail.net", "Hello")

    def test_auth_error_raises_delivery_error(self):
        smtp_send = mock.AsyncMock(side_effect=aiosmtplib.SMTPAuthenticationError(535, "bad credentials"))

        with pytest.raises(DeliveryError) as excinfo:
            self._backend(smtp_send).send("5551234567@tmomail.net", "Hello")

        assert excinfo.value.backend == "email_gateway"

    def test_refused_recipient_raises_delivery_error(self):
        refused = {"5551234567@tmomail.net": aiosmtplib.SMTPResponse(550, "no such user")}
        smtp_send = mock.AsyncMock(return_value=(refused, "250 OK"))

        with pytest.raises(DeliveryError):
            self._backend(smtp_send).send("5551234567@tmomail.net", "Hello")

    def test_unconfigured_without_password(self):
        backend = EmailGatewayBackend("smtp.gmail.com", 587, "me@example.com", None)
        assert not backend.is_configured()


@pytest.fixture
def ses_client():
    return boto3.client(
        'ses',
        region_name='us-east-1',
        aws_access_key_id='testing',
        aws_secret_access_key='testing'
    )


class TestSESBackend:

    def test_send_email(self, ses_client):
        backend = SESBackend(Config(), "daily@example.com", ses_client=ses_client)

        with Stubber(ses_client) as stubber:
            stubber.add_response('send_email', {'MessageId': 'ses-1'}, {
                'Source': 'daily@example.com',
                'Destination': {'ToAddresses': ['5551234567@vtext.com']},
                'Message': {
                    'Subject': {'Data': ''},
                    'Body': {'Text': {'Data': 'Hello'}}
                }
            })

            receipt = backend.send('5551234567@vtext.com', 'Hello')

        assert receipt.reference == 'ses-1'
        assert backend.requires_address_translation

    def test_rejected_email_raises_delivery_error(self, ses_client):
        backend = SESBackend(Config(), "daily@example.com", ses_client=ses_client)

        with Stubber(ses_client) as stubber:
            stubber.add_client_error('send_email', service_error_code='MessageRejected')

            with pytest.raises(DeliveryError):
                backend.send('5551234567@vtext.com', 'Hello')

    def test_unconfigured_without_sender(self):
        assert not SESBackend(Config(), None).is_configured()


class TestCreateBackend:

    def test_twilio(self):
        config = Config(
            DELIVERY_BACKEND='twilio',
            TWILIO_ACCOUNT_SID='AC1',
            TWILIO_AUTH_TOKEN='token',
            TWILIO_PHONE_NUMBER='+15550000000'
        )
        backend = create_backend(config)

        assert isinstance(backend, TwilioBackend)
        assert backend.is_configured()

    def test_email_gateway_derives_smtp_host(self):
        config = Config(
            DELIVERY_BACKEND='email_gateway',
            EMAIL_SERVICE='outlook',
            SMTP_HOST=None,
            EMAIL_USER='me@example.com',
            EMAIL_PASS='secret'
        )
        backend = create_backend(config)

        assert isinstance(backend, EmailGatewayBackend)
        assert backend.host == 'smtp-mail.outlook.com'

    def test_explicit_smtp_host_wins(self):
        config = Config(DELIVERY_BACKEND='email_gateway', SMTP_HOST='mail.internal', SMTP_PORT=2525)
        backend = create_backend(config)

        assert backend.host == 'mail.internal'
        assert backend.port == 2525

    def test_ses(self):
        backend = create_backend(Config(DELIVERY_BACKEND='ses', SES_SENDER='daily@example.com'))

        assert isinstance(backend, SESBackend)
        assert backend.is_configured()
