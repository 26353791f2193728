from __future__ import annotations
"""External delivery channels for outbound notifications.

Each sink exposes ``send(recipient, body, subject=None) -> SendResult`` and never
raises for delivery problems; failures come back as ``SendResult(success=False)``.
``build_sinks`` only registers channels whose credentials are configured, so an
unconfigured channel is simply absent from the registry.
"""
import re
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any, Dict, Mapping, Optional

import requests

from repairdesk.constants.statuses import Channel


@dataclass(frozen=True)
class SendResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def format_phone(raw: Optional[str], country_code: str = '381') -> Optional[str]:
    """Digits-only international form: '064 123-456' -> '38164123456'."""
    if not raw:
        return None
    digits = re.sub(r'\D', '', raw)
    if not digits:
        return None
    if digits.startswith('00'):
        digits = digits[2:]
    elif digits.startswith('0'):
        digits = country_code + digits[1:]
    elif not digits.startswith(country_code):
        digits = country_code + digits
    return digits


def _error_text(exc: Exception) -> str:
    return f"{type(exc).__name__}: {exc}"[:255]


class SmsGatewaySink:
    channel = Channel.SMS.value

    def __init__(self, base_url: str, api_key: str, gateway_name: Optional[str] = None,
                 timeout: float = 10, country_code: str = '381'):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.gateway_name = gateway_name
        self.timeout = timeout
        self.country_code = country_code

    def send(self, recipient: str, body: str, subject: Optional[str] = None) -> SendResult:
        payload = {
            'api_key': self.api_key,
            'to': format_phone(recipient, self.country_code),
            'text': body,
        }
        if self.gateway_name:
            payload['gateway'] = self.gateway_name
        try:
            resp = requests.post(f"{self.base_url}/send", json=payload, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            return SendResult(False, error=_error_text(exc))
        if not data.get('success', False):
            return SendResult(False, error=str(data.get('error') or data.get('message') or 'gateway rejected message')[:255])
        return SendResult(True, message_id=str(data.get('message_id') or data.get('id') or '') or None)


class WhatsAppCloudSink:
    channel = Channel.WHATSAPP.value

    def __init__(self, access_token: str, phone_number_id: str, api_version: str = 'v18.0',
                 base_url: str = 'https://graph.facebook.com', timeout: float = 10, country_code: str = '381'):
        self.access_token = access_token
        self.url = f"{base_url.rstrip('/')}/{api_version}/{phone_number_id}/messages"
        self.timeout = timeout
        self.country_code = country_code

    def send(self, recipient: str, body: str, subject: Optional[str] = None) -> SendResult:
        payload = {
            'messaging_product': 'whatsapp',
            'recipient_type': 'individual',
            'to': format_phone(recipient, self.country_code),
            'type': 'text',
            'text': {'body': body},
        }
        headers = {'Authorization': f"Bearer {self.access_token}", 'Content-Type': 'application/json'}
        try:
            resp = requests.post(self.url, json=payload, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            return SendResult(False, error=_error_text(exc))
        messages = data.get('messages') or []
        message_id = messages[0].get('id') if messages else None
        return SendResult(True, message_id=message_id)


class SmtpEmailSink:
    channel = Channel.EMAIL.value

    def __init__(self, host: str, port: int = 587, username: Optional[str] = None, password: Optional[str] = None,
                 use_tls: bool = True, sender: str = 'servis@localhost', timeout: float = 10):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.timeout = timeout

    def send(self, recipient: str, body: str, subject: Optional[str] = None) -> SendResult:
        message = EmailMessage()
        message['From'] = self.sender
        message['To'] = recipient
        message['Subject'] = subject or 'Obaveštenje o servisu'
        message.set_content(body)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                smtp.ehlo()
                if self.use_tls:
                    smtp.starttls(context=ssl.create_default_context())
                    smtp.ehlo()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            return SendResult(False, error=_error_text(exc))
        return SendResult(True, message_id=message.get('Message-ID'))


def build_sinks(config: Mapping[str, Any]) -> Dict[str, Any]:
    """Channel value -> sink, for every channel with complete configuration."""
    timeout = config.get('NOTIFY_TIMEOUT_SECONDS', 10)
    country_code = config.get('DEFAULT_COUNTRY_CODE', '381')
    sinks: Dict[str, Any] = {}
    if config.get('SMS_GATEWAY_URL') and config.get('SMS_GATEWAY_API_KEY'):
        sinks[Channel.SMS.value] = SmsGatewaySink(
            config['SMS_GATEWAY_URL'], config['SMS_GATEWAY_API_KEY'], config.get('SMS_GATEWAY_NAME'),
            timeout=timeout, country_code=country_code,
        )
    if config.get('WHATSAPP_ACCESS_TOKEN') and config.get('WHATSAPP_PHONE_NUMBER_ID'):
        sinks[Channel.WHATSAPP.value] = WhatsAppCloudSink(
            config['WHATSAPP_ACCESS_TOKEN'], config['WHATSAPP_PHONE_NUMBER_ID'],
            api_version=config.get('WHATSAPP_API_VERSION', 'v18.0'),
            base_url=config.get('WHATSAPP_BASE_URL', 'https://graph.facebook.com'),
            timeout=timeout, country_code=country_code,
        )
    if config.get('SMTP_HOST'):
        sinks[Channel.EMAIL.value] = SmtpEmailSink(
            config['SMTP_HOST'], int(config.get('SMTP_PORT', 587)),
            config.get('SMTP_USERNAME'), config.get('SMTP_PASSWORD'),
            use_tls=config.get('SMTP_USE_TLS', True), sender=config.get('MAIL_FROM', 'servis@localhost'),
            timeout=timeout,
        )
    return sinks

__all__ = ['SendResult', 'format_phone', 'SmsGatewaySink', 'WhatsAppCloudSink', 'SmtpEmailSink', 'build_sinks']
