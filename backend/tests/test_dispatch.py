import pytest
from flask import Flask
from repairdesk import get_db
from repairdesk.models.notification import OutboundMessage
from repairdesk.services.dispatch import dispatch_outbound
from repairdesk.services.transports import SendResult


@pytest.fixture()
def app_context(app_instance):
    with app_instance.app_context():
        yield app_instance


def _message(status='queued', channel='sms'):
    session = get_db()
    msg = OutboundMessage(channel=channel, recipient='064 000 000', recipient_label='Test', body='Zdravo',
                          event='appointment_reminder', status=status)
    session.add(msg)
    session.commit()
    return msg


class CountingSink:
    def __init__(self, result=None):
        self.calls = 0
        self.result = result if result is not None else SendResult(True, message_id='abc')

    def send(self, recipient, body, subject=None):
        self.calls += 1
        return self.result


def test_sent_message_records_provider_id(app_context: Flask):
    msg = _message()
    sink = CountingSink()
    assert dispatch_outbound(get_db(), [msg], {'sms': sink}) == []
    assert msg.status == 'sent'
    assert msg.provider_message_id == 'abc'
    assert msg.attempted_at is not None


def test_each_message_attempted_at_most_once(app_context: Flask):
    msg = _message()
    sink = CountingSink()
    dispatch_outbound(get_db(), [msg], {'sms': sink})
    dispatch_outbound(get_db(), [msg], {'sms': sink})
    assert sink.calls == 1
    for status in ('sending', 'failed'):
        stale = _message(status=status)
        dispatch_outbound(get_db(), [stale], {'sms': sink})
        assert stale.status == status
    assert sink.calls == 1


def test_failure_result_becomes_warning(app_context: Flask):
    msg = _message()
    warnings = dispatch_outbound(get_db(), [msg], {'sms': CountingSink(SendResult(False, error='quota exceeded'))})
    assert warnings == ['sms notification to Test failed: quota exceeded']
    assert msg.status == 'failed'
    assert msg.error == 'quota exceeded'


def test_missing_sink_marks_failed(app_context: Flask):
    msg = _message(channel='whatsapp')
    warnings = dispatch_outbound(get_db(), [msg], {})
    assert msg.status == 'failed'
    assert msg.error == 'channel whatsapp not configured'
    assert len(warnings) == 1


def test_boolean_sink_result_is_accepted(app_context: Flask):
    msg = _message()

    class LegacySink:
        def send(self, recipient, body, subject=None):
            return True

    assert dispatch_outbound(get_db(), [msg], {'sms': LegacySink()}) == []
    assert msg.status == 'sent'
