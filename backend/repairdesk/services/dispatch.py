from __future__ import annotations
"""Delivers queued OutboundMessage rows after the owning transaction committed.

Contract: each message is attempted at most once. It is marked ``sending`` and
committed before the transport call, so a crash mid-send never leads to a second
attempt. There is no automatic retry; a failed row stays ``failed`` with its error.
"""
from datetime import datetime, timezone
from typing import Iterable, List, Mapping, Optional

from flask import current_app

from repairdesk.constants.statuses import OutboundStatus
from repairdesk.models.notification import OutboundMessage
from repairdesk.services.transports import SendResult


def _now():
    return datetime.now(timezone.utc)


def _send(sink, msg: OutboundMessage) -> SendResult:
    try:
        result = sink.send(msg.recipient, msg.body, msg.subject)
    except Exception as exc:  # transport boundary: any sink failure becomes a failed row
        return SendResult(False, error=f"{type(exc).__name__}: {exc}"[:255])
    if not isinstance(result, SendResult):
        return SendResult(bool(result))
    return result


def dispatch_outbound(session, messages: Iterable[OutboundMessage], sinks: Mapping[str, object]) -> List[str]:
    """Send queued messages; return human-readable warnings for the ones that failed."""
    warnings: List[str] = []
    logger = current_app.logger
    for msg in messages:
        if msg.status != OutboundStatus.QUEUED.value:
            continue
        sink = sinks.get(msg.channel)
        msg.attempted_at = _now()
        if sink is None:
            msg.status = OutboundStatus.FAILED.value
            msg.error = f"channel {msg.channel} not configured"
            session.commit()
            warnings.append(_warning(msg))
            continue
        msg.status = OutboundStatus.SENDING.value
        session.commit()
        result = _send(sink, msg)
        if result.success:
            msg.status = OutboundStatus.SENT.value
            msg.provider_message_id = result.message_id
            logger.info('Outbound %s #%s sent to %s (%s)', msg.channel, msg.id, msg.recipient, msg.event)
        else:
            msg.status = OutboundStatus.FAILED.value
            msg.error = (result.error or 'unknown error')[:255]
            logger.warning('Outbound %s #%s to %s failed: %s', msg.channel, msg.id, msg.recipient, msg.error)
            warnings.append(_warning(msg))
        session.commit()
    return warnings


def _warning(msg: OutboundMessage) -> str:
    who = msg.recipient_label or msg.recipient
    return f"{msg.channel} notification to {who} failed: {msg.error}"


def commit_and_dispatch(session, results: Iterable[Optional[object]], sinks: Optional[Mapping[str, object]] = None) -> List[str]:
    """Commit the unit of work, then deliver whatever the coordinator results queued."""
    session.commit()
    if sinks is None:
        sinks = current_app.extensions.get('notification_sinks', {})
    messages = [m for r in results if r is not None for m in r.outbound]
    return dispatch_outbound(session, messages, sinks)

__all__ = ['dispatch_outbound', 'commit_and_dispatch']
