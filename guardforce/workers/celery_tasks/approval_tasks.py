"""
Approval event delivery. Consumers (inbox, email, push) hang off this task;
publishing never blocks or fails the approval transaction.
"""
import logging
from typing import Any, Dict

from guardforce.core.celery_app import celery_app

logger = logging.getLogger(__name__)

EVENT_MESSAGES = {
    "approval.request_created": "New approval request: {title} ({request_type}) from {requested_by_name}",
    "approval.request_decided": "Approval request {title} was {status}",
}


def build_notification_message(event: str, payload: Dict[str, Any]) -> str:
    template = EVENT_MESSAGES.get(event, "{event}: {title}")
    values = {"event": event, **{key: value if value is not None else "-" for key, value in payload.items()}}
    try:
        return template.format(**values)
    except KeyError as e:
        logger.warning(f"Missing field {e} for {event} message")
        return f"{event}: {payload.get('request_id')}"


@celery_app.task(name="guardforce.workers.celery_tasks.approval_tasks.notify_approval_event")
def notify_approval_event(event: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Deliver an approval lifecycle event to the tenant's approvers / the requester"""
    message = build_notification_message(event, payload)
    recipient = payload.get("requested_by") if event == "approval.request_decided" else f"approvers:{payload.get('module')}"
    logger.info(f"[{payload.get('org_id')}] -> {recipient}: {message}")
    return {"event": event, "recipient": recipient, "message": message}
