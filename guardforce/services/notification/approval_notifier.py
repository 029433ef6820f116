import logging
from typing import Any, Dict

from guardforce.models.approval.approval_request import ApprovalRequest
from guardforce.workers.celery_tasks.approval_tasks import notify_approval_event

logger = logging.getLogger(__name__)

REQUEST_CREATED = "approval.request_created"
REQUEST_DECIDED = "approval.request_decided"


class ApprovalNotifier:
    """Best-effort publisher of approval lifecycle events.

    Runs after the database commit; a broker failure is logged and never
    surfaces to the caller.
    """

    def request_created(self, request: ApprovalRequest, module: str) -> None:
        self._publish(REQUEST_CREATED, request, module)

    def request_decided(self, request: ApprovalRequest, module: str) -> None:
        self._publish(REQUEST_DECIDED, request, module)

    def _payload(self, request: ApprovalRequest, module: str) -> Dict[str, Any]:
        return {
            "request_id": request.id,
            "org_id": request.org_id,
            "module": module,
            "request_type": request.request_type.value,
            "title": request.title,
            "status": request.status.value,
            "priority": request.priority.value,
            "requested_by": request.requested_by,
            "requested_by_name": request.requested_by_name,
            "approved_by_name": request.approved_by_name,
        }

    def _publish(self, event: str, request: ApprovalRequest, module: str) -> None:
        try:
            notify_approval_event.delay(event, self._payload(request, module))
            logger.info(f"Dispatched {event} for approval request {request.id}")
        except Exception as e:
            logger.error(f"Error dispatching {event} for approval request {request.id}: {e}")
