from notifications.models import AuditLog
import logging

logger = logging.getLogger('notifications.orchestrator')


def log_event(action: str, entity_type: str, entity_id, school_id, details: dict = None, performed_by=None):
    AuditLog.objects.create(
        school_id=school_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        details=details or {},
        performed_by=performed_by,
    )
    logger.info(f"Audit: {action} {entity_type} {entity_id} - {details or {}}")
