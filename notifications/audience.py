"""
Audience resolution.

Turns a notification's targeting rule into the set of recipient user ids,
reading the directory as it stands at call time.
"""
from directory import lookup
from notifications.models import TargetType
from notifications.utils.exceptions import TargetingConfigurationError
import logging
import uuid

logger = logging.getLogger('notifications.audience')

# target_type -> the Notification field holding its id/role list
TARGET_FIELDS = {
    TargetType.SPECIFIC_ROLES.value: 'target_roles',
    TargetType.SPECIFIC_USERS.value: 'target_user_ids',
    TargetType.BRANCH_WISE.value: 'target_branch_ids',
    TargetType.CLASS_WISE.value: 'target_class_ids',
    TargetType.SECTION_WISE.value: 'target_section_ids',
}


def _as_uuids(values, field):
    try:
        return {v if isinstance(v, uuid.UUID) else uuid.UUID(str(v)) for v in values}
    except (TypeError, ValueError, AttributeError):
        raise TargetingConfigurationError(f"{field} must contain valid UUIDs")


def validate_targeting(target_type, roles=None, user_ids=None, branch_ids=None,
                       class_ids=None, section_ids=None):
    """Raise TargetingConfigurationError unless the rule is well formed."""
    if target_type == TargetType.ALL_USERS.value:
        return
    if target_type not in TARGET_FIELDS:
        raise TargetingConfigurationError(f"Unknown target type: {target_type}")

    values = {
        'target_roles': roles,
        'target_user_ids': user_ids,
        'target_branch_ids': branch_ids,
        'target_class_ids': class_ids,
        'target_section_ids': section_ids,
    }
    field = TARGET_FIELDS[target_type]
    selected = values[field]
    if not selected:
        raise TargetingConfigurationError(f"{target_type} requires a non-empty {field}")

    if field == 'target_roles':
        unknown = set(selected) - lookup.ROLE_VALUES
        if unknown:
            raise TargetingConfigurationError(f"Unknown roles: {', '.join(sorted(map(str, unknown)))}")
    else:
        _as_uuids(selected, field)


def resolve(notification):
    """Deduplicated recipient ids for the notification's targeting rule."""
    target_type = notification.target_type
    validate_targeting(
        target_type,
        roles=notification.target_roles,
        user_ids=notification.target_user_ids,
        branch_ids=notification.target_branch_ids,
        class_ids=notification.target_class_ids,
        section_ids=notification.target_section_ids,
    )
    school_id = notification.school_id

    if target_type == TargetType.ALL_USERS.value:
        recipients = lookup.active_users(school_id)
    elif target_type == TargetType.SPECIFIC_ROLES.value:
        recipients = lookup.active_users_with_roles(school_id, notification.target_roles)
    elif target_type == TargetType.SPECIFIC_USERS.value:
        recipients = _as_uuids(notification.target_user_ids, 'target_user_ids')
    elif target_type == TargetType.BRANCH_WISE.value:
        recipients = lookup.active_users_in_branches(
            school_id, _as_uuids(notification.target_branch_ids, 'target_branch_ids'))
    elif target_type == TargetType.CLASS_WISE.value:
        recipients = lookup.active_members_of_classes(
            school_id, _as_uuids(notification.target_class_ids, 'target_class_ids'))
    else:
        recipients = lookup.active_members_of_sections(
            school_id, _as_uuids(notification.target_section_ids, 'target_section_ids'))

    logger.info(f"Resolved {len(recipients)} recipients for notification {notification.id} ({target_type})")
    return set(recipients)
