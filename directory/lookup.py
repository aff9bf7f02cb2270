"""
Directory queries used by the notification core.

Every function returns user ids (UUID) of ACTIVE users only, except
`get_user`, which returns the row regardless of status so callers can
decide what an inactive user means for them.
"""
from django.core.exceptions import ValidationError
from django.db.models import Q
from directory.models import DirectoryUser, UserRole
import logging

logger = logging.getLogger('directory.lookup')

ROLE_VALUES = frozenset(tag.value for tag in UserRole)


def _ids(queryset):
    return set(queryset.values_list('id', flat=True))


def active_users(school_id):
    return _ids(DirectoryUser.active.filter(school_id=school_id))


def active_users_with_roles(school_id, roles):
    return _ids(DirectoryUser.active.filter(school_id=school_id, role__in=list(roles)))


def active_users_in_branches(school_id, branch_ids):
    return _ids(DirectoryUser.active.filter(school_id=school_id, branch_id__in=list(branch_ids)))


def active_members_of_classes(school_id, class_ids):
    """Students enrolled in, plus staff teaching, any of the classes"""
    class_ids = list(class_ids)
    return _ids(
        DirectoryUser.active.filter(school_id=school_id).filter(
            Q(enrollment__class_id__in=class_ids) |
            Q(teaching_assignments__class_id__in=class_ids)
        ).distinct()
    )


def active_members_of_sections(school_id, section_ids):
    """Students placed in, plus staff teaching, any of the sections"""
    section_ids = list(section_ids)
    return _ids(
        DirectoryUser.active.filter(school_id=school_id).filter(
            Q(enrollment__section_id__in=section_ids) |
            Q(teaching_assignments__section_id__in=section_ids)
        ).distinct()
    )


def get_user(user_id):
    try:
        return DirectoryUser.objects.get(id=user_id)
    except (DirectoryUser.DoesNotExist, ValidationError, ValueError):
        logger.debug(f"Directory user {user_id} not found")
        return None
