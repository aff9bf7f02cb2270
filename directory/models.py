from django.db import models
from enum import Enum
import uuid


class UserRole(Enum):
    SUPER_ADMIN = 'SUPER_ADMIN'
    SCHOOL_ADMIN = 'SCHOOL_ADMIN'
    BRANCH_ADMIN = 'BRANCH_ADMIN'
    TEACHER = 'TEACHER'
    STAFF = 'STAFF'
    STUDENT = 'STUDENT'
    PARENT = 'PARENT'


class UserStatus(Enum):
    ACTIVE = 'ACTIVE'
    INACTIVE = 'INACTIVE'
    SUSPENDED = 'SUSPENDED'


class ActiveUserManager(models.Manager):
    def get_queryset(self):
        return super().get_queryset().filter(status=UserStatus.ACTIVE.value)


class DirectoryUser(models.Model):
    """Read model of a school user as seen by the notification core"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    school_id = models.UUIDField(db_index=True, null=True, blank=True)  # Null for platform-level admins
    branch_id = models.UUIDField(db_index=True, null=True, blank=True)
    role = models.CharField(max_length=20, choices=[(tag.value, tag.name) for tag in UserRole])
    status = models.CharField(max_length=20, choices=[(tag.value, tag.name) for tag in UserStatus], default=UserStatus.ACTIVE.value)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)  # E.164
    first_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = models.Manager()
    active = ActiveUserManager()

    class Meta:
        indexes = [
            models.Index(fields=['school_id', 'status'], name='dir_user_school_status_idx'),
            models.Index(fields=['school_id', 'role'], name='dir_user_school_role_idx'),
            models.Index(fields=['school_id', 'branch_id'], name='dir_user_school_branch_idx'),
        ]

    def __str__(self):
        return f"{self.first_name} {self.last_name} ({self.role})".strip()

    @property
    def is_active(self):
        return self.status == UserStatus.ACTIVE.value

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()


class StudentEnrollment(models.Model):
    """Places a student in a class and (optionally) a section"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(DirectoryUser, on_delete=models.CASCADE, related_name='enrollment')
    class_id = models.UUIDField(db_index=True)
    section_id = models.UUIDField(db_index=True, null=True, blank=True)

    def __str__(self):
        return f"{self.user_id} in class {self.class_id}"


class TeachingAssignment(models.Model):
    """Staff member assigned to teach a class, or one section of it"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(DirectoryUser, on_delete=models.CASCADE, related_name='teaching_assignments')
    class_id = models.UUIDField(db_index=True)
    section_id = models.UUIDField(db_index=True, null=True, blank=True)

    class Meta:
        unique_together = [('user', 'class_id', 'section_id')]

    def __str__(self):
        return f"{self.user_id} teaches {self.class_id}/{self.section_id or '*'}"
