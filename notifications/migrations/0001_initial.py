# Generated initial migration for notification models

from django.db import migrations, models
import django.db.models.deletion
import uuid
from django.db.models import JSONField


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('school_id', models.UUIDField(db_index=True)),
                ('branch_id', models.UUIDField(blank=True, null=True)),
                ('title', models.CharField(max_length=255)),
                ('message', models.TextField()),
                ('type', models.CharField(choices=[('ANNOUNCEMENT', 'ANNOUNCEMENT'), ('REMINDER', 'REMINDER'), ('FEE_DUE', 'FEE_DUE'), ('ATTENDANCE_ALERT', 'ATTENDANCE_ALERT'), ('EXAM_RESULT', 'EXAM_RESULT'), ('EVENT', 'EVENT'), ('HOLIDAY', 'HOLIDAY'), ('GENERAL', 'GENERAL')], default='GENERAL', max_length=20)),
                ('channels', JSONField(default=list)),
                ('target_type', models.CharField(choices=[('ALL_USERS', 'ALL_USERS'), ('SPECIFIC_ROLES', 'SPECIFIC_ROLES'), ('SPECIFIC_USERS', 'SPECIFIC_USERS'), ('BRANCH_WISE', 'BRANCH_WISE'), ('CLASS_WISE', 'CLASS_WISE'), ('SECTION_WISE', 'SECTION_WISE')], max_length=20)),
                ('target_roles', JSONField(default=list)),
                ('target_user_ids', JSONField(default=list)),
                ('target_branch_ids', JSONField(default=list)),
                ('target_class_ids', JSONField(default=list)),
                ('target_section_ids', JSONField(default=list)),
                ('filters', JSONField(blank=True, null=True)),
                ('scheduled_at', models.DateTimeField(blank=True, null=True)),
                ('expires_at', models.DateTimeField(blank=True, null=True)),
                ('dispatched_at', models.DateTimeField(blank=True, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_by', models.UUIDField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['school_id', 'created_at'], name='notif_school_created_idx'),
                    models.Index(fields=['scheduled_at', 'dispatched_at'], name='notif_schedule_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Delivery',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('user_id', models.UUIDField(db_index=True)),
                ('channel', models.CharField(choices=[('IN_APP', 'IN_APP'), ('EMAIL', 'EMAIL'), ('SMS', 'SMS'), ('PUSH', 'PUSH')], max_length=10)),
                ('status', models.CharField(choices=[('PENDING', 'PENDING'), ('DELIVERED', 'DELIVERED'), ('FAILED', 'FAILED')], default='PENDING', max_length=10)),
                ('delivered_at', models.DateTimeField(blank=True, null=True)),
                ('failure_reason', models.TextField(blank=True, null=True)),
                ('retry_count', models.PositiveIntegerField(default=0)),
                ('metadata', JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('notification', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='deliveries', to='notifications.notification')),
            ],
            options={
                'indexes': [
                    models.Index(fields=['user_id', 'channel', 'status'], name='delivery_inbox_idx'),
                    models.Index(fields=['notification', 'status'], name='delivery_notif_status_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('notification', 'user_id', 'channel'), name='unique_delivery_per_user_channel'),
                ],
            },
        ),
        migrations.CreateModel(
            name='DeviceToken',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('school_id', models.UUIDField(blank=True, db_index=True, null=True)),
                ('user_id', models.UUIDField(db_index=True)),
                ('device_type', models.CharField(choices=[('android', 'ANDROID'), ('ios', 'IOS'), ('web', 'WEB')], max_length=10)),
                ('device_token', models.CharField(max_length=500, unique=True)),
                ('device_id', models.CharField(blank=True, max_length=255)),
                ('is_active', models.BooleanField(default=True)),
                ('last_used', models.DateTimeField(auto_now=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'indexes': [
                    models.Index(fields=['user_id', 'is_active'], name='device_user_active_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('school_id', models.UUIDField(db_index=True)),
                ('entity_type', models.CharField(max_length=50)),
                ('entity_id', models.UUIDField()),
                ('action', models.CharField(max_length=50)),
                ('details', JSONField(default=dict)),
                ('performed_by', models.UUIDField(blank=True, null=True)),
                ('timestamp', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'ordering': ['-timestamp'],
                'indexes': [
                    models.Index(fields=['school_id', 'timestamp'], name='audit_school_ts_idx'),
                ],
            },
        ),
    ]
