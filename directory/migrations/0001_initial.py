# Generated initial migration for directory models

from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='DirectoryUser',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('school_id', models.UUIDField(blank=True, db_index=True, null=True)),
                ('branch_id', models.UUIDField(blank=True, db_index=True, null=True)),
                ('role', models.CharField(choices=[('SUPER_ADMIN', 'SUPER_ADMIN'), ('SCHOOL_ADMIN', 'SCHOOL_ADMIN'), ('BRANCH_ADMIN', 'BRANCH_ADMIN'), ('TEACHER', 'TEACHER'), ('STAFF', 'STAFF'), ('STUDENT', 'STUDENT'), ('PARENT', 'PARENT')], max_length=20)),
                ('status', models.CharField(choices=[('ACTIVE', 'ACTIVE'), ('INACTIVE', 'INACTIVE'), ('SUSPENDED', 'SUSPENDED')], default='ACTIVE', max_length=20)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('phone', models.CharField(blank=True, max_length=20)),
                ('first_name', models.CharField(blank=True, max_length=100)),
                ('last_name', models.CharField(blank=True, max_length=100)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'indexes': [
                    models.Index(fields=['school_id', 'status'], name='dir_user_school_status_idx'),
                    models.Index(fields=['school_id', 'role'], name='dir_user_school_role_idx'),
                    models.Index(fields=['school_id', 'branch_id'], name='dir_user_school_branch_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StudentEnrollment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('class_id', models.UUIDField(db_index=True)),
                ('section_id', models.UUIDField(blank=True, db_index=True, null=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='enrollment', to='directory.directoryuser')),
            ],
        ),
        migrations.CreateModel(
            name='TeachingAssignment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('class_id', models.UUIDField(db_index=True)),
                ('section_id', models.UUIDField(blank=True, db_index=True, null=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='teaching_assignments', to='directory.directoryuser')),
            ],
            options={
                'unique_together': {('user', 'class_id', 'section_id')},
            },
        ),
    ]
