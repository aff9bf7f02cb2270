"""
Built-in message templates offered to publishers.

Placeholders use ``{name}`` and are filled in by the client before the
notification is created.
"""
from notifications.models import ChannelType, NotificationType, TargetType

IN_APP = ChannelType.IN_APP.value
EMAIL = ChannelType.EMAIL.value
SMS = ChannelType.SMS.value

MESSAGE_TEMPLATES = [
    {
        'id': 'exam_reminder',
        'name': 'Exam Reminder',
        'title': 'Upcoming Exam: {examName}',
        'message': 'Dear {studentName}, you have an upcoming {subject} exam on {examDate}. '
                   'Please prepare accordingly.',
        'type': NotificationType.REMINDER.value,
        'channels': [IN_APP, EMAIL],
        'target_type': TargetType.CLASS_WISE.value,
    },
    {
        'id': 'fee_due',
        'name': 'Fee Due Reminder',
        'title': 'Fee Payment Due',
        'message': 'Dear Parent, the fee payment for {studentName} is due on {dueDate}. Amount: {amount}',
        'type': NotificationType.FEE_DUE.value,
        'channels': [IN_APP, EMAIL, SMS],
        'target_type': TargetType.SPECIFIC_USERS.value,
    },
    {
        'id': 'attendance_alert',
        'name': 'Low Attendance Alert',
        'title': 'Low Attendance Alert',
        'message': "Dear Parent, {studentName}'s attendance is below 75%. Current attendance: {percentage}%",
        'type': NotificationType.ATTENDANCE_ALERT.value,
        'channels': [IN_APP, EMAIL],
        'target_type': TargetType.SPECIFIC_USERS.value,
    },
    {
        'id': 'result_published',
        'name': 'Exam Results Published',
        'title': 'Exam Results Available',
        'message': 'Dear {studentName}, your {examName} results are now available. Please check your dashboard.',
        'type': NotificationType.EXAM_RESULT.value,
        'channels': [IN_APP, EMAIL],
        'target_type': TargetType.CLASS_WISE.value,
    },
]
