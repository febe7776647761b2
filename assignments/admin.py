from django.contrib import admin

from .models import Assignment


@admin.register(Assignment)
class AssignmentAdmin(admin.ModelAdmin):
    list_display = ['helper_name', 'owner', 'checkin', 'contact_type', 'status', 'reminder_count', 'created_at']
    list_filter = ['status', 'contact_type']
    search_fields = ['helper_name', 'helper_contact', 'owner__email', 'checkin__step_title']
    readonly_fields = ['access_token', 'created_at', 'notification_sent_at', 'last_reminder_at', 'responded_at']
