from django.contrib import admin

from .models import Reminder, WhatsAppConfig


@admin.register(WhatsAppConfig)
class WhatsAppConfigAdmin(admin.ModelAdmin):
    list_display = ['user', 'phone_number', 'is_active', 'updated_at']
    list_filter = ['is_active']
    search_fields = ['phone_number', 'phone_digits', 'user__email', 'user__username']


@admin.register(Reminder)
class ReminderAdmin(admin.ModelAdmin):
    list_display = ['user', 'slot_type', 'slot_date', 'status', 'objective', 'response_action', 'forced', 'sent_at']
    list_filter = ['status', 'slot_type', 'forced', 'response_action']
    search_fields = ['user__email', 'user__username', 'message_content', 'kapso_message_id']
    date_hierarchy = 'slot_date'
    readonly_fields = ['created_at', 'sent_at', 'delivered_at', 'responded_at', 'kapso_message_id']
