from django.contrib import admin

from .models import Checkin, Objective


class CheckinInline(admin.TabularInline):
    model = Checkin
    extra = 0
    fields = ('step_title', 'status', 'effort', 'source', 'day_date', 'completed_at')


@admin.register(Objective)
class ObjectiveAdmin(admin.ModelAdmin):
    list_display = ['title', 'user', 'status', 'deadline', 'streak_days', 'last_checkin_at', 'deleted_at']
    list_filter = ['status']
    search_fields = ['title', 'user__email', 'user__username']
    inlines = [CheckinInline]


@admin.register(Checkin)
class CheckinAdmin(admin.ModelAdmin):
    list_display = ['step_title', 'objective', 'status', 'source', 'day_date', 'completed_at']
    list_filter = ['status', 'source', 'effort']
    search_fields = ['step_title', 'objective__title']
    date_hierarchy = 'day_date'
