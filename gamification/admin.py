from django.contrib import admin

from .models import UserStats


@admin.register(UserStats)
class UserStatsAdmin(admin.ModelAdmin):
    list_display = ['user', 'level', 'xp', 'streak_days', 'longest_streak', 'total_checkins', 'total_projects_completed']
    search_fields = ['user__email', 'user__username']
    readonly_fields = ['updated_at']
