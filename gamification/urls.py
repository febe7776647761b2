from django.urls import path
from .views import user_stats

app_name = 'gamification'

urlpatterns = [
    path('stats/', user_stats, name='user_stats'),
]
