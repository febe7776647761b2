"""
URL configuration for the Vicu reminder engine.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/whatsapp/', include('whatsapp.urls')),
    path('api/assignments/', include('assignments.urls')),
    path('api/gamification/', include('gamification.urls')),
    path('health/', include('health_check.urls')),
]
