from django.urls import path
from . import views

app_name = 'whatsapp'

urlpatterns = [
    path('reminders/run/', views.run_reminders_view, name='run_reminders'),
    path('webhook/', views.webhook, name='webhook'),
    path('config/', views.whatsapp_config, name='config'),
]
