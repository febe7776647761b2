from django.urls import path
from . import views

app_name = 'assignments'

urlpatterns = [
    path('', views.create_assignment, name='create'),
    path('reminders/run/', views.run_assignment_reminders_view, name='run_reminders'),
    path('<str:token>/', views.assignment_detail, name='detail'),
]
