import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Objective',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('status', models.CharField(choices=[('queued', 'Queued'), ('building', 'Building'), ('testing', 'Testing'), ('adjusting', 'Adjusting'), ('achieved', 'Achieved'), ('paused', 'Paused'), ('discarded', 'Discarded')], default='queued', max_length=20)),
                ('deadline', models.DateField(blank=True, null=True)),
                ('streak_days', models.PositiveIntegerField(default=0)),
                ('last_checkin_at', models.DateTimeField(blank=True, null=True)),
                ('paused_until', models.DateField(blank=True, help_text='Local date on which a paused objective becomes active again', null=True)),
                ('paused_from_status', models.CharField(blank=True, max_length=20)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='objectives', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['created_at'],
            },
        ),
        migrations.CreateModel(
            name='Checkin',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('step_title', models.CharField(max_length=300)),
                ('step_description', models.TextField(blank=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('done', 'Done')], default='pending', max_length=20)),
                ('effort', models.CharField(choices=[('very_small', 'Very small'), ('small', 'Small'), ('medium', 'Medium')], default='small', max_length=20)),
                ('source', models.CharField(choices=[('whatsapp', 'WhatsApp'), ('app', 'App'), ('helper', 'Helper')], default='app', max_length=20)),
                ('day_date', models.DateField(help_text='Local day the step belongs to')),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('objective', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='checkins', to='objectives.objective')),
            ],
            options={
                'ordering': ['created_at'],
                'indexes': [models.Index(fields=['objective', 'status'], name='checkin_objective_status_idx')],
            },
        ),
    ]
