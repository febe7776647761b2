import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('objectives', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='WhatsAppConfig',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('phone_number', models.CharField(help_text='E.164, e.g. +51987654321', max_length=20)),
                ('phone_digits', models.CharField(db_index=True, editable=False, max_length=20)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='whatsapp_config', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'WhatsApp Config',
                'verbose_name_plural': 'WhatsApp Configs',
            },
        ),
        migrations.CreateModel(
            name='Reminder',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('slot_type', models.CharField(choices=[('MORNING_FOCUS', 'Morning focus'), ('LATE_MORNING_PUSH', 'Late morning push'), ('AFTERNOON_MICRO', 'Afternoon micro-step'), ('NIGHT_REVIEW', 'Night review'), ('FOLLOW_UP', 'Follow-up')], max_length=30)),
                ('slot_date', models.DateField(help_text='Local calendar day of the slot')),
                ('forced', models.BooleanField(default=False, help_text='Sent on demand, outside the once-per-day rule')),
                ('message_content', models.TextField(blank=True)),
                ('message_style', models.CharField(blank=True, max_length=20)),
                ('step_title', models.CharField(blank=True, max_length=300)),
                ('step_description', models.TextField(blank=True)),
                ('status', models.CharField(choices=[('queued', 'Queued'), ('sent', 'Sent'), ('delivered', 'Delivered'), ('responded', 'Responded'), ('expired', 'Expired')], default='queued', max_length=20)),
                ('response_options', models.JSONField(blank=True, default=dict, help_text='Reply code to action, e.g. {"1": "commit_today"}')),
                ('user_response', models.TextField(blank=True)),
                ('response_action', models.CharField(blank=True, choices=[('commit_today', 'Commit today'), ('change_step', 'Change step'), ('pause_objective', 'Pause objective'), ('smaller_step', 'Smaller step'), ('later', 'Later'), ('stuck', 'Stuck'), ('do_now', 'Do now'), ('skip_today', 'Skip today'), ('feeling_good', 'Feeling good'), ('feeling_tired', 'Feeling tired'), ('feeling_meh', 'Feeling meh'), ('rethink_objective', 'Rethink objective'), ('keep_same', 'Keep same'), ('pause_week', 'Pause a week'), ('still_priority', 'Still a priority'), ('maybe_pause', 'Maybe pause'), ('unsure', 'Unsure'), ('done', 'Done'), ('alternative', 'Alternative')], max_length=30)),
                ('kapso_message_id', models.CharField(blank=True, db_index=True, max_length=128)),
                ('sent_at', models.DateTimeField(blank=True, null=True)),
                ('delivered_at', models.DateTimeField(blank=True, null=True)),
                ('responded_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('checkin', models.ForeignKey(blank=True, help_text='Pending step the reminder was about, if any', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reminders', to='objectives.checkin')),
                ('objective', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reminders', to='objectives.objective')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reminders', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['user', 'status'], name='reminder_user_status_idx')],
                'constraints': [models.UniqueConstraint(condition=models.Q(('forced', False), ('slot_type__in', ['MORNING_FOCUS', 'LATE_MORNING_PUSH', 'AFTERNOON_MICRO', 'NIGHT_REVIEW'])), fields=('user', 'slot_type', 'slot_date'), name='unique_reminder_per_user_slot_day')],
            },
        ),
    ]
