import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='UserStats',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('xp', models.PositiveIntegerField(default=0)),
                ('level', models.PositiveIntegerField(default=1)),
                ('streak_days', models.PositiveIntegerField(default=0)),
                ('longest_streak', models.PositiveIntegerField(default=0)),
                ('last_checkin_date', models.DateField(blank=True, null=True)),
                ('daily_checkins', models.PositiveIntegerField(default=0)),
                ('daily_goal', models.PositiveIntegerField(default=3)),
                ('daily_date', models.DateField(blank=True, help_text='Local day daily_checkins refers to', null=True)),
                ('total_checkins', models.PositiveIntegerField(default=0)),
                ('total_projects_completed', models.PositiveIntegerField(default=0)),
                ('badges', models.JSONField(blank=True, default=list, help_text='List of {"id": ..., "unlocked_at": ...} entries')),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='stats', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'User Stats',
                'verbose_name_plural': 'User Stats',
            },
        ),
    ]
