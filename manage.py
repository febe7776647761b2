#!/usr/bin/env python
"""Django's command-line utility for administrative tasks."""
import os
import sys


def main():
    default_settings = 'config.settings.test' if 'test' in sys.argv[1:2] else 'config.settings.base'
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', default_settings)
    from django.core.management import execute_from_command_line

    execute_from_command_line(sys.argv)


if __name__ == '__main__':
    main()
