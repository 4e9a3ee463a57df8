"""
WSGI config for the bin2win project.

It exposes the WSGI callable as a module-level variable named ``application``.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'bin2win.config.settings')

application = get_wsgi_application()
