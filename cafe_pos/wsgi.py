"""
WSGI config for cafe_pos project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'cafe_pos.settings')

application = get_wsgi_application()
