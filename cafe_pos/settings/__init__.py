# cafe_pos/settings/__init__.py

import os

settings_module = os.getenv('DJANGO_SETTINGS_MODULE', 'cafe_pos.settings')

# Only pick a deployment flavour when the package itself is the settings module;
# cafe_pos.settings.local / .cloud / .test are importable directly.
if settings_module == 'cafe_pos.settings':
    if os.getenv('DEPLOYMENT_MODE', 'local') == 'cloud':
        from .cloud import *
    else:
        from .local import *
