"""Django settings for the project file library.

Settings are split into components and combined with django-split-settings.
Values that vary between environments are read with python-decouple.
"""

import django_stubs_ext
from split_settings.tools import include, optional

# Allows generic admin and queryset classes to be subscripted at runtime
django_stubs_ext.monkeypatch()

_base_settings = (
    'components/common.py',
    'components/logging.py',
    'components/storages.py',
    'components/library.py',
    # Developer overrides, never committed
    optional('components/local.py'),
)

include(*_base_settings)
