"""Settings for the test suite.

Storage credentials are required by the regular settings. Tests talk to a
mocked S3, so fake values are provided here before the components load.
"""

import os

os.environ.setdefault('AWS_STORAGE_BUCKET_NAME', 'project-files')
os.environ.setdefault('AWS_ACCESS_KEY_ID', 'testing')
os.environ.setdefault('AWS_SECRET_ACCESS_KEY', 'testing')
os.environ.setdefault('AWS_S3_REGION_NAME', 'us-east-1')

from server.settings import *  # noqa: E402, F403, WPS347
