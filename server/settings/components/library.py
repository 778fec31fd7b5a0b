"""File library settings: presigned URL lifetimes and pending upload cleanup."""

from server.settings.components import config

# Lifetime of presigned URLs handed to clients
LIBRARY_UPLOAD_URL_EXPIRY_SECONDS = config(
    'LIBRARY_UPLOAD_URL_EXPIRY_SECONDS',
    cast=int,
    default=900,
)
LIBRARY_DOWNLOAD_URL_EXPIRY_SECONDS = config(
    'LIBRARY_DOWNLOAD_URL_EXPIRY_SECONDS',
    cast=int,
    default=900,
)

# Pending uploads older than this are purged by cleanup_pending_uploads
LIBRARY_PENDING_UPLOAD_TIMEOUT_HOURS = config(
    'LIBRARY_PENDING_UPLOAD_TIMEOUT_HOURS',
    cast=int,
    default=24,
)
LIBRARY_REAPER_INTERVAL_SECONDS = config(
    'LIBRARY_REAPER_INTERVAL_SECONDS',
    cast=int,
    default=3600,
)
LIBRARY_REAPER_BATCH_SIZE = config(
    'LIBRARY_REAPER_BATCH_SIZE',
    cast=int,
    default=1000,
)
