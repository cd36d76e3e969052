"""Rate limiting configuration for API endpoints.

Provides rate limiting using slowapi to prevent abuse of the report
endpoints and of the externally triggered cron job.
"""

from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address


# Rate limiter instance - shared across the application
limiter = Limiter(key_func=get_remote_address)


class RateLimits:
    """Rate limit constants for different endpoint types."""

    # Standard read operations
    READ = "60/minute"

    # Write operations (mark read, delete)
    WRITE = "30/minute"

    # PDF downloads read whole files from disk
    DOWNLOAD = "20/minute"

    # Externally triggered cron jobs (expensive: renders PDFs)
    CRON = "5/minute"

