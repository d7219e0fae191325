"""
Serve the read-only status API.

Usage:
    python -m scripts.serve_api
"""

import sys
import uvicorn
from core.config import settings


def main() -> int:
    uvicorn.run(
        "api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=settings.LOG_LEVEL.lower()
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
