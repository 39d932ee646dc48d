# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Example FastAPI Application with bacrot Integration.

This example exposes the bacrot admin endpoints and rotates the backup
containers of two databases every night.

Run with:
    uvicorn examples.basic_app:app --reload

Environment variables:
    AZURE_STORAGE_ACCOUNT: Storage account holding the .bacpac containers
    AZURE_STORAGE_ACCESS_KEY: Its access key
    BACROT_ADMIN_API_KEY: API key for admin endpoints
    BACROT_KEEP_YEARLY: Set to "true" to also keep one backup per year
"""

import os

from fastapi import FastAPI

from bacrot.builder import (
    build_config,
    create_empty_config,
    poll_every,
    retain_last,
    retain_monthly,
    retain_recent_months,
    retain_yearly,
    rotate_daily_at,
    with_storage_account,
)
from bacrot.integrations.fastapi import setup_bacrot_plugin

# Create FastAPI app
app = FastAPI(
    title="Backups with bacrot",
    description="Example application demonstrating backup rotation",
    version="1.0.0",
)


def create_bacrot_config():
    """
    Create bacrot configuration from environment variables.

    This uses the functional builder pattern for clean, composable configuration.
    """
    account = os.getenv("AZURE_STORAGE_ACCOUNT", "dbbackups")
    key = os.getenv("AZURE_STORAGE_ACCESS_KEY")

    config = create_empty_config()
    config = with_storage_account(config, account, key)

    # Last 14 backups, the last quarter, and one per month beyond that
    config = retain_last(config, 14)
    config = retain_recent_months(config, 3)
    config = retain_monthly(config)

    if os.getenv("BACROT_KEEP_YEARLY", "false").lower() == "true":
        config = retain_yearly(config)

    # Exports usually take minutes; give up after two hours
    config = poll_every(config, 15.0, timeout=2 * 60 * 60)

    # Rotate daily at 3:00 AM UTC
    config = rotate_daily_at(config, "03:00", ["orders", "customers"])

    return build_config(config)


bacrot_config = create_bacrot_config()

# Setup bacrot plugin
setup_bacrot_plugin(app, bacrot_config)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Backups with bacrot",
        "docs": "/docs",
        "bacrot_admin": "/admin/bacrot/health",
    }


# ============================================================================
# bacrot Admin Endpoints (auto-registered by plugin)
# ============================================================================
#
# POST /admin/bacrot/backup             - Queue an export (optionally wait)
# POST /admin/bacrot/restore            - Queue an import (latest backup by default)
# POST /admin/bacrot/status/{guid}      - Request status (optionally wait)
# POST /admin/bacrot/rotate/{container} - Apply the retention policy
# GET  /admin/bacrot/metrics            - Counters
# GET  /admin/bacrot/config             - Configuration (redacted)
# GET  /admin/bacrot/health             - Health check
#
# All admin endpoints require: Authorization: Bearer <BACROT_ADMIN_API_KEY>


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
