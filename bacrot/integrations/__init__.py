# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Framework Integrations - FastAPI plugin.
"""

from bacrot.integrations.fastapi import (
    bacrot_lifespan,
    register_bacrot_routes,
    setup_bacrot_plugin,
    verify_api_key,
)

__all__ = [
    "bacrot_lifespan",
    "register_bacrot_routes",
    "setup_bacrot_plugin",
    "verify_api_key",
]
