# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for CircusProgress."""

from src.core.config.settings import (
    CORSSettings,
    DatabaseSettings,
    JWTSettings,
    RateLimitSettings,
    RedisSettings,
    Settings,
    SuggestionSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "clear_settings_cache",
    "DatabaseSettings",
    "RedisSettings",
    "JWTSettings",
    "RateLimitSettings",
    "CORSSettings",
    "SuggestionSettings",
]
