# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for CircusProgress.

This package contains domain services that encapsulate business logic.

Domains:
    auth: Access token validation.
    prerequisite: Prerequisite graph between figures and its cycle guard.
    suggestion: Readiness scoring, suggestion cache and nightly refresh.
"""
