"""CircusProgress Backend.

Skill progression tracking for circus-arts schools: prerequisite graphs
between figures and nightly "what to learn next" suggestions.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
