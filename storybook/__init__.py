# -*- coding: utf-8 -*-
"""Storybook package.

Modules:
    models:     The Story record and preview data.
    crypto:     Key derivation and AEAD helpers for encrypted stores.
    storage:    JSON store on disk (plain or encrypted) + error taxonomy.
    dates:      Calendar-day helpers (day keys, month labels, month grid).
    repository: In-memory story collection, queries and streaks.
    config:     JSON config on disk and user preferences.
"""

__all__ = ["models", "crypto", "storage", "dates", "repository", "config"]
