"""Test helper that normalizes sys.path and environment defaults."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

_SCRATCH = Path(tempfile.mkdtemp(prefix="aliwarehouse-tests-"))

_DEFAULT_ENV_VARS: dict[str, str] = {
    "ALIEXPRESS_APP_KEY": "test-app-key",
    "ALIEXPRESS_APP_SECRET": "test-app-secret",
    "ALIEXPRESS_CALLBACK_URL": "https://example.com/api/auth/aliexpress/callback",
    "ALIEXPRESS_TOKEN_FILE": str(_SCRATCH / ".tokens.json"),
    "TOKEN_ENCRYPTION_SECRET": "test-secret",
    "TRANSLATION_DB_PATH": str(_SCRATCH / "translations.db"),
}

for key, value in _DEFAULT_ENV_VARS.items():
    os.environ.setdefault(key, value)
