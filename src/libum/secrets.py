# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/libum

import os
from typing import Any

from libum.interfaces import SecretsProvider


class EnvSecretsProvider(SecretsProvider):
    """Secrets provider backed by the process environment."""

    def get_user_credential(self, key: str) -> Any:
        """Return the raw credential string, e.g. ``user:pass`` for Basic-Auth."""
        value = os.environ.get(key)
        if value is None:
            raise KeyError(f"Credential '{key}' not found")
        return value
