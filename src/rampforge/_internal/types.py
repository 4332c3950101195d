"""Shared type aliases for RampForge."""

from __future__ import annotations

from typing import Any

# HTTP headers dictionary.
Headers = dict[str, str]

# Think time range (min_ms, max_ms).
ThinkTimeMs = tuple[float, float]

# JSON-like request payload template.
BodyTemplate = dict[str, Any] | list[Any] | str | int | float | bool | None
