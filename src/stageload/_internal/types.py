"""Shared type aliases for stageload."""

from __future__ import annotations

from collections.abc import Mapping

# HTTP headers dictionary.
Headers = dict[str, str]

# Query string, either pre-encoded ("q=tech") or as key/value pairs.
Query = str | Mapping[str, str]
