# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Presentation sinks: write-only targets for normalized release values.

A target is an opaque identifier (a CSS selector like ".bv" for a web page).
Two operations:
- set_text(target, value)
- set_attribute(target, attribute, value)   e.g. ("a.dist", "href", url)

A None value is a no-op: existing content is never cleared.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Tuple


class PresentationSink(Protocol):
    def set_text(self, target: str, value: Optional[str]) -> None: ...

    def set_attribute(self, target: str, attribute: str, value: Optional[str]) -> None: ...


class MemorySink:
    """Records the last value written to each target / (target, attribute)."""

    def __init__(self):
        self.texts: Dict[str, str] = {}
        self.attributes: Dict[Tuple[str, str], str] = {}

    def set_text(self, target: str, value: Optional[str]) -> None:
        if value is None:
            return
        self.texts[str(target)] = str(value)

    def set_attribute(self, target: str, attribute: str, value: Optional[str]) -> None:
        if value is None:
            return
        self.attributes[(str(target), str(attribute))] = str(value)

    def as_dict(self) -> Dict[str, Any]:
        attrs: Dict[str, Dict[str, str]] = {}
        for (target, attribute), value in sorted(self.attributes.items()):
            attrs.setdefault(target, {})[attribute] = value
        return {"text": dict(sorted(self.texts.items())), "attributes": attrs}


class JsonFileSink(MemorySink):
    """MemorySink that can be flushed to a JSON file for a static page build to pick up.

    File format:
        {"text": {".bv": "5.3.3"}, "attributes": {".bdu-dist": {"href": "https://..."}}}
    """

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)

    def flush(self) -> Path:
        """Atomic write (tmp file + rename)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = Path(f"{self.path}.tmp.{os.getpid()}")
        try:
            tmp.write_text(json.dumps(self.as_dict(), indent=2, sort_keys=True) + "\n")
            os.replace(str(tmp), str(self.path))
        finally:
            if tmp.exists():
                tmp.unlink()
        return self.path
