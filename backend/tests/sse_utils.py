from __future__ import annotations

import json
from typing import Any, List, Tuple


def read_chat_stream(payload_text: str) -> List[Tuple[str, Any]]:
    """Split a /chat/stream body into (event name, decoded JSON data) pairs."""
    frames: List[Tuple[str, Any]] = []
    for block in payload_text.replace("\r\n", "\n").split("\n\n"):
        name = "message"
        data_lines: List[str] = []
        for line in block.split("\n"):
            field, _, value = line.partition(":")
            value = value[1:] if value.startswith(" ") else value
            if field == "event":
                name = value
            elif field == "data":
                data_lines.append(value)
        if data_lines:
            frames.append((name, json.loads("\n".join(data_lines))))
    return frames
