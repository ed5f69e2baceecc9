"""
Extraction of fenced JSON blocks from generated text.

Completion providers answer with prose around one or more ```json { ... }```
fences; only the parsed objects matter downstream.
"""

import json
import logging
import re
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

CODE_BLOCK_RE = re.compile(r"```[^{`]*({[\s\S]*?})[^}`]*```", re.MULTILINE)
FENCE_RE = re.compile(r"```json\s*|\s*```")


def generated_text_of(payload: Any) -> Optional[str]:
    """
    Pull the generated text out of a provider payload.

    Accepts a plain string, a dict with a ``generated_text`` string, or a list
    whose first element is one of those.
    """
    if isinstance(payload, str):
        return payload
    if isinstance(payload, list) and payload:
        first = payload[0]
        if isinstance(first, str):
            return first
        if isinstance(first, dict) and isinstance(first.get("generated_text"), str):
            return first["generated_text"]
        return None
    if isinstance(payload, dict) and isinstance(payload.get("generated_text"), str):
        return payload["generated_text"]
    return None


def extract_code_blocks(payload: Any) -> Optional[List[Any]]:
    """
    Parse every fenced JSON object found in a generated-text payload.

    Returns:
        The parsed objects in source order (blocks failing to parse are
        logged and skipped), [] when there is no fence at all, or None when
        the payload itself is absent or of an unsupported shape.
    """
    if not payload:
        return None

    text = generated_text_of(payload)
    if text is None:
        return None

    parsed: List[Any] = []
    for match in CODE_BLOCK_RE.finditer(text):
        block = FENCE_RE.sub("", match.group(0)).strip()
        try:
            parsed.append(json.loads(block))
        except json.JSONDecodeError as e:
            logger.warning(f"Skipping unparsable JSON block: {e}")
    return parsed
