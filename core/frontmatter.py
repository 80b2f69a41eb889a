"""YAML frontmatter codec for task documents.

A document is ``---\\n<yaml mapping>---\\n<body>``. Parsing never raises: a
missing, unterminated or malformed block yields empty metadata and the whole
text as body. Serialization keeps key order, drops ``None`` values, writes
string lists in flow style (``[a, b]``) and multi-line strings as block
literals, so ``parse(serialize(meta, body))`` gives back ``meta`` and ``body``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

import yaml

logger = logging.getLogger("taskdeck.frontmatter")

DELIMITER = "---"
USER_CONTENT_MARKER = "<!-- USER CONTENT -->"
MANAGED_MARKER = "<!-- MANAGED: DO NOT EDIT BELOW THIS LINE -->"

Metadata = Dict[str, Any]


@dataclass
class ParsedDocument:
    metadata: Metadata = field(default_factory=dict)
    body: str = ""
    has_metadata_block: bool = False


class _DocumentDumper(yaml.SafeDumper):
    pass


def _represent_str(dumper: yaml.SafeDumper, value: str) -> yaml.ScalarNode:
    if "\n" in value:
        return dumper.represent_scalar("tag:yaml.org,2002:str", value, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", value)


def _represent_list(dumper: yaml.SafeDumper, value: list) -> yaml.SequenceNode:
    flat = all(not isinstance(item, (dict, list, tuple)) for item in value)
    return dumper.represent_sequence("tag:yaml.org,2002:seq", value, flow_style=flat)


_DocumentDumper.add_representer(str, _represent_str)
_DocumentDumper.add_representer(list, _represent_list)
_DocumentDumper.add_representer(tuple, _represent_list)


def _split(text: str) -> Optional[Tuple[str, str]]:
    if not text.startswith(DELIMITER):
        return None
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].strip() != DELIMITER:
        return None
    for index in range(1, len(lines)):
        if lines[index].rstrip("\r\n") == DELIMITER:
            return "".join(lines[1:index]), "".join(lines[index + 1:])
    return None


def parse_document(text: str) -> ParsedDocument:
    text = text or ""
    split = _split(text)
    if split is None:
        return ParsedDocument(metadata={}, body=text, has_metadata_block=False)
    block, body = split
    try:
        loaded = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        logger.warning("Malformed frontmatter ignored: %s", exc)
        return ParsedDocument(metadata={}, body=text, has_metadata_block=False)
    if loaded is None:
        return ParsedDocument(metadata={}, body=body, has_metadata_block=bool(block.strip()))
    if not isinstance(loaded, dict):
        logger.debug("Frontmatter is not a mapping (%s); treating document as body", type(loaded).__name__)
        return ParsedDocument(metadata={}, body=text, has_metadata_block=False)
    metadata = {str(key): value for key, value in loaded.items()}
    return ParsedDocument(metadata=metadata, body=body, has_metadata_block=True)


def clean_metadata(metadata: Metadata) -> Metadata:
    return {key: value for key, value in metadata.items() if value is not None}


def serialize_metadata(metadata: Metadata) -> str:
    cleaned = clean_metadata(metadata)
    if not cleaned:
        return ""
    return yaml.dump(
        cleaned,
        Dumper=_DocumentDumper,
        allow_unicode=True,
        default_flow_style=False,
        sort_keys=False,
    )


def serialize_document(body: str, metadata: Metadata) -> str:
    return f"{DELIMITER}\n{serialize_metadata(metadata)}{DELIMITER}\n{body or ''}"


def extract_user_content(body: str) -> Optional[str]:
    """Text after the user-content sentinel, trimmed; None without a sentinel."""
    index = (body or "").find(USER_CONTENT_MARKER)
    if index < 0:
        return None
    return body[index + len(USER_CONTENT_MARKER):].strip()


def metadata_str(metadata: Metadata, key: str) -> Optional[str]:
    value = metadata.get(key)
    return value if isinstance(value, str) else None


def metadata_list(metadata: Metadata, key: str) -> Optional[List[str]]:
    value = metadata.get(key)
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return None


def metadata_timestamp(metadata: Metadata, key: str) -> Optional[str]:
    """ISO string for a timestamp field stored either quoted or as a YAML date."""
    value = metadata.get(key)
    if isinstance(value, str) and value.strip():
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return None


def metadata_order(metadata: Metadata) -> Optional[int]:
    value = metadata.get("order")
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


__all__ = [
    "USER_CONTENT_MARKER",
    "MANAGED_MARKER",
    "Metadata",
    "ParsedDocument",
    "parse_document",
    "clean_metadata",
    "serialize_metadata",
    "serialize_document",
    "extract_user_content",
    "metadata_str",
    "metadata_list",
    "metadata_timestamp",
    "metadata_order",
]
