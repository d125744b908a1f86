"""
Decoders for message.attributedBody.

The attributedBody column holds a serialized NSAttributedString in one of
two formats:

1. NSKeyedArchiver (binary plist, starts with b"bplist00"). The archive's
   `$top.root` UID points at the attributed string object, whose
   `NSString` entry points at the plain string (or at an NSMutableString
   holder with an `NS.string` key).

2. Typedstream (legacy NSArchiver, header b"\\x04\\x0bstreamtyped"). The plain
   string follows the NSString class reference as a `+` (char string)
   typed value:

       ... NSString \\x01 \\x94 \\x84 \\x01 + <length> <utf-8 bytes> ...

   <length> is a single byte below 0x80, or 0x81 followed by a 2-byte
   little-endian length, or 0x82 followed by a 4-byte one.

decode_attributed_body() tries the keyed format first and falls back to
typedstream. Both failing raises RowDecodeError.
"""

import logging
import plistlib
from typing import Any, List, Optional, Tuple

from imessage_insights.errors import RowDecodeError

logger = logging.getLogger(__name__)

BPLIST_MAGIC = b"bplist00"
TYPEDSTREAM_MAGIC = b"streamtyped"

# Class-name strings that appear in $objects but are never message text
_ARCHIVE_METADATA = {
    "$null",
    "NSAttributedString",
    "NSMutableAttributedString",
    "NSString",
    "NSMutableString",
    "NSDictionary",
    "NSMutableDictionary",
    "NSArray",
    "NSNumber",
    "NSObject",
    "NSValue",
}

_STRING_TYPE_MARKERS = (b"\x84\x01+", b"\x01+")
_MARKER_SEARCH_WINDOW = 32


def _deref(objects: List[Any], value: Any) -> Any:
    """Resolve a plistlib.UID into the object it references."""
    if isinstance(value, plistlib.UID):
        if not 0 <= value.data < len(objects):
            raise RowDecodeError(f"Dangling archive reference: {value.data}")
        return objects[value.data]
    return value


def _string_from_object(objects: List[Any], obj: Any) -> Optional[str]:
    """Extract the plain string from an attributed-string archive object."""
    if isinstance(obj, str):
        return obj
    if not isinstance(obj, dict):
        return None
    for key in ("NSString", "NS.string"):
        if key in obj:
            value = _deref(objects, obj[key])
            if isinstance(value, dict):
                value = _deref(objects, value.get("NS.string"))
            if isinstance(value, str):
                return value
    return None


def decode_keyed_archive(data: bytes) -> str:
    """
    Decode an NSKeyedArchiver attributed string.

    Args:
        data: Raw attributedBody bytes.

    Returns:
        The plain string payload.

    Raises:
        RowDecodeError: If the bytes are not a keyed archive or hold no string.
    """
    if not data.startswith(BPLIST_MAGIC):
        raise RowDecodeError("Not a binary plist")

    try:
        archive = plistlib.loads(data, fmt=plistlib.FMT_BINARY)
    except (plistlib.InvalidFileException, ValueError) as e:
        raise RowDecodeError(f"Invalid keyed archive: {e}") from e

    if not isinstance(archive, dict) or not isinstance(archive.get("$objects"), list):
        raise RowDecodeError("Binary plist is not a keyed archive")

    objects: List[Any] = archive["$objects"]
    top = archive.get("$top")
    if isinstance(top, dict) and "root" in top:
        text = _string_from_object(objects, _deref(objects, top["root"]))
        if text is not None:
            return text

    # Unusual root layouts: take the first string-bearing object
    for obj in objects:
        if isinstance(obj, str) and obj not in _ARCHIVE_METADATA and not obj.startswith("$"):
            return obj
        text = _string_from_object(objects, obj) if isinstance(obj, dict) else None
        if text is not None:
            return text

    raise RowDecodeError("Keyed archive contains no string")


def _read_length(data: bytes, pos: int) -> Tuple[int, int]:
    """Read a typedstream length at pos; return (length, payload_start)."""
    if pos >= len(data):
        raise RowDecodeError("Truncated typedstream length")
    tag = data[pos]
    if tag == 0x81:
        end = pos + 3
        if end > len(data):
            raise RowDecodeError("Truncated typedstream length")
        return int.from_bytes(data[pos + 1:end], "little"), end
    if tag == 0x82:
        end = pos + 5
        if end > len(data):
            raise RowDecodeError("Truncated typedstream length")
        return int.from_bytes(data[pos + 1:end], "little"), end
    if tag >= 0x80:
        raise RowDecodeError(f"Unsupported typedstream length tag: {tag:#x}")
    return tag, pos + 1


def decode_typedstream(data: bytes) -> str:
    """
    Decode a legacy typedstream (NSArchiver) attributed string.

    Args:
        data: Raw attributedBody bytes.

    Returns:
        The plain string payload.

    Raises:
        RowDecodeError: If the header, string marker or payload is invalid.
    """
    if TYPEDSTREAM_MAGIC not in data[:16]:
        raise RowDecodeError("Missing typedstream header")

    class_pos = data.find(b"NSString")
    if class_pos == -1:
        raise RowDecodeError("Typedstream has no NSString")

    search_from = class_pos + len(b"NSString")
    window = data[search_from:search_from + _MARKER_SEARCH_WINDOW]
    for marker in _STRING_TYPE_MARKERS:
        offset = window.find(marker)
        if offset != -1:
            length_pos = search_from + offset + len(marker)
            break
    else:
        raise RowDecodeError("Typedstream has no string value after NSString")

    length, start = _read_length(data, length_pos)
    payload = data[start:start + length]
    if len(payload) != length:
        raise RowDecodeError("Truncated typedstream string")

    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise RowDecodeError(f"Typedstream string is not UTF-8: {e}") from e


def decode_attributed_body(data: bytes) -> str:
    """
    Decode an attributedBody blob with the keyed decoder, then typedstream.

    Args:
        data: Raw attributedBody bytes.

    Returns:
        The plain string payload (possibly empty).

    Raises:
        RowDecodeError: If neither decoder can read the blob.
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise RowDecodeError(f"attributedBody is not binary: {type(data).__name__}")
    data = bytes(data)

    try:
        return decode_keyed_archive(data)
    except RowDecodeError as keyed_error:
        try:
            return decode_typedstream(data)
        except RowDecodeError as legacy_error:
            raise RowDecodeError(
                f"Undecodable attributedBody (keyed: {keyed_error}; typedstream: {legacy_error})"
            ) from legacy_error
