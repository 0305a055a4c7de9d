"""Field transcoding between Python values and the gateway's JSON encoding.

The gateway carries every binary-safe field (keys, values, permission ranges)
as base64 text. Some responses hold either a single nested object or a list
of them under the same field name, so decoding goes through ``Records``,
which remembers the shape it was given.
"""

import base64
import enum
from dataclasses import dataclass, field
from typing import Any, Iterable, Union

BinaryLike = Union[str, bytes]

KV_FIELDS = ("key", "value")
PERM_FIELDS = ("key", "range_end")


def to_bytes(value: BinaryLike) -> bytes:
    """Bytes as-is; text encoded as UTF-8, lone surrogates mapped back to raw bytes."""
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8", "surrogateescape")


def b64encode(value: BinaryLike) -> str:
    return base64.b64encode(to_bytes(value)).decode("ascii")


def b64decode(value: str, text: bool = True) -> BinaryLike:
    """Decode a base64 field.

    With ``text`` the result is a str whose non-UTF-8 bytes survive as
    surrogates; otherwise the raw bytes come back.
    """
    raw = base64.b64decode(value)
    if not text:
        return raw
    return raw.decode("utf-8", "surrogateescape")


def encode_params(params: dict[str, Any]) -> dict[str, Any]:
    """Base64-encode every top-level string value of a parameter map.

    Integers, booleans and nested structures pass through unchanged; callers
    encode nested binary fields themselves.
    """
    return {
        k: b64encode(v) if isinstance(v, (str, bytes)) else v
        for k, v in params.items()
    }


class Shape(enum.Enum):
    SINGLE = "single"
    MANY = "many"


@dataclass
class Records:
    """A response field normalized to a list, remembering its wire shape."""
    shape: Shape
    items: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_wire(cls, value: Any) -> "Records":
        if isinstance(value, list):
            return cls(Shape.MANY, [dict(item) for item in value])
        return cls(Shape.SINGLE, [dict(value)])

    def to_wire(self) -> Any:
        if self.shape is Shape.SINGLE:
            return self.items[0]
        return self.items

    def decode(self, subfields: Iterable[str], text: bool = True) -> "Records":
        subfields = tuple(subfields)
        for item in self.items:
            for name in subfields:
                if item.get(name) is not None:
                    item[name] = b64decode(item[name], text)
        return self


def decode_fields(
    body: dict[str, Any],
    name: str,
    subfields: Iterable[str],
    text: bool = True,
) -> dict[str, Any]:
    """Return a copy of ``body`` with the binary sub-fields under ``name`` decoded.

    A missing field is not an error: the body comes back unchanged.
    """
    if body.get(name) is None:
        return body
    decoded = Records.from_wire(body[name]).decode(subfields, text)
    return {**body, name: decoded.to_wire()}


def collapse_kvs(data: Any) -> Any:
    """Pretty shape for key/value records.

    A list becomes a ``{key: value}`` mapping, a single record becomes its value.
    """
    records = Records.from_wire(data)
    if records.shape is Shape.SINGLE:
        return records.items[0].get("value")
    return {item.get("key"): item.get("value") for item in records.items}


def prefix_range_end(prefix: BinaryLike) -> bytes:
    """Range end for a prefix scan: the prefix with its last byte incremented.

    The increment wraps at 0xff without carrying into earlier bytes.
    """
    raw = bytearray(to_bytes(prefix))
    raw[-1] = (raw[-1] + 1) & 0xFF
    return bytes(raw)
