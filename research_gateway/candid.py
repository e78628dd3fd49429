"""Render structured call arguments as Candid text for `dfx canister call`.

    encode_args({"topic": 'say "hi"'})
    -> '(record { topic = "say \\"hi\\"" })'
"""
import math
import re
from collections.abc import Mapping

_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "'": "\\'",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def _text(s: str) -> str:
    out = []
    for ch in s:
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append("\\u{%x}" % ord(ch))
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'


def encode_value(value) -> str:
    # bool before int: bool is an int subclass
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"Candid has no literal for {value!r}")
        return repr(value)
    if isinstance(value, str):
        return _text(value)
    if isinstance(value, Mapping):
        fields = []
        for key, v in value.items():
            if not isinstance(key, str) or not _IDENT.match(key):
                raise ValueError(f"Invalid record field name: {key!r}")
            fields.append(f"{key} = {encode_value(v)}")
        return "record { " + "; ".join(fields) + " }" if fields else "record {}"
    if isinstance(value, (list, tuple)):
        items = "".join(f"{encode_value(v)}; " for v in value)
        return "vec { " + items + "}" if items else "vec {}"
    raise TypeError(f"Cannot encode {type(value).__name__} as Candid")


def encode_args(*values) -> str:
    """Encode positional call arguments as one Candid argument tuple."""
    return "(" + ", ".join(encode_value(v) for v in values) + ")"
