"""
CPE handling for repository identification.

Advisory repositories are identified by CPE strings that may carry glob-like
wildcards. escape_cpe rewrites those into the percent-encoded special
characters understood by unbind(), which turns a URI ("cpe:/...") or
formatted string ("cpe:2.3:...") binding into a structured WFN. A WFN's
str() is its formatted-string binding.

Attribute values are kept in WFN form: literal punctuation is quoted with a
backslash, and unquoted "*" / "?" are wildcards.
"""
from dataclasses import dataclass, fields
from typing import List

from .errors import CPEError

ATTRIBUTES = (
    "part", "vendor", "product", "version", "update", "edition",
    "language", "sw_edition", "target_sw", "target_hw", "other",
)

URI_PREFIX = "cpe:/"
FS_PREFIX = "cpe:2.3:"
VALID_PARTS = {"a", "o", "h"}


@dataclass(frozen=True)
class Value:
    """One WFN attribute value: ANY, NA, or a (quoted) string."""
    kind: str
    v: str = ""

    def bind_fs(self) -> str:
        if self.kind == "any":
            return "*"
        if self.kind == "na":
            return "-"
        # ".", "-" and "_" are written unquoted in the formatted string
        out = []
        i = 0
        while i < len(self.v):
            ch = self.v[i]
            if ch == "\\" and i + 1 < len(self.v):
                nxt = self.v[i + 1]
                out.append(nxt if nxt in ".-_" else ch + nxt)
                i += 2
                continue
            out.append(ch)
            i += 1
        return "".join(out)


ANY = Value("any")
NA = Value("na")


@dataclass(frozen=True)
class WFN:
    part: Value = ANY
    vendor: Value = ANY
    product: Value = ANY
    version: Value = ANY
    update: Value = ANY
    edition: Value = ANY
    language: Value = ANY
    sw_edition: Value = ANY
    target_sw: Value = ANY
    target_hw: Value = ANY
    other: Value = ANY

    def __str__(self) -> str:
        return FS_PREFIX + ":".join(getattr(self, f.name).bind_fs() for f in fields(self))


def escape_cpe(ch: str) -> str:
    """
    Rewrite CPE wildcards so the string can be unbound.

    A trailing "*" in any component becomes "%02"; every "?" becomes "%01".
    """
    parts = ch.split(":")
    for i, comp in enumerate(parts):
        if comp.endswith("*"):
            comp = comp[:-1] + "%02"
        parts[i] = comp.replace("?", "%01")
    return ":".join(parts)


def unbind(s: str) -> WFN:
    """
    Unbind a CPE URI or formatted string into a WFN.

    Raises:
        CPEError: If the string is not a recognizable CPE binding
    """
    if s.startswith(FS_PREFIX):
        return _unbind_fs(s)
    if s.startswith(URI_PREFIX):
        return _unbind_uri(s)
    raise CPEError(f"unknown CPE binding: {s!r}")


def _unbind_uri(s: str) -> WFN:
    comps = s[len(URI_PREFIX):].split(":")
    if len(comps) > 7:
        raise CPEError(f"too many components in CPE URI: {s!r}")

    values = {}
    for name, comp in zip(ATTRIBUTES, comps):
        if name == "edition" and comp.startswith("~"):
            values.update(_unpack_edition(comp, s))
            continue
        values[name] = _decode_uri_component(comp, s)
    return _build(values, s)


def _unpack_edition(comp: str, s: str) -> dict:
    packed = comp[1:].split("~")
    if len(packed) != 5:
        raise CPEError(f"malformed packed edition in CPE URI: {s!r}")
    names = ("edition", "sw_edition", "target_sw", "target_hw", "other")
    return {name: _decode_uri_component(p, s) for name, p in zip(names, packed)}


def _decode_uri_component(comp: str, s: str) -> Value:
    if comp == "":
        return ANY
    if comp == "-":
        return NA

    out: List[str] = []
    i = 0
    while i < len(comp):
        ch = comp[i]
        if ch == "%":
            code = comp[i + 1:i + 3].lower()
            if len(code) != 2:
                raise CPEError(f"truncated percent-encoding in CPE: {s!r}")
            if code == "01":
                out.append("?")
            elif code == "02":
                out.append("*")
            else:
                try:
                    decoded = chr(int(code, 16))
                except ValueError as e:
                    raise CPEError(f"invalid percent-encoding %{code} in CPE: {s!r}") from e
                out.append("\\" + decoded)
            i += 3
            continue
        if ch.isalnum() or ch == "_":
            out.append(ch.lower())
        else:
            out.append("\\" + ch)
        i += 1
    return _checked(Value("value", "".join(out)), s)


def _unbind_fs(s: str) -> WFN:
    comps = _split_fs(s[len(FS_PREFIX):])
    if len(comps) > len(ATTRIBUTES):
        raise CPEError(f"too many components in CPE formatted string: {s!r}")

    values = {}
    for name, comp in zip(ATTRIBUTES, comps):
        values[name] = _decode_fs_component(comp, s)
    return _build(values, s)


def _split_fs(body: str) -> List[str]:
    comps = []
    cur: List[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            cur.append(body[i:i + 2])
            i += 2
            continue
        if ch == ":":
            comps.append("".join(cur))
            cur = []
        else:
            cur.append(ch)
        i += 1
    comps.append("".join(cur))
    return comps


def _decode_fs_component(comp: str, s: str) -> Value:
    if comp in ("*", ""):
        return ANY
    if comp == "-":
        return NA

    out: List[str] = []
    i = 0
    while i < len(comp):
        ch = comp[i]
        if ch == "\\" and i + 1 < len(comp):
            out.append(comp[i:i + 2])
            i += 2
            continue
        if comp.startswith("%01", i):
            out.append("?")
            i += 3
            continue
        if comp.startswith("%02", i):
            out.append("*")
            i += 3
            continue
        if ch in "*?" or ch.isalnum() or ch == "_":
            out.append(ch.lower() if ch.isalpha() else ch)
        else:
            out.append("\\" + ch)
        i += 1
    return _checked(Value("value", "".join(out)), s)


def _checked(value: Value, s: str) -> Value:
    """Reject "*" wildcards that are not at the start or end of a value."""
    v = value.v
    i = 0
    while i < len(v):
        if v[i] == "\\":
            i += 2
            continue
        if v[i] == "*" and 0 < i < len(v) - 1:
            raise CPEError(f"embedded '*' wildcard in CPE: {s!r}")
        i += 1
    return value


def _build(values: dict, s: str) -> WFN:
    part = values.get("part", ANY)
    if part.kind == "value" and part.v not in VALID_PARTS:
        raise CPEError(f"invalid CPE part {part.v!r}: {s!r}")
    return WFN(**values)
