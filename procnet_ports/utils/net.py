from __future__ import annotations
import ipaddress
import re

HEX_RE = re.compile(r"[0-9A-Fa-f]+")
DEC_RE = re.compile(r"[0-9]+")


def parse_hex(s: str) -> int:
    # int() alone would take signs and underscores
    if not HEX_RE.fullmatch(s):
        raise ValueError(f"not a hex number: {s!r}")
    return int(s, 16)


def parse_dec(s: str) -> int:
    if not DEC_RE.fullmatch(s):
        raise ValueError(f"not a decimal number: {s!r}")
    return int(s)


def hex2ipv4(s: str) -> str:
    # /proc/net stores the address as a host-order u32: "0100007F" is 127.0.0.1
    if len(s) != 8:
        raise ValueError(f"not an IPv4 address in hex format: {s!r}")
    octets = [parse_hex(s[i:i + 2]) for i in (6, 4, 2, 0)]
    return ".".join(str(o) for o in octets)


def swap_words(s: str) -> str:
    """Reverse the byte order inside every 4-byte word of a hex string.

    fe80:0000:0000:0000:5578:afa9:4caf:27a1 is printed by a little-endian
    kernel as 000080fe 00000000 a9af7855 a127af4c.
    """
    if len(s) % 8:
        raise ValueError(f"hex string is not made of 32-bit words: {s!r}")
    out = []
    for i in range(0, len(s), 8):
        word = s[i:i + 8]
        out.append(word[6:8] + word[4:6] + word[2:4] + word[0:2])
    return "".join(out)


def ipv6_from_bytes(b: bytes) -> str:
    return bracket(str(ipaddress.IPv6Address(b)))


def hex2ipv6(s: str, byteorder: str = "little") -> str:
    if len(s) != 32 or not HEX_RE.fullmatch(s):
        raise ValueError(f"not an IPv6 address in hex format: {s!r}")
    if byteorder == "little":
        s = swap_words(s)
    return ipv6_from_bytes(bytes.fromhex(s))


def bracket(addr: str) -> str:
    if addr.startswith("["):
        return addr
    return f"[{addr}]"
