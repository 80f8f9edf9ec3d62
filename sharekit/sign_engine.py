#!/usr/bin/env python3
"""
sign_engine.py: 抖音 X-Bogus 请求签名

核心算法: 两轮 MD5 + hex 解包 → RC4 加密 → 自定义 Base64 编码

Every table below was reverse-engineered from the Douyin web client
(the ``webmssdk`` bundle shipping X-Bogus v1). They are only valid for that
client build; when the platform changes its algorithm the constants break
together and signed requests start failing as UpstreamFormatChanged.
"""

import hashlib
import random
import time
from typing import Optional, Sequence

from .errors import SignatureDerivationFailed

__all__ = ["derive_signature", "sign_query", "random_value"]

# ════════════════════════════════════════════════════════════════════════════════
# 常量
# ════════════════════════════════════════════════════════════════════════════════

STANDARD_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/="
XBOGUS_ALPHABET = "Dkdpgh4ZKsQB80/Mfvw36XI1R25-WUAlEi7NLboqYTOPuzmFjJnryx9HVGcaStCe="

# md5(b"").hexdigest(); the client hashes this text as its "empty body" digest.
EMPTY_MD5_HEX = "d41d8cd98f00b204e9800998ecf8427e"

# Two small integers packed into the RC4 key for the user-agent step.
IDENTITY_KEY_PARAMS = (1, 12)

# Frame header: protocol marker 64, (1 >> 8) & 255, 1 & 255, and the same 12.
FRAME_HEADER = (64, 0, 1, 12)

# The client draws this from randint(FIXED_RANDOM - 10000, FIXED_RANDOM + 10000).
FIXED_RANDOM = 536919696
RANDOM_SPREAD = 10000

# Position i of the key takes byte PERMUTATION[i] of the interleaved frame.
PERMUTATION = (0, 10, 1, 11, 2, 12, 3, 13, 4, 14, 5, 15, 6, 16, 7, 17, 8, 18, 9)

FINAL_KEY = bytes([255])
OUTPUT_PREFIX = bytes([2, 255])

_HEX = "0123456789abcdef"


# ════════════════════════════════════════════════════════════════════════════════
# 基础变换
# ════════════════════════════════════════════════════════════════════════════════

def hex_unpack(hex_str: str) -> bytes:
    """每两个十六进制字符变为一个字节（非法字符对被跳过）"""
    out = bytearray()
    s = hex_str.lower()
    for i in range(0, len(s) - 1, 2):
        hi, lo = _HEX.find(s[i]), _HEX.find(s[i + 1])
        if hi >= 0 and lo >= 0:
            out.append((hi << 4) | lo)
    return bytes(out)


def _md5_hex(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def double_md5_unpack(text: str) -> bytes:
    """M(md5(M(md5(text)))), 16 bytes."""
    first = hex_unpack(_md5_hex(text.encode("utf-8")))
    return hex_unpack(_md5_hex(first))


def rc4_transform(key: bytes, data: bytes) -> bytes:
    """RC4 加密"""
    if not key:
        raise SignatureDerivationFailed("RC4 key must not be empty")
    s = list(range(256))
    j = 0
    for i in range(256):
        j = (j + s[i] + key[i % len(key)]) % 256
        s[i], s[j] = s[j], s[i]
    i = j = 0
    out = bytearray()
    for byte in data:
        i = (i + 1) % 256
        j = (j + s[i]) % 256
        s[i], s[j] = s[j], s[i]
        out.append(byte ^ s[(s[i] + s[j]) % 256])
    return bytes(out)


def pack_key(a: int, b: int) -> bytes:
    return bytes([(a >> 8) & 255, a & 255, b & 255])


def custom_b64encode(data: bytes, alphabet: str = XBOGUS_ALPHABET) -> str:
    """自定义 Base64 编码

    Only whole 3-byte groups are emitted; a trailing partial group is
    dropped without padding, as the client does.
    """
    out = []
    for i in range(0, len(data) - 2, 3):
        n = (data[i] << 16) | (data[i + 1] << 8) | data[i + 2]
        out.append(alphabet[(n >> 18) & 63])
        out.append(alphabet[(n >> 12) & 63])
        out.append(alphabet[(n >> 6) & 63])
        out.append(alphabet[n & 63])
    return "".join(out)


def checksum(frame: Sequence[int]) -> int:
    c = 0
    for b in frame:
        c ^= b
    return c & 255


def _be32(n: int) -> list[int]:
    return [(n >> 24) & 255, (n >> 16) & 255, (n >> 8) & 255, n & 255]


def build_frame(y: bytes, l: bytes, a: bytes, timestamp: int, rand: int) -> list[int]:
    """18-byte frame: header, low two bytes of Y/L/A, timestamp, random."""
    return [
        *FRAME_HEADER,
        y[14], y[15],
        l[14], l[15],
        a[14], a[15],
        *_be32(timestamp),
        *_be32(rand),
    ]


def interleave(frame: Sequence[int]) -> list[int]:
    """Even-indexed bytes, then the checksum, then odd-indexed bytes."""
    return list(frame[0::2]) + [checksum(frame)] + list(frame[1::2])


def permute(buf: Sequence[int]) -> bytes:
    return bytes(buf[i] for i in PERMUTATION)


def random_value() -> int:
    return random.randint(FIXED_RANDOM - RANDOM_SPREAD, FIXED_RANDOM + RANDOM_SPREAD)


# ════════════════════════════════════════════════════════════════════════════════
# 签名入口
# ════════════════════════════════════════════════════════════════════════════════

def derive_signature(
    target_url: str,
    client_identity: str,
    *,
    timestamp: Optional[int] = None,
    rand: int = FIXED_RANDOM,
) -> str:
    """
    生成 X-Bogus 签名

    Args:
        target_url: 待签名的 URL 或 query string
        client_identity: User-Agent 字符串
        timestamp: Unix 秒级时间戳，默认当前时间
        rand: 伪随机数，默认固定值（可用 random_value() 替换）

    Returns:
        28 字符的 X-Bogus 签名
    """
    if not client_identity:
        raise SignatureDerivationFailed("client identity (User-Agent) must not be empty")
    ts = int(time.time()) if timestamp is None else int(timestamp)

    y = double_md5_unpack(target_url)
    l = double_md5_unpack(EMPTY_MD5_HEX)

    ua_cipher = rc4_transform(pack_key(*IDENTITY_KEY_PARAMS), client_identity.encode("utf-8"))
    a = hex_unpack(_md5_hex(custom_b64encode(ua_cipher, STANDARD_ALPHABET).encode("ascii")))

    key = permute(interleave(build_frame(y, l, a, ts, rand)))
    return custom_b64encode(OUTPUT_PREFIX + rc4_transform(FINAL_KEY, key), XBOGUS_ALPHABET)


def sign_query(query: str, user_agent: str, **kwargs) -> str:
    """Append ``X-Bogus`` to a query string."""
    return f"{query}&X-Bogus={derive_signature(query, user_agent, **kwargs)}"
