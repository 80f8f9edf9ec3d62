import pytest

from sharekit.errors import SignatureDerivationFailed
from sharekit.http import MOBILE_UA
from sharekit.sign_engine import (
    EMPTY_MD5_HEX,
    FIXED_RANDOM,
    FRAME_HEADER,
    PERMUTATION,
    RANDOM_SPREAD,
    STANDARD_ALPHABET,
    XBOGUS_ALPHABET,
    build_frame,
    checksum,
    custom_b64encode,
    derive_signature,
    double_md5_unpack,
    hex_unpack,
    interleave,
    pack_key,
    permute,
    random_value,
    rc4_transform,
    sign_query,
)

QUERY = "aweme_ids=%5B7300000000000000000%5D&request_source=200&web_id=123456789012345"
TS = 1700000000
IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_0 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) "
    "Version/16.0 Mobile/15E148 Safari/604.1"
)


@pytest.mark.unit
class Describe_primitives:
    def test_rc4_known_vector(self):
        """RC4 应与公开测试向量一致。"""
        assert rc4_transform(b"Key", b"Plaintext").hex() == "bbf316e8d940af0ad3"

    def test_rc4_is_involution(self):
        """同一密钥加密两次得到原文。"""
        data = b"sharekit signature"
        assert rc4_transform(b"\xff", rc4_transform(b"\xff", data)) == data

    def test_rc4_rejects_empty_key(self):
        """空密钥应报错。"""
        with pytest.raises(SignatureDerivationFailed):
            rc4_transform(b"", b"x")

    def test_b64_emits_only_whole_groups(self):
        """只输出完整的三字节组，不补齐。"""
        assert custom_b64encode(b"Man", STANDARD_ALPHABET) == "TWFu"
        assert custom_b64encode(b"Ma", STANDARD_ALPHABET) == ""
        assert custom_b64encode(b"ManMa", STANDARD_ALPHABET) == "TWFu"
        assert custom_b64encode(b"\x00\x00\x00", STANDARD_ALPHABET) == "AAAA"
        assert custom_b64encode(b"\x00\x00\x00") == "DDDD"

    def test_hex_unpack(self):
        """十六进制解包，大小写均可。"""
        assert hex_unpack("00ffA0") == b"\x00\xff\xa0"
        assert hex_unpack("abc") == b"\xab"
        assert len(double_md5_unpack("anything")) == 16

    def test_permutation_covers_every_position(self):
        """置换表覆盖 0..18 且无重复。"""
        assert sorted(PERMUTATION) == list(range(19))

    def test_interleave_places_checksum_in_middle(self):
        """偶数位、校验和、奇数位。"""
        frame = list(range(18))
        out = interleave(frame)
        assert len(out) == 19
        assert out[:9] == frame[0::2]
        assert out[9] == checksum(frame)
        assert out[10:] == frame[1::2]

    def test_empty_digest_intermediate(self):
        """空串摘要经两轮 MD5 后的末两字节。"""
        assert double_md5_unpack(EMPTY_MD5_HEX).hex() == "ff58efe5c8404eb00c96f3d6d3e87412"
        assert double_md5_unpack(EMPTY_MD5_HEX)[14:] == b"\x74\x12"

    def test_identity_key(self):
        """UA 加密密钥为 00 01 0c。"""
        assert pack_key(1, 12) == b"\x00\x01\x0c"

    def test_frame_layout(self):
        """帧头、三个摘要的末两字节、大端时间戳与随机数。"""
        y = bytes(14) + b"\xb3\x4a"
        l = bytes(14) + b"\x74\x12"
        a = bytes(14) + b"\x5b\xa2"
        frame = build_frame(y, l, a, 0x6553F100, FIXED_RANDOM)
        assert frame == [
            *FRAME_HEADER, 0xB3, 0x4A, 0x74, 0x12, 0x5B, 0xA2,
            0x65, 0x53, 0xF1, 0x00, 0x20, 0x00, 0xBE, 0x90,
        ]
        assert FRAME_HEADER == (64, 0, 1, 12)

    def test_permute_layout(self):
        """按置换表重排各位置。"""
        assert permute(list(range(19))) == bytes(PERMUTATION)
        assert list(PERMUTATION[:4]) == [0, 10, 1, 11]

    def test_random_value_in_range(self):
        """随机值落在固定值附近。"""
        for _ in range(20):
            assert abs(random_value() - FIXED_RANDOM) <= RANDOM_SPREAD


@pytest.mark.unit
class Describe_derive_signature:
    def test_deterministic_for_fixed_inputs(self):
        """相同的 URL/UA/时间戳/随机数产生相同签名。"""
        a = derive_signature(QUERY, MOBILE_UA, timestamp=TS)
        b = derive_signature(QUERY, MOBILE_UA, timestamp=TS)
        assert a == b

    def test_output_shape(self):
        """签名为 28 个字符且全部来自自定义字母表。"""
        sig = derive_signature(QUERY, MOBILE_UA, timestamp=TS)
        assert len(sig) == 28
        assert set(sig) <= set(XBOGUS_ALPHABET)

    def test_inputs_affect_output(self):
        """URL、UA、时间戳、随机数任何一项变化都会改变签名。"""
        base = derive_signature(QUERY, MOBILE_UA, timestamp=TS)
        assert derive_signature(QUERY + "&x=1", MOBILE_UA, timestamp=TS) != base
        assert derive_signature(QUERY, MOBILE_UA + " XYZ", timestamp=TS) != base
        assert derive_signature(QUERY, MOBILE_UA, timestamp=TS + 1) != base
        assert derive_signature(QUERY, MOBILE_UA, timestamp=TS, rand=FIXED_RANDOM + 1) != base

    def test_partial_identity_group_is_ignored(self):
        """UA 末尾不足三字节的部分不参与编码。"""
        ua = MOBILE_UA[: len(MOBILE_UA) - len(MOBILE_UA) % 3]
        base = derive_signature(QUERY, ua, timestamp=TS)
        assert derive_signature(QUERY, ua + " X", timestamp=TS) == base

    @pytest.mark.parametrize("url,ua,ts,expected", [
        (QUERY, IPHONE_UA, 1700000000, "DFSzswVYjJbFYoBTtmWx-e9WX7jw"),
        (QUERY, IPHONE_UA + " XYZ", 1700000000, "DFSzswVYjJbFYFAZtmWx-e9WX7rT"),
        (
            "aweme_id=7300000000000000001&device_platform=webapp",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
            1600000000,
            "DFSzswVYUobFYPGqr/P6-e9WX7J3",
        ),
    ])
    def test_known_signatures(self, url, ua, ts, expected):
        """固定时间戳与随机数时签名与客户端算法逐字节一致。"""
        assert derive_signature(url, ua, timestamp=ts, rand=FIXED_RANDOM) == expected

    def test_empty_identity_rejected(self):
        """UA 为空时无法签名。"""
        with pytest.raises(SignatureDerivationFailed):
            derive_signature(QUERY, "")

    def test_sign_query_appends_parameter(self):
        """sign_query 在查询串末尾追加 X-Bogus。"""
        signed = sign_query(QUERY, MOBILE_UA, timestamp=TS)
        assert signed == f"{QUERY}&X-Bogus={derive_signature(QUERY, MOBILE_UA, timestamp=TS)}"
