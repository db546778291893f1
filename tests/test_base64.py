import base64 as std_base64

import pytest

from wireglide.base64 import decode, decoded_size, encode, encoded_size

SAMPLES = [b"", b"f", b"fo", b"foo", b"foob", b"fooba", b"foobar", bytes(range(256))]


def test_encode_pinned_vector():
    assert encode(b"foobar") == "Zm9vYmFy"


@pytest.mark.parametrize("data", SAMPLES)
def test_encode_matches_standard_base64(data):
    assert encode(data) == std_base64.b64encode(data).decode("ascii")


@pytest.mark.parametrize("data", SAMPLES)
def test_round_trip(data):
    text = encode(data)
    decoded, consumed = decode(text)
    assert decoded == data
    assert consumed == len(text.rstrip("="))


@pytest.mark.parametrize("n", range(0, 40))
def test_encoded_size_matches_output(n):
    assert encoded_size(n) == len(encode(bytes(n)))


@pytest.mark.parametrize("n", range(0, 40))
def test_decoded_size_bounds(n):
    size = decoded_size(encoded_size(n))
    assert n <= size < n + 3


def test_decode_stops_at_invalid_character():
    first = encode(b"foo")
    decoded, consumed = decode(first + "!" + encode(b"bar"))
    assert decoded == b"foo"
    assert consumed == len(first)


def test_decode_stops_at_padding():
    text = encode(b"fo")
    decoded, consumed = decode(text + encode(b"xyz"))
    assert decoded == b"fo"
    assert consumed == len(text) - 1


def test_decode_single_leftover_character_yields_nothing():
    assert decode("Z") == (b"", 1)


def test_decode_accepts_bytes():
    data = b"wireglide"
    assert decode(encode(data).encode("ascii"))[0] == data


def test_decode_non_ascii_stops():
    decoded, consumed = decode(encode(b"abc") + "\u00e9")
    assert decoded == b"abc"
    assert consumed == len(encode(b"abc"))