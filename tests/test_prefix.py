from ipaddress import IPv4Address, IPv6Address, ip_network

import pytest

from wireglide.prefix import NetPrefix4, NetPrefix6, load_ip6


def test_prefix4_range_matches_network():
    net = ip_network("192.0.2.0/24")
    begin, end = NetPrefix4().get_range(IPv4Address("192.0.2.77"), 24)
    assert begin == int(net.network_address)
    assert end == int(net.broadcast_address)


def test_prefix4_host_range():
    addr = IPv4Address("10.77.44.2")
    assert NetPrefix4().get_range(addr, 32) == (int(addr), int(addr))


def test_prefix4_whole_space():
    begin, end = NetPrefix4().get_range(IPv4Address("10.0.0.1"), 0)
    assert begin == 0
    assert end == int(IPv4Address("255.255.255.255"))


def test_prefix4_reduce_within_range():
    p = NetPrefix4()
    addr = IPv4Address("10.77.44.9")
    begin, end = p.get_range(addr, 24)
    assert p.reduce(addr) == int(addr)
    assert begin <= p.reduce(addr) <= end


def test_prefix4_rejects_long_prefix():
    with pytest.raises(ValueError):
        NetPrefix4().get_range(IPv4Address("10.0.0.1"), 33)


def test_load_ip6():
    addr = IPv6Address("2001:db8::1")
    assert load_ip6(addr) == int(addr)
    assert load_ip6(addr.packed) == int(addr)


def test_load_ip6_rejects_wrong_length():
    with pytest.raises(ValueError):
        load_ip6(b"\x00" * 4)


def test_prefix6_quantum():
    assert NetPrefix6(64).quantum == 0
    assert NetPrefix6(48).quantum == 0
    assert NetPrefix6(128).quantum == 64


def test_prefix6_range_contains_reduced_address():
    p = NetPrefix6(64)
    addr = IPv6Address("2001:db8::1234")
    begin, end = p.get_range(addr, 120)
    assert begin <= p.reduce(addr) <= end


def test_prefix6_host_range_is_single_key():
    p = NetPrefix6(96)
    addr = IPv6Address("2001:db8::a:b")
    begin, end = p.get_range(addr, 128)
    assert begin == end == p.reduce(addr)


def test_prefix6_full_quantum_range():
    p = NetPrefix6(96)
    addr = IPv6Address("2001:db8::a:b")
    begin, end = p.get_range(addr, p.quantum)
    assert begin == 0
    assert end == (1 << 64) - 1


def test_prefix6_rejects_prefix_below_quantum():
    p = NetPrefix6(96)
    with pytest.raises(ValueError):
        p.get_range(IPv6Address("2001:db8::1"), p.quantum - 1)


def test_prefix6_rejects_long_prefix():
    with pytest.raises(ValueError):
        NetPrefix6(64).get_range(IPv6Address("2001:db8::1"), 129)


def test_prefix6_reduce_fits_64_bits():
    p = NetPrefix6(64)
    assert p.reduce(IPv6Address("ffff:ffff:ffff:ffff:ffff:ffff:ffff:ffff")) == (1 << 64) - 1