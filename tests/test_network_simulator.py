import pytest

from sponge.network_interface import (
    ARPMessage,
    ETHERNET_BROADCAST,
    EthernetFrame,
    InternetDatagram,
)
from sponge.network_simulator import (
    Network,
    main,
    network_simulator,
    random_host_ethernet_address,
    random_router_ethernet_address,
    summary,
)

MAC_A = b"\x02\x00\x00\x00\x00\x01"
MAC_B = b"\x02\x00\x00\x00\x00\x02"


def test_host_ethernet_address_is_private_unicast():
    for _ in range(50):
        address = random_host_ethernet_address()
        assert len(address) == 6
        assert address[0] & 0x03 == 0x02


def test_router_ethernet_address_prefix():
    for _ in range(50):
        address = random_router_ethernet_address()
        assert len(address) == 6
        assert address[:3] == b"\x02\x00\x00"


def test_summary_of_ipv4_frame_shows_payload():
    dgram = InternetDatagram(src=1, dst=2, payload=b"hello")
    frame = EthernetFrame(dst=MAC_A, src=MAC_B, type=EthernetFrame.TYPE_IPv4, payload=dgram.serialize())
    text = summary(frame)
    assert text.startswith(frame.header_summary())
    assert 'payload="hello"' in text
    assert dgram.summary() in text


def test_summary_of_bad_ipv4_frame():
    frame = EthernetFrame(dst=MAC_A, src=MAC_B, type=EthernetFrame.TYPE_IPv4, payload=b"xx")
    assert summary(frame).endswith(" (bad IPv4)")


def test_summary_of_arp_frames():
    message = ARPMessage(
        opcode=ARPMessage.OPCODE_REQUEST,
        sender_ethernet_address=MAC_B,
        sender_ip_address=1,
        target_ip_address=2,
    )
    good = EthernetFrame(
        dst=ETHERNET_BROADCAST, src=MAC_B, type=EthernetFrame.TYPE_ARP, payload=message.serialize()
    )
    bad = EthernetFrame(dst=ETHERNET_BROADCAST, src=MAC_B, type=EthernetFrame.TYPE_ARP, payload=b"")
    assert message.summary() in summary(good)
    assert summary(bad).endswith(" (bad ARP)")


def test_unknown_host_raises():
    with pytest.raises(KeyError):
        Network().host("nobody")


def test_datagram_delivered_between_hosts():
    network = Network()
    sent = network.host("applesauce").send_to(network.host("cherrypie").address)
    sent.ttl -= 1
    network.host("cherrypie").expect(sent)
    network.simulate()
    assert len(network.host("cherrypie").interface.datagrams_out) == 0


def test_unexpected_datagram_raises():
    network = Network()
    network.host("applesauce").send_to(network.host("cherrypie").address)
    with pytest.raises(RuntimeError, match="received unexpected"):
        network.simulate()


def test_wrong_ttl_expectation_raises():
    network = Network()
    sent = network.host("dm42").send_to(network.host("dm43").address)
    network.host("dm43").expect(sent)
    with pytest.raises(RuntimeError, match="dm43"):
        network.simulate()


def test_missing_datagram_raises():
    network = Network()
    sent = network.host("applesauce").send_to("1.2.3.4", 1)
    network.host("default_router").expect(sent)
    with pytest.raises(RuntimeError, match="did NOT receive"):
        network.simulate()


def test_expired_ttl_reaches_nobody():
    network = Network()
    network.host("applesauce").send_to("1.2.3.4", 1)
    network.simulate()
    assert len(network.host("default_router").interface.datagrams_out) == 0


def test_send_to_returns_independent_copy():
    network = Network()
    sent = network.host("applesauce").send_to("1.2.3.4", 10)
    sent.ttl = 3
    again = InternetDatagram.parse(sent.serialize())
    assert again.ttl == 3
    sent.ttl = 9
    network.host("default_router").expect(sent)
    network.simulate()
    assert len(network.host("default_router").interface.datagrams_out) == 0


def test_network_simulator_scenario(capsys):
    network_simulator()
    captured = capsys.readouterr()
    assert "Congratulations! All datagrams were routed successfully." in captured.out


def test_main_returns_success(capsys):
    assert main([]) == 0
    assert "Congratulations" in capsys.readouterr().out