import socket

import pytest

from explorer.comm import AN, AR, IR, RPiTransport, format_msg, parse_sensor_reply


@pytest.fixture
def link():
    pc_side, rpi_side = socket.socketpair()
    transport = RPiTransport(sock=pc_side)
    yield transport, rpi_side
    transport.disconnect()
    rpi_side.close()


def test_format_msg_prefixes():
    assert format_msg("F", AR) == "AR,F\n"
    assert format_msg("MDF|FF|00", AN) == "AN,MDF|FF|00\n"
    assert format_msg("3,7,N", IR) == "IR,3,7,N\n"
    assert format_msg(None, AR) == "AR\n"
    assert format_msg("hello") == "hello\n"


def test_parse_sensor_reply():
    assert parse_sensor_reply("2,-1,3,-1,-1") == [2, -1, 3, -1, -1]
    assert parse_sensor_reply(" 1.0, 2 ,-5,3,0\n") == [1, 2, -1, 3, 0]
    assert parse_sensor_reply("") is None
    assert parse_sensor_reply("1,2,3") is None
    assert parse_sensor_reply("a,b,c,d,e") is None


def test_send_and_receive_lines(link):
    transport, rpi = link
    assert transport.send_msg("F", AR)
    assert rpi.recv(64) == b"AR,F\n"

    rpi.sendall(b"1,-1,2,-1,-1\nok\n")
    assert transport.recv_msg() == "1,-1,2,-1,-1"
    assert transport.recv_msg() == "ok"


def test_partial_lines_are_buffered(link):
    transport, rpi = link
    rpi.sendall(b"3,3,")
    rpi.sendall(b"3,3,3\n")
    assert transport.recv_msg() == "3,3,3,3,3"


def test_closed_link_returns_empty(link):
    transport, rpi = link
    rpi.close()
    assert transport.recv_msg() == ""
    assert not transport.connected
    assert transport.send_msg("F", AR) is False


def test_connect_gives_up_after_retries(monkeypatch):
    monkeypatch.setattr("explorer.comm.time.sleep", lambda s: None)
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    port = server.getsockname()[1]
    server.close()

    transport = RPiTransport("127.0.0.1", port, retries=2)
    assert transport.connect() is False
    assert not transport.connected
