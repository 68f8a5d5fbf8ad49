import pytest

from procnet_ports.collectors import linux
from procnet_ports.errors import CollectorError, MalformedRecordError

from .conftest import FakeFS, PROC_NET_TCP, PROC_NET_TCP6, PROC_NET_UDP

LINE = ("0: 0100007F:0050 00000000:0000 0A 00000000:00000000 00:00000000 "
        "00000000 1000 0 12345 1 0000000000000000 100 0 0 10 0")


def test_parse_line():
    rec = linux.parse_line(LINE, "tcp4")
    assert rec.protocol == "tcp4"
    assert rec.address == "127.0.0.1"
    assert rec.port == 80
    assert rec.remote_address == "0.0.0.0"
    assert rec.remote_port == 0
    assert rec.state == "listen"
    assert rec.uid == 4096
    assert rec.inode == 12345


def test_parse_line_ignores_header():
    assert linux.parse_line("  sl  local_address rem_address   st tx_queue", "tcp4") is None


def test_state_names():
    assert linux.state_name(0x0A) == "listen"
    assert linux.state_name(0x01) == "established"
    assert linux.state_name(0x0C) == "new syn recv"
    assert linux.state_name(0xFF) == "unknown"
    rec = linux.parse_line(LINE.replace(" 0A ", " FF "), "tcp4")
    assert rec.state == "unknown"


def test_parse_proc_net():
    records = linux.parse_proc_net(PROC_NET_TCP, "tcp4")
    assert [(r.address, r.port, r.remote_address, r.remote_port, r.state) for r in records] == [
        ("127.0.0.1", 80, "0.0.0.0", 0, "listen"),
        ("10.0.2.15", 22, "10.0.2.2", 50648, "established"),
    ]
    assert [r.inode for r in records] == [12345, 23456]
    assert records[1].uid == 0


def test_parse_proc_net_ipv6():
    records = linux.parse_proc_net(PROC_NET_TCP6, "tcp6")
    assert len(records) == 1
    assert records[0].address == "[::1]"
    assert records[0].port == 631
    assert records[0].remote_address == "[::]"


def test_parse_is_idempotent():
    first = linux.parse_proc_net(PROC_NET_TCP, "tcp4")
    second = linux.parse_proc_net(PROC_NET_TCP, "tcp4")
    assert first == second
    assert [r.inode for r in first] == [r.inode for r in second]


def test_non_matching_lines_are_dropped():
    text = PROC_NET_TCP + "garbage line\n   7: not a socket row\n"
    assert len(linux.parse_proc_net(text, "tcp4")) == 2

    broken = PROC_NET_TCP.replace("   1: 0F02000A:0016", "   1: 0F02000A-0016")
    assert len(linux.parse_proc_net(broken, "tcp4")) == 1


@pytest.mark.parametrize("old,new,field", [
    (" 1000 ", " 10zz ", "uid"),
    (" 12345 ", " 12a45 ", "inode"),
    ("0100007F:0050", "0100007F:00X0", "port"),
    ("0100007F:0050", "0100007:0050", "address"),
    ("00000000:0000 0A", "00000000:0000 ZZ", "state"),
    (" 12345 ", " 12_345 ", "inode"),
    (" 1000 ", " -1 ", "uid"),
    ("00000000:0000 0A", "00000000:0000 -A", "state"),
    ("0100007F:0050", "+100007F:0050", "address"),
    ("0100007F:0050", "0100007F:+050", "port"),
])
def test_malformed_field(old, new, field):
    with pytest.raises(MalformedRecordError) as exc:
        linux.parse_proc_net(PROC_NET_TCP.replace(old, new, 1), "tcp4", source="/proc/net/tcp")
    assert exc.value.field == field
    assert field in str(exc.value)
    assert "/proc/net/tcp" in str(exc.value)


def test_collect_concatenates_tables_in_order(linux_fs):
    records = linux.collect(linux_fs)
    assert [r.protocol for r in records] == ["tcp4", "tcp4", "udp4", "tcp6"]
    assert records[2].state == "close"
    assert records[2].port == 68


def test_collect_tolerates_missing_ipv6():
    fs = FakeFS({"/proc/net/tcp": PROC_NET_TCP, "/proc/net/udp": PROC_NET_UDP})
    assert len(linux.collect(fs)) == 3
    with pytest.raises(CollectorError):
        linux.collect(fs, tolerate_missing_ipv6=False)


def test_collect_missing_ipv4_table_is_fatal():
    fs = FakeFS({"/proc/net/udp": PROC_NET_UDP})
    with pytest.raises(CollectorError, match="/proc/net/tcp"):
        linux.collect(fs)


def test_collect_rejects_directory():
    fs = FakeFS({"/proc/net/udp": PROC_NET_UDP}, dirs={"/proc/net/tcp"})
    with pytest.raises(CollectorError, match="folder"):
        linux.collect(fs)


def test_collect_fails_on_malformed_file(linux_fs):
    linux_fs.files["/proc/net/udp"] = PROC_NET_UDP.replace(" 45678 ", " 4567x ")
    with pytest.raises(MalformedRecordError) as exc:
        linux.collect(linux_fs)
    assert exc.value.field == "inode"
    assert exc.value.source == "/proc/net/udp"


def test_collect_custom_dir():
    fs = FakeFS({"/host/proc/net/tcp": PROC_NET_TCP, "/host/proc/net/udp": ""})
    assert len(linux.collect(fs, proc_net_dir="/host/proc/net/")) == 2
