from __future__ import annotations

from rxtx import HostnameCache, matches_filter, parse_tcp_line

from .conftest import ManualExecutor, build_tcp_line


def _conn(**kwargs: object):
    return parse_tcp_line(build_tcp_line(**kwargs))


def test_empty_filter_matches_everything() -> None:
    assert matches_filter(_conn(), "", None)


def test_port_and_uid_match_but_unrelated_does_not() -> None:
    by_port = _conn(local=((10, 0, 0, 5), 40000), remote=((10, 1, 1, 1), 8080), state=0x01, uid=1000, inode=1)
    by_uid = _conn(local=((10, 0, 0, 5), 40001), remote=((10, 1, 1, 2), 443), state=0x01, uid=180, inode=2)
    neither = _conn(local=((10, 0, 0, 5), 40002), remote=((10, 1, 1, 3), 443), state=0x01, uid=1000, inode=3)
    assert matches_filter(by_port, "80")
    assert matches_filter(by_uid, "80")
    assert not matches_filter(neither, "80")


def test_state_match_is_case_insensitive() -> None:
    conn = _conn(state=0x0A, uid=1, inode=1)
    assert matches_filter(conn, "listen")
    assert matches_filter(conn, "LiStEn")
    assert not matches_filter(conn, "established")


def test_inode_and_local_address() -> None:
    conn = _conn(local=((192, 168, 0, 10), 22), uid=0, inode=987654)
    assert matches_filter(conn, "8765")
    assert matches_filter(conn, "192.168.0.10:22")


def test_resolved_hostname_matches() -> None:
    executor = ManualExecutor()
    cache = HostnameCache(resolver=lambda addr: "Mirror.Example.NET", executor=executor)
    conn = _conn(remote=((151, 101, 1, 1), 443), state=0x01, uid=1, inode=1)
    cache.ensure_resolving(conn.remote_ip)
    assert not matches_filter(conn, "mirror", cache)
    assert not matches_filter(conn, "resolving", cache)
    executor.run_all()
    assert matches_filter(conn, "mirror.example", cache)
    assert not matches_filter(conn, "mirror", None)


def test_failed_lookup_placeholder_never_matches() -> None:
    executor = ManualExecutor()
    cache = HostnameCache(resolver=lambda addr: None, executor=executor)
    conn = _conn(remote=((151, 101, 1, 1), 443), state=0x01, uid=1, inode=1)
    cache.ensure_resolving(conn.remote_ip)
    executor.run_all()
    assert cache.display_name(conn.remote_ip) == "-"
    assert not matches_filter(conn, "-", cache)
