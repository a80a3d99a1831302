#!/usr/bin/env python3
"""rx-tx: live interface throughput and TCP connection console for Linux."""

# Samples the kernel interface counters and TCP table on a fixed tick, keeps a
# bounded rate history per interface and resolves remote peers in the
# background so the dashboard never waits on DNS.

import argparse
import curses
import json
import logging
import math
import queue
import socket
import sys
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Deque, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import psutil

log = logging.getLogger("rxtx")

PROC_NET_DEV = Path("/proc/net/dev")
PROC_NET_TCP = Path("/proc/net/tcp")
PROC_UPTIME = Path("/proc/uptime")
COUNTER_HEADER_LINES = 2
COUNTER_FIELDS = 16
TCP_HEADER_LINES = 1
TCP_MIN_FIELDS = 12
HISTORY_LENGTH = 100
EMA_SMOOTHING = 0.05
HOSTNAME_MAX_LENGTH = 30
UNRESOLVED = "-"
RESOLVING_LABEL = "resolving..."
RESOLVER_WORKERS = 16
DEFAULT_INTERVAL = 1.0
REFRESH_MIN_INTERVAL = 0.2
STATS_REFRESH_INTERVAL = 1.0
DEFAULT_LINK_MBPS = 1000.0
EVENT_LOG_LIMIT = 200
EVENT_COOLDOWN = 30.0
GRAPH_CHARS = " .:-=+*#%@"
BAR_CHARS = ("#", ".")

RX = "rx"
TX = "tx"
DIRECTIONS = (RX, TX)

IPv4Bytes = Tuple[int, int, int, int]
Endpoint = Tuple[IPv4Bytes, int]

UNSPECIFIED_ADDR: IPv4Bytes = (0, 0, 0, 0)
LOOPBACK_ADDR: IPv4Bytes = (127, 0, 0, 1)

TCP_STATES = {
    0x01: "ESTABLISHED",
    0x02: "SYN_SENT",
    0x03: "SYN_RECV",
    0x04: "FIN_WAIT1",
    0x05: "FIN_WAIT2",
    0x06: "TIME_WAIT",
    0x07: "CLOSE",
    0x08: "CLOSE_WAIT",
    0x09: "LAST_ACK",
    0x0A: "LISTEN",
    0x0B: "CLOSING",
}

TIMER_NAMES = {
    0: "off",
    1: "on",
    2: "keepalive",
    3: "timewait",
    4: "probe",
}

_DEC_DIGITS = frozenset("0123456789")
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


class TableParseError(ValueError):
    """Raised when a single kernel table row cannot be decoded."""


def _parse_uint(text: str, base: int = 10, bits: int = 64) -> int:
    digits = _HEX_DIGITS if base == 16 else _DEC_DIGITS
    if not text or not set(text) <= digits:
        raise TableParseError(f"invalid base-{base} value {text!r}")
    value = int(text, base)
    if value >> bits:
        raise TableParseError(f"value {text!r} exceeds {bits} bits")
    return value


def _check_direction(direction: str) -> str:
    if direction not in DIRECTIONS:
        raise ValueError(f"unknown direction {direction!r}, expected one of {DIRECTIONS}")
    return direction


# ---------------------------------------------------------------------------
# Counter table (/proc/net/dev)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReceiveCounters:
    bytes: int = 0
    packets: int = 0
    errs: int = 0
    drop: int = 0
    fifo: int = 0
    frame: int = 0
    compressed: int = 0
    multicast: int = 0


@dataclass(frozen=True)
class TransmitCounters:
    bytes: int = 0
    packets: int = 0
    errs: int = 0
    drop: int = 0
    fifo: int = 0
    colls: int = 0
    carrier: int = 0
    compressed: int = 0


@dataclass(frozen=True)
class CounterRecord:
    """Cumulative counters of one interface at a sampling instant."""

    name: str
    receive: ReceiveCounters
    transmit: TransmitCounters

    def direction(self, direction: str) -> Union[ReceiveCounters, TransmitCounters]:
        return self.receive if _check_direction(direction) == RX else self.transmit


def parse_counter_line(line: str) -> CounterRecord:
    name, sep, rest = line.partition(":")
    if not sep:
        raise TableParseError("missing ':' after interface name")
    name = name.strip()
    if not name:
        raise TableParseError("empty interface name")
    fields = rest.split()
    if len(fields) != COUNTER_FIELDS:
        raise TableParseError(f"expected {COUNTER_FIELDS} counters, got {len(fields)}")
    values = [_parse_uint(value) for value in fields]
    return CounterRecord(
        name=name,
        receive=ReceiveCounters(*values[:8]),
        transmit=TransmitCounters(*values[8:]),
    )


def parse_counter_table(text: str) -> List[CounterRecord]:
    """Decode a counter table snapshot, skipping the header and bad rows."""

    records: List[CounterRecord] = []
    lines = text.splitlines()
    for lineno, line in enumerate(lines[COUNTER_HEADER_LINES:], start=COUNTER_HEADER_LINES + 1):
        if not line.strip():
            continue
        try:
            records.append(parse_counter_line(line))
        except TableParseError as exc:
            log.debug("skipping counter table line %d: %s", lineno, exc)
    return records


def _read_source(path: Path) -> str:
    with path.open("r", encoding="utf-8", errors="replace") as handle:
        return handle.read()


def read_counter_table(path: Path = PROC_NET_DEV) -> Tuple[List[CounterRecord], Optional[OSError]]:
    try:
        text = _read_source(Path(path))
    except OSError as exc:
        return [], exc
    return parse_counter_table(text), None


@dataclass(frozen=True)
class CounterTotals:
    rx_bytes: int = 0
    tx_bytes: int = 0
    rx_packets: int = 0
    tx_packets: int = 0
    rx_errors: int = 0
    tx_errors: int = 0
    rx_drops: int = 0
    tx_drops: int = 0

    @property
    def total_bytes(self) -> int:
        return self.rx_bytes + self.tx_bytes

    @property
    def total_packets(self) -> int:
        return self.rx_packets + self.tx_packets

    @property
    def total_errors(self) -> int:
        return self.rx_errors + self.tx_errors

    @property
    def total_drops(self) -> int:
        return self.rx_drops + self.tx_drops

    @property
    def rx_tx_bytes_ratio(self) -> float:
        return self.rx_bytes / self.tx_bytes if self.tx_bytes else 0.0

    @property
    def rx_tx_packets_ratio(self) -> float:
        return self.rx_packets / self.tx_packets if self.tx_packets else 0.0

    @property
    def error_rate_pct(self) -> float:
        return self.total_errors * 100.0 / self.total_packets if self.total_packets else 0.0

    @property
    def drop_rate_pct(self) -> float:
        return self.total_drops * 100.0 / self.total_packets if self.total_packets else 0.0


def compute_totals(records: Iterable[CounterRecord]) -> CounterTotals:
    sums: Dict[str, int] = defaultdict(int)
    for record in records:
        sums["rx_bytes"] += record.receive.bytes
        sums["tx_bytes"] += record.transmit.bytes
        sums["rx_packets"] += record.receive.packets
        sums["tx_packets"] += record.transmit.packets
        sums["rx_errors"] += record.receive.errs
        sums["tx_errors"] += record.transmit.errs
        sums["rx_drops"] += record.receive.drop
        sums["tx_drops"] += record.transmit.drop
    return CounterTotals(**sums)


def read_uptime(path: Path = PROC_UPTIME) -> Optional[float]:
    """Seconds since boot, or ``None`` when the uptime file is unusable."""

    try:
        text = _read_source(Path(path))
    except OSError as exc:
        log.debug("cannot read %s: %s", path, exc)
        return None
    try:
        seconds = float(text.split()[0])
    except (IndexError, ValueError):
        log.debug("malformed uptime %r", text[:40])
        return None
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return seconds


# ---------------------------------------------------------------------------
# Connection table (/proc/net/tcp)
# ---------------------------------------------------------------------------


def format_ip(addr: IPv4Bytes) -> str:
    return ".".join(str(octet) for octet in addr)


def format_endpoint(endpoint: Endpoint) -> str:
    addr, port = endpoint
    return f"{format_ip(addr)}:{port}"


def tcp_state_name(state: int) -> str:
    return TCP_STATES.get(state, "UNKNOWN")


def timer_name(timer_active: int) -> str:
    return TIMER_NAMES.get(timer_active, "unknown")


def decode_endpoint(text: str) -> Endpoint:
    """Decode ``AABBCCDD:PPPP`` into ``((a, b, c, d), port)``.

    The kernel prints the address as a host-order 32-bit word, so on
    little-endian machines the byte pairs appear reversed. The port is a
    plain big-endian hex number.
    """

    addr_hex, sep, port_hex = text.partition(":")
    if not sep:
        raise TableParseError(f"missing ':' in endpoint {text!r}")
    if len(addr_hex) != 8:
        raise TableParseError(f"expected 8 hex digits for IPv4 address, got {addr_hex!r}")
    octets = [_parse_uint(addr_hex[idx : idx + 2], base=16, bits=8) for idx in range(0, 8, 2)]
    port = _parse_uint(port_hex, base=16, bits=16)
    return (octets[3], octets[2], octets[1], octets[0]), port


def decode_hex_pair(text: str) -> Tuple[int, int]:
    left, sep, right = text.partition(":")
    if not sep:
        raise TableParseError(f"missing ':' in pair {text!r}")
    return _parse_uint(left, base=16), _parse_uint(right, base=16)


@dataclass(frozen=True)
class TcpConnection:
    local_addr: Endpoint
    remote_addr: Endpoint
    state: int
    tx_queue: int
    rx_queue: int
    timer_active: int
    timer_when: int
    retransmit_timeout: int
    uid: int
    timeout: int
    inode: int
    slot: int = 0

    @property
    def local_ip(self) -> IPv4Bytes:
        return self.local_addr[0]

    @property
    def local_port(self) -> int:
        return self.local_addr[1]

    @property
    def remote_ip(self) -> IPv4Bytes:
        return self.remote_addr[0]

    @property
    def remote_port(self) -> int:
        return self.remote_addr[1]

    @property
    def state_name(self) -> str:
        return tcp_state_name(self.state)

    @property
    def timer_name(self) -> str:
        return timer_name(self.timer_active)

    @property
    def local_label(self) -> str:
        return format_endpoint(self.local_addr)

    @property
    def remote_label(self) -> str:
        return format_endpoint(self.remote_addr)


def parse_tcp_line(line: str) -> TcpConnection:
    fields = line.split()
    if len(fields) < TCP_MIN_FIELDS:
        raise TableParseError(f"expected at least {TCP_MIN_FIELDS} fields, got {len(fields)}")
    tx_queue, rx_queue = decode_hex_pair(fields[4])
    timer_active, timer_when = decode_hex_pair(fields[5])
    return TcpConnection(
        slot=_parse_uint(fields[0].rstrip(":")),
        local_addr=decode_endpoint(fields[1]),
        remote_addr=decode_endpoint(fields[2]),
        state=_parse_uint(fields[3], base=16),
        tx_queue=tx_queue,
        rx_queue=rx_queue,
        timer_active=timer_active,
        timer_when=timer_when,
        retransmit_timeout=_parse_uint(fields[6], base=16),
        uid=_parse_uint(fields[7], bits=32),
        timeout=_parse_uint(fields[8], bits=32),
        inode=_parse_uint(fields[9]),
    )


def parse_tcp_table(text: str) -> List[TcpConnection]:
    """Decode a TCP table snapshot, skipping the header and bad rows."""

    connections: List[TcpConnection] = []
    lines = text.splitlines()
    for lineno, line in enumerate(lines[TCP_HEADER_LINES:], start=TCP_HEADER_LINES + 1):
        if not line.strip():
            continue
        try:
            connections.append(parse_tcp_line(line))
        except TableParseError as exc:
            log.debug("skipping tcp table line %d: %s", lineno, exc)
    return connections


def read_tcp_table(path: Path = PROC_NET_TCP) -> Tuple[List[TcpConnection], Optional[OSError]]:
    try:
        text = _read_source(Path(path))
    except OSError as exc:
        return [], exc
    return parse_tcp_table(text), None


def is_unresolvable(addr: IPv4Bytes) -> bool:
    return tuple(addr) in (UNSPECIFIED_ADDR, LOOPBACK_ADDR)


@dataclass(frozen=True)
class ConnectionSummary:
    total: int = 0
    active: int = 0
    unique_remote: int = 0
    local: int = 0
    external: int = 0
    states: Dict[str, int] = field(default_factory=dict)


def summarize_connections(connections: Sequence[TcpConnection]) -> ConnectionSummary:
    states: Dict[str, int] = defaultdict(int)
    remotes = set()
    active = 0
    local = 0
    for conn in connections:
        states[conn.state_name] += 1
        if conn.tx_queue > 0 or conn.rx_queue > 0:
            active += 1
        if is_unresolvable(conn.remote_ip):
            local += 1
        else:
            remotes.add(conn.remote_ip)
    return ConnectionSummary(
        total=len(connections),
        active=active,
        unique_remote=len(remotes),
        local=local,
        external=len(connections) - local,
        states=dict(sorted(states.items(), key=lambda item: (-item[1], item[0]))),
    )


# ---------------------------------------------------------------------------
# Rates, history and peak/average statistics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RatePoint:
    timestamp: float
    rate: float


@dataclass
class SpeedStats:
    peak: float = 0.0
    average: float = 0.0
    updates: int = 0

    def update(self, rate: float, smoothing: float = EMA_SMOOTHING) -> None:
        if math.isnan(rate) or rate < 0:
            raise ValueError(f"rate must be a non-negative number, got {rate!r}")
        self.peak = max(self.peak, rate)
        self.average = self.average * (1.0 - smoothing) + rate * smoothing
        self.updates += 1


def counter_delta(previous: int, current: int) -> int:
    # A counter that went backwards was reset; treat it as no traffic.
    return max(0, current - previous)


class RateEngine:
    """Turn successive counter snapshots into per-interface rate histories.

    Interfaces that disappear from the counter table keep their history and
    statistics; they simply stop receiving new points.
    """

    def __init__(self, history_length: int = HISTORY_LENGTH, smoothing: float = EMA_SMOOTHING) -> None:
        self.history_length = history_length
        self.smoothing = smoothing
        self.rx_history: Dict[str, Deque[RatePoint]] = defaultdict(lambda: deque(maxlen=self.history_length))
        self.tx_history: Dict[str, Deque[RatePoint]] = defaultdict(lambda: deque(maxlen=self.history_length))
        self.rx_stats: Dict[str, SpeedStats] = {}
        self.tx_stats: Dict[str, SpeedStats] = {}
        self.last_sample_time: Optional[float] = None

    def observe(
        self,
        previous: Optional[Sequence[CounterRecord]],
        current: Sequence[CounterRecord],
        now: float,
    ) -> Dict[str, Tuple[RatePoint, RatePoint]]:
        prev_time = self.last_sample_time
        self.last_sample_time = now
        updates: Dict[str, Tuple[RatePoint, RatePoint]] = {}
        if previous is None or prev_time is None:
            return updates
        dt = now - prev_time
        if dt <= 0:
            log.debug("ignoring sample with non-positive elapsed time %.6f", dt)
            return updates
        prior_by_name = {record.name: record for record in previous}
        for record in current:
            prior = prior_by_name.get(record.name)
            if prior is None:
                continue
            rx_point = RatePoint(now, counter_delta(prior.receive.bytes, record.receive.bytes) / dt)
            tx_point = RatePoint(now, counter_delta(prior.transmit.bytes, record.transmit.bytes) / dt)
            self.rx_history[record.name].append(rx_point)
            self.tx_history[record.name].append(tx_point)
            updates[record.name] = (rx_point, tx_point)
        return updates

    def _histories(self, direction: str) -> Dict[str, Deque[RatePoint]]:
        return self.rx_history if _check_direction(direction) == RX else self.tx_history

    def _stats(self, direction: str) -> Dict[str, SpeedStats]:
        return self.rx_stats if _check_direction(direction) == RX else self.tx_stats

    def history(self, interface: str, direction: str) -> List[RatePoint]:
        return list(self._histories(direction).get(interface, ()))

    def current_rate(self, interface: str, direction: str) -> float:
        points = self._histories(direction).get(interface)
        if not points:
            return 0.0
        return points[-1].rate

    def total_rate(self, direction: str, interfaces: Optional[Iterable[str]] = None) -> float:
        names = self.interfaces() if interfaces is None else interfaces
        return sum(self.current_rate(name, direction) for name in names)

    def interfaces(self) -> List[str]:
        return sorted(set(self.rx_history) | set(self.tx_history) | set(self.rx_stats) | set(self.tx_stats))

    def stats(self, interface: str, direction: str) -> SpeedStats:
        table = self._stats(direction)
        stats = table.get(interface)
        if stats is None:
            stats = table[interface] = SpeedStats()
        return stats

    def update_stats(self, interface: str, direction: str, latest_rate: float) -> SpeedStats:
        stats = self.stats(interface, direction)
        stats.update(latest_rate, self.smoothing)
        return stats

    def refresh_stats(self, interfaces: Iterable[str]) -> None:
        for name in interfaces:
            for direction in DIRECTIONS:
                self.update_stats(name, direction, self.current_rate(name, direction))


# ---------------------------------------------------------------------------
# Link capacity hints
# ---------------------------------------------------------------------------


def load_fraction(rate: float, limit_mbps: Optional[float] = None) -> float:
    mbps = limit_mbps if limit_mbps and limit_mbps > 0 else DEFAULT_LINK_MBPS
    capacity = mbps * 1_000_000 / 8.0
    return max(0.0, min(1.0, rate / capacity))


@dataclass(frozen=True)
class SpeedLimit:
    rx_mbps: float
    tx_mbps: float

    def for_direction(self, direction: str) -> float:
        return self.rx_mbps if _check_direction(direction) == RX else self.tx_mbps


def parse_speed_limit(text: str) -> Tuple[str, SpeedLimit]:
    """Parse ``IFACE=RX[:TX]`` (Mbps) as given on the command line."""

    name, sep, speeds = text.partition("=")
    name = name.strip()
    if not sep or not name:
        raise ValueError(f"expected IFACE=RX[:TX], got {text!r}")
    rx_text, _, tx_text = speeds.partition(":")
    rx_mbps = float(rx_text)
    tx_mbps = float(tx_text) if tx_text else rx_mbps
    if not (rx_mbps > 0 and tx_mbps > 0):
        raise ValueError(f"speed limits must be positive, got {text!r}")
    return name, SpeedLimit(rx_mbps, tx_mbps)


class SpeedLimits:
    """Per-interface link capacity used to turn rates into load fractions."""

    def __init__(
        self,
        configured: Optional[Mapping[str, SpeedLimit]] = None,
        discovered: Optional[Mapping[str, SpeedLimit]] = None,
    ) -> None:
        self.configured: Dict[str, SpeedLimit] = dict(configured or {})
        self.discovered: Dict[str, SpeedLimit] = dict(discovered or {})

    @classmethod
    def discover(cls, configured: Optional[Mapping[str, SpeedLimit]] = None) -> "SpeedLimits":
        discovered: Dict[str, SpeedLimit] = {}
        try:
            nic_stats = psutil.net_if_stats()
        except (psutil.Error, OSError) as exc:  # pragma: no cover - defensive
            log.warning("link speed discovery failed: %s", exc)
            nic_stats = {}
        for nic, stats in nic_stats.items():
            speed = getattr(stats, "speed", 0) or 0
            if speed > 0:
                discovered[nic] = SpeedLimit(float(speed), float(speed))
        return cls(configured, discovered)

    def get(self, interface: str) -> Optional[SpeedLimit]:
        return self.configured.get(interface) or self.discovered.get(interface)

    def load(self, interface: str, direction: str, rate: float) -> float:
        limit = self.get(interface)
        return load_fraction(rate, limit.for_direction(direction) if limit else None)


# ---------------------------------------------------------------------------
# Hostname resolution cache
# ---------------------------------------------------------------------------


class _Pending:
    __slots__ = ()

    def __repr__(self) -> str:
        return "PENDING"


PENDING = _Pending()

HostnameEntry = Union[str, _Pending]


def truncate_hostname(name: str, limit: int = HOSTNAME_MAX_LENGTH) -> str:
    return truncate(name, limit)


def reverse_lookup(addr: IPv4Bytes) -> Optional[str]:
    try:
        host, _aliases, _ = socket.gethostbyaddr(format_ip(addr))
    except (socket.herror, socket.gaierror):
        return None
    return host


class LookupPool:
    """Bounded set of daemon threads draining a queue of blocking lookups.

    Workers never hold the process open: :meth:`shutdown` drops whatever is
    still queued, and a lookup stuck in the resolver is abandoned at exit.
    """

    def __init__(self, max_workers: int = RESOLVER_WORKERS, name: str = "rxtx-dns") -> None:
        if max_workers <= 0:
            raise ValueError("max_workers must be greater than 0")
        self.max_workers = max_workers
        self._name = name
        self._queue: "queue.Queue[Optional[Tuple[Callable[..., None], tuple]]]" = queue.Queue()
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, fn: Callable[..., None], *args: Any) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("cannot schedule new lookups after shutdown")
            self._queue.put((fn, args))
            if len(self._threads) < self.max_workers:
                thread = threading.Thread(
                    target=self._work, name=f"{self._name}_{len(self._threads)}", daemon=True
                )
                self._threads.append(thread)
                thread.start()

    def _work(self) -> None:
        while True:
            item = self._queue.get()
            if item is None:
                return
            fn, args = item
            try:
                fn(*args)
            except Exception:
                log.exception("lookup task failed")

    @property
    def worker_count(self) -> int:
        with self._lock:
            return len(self._threads)

    def shutdown(self, wait: bool = False) -> int:
        """Stop accepting work and drop queued lookups; returns how many were dropped."""

        dropped = 0
        with self._lock:
            self._closed = True
            while True:
                try:
                    item = self._queue.get_nowait()
                except queue.Empty:
                    break
                if item is not None:
                    dropped += 1
            for _ in self._threads:
                self._queue.put(None)
            threads = list(self._threads)
        if wait:
            for thread in threads:
                thread.join()
        return dropped


class HostnameCache:
    """Shared address-to-hostname map filled by background lookups.

    Entries only move from absent to :data:`PENDING` to a final string. The
    pending mark is placed under the lock before a lookup is scheduled, so a
    given address never has more than one lookup in flight. The lock is never
    held while the resolver runs.
    """

    def __init__(
        self,
        resolver: Callable[[IPv4Bytes], Optional[str]] = reverse_lookup,
        executor: Optional[Any] = None,
        max_workers: int = RESOLVER_WORKERS,
    ) -> None:
        self._resolver = resolver
        self._executor = executor if executor is not None else LookupPool(max_workers)
        self._entries: Dict[IPv4Bytes, HostnameEntry] = {}
        self._lock = threading.Lock()
        self.lookups_started = 0

    def ensure_resolving(self, addr: IPv4Bytes) -> bool:
        addr = tuple(addr)
        if is_unresolvable(addr):
            return False
        with self._lock:
            if addr in self._entries:
                return False
            self._entries[addr] = PENDING
            self.lookups_started += 1
        try:
            self._executor.submit(self._resolve, addr)
        except RuntimeError as exc:
            log.debug("cannot schedule lookup for %s: %s", format_ip(addr), exc)
            self._store(addr, UNRESOLVED)
        return True

    def _resolve(self, addr: IPv4Bytes) -> None:
        try:
            name = self._resolver(addr)
        except Exception as exc:  # any resolver failure is final for this address
            log.debug("reverse lookup for %s failed: %s", format_ip(addr), exc)
            name = None
        self._store(addr, truncate_hostname(name) if name else UNRESOLVED)

    def _store(self, addr: IPv4Bytes, value: str) -> None:
        with self._lock:
            if self._entries.get(addr) is PENDING:
                self._entries[addr] = value

    def get(self, addr: IPv4Bytes) -> Optional[HostnameEntry]:
        with self._lock:
            return self._entries.get(tuple(addr))

    def is_pending(self, addr: IPv4Bytes) -> bool:
        return self.get(addr) is PENDING

    def resolved(self, addr: IPv4Bytes) -> Optional[str]:
        entry = self.get(addr)
        return entry if isinstance(entry, str) else None

    def display_name(self, addr: IPv4Bytes) -> str:
        if is_unresolvable(addr):
            return UNRESOLVED
        entry = self.get(addr)
        if entry is None:
            return ""
        if entry is PENDING:
            return RESOLVING_LABEL
        return entry

    def snapshot(self) -> Dict[IPv4Bytes, HostnameEntry]:
        with self._lock:
            return dict(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def shutdown(self) -> None:
        """Stop lookups and settle every pending entry to the terminal value."""

        self._executor.shutdown(wait=False)
        with self._lock:
            for addr, entry in self._entries.items():
                if entry is PENDING:
                    self._entries[addr] = UNRESOLVED


def matches_filter(connection: TcpConnection, query: str, cache: Optional[HostnameCache] = None) -> bool:
    """Case-insensitive substring match over the fields shown for a connection."""

    if not query:
        return True
    needle = query.lower()
    candidates = [
        connection.local_label,
        connection.remote_label,
        connection.state_name,
        str(connection.uid),
        str(connection.inode),
    ]
    if cache is not None:
        hostname = cache.resolved(connection.remote_ip)
        if hostname and hostname != UNRESOLVED:
            candidates.append(hostname)
    return any(needle in candidate.lower() for candidate in candidates)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass
class EngineEvent:
    timestamp: float
    category: str
    severity: str
    summary: str
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_problem(self) -> bool:
        return self.severity.lower() != "info"

    def as_dict(self) -> Dict[str, Any]:
        stamp = datetime.fromtimestamp(self.timestamp, timezone.utc)
        return {
            **self.details,
            "timestamp": self.timestamp,
            "ts_iso": stamp.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "category": self.category,
            "severity": self.severity,
            "summary": self.summary,
        }

    def to_json(self) -> str:
        return json.dumps(self.as_dict(), sort_keys=True)


class EventLog:
    """Recent engine events, optionally mirrored to a JSON-lines file.

    A problem event repeated for the same source within the cooldown is
    counted rather than stored; the count rides along as ``repeats`` on the
    next stored event for that source.
    """

    def __init__(self, limit: int = EVENT_LOG_LIMIT, path: Optional[Path] = None, cooldown: float = EVENT_COOLDOWN) -> None:
        self._events: Deque[EngineEvent] = deque(maxlen=limit)
        self._lock = threading.Lock()
        self._file_path = Path(path) if path else None
        self._cooldown = cooldown
        self._last_stored: Dict[Tuple[str, str], float] = {}
        self._suppressed: Dict[Tuple[str, str], int] = defaultdict(int)

    def add(self, event: EngineEvent) -> bool:
        key = (event.category, event.summary)
        with self._lock:
            if event.is_problem:
                last = self._last_stored.get(key)
                if last is not None and event.timestamp - last < self._cooldown:
                    self._suppressed[key] += 1
                    return False
                self._last_stored[key] = event.timestamp
            repeats = self._suppressed.pop(key, 0)
            if repeats:
                event.details["repeats"] = repeats
            self._events.append(event)
        self._append_to_disk(event)
        return True

    def suppressed(self, category: str, summary: str) -> int:
        with self._lock:
            return self._suppressed.get((category, summary), 0)

    def recent(self, count: int) -> List[EngineEvent]:
        if count <= 0:
            return []
        with self._lock:
            return list(self._events)[-count:]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def _append_to_disk(self, event: EngineEvent) -> None:
        if self._file_path is None:
            return
        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            with self._file_path.open("a", encoding="utf-8") as handle:
                handle.write(event.to_json())
                handle.write("\n")
        except OSError as exc:
            log.warning("cannot write event log %s: %s", self._file_path, exc)


# ---------------------------------------------------------------------------
# Sampling engine
# ---------------------------------------------------------------------------


class TelemetryEngine:
    """Drive one sampling tick: read, rate, decode connections, queue lookups."""

    def __init__(
        self,
        counters_path: Path = PROC_NET_DEV,
        tcp_path: Path = PROC_NET_TCP,
        *,
        uptime_path: Path = PROC_UPTIME,
        rates: Optional[RateEngine] = None,
        cache: Optional[HostnameCache] = None,
        events: Optional[EventLog] = None,
        resolve: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.counters_path = Path(counters_path)
        self.tcp_path = Path(tcp_path)
        self.rates = rates if rates is not None else RateEngine()
        self.cache = cache if cache is not None else HostnameCache()
        self.events = events if events is not None else EventLog()
        self.resolve = resolve
        self._clock = clock
        self._started = clock()
        self.previous: Optional[List[CounterRecord]] = None
        self.counters: List[CounterRecord] = []
        self.connections: List[TcpConnection] = []
        self.ticks = 0
        self.uptime_path = Path(uptime_path)
        self.read_failures: Dict[str, int] = defaultdict(int)

    def elapsed(self) -> float:
        return self._clock() - self._started

    def tick(self) -> Dict[str, Tuple[RatePoint, RatePoint]]:
        now = self.elapsed()
        counters, counter_error = read_counter_table(self.counters_path)
        self._note_source("counters", self.counters_path, counter_error)
        connections, tcp_error = read_tcp_table(self.tcp_path)
        self._note_source("tcp", self.tcp_path, tcp_error)

        updates = self.rates.observe(self.previous, counters, now)
        self.previous = counters
        self.counters = counters
        self.connections = connections
        self.ticks += 1

        if self.resolve:
            for conn in connections:
                self.cache.ensure_resolving(conn.remote_ip)
        return updates

    def _note_source(self, category: str, path: Path, error: Optional[OSError]) -> None:
        if error is not None:
            self.read_failures[category] += 1
            failures = self.read_failures[category]
            log.warning("cannot read %s (%d consecutive failures): %s", path, failures, error)
            self.events.add(
                EngineEvent(
                    timestamp=time.time(),
                    category=category,
                    severity="warning",
                    summary=f"Source unavailable: {path}",
                    details={"error": str(error), "path": str(path), "failed_reads": failures},
                )
            )
            return
        failures = self.read_failures.pop(category, 0)
        if failures:
            log.info("%s readable again after %d failed reads", path, failures)
            self.events.add(
                EngineEvent(
                    timestamp=time.time(),
                    category=category,
                    severity="info",
                    summary=f"Source readable again: {path}",
                    details={"path": str(path), "failed_reads": failures},
                )
            )

    def uptime(self) -> Optional[float]:
        return read_uptime(self.uptime_path)

    def interface_names(self) -> List[str]:
        return [record.name for record in self.counters]

    def refresh_stats(self) -> None:
        self.rates.refresh_stats(self.interface_names())

    def filtered_connections(self, query: str) -> List[TcpConnection]:
        return [conn for conn in self.connections if matches_filter(conn, query, self.cache)]

    def totals(self) -> CounterTotals:
        return compute_totals(self.counters)

    def summary(self) -> ConnectionSummary:
        return summarize_connections(self.connections)

    def shutdown(self) -> None:
        self.cache.shutdown()


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_rate(rate: float) -> str:
    units = ["B/s", "KB/s", "MB/s", "GB/s", "TB/s"]
    value = rate
    idx = 0
    while value >= 1024 and idx < len(units) - 1:
        value /= 1024.0
        idx += 1
    return f"{value:5.1f} {units[idx]}"


def format_bytes(value: int, decimal: bool = False) -> str:
    if decimal:
        step = 1000.0
        units = ["B", "KB", "MB", "GB", "TB"]
    else:
        step = 1024.0
        units = ["B", "KiB", "MiB", "GiB", "TiB"]
    if value < step:
        return f"{int(value)} B"
    scaled = float(value)
    idx = 0
    while scaled >= step and idx < len(units) - 1:
        scaled /= step
        idx += 1
    return f"{scaled:.2f} {units[idx]}"


def format_speed_mbps(mbps: float) -> str:
    if mbps >= 1000.0:
        return f"{mbps / 1000.0:.2f} GB/s"
    if mbps >= 1.0:
        return f"{mbps:.2f} MB/s"
    return f"{mbps * 1000.0:.2f} KB/s"


def format_uptime(seconds: Optional[float]) -> str:
    if seconds is None:
        return "?"
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}"


def sparkline(history: Sequence[float], width: int) -> str:
    """Right-aligned glyph graph of the last ``width`` values, scaled to their peak."""

    window = list(history)[-width:] if width > 0 else []
    peak = max(window, default=0.0)
    if peak <= 0:
        return " " * max(width, 0) if window else ""
    top = len(GRAPH_CHARS) - 1
    glyphs = "".join(GRAPH_CHARS[min(top, max(0, round(value / peak * top)))] for value in window)
    return glyphs.rjust(width)


def load_bar(fraction: float, width: int) -> str:
    if width <= 0:
        return ""
    filled = int(round(max(0.0, min(1.0, fraction)) * width))
    return BAR_CHARS[0] * filled + BAR_CHARS[1] * (width - filled)


def truncate(text: str, width: int) -> str:
    if width <= 0:
        return ""
    if len(text) > width:
        return text[: width - 3] + "..." if width > 3 else text[:width]
    return text


def scroll_window(selected: int, offset: int, visible_rows: int, total: int) -> int:
    """First row to draw so that ``selected`` stays inside ``visible_rows``."""

    if visible_rows <= 0:
        return 0
    offset = min(offset, selected)
    offset = max(offset, selected - visible_rows + 1)
    return max(0, min(offset, total - visible_rows))


def draw_text(window: "curses._CursesWindow", y: int, x: int, text: str, attr: int = curses.A_NORMAL) -> None:
    height, width = window.getmaxyx()
    if not 0 <= y < height:
        return
    start = max(x, 0)
    room = width - start
    visible = text[start - x :][: max(room, 0)]
    if not visible:
        return
    try:
        window.addstr(y, start, visible, attr)
    except curses.error:
        # addstr into the bottom-right cell draws the text, then raises
        pass


def render_report(engine: TelemetryEngine, limits: SpeedLimits, decimal: bool = False) -> str:
    lines: List[str] = ["# rx-tx snapshot", "", f"- uptime {format_uptime(engine.uptime())}", "", "## Interfaces"]
    if not engine.counters:
        lines.append("- none")
    for record in engine.counters:
        parts = []
        for direction in DIRECTIONS:
            rate = engine.rates.current_rate(record.name, direction)
            stats = engine.rates.stats(record.name, direction)
            load = limits.load(record.name, direction, rate)
            total = record.direction(direction).bytes
            parts.append(
                f"{direction} {format_rate(rate).strip()} ({load * 100:.0f}%) "
                f"peak {format_rate(stats.peak).strip()} avg {format_rate(stats.average).strip()} "
                f"total {format_bytes(total, decimal)}"
            )
        lines.append(f"- {record.name}: " + " | ".join(parts))

    totals = engine.totals()
    lines.append("\n## Totals")
    lines.append(
        f"- bytes {format_bytes(totals.total_bytes, decimal)} "
        f"(rx/tx {totals.rx_tx_bytes_ratio:.2f}), packets {totals.total_packets}, "
        f"errors {totals.error_rate_pct:.2f}%, drops {totals.drop_rate_pct:.2f}%"
    )

    summary = engine.summary()
    lines.append("\n## TCP connections")
    lines.append(
        f"- total {summary.total}, active {summary.active}, unique remote {summary.unique_remote}, "
        f"local/ext {summary.local}/{summary.external}"
    )
    for state, count in summary.states.items():
        lines.append(f"- {state}: {count}")
    for conn in engine.connections:
        host = engine.cache.display_name(conn.remote_ip)
        lines.append(f"  {conn.local_label:<21} {conn.remote_label:<21} {conn.state_name:<11} {host}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


class Dashboard:
    def __init__(self, engine: TelemetryEngine, limits: SpeedLimits, interval: float = DEFAULT_INTERVAL) -> None:
        self.engine = engine
        self.limits = limits
        self.interval = max(interval, REFRESH_MIN_INTERVAL)
        self.last_refresh = 0.0
        self.last_stats_refresh = 0.0
        self.filter_text = ""
        self.filter_input: Optional[str] = None
        self.selected_index = 0
        self.scroll_offset = 0
        self.decimal_units = False
        self.status_message = ""
        self.status_timestamp = 0.0

    def run(self) -> None:
        try:
            curses.wrapper(self._main)
        finally:
            self.engine.shutdown()

    def update_data(self) -> None:
        self.engine.tick()
        visible = self.visible_connections()
        if self.selected_index >= len(visible):
            self.selected_index = max(0, len(visible) - 1)

    def maybe_refresh_stats(self, now: float) -> None:
        if now - self.last_stats_refresh >= STATS_REFRESH_INTERVAL:
            self.engine.refresh_stats()
            self.last_stats_refresh = now

    def visible_connections(self) -> List[TcpConnection]:
        return self.engine.filtered_connections(self.filter_text)

    def move_selection(self, delta: int) -> None:
        count = len(self.visible_connections())
        if not count:
            self.selected_index = 0
            return
        self.selected_index = max(0, min(count - 1, self.selected_index + delta))

    def set_status(self, message: str) -> None:
        self.status_message = message
        self.status_timestamp = time.time()

    def adjust_interval(self, factor: float) -> None:
        self.interval = max(REFRESH_MIN_INTERVAL, round(self.interval * factor, 2))
        self.set_status(f"Sampling every {self.interval:.2f}s")

    def handle_filter_key(self, key: int) -> None:
        if self.filter_input is None:
            return
        if key in (10, 13, curses.KEY_ENTER):
            self.filter_text = self.filter_input
            self.filter_input = None
            self.selected_index = 0
            self.set_status(f"Filter: {self.filter_text}" if self.filter_text else "Filter cleared")
        elif key == 27:
            self.filter_input = None
            self.filter_text = ""
            self.set_status("Filter cleared")
        elif key in (curses.KEY_BACKSPACE, 127, 8):
            self.filter_input = self.filter_input[:-1]
        elif 32 <= key < 127:
            self.filter_input += chr(key)

    def _main(self, stdscr: "curses._CursesWindow") -> None:
        curses.curs_set(0)
        stdscr.nodelay(True)
        stdscr.timeout(200)
        if curses.has_colors():
            curses.start_color()
            curses.use_default_colors()
            curses.init_pair(1, curses.COLOR_CYAN, -1)
            curses.init_pair(2, curses.COLOR_YELLOW, -1)
            curses.init_pair(3, curses.COLOR_BLACK, curses.COLOR_CYAN)
            curses.init_pair(4, curses.COLOR_GREEN, -1)
            curses.init_pair(5, curses.COLOR_BLUE, -1)
        while True:
            now = time.time()
            if now - self.last_refresh >= self.interval:
                self.update_data()
                self.last_refresh = now
            self.maybe_refresh_stats(now)
            self.render(stdscr)
            try:
                key = stdscr.getch()
            except KeyboardInterrupt:
                break
            if key == -1:
                continue
            if self.filter_input is not None:
                self.handle_filter_key(key)
                continue
            if key in (ord("q"), ord("Q")):
                break
            if key in (curses.KEY_UP, ord("k")):
                self.move_selection(-1)
            elif key in (curses.KEY_DOWN, ord("j")):
                self.move_selection(1)
            elif key in (curses.KEY_NPAGE,):
                self.move_selection(10)
            elif key in (curses.KEY_PPAGE,):
                self.move_selection(-10)
            elif key in (ord("g"),):
                self.selected_index = 0
            elif key in (ord("G"),):
                self.selected_index = max(0, len(self.visible_connections()) - 1)
            elif key == ord("/"):
                self.filter_input = self.filter_text
            elif key == ord(" "):
                self.last_refresh = 0.0
            elif key == ord("+"):
                self.adjust_interval(1.5)
            elif key == ord("-"):
                self.adjust_interval(1 / 1.5)
            elif key in (ord("u"), ord("U")):
                self.decimal_units = not self.decimal_units
                self.set_status("Decimal units" if self.decimal_units else "Binary units")

    def render(self, stdscr: "curses._CursesWindow") -> None:
        stdscr.erase()
        height, width = stdscr.getmaxyx()
        header_color = curses.color_pair(1) | curses.A_BOLD if curses.has_colors() else curses.A_BOLD
        instr_color = curses.color_pair(2) if curses.has_colors() else curses.A_BOLD
        visible = self.visible_connections()
        header = f" rx-tx - {len(self.engine.counters)} interfaces - {len(visible)}/{len(self.engine.connections)} connections - up {format_uptime(self.engine.uptime())} - {time.strftime('%H:%M:%S')} "
        draw_text(stdscr, 0, 0, header[:width].ljust(width), header_color)
        instruction = " arrows move  / filter  space sample  +/- interval  u units  q quit "
        draw_text(stdscr, 1, 0, instruction[:width].ljust(width), instr_color)

        status_line = height - 1
        event_lines = 2
        iface_lines = min(len(self.engine.counters) * 2 + 1, max(3, (height - 4) // 2))
        iface_start = 2
        table_start = iface_start + iface_lines
        table_height = max(0, status_line - event_lines - table_start)

        self._render_interfaces(stdscr, iface_start, iface_lines, width)
        if table_height > 1:
            self._render_table(stdscr, table_start, table_height, width, visible)
        else:
            draw_text(stdscr, table_start, 0, "Window too small for table", curses.A_DIM)
        self._render_events(stdscr, status_line - event_lines, event_lines, width)
        self._render_status(stdscr, status_line, width)
        stdscr.refresh()

    def _render_interfaces(self, stdscr: "curses._CursesWindow", start_y: int, height: int, width: int) -> None:
        rates = self.engine.rates
        label_attr = curses.color_pair(4) | curses.A_BOLD if curses.has_colors() else curses.A_BOLD
        if not self.engine.counters:
            draw_text(stdscr, start_y, 0, "No interface data", curses.A_DIM)
            return
        draw_text(stdscr, start_y, 0, f"{'Interface':<12} {'Dir':<3} {'Rate':>11} {'Load':<12} {'Peak':>11} {'Avg':>11}  Total / History"[:width], label_attr)
        row = start_y + 1
        for record in self.engine.counters:
            for direction in DIRECTIONS:
                if row >= start_y + height:
                    return
                rate = rates.current_rate(record.name, direction)
                stats = rates.stats(record.name, direction)
                load = self.limits.load(record.name, direction, rate)
                total = format_bytes(record.direction(direction).bytes, self.decimal_units)
                graph_width = max(0, width - 90)
                graph = sparkline([point.rate for point in rates.history(record.name, direction)], graph_width)
                name = truncate(record.name, 12) if direction == RX else ""
                line = (
                    f"{name:<12} {direction:<3} {format_rate(rate):>11} {load_bar(load, 10):<10}{load * 100:>3.0f}% "
                    f"{format_rate(stats.peak):>11} {format_rate(stats.average):>11}  {total:<12} {graph}"
                )
                color = curses.color_pair(4 if direction == RX else 5) if curses.has_colors() else curses.A_NORMAL
                draw_text(stdscr, row, 0, line[:width], color)
                row += 1

    def _render_table(self, stdscr: "curses._CursesWindow", start_y: int, height: int, width: int, rows_source: List[TcpConnection]) -> None:
        addr_w = 21
        state_w = 11
        header = f"{'Local Address':<{addr_w}} {'Remote Address':<{addr_w}} {'State':<{state_w}} {'Tx-Q':>6} {'Rx-Q':>6} {'UID':>6} {'Inode':>9}  Hostname"
        header_attr = curses.color_pair(2) | curses.A_BOLD if curses.has_colors() else curses.A_BOLD
        draw_text(stdscr, start_y, 0, header[:width], header_attr)

        visible_rows = max(height - 1, 0)
        self.scroll_offset = scroll_window(self.selected_index, self.scroll_offset, visible_rows, len(rows_source))
        rows = rows_source[self.scroll_offset : self.scroll_offset + visible_rows]
        for idx, conn in enumerate(rows):
            row_index = self.scroll_offset + idx
            selected = row_index == self.selected_index
            highlight = curses.color_pair(3) | curses.A_BOLD if (curses.has_colors() and selected) else (curses.A_REVERSE if selected else curses.A_NORMAL)
            host = self.engine.cache.display_name(conn.remote_ip)
            line = (
                f"{conn.local_label:<{addr_w}} {conn.remote_label:<{addr_w}} {conn.state_name:<{state_w}} "
                f"{conn.tx_queue:>6} {conn.rx_queue:>6} {conn.uid:>6} {conn.inode:>9}  {host}"
            )
            draw_text(stdscr, start_y + 1 + idx, 0, line[:width], highlight)

    def _render_events(self, stdscr: "curses._CursesWindow", start_y: int, lines: int, width: int) -> None:
        recent = self.engine.events.recent(lines)
        if not recent:
            draw_text(stdscr, start_y, 0, "No events".ljust(width), curses.A_DIM)
            return
        for idx, event in enumerate(recent):
            text = f"[{event.severity.upper()}] {event.category}: {event.summary}"
            if event.details.get("failed_reads", 0) > 1:
                text += f" ({event.details['failed_reads']} failed reads)"
            attr = curses.A_BOLD if event.is_problem else curses.A_NORMAL
            draw_text(stdscr, start_y + idx, 0, truncate(text, width).ljust(width), attr)

    def _render_status(self, stdscr: "curses._CursesWindow", y: int, width: int) -> None:
        if self.filter_input is not None:
            text = f" Filter: {self.filter_input}_  (Enter apply, Esc clear)"
        elif self.status_message and time.time() - self.status_timestamp < 5.0:
            text = f" {self.status_message}"
        else:
            summary = self.engine.summary()
            text = (
                f" {summary.total} tcp  {summary.active} active  {summary.unique_remote} remote hosts  "
                f"{len(self.engine.cache)} names cached  every {self.interval:.2f}s"
            )
            if self.filter_text:
                text += f"  filter '{self.filter_text}'"
        attr = curses.color_pair(4) if curses.has_colors() else curses.A_BOLD
        draw_text(stdscr, y, 0, truncate(text, width).ljust(width), attr)


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------


def _limit_arg(text: str) -> Tuple[str, SpeedLimit]:
    try:
        return parse_speed_limit(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Live interface throughput and TCP connection monitor")
    parser.add_argument("--interval", type=float, default=DEFAULT_INTERVAL, help=f"Sampling interval in seconds (default: {DEFAULT_INTERVAL})")
    parser.add_argument("--counters", type=Path, default=PROC_NET_DEV, help="Interface counter table (default: /proc/net/dev)")
    parser.add_argument("--tcp", type=Path, default=PROC_NET_TCP, help="TCP connection table (default: /proc/net/tcp)")
    parser.add_argument(
        "--limit",
        type=_limit_arg,
        action="append",
        default=[],
        metavar="IFACE=RX[:TX]",
        help="Link capacity in Mbps used for load bars (repeatable)",
    )
    parser.add_argument("--resolver-workers", type=int, default=RESOLVER_WORKERS, help="Concurrent reverse DNS lookups")
    parser.add_argument("--no-resolve", action="store_true", help="Do not resolve remote addresses")
    parser.add_argument("--event-log", type=Path, default=None, help="Append events as JSON lines to this file")
    parser.add_argument("--log-file", type=Path, default=None, help="Write diagnostics to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug level diagnostics")
    parser.add_argument("--once", action="store_true", help="Print a text report from two samples and exit")
    return parser.parse_args(argv)


def configure_logging(log_file: Optional[Path], verbose: bool) -> None:
    # curses owns the terminal, so diagnostics only ever go to a file.
    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()
    log.propagate = False
    log.setLevel(logging.DEBUG if verbose else logging.INFO)
    if log_file is None:
        log.addHandler(logging.NullHandler())
        return
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    log.addHandler(handler)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_file, args.verbose)
    limits = SpeedLimits.discover(dict(args.limit))
    engine = TelemetryEngine(
        args.counters,
        args.tcp,
        cache=HostnameCache(max_workers=max(1, args.resolver_workers)),
        events=EventLog(path=args.event_log),
        resolve=not args.no_resolve,
    )
    if args.once:
        try:
            engine.tick()
            time.sleep(max(args.interval, REFRESH_MIN_INTERVAL))
            engine.tick()
            engine.refresh_stats()
            print(render_report(engine, limits))
        finally:
            engine.shutdown()
        for event in engine.events.recent(EVENT_LOG_LIMIT):
            if event.is_problem:
                print(f"{event.category}: {event.summary} ({event.details.get('error', '')})", file=sys.stderr)
        return 0
    Dashboard(engine, limits, interval=args.interval).run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
