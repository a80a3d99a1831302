from __future__ import annotations

from typing import Callable, List, Sequence, Tuple

COUNTER_HEADER = (
    "Inter-|   Receive                                                |  Transmit\n"
    " face |bytes    packets errs drop fifo frame compressed multicast|bytes    packets errs drop fifo colls carrier compressed\n"
)

TCP_HEADER = (
    "  sl  local_address rem_address   st tx_queue rx_queue tr tm->when retrnsmt   uid  timeout inode\n"
)


def build_counter_line(name: str, receive: Sequence[int], transmit: Sequence[int] = (0,) * 8) -> str:
    values = list(receive) + list(transmit)
    assert len(values) == 16
    return f"{name:>6}: " + " ".join(str(value) for value in values)


def build_counter_table(*lines: str) -> str:
    return COUNTER_HEADER + "\n".join(lines) + "\n"


def encode_endpoint(addr: Tuple[int, int, int, int], port: int) -> str:
    # Kernel prints the address as a little-endian host word.
    return "".join(f"{octet:02X}" for octet in reversed(addr)) + f":{port:04X}"


def build_tcp_line(
    slot: int = 0,
    local: Tuple[Tuple[int, int, int, int], int] = ((127, 0, 0, 1), 8080),
    remote: Tuple[Tuple[int, int, int, int], int] = ((0, 0, 0, 0), 0),
    state: int = 0x0A,
    tx_queue: int = 0,
    rx_queue: int = 0,
    timer_active: int = 0,
    timer_when: int = 0,
    retransmit: int = 0,
    uid: int = 1000,
    timeout: int = 0,
    inode: int = 12345,
) -> str:
    fields = [
        f"{slot}:",
        encode_endpoint(*local),
        encode_endpoint(*remote),
        f"{state:02X}",
        f"{tx_queue:08X}:{rx_queue:08X}",
        f"{timer_active:02X}:{timer_when:08X}",
        f"{retransmit:08X}",
        str(uid),
        str(timeout),
        str(inode),
        "1",
        "0000000000000000",
        "100",
        "0",
        "0",
        "10",
        "0",
    ]
    return "   " + " ".join(fields)


def build_tcp_table(*lines: str) -> str:
    return TCP_HEADER + "\n".join(lines) + "\n"


class ManualExecutor:
    """Executor stand-in that runs submitted work only when told to."""

    def __init__(self) -> None:
        self.submitted: List[Tuple[Callable, tuple]] = []
        self.closed = False

    def submit(self, fn: Callable, *args: object) -> None:
        if self.closed:
            raise RuntimeError("cannot schedule new futures after shutdown")
        self.submitted.append((fn, args))

    def run_all(self) -> None:
        pending, self.submitted = self.submitted, []
        for fn, args in pending:
            fn(*args)

    def shutdown(self, wait: bool = True) -> None:
        self.closed = True
