"""Mock Radiator Monitor server for local testing.

Replaces a real Radiator management port during development.
Speaks the binary Monitor protocol on port 9048 (login: mgmt / mgmt).
The test suite imports MockRadiator from this file.
"""

import asyncio
import math
import random
import time
from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Mock object definitions
# ---------------------------------------------------------------------------

HANDLERS = ["default", "eap-tls", "wlan"]
CLIENTS = ["ap-01", "ap-02", "vpn-gw"]
AUTHBYS = ["ldap", "sql"]

# Base request rates per minute
REQUEST_RATES = {
    "Access requests": 120.0,
    "Accounting requests": 45.0,
}

# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------


def _wave(base: float, amplitude: float, period_minutes: float = 60.0) -> float:
    """Return a realistic time-varying value using sine wave + noise."""
    t = time.time()
    wave = math.sin(2 * math.pi * t / (period_minutes * 60))
    noise = random.uniform(-amplitude * 0.2, amplitude * 0.2)
    return max(0.0, base + amplitude * wave + noise)


def _counter(rate_per_minute: float) -> int:
    """Monotonic counter derived from wall-clock time."""
    return int(time.time() / 60 * rate_per_minute)


# ---------------------------------------------------------------------------
# Statistics generation
# ---------------------------------------------------------------------------


def generate_global_stats() -> dict[str, int | float]:
    stats: dict[str, int | float] = {name: _counter(rate) for name, rate in REQUEST_RATES.items()}
    stats["Access accepts"] = int(stats["Access requests"] * 0.9)
    stats["Access rejects"] = stats["Access requests"] - stats["Access accepts"]
    stats["Accounting responses"] = stats["Accounting requests"]
    stats["Average response time"] = round(_wave(0.02, 0.01, period_minutes=10), 6)
    return stats


def generate_object_stats(identifier: str) -> dict[str, int | float]:
    scale = 1 + len(identifier) / 10
    return {
        "Access requests": _counter(30 * scale),
        "Access accepts": _counter(27 * scale),
        "Access rejects": _counter(3 * scale),
        "Accounting requests": _counter(10 * scale),
        "Average response time": round(_wave(0.02 * scale, 0.01, period_minutes=15), 6),
    }


def default_objects() -> dict[str, list[str]]:
    return {"Handler": list(HANDLERS), "Client": list(CLIENTS), "AuthBy": list(AUTHBYS)}


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


def encode_stats(command: str, stats: dict[str, int | float]) -> bytes:
    body = "\x01".join(f"{key}:{value}" for key, value in stats.items())
    return f"{command}\n{body}".encode("utf-8")


def encode_describe(command: str, identifier: str) -> bytes:
    body = "\x01".join(
        [f"Identifier:string:{identifier}", "ObjType:string:mock"]
    )
    return f"{command}\n{body}".encode("utf-8")


@dataclass
class MockRadiator:
    """In-memory Monitor endpoint.

    ``objects`` maps kind -> identifiers in index order. ``global_stats`` and
    ``object_stats`` may be fixed dicts or left to the generators.
    """

    username: str = "mgmt"
    password: str = "mgmt"
    objects: dict[str, list[str]] = field(default_factory=default_objects)
    global_stats: dict[str, int | float] | None = None
    object_stats: dict[str, dict[str, int | float]] | None = None
    log_messages: bool = True
    commands: list[str] = field(default_factory=list)
    _server: asyncio.AbstractServer | None = field(default=None, init=False, repr=False)
    _writers: set[asyncio.StreamWriter] = field(default_factory=set, init=False, repr=False)

    def _lookup(self, scope: str) -> str | None:
        kind, _, raw_index = scope.rpartition(".")
        identifiers = self.objects.get(kind, [])
        if not raw_index.isdigit() or int(raw_index) >= len(identifiers):
            return None
        return identifiers[int(raw_index)]

    def respond(self, command: str) -> bytes:
        verb, _, scope = command.partition(" ")
        if verb == "STATS" and scope == ".":
            stats = self.global_stats if self.global_stats is not None else generate_global_stats()
            return encode_stats(command, stats)
        if verb in ("STATS", "DESCRIBE"):
            identifier = self._lookup(scope)
            if identifier is None:
                return b"NOSUCHOBJECT"
            if verb == "DESCRIBE":
                return encode_describe(command, identifier)
            if self.object_stats is not None:
                return encode_stats(command, self.object_stats.get(identifier, {}))
            return encode_stats(command, generate_object_stats(identifier))
        return f"ERROR unknown command {verb}".encode("utf-8")

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._writers.add(writer)
        try:
            login = (await reader.readuntil(b"\0"))[:-1].decode("utf-8")
            expected = f"BINARY\r\nLOGIN {self.username} {self.password}"
            if login != expected:
                writer.write(b"BADLOGIN\0")
                await writer.drain()
                return
            writer.write(b"LOGGEDIN\0")
            await writer.drain()

            while True:
                command = (await reader.readuntil(b"\0"))[:-1].decode("utf-8")
                self.commands.append(command)
                if self.log_messages:
                    writer.write(f"LOG 4 mock: handling {command}\0".encode("utf-8"))
                writer.write(self.respond(command) + b"\0")
                await writer.drain()
        except (asyncio.IncompleteReadError, ConnectionError):
            pass
        finally:
            self._writers.discard(writer)
            writer.close()

    async def start(self, host: str = "127.0.0.1", port: int = 0) -> int:
        self._server = await asyncio.start_server(self._handle, host, port)
        return self._server.sockets[0].getsockname()[1]

    def drop_connections(self) -> None:
        """Simulate Radiator closing every management connection."""
        for writer in list(self._writers):
            writer.close()

    async def close(self) -> None:
        self.drop_connections()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

PORT = 9048
BIND = "0.0.0.0"


async def _serve() -> None:
    radiator = MockRadiator()
    await radiator.start(BIND, PORT)
    print(f"Mock Radiator Monitor listening on {BIND}:{PORT}", flush=True)
    print(f"  login     - {radiator.username} / {radiator.password}", flush=True)
    for kind, identifiers in radiator.objects.items():
        print(f"  {kind:<9} - {', '.join(identifiers)}", flush=True)
    await asyncio.Event().wait()


if __name__ == "__main__":
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        print("\nShutting down.", flush=True)
