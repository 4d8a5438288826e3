"""Radiator Monitor(관리 포트) 프로토콜 클라이언트

바이너리 모드에서 모든 메시지는 NUL 바이트로 끝난다.

    -> BINARY\\r\\nLOGIN <user> <password>\\0
    <- LOGGEDIN\\0 | BADLOGIN\\0
    -> STATS .\\0
    <- STATS .\\nkey1:value1\\x01key2:value2\\0
    -> DESCRIBE Handler.0\\0
    <- DESCRIBE Handler.0\\nkey1:type1:value1\\x01...\\0 | NOSUCHOBJECT\\0

"LOG " 로 시작하는 메시지는 서버가 비동기로 보내는 로그이므로 버린다.
"""

import asyncio
import logging

from radiator_exporter.errors import AuthError, ConnectError, ProtocolError
from radiator_exporter.models.metric import Number, parse_number

logger = logging.getLogger(__name__)

TERMINATOR = b"\0"
PAIR_SEPARATOR = "\x01"
NO_SUCH_OBJECT = b"NOSUCHOBJECT"
LOG_PREFIX = b"LOG "
READ_LIMIT = 1024 * 1024


class MonitorConnection:
    """인증이 끝난 Monitor 연결 하나"""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        timeout: float,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._timeout = timeout
        self._lock = asyncio.Lock()
        self._closed = False

    @classmethod
    async def open(
        cls,
        target: str,
        mgmt_port: int,
        username: str,
        password: str,
        timeout: float = 10.0,
    ) -> "MonitorConnection":
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(target, mgmt_port, limit=READ_LIMIT), timeout
            )
        except (OSError, asyncio.TimeoutError) as e:
            raise ConnectError(f"cannot connect to {target}:{mgmt_port}: {e!r}") from e

        connection = cls(reader, writer, timeout)
        try:
            await connection._login(username, password)
        except BaseException:
            await connection.close()
            raise
        logger.info("Logged in to Radiator management port %s:%d", target, mgmt_port)
        return connection

    @property
    def closed(self) -> bool:
        return self._closed

    async def _login(self, username: str, password: str) -> None:
        await self._send(f"BINARY\r\nLOGIN {username} {password}")
        response = await self._receive()
        if response == b"LOGGEDIN":
            return
        if response == b"BADLOGIN":
            raise AuthError("Radiator rejected the management credentials")
        raise ProtocolError(f"unexpected login response {response!r}")

    async def _send(self, command: str) -> None:
        data = command.encode("utf-8")
        if TERMINATOR in data:
            raise ValueError("command must not contain a NUL byte")
        try:
            self._writer.write(data + TERMINATOR)
            await asyncio.wait_for(self._writer.drain(), self._timeout)
        except (OSError, asyncio.TimeoutError) as e:
            await self.close()
            raise ConnectError(f"error writing to Radiator management socket: {e!r}") from e

    async def _receive(self) -> bytes:
        while True:
            try:
                message = await asyncio.wait_for(
                    self._reader.readuntil(TERMINATOR), self._timeout
                )
            except asyncio.IncompleteReadError as e:
                await self.close()
                raise ConnectError(
                    "end-of-file encountered while reading from Radiator management socket"
                ) from e
            except (OSError, asyncio.LimitOverrunError, asyncio.TimeoutError) as e:
                await self.close()
                raise ConnectError(
                    f"error reading from Radiator management socket: {e!r}"
                ) from e

            message = message[:-1]
            if message.startswith(LOG_PREFIX):
                logger.debug("Skipping Radiator log message %r", message)
                continue
            return message

    async def communicate(self, command: str) -> bytes:
        """명령 하나를 보내고 LOG 가 아닌 다음 응답을 돌려준다"""
        if self._closed:
            raise ConnectError("Radiator management connection is closed")
        async with self._lock:
            await self._send(command)
            return await self._receive()

    async def query_stats(self, scope: str = ".") -> dict[str, Number] | None:
        """STATS <scope> - 오브젝트가 없으면 None"""
        response = await self.communicate(f"STATS {scope}")
        if response == NO_SUCH_OBJECT:
            return None
        return decode_stats(response)

    async def describe(self, scope: str) -> tuple[bool, str | None]:
        """DESCRIBE <scope> -> (오브젝트 존재 여부, 식별자)"""
        response = await self.communicate(f"DESCRIBE {scope}")
        if response == NO_SUCH_OBJECT:
            return False, None
        return True, extract_identifier(response)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError as e:
            logger.debug("Error while closing Radiator management socket: %r", e)


def _unecho(response: bytes) -> str:
    # 첫 줄은 서버가 되돌려준 명령
    _, newline, body = response.partition(b"\n")
    if not newline:
        raise ProtocolError(
            f"Radiator response {response!r} does not contain a newline "
            "(splitting echoed command and actual response)"
        )
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ProtocolError(f"Radiator response {response!r} is not valid UTF-8: {e}") from e


def decode_stats(response: bytes) -> dict[str, Number]:
    """STATS 응답을 {통계 이름: 값} 으로 변환"""
    statistics: dict[str, Number] = {}
    for pair in _unecho(response).split(PAIR_SEPARATOR):
        if not pair:
            continue
        key, colon, raw_value = pair.partition(":")
        if not colon:
            logger.warning("Statistics key-value pair %r does not contain colon; skipping", pair)
            continue
        try:
            value = parse_number(raw_value)
        except ValueError:
            logger.warning(
                "Failed to parse value %r for statistic %r as an integer or "
                "floating-point value; skipping",
                raw_value,
                key,
            )
            continue
        if key in statistics:
            logger.warning(
                "Duplicate statistic %r; overwriting old value %s with %s",
                key,
                statistics[key],
                value,
            )
        statistics[key] = value
    return statistics


def extract_identifier(response: bytes) -> str | None:
    """DESCRIBE 응답에서 Identifier:string:<값> 을 찾는다"""
    for entry in _unecho(response).split(PAIR_SEPARATOR):
        if not entry:
            continue
        parts = entry.split(":", 2)
        if len(parts) < 3:
            logger.warning("Describe key-type-value tuple %r is incomplete; skipping", entry)
            continue
        key, value_type, value = parts
        if key == "Identifier" and value_type == "string":
            return value
    return None
