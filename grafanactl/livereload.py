"""Live-reload notifications for browsers connected over a websocket."""

from __future__ import annotations

import threading
from collections import deque
from typing import Any, Iterator, Union

from grafanactl.resources import Resource

HELLO_COMMAND = '"command":"hello"'
HELLO_REPLY = """{
				"command": "hello",
				"protocols": ["http://livereload.com/protocols/official-7"],
				"serverName": "grafanactl"
			}"""


class Connection:
    """The outbound side of one live-reload client, with a bounded queue."""

    def __init__(self, maxsize: int = 256) -> None:
        self._maxsize = maxsize
        self._queue: deque[str] = deque()
        self._closed = False
        self._cond = threading.Condition()

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, message: str) -> bool:
        """Queue a message without blocking; False when full or closed."""
        with self._cond:
            if self._closed or len(self._queue) >= self._maxsize:
                return False
            self._queue.append(message)
            self._cond.notify_all()
            return True

    def handle_message(self, message: Union[str, bytes]) -> bool:
        """React to a message from the client; True when a reply was queued."""
        text = message.decode(errors="replace") if isinstance(message, bytes) else message
        if HELLO_COMMAND in text:
            return self.offer(HELLO_REPLY)
        return False

    def close(self) -> None:
        """Stop accepting messages; queued ones can still be drained."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def messages(self) -> Iterator[str]:
        """Yield queued messages until the connection is closed and drained."""
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._queue or self._closed)
                if not self._queue:
                    return
                message = self._queue.popleft()
            yield message


class Hub:
    """Keeps track of connections and broadcasts messages to them."""

    def __init__(self) -> None:
        self._connections: set[Connection] = set()
        self._lock = threading.Lock()

    @property
    def connections(self) -> frozenset[Connection]:
        with self._lock:
            return frozenset(self._connections)

    def register(self, connection: Connection) -> None:
        with self._lock:
            self._connections.add(connection)

    def unregister(self, connection: Connection) -> None:
        with self._lock:
            self._connections.discard(connection)
        connection.close()

    def broadcast(self, message: str) -> None:
        """Send to every connection; a connection that cannot take it is dropped."""
        with self._lock:
            connections = list(self._connections)
        for connection in connections:
            if not connection.offer(message):
                with self._lock:
                    self._connections.discard(connection)
                connection.close()

    def reload_resource(self, resource: Resource) -> None:
        self.broadcast(reload_message(resource))


def reload_message(resource: Any) -> str:
    """The reload command telling clients to refresh the resource's page."""
    return (
        '{"command": "reload", "path": '
        f'"/grafanactl/{resource.api_version()}/{resource.kind()}/{resource.name()}"}}'
    )