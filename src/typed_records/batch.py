"""Command batch: an ordered list of store commands and their reply handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterator

import redis

from typed_records.errors import RemoteProtocolError
from typed_records.logger import get_logger

logger = get_logger(__name__)

# A handler receives the reply at its command's position and raises to abort.
Handler = Callable[[Any], None]


@dataclass(frozen=True)
class Command:
    """One store command, consumed exactly once by a flush."""

    name: str
    args: tuple[Any, ...] = ()
    handler: Handler | None = None

    def __str__(self) -> str:
        return " ".join([self.name, *(str(a) for a in self.args)])


class CommandBatch:
    """Commands waiting for the next round trip.

    Each command carries its own handler slot, so commands and handlers can
    never drift out of step.
    """

    def __init__(self) -> None:
        self._commands: list[Command] = []

    def enqueue(self, name: str, args: list[Any] | tuple[Any, ...], handler: Handler | None = None) -> Command:
        """Append a command to the batch."""
        command = Command(name=name, args=tuple(args), handler=handler)
        self._commands.append(command)
        return command

    def clear(self) -> int:
        """Drop every queued command; returns how many were dropped."""
        dropped = len(self._commands)
        self._commands = []
        return dropped

    def flush(self, conn: redis.Redis) -> int:
        """Send the queued commands in one MULTI/EXEC round trip and dispatch replies.

        The batch is emptied before handlers run: anything a handler enqueues
        belongs to the next round. The first handler error stops dispatch for
        this round and propagates.

        Returns:
            The number of commands sent.

        Raises:
            RemoteProtocolError: If the store or the transport fails.
        """
        commands, self._commands = self._commands, []
        if not commands:
            return 0

        logger.debug(f"Sending {len(commands)} command(s): {', '.join(c.name for c in commands)}")
        try:
            with conn.pipeline(transaction=True) as pipe:
                for command in commands:
                    pipe.execute_command(command.name, *command.args)
                replies = pipe.execute()
        except redis.RedisError as e:
            logger.error(f"Round trip of {len(commands)} command(s) failed: {e}")
            raise RemoteProtocolError(str(e)) from e

        if len(replies) != len(commands):
            raise RemoteProtocolError(
                f"expected {len(commands)} replies, got {len(replies)}"
            )

        for command, reply in zip(commands, replies):
            if command.handler is not None:
                command.handler(reply)
        return len(commands)

    def __len__(self) -> int:
        return len(self._commands)

    def __bool__(self) -> bool:
        return bool(self._commands)

    def __iter__(self) -> Iterator[Command]:
        return iter(list(self._commands))
