"""Bedrock response-stream decoding.

InvokeModelWithResponseStream answers with the AWS binary event-stream
format (``application/vnd.amazon.eventstream``). Each event carries a
JSON body of the form ``{"bytes": "<base64>"}`` whose decoded bytes are
the provider's own JSON chunk.
"""

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any

from botocore.eventstream import EventStreamBuffer, ParserError

from bedrock_llm.errors import StreamDecodeError


@dataclass(frozen=True)
class StreamEvent:
    """One decoded frame. botocore already unpacks header values to plain str."""

    headers: dict[str, Any] = field(default_factory=dict)
    body: bytes = b""


class EventStreamDecoder:
    """Turns raw response byte chunks into StreamEvents, in arrival order.

    One decoder per response; not reusable.
    """

    def __init__(self):
        self._buffer = EventStreamBuffer()
        self._pending = 0  # bytes fed but not yet emitted as an event

    def feed(self, chunk: bytes) -> list[StreamEvent]:
        """Add a raw chunk and return every event it completes."""
        self._buffer.add_data(chunk)
        self._pending += len(chunk)

        events = []
        try:
            for message in self._buffer:
                self._pending -= message.prelude.total_length
                events.append(StreamEvent(headers=dict(message.headers), body=message.payload))
        except ParserError as e:
            raise StreamDecodeError(
                f"Failed to parse event stream frame: {e}", raw=chunk
            ) from e
        return events

    def close(self) -> None:
        """Fail if the stream ended in the middle of a frame."""
        if self._pending:
            raise StreamDecodeError(
                f"Event stream ended with {self._pending} bytes of an incomplete frame"
            )


def validate_event(event: StreamEvent, raw: bytes | None = None) -> None:
    """Require a JSON ``chunk`` event; anything else aborts the stream."""
    event_type = event.headers.get(":event-type")
    content_type = event.headers.get(":content-type")
    if event_type == "chunk" and content_type == "application/json":
        return

    if event.headers.get(":message-type") == "exception":
        raise StreamDecodeError(
            f"Bedrock stream exception {event.headers.get(':exception-type', 'unknown')}: "
            f"{event.body.decode('utf-8', errors='replace')}",
            raw=raw,
        )

    shown = raw if raw is not None else event.body
    raise StreamDecodeError(f"Failed to get event chunk: got {shown!r}", raw=raw)


def decode_event_payload(event: StreamEvent) -> dict:
    """UTF-8 -> JSON -> base64 ``bytes`` field -> UTF-8 -> JSON."""
    try:
        envelope = json.loads(event.body.decode("utf-8"))
        encoded = envelope["bytes"]
        payload = base64.b64decode(encoded, validate=True).decode("utf-8")
        return json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError, binascii.Error) as e:
        raise StreamDecodeError(f"Failed to decode event payload: {e}", raw=event.body) from e
    except (KeyError, TypeError) as e:
        raise StreamDecodeError(
            f"Event payload has no 'bytes' field: {event.body!r}", raw=event.body
        ) from e
