"""Incremental decoder for the AI gateway's event stream.

Chunks may split a line, a JSON payload or a multi-byte character anywhere.
Complete lines are pulled out of an accumulating buffer; a ``data:`` line whose
JSON does not parse yet is pushed back in front of the buffer and extraction
stops until more bytes arrive, so split payloads are never dropped.

One decoder serves both the chat proxy and the financial insights consumer.
"""

import codecs
import json

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

_SKIPPED = "skipped"
_EMITTED = "emitted"
_DONE = "done"
_INCOMPLETE = "incomplete"


def extract_delta_content(payload):
    try:
        content = payload["choices"][0]["delta"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    if isinstance(content, str) and content:
        return content
    return None


class EventStreamDecoder:
    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._closed = False
        self.done = False

    def feed(self, chunk):
        """Consume one chunk and return the deltas it completed, in order."""
        if self.done or self._closed:
            return []
        if isinstance(chunk, (bytes, bytearray)):
            chunk = self._decoder.decode(bytes(chunk))
        self._buffer += chunk

        deltas = []
        while not self.done:
            newline_index = self._buffer.find("\n")
            if newline_index == -1:
                break

            raw_line = self._buffer[:newline_index]
            self._buffer = self._buffer[newline_index + 1 :]

            if self._process_line(raw_line, deltas) == _INCOMPLETE:
                self._buffer = raw_line + "\n" + self._buffer
                break
        return deltas

    def close(self):
        """Flush the residual buffer once the source reports end of data."""
        if self._closed:
            return []
        self._closed = True
        if self.done:
            return []

        residual = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""

        deltas = []
        for raw_line in residual.split("\n"):
            if self.done:
                break
            # Nothing else will arrive to complete a partial payload.
            self._process_line(raw_line, deltas)
        return deltas

    def _process_line(self, raw_line, deltas):
        line = raw_line[:-1] if raw_line.endswith("\r") else raw_line
        if not line.strip() or line.startswith(":"):
            return _SKIPPED
        if not line.startswith(DATA_PREFIX):
            return _SKIPPED

        payload = line[len(DATA_PREFIX) :].strip()
        if payload == DONE_SENTINEL:
            self.done = True
            return _DONE

        try:
            parsed = json.loads(payload)
        except ValueError:
            return _INCOMPLETE

        content = extract_delta_content(parsed)
        if content is None:
            return _SKIPPED
        deltas.append(content)
        return _EMITTED


def iter_deltas(chunks):
    decoder = EventStreamDecoder()
    for chunk in chunks:
        yield from decoder.feed(chunk)
        if decoder.done:
            return
    yield from decoder.close()


def decode_stream(chunks, *, on_delta, on_done):
    """Callback form of ``iter_deltas``; ``on_done`` fires exactly once."""
    for delta in iter_deltas(chunks):
        on_delta(delta)
    on_done()


def encode_event(payload):
    return f"data: {json.dumps(payload)}\n\n".encode()


def encode_delta(content):
    return encode_event({"choices": [{"delta": {"content": content}}]})


def encode_done():
    return f"data: {DONE_SENTINEL}\n\n".encode()
