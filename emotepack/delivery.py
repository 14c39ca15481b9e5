import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol

from .core import PackPipeline, PackResult


logger = logging.getLogger(__name__)

GENERATING_MESSAGE = "Generating..."
DONE_MESSAGE = "All done! 🎉"
FAILURE_MESSAGE = "Unable to generate emoji. ☹️"


class Transport(Protocol):
    """Outbound side of the chat session the request arrived on."""

    def send_message(self, channel_id: str, text: str) -> None:
        ...

    def send_file(self, channel_id: str, text: str, filename: str, data: bytes) -> None:
        ...


@dataclass(frozen=True)
class PackRequest:
    guild_id: str
    channel_id: str
    author_id: Optional[str] = None


def failure_message(error_id: Optional[str] = None) -> str:
    if error_id is None:
        return FAILURE_MESSAGE
    return f"{FAILURE_MESSAGE}\nerror_id: {error_id}"


def handle_pack_request(
    request: PackRequest,
    transport: Transport,
    pipeline: PackPipeline,
    new_error_id: Callable[[], str] = lambda: uuid.uuid4().hex,
) -> Optional[PackResult]:
    """
    Serve one pack request end to end.

    Acknowledges with "Generating...", builds the pack and sends the zip.
    Any failure is logged under a fresh error id and reported back as a
    single failure message; nothing partial is ever delivered.
    """
    try:
        transport.send_message(request.channel_id, GENERATING_MESSAGE)
        result = pipeline.run(request.guild_id)
        transport.send_file(request.channel_id, DONE_MESSAGE, result.filename, result.data)
        return result
    except Exception:
        error_id = new_error_id()
        logger.exception(
            "Pack request failed (error_id=%s guild=%s channel=%s user=%s)",
            error_id,
            request.guild_id,
            request.channel_id,
            request.author_id,
        )
        _report_failure(transport, request.channel_id, error_id)
        return None


def _report_failure(transport: Transport, channel_id: str, error_id: str) -> None:
    try:
        transport.send_message(channel_id, failure_message(error_id))
    except Exception:
        logger.exception("Unable to send failure notice for error_id=%s", error_id)


class DirectoryTransport:
    """
    Transport that writes delivered files into a local folder and logs
    messages instead of posting them.
    """

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir
        self.delivered: Optional[Path] = None

    def send_message(self, channel_id: str, text: str) -> None:
        logger.info("[%s] %s", channel_id, text)

    def send_file(self, channel_id: str, text: str, filename: str, data: bytes) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        target = self.output_dir / filename
        target.write_bytes(data)
        self.delivered = target
        logger.info("[%s] %s (%s, %d bytes)", channel_id, text, target, len(data))
