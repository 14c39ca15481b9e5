"""Shared fixtures for the emotepack tests."""

import io
import threading
from pathlib import Path

from PIL import Image

from emotepack.guild import Emote, Guild


SCRIPT = (
    b"local packName = 'discord_server_id'\n"
    b"local pack = {\n"
    b"--Pack\n"
    b"}\n"
    b"local emoticons = {\n"
    b"--Emoticons\n"
    b"}\n"
)
MANIFEST = b"## Interface: 11302\n## Title: DiscordEmotes\ncore.lua\n"

ACME = Guild(id="42", name="Acme", emotes=(Emote(id="7", name="pog"),))


def png_bytes(width: int = 64, height: int = 64, color=(255, 0, 0, 255)) -> bytes:
    img = Image.new("RGBA", (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def write_template(parent: Path, script: bytes = SCRIPT, manifest: bytes = MANIFEST) -> Path:
    root = parent / "DiscordEmotes"
    (root / "media").mkdir(parents=True)
    (root / "manifest.toc").write_bytes(manifest)
    (root / "core.lua").write_bytes(script)
    (root / "media" / "readme.txt").write_bytes(b"static file\n")
    return root


class FakeFetcher:
    def __init__(self, default: bytes = b"", images=None, failures=None) -> None:
        self.default = default or png_bytes()
        self.images = images or {}
        self.failures = failures or {}
        self.calls = []
        self._lock = threading.Lock()

    def fetch(self, emote_id: str) -> bytes:
        with self._lock:
            self.calls.append(emote_id)
        if emote_id in self.failures:
            raise self.failures[emote_id]
        return self.images.get(emote_id, self.default)


class FakeLookup:
    def __init__(self, guild: Guild = ACME, error: Exception = None) -> None:
        self.guild = guild
        self.error = error

    def fetch_guild(self, guild_id: str) -> Guild:
        if self.error is not None:
            raise self.error
        return self.guild


class FakeTransport:
    def __init__(self, fail_messages: bool = False) -> None:
        self.messages = []
        self.files = []
        self.fail_messages = fail_messages

    def send_message(self, channel_id: str, text: str) -> None:
        if self.fail_messages:
            raise ConnectionError("transport down")
        self.messages.append((channel_id, text))

    def send_file(self, channel_id: str, text: str, filename: str, data: bytes) -> None:
        self.files.append((channel_id, text, filename, data))
