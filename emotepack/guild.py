import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Tuple

import requests

from .errors import GuildLookupFailed


logger = logging.getLogger(__name__)

DISCORD_API_ROOT = "https://discord.com/api/v10"


@dataclass(frozen=True)
class Emote:
    id: str
    name: str


@dataclass(frozen=True)
class Guild:
    id: str
    name: str
    emotes: Tuple[Emote, ...] = ()


class GuildLookup(Protocol):
    def fetch_guild(self, guild_id: str) -> Guild:
        ...


def guild_from_dict(data: dict) -> Guild:
    """
    Build a Guild from a Discord-shaped payload.

    Accepts either `emojis` (Discord API) or `emotes` for the emote list.
    Identifiers are normalised to strings.
    """
    raw_emotes = data.get("emojis")
    if raw_emotes is None:
        raw_emotes = data.get("emotes", [])

    return Guild(
        id=str(data["id"]),
        name=str(data["name"]),
        emotes=tuple(Emote(id=str(e["id"]), name=str(e["name"])) for e in raw_emotes),
    )


def load_guild(path: Path) -> Guild:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        return guild_from_dict(data)
    except (OSError, ValueError, KeyError, TypeError) as exc:
        raise GuildLookupFailed(f"unable to load guild from {path}") from exc


class JsonGuildLookup:
    """Serves a single guild snapshot from a JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def fetch_guild(self, guild_id: str) -> Guild:
        guild = load_guild(self.path)
        if guild_id and guild.id != str(guild_id):
            raise GuildLookupFailed(
                f"guild {guild_id} not found in {self.path} (file holds {guild.id})"
            )
        return guild


class DiscordGuildLookup:
    """
    Fetch guild metadata (name + custom emoji list) from the Discord REST API
    using a bot token.
    """

    def __init__(
        self,
        token: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        api_root: str = DISCORD_API_ROOT,
    ) -> None:
        if not token:
            raise ValueError("A bot token is required for Discord guild lookups.")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()
        self.api_root = api_root.rstrip("/")

    def fetch_guild(self, guild_id: str) -> Guild:
        url = f"{self.api_root}/guilds/{guild_id}"
        headers = {"Authorization": f"Bot {self.token}"}
        logger.debug("Looking up guild %s", guild_id)

        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise GuildLookupFailed("unable to retrieve guild info") from exc

        if response.status_code != 200:
            raise GuildLookupFailed(
                f"unable to retrieve guild info: status {response.status_code}: {response.text}"
            )

        try:
            return guild_from_dict(response.json())
        except (ValueError, KeyError, TypeError) as exc:
            raise GuildLookupFailed("guild payload is malformed") from exc
