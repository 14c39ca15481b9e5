import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional


DEFAULT_TEMPLATE_ROOT = Path("DiscordEmotes")
DEFAULT_CDN_URL = "https://cdn.discordapp.com/emojis/{emote_id}.png"
NAME_POLICIES = ("escape", "reject")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass
class PackSettings:
    """
    Knobs for one pack build.

    Defaults reproduce the stock behaviour: 32x32 TGA images registered at
    28px, no fetch retries, and templates that silently tolerate a missing
    marker.
    """

    template_root: Path = DEFAULT_TEMPLATE_ROOT
    pack_prefix: str = "TwitchEmotes"
    cdn_url: str = DEFAULT_CDN_URL
    image_size: int = 32
    display_size: int = 28
    image_extension: str = "tga"
    fetch_timeout: float = 10.0
    fetch_retries: int = 0
    max_workers: int = 8
    strict_templates: bool = False
    name_policy: str = "escape"
    discord_token: Optional[str] = None

    def __post_init__(self) -> None:
        self.template_root = Path(self.template_root)
        if self.name_policy not in NAME_POLICIES:
            raise ValueError(
                f"name_policy must be one of {', '.join(NAME_POLICIES)}, got {self.name_policy!r}"
            )
        if self.image_size <= 0 or self.display_size <= 0:
            raise ValueError("image_size and display_size must be positive")
        if self.fetch_timeout <= 0:
            raise ValueError("fetch_timeout must be positive")
        if self.fetch_retries < 0:
            raise ValueError("fetch_retries cannot be negative")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if "{emote_id}" not in self.cdn_url:
            raise ValueError("cdn_url must contain an {emote_id} field")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PackSettings":
        """
        Build settings from EMOTEPACK_* variables (plus DISCORD_TOKEN).

        Call `dotenv.load_dotenv()` first if a local .env file should be honoured.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        return cls(
            template_root=Path(env.get("EMOTEPACK_TEMPLATE_ROOT", str(defaults.template_root))),
            pack_prefix=env.get("EMOTEPACK_PREFIX", defaults.pack_prefix),
            cdn_url=env.get("EMOTEPACK_CDN_URL", defaults.cdn_url),
            image_size=int(env.get("EMOTEPACK_IMAGE_SIZE", defaults.image_size)),
            display_size=int(env.get("EMOTEPACK_DISPLAY_SIZE", defaults.display_size)),
            fetch_timeout=float(env.get("EMOTEPACK_FETCH_TIMEOUT", defaults.fetch_timeout)),
            fetch_retries=int(env.get("EMOTEPACK_FETCH_RETRIES", defaults.fetch_retries)),
            max_workers=int(env.get("EMOTEPACK_MAX_WORKERS", defaults.max_workers)),
            strict_templates=_parse_bool(
                env.get("EMOTEPACK_STRICT_TEMPLATES"), defaults.strict_templates
            ),
            name_policy=env.get("EMOTEPACK_NAME_POLICY", defaults.name_policy).strip().lower(),
            discord_token=env.get("DISCORD_TOKEN") or None,
        )


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"Not a boolean value: {value!r}")
