import re
from typing import Dict, Iterable

from .errors import PathCollision, UnsafeName


# Separators, characters Windows refuses in file names, and control characters.
_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f\x7f]')


def make_pack_name(prefix: str, guild_name: str) -> str:
    """Display name of the pack, e.g. "TwitchEmotes - Acme"."""
    return f"{prefix} - {guild_name}"


def safe_segment(name: str, policy: str = "escape") -> str:
    """
    Make `name` usable as a single archive path segment.

    - "escape": unsafe characters become "_" and trailing dots/spaces are dropped
    - "reject": any unsafe character raises UnsafeName

    Names that end up empty, "." or ".." are rejected under both policies.
    """
    if policy == "reject":
        if _UNSAFE_CHARS.search(name) or name != name.rstrip(". "):
            raise UnsafeName(f"name {name!r} is not a valid path segment")
        cleaned = name
    elif policy == "escape":
        cleaned = _UNSAFE_CHARS.sub("_", name).rstrip(". ")
    else:
        raise ValueError(f"Unknown name policy: {policy!r}")

    if cleaned in ("", ".", ".."):
        raise UnsafeName(f"name {name!r} does not yield a usable path segment")
    return cleaned


def remap_path(relative_path: str, placeholder: str, pack_dir: str) -> str:
    """Swap every occurrence of the template placeholder for the pack directory name."""
    return relative_path.replace(placeholder, pack_dir)


def remap_paths(paths: Iterable[str], placeholder: str, pack_dir: str) -> Dict[str, str]:
    """
    Remap a batch of template paths, returning {template path: archive path}.

    Raises PathCollision if two template paths land on the same archive path.
    """
    remapped: Dict[str, str] = {}
    seen: Dict[str, str] = {}
    for path in paths:
        target = remap_path(path, placeholder, pack_dir)
        if target in seen:
            raise PathCollision(
                f"template paths {seen[target]!r} and {path!r} both map to {target!r}"
            )
        seen[target] = path
        remapped[path] = target
    return remapped


def image_path(pack_dir: str, guild_id: str, emote_name: str, extension: str) -> str:
    return f"{pack_dir}/{guild_id}/{emote_name}.{extension}"
