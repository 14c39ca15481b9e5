"""
Text rewriting for the two generated template assets.

The script asset (Lua) carries three tokens:
- `discord_server_id`: replaced once by the pack display name
- `--Pack`: one emote registration line is inserted before it per emote
- `--Emoticons`: one `:name:` alias line is inserted before it per emote

Sentinels are never consumed, only prefixed, so a rewritten script can be
rewritten again. The manifest (.toc) gets its `## Title:` line renamed.
"""

import logging
from typing import List, Sequence, Tuple

from .errors import TemplateMalformed
from .guild import Emote
from .paths import safe_segment


logger = logging.getLogger(__name__)

PACK_MARKER = b"--Pack"
ALIAS_MARKER = b"--Emoticons"
IDENTIFIER_PLACEHOLDER = b"discord_server_id"
TITLE_PREFIX = b"## Title: "

Edit = Tuple[int, int, bytes]


def emote_key(guild_id: str, emote_name: str) -> str:
    return f"discord.{guild_id}.{emote_name}"


def registration_line(
    key: str,
    pack_dir: str,
    guild_dir: str,
    file_stem: str,
    extension: str,
    display_size: int,
) -> str:
    game_path = "\\".join(["Interface", "AddOns", pack_dir, guild_dir, f"{file_stem}.{extension}"])
    return f"['{_lua_quote(key)}']='{_lua_quote(game_path)}:{display_size}:{display_size}',\n"


def alias_line(emote_name: str, key: str) -> str:
    return f"['{_lua_quote(':' + emote_name + ':')}']='{_lua_quote(key)}',\n"


def substitute_script(
    data: bytes,
    *,
    display_name: str,
    pack_dir: str,
    guild_id: str,
    emotes: Sequence[Emote],
    extension: str = "tga",
    display_size: int = 28,
    name_policy: str = "escape",
    strict: bool = False,
) -> bytes:
    """
    Return a rewritten copy of the script asset.

    Token positions are resolved against the input bytes, so names that
    happen to contain a sentinel cannot shift later insertions. A missing
    token is skipped with a warning, or raises TemplateMalformed when
    `strict` is set.
    """
    guild_dir = safe_segment(guild_id, name_policy)
    pack_lines: List[str] = []
    alias_lines: List[str] = []
    for emote in emotes:
        key = emote_key(guild_id, emote.name)
        stem = safe_segment(emote.name, name_policy)
        pack_lines.append(registration_line(key, pack_dir, guild_dir, stem, extension, display_size))
        alias_lines.append(alias_line(emote.name, key))

    edits: List[Edit] = []
    for token, replacement in (
        (IDENTIFIER_PLACEHOLDER, display_name.encode("utf-8")),
        (PACK_MARKER, "".join(pack_lines).encode("utf-8") + PACK_MARKER),
        (ALIAS_MARKER, "".join(alias_lines).encode("utf-8") + ALIAS_MARKER),
    ):
        index = data.find(token)
        if index < 0:
            _missing(token, "script", strict)
            continue
        edits.append((index, len(token), replacement))

    return _splice(data, edits)


def patch_manifest(
    data: bytes,
    *,
    display_name: str,
    placeholder: str,
    strict: bool = False,
) -> bytes:
    """Rename the first `## Title: <placeholder>` declaration to the pack name."""
    token = TITLE_PREFIX + placeholder.encode("utf-8")
    index = data.find(token)
    if index < 0:
        _missing(token, "manifest", strict)
        return data
    return _splice(data, [(index, len(token), TITLE_PREFIX + display_name.encode("utf-8"))])


def _missing(token: bytes, asset: str, strict: bool) -> None:
    label = token.decode("utf-8", errors="replace")
    if strict:
        raise TemplateMalformed(f"{asset} asset has no {label!r} marker")
    logger.warning("%s asset has no %r marker; leaving it untouched", asset, label)


def _splice(data: bytes, edits: List[Edit]) -> bytes:
    out: List[bytes] = []
    cursor = 0
    for index, length, replacement in sorted(edits):
        out.append(data[cursor:index])
        out.append(replacement)
        cursor = index + length
    out.append(data[cursor:])
    return b"".join(out)


def _lua_quote(text: str) -> str:
    return text.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n")
