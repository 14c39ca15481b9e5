import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

from emotepack.config import NAME_POLICIES, PackSettings
from emotepack.core import PackPipeline
from emotepack.delivery import DirectoryTransport, PackRequest, handle_pack_request
from emotepack.guild import DiscordGuildLookup, JsonGuildLookup, load_guild
from emotepack.transcode import CdnImageFetcher


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Build an emote add-on pack for a Discord guild."
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--guild-json",
        type=Path,
        help="Path to a guild JSON snapshot (id, name, emojis).",
    )
    source.add_argument(
        "--guild-id",
        help="Guild id to look up through the Discord API (needs DISCORD_TOKEN).",
    )
    parser.add_argument(
        "--template",
        type=Path,
        help="Template add-on folder (defaults to EMOTEPACK_TEMPLATE_ROOT or ./DiscordEmotes).",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("outputs"),
        help="Folder where the generated zip is written.",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail on templates with missing markers instead of skipping them.",
    )
    parser.add_argument(
        "--name-policy",
        choices=NAME_POLICIES,
        help="How to treat guild/emote names that are not safe path segments.",
    )
    parser.add_argument("--workers", type=int, help="Concurrent emote downloads.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args()


def main() -> int:
    # Load environment variables from a local .env file if present
    # (e.g. DISCORD_TOKEN=..., EMOTEPACK_FETCH_RETRIES=2).
    load_dotenv()

    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides = {}
    if args.template is not None:
        overrides["template_root"] = args.template
    if args.strict:
        overrides["strict_templates"] = True
    if args.name_policy:
        overrides["name_policy"] = args.name_policy
    if args.workers is not None:
        overrides["max_workers"] = args.workers
    settings = replace(PackSettings.from_env(), **overrides)

    if args.guild_json is not None:
        lookup = JsonGuildLookup(args.guild_json)
        guild_id = load_guild(args.guild_json).id
    else:
        if not settings.discord_token:
            print("DISCORD_TOKEN is not set; it is required with --guild-id.", file=sys.stderr)
            return 2
        lookup = DiscordGuildLookup(settings.discord_token, timeout=settings.fetch_timeout)
        guild_id = args.guild_id

    fetcher = CdnImageFetcher(
        settings.cdn_url,
        timeout=settings.fetch_timeout,
        retries=settings.fetch_retries,
        pool_size=settings.max_workers,
    )
    pipeline = PackPipeline(settings, guild_lookup=lookup, fetcher=fetcher)
    transport = DirectoryTransport(args.output_dir)

    result = handle_pack_request(
        PackRequest(guild_id=guild_id, channel_id="local"), transport, pipeline
    )
    return 0 if result is not None else 1


if __name__ == "__main__":
    sys.exit(main())
