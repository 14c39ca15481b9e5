import unittest

from emotepack.errors import TemplateMalformed
from emotepack.guild import Emote
from emotepack.markers import (
    ALIAS_MARKER,
    PACK_MARKER,
    emote_key,
    patch_manifest,
    substitute_script,
)

from support import MANIFEST, SCRIPT


EMOTES = (Emote("7", "pog"), Emote("8", "kek"), Emote("9", "monkaS"))


def substitute(data=SCRIPT, emotes=EMOTES, **kwargs):
    options = dict(
        display_name="TwitchEmotes - Acme",
        pack_dir="TwitchEmotes - Acme",
        guild_id="42",
        emotes=emotes,
    )
    options.update(kwargs)
    return substitute_script(data, **options)


class TestSubstituteScript(unittest.TestCase):
    def test_sentinels_survive_exactly_once(self):
        out = substitute()
        self.assertEqual(out.count(PACK_MARKER), 1)
        self.assertEqual(out.count(ALIAS_MARKER), 1)

    def test_one_registration_and_one_alias_line_per_emote(self):
        text = substitute().decode("utf-8")
        lines = text.splitlines()
        registrations = [l for l in lines if l.startswith("['discord.42.")]
        aliases = [l for l in lines if l.startswith("[':")]
        self.assertEqual(len(registrations), 3)
        self.assertEqual(len(aliases), 3)
        for emote, reg, alias in zip(EMOTES, registrations, aliases):
            self.assertIn(f"discord.42.{emote.name}", reg)
            self.assertIn(f"\\\\42\\\\{emote.name}.tga", reg)
            self.assertEqual(alias, f"[':{emote.name}:']='discord.42.{emote.name}',")

    def test_lines_land_immediately_before_sentinels(self):
        text = substitute(emotes=EMOTES[:1]).decode("utf-8")
        self.assertIn(
            r"['discord.42.pog']='Interface\\AddOns\\TwitchEmotes - Acme\\42\\pog.tga:28:28',"
            "\n--Pack",
            text,
        )
        self.assertIn("[':pog:']='discord.42.pog',\n--Emoticons", text)

    def test_emote_order_is_preserved(self):
        text = substitute().decode("utf-8")
        self.assertLess(text.index("discord.42.pog'"), text.index("discord.42.kek'"))
        self.assertLess(text.index("discord.42.kek'"), text.index("discord.42.monkaS'"))

    def test_identifier_replaced_once(self):
        data = SCRIPT + b"-- discord_server_id\n"
        out = substitute(data)
        self.assertIn(b"local packName = 'TwitchEmotes - Acme'", out)
        self.assertEqual(out.count(b"discord_server_id"), 1)

    def test_empty_emote_list_only_touches_identifier(self):
        out = substitute(emotes=())
        self.assertEqual(out, SCRIPT.replace(b"discord_server_id", b"TwitchEmotes - Acme"))

    def test_can_be_applied_again(self):
        once = substitute(emotes=EMOTES[:2])
        twice = substitute(once, emotes=EMOTES[2:])
        self.assertEqual(twice.count(PACK_MARKER), 1)
        self.assertEqual(twice.count(b"['discord.42."), 3)
        self.assertEqual(twice.count(b"[':"), 3)

    def test_names_are_quoted_for_lua(self):
        text = substitute(emotes=(Emote("1", "it's"),)).decode("utf-8")
        self.assertIn("[':it\\'s:']='discord.42.it\\'s',", text)

    def test_display_name_containing_sentinel_does_not_shift_insertions(self):
        out = substitute(emotes=EMOTES[:1], display_name="--Pack").decode("utf-8")
        self.assertTrue(out.startswith("local packName = '--Pack'\n"))
        self.assertIn(".tga:28:28',\n--Pack\n}", out)

    def test_missing_sentinel_is_skipped_by_default(self):
        data = SCRIPT.replace(b"--Emoticons\n", b"")
        with self.assertLogs("emotepack.markers", level="WARNING"):
            out = substitute(data)
        self.assertEqual(out.count(b"[':"), 0)
        self.assertEqual(out.count(b"['discord.42."), 3)

    def test_missing_sentinel_raises_when_strict(self):
        data = SCRIPT.replace(b"--Pack\n", b"")
        with self.assertRaises(TemplateMalformed):
            substitute(data, strict=True)

    def test_key_format(self):
        self.assertEqual(emote_key("42", "pog"), "discord.42.pog")


class TestPatchManifest(unittest.TestCase):
    def test_title_is_renamed(self):
        out = patch_manifest(MANIFEST, display_name="TwitchEmotes - Acme", placeholder="DiscordEmotes")
        self.assertIn(b"## Title: TwitchEmotes - Acme\n", out)
        self.assertNotIn(b"DiscordEmotes", out)
        self.assertTrue(out.startswith(b"## Interface: 11302\n"))

    def test_missing_title_passes_through(self):
        data = b"## Interface: 11302\n"
        with self.assertLogs("emotepack.markers", level="WARNING"):
            out = patch_manifest(data, display_name="X", placeholder="DiscordEmotes")
        self.assertEqual(out, data)

    def test_missing_title_raises_when_strict(self):
        with self.assertRaises(TemplateMalformed):
            patch_manifest(b"", display_name="X", placeholder="DiscordEmotes", strict=True)


if __name__ == "__main__":
    unittest.main()
