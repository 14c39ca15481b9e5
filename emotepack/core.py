import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from .archive import ArchiveAssembler
from .config import PackSettings
from .errors import (
    ArchiveWriteFailed,
    GuildLookupFailed,
    ImageFetchFailed,
    PackError,
    PathCollision,
    TemplateMalformed,
)
from .guild import Guild, GuildLookup
from .markers import patch_manifest, substitute_script
from .paths import image_path, make_pack_name, remap_paths, safe_segment
from .templates import AssetRole, TemplateTree, load_template_tree
from .transcode import ImageFetcher, TranscodeBatch, TranscodedImage


logger = logging.getLogger(__name__)


class PipelineState(Enum):
    IDLE = "idle"
    FETCHING_GUILD = "fetching_guild"
    WALKING_TEMPLATES = "walking_templates"
    TRANSCODING_IMAGES = "transcoding_images"
    ASSEMBLING = "assembling"
    DONE = "done"
    FAILED = "failed"


# Error raised for unexpected exceptions escaping each step.
_STEP_ERRORS = {
    PipelineState.FETCHING_GUILD: GuildLookupFailed,
    PipelineState.WALKING_TEMPLATES: TemplateMalformed,
    PipelineState.TRANSCODING_IMAGES: ImageFetchFailed,
    PipelineState.ASSEMBLING: ArchiveWriteFailed,
}


@dataclass
class PackResult:
    pack_name: str
    filename: str
    data: bytes
    paths: List[str]


class PackPipeline:
    """
    Builds one add-on archive per guild:
    - look up the guild and derive the pack name
    - rewrite template assets (script markers, manifest title, paths)
    - fetch + transcode every emote concurrently while templates are rewritten
    - assemble everything into an in-memory zip

    `state` tracks the current run, so concurrent builds each need their own
    instance; the loaded TemplateTree is read-only and can be shared.
    """

    def __init__(
        self,
        settings: PackSettings,
        guild_lookup: GuildLookup,
        fetcher: ImageFetcher,
        template: Optional[TemplateTree] = None,
    ) -> None:
        self.settings = settings
        self.guild_lookup = guild_lookup
        self.fetcher = fetcher
        self.template = template
        self.state = PipelineState.IDLE
        self.failed_step = PipelineState.IDLE

    def run(self, guild_id: str) -> PackResult:
        started = time.monotonic()
        self.failed_step = PipelineState.IDLE
        try:
            self._enter(PipelineState.FETCHING_GUILD)
            guild = self.guild_lookup.fetch_guild(guild_id)
            result = self.build(guild)
        except PackError as exc:
            self._fail(exc)
            raise
        except Exception as exc:
            self._fail(exc)
            raise self._wrap(exc) from exc

        logger.info(
            "Built %s for guild %s in %.2fs",
            result.filename,
            guild_id,
            time.monotonic() - started,
        )
        return result

    def build(self, guild: Guild) -> PackResult:
        """Run the template/image/assembly steps for an already resolved guild."""
        settings = self.settings
        assembler = ArchiveAssembler()
        try:
            pack_name = make_pack_name(settings.pack_prefix, guild.name)
            pack_dir = safe_segment(pack_name, settings.name_policy)
            guild_dir = safe_segment(guild.id, settings.name_policy)
            image_paths = self._image_paths(guild, pack_dir, guild_dir)

            with TranscodeBatch(
                guild.emotes,
                self.fetcher,
                size=settings.image_size,
                output_format=settings.image_extension.upper(),
                max_workers=settings.max_workers,
            ) as batch:
                self._enter(PipelineState.WALKING_TEMPLATES)
                template = self._template()
                for path, data in self._rewrite_templates(template, guild, pack_name, pack_dir):
                    assembler.add(path, data)

                self._enter(PipelineState.TRANSCODING_IMAGES)
                images = batch.results()

            self._enter(PipelineState.ASSEMBLING)
            self._add_images(assembler, images, image_paths)
            data = assembler.finalize()
        except PackError as exc:
            assembler.discard()
            self._fail(exc)
            raise
        except Exception as exc:
            assembler.discard()
            self._fail(exc)
            raise self._wrap(exc) from exc

        self._enter(PipelineState.DONE)
        return PackResult(
            pack_name=pack_name,
            filename=f"{pack_dir}.zip",
            data=data,
            paths=assembler.paths,
        )

    def _template(self) -> TemplateTree:
        if self.template is None:
            self.template = load_template_tree(
                self.settings.template_root, strict=self.settings.strict_templates
            )
        return self.template

    def _rewrite_templates(
        self,
        template: TemplateTree,
        guild: Guild,
        pack_name: str,
        pack_dir: str,
    ):
        settings = self.settings
        strict = settings.strict_templates or template.strict
        remapped = remap_paths(
            (asset.relative_path for asset in template.assets),
            template.placeholder,
            pack_dir,
        )

        for asset in template.assets:
            data = asset.data
            if asset.role is AssetRole.SCRIPT:
                data = substitute_script(
                    data,
                    display_name=pack_name,
                    pack_dir=pack_dir,
                    guild_id=guild.id,
                    emotes=guild.emotes,
                    extension=settings.image_extension,
                    display_size=settings.display_size,
                    name_policy=settings.name_policy,
                    strict=strict,
                )
            elif asset.role is AssetRole.MANIFEST:
                data = patch_manifest(
                    data,
                    display_name=pack_name,
                    placeholder=template.placeholder,
                    strict=strict,
                )
            yield remapped[asset.relative_path], data

    def _image_paths(self, guild: Guild, pack_dir: str, guild_dir: str) -> List[str]:
        policy = self.settings.name_policy
        paths: List[str] = []
        owners: Dict[str, str] = {}
        for emote in guild.emotes:
            path = image_path(
                pack_dir,
                guild_dir,
                safe_segment(emote.name, policy),
                self.settings.image_extension,
            )
            if path in owners:
                raise PathCollision(
                    f"emotes {owners[path]!r} and {emote.name!r} both map to {path!r}"
                )
            owners[path] = emote.name
            paths.append(path)
        return paths

    @staticmethod
    def _add_images(
        assembler: ArchiveAssembler,
        images: List[TranscodedImage],
        image_paths: List[str],
    ) -> None:
        for path, image in zip(image_paths, images):
            assembler.add(path, image.data)

    def _enter(self, state: PipelineState) -> None:
        logger.debug("Pipeline %s -> %s", self.state.value, state.value)
        self.state = state

    def _fail(self, exc: Exception) -> None:
        if self.state is PipelineState.FAILED:
            return
        self.failed_step = self.state
        logger.info("Pipeline failed while %s: %s", self.state.value, exc)
        self.state = PipelineState.FAILED

    def _wrap(self, exc: Exception) -> PackError:
        error_cls = _STEP_ERRORS.get(self.failed_step, PackError)
        return error_cls(f"unexpected {type(exc).__name__} while {self.failed_step.value}")
