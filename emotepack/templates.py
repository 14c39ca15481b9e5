import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Tuple

from .errors import TemplateMalformed, TemplateReadFailed
from .markers import ALIAS_MARKER, IDENTIFIER_PLACEHOLDER, PACK_MARKER, TITLE_PREFIX


logger = logging.getLogger(__name__)

MANIFEST_SUFFIX = ".toc"
SCRIPT_SUFFIX = ".lua"
# A .lua file carrying any of these is the script; missing ones are skipped individually.
SCRIPT_TOKENS = (IDENTIFIER_PLACEHOLDER, PACK_MARKER, ALIAS_MARKER)


class AssetRole(Enum):
    PLAIN = "plain"
    SCRIPT = "script"
    MANIFEST = "manifest"


@dataclass(frozen=True)
class TemplateAsset:
    relative_path: str
    data: bytes
    role: AssetRole = AssetRole.PLAIN


@dataclass(frozen=True)
class TemplateTree:
    """
    Immutable snapshot of the add-on template.

    `placeholder` is the template root directory name; it prefixes every
    relative path and is the token swapped for the pack name on remapping.
    """

    placeholder: str
    assets: Tuple[TemplateAsset, ...]
    strict: bool = False

    @property
    def scripts(self) -> List[TemplateAsset]:
        return [a for a in self.assets if a.role is AssetRole.SCRIPT]

    @property
    def manifests(self) -> List[TemplateAsset]:
        return [a for a in self.assets if a.role is AssetRole.MANIFEST]


def classify(path: Path, data: bytes) -> AssetRole:
    suffix = path.suffix.lower()
    if suffix == MANIFEST_SUFFIX:
        return AssetRole.MANIFEST
    if suffix == SCRIPT_SUFFIX and any(token in data for token in SCRIPT_TOKENS):
        return AssetRole.SCRIPT
    return AssetRole.PLAIN


def load_template_tree(root: Path, strict: bool = False) -> TemplateTree:
    """
    Read every file below `root` once, in sorted order.

    With `strict`, a template that would otherwise be rewritten incompletely
    is refused here with TemplateMalformed.
    """
    root = Path(root)
    if not root.is_dir():
        raise TemplateReadFailed(f"template root {root} is not a directory")

    assets: List[TemplateAsset] = []
    try:
        files = sorted(p for p in root.rglob("*") if p.is_file())
        for path in files:
            data = path.read_bytes()
            relative = f"{root.name}/{path.relative_to(root).as_posix()}"
            assets.append(TemplateAsset(relative_path=relative, data=data, role=classify(path, data)))
    except OSError as exc:
        raise TemplateReadFailed(f"unable to read template tree at {root}") from exc

    tree = TemplateTree(placeholder=root.name, assets=tuple(assets), strict=strict)
    problems = validate_template(tree)
    if problems:
        if strict:
            raise TemplateMalformed("; ".join(problems))
        for problem in problems:
            logger.warning("Template %s: %s", root, problem)

    logger.info(
        "Loaded template %s: %d assets (%d script, %d manifest)",
        root,
        len(tree.assets),
        len(tree.scripts),
        len(tree.manifests),
    )
    return tree


def validate_template(tree: TemplateTree) -> List[str]:
    problems: List[str] = []

    scripts = tree.scripts
    if len(scripts) != 1:
        problems.append(f"expected exactly one script asset, found {len(scripts)}")
    for script in scripts:
        for token in SCRIPT_TOKENS:
            if token not in script.data:
                problems.append(f"{script.relative_path} has no {token.decode()!r} marker")

    title = TITLE_PREFIX + tree.placeholder.encode("utf-8")
    for manifest in tree.manifests:
        if title not in manifest.data:
            problems.append(f"{manifest.relative_path} has no {title.decode()!r} line")

    return problems
