from typing import Optional


class PackError(Exception):
    """
    Base class for every failure raised while building a pack.

    `step` names the pipeline step that failed (e.g. "fetch", "archive");
    the underlying exception, if any, is chained as `__cause__`.
    """

    step = "pack"

    def __init__(self, message: str, step: Optional[str] = None) -> None:
        super().__init__(message)
        if step is not None:
            self.step = step

    def __str__(self) -> str:
        message = super().__str__()
        if self.__cause__ is not None:
            return f"{self.step}: {message}: {self.__cause__}"
        return f"{self.step}: {message}"


class GuildLookupFailed(PackError):
    step = "guild"


class TemplateReadFailed(PackError):
    step = "template"


class TemplateMalformed(PackError):
    step = "template"


class PathCollision(PackError):
    step = "archive"


class UnsafeName(PackError):
    step = "paths"


class ImageFetchFailed(PackError):
    step = "fetch"


class ImageDecodeFailed(PackError):
    step = "decode"


class ImageEncodeFailed(PackError):
    step = "encode"


class ArchiveWriteFailed(PackError):
    step = "archive"


class ArchiveFinalizeFailed(PackError):
    step = "finalize"
