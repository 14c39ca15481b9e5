import io
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

import requests
from PIL import Image
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import DEFAULT_CDN_URL
from .errors import ImageDecodeFailed, ImageEncodeFailed, ImageFetchFailed, PackError
from .guild import Emote


logger = logging.getLogger(__name__)

SOURCE_FORMATS: Tuple[str, ...] = ("PNG",)
# Lanczos gives the cleanest result when shrinking emotes down to icon size.
RESAMPLE = Image.LANCZOS
RETRY_STATUSES = (429, 500, 502, 503, 504)


@dataclass(frozen=True)
class TranscodedImage:
    emote: Emote
    data: bytes


class ImageFetcher(Protocol):
    def fetch(self, emote_id: str) -> bytes:
        ...


class CdnImageFetcher:
    """
    Download emote images from the CDN.

    Every request is bounded by `timeout`. With `retries` > 0, connection
    errors and 429/5xx answers are retried with exponential backoff.
    """

    def __init__(
        self,
        url_template: str = DEFAULT_CDN_URL,
        timeout: float = 10.0,
        retries: int = 0,
        pool_size: int = 8,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url_template = url_template
        self.timeout = timeout
        self.session = session or requests.Session()
        if session is None:
            retry = Retry(
                total=retries,
                backoff_factor=0.5,
                status_forcelist=RETRY_STATUSES,
                allowed_methods=["GET"],
            ) if retries > 0 else 0
            adapter = HTTPAdapter(max_retries=retry, pool_maxsize=pool_size)
            self.session.mount("https://", adapter)
            self.session.mount("http://", adapter)

    def fetch(self, emote_id: str) -> bytes:
        url = self.url_template.format(emote_id=emote_id)
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ImageFetchFailed(f"unable to download {url}") from exc

        if not 200 <= response.status_code < 300:
            raise ImageFetchFailed(f"unable to download {url}: status {response.status_code}")
        return response.content


def transcode_image(
    data: bytes,
    size: int = 32,
    output_format: str = "TGA",
    source_formats: Sequence[str] = SOURCE_FORMATS,
    label: str = "image",
) -> bytes:
    """Decode `data`, resize it to `size` x `size` and re-encode it as `output_format`."""
    try:
        with Image.open(io.BytesIO(data), formats=list(source_formats)) as img:
            img.load()
            rgba = img.convert("RGBA")
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageDecodeFailed(f"unable to decode {label} as {'/'.join(source_formats)}") from exc

    resized = rgba.resize((size, size), RESAMPLE)

    out = io.BytesIO()
    try:
        resized.save(out, format=output_format)
    except (OSError, ValueError, KeyError) as exc:
        raise ImageEncodeFailed(f"unable to encode {label} as {output_format}") from exc
    return out.getvalue()


class _Cancelled(Exception):
    pass


class TranscodeBatch:
    """
    Fan emote transcodes out over a bounded thread pool.

    Use as a context manager: work starts on entry, `results()` gathers it
    in emote order. The first failure (or an exception raised inside the
    `with` body) cancels queued work and tells running workers to stop at
    their next checkpoint; the pool is drained before the exception leaves
    the block.
    """

    def __init__(
        self,
        emotes: Sequence[Emote],
        fetcher: ImageFetcher,
        size: int = 32,
        output_format: str = "TGA",
        max_workers: int = 8,
    ) -> None:
        self.emotes = list(emotes)
        self.fetcher = fetcher
        self.size = size
        self.output_format = output_format
        self.max_workers = max_workers
        self._cancelled = threading.Event()
        self._pool: Optional[ThreadPoolExecutor] = None
        self._futures: Dict[Future, int] = {}

    def __enter__(self) -> "TranscodeBatch":
        self._pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="emote")
        for index, emote in enumerate(self.emotes):
            self._futures[self._pool.submit(self._run_one, emote)] = index
        logger.debug("Queued %d transcodes on %d workers", len(self.emotes), self.max_workers)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.cancel()
        if self._pool is not None:
            self._pool.shutdown(wait=True, cancel_futures=True)
            self._pool = None

    def cancel(self) -> None:
        self._cancelled.set()
        for future in self._futures:
            future.cancel()

    def results(self) -> List[TranscodedImage]:
        images: List[Optional[TranscodedImage]] = [None] * len(self.emotes)
        try:
            for future in as_completed(self._futures):
                images[self._futures[future]] = future.result()
        except BaseException:
            self.cancel()
            raise
        return [image for image in images if image is not None]

    def _run_one(self, emote: Emote) -> TranscodedImage:
        label = f"emote {emote.name!r} ({emote.id})"
        self._checkpoint()
        try:
            data = self.fetcher.fetch(emote.id)
        except PackError:
            raise
        except Exception as exc:
            raise ImageFetchFailed(f"unable to download {label}") from exc

        self._checkpoint()
        try:
            image = transcode_image(data, self.size, self.output_format, label=label)
        except PackError:
            raise
        except Exception as exc:
            raise ImageEncodeFailed(f"unable to transcode {label}") from exc
        logger.debug("Transcoded %s", label)
        return TranscodedImage(emote=emote, data=image)

    def _checkpoint(self) -> None:
        if self._cancelled.is_set():
            raise _Cancelled()


def transcode_emotes(
    emotes: Sequence[Emote],
    fetcher: ImageFetcher,
    size: int = 32,
    output_format: str = "TGA",
    max_workers: int = 8,
) -> List[TranscodedImage]:
    with TranscodeBatch(emotes, fetcher, size, output_format, max_workers) as batch:
        return batch.results()
