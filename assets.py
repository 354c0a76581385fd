"""
Local cache of locked group images.

fetch() downloads the current group image into photos/<threadID>.<ext> so a
revert never depends on the remote source still existing; reapply() pushes
the cached copy back to the conversation.
"""

import re
import asyncio
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

import aiohttp

from errors import DownloadError, MissingAssetError
from locks import LockStore
from remote import RemoteClient

logger = logging.getLogger("lockbot")

_EXT_RE = re.compile(r"\.(jpg|jpeg|png|webp)$", re.IGNORECASE)
_CHUNK = 64 * 1024


def guess_extension(url: str) -> str:
    m = _EXT_RE.search(urlsplit(url).path)
    return m.group(1).lower() if m else "jpg"


class AssetCache:
    def __init__(self, photos_dir: Path, store: LockStore, remote: RemoteClient,
                 timeout_seconds: int = 30, session: Optional[aiohttp.ClientSession] = None):
        self.photos_dir = Path(photos_dir)
        self.store = store
        self.remote = remote
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session

    def path_for(self, thread_id: str, url: str) -> Path:
        return self.photos_dir / f"{thread_id}.{guess_extension(url)}"

    def cached_file(self, thread_id: str) -> Optional[Path]:
        """Path of the locked image if it is still on disk."""
        pic = self.store.get_group_pic(thread_id)
        if pic and pic.file and Path(pic.file).exists():
            return Path(pic.file)
        return None

    async def fetch(self, url: str, thread_id: str) -> Path:
        """Download `url` (redirects followed) to the thread's cache path."""
        dest = self.path_for(thread_id, url)
        part = dest.with_name(dest.name + ".part")
        self.photos_dir.mkdir(parents=True, exist_ok=True)
        try:
            if self._session is not None:
                await self._download(self._session, url, part)
            else:
                async with aiohttp.ClientSession(timeout=self.timeout) as session:
                    await self._download(session, url, part)
            part.replace(dest)
        except DownloadError:
            part.unlink(missing_ok=True)
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            part.unlink(missing_ok=True)
            raise DownloadError(f"Download failed: {e}") from e
        logger.info(f"Cached group image for {thread_id} at {dest}")
        return dest

    async def _download(self, session: aiohttp.ClientSession, url: str, dest: Path):
        async with session.get(url, allow_redirects=True, timeout=self.timeout) as resp:
            if resp.status != 200:
                raise DownloadError(f"Download failed, status {resp.status}")
            with open(dest, "wb") as fh:
                async for chunk in resp.content.iter_chunked(_CHUNK):
                    fh.write(chunk)

    async def reapply(self, thread_id: str):
        """Set the cached image as the group photo; MissingAssetError if it is gone."""
        path = self.cached_file(thread_id)
        if path is None:
            pic = self.store.get_group_pic(thread_id)
            raise MissingAssetError(thread_id, pic.file if pic else None)
        await self.remote.change_group_image(str(path), thread_id)
