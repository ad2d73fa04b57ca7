import asyncio
import os
import aiofiles
import aiohttp
from pathlib import Path
from urllib.parse import urlparse, unquote
from loguru import logger
from typing import Dict, Any
from mfuse.providers.base import StorageProvider
from mfuse.utils.error_handler import handle_exceptions, convert_exceptions
from mfuse.utils.error_handler import ProviderException


class LocalStorageProvider(StorageProvider):
    """Local filesystem-based storage provider that can also fetch http(s) URLs."""

    def __init__(self, config: Dict[str, Any]):
        """
        Args:
            config: {
                        "base_path": str -> Root directory for local storage (default: ./local_storage)
                        "download_timeout": float -> Seconds allowed for an http download (default: 60)
                    }
        """
        self.config = config
        self.base_path = Path(config.get("base_path", "./local_storage")).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.download_timeout = config.get("download_timeout", 60.0)
        logger.info(f"LocalStorageProvider initialized at {self.base_path}")

    def _get_file_path(self, folder: str, file_name: str) -> Path:
        """Return full path to file, creating parent directories if needed."""
        file_path = self.base_path / folder / file_name
        file_path.parent.mkdir(parents=True, exist_ok=True)
        return file_path

    def _resolve_local(self, file_url: str) -> Path:
        parsed = urlparse(file_url)
        if parsed.scheme == "file":
            return Path(unquote(parsed.path))
        if parsed.scheme == "":
            path = Path(file_url)
            return path if path.is_absolute() else self.base_path / path
        raise ProviderException(f"Unsupported URL scheme for local storage: {parsed.scheme}")

    async def get_file_url(self, file_name: str, **kwargs) -> str:
        """
        Generate file:// URL for a local file.
        Ensures consistent format across OS (handles Windows drive letters).
        """
        folder_name = kwargs.pop("folder_name", "")
        file_path = self._get_file_path(folder=folder_name, file_name=file_name)
        abs_path = file_path.resolve()

        if os.name == "nt":
            url = f"file:///{abs_path.as_posix()}"
        else:
            url = abs_path.as_uri()

        return url

    @convert_exceptions({Exception: ProviderException})
    async def save_file(self, file_name: str, src_file_path: str, **kwargs) -> str:
        """Copy a local file into the local storage directory."""
        folder_name = kwargs.pop("folder_name", "")
        dest_path = self._get_file_path(folder=folder_name, file_name=file_name)
        async with aiofiles.open(src_file_path, "rb") as src, aiofiles.open(dest_path, "wb") as dst:
            while chunk := await src.read(1024 * 1024):
                await dst.write(chunk)
        logger.info(f"File uploaded to {dest_path}")
        return await self.get_file_url(file_name=file_name, folder_name=folder_name)

    @handle_exceptions(retries=3, exceptions=(aiohttp.ClientError, asyncio.TimeoutError))
    @convert_exceptions({Exception: ProviderException})
    async def download_bytes(self, file_url: str, **kwargs) -> bytes:
        """Load a file:// URL, a storage-relative path or an http(s) URL into memory."""
        scheme = urlparse(file_url).scheme
        if scheme in ("http", "https"):
            timeout = aiohttp.ClientTimeout(total=self.download_timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(file_url) as response:
                    response.raise_for_status()
                    data = await response.read()
        else:
            file_path = self._resolve_local(file_url)
            if not file_path.exists():
                raise FileNotFoundError(f"File not found: {file_path}")
            async with aiofiles.open(file_path, "rb") as f:
                data = await f.read()

        logger.info(f"Loaded {file_url} ({len(data)} bytes) into memory")
        return data

    async def close(self):
        """No-op for local provider (for interface consistency)."""
        logger.debug("LocalStorageProvider closed (no-op).")
