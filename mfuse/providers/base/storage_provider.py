from abc import ABC, abstractmethod


class StorageProvider(ABC):
    """Abstract base class for storage providers."""

    @abstractmethod
    async def download_bytes(self, file_url: str, **kwargs) -> bytes:
        """Fetch the full content behind a storage key or URL."""
        pass

    @abstractmethod
    async def save_file(self, file_name: str, src_file_path: str, **kwargs) -> str:
        """Save a local file to storage and return its URL."""
        pass

    @abstractmethod
    async def get_file_url(self, file_name: str, **kwargs) -> str:
        """Generate a URL for a file."""
        pass

    async def close(self):
        """Close the underlying client and cleanup."""
        pass
