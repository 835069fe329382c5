from pathlib import Path
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class Storage(Protocol):
    def write_atomic(self, path: Path, data: bytes) -> None:
        """Replace ``path`` with ``data``; readers see the old or the new bytes, never a mix

        Args:
            path: The target file
            data: The complete new content
        """
        ...

    def read(self, path: Path) -> Optional[bytes]:
        """Read a file

        Returns:
            The content, or None if the file does not exist
        """
        ...
