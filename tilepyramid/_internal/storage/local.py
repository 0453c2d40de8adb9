"""
Local filesystem storage backend
"""

import logging
import os
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)


class LocalFileBackend:
    """
    Filesystem implementation of StorageBackend

    Writes go to a "<target>.<uuid>.tmp" file beside the target, which is then
    renamed over the target, so readers never see a partial file.

    Examples:
        >>> backend = LocalFileBackend()
        >>> backend.write_bytes("/data/PYR.list", b"0=/data/PYR\\n#\\n")
        >>> backend.read_bytes("/data/PYR.list")
        b'0=/data/PYR\\n#\\n'
    """

    def read_bytes(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def write_bytes(self, path: str, data: bytes) -> None:
        target_path = Path(path)
        temp_path = Path(f"{path}.{uuid.uuid4()}.tmp")

        target_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            temp_path.write_bytes(data)
            os.replace(temp_path, target_path)
        except OSError:
            if temp_path.exists():
                temp_path.unlink()
            raise

        logger.debug("Wrote %d bytes to %s", len(data), target_path)

    def delete(self, path: str) -> None:
        Path(path).unlink()

    def exists(self, path: str) -> bool:
        return Path(path).is_file()
