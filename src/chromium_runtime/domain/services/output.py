"""
Output collection.

Inspects the document the browser wrote at the output destination.
"""

import mimetypes
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from chromium_runtime.domain.services.resolver import file_checksum
from chromium_runtime.domain.value_objects import OutputArtifact


class OutputCollector:
    """Builds OutputArtifact metadata for a produced file."""

    def __init__(self):
        self.mime_types = mimetypes.MimeTypes()

    def collect(self, path: Optional[Union[str, Path]]) -> Optional[OutputArtifact]:
        """
        Return metadata for the file at ``path``.

        Missing or empty files yield None: a browser that exits before
        flushing its document has produced nothing usable.
        """
        if path is None:
            return None
        file_path = Path(path)
        if not file_path.is_file():
            return None

        stat = file_path.stat()
        if stat.st_size == 0:
            return None

        mime_type, _ = self.mime_types.guess_type(str(file_path))
        return OutputArtifact(
            path=file_path.absolute(),
            size=stat.st_size,
            mime_type=mime_type or "application/octet-stream",
            checksum=file_checksum(file_path),
            created_at=datetime.fromtimestamp(stat.st_mtime),
        )
