from __future__ import annotations

from enum import Enum
from pathlib import Path


class ErrorKind(Enum):
    DIRECTORY_NOT_FOUND = "directory_not_found"
    TRAVERSAL = "traversal"
    OUTPUT_DIR_CREATION = "output_dir_creation"
    COMPRESSION = "compression"


class BatchError(Exception):
    """Base error carrying a kind tag, the underlying cause and some context.

    Collection errors are raised to the caller. Execution errors are stored
    on the job's :class:`~imgbatch.models.Result` instead.
    """

    kind: ErrorKind

    def __init__(self, message: str, cause: BaseException | None = None, context: str | Path | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.context = str(context) if context is not None else None

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class DirectoryNotFoundError(BatchError):
    kind = ErrorKind.DIRECTORY_NOT_FOUND

    def __init__(self, path: str | Path) -> None:
        super().__init__(f"input directory does not exist: {path}", context=path)


class TraversalError(BatchError):
    kind = ErrorKind.TRAVERSAL

    def __init__(self, path: str | Path, cause: BaseException) -> None:
        super().__init__(f"failed to walk {path}", cause=cause, context=path)


class OutputDirCreationError(BatchError):
    kind = ErrorKind.OUTPUT_DIR_CREATION

    def __init__(self, path: str | Path, cause: BaseException) -> None:
        super().__init__(f"failed to create output directory {path}", cause=cause, context=path)


class CompressionError(BatchError):
    kind = ErrorKind.COMPRESSION

    def __init__(self, image_format: str, message: str = "", cause: BaseException | None = None) -> None:
        self.image_format = image_format
        text = f"compression failed ({image_format})"
        if message:
            text = f"{text}: {message}"
        super().__init__(text, cause=cause, context=image_format)
