import os
from typing import Union, List


class RetentionError(Exception):
    """Base class for all retention exceptions"""

    pass


class RetentionConfigError(RetentionError):
    """Error for malformed retention rules, such as a pattern that does not compile"""

    def __init__(self, message: str | None = None, pattern: str | None = None, repository: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.pattern = pattern
        self.repository = repository

    def __str__(self) -> str:
        s = f"{self.message}"
        if self.pattern is not None:
            s += f"\n  - Pattern: {self.pattern}"
        if self.repository is not None:
            s += f"\n  - Repository: {self.repository}"
        return s


class RetentionFileError(RetentionError):
    """Generic error for configuration file issues"""

    def __init__(
        self,
        message: str | None = None,
        filepath: Union[str, bytes, os.PathLike] | List[Union[str, bytes, os.PathLike]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.filepath = filepath

        if filepath:
            filepath_note = f"Expected filepath(s): "
            if isinstance(filepath, (str, bytes, os.PathLike)):
                filepath_note += f"  - {filepath}\n"
            elif isinstance(filepath, list):
                for f in filepath:
                    filepath_note += f"  - {f}\n"
            self.add_note(filepath_note)


class RetentionConfigNotFoundError(RetentionFileError):
    """Error for a missing retention.yaml file"""

    pass


class MetadataUnavailableError(RetentionError):
    """Error for a tag whose manifest or creation time cannot be retrieved"""

    def __init__(self, message: str | None = None, repository: str | None = None, tag: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.repository = repository
        self.tag = tag


class DeleteFailureError(RetentionError):
    """Error for a tag deletion rejected or failed by the registry"""

    def __init__(self, repository: str, tag: str, cause: Exception | None = None) -> None:
        super().__init__(f"Failed to delete {repository}:{tag}")
        self.repository = repository
        self.tag = tag
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        s = f"Failed to delete {self.repository}:{self.tag}"
        if self.__cause__ is not None:
            s += f": {self.__cause__}"
        return s


class RetentionDeleteErrorGroup(ExceptionGroup):
    """Group of tag deletion errors"""

    def __str__(self) -> str:
        s = f""
        for e in self.exceptions:
            s += f"{e}\n"
        s += "\n"
        s += f"{len(self.exceptions)} tag deletion(s) returned errors\n"

        return s
