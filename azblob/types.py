from typing import Literal, NamedTuple

from .errors import InvalidResourceError

Method = Literal["GET", "PUT"]

LIST_PARAMS: tuple[tuple[str, str], ...] = (("restype", "container"), ("comp", "list"))


class BlobResource(NamedTuple):
    """A container, or a blob inside a container, plus the query parameters addressing it."""

    container: str
    blob: str | None = None
    params: tuple[tuple[str, str], ...] = ()

    @classmethod
    def listing(cls, container: str) -> "BlobResource":
        return cls(container, params=LIST_PARAMS)

    @property
    def path(self) -> str:
        return self.container if self.blob is None else f"{self.container}/{self.blob}"

    def validate(self) -> "BlobResource":
        if not self.container:
            raise InvalidResourceError("No container given: a request must address a resource")
        if "/" in self.container:
            raise InvalidResourceError(f"Invalid container name {self.container!r}")
        if self.blob is not None:
            if not self.blob or self.blob.startswith("/") or "//" in self.blob:
                raise InvalidResourceError(f"Invalid blob name {self.blob!r}")
        return self


class ElementEvent(NamedTuple):
    name: str
    text: str
