"""Bundler port: compiles a multi-file source upload into one script."""

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field


class SourceFile(BaseModel):
    """One uploaded source file, already decoded to text."""

    path: str
    content: str


class BundleResult(BaseModel):
    """Output of a bundling attempt."""

    success: bool
    code: str = ""
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class Bundler(ABC):
    """Abstract interface for source bundling."""

    @abstractmethod
    async def bundle(self, files: list[SourceFile], entry_point: str) -> BundleResult:
        """Bundle files starting from entry_point."""
        pass

    async def close(self) -> None:
        return None
