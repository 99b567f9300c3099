"""
Diagnostics collected while loading or exporting a reconstruction.

Every load and export call returns its own Diagnostics list instead of
writing to a shared registry. Each entry is also forwarded to the standard
logging module so command-line users still see it.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .scene import Scene

INFO = "info"
WARNING = "warning"

_LOG_LEVELS = {
    INFO: logging.INFO,
    WARNING: logging.WARNING,
}


class ModelFormatError(ValueError):
    """Raised when a reconstruction file header cannot be read."""


class UnsupportedFormatError(ValueError):
    """Raised when a path has an extension no codec handles."""


@dataclass
class Diagnostic:
    """A single message produced by a codec."""
    level: str
    source: str  # File or component the message refers to
    message: str

    def __str__(self) -> str:
        return f"[{self.level}] {self.source}: {self.message}"


@dataclass
class Diagnostics:
    """
    Ordered list of diagnostics for one load or export call.

    Attributes:
        entries: Collected diagnostics in emission order
        logger_name: Name of the logger messages are forwarded to
    """
    entries: List[Diagnostic] = field(default_factory=list)
    logger_name: str = "sfm_codec"

    def add(self, level: str, source: str, message: str) -> Diagnostic:
        """Record a diagnostic and forward it to logging."""
        diagnostic = Diagnostic(level=level, source=source, message=message)
        self.entries.append(diagnostic)
        logging.getLogger(self.logger_name).log(
            _LOG_LEVELS.get(level, logging.INFO), f"{source}: {message}"
        )
        return diagnostic

    def info(self, source: str, message: str) -> Diagnostic:
        return self.add(INFO, source, message)

    def warning(self, source: str, message: str) -> Diagnostic:
        return self.add(WARNING, source, message)

    def by_level(self, level: str) -> List[Diagnostic]:
        return [d for d in self.entries if d.level == level]

    @property
    def warnings(self) -> List[Diagnostic]:
        return self.by_level(WARNING)

    def find(self, text: str) -> Optional[Diagnostic]:
        """Return the first diagnostic whose message contains text."""
        for d in self.entries:
            if text in d.message:
                return d
        return None


@dataclass
class LoadResult:
    """
    Outcome of loading a reconstruction.

    Attributes:
        scene: The newly built scene
        diagnostics: Non-fatal problems met while reading
        format_name: Codec that produced the scene ('binary', 'text', 'ply', ...)
    """
    scene: Scene
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    format_name: str = ""


@dataclass
class ExportReport:
    """Summary of one export call."""
    paths: List[str] = field(default_factory=list)
    points_written: int = 0
    points_dropped: int = 0
    cameras_written: int = 0
    images_written: int = 0
    remapped_references: int = 0
    unresolved_references: int = 0
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
