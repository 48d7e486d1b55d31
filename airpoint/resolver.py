"""
Resolve the free-form text of an "open" command into something to launch.

Resolution order (first match wins):
    1. custom scheme    "spotify://track/1"         -> opened as-is
    2. quoted command   "\"C:\\run.exe\" --flag"     -> executable + arguments
    3. existing path    "/home/me/doc.txt"          -> opened as-is
    4. web address      "example.com"               -> "https://example.com"
"""

import logging
import os
import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from .launcher import Launcher

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^[A-Za-z0-9+.-]+://")


class TargetKind(Enum):
    NONE = "none"
    SCHEME = "scheme"
    COMMAND = "command"
    PATH = "path"
    URL = "url"


@dataclass(frozen=True)
class LaunchSpec:
    """What to launch for one open command. Falsy when there is nothing to do."""

    target: str = ""
    arguments: str = ""
    use_shell: bool = True
    working_dir: str = ""
    kind: TargetKind = TargetKind.NONE

    def __bool__(self) -> bool:
        return self.kind is not TargetKind.NONE


def containing_folder(path: str) -> str:
    """Folder part of a Windows or POSIX path, or "" when there is none."""
    cut = max(path.rfind("/"), path.rfind("\\"))
    if cut < 0:
        return ""
    folder = path[:cut]
    # Keep the separator for roots: "/run" -> "/", "C:\\run.exe" -> "C:\\"
    if cut == 0 or folder.endswith(":"):
        folder = path[:cut + 1]
    return folder


def _resolve_quoted(text: str, exists: Callable[[str], bool]) -> LaunchSpec:
    end = text.find('"', 1)
    if end < 0:
        return LaunchSpec()
    executable = text[1:end]
    if not executable or not exists(executable):
        return LaunchSpec()
    return LaunchSpec(
        target=executable,
        arguments=text[end + 1:].strip(),
        working_dir=containing_folder(executable),
        kind=TargetKind.COMMAND,
    )


def resolve(text: str, exists: Callable[[str], bool] = os.path.exists) -> LaunchSpec:
    """
    Classify `text` and build a launch spec for it.

    Args:
        text: Raw string received from the client
        exists: Filesystem check, replaceable for tests

    Returns:
        LaunchSpec; an empty (falsy) spec for blank input.
    """
    text = text.strip()
    if not text:
        return LaunchSpec()

    if _SCHEME_RE.match(text):
        return LaunchSpec(target=text, kind=TargetKind.SCHEME)

    if text.startswith('"'):
        spec = _resolve_quoted(text, exists)
        if spec:
            return spec

    if exists(text):
        return LaunchSpec(target=text, working_dir=containing_folder(text), kind=TargetKind.PATH)

    # "www." hosts get a scheme too; only "http..." is left alone
    if not text.lower().startswith("http"):
        text = "https://" + text
    return LaunchSpec(target=text, kind=TargetKind.URL)


def open_target(text: str, launcher: "Launcher",
                exists: Callable[[str], bool] = os.path.exists) -> LaunchSpec:
    """Resolve and launch `text`. Launch failures are logged and dropped."""
    spec = resolve(text, exists)
    if not spec:
        return spec
    try:
        launcher.launch(spec)
    except Exception as e:
        logger.debug("Open failed for %r: %s", spec.target, e)
    return spec
