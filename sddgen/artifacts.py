"""
sddgen Artifacts - Pulling files out of oracle text and writing them to disk

The wire format for code artifacts is the fenced block:

    ```<language>:<path>
    <body>
    ```

Blocks without a path are still captured under synthetic names. Extraction
is pure and deterministic; only materialize() touches the filesystem.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Mapping

from sddgen.errors import ExtractionError

logger = logging.getLogger(__name__)

FENCE = "```"

# Bodies are matched non-greedily, so a fence nested inside a body ends the
# block early. This is left as is.
_EXPLICIT_BLOCK = re.compile(r"```(\w+):([^\n]+)\n(.*?)```", re.DOTALL)
_ANONYMOUS_BLOCK = re.compile(r"```(\w+)\n(.*?)```", re.DOTALL)
_BARE_BLOCK = re.compile(r"```\n(.*?)```", re.DOTALL)
_JSON_BLOCK = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL)


# ═══════════════════════════════════════════════════════════════════════════
# EXTRACTION
# ═══════════════════════════════════════════════════════════════════════════


def extract_code_blocks(response: str) -> dict[str, str]:
    """
    Extract file artifacts from an oracle response.

    Explicit ```lang:path blocks are taken first; a repeated path keeps the
    last body. Anonymous ```lang blocks follow as code-block-<n>.<lang>,
    unless their body equals one already captured.

    Args:
        response: Raw oracle text

    Returns:
        Ordered mapping of relative path to file content
    """
    blocks: dict[str, str] = {}

    for match in _EXPLICIT_BLOCK.finditer(response):
        language, path, body = match.group(1), match.group(2).strip(), match.group(3)
        blocks[path] = body
        logger.debug("Extracted code block: %s (%s)", path, language)

    index = 0
    for match in _ANONYMOUS_BLOCK.finditer(response):
        language, body = match.group(1), match.group(2)
        if body in blocks.values():
            continue
        name = f"code-block-{index}.{language}"
        blocks[name] = body
        logger.debug("Extracted anonymous code block: %s", name)
        index += 1

    return blocks


def extract_single_file(response: str, path: str | None = None) -> str | None:
    """
    Interpret a response that should carry exactly one file.

    Returns the block tagged with `path`, else the first extracted block,
    else the body of a bare ``` fence, else the whole response when it has
    no fences at all. None means nothing usable came back.
    """
    blocks = extract_code_blocks(response)
    if path is not None and path in blocks:
        return blocks[path]
    if blocks:
        return next(iter(blocks.values()))

    bare = _BARE_BLOCK.search(response)
    if bare:
        return bare.group(1)

    if FENCE not in response and response.strip():
        return response

    return None


def extract_json(response: str) -> Any:
    """Parse the first ```json block, or the whole response, as JSON."""
    match = _JSON_BLOCK.search(response)
    payload = match.group(1) if match else response

    try:
        return json.loads(payload)
    except json.JSONDecodeError as e:
        if match:
            raise ExtractionError(f"Failed to parse JSON from code block: {e}") from e
        raise ExtractionError(
            "Failed to extract JSON from response: no JSON code block found "
            "and response is not valid JSON"
        ) from e


# ═══════════════════════════════════════════════════════════════════════════
# MATERIALIZATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Artifact:
    """A file written to a generated project."""

    path: str  # Relative, forward-slash separated
    content: str
    size: int  # UTF-8 bytes


def is_safe_relative_path(path: str) -> bool:
    """True for relative paths that stay inside the project root."""
    posix = PurePosixPath(path.replace("\\", "/"))
    if posix.is_absolute() or re.match(r"^[A-Za-z]:", path):
        return False
    return ".." not in posix.parts and str(posix) not in ("", ".")


def write_artifact(project_path: Path, relative_path: str, content: str) -> Artifact:
    """Write one file, creating parent directories as needed."""
    full_path = project_path / relative_path
    full_path.parent.mkdir(parents=True, exist_ok=True)
    full_path.write_text(content, encoding="utf-8")

    artifact = Artifact(
        path=relative_path,
        content=content,
        size=len(content.encode("utf-8")),
    )
    logger.info("Generated: %s (%d bytes)", relative_path, artifact.size)
    return artifact


def materialize(project_path: Path, blocks: Mapping[str, str]) -> list[Artifact]:
    """
    Write an artifact mapping under a project root.

    Paths that are absolute or climb out of the root are skipped.

    Args:
        project_path: Root of the generated project
        blocks: Mapping of relative path to content, e.g. from extract_code_blocks

    Returns:
        Artifacts in the mapping's order
    """
    artifacts: list[Artifact] = []
    for relative_path, content in blocks.items():
        if not is_safe_relative_path(relative_path):
            logger.warning("Skipping artifact outside project root: %s", relative_path)
            continue
        artifacts.append(write_artifact(project_path, relative_path, content))
    return artifacts
