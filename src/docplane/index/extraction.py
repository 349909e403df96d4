"""Documentation extraction: project directory -> raw documentation tree.

RustdocExtractor shells out to the nightly rustdoc JSON backend. The result
is moved out of ``target/doc`` so a later ``cargo doc`` cannot clobber it
while the project is being normalized.
"""

from __future__ import annotations

import json
import shutil
import subprocess
import time
import tomllib
from pathlib import Path
from typing import Any, Protocol

import structlog

from docplane.core.errors import ExtractionError, SchemaError

log = structlog.get_logger(__name__)

_STDERR_TAIL_CHARS = 4000


class DocExtractor(Protocol):
    """Produces the raw documentation tree for a project directory."""

    def extract(self, project_dir: Path) -> dict[str, Any]: ...


def read_json_tree(path: Path, project: str | None = None) -> dict[str, Any]:
    """Read a documentation JSON file.

    Raises:
        ExtractionError: File unreadable.
        SchemaError: Invalid JSON or top-level value is not an object.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ExtractionError.failed(project or str(path), f"cannot read {path}: {e}") from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SchemaError.malformed(f"invalid JSON in {path.name}: {e}", project) from e
    if not isinstance(data, dict):
        raise SchemaError.malformed("top-level JSON value must be an object", project)
    return data


def crate_name_for(project_dir: Path) -> str:
    """Library target name as rustdoc names its output file.

    ``[package].name`` from Cargo.toml with ``-`` replaced by ``_``; the
    directory name when the manifest has none.
    """
    name: str | None = None
    manifest = project_dir / "Cargo.toml"
    try:
        data = tomllib.loads(manifest.read_text(encoding="utf-8"))
        package = data.get("package")
        if isinstance(package, dict) and isinstance(package.get("name"), str):
            name = package["name"]
    except OSError:
        pass
    except tomllib.TOMLDecodeError as e:
        log.warning("extract.manifest_parse_error", manifest=str(manifest), error=str(e))
    return (name or project_dir.name).replace("-", "_")


class RustdocExtractor:
    """Runs ``cargo rustdoc`` with JSON output and returns the parsed tree."""

    def __init__(
        self,
        output_dir: Path,
        *,
        toolchain: str = "nightly",
        document_private_items: bool = True,
        timeout_sec: float = 600.0,
    ) -> None:
        self._output_dir = Path(output_dir)
        self._toolchain = toolchain
        self._document_private_items = document_private_items
        self._timeout_sec = timeout_sec

    def build_command(self) -> list[str]:
        cmd = [
            "cargo",
            f"+{self._toolchain}",
            "rustdoc",
            "-q",
            "--lib",
            "--",
            "-Z",
            "unstable-options",
            "--output-format",
            "json",
        ]
        if self._document_private_items:
            cmd.append("--document-private-items")
        return cmd

    def extract(self, project_dir: Path) -> dict[str, Any]:
        project = str(project_dir)
        if not (project_dir / "Cargo.toml").is_file():
            raise ExtractionError.failed(project, "Cargo.toml not found")

        crate_name = crate_name_for(project_dir)
        cmd = self.build_command()
        log.info("extract.started", project=project, crate=crate_name, toolchain=self._toolchain)
        start = time.monotonic()

        try:
            result = subprocess.run(
                cmd,
                cwd=project_dir,
                capture_output=True,
                text=True,
                timeout=self._timeout_sec,
            )
        except FileNotFoundError as e:
            raise ExtractionError.failed(project, "cargo executable not found on PATH") from e
        except subprocess.TimeoutExpired as e:
            raise ExtractionError.failed(
                project, f"cargo rustdoc timed out after {self._timeout_sec}s"
            ) from e

        if result.returncode != 0:
            stderr = (result.stderr or "")[-_STDERR_TAIL_CHARS:]
            raise ExtractionError.failed(
                project,
                f"cargo rustdoc exited with status {result.returncode}",
                returncode=result.returncode,
                stderr=stderr,
            )

        doc_dir = project_dir / "target" / "doc"
        generated = doc_dir / f"{crate_name}.json"
        if not generated.is_file():
            found = sorted(p.name for p in doc_dir.iterdir()) if doc_dir.is_dir() else []
            raise ExtractionError.output_missing(project, str(generated), found)

        self._output_dir.mkdir(parents=True, exist_ok=True)
        destination = self._output_dir / generated.name
        try:
            shutil.move(str(generated), destination)
        except OSError as e:
            raise ExtractionError.failed(project, f"cannot move output to {destination}: {e}") from e

        log.info(
            "extract.complete",
            project=project,
            output=str(destination),
            elapsed_s=round(time.monotonic() - start, 2),
        )
        return read_json_tree(destination, project)


class JsonFileExtractor:
    """Returns a documentation tree generated elsewhere.

    With ``path`` unset, looks for ``<project_dir>/<crate>.json`` and then
    ``<project_dir>/target/doc/<crate>.json``.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = Path(path) if path is not None else None

    def extract(self, project_dir: Path) -> dict[str, Any]:
        project = str(project_dir)
        if self._path is not None:
            return read_json_tree(self._path, project)

        crate_name = crate_name_for(project_dir)
        candidates = [
            project_dir / f"{crate_name}.json",
            project_dir / "target" / "doc" / f"{crate_name}.json",
        ]
        for candidate in candidates:
            if candidate.is_file():
                return read_json_tree(candidate, project)
        raise ExtractionError.output_missing(project, str(candidates[-1]), [])
