import posixpath
import re
import shutil
from collections import OrderedDict
from pathlib import Path
from typing import Dict, List, Set

from synthdeploy.constants import SOURCE_EXTENSION
from synthdeploy.types import FlattenedSources, SourcePath

# import "a.sol"; import "a.sol" as A; import * as A from "a.sol"; import {B as C} from "a.sol";
IMPORT_PATTERN = re.compile(
    r"^[ \t]*import\s+(?:[^;\"']*?\s*from\s*)?[\"']([^\"']+)[\"'][^;]*;[ \t]*\r?\n?",
    re.MULTILINE,
)
SPDX_PATTERN = re.compile(r"^[ \t]*//\s*SPDX-License-Identifier:.*\r?\n?", re.MULTILINE)


class ImportResolutionError(Exception):
    """Raised when an imported source file cannot be found."""


def find_source_files(root: Path) -> Dict[SourcePath, str]:
    """
    Recursively collects the source files under root, keyed by
    their POSIX path relative to root.
    """
    root = Path(root)
    files = OrderedDict()
    for filepath in sorted(root.rglob(f"*{SOURCE_EXTENSION}")):
        if not filepath.is_file():
            continue
        relative_path = filepath.relative_to(root).as_posix()
        files[relative_path] = filepath.read_text(encoding="utf-8")
    return files


def aggregate(library_root: Path, contract_root: Path) -> Dict[SourcePath, str]:
    """
    Merges the library sources with the first-party contract sources.
    On a path collision the first-party source wins.
    """
    merged = find_source_files(library_root)
    merged.update(find_source_files(contract_root))
    return merged


def get_imports(source: str) -> List[str]:
    return IMPORT_PATTERN.findall(source)


def resolve_import(importer: SourcePath, import_path: str) -> SourcePath:
    """Resolves an import statement's path to a key of the merged sources."""
    if import_path.startswith("./") or import_path.startswith("../"):
        directory = posixpath.dirname(importer)
        return posixpath.normpath(posixpath.join(directory, import_path))
    return posixpath.normpath(import_path)


def _strip_whitespace(source: str) -> str:
    lines = [line.rstrip() for line in source.strip().splitlines()]
    stripped = list()
    for line in lines:
        if not line and stripped and not stripped[-1]:
            continue
        stripped.append(line)
    return "\n".join(stripped)


def flatten(files: Dict[SourcePath, str], path: SourcePath, strip_whitespace: bool = True) -> str:
    """
    Merges path and its transitive imports into one self-contained unit,
    dependencies first. Each file is included exactly once.
    """
    if path not in files:
        raise ImportResolutionError(f"Unknown source file: {path}")

    ordered: List[SourcePath] = list()
    visited: Set[SourcePath] = set()

    def visit(current: SourcePath) -> None:
        visited.add(current)
        for import_path in get_imports(files[current]):
            dependency = resolve_import(current, import_path)
            if dependency not in files:
                raise ImportResolutionError(
                    f"Could not resolve import '{import_path}' in {current}"
                )
            if dependency not in visited:
                visit(dependency)
        ordered.append(current)

    visit(path)

    units = list()
    license_seen = False
    for source_path in ordered:
        source = IMPORT_PATTERN.sub("", files[source_path])
        if license_seen:
            source = SPDX_PATTERN.sub("", source)
        license_seen = license_seen or bool(SPDX_PATTERN.search(files[source_path]))
        if strip_whitespace:
            source = _strip_whitespace(source)
        units.append(source)

    separator = "\n\n" if strip_whitespace else "\n"
    return separator.join(units) + "\n"


class SourceAggregator:
    """Discovers, merges and flattens the sources of both source roots."""

    def __init__(self, library_root: Path, contract_root: Path, strip_whitespace: bool = True):
        self.library_root = Path(library_root)
        self.contract_root = Path(contract_root)
        self.strip_whitespace = strip_whitespace

    def aggregate(self) -> Dict[SourcePath, str]:
        return aggregate(self.library_root, self.contract_root)

    def flatten_all(self) -> FlattenedSources:
        """Flattens every first-party source file."""
        print("Finding source files...")
        contracts = find_source_files(self.contract_root)
        merged = self.aggregate()

        print(f"Flattening {len(contracts)} contracts...")
        flattened = OrderedDict()
        for path in contracts:
            flattened[path] = flatten(merged, path, strip_whitespace=self.strip_whitespace)
        return flattened


def save_flattened(flattened: FlattenedSources, output_dir: Path) -> None:
    """Writes the flattened sources to output_dir, replacing previous contents."""
    output_dir = Path(output_dir)
    if output_dir.exists():
        shutil.rmtree(output_dir)

    for path, content in flattened.items():
        filepath = output_dir / path
        filepath.parent.mkdir(parents=True, exist_ok=True)
        print(f"Saving {path} to {output_dir}.")
        filepath.write_text(content, encoding="utf-8")

    print("(i) Successfully saved flattened contracts.")
