import re
from typing import Dict, Iterable, List, Mapping, Optional, Set

from eth_utils import is_hex, keccak, remove_0x_prefix

from synthdeploy.constants import SOURCE_EXTENSION
from synthdeploy.types import CompiledArtifact

PLACEHOLDER_LENGTH = 40
PLACEHOLDER_PATTERN = re.compile(r"__.{36}__")


class UnresolvedLibraryError(Exception):
    """Raised when bytecode still references a library that has not been deployed."""


def _label(name: str) -> str:
    """Legacy placeholder: the name, truncated to 36 characters, padded with underscores."""
    truncated_name = name[:36]
    return f"__{truncated_name.ljust(36, '_')}__"


def _hash_label(fully_qualified_name: str) -> str:
    """Placeholder emitted since solidity 0.5: part of the keccak of the qualified name."""
    return f"__${keccak(text=fully_qualified_name).hex()[:34]}$__"


def _candidate_names(library: str, link_references: Optional[Dict]) -> Set[str]:
    names = {library, f"{library}{SOURCE_EXTENSION}:{library}"}
    for source_path, libraries in (link_references or {}).items():
        if library in libraries:
            names.add(f"{source_path}:{library}")
    return names


def _normalize_address(library: str, address: str) -> str:
    if not isinstance(address, str) or not address.startswith("0x") or len(address) > 42:
        raise ValueError(f"Invalid address specified for {library}")
    hex_address = remove_0x_prefix(address)
    if hex_address and not is_hex(hex_address):
        raise ValueError(f"Invalid address specified for {library}")
    return hex_address.lower().rjust(PLACEHOLDER_LENGTH, "0")


def link_bytecode(
    bytecode: str,
    libraries: Mapping[str, str],
    link_references: Optional[Dict] = None,
) -> str:
    """
    Substitutes library addresses for their placeholders.
    Bytecode without placeholders is returned unchanged.
    """
    if "_" not in bytecode:
        return bytecode

    for library, address in libraries.items():
        hex_address = _normalize_address(library, address)
        for name in _candidate_names(library, link_references):
            for label in (_label(name), _hash_label(name)):
                bytecode = bytecode.replace(label, hex_address)
    return bytecode


def find_placeholders(bytecode: str) -> List[str]:
    return sorted(set(PLACEHOLDER_PATTERN.findall(bytecode)))


def unresolved_libraries(artifact: CompiledArtifact, libraries: Iterable[str]) -> List[str]:
    """Names of the given libraries the artifact references but which are not linked yet."""
    references = set()
    for linked in (artifact.link_references or {}).values():
        references.update(linked)
    return sorted(references.difference(libraries))


def link(artifact: CompiledArtifact, libraries: Mapping[str, str]) -> str:
    """
    Links the artifact's bytecode against the given library addresses.
    Safe to call for any artifact; fails fast if a placeholder remains.
    """
    linked = link_bytecode(artifact.bytecode, libraries, artifact.link_references)
    placeholders = find_placeholders(linked)
    if placeholders:
        missing = unresolved_libraries(artifact, libraries) or placeholders
        raise UnresolvedLibraryError(
            f"Cannot link {artifact.name}: unresolved library reference(s) {', '.join(missing)}"
        )
    return linked
