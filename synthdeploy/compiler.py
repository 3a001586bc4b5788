import json
import posixpath
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional, Tuple

import solcx
from solcx.exceptions import SolcError

from synthdeploy.constants import OPTIMIZER_RUNS, SOURCE_EXTENSION
from synthdeploy.types import CompiledArtifact, ContractName, FlattenedSources

Diagnostic = Dict[str, Any]
CompilerOutput = Dict[str, Any]

OUTPUT_SELECTION = {"*": {"*": ["abi", "evm.bytecode"]}}


class CompilationError(Exception):
    """Raised when the compiler reports at least one error."""

    def __init__(self, errors: List[Diagnostic]):
        self.errors = errors
        super().__init__(f"Compilation failed with {len(errors)} error(s)")


def solcx_compile(input_data: Dict, solc_version: Optional[str] = None) -> CompilerOutput:
    """
    Compiles a standard JSON job with py-solc-x. Compiler errors are
    returned as diagnostics instead of being raised.
    """
    try:
        return solcx.compile_standard(input_data, solc_version=solc_version, allow_empty=True)
    except SolcError as e:
        if e.error_dict:
            return {"errors": e.error_dict, "contracts": {}}
        if e.stdout_data:
            try:
                return json.loads(e.stdout_data)
            except ValueError:
                pass
        raise


def solcx_version(solc_version: Optional[str] = None) -> str:
    if solc_version:
        installed = [v for v in solcx.get_installed_solc_versions() if str(v) == solc_version]
        if not installed:
            solcx.install_solc(solc_version)
        solcx.set_solc_version(solc_version)
    return str(solcx.get_solc_version(with_commit_hash=True))


def partition_diagnostics(
    diagnostics: List[Diagnostic],
) -> Tuple[List[Diagnostic], List[Diagnostic]]:
    """Splits compiler diagnostics into warnings and errors."""
    warnings = [d for d in diagnostics if d.get("severity") == "warning"]
    errors = [d for d in diagnostics if d.get("severity") == "error"]
    return warnings, errors


def contract_name_from_path(source_path: str) -> ContractName:
    basename = posixpath.basename(source_path)
    if basename.endswith(SOURCE_EXTENSION):
        basename = basename[: -len(SOURCE_EXTENSION)]
    return basename


def extract_artifacts(output: CompilerOutput) -> Dict[ContractName, CompiledArtifact]:
    """
    Pulls out one artifact per source file: the contract named after the file.
    Any other contracts emitted for that file (inlined dependencies) are dropped.
    """
    artifacts = OrderedDict()
    for source_path, contracts in (output.get("contracts") or {}).items():
        name = contract_name_from_path(source_path)
        contract_output = contracts.get(name)
        if contract_output is None:
            continue
        bytecode_output = contract_output.get("evm", {}).get("bytecode", {})
        artifacts[name] = CompiledArtifact(
            name=name,
            source_path=source_path,
            abi=contract_output.get("abi", []),
            bytecode=bytecode_output.get("object", ""),
            link_references=bytecode_output.get("linkReferences") or {},
        )
    return artifacts


def _format_diagnostic(diagnostic: Diagnostic) -> str:
    return diagnostic.get("formattedMessage") or diagnostic.get("message") or str(diagnostic)


class Compiler:
    """Compiles flattened sources in a single toolchain invocation."""

    def __init__(
        self,
        optimizer_runs: int = OPTIMIZER_RUNS,
        solc_version: Optional[str] = None,
        compile_standard: Callable[..., CompilerOutput] = solcx_compile,
        get_version: Callable[..., str] = solcx_version,
    ):
        self.optimizer_runs = optimizer_runs
        self.solc_version = solc_version
        self._compile_standard = compile_standard
        self._get_version = get_version
        self._version = None

    @property
    def version(self) -> str:
        """Compiler version as expected by the explorer, e.g. 'v0.4.25+commit.59dbf8f1'."""
        if self._version is None:
            version = self._get_version(self.solc_version)
            self._version = version if version.startswith("v") else f"v{version}"
        return self._version

    def build_input(self, units: FlattenedSources) -> Dict:
        return {
            "language": "Solidity",
            "settings": {
                "optimizer": {"enabled": True, "runs": self.optimizer_runs},
                "outputSelection": OUTPUT_SELECTION,
            },
            "sources": {path: {"content": content} for path, content in units.items()},
        }

    def compile(
        self, units: FlattenedSources
    ) -> Tuple[Dict[ContractName, CompiledArtifact], List[Diagnostic]]:
        print("Compiling contracts...")
        output = self._compile_standard(self.build_input(units), solc_version=self.solc_version)

        diagnostics = output.get("errors") or []
        warnings, errors = partition_diagnostics(diagnostics)
        print(f"Compiled with {len(warnings)} warnings and {len(errors)} errors")
        if errors:
            for error in errors:
                print(_format_diagnostic(error))
            print("\nExiting because of compile errors.")
            raise CompilationError(errors=errors)

        return extract_artifacts(output), diagnostics
