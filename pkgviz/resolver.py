from __future__ import annotations

import json
import logging
import os
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple

from .errors import ResolutionError
from .extractor import parse_imports

__all__ = [
    "PackageListing",
    "PackageResolver",
    "ResolverConfig",
    "GoListResolver",
    "ModuleResolver",
    "make_resolver",
]

logger = logging.getLogger(__name__)

_MODULE_DIRECTIVE = re.compile(r"^\s*module\s+(\"[^\"]+\"|\S+)", re.MULTILINE)


@dataclass(frozen=True)
class PackageListing:
    """
    Everything the walker needs to know about one resolved package.

    `source_files` are file names relative to `directory`, in a fixed order;
    `imports` are the package's direct import paths.
    """

    directory: Path
    import_path: str
    source_files: Tuple[str, ...]
    imports: Tuple[str, ...]


class PackageResolver(Protocol):
    def resolve(self, package: str) -> PackageListing:
        """Resolve a package identifier or raise ResolutionError."""
        ...


@dataclass
class ResolverConfig:
    """
    Configuration for package resolution.

    - go_binary   : executable used for `go list` (ignored with module_root)
    - module_root : resolve offline against the go.mod found in this directory
    - env         : extra environment variables for the `go` process
    """

    go_binary: str = "go"
    module_root: Optional[Path] = None
    env: Dict[str, str] = field(default_factory=dict)


class GoListResolver:
    """Resolves packages through the Go toolchain's `go list -json`."""

    def __init__(self, go_binary: str = "go", env: Optional[Dict[str, str]] = None, cwd: Optional[Path] = None) -> None:
        self.go_binary = go_binary
        self.env = dict(env or {})
        self.cwd = cwd

    def resolve(self, package: str) -> PackageListing:
        cmd = [self.go_binary, "list", "-json", package]
        logger.debug("running %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                cwd=str(self.cwd) if self.cwd else None,
                env={**os.environ, **self.env},
                check=False,
                text=True,
                capture_output=True,
            )
        except FileNotFoundError as exc:
            raise ResolutionError(f"Go executable not found: {self.go_binary}") from exc

        if proc.returncode != 0:
            raise ResolutionError(
                f"go list failed for {package!r} (exit status {proc.returncode})",
                stderr=proc.stderr,
            )
        try:
            data = json.loads(proc.stdout)
        except json.JSONDecodeError as exc:
            raise ResolutionError(f"go list returned invalid JSON for {package!r}: {exc}", stderr=proc.stderr) from exc

        error = data.get("Error")
        if error:
            message = error.get("Err", "unknown error") if isinstance(error, dict) else str(error)
            raise ResolutionError(f"Cannot resolve package {package!r}: {message}", stderr=proc.stderr)

        return PackageListing(
            directory=Path(data["Dir"]),
            import_path=data["ImportPath"],
            source_files=tuple(data.get("GoFiles", []) + data.get("CgoFiles", [])),
            imports=tuple(data.get("Imports", [])),
        )


class ModuleResolver:
    """
    Resolves packages of a single Go module straight from the file system.

    No Go toolchain is needed: the module path comes from go.mod, a package
    is a directory beneath the module root, and its imports are read from
    the import declarations of its (non-test) source files.
    """

    def __init__(self, module_root: Path) -> None:
        self.module_root = Path(module_root).resolve()
        self.module_path = self._read_module_path()

    def _read_module_path(self) -> str:
        go_mod = self.module_root / "go.mod"
        try:
            text = go_mod.read_text(encoding="utf-8")
        except OSError as exc:
            raise ResolutionError(f"Cannot read {go_mod}: {exc}") from exc
        match = _MODULE_DIRECTIVE.search(text)
        if match is None:
            raise ResolutionError(f"No module directive in {go_mod}")
        return match.group(1).strip('"')

    def _locate(self, package: str) -> Tuple[Path, str]:
        if package in (".", "./") or package.startswith("./"):
            relative = package[2:].strip("/")
        elif package == self.module_path:
            relative = ""
        elif package.startswith(self.module_path + "/"):
            relative = package[len(self.module_path) + 1 :]
        else:
            raise ResolutionError(f"Package {package!r} is not in module {self.module_path}")

        directory = self.module_root / relative if relative else self.module_root
        import_path = f"{self.module_path}/{relative}" if relative else self.module_path
        return directory, import_path

    def resolve(self, package: str) -> PackageListing:
        directory, import_path = self._locate(package)
        if not directory.is_dir():
            raise ResolutionError(f"Cannot find package {import_path!r} in {directory}")

        source_files = sorted(
            p.name for p in directory.glob("*.go") if p.is_file() and not p.name.endswith("_test.go")
        )
        if not source_files:
            raise ResolutionError(f"No Go files in {directory}")

        imports = set()
        for name in source_files:
            path = directory / name
            try:
                source = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise ResolutionError(f"Cannot read source file {path}: {exc}") from exc
            imports.update(parse_imports(source, str(path)))

        logger.debug("resolved %s to %s (%d files)", import_path, directory, len(source_files))
        return PackageListing(
            directory=directory,
            import_path=import_path,
            source_files=tuple(source_files),
            imports=tuple(sorted(imports)),
        )


def make_resolver(config: Optional[ResolverConfig] = None) -> PackageResolver:
    cfg = config or ResolverConfig()
    if cfg.module_root is not None:
        return ModuleResolver(cfg.module_root)
    return GoListResolver(cfg.go_binary, cfg.env)
