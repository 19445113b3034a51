"""Package discovery: find every package.json under a root and order them.

Packages are linked by "file:" dependencies. A link from A to B means B
must be installed and built before A, so the graph's order always lists B
first.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterator
from pathlib import Path

from pydantic import ValidationError

from .console import Log
from .errors import ManifestError, NotAProjectRootError
from .filestore import FileStore, LocalFileStore
from .graph import topo_sort
from .models import DependencyGraph, Manifest, Package, ToolSettings


def discover(
    root: Path,
    *,
    store: FileStore | None = None,
    settings: ToolSettings | None = None,
    log: Log | None = None,
) -> DependencyGraph:
    """Scan ``root`` and build the dependency graph of its packages.

    Args:
        root: Project root; must contain a package.json.
        store: File access; defaults to the local file system.
        settings: Manifest name and excluded directories.
        log: If given, discovered packages are listed at debug level.

    Returns:
        The DependencyGraph with its execution order computed.

    Raises:
        NotAProjectRootError: If ``root`` has no package.json.
        ManifestError: If any package.json is unreadable or malformed.
        CycleDetectedError: If the file: links form a cycle.
    """
    store = store or LocalFileStore()
    settings = settings or ToolSettings()
    root = Path(os.path.realpath(root))

    if not store.exists(root / settings.manifest_name):
        raise NotAProjectRootError(root)

    # First pass: parse every manifest
    packages: dict[Path, Package] = {}
    for pkg_dir in find_package_dirs(root, settings):
        manifest = load_manifest(pkg_dir / settings.manifest_name, store)
        packages[pkg_dir] = Package(path=pkg_dir, manifest=manifest)

    # Second pass: turn file: links between discovered packages into edges
    edges: list[tuple[Path, Path]] = []
    for pkg_dir, package in packages.items():
        for link in package.manifest.local_links().values():
            target = Path(os.path.realpath(pkg_dir / link))
            # Links that leave the discovered set are ignored
            if target in packages and (target, pkg_dir) not in edges:
                edges.append((target, pkg_dir))

    order = topo_sort(list(packages), edges)

    if log is not None:
        dependencies: dict[Path, list[str]] = {path: [] for path in packages}
        for dep, dependent in edges:
            dependencies[dependent].append(packages[dep].name)
        for path in order:
            deps = dependencies[path]
            arrow = f" → [{', '.join(deps)}]" if deps else ""
            log.debug(f"  {packages[path].name} ({path}){arrow}")

    return DependencyGraph(
        packages=packages, edges=edges, root=packages.get(root), order=order
    )


def find_package_dirs(root: Path, settings: ToolSettings) -> Iterator[Path]:
    """Yield the real path of every directory under ``root`` with a manifest.

    Directories are visited top-down in sorted order, so the root comes
    first and the sequence is stable for an unchanged tree. Excluded
    directories (dependency caches, scratch, VCS metadata) are pruned at any
    depth. Symlinked directories are followed once; a directory reached a
    second time through another link is skipped.
    """
    visited: set[Path] = set()
    for dirpath, dirnames, filenames in os.walk(root, followlinks=True):
        real = Path(os.path.realpath(dirpath))
        if real in visited:
            dirnames[:] = []
            continue
        visited.add(real)
        dirnames[:] = sorted(d for d in dirnames if d not in settings.excluded_dirs)
        if settings.manifest_name in filenames:
            yield real


def load_manifest(path: Path, store: FileStore) -> Manifest:
    """Read and validate one package.json.

    A file containing only whitespace counts as an empty manifest, which is
    enough to mark a project root.

    Raises:
        ManifestError: Naming ``path`` if it cannot be read or parsed.
    """
    try:
        text = store.read_text(path)
    except OSError as exc:
        raise ManifestError(path, exc.strerror or str(exc)) from exc
    except UnicodeDecodeError as exc:
        raise ManifestError(path, f"not valid UTF-8 ({exc.reason})") from exc

    if not text.strip():
        return Manifest()

    try:
        content = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestError(path, f"invalid JSON ({exc})") from exc

    try:
        return Manifest.model_validate(content)
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ManifestError(path, errors) from exc
