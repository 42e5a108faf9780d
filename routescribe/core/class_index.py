"""
Class Index: in-process stand-in for runtime reflection.

Maps fully-qualified class names to parsed declarations so resolvers can
inspect parents, traits, properties and method bodies of classes other than
the one being documented, without executing any application code.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping

from routescribe.core.errors import SourceParseError
from routescribe.core.syntax import basename
from routescribe.core.unit import ClassDecl, MethodDecl, SourceUnit

logger = logging.getLogger("routescribe.class_index")

DEFAULT_EXCLUDED_DIRS = ("vendor", "node_modules", "storage", "bootstrap", ".git")
MAX_HIERARCHY_DEPTH = 32

# Methods contributed by framework traits that are never in the index
FRAMEWORK_TRAIT_METHODS: dict[str, frozenset[str]] = {
    "dispatchable": frozenset(
        {"dispatch", "dispatchif", "dispatchunless", "dispatchsync", "dispatchnow", "dispatchafterresponse"}
    ),
}


class ClassIndex:
    """FQCN → ClassDecl lookup over a set of parsed PHP sources."""

    def __init__(self, units: Iterable[SourceUnit] = ()) -> None:
        self._classes: dict[str, ClassDecl] = {}
        self._by_short: dict[str, list[ClassDecl]] = {}
        self.root: Path | None = None
        for unit in units:
            self.add_unit(unit)

    @classmethod
    def empty(cls) -> ClassIndex:
        return cls()

    @classmethod
    def from_sources(cls, sources: Mapping[str, str] | Iterable[str]) -> ClassIndex:
        """Build from {path: code} or an iterable of code strings. Unparseable sources are skipped."""
        items = sources.items() if isinstance(sources, Mapping) else (
            (f"<source-{i}>", code) for i, code in enumerate(sources)
        )
        index = cls()
        for path, code in items:
            try:
                index.add_unit(SourceUnit.parse(code, path))
            except SourceParseError as e:
                logger.warning(f"Skipping unparseable source: {e}")
        return index

    @classmethod
    def from_directory(
        cls,
        root: str | Path,
        exclude: Iterable[str] = DEFAULT_EXCLUDED_DIRS,
    ) -> ClassIndex:
        """Parse every .php file under root, skipping excluded directory names."""
        root_path = Path(root)
        excluded = set(exclude)
        index = cls()
        index.root = root_path
        count = 0
        for path in sorted(root_path.rglob("*.php")):
            if excluded.intersection(path.relative_to(root_path).parts):
                continue
            try:
                code = path.read_text(encoding="utf-8", errors="replace")
                index.add_unit(SourceUnit.parse(code, str(path)))
                count += 1
            except (OSError, SourceParseError) as e:
                logger.warning(f"Skipping {path}: {e}")
        logger.info(f"Indexed {len(index)} classes from {count} files under {root_path}")
        return index

    def add_unit(self, unit: SourceUnit) -> None:
        for decl in unit.classes:
            self._classes[decl.fqcn.lower()] = decl
            self._by_short.setdefault(decl.name.lower(), []).append(decl)

    def overlay(self, unit: SourceUnit) -> ClassIndex:
        """A copy that also sees the classes of one extra unit; this index is left untouched."""
        combined = ClassIndex()
        combined.root = self.root
        combined._classes = dict(self._classes)
        combined._by_short = {short: list(decls) for short, decls in self._by_short.items()}
        combined.add_unit(unit)
        return combined

    def __len__(self) -> int:
        return len(self._classes)

    def __contains__(self, fqcn: str) -> bool:
        return fqcn.lstrip("\\").lower() in self._classes

    # ── Lookup ──

    def find(self, fqcn: str | None) -> ClassDecl | None:
        if not fqcn:
            return None
        return self._classes.get(fqcn.lstrip("\\").lower())

    def find_short(self, short_name: str) -> list[ClassDecl]:
        return list(self._by_short.get(short_name.lower(), []))

    def ancestors(self, fqcn: str) -> list[str]:
        """Parent chain (nearest first). The last entry may be an unindexed framework class."""
        chain: list[str] = []
        seen = {fqcn.lower()}
        current = self.find(fqcn)
        while current is not None and current.parent and len(chain) < MAX_HIERARCHY_DEPTH:
            parent = current.parent
            if parent.lower() in seen:
                break
            seen.add(parent.lower())
            chain.append(parent)
            current = self.find(parent)
        return chain

    def is_subclass_of(self, fqcn: str, bases: Iterable[str]) -> bool:
        """True if any ancestor matches a base by FQCN, or by short name when unresolvable."""
        wanted_full = {b.lstrip("\\").lower() for b in bases}
        wanted_short = {basename(b).lower() for b in wanted_full}
        for ancestor in self.ancestors(fqcn):
            lowered = ancestor.lower()
            if lowered in wanted_full:
                return True
            if self.find(ancestor) is None and basename(lowered) in wanted_short:
                return True
        return False

    def traits_of(self, fqcn: str) -> list[str]:
        traits: list[str] = []
        for name in [fqcn, *self.ancestors(fqcn)]:
            decl = self.find(name)
            if decl is not None:
                traits.extend(decl.traits)
        return traits

    def find_method(self, fqcn: str, method: str) -> tuple[ClassDecl, MethodDecl] | None:
        """Locate a method on the class, its ancestors or their traits."""
        for name in [fqcn, *self.ancestors(fqcn)]:
            decl = self.find(name)
            if decl is None:
                continue
            found = decl.method(method)
            if found is not None:
                return decl, found
            for trait in decl.traits:
                trait_decl = self.find(trait)
                if trait_decl is not None and (trait_method := trait_decl.method(method)) is not None:
                    return trait_decl, trait_method
        return None

    def has_method(self, fqcn: str, method: str) -> bool:
        if self.find_method(fqcn, method) is not None:
            return True
        lowered = method.lower()
        return any(
            lowered in FRAMEWORK_TRAIT_METHODS.get(basename(trait).lower(), frozenset())
            for trait in self.traits_of(fqcn)
        )
