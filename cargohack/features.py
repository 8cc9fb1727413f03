"""Cargo feature model and feature-combination generation."""

from __future__ import annotations

import enum
import functools
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

__all__ = [
    "FeatureKind",
    "Feature",
    "Features",
    "feature_powerset",
    "feature_deps",
    "powerset",
    "at_least_one_of_for_package",
]


class FeatureKind(enum.Enum):
    """The kind of a feature; the order of members defines feature ordering."""

    NORMAL = 0
    GROUP = 1
    PATH = 2


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class Feature:
    """A Cargo feature: a plain feature, a group of features, or a dependency feature."""

    kind: FeatureKind
    name: str
    items: tuple[str, ...]
    slash: int = field(default=0)

    @classmethod
    def normal(cls, name: str) -> Feature:
        """A feature of the current crate."""
        return cls(FeatureKind.NORMAL, name, (name,))

    @classmethod
    def group(cls, items: Iterable[str]) -> Feature:
        """Several features treated as one; the name joins them with commas."""
        members = tuple(items)
        return cls(FeatureKind.GROUP, ",".join(members), members)

    @classmethod
    def path(cls, parent: str, name: str) -> Feature:
        """A feature of the dependency ``parent``."""
        full = f"{parent}/{name}"
        return cls(FeatureKind.PATH, full, (full,), len(parent))

    def as_group(self) -> tuple[str, ...]:
        """The feature names this feature stands for."""
        return self.items

    def matches(self, s: str) -> bool:
        """Whether ``s`` is one of the names this feature stands for."""
        return s in self.items

    def matches_recursive(self, s: str, feature_map: Mapping[str, Sequence[str]]) -> bool:
        """Whether ``s`` or any feature enabled by it (transitively) matches."""

        def rec(cur: str, root: str) -> bool:
            for nxt in feature_map.get(cur, ()):
                if nxt != root and (self.matches(nxt) or rec(nxt, root)):
                    return True
            return False

        return self.matches(s) or rec(s, s)

    def _key(self) -> tuple:
        return (self.kind.value, self.name, self.items, self.slash)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, str):
            return self.name == other
        if isinstance(other, Feature):
            return self._key() == other._key()
        return NotImplemented

    def __lt__(self, other: object) -> bool:
        if isinstance(other, Feature):
            return self._key() < other._key()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.name)

    def __str__(self) -> str:
        if self.kind is FeatureKind.GROUP:
            return f"[{self.name}]"
        return self.name

    def __repr__(self) -> str:
        return str(self)


class Features:
    """The features of a package: its own, its implicit optional deps, and deps' features."""

    def __init__(
        self,
        manifest_features: Mapping[str, Sequence[str]],
        optional_deps: Iterable[str] = (),
        deps_features: Iterable[tuple[str, Iterable[str]]] = (),
    ) -> None:
        features = [Feature.normal(name) for name in sorted(manifest_features)]
        referenced = {
            value[len("dep:"):]
            for values in manifest_features.values()
            for value in values
            if value.startswith("dep:")
        }
        self._optional_deps_start = len(features)
        for name in optional_deps:
            # Dependencies explicitly referenced with `dep:` are not implicit features.
            if name in referenced:
                continue
            feature = Feature.normal(name)
            if feature not in features:
                features.append(feature)
        self._deps_features_start = len(features)
        for dep_name, names in deps_features:
            features.extend(Feature.path(dep_name, f) for f in names)
        self._features = features

    def normal(self) -> list[Feature]:
        """Features declared in the manifest."""
        return self._features[: self._optional_deps_start]

    def optional_deps(self) -> list[Feature]:
        """Optional dependencies that act as implicit features."""
        return self._features[self._optional_deps_start : self._deps_features_start]

    def deps_features(self) -> list[Feature]:
        """Features of dependencies, as ``dep/feature`` paths."""
        return self._features[self._deps_features_start :]

    def contains(self, name: str) -> bool:
        """Whether any feature has the given name."""
        return any(f == name for f in self._features)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.contains(name)


def feature_deps(feature_map: Mapping[str, Sequence[str]]) -> dict[str, frozenset[str]]:
    """Map every feature to the set of features it enables transitively."""

    def rec(seen: set[str], cur: str, root: str) -> None:
        for nxt in feature_map.get(cur, ()):
            # `dep:` entries are not features and cannot enable features of this crate.
            if nxt.startswith("dep:"):
                continue
            if nxt != root and nxt not in seen:
                seen.add(nxt)
                rec(seen, nxt, root)

    result: dict[str, frozenset[str]] = {}
    for feat in sorted(feature_map):
        seen: set[str] = set()
        rec(seen, feat, feat)
        result[feat] = frozenset(seen)
    return result


def powerset(items: Iterable, depth: int | None = None) -> list[list]:
    """All subsets of ``items`` in insertion order, at most ``depth`` elements each."""
    acc: list[list] = [[]]
    for elem in items:
        extended = (cur + [elem] for cur in list(acc))
        if depth is not None:
            acc.extend(s for s in extended if len(s) <= depth)
        else:
            acc.extend(extended)
    return acc


def at_least_one_of_for_package(
    at_least_one_of: Sequence[Feature],
    package_features_flattened: Mapping[str, Iterable[str]],
) -> list[frozenset[str]]:
    """For each required group, the package features that would enable one of its members."""
    if not at_least_one_of:
        return []

    enabled_by: dict[str, set[str]] = {}
    for source in sorted(package_features_flattened):
        enabled_by.setdefault(source, set()).add(source)
        for target in package_features_flattened[source]:
            enabled_by.setdefault(target, set()).add(source)

    result = []
    for required in at_least_one_of:
        merged = frozenset(
            source
            for name in required.as_group()
            for source in enabled_by.get(name, ())
        )
        if merged:
            result.append(merged)
    return result


def feature_powerset(
    features: Iterable[Feature],
    depth: int | None,
    at_least_one_of: Sequence[Feature],
    mutually_exclusive_features: Sequence[Feature],
    package_features: Mapping[str, Sequence[str]],
) -> list[list[Feature]]:
    """Non-empty feature combinations, skipping redundant and forbidden ones."""
    deps_map = feature_deps(package_features)
    required_sets = at_least_one_of_for_package(at_least_one_of, deps_map)

    def redundant(fs: list[Feature]) -> bool:
        for f in fs:
            for name in f.as_group():
                deps = deps_map.get(name)
                if deps is None:
                    continue
                if any(all(n in deps for n in other.as_group()) for other in fs):
                    return True
        return False

    def has_required(fs: list[Feature]) -> bool:
        return all(
            any(name in required for f in fs for name in f.as_group())
            for required in required_sets
        )

    def exclusive_ok(fs: list[Feature]) -> bool:
        for group in mutually_exclusive_features:
            count = 0
            for f in fs:
                for name in f.as_group():
                    if group.matches_recursive(name, package_features):
                        count += 1
                        if count > 1:
                            return False
        return True

    # The first subset of a powerset is always empty.
    return [
        fs
        for fs in powerset(features, depth)[1:]
        if not redundant(fs) and has_required(fs) and exclusive_ok(fs)
    ]