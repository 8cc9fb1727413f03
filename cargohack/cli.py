"""Command-line parsing for ``cargo hack``."""

from __future__ import annotations

import enum
import logging
import os
import subprocess
import sys
from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import NamedTuple

from .features import Feature
from .help import (
    PACKAGE_NAME,
    PACKAGE_VERSION,
    Help,
    UsageError,
    conflicts,
    mini_usage,
    multi_arg,
    removed_flags,
    requires,
    similar_flags,
)

__all__ = ["Args", "parse_args", "parse_grouped_features"]

logger = logging.getLogger(__name__)

SUBCOMMAND = "hack"

_EACH_OR_POWERSET = ("--each-feature", "--feature-powerset")

# Long flags that take no value, mapped to the attribute they set.
_BOOL_FLAGS = {
    "workspace": "workspace",
    "all": "workspace",
    "no-dev-deps": "no_dev_deps",
    "remove-dev-deps": "remove_dev_deps",
    "each-feature": "each_feature",
    "feature-powerset": "feature_powerset",
    "no-private": "no_private",
    "ignore-private": "ignore_private",
    "exclude-no-default-features": "exclude_no_default_features",
    "exclude-all-features": "exclude_all_features",
    "include-deps-features": "include_deps_features",
    "clean-per-run": "clean_per_run",
    "clean-per-version": "clean_per_version",
    "keep-going": "keep_going",
    "print-command-list": "print_command_list",
    "no-manifest-path": "no_manifest_path",
    "locked": "locked",
    "ignore-unknown-features": "ignore_unknown_features",
    "rust-version": "rust_version",
}

# Options that take exactly one value and may be given only once.
_SINGLE_OPTS = {
    "manifest-path": "manifest_path",
    "depth": "depth",
    "version-range": "version_range",
    "version-step": "version_step",
    "log-group": "log_group",
}

# Options that may be repeated, each occurrence adding one value.
_LIST_OPTS = {
    "package": "package",
    "exclude": "exclude",
    "group-features": "group_features",
    "mutually-exclusive-features": "mutually_exclusive_features",
    "at-least-one-of": "at_least_one_of",
}

# Options whose value is a space or comma separated list.
_MULTI_OPTS = {
    "features": "features",
    "skip": "exclude_features",
    "exclude-features": "exclude_features",
    "include-features": "include_features",
}

_SHORT_ALIASES = {"p": "package", "F": "features", "v": "verbose"}

_DEV_TARGET_FLAGS = frozenset(
    {"--example", "--examples", "--test", "--tests", "--bench", "--benches", "--all-targets"}
)


@dataclass
class Args:
    """The parsed command line."""

    leading_args: list[str]
    trailing_args: list[str]
    subcommand: str | None
    manifest_path: str | None
    no_manifest_path: bool
    locked: bool
    package: list[str]
    exclude: list[str]
    workspace: bool
    each_feature: bool
    feature_powerset: bool
    no_dev_deps: bool
    remove_dev_deps: bool
    no_private: bool
    ignore_private: bool
    ignore_unknown_features: bool
    clean_per_run: bool
    clean_per_version: bool
    keep_going: bool
    print_command_list: bool
    # The raw `--version-range` specification, if given.
    version_range: str | None
    rust_version: bool
    version_step: int
    # None means the log grouping is detected from the environment.
    log_group: str | None
    optional_deps: list[str] | None
    include_features: list[Feature]
    include_deps_features: bool
    exclude_features: list[str]
    exclude_no_default_features: bool
    exclude_all_features: bool
    depth: int | None
    group_features: list[Feature]
    mutually_exclusive_features: list[Feature]
    at_least_one_of: list[Feature]
    features: list[str]
    target: list[str]
    no_default_features: bool
    color: str | None
    verbose: int


class _Kind(enum.Enum):
    LONG = "long"
    SHORT = "short"
    VALUE = "value"


class _Arg(NamedTuple):
    kind: _Kind
    text: str

    def flag(self) -> str:
        return f"--{self.text}" if self.kind is _Kind.LONG else f"-{self.text}"


class _Lexer:
    """Splits arguments into long flags, clustered short flags and values."""

    def __init__(self, args: Iterable[str]) -> None:
        self._args = deque(args)
        self._attached: str | None = None
        self._cluster = ""
        self._current = ""

    def next(self) -> _Arg | None:
        if self._attached is not None:
            raise UsageError(
                f"unexpected argument for option '{self._current}': \"{self._attached}\""
            )
        if self._cluster:
            if self._cluster.startswith("="):
                raise UsageError(
                    f"unexpected argument for option '{self._current}': \"{self._cluster[1:]}\""
                )
            ch, self._cluster = self._cluster[0], self._cluster[1:]
            self._current = f"-{ch}"
            return _Arg(_Kind.SHORT, ch)
        if not self._args:
            return None
        raw = self._args.popleft()
        if raw.startswith("--"):
            name, sep, value = raw[2:].partition("=")
            self._attached = value if sep else None
            self._current = f"--{name}"
            return _Arg(_Kind.LONG, name)
        if raw.startswith("-") and raw != "-":
            self._cluster = raw[2:]
            self._current = raw[:2]
            return _Arg(_Kind.SHORT, raw[1])
        return _Arg(_Kind.VALUE, raw)

    def optional_value(self) -> str | None:
        if self._attached is not None:
            value, self._attached = self._attached, None
            return value
        if self._cluster:
            value = self._cluster[1:] if self._cluster.startswith("=") else self._cluster
            self._cluster = ""
            return value
        return None

    def value(self) -> str:
        value = self.optional_value()
        if value is not None:
            return value
        if not self._args:
            raise UsageError(f"missing argument for option '{self._current}'")
        return self._args.popleft()


@dataclass
class _Raw:
    cargo_args: list[str] = field(default_factory=list)
    subcommand: str | None = None
    manifest_path: str | None = None
    color: str | None = None
    depth: str | None = None
    version_range: str | None = None
    version_step: str | None = None
    log_group: str | None = None
    package: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    group_features: list[str] = field(default_factory=list)
    mutually_exclusive_features: list[str] = field(default_factory=list)
    at_least_one_of: list[str] = field(default_factory=list)
    features: list[str] = field(default_factory=list)
    exclude_features: list[str] = field(default_factory=list)
    include_features: list[str] = field(default_factory=list)
    target: set[str] = field(default_factory=set)
    optional_deps: list[str] | None = None
    workspace: bool = False
    no_dev_deps: bool = False
    remove_dev_deps: bool = False
    each_feature: bool = False
    feature_powerset: bool = False
    no_private: bool = False
    ignore_private: bool = False
    exclude_no_default_features: bool = False
    exclude_all_features: bool = False
    include_deps_features: bool = False
    clean_per_run: bool = False
    clean_per_version: bool = False
    keep_going: bool = False
    print_command_list: bool = False
    no_manifest_path: bool = False
    locked: bool = False
    ignore_unknown_features: bool = False
    rust_version: bool = False
    no_default_features: bool = False
    all_features: bool = False
    disable_log_grouping: bool = False
    verbose: int = 0


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        return value[1:-1]
    return value


def _split_list(value: str) -> list[str]:
    value = _unquote(value)
    sep = "," if "," in value else " "
    return [part for part in value.split(sep) if part]


def _print_and_exit(text: str) -> None:
    print(text)
    raise SystemExit(0)


def _scan(args: Sequence[str]) -> _Raw:
    raw = _Raw()
    lexer = _Lexer(args)
    pending: _Arg | None = None
    while True:
        if pending is not None:
            arg, pending = pending, None
        else:
            arg = lexer.next()
            if arg is None:
                break

        if arg.kind is _Kind.LONG:
            key: str | None = arg.text
        elif arg.kind is _Kind.SHORT:
            key = _SHORT_ALIASES.get(arg.text)
        else:
            key = None

        if key == "color":
            if raw.color is not None:
                multi_arg(arg.flag(), raw.subcommand)
            raw.cargo_args.append(arg.flag())
            raw.color = lexer.value()
            raw.cargo_args.append(raw.color)
        elif key == "target":
            raw.target.add(lexer.value())
        elif key in _SINGLE_OPTS:
            attr = _SINGLE_OPTS[key]
            if getattr(raw, attr) is not None:
                multi_arg(arg.flag(), raw.subcommand)
            setattr(raw, attr, lexer.value())
        elif key in _LIST_OPTS:
            getattr(raw, _LIST_OPTS[key]).append(lexer.value())
        elif key in _MULTI_OPTS:
            getattr(raw, _MULTI_OPTS[key]).extend(_split_list(lexer.value()))
        elif key == "optional-deps":
            if raw.optional_deps is not None:
                multi_arg(arg.flag(), raw.subcommand)
            raw.optional_deps = []
            value = lexer.optional_value()
            if value is None:
                following = lexer.next()
                if following is None:
                    break
                if following.kind is not _Kind.VALUE:
                    pending = following
                    continue
                value = following.text
            value = _unquote(value)
            raw.optional_deps.extend(value.split("," if "," in value else " "))
        elif key in _BOOL_FLAGS:
            attr = _BOOL_FLAGS[key]
            if getattr(raw, attr):
                multi_arg(arg.flag(), raw.subcommand)
            setattr(raw, attr, True)
        elif key == "verbose":
            raw.verbose += 1
        elif key == "no-default-features":
            raw.no_default_features = True
            raw.cargo_args.append("--no-default-features")
        elif key == "all-features":
            raw.all_features = True
            raw.cargo_args.append("--all-features")
        elif raw.subcommand is None and arg in (
            (_Kind.SHORT, "h"),
            (_Kind.LONG, "help"),
            (_Kind.SHORT, "V"),
            (_Kind.LONG, "version"),
        ):
            if arg == (_Kind.SHORT, "h"):
                _print_and_exit(Help.short().render())
            elif arg == (_Kind.LONG, "help"):
                _print_and_exit(Help.long().render())
            else:
                _print_and_exit(f"{PACKAGE_NAME} {PACKAGE_VERSION}")
        elif arg.kind is _Kind.LONG:
            removed_flags(arg.text)
            similar_flags(arg.text, raw.subcommand)
            if arg.text == "message-format":
                raw.disable_log_grouping = True
            value = lexer.optional_value()
            raw.cargo_args.append(arg.flag() if value is None else f"{arg.flag()}={value}")
        elif arg.kind is _Kind.SHORT:
            # Known short flags without a value keep combined short flags intact.
            value = None if arg.text in "nqr" else lexer.optional_value()
            raw.cargo_args.append(arg.flag() if value is None else f"{arg.flag()}{value}")
        else:
            if raw.subcommand is None:
                raw.subcommand = arg.text
            raw.cargo_args.append(arg.text)
    return raw


def _parse_uint(text: str, flag: str, limit: int | None = None) -> int:
    if not (text.isascii() and text.isdigit()):
        raise UsageError(f"invalid value `{text}` for {flag}: expected a non-negative integer")
    value = int(text)
    if limit is not None and value > limit:
        raise UsageError(f"invalid value `{text}` for {flag}: number too large")
    return value


def parse_grouped_features(groups: Iterable[str], option_name: str) -> list[Feature]:
    """Parse each space or comma separated list into a feature group."""
    result = []
    for group in groups:
        if "," in group:
            parts = group.split(",")
        elif " " in group:
            parts = group.split(" ")
        else:
            raise UsageError(
                f"--{option_name} requires a list of two or more features separated by space "
                "or comma"
            )
        result.append(Feature.group(parts))
    return result


def _check_requirements(raw: _Raw) -> None:
    if raw.exclude and not raw.workspace:
        requires("--exclude", ["--workspace"])
    if raw.ignore_unknown_features:
        if not (raw.features or raw.include_features or raw.group_features):
            requires(
                "--ignore-unknown-features",
                ["--features", "--include-features", "--group-features"],
            )
        if raw.include_features:
            logger.warning(
                "--ignore-unknown-features for --include-features is not fully implemented "
                "and may not work as intended"
            )
    if not raw.each_feature and not raw.feature_powerset:
        if raw.optional_deps is not None:
            requires("--optional-deps", _EACH_OR_POWERSET)
        elif raw.exclude_features:
            requires("--exclude-features (--skip)", _EACH_OR_POWERSET)
        elif raw.exclude_no_default_features:
            requires("--exclude-no-default-features", _EACH_OR_POWERSET)
        elif raw.exclude_all_features:
            requires("--exclude-all-features", _EACH_OR_POWERSET)
        elif raw.include_features:
            requires("--include-features", _EACH_OR_POWERSET)
        elif raw.include_deps_features:
            requires("--include-deps-features", _EACH_OR_POWERSET)
    if not raw.feature_powerset:
        if raw.depth is not None:
            requires("--depth", ["--feature-powerset"])
        elif raw.group_features:
            requires("--group-features", ["--feature-powerset"])
        elif raw.mutually_exclusive_features:
            requires("--mutually-exclusive-features", ["--feature-powerset"])
        elif raw.at_least_one_of:
            requires("--at-least-one-of", ["--feature-powerset"])


def _check_conflicts(raw: _Raw) -> None:
    sub = raw.subcommand
    if sub in ("test", "bench"):
        if raw.remove_dev_deps:
            raise UsageError(f"--remove-dev-deps may not be used together with {sub} subcommand")
        if raw.no_dev_deps:
            raise UsageError(f"--no-dev-deps may not be used together with {sub} subcommand")
    elif sub == "install":
        # Subcommands without --manifest-path cannot be driven per package.
        raise UsageError(f"cargo-hack may not be used together with {sub} subcommand")

    dev_flag = next(
        (
            a
            for a in raw.cargo_args
            if a in _DEV_TARGET_FLAGS or a.startswith(("--example=", "--test=", "--bench="))
        ),
        None,
    )
    if dev_flag is not None:
        if raw.remove_dev_deps:
            conflicts("--remove-dev-deps", dev_flag)
        elif raw.no_dev_deps:
            conflicts("--no-dev-deps", dev_flag)

    if raw.include_features:
        if raw.optional_deps is not None:
            conflicts("--include-features", "--optional-deps")
        elif raw.include_deps_features:
            conflicts("--include-features", "--include-deps-features")

    if raw.no_dev_deps and raw.remove_dev_deps:
        conflicts("--no-dev-deps", "--remove-dev-deps")
    if raw.each_feature and raw.feature_powerset:
        conflicts("--each-feature", "--feature-powerset")
    if raw.all_features:
        if raw.each_feature:
            conflicts("--all-features", "--each-feature")
        elif raw.feature_powerset:
            conflicts("--all-features", "--feature-powerset")
    if raw.no_default_features:
        if raw.each_feature:
            conflicts("--no-default-features", "--each-feature")
        elif raw.feature_powerset:
            conflicts("--no-default-features", "--feature-powerset")


def _check_excluded(
    raw: _Raw, group_features: list[Feature], mutually_exclusive: list[Feature]
) -> None:
    for f in raw.exclude_features:
        if f in raw.features:
            other = "--features"
        elif raw.optional_deps is not None and f in raw.optional_deps:
            other = "--optional-deps"
        elif any(g.matches(f) for g in group_features):
            other = "--group-features"
        elif any(g.matches(f) for g in mutually_exclusive):
            other = "--mutually-exclusive-features"
        elif f in raw.include_features:
            other = "--include-features"
        else:
            continue
        raise UsageError(f"feature `{f}` specified by both --exclude-features and {other}")


def _default_cargo() -> str:
    return os.environ.get("CARGO_HACK_CARGO_SRC") or os.environ.get("CARGO") or "cargo"


def parse_args(argv: Sequence[str] | None = None, cargo: str | None = None) -> Args:
    """Parse ``argv`` (the arguments after the program name, starting with ``hack``).

    Prints help or version and raises ``SystemExit(0)`` when asked to.
    """
    if argv is None:
        argv = sys.argv[1:]
    if cargo is None:
        cargo = _default_cargo()
    argv = list(argv)
    if not argv:
        raise UsageError(f"expected subcommand '{SUBCOMMAND}'")
    if argv[0] != SUBCOMMAND:
        raise UsageError(f"expected subcommand '{SUBCOMMAND}', found argument '{argv[0]}'")
    rest = argv[1:]
    if "--" in rest:
        split = rest.index("--")
        args, trailing = rest[:split], rest[split + 1:]
    else:
        args, trailing = rest, []

    raw = _scan(args)
    _check_requirements(raw)

    depth = _parse_uint(raw.depth, "--depth") if raw.depth is not None else None
    group_features = parse_grouped_features(raw.group_features, "group-features")
    mutually_exclusive = parse_grouped_features(
        raw.mutually_exclusive_features, "mutually-exclusive-features"
    )
    at_least_one_of = parse_grouped_features(raw.at_least_one_of, "at-least-one-of")

    _check_conflicts(raw)
    _check_excluded(raw, group_features, mutually_exclusive)

    if raw.subcommand is None:
        if "--list" in raw.cargo_args:
            subprocess.run([cargo, "--list"], check=True)
            raise SystemExit(0)
        if not raw.remove_dev_deps:
            mini_usage("no subcommand or valid flag specified")

    if raw.version_range is not None and raw.rust_version:
        conflicts("--version-range", "--rust-version")
    if raw.version_range is None and not raw.rust_version:
        if raw.version_step is not None:
            requires("--version-step", ["--version-range"])
        if raw.clean_per_version:
            requires("--clean-per-version", ["--version-range"])

    version_step = (
        _parse_uint(raw.version_step, "--version-step", 0xFFFF)
        if raw.version_step is not None
        else 1
    )
    if version_step == 0:
        raise UsageError("--version-step cannot be zero")

    if raw.log_group is not None:
        log_group: str | None = raw.log_group
    elif raw.disable_log_grouping:
        log_group = "none"
    else:
        log_group = None

    if raw.no_dev_deps or raw.no_private:
        if raw.no_dev_deps and raw.no_private:
            subject = "--no-dev-deps and --no-private modify"
        elif raw.no_dev_deps:
            subject = "--no-dev-deps modifies"
        else:
            subject = "--no-private modifies"
        logger.info(
            "%s real `Cargo.toml` while cargo-hack is running and restores it when finished",
            subject,
        )

    exclude_no_default_features = (
        raw.exclude_no_default_features or bool(at_least_one_of) or bool(raw.include_features)
    )
    exclude_all_features = (
        raw.exclude_all_features
        or bool(raw.include_features)
        or bool(raw.exclude_features)
        or bool(mutually_exclusive)
    )
    exclude_features = raw.exclude_features + raw.features

    cargo_args = list(raw.cargo_args)
    # With `-vv` or more, one fewer `-v` is passed on to cargo.
    if raw.verbose > 1:
        cargo_args.append("-" + "v" * (raw.verbose - 1))

    return Args(
        leading_args=cargo_args,
        trailing_args=trailing,
        subcommand=raw.subcommand,
        manifest_path=raw.manifest_path,
        no_manifest_path=raw.no_manifest_path,
        locked=raw.locked,
        package=raw.package,
        exclude=raw.exclude,
        workspace=raw.workspace,
        each_feature=raw.each_feature,
        feature_powerset=raw.feature_powerset,
        no_dev_deps=raw.no_dev_deps,
        remove_dev_deps=raw.remove_dev_deps,
        no_private=raw.no_private,
        ignore_private=raw.ignore_private or raw.no_private,
        ignore_unknown_features=raw.ignore_unknown_features,
        clean_per_run=raw.clean_per_run,
        clean_per_version=raw.clean_per_version,
        keep_going=raw.keep_going,
        print_command_list=raw.print_command_list,
        version_range=raw.version_range,
        rust_version=raw.rust_version,
        version_step=version_step,
        log_group=log_group,
        optional_deps=raw.optional_deps,
        include_features=[Feature.normal(f) for f in raw.include_features],
        include_deps_features=raw.include_deps_features,
        exclude_features=exclude_features,
        exclude_no_default_features=exclude_no_default_features,
        exclude_all_features=exclude_all_features,
        depth=depth,
        group_features=group_features,
        mutually_exclusive_features=mutually_exclusive,
        at_least_one_of=at_least_one_of,
        features=raw.features,
        target=sorted(raw.target),
        no_default_features=raw.no_default_features,
        color=raw.color,
        verbose=raw.verbose,
    )