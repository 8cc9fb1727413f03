"""Help text and the error messages of command-line usage."""

from __future__ import annotations

from dataclasses import dataclass
from typing import NoReturn

__all__ = [
    "UsageError",
    "HelpEntry",
    "Help",
    "HELP",
    "find_help",
    "removed_flags",
    "similar_flags",
    "multi_arg",
    "requires",
    "conflicts",
    "mini_usage",
]

PACKAGE_NAME = "cargo-hack"
PACKAGE_VERSION = "0.6.28"
PACKAGE_DESCRIPTION = (
    "Cargo subcommand to provide various options useful for testing and continuous integration."
)
MAX_TERM_WIDTH = 100

_EACH_OR_POWERSET = (
    "This flag can only be used together with either --each-feature flag or --feature-powerset "
    "flag."
)


class UsageError(Exception):
    """The command line was used in a way that is not allowed."""


@dataclass(frozen=True)
class HelpEntry:
    """One option in the help text."""

    short: str
    long: str
    value_name: str
    description: str
    details: tuple[str, ...] = ()


HELP: tuple[HelpEntry, ...] = (
    HelpEntry("-p", "--package", "<SPEC>...", "Package(s) to check"),
    HelpEntry("", "--all", "", "Alias for --workspace"),
    HelpEntry("", "--workspace", "", "Perform command for all packages in the workspace"),
    HelpEntry(
        "", "--exclude", "<SPEC>...", "Exclude packages from the check",
        ("This flag can only be used together with --workspace",),
    ),
    HelpEntry("", "--manifest-path", "<PATH>", "Path to Cargo.toml"),
    HelpEntry("", "--locked", "", "Require Cargo.lock is up to date"),
    HelpEntry(
        "-F", "--features", "<FEATURES>...",
        "Space or comma separated list of features to activate",
    ),
    HelpEntry(
        "", "--each-feature", "", "Perform for each feature of the package",
        (
            "This also includes runs with just --no-default-features flag, and default features.",
            "When this flag is not used together with --exclude-features (--skip) and "
            "--include-features and there are multiple features, this also includes runs with "
            "just --all-features flag.",
        ),
    ),
    HelpEntry(
        "", "--feature-powerset", "", "Perform for the feature powerset of the package",
        (
            "This also includes runs with just --no-default-features flag, and default features.",
            "When this flag is used together with --depth or namespaced features "
            "(-Z namespaced-features) and not used together with --exclude-features (--skip) and "
            "--include-features and there are multiple features, this also includes runs with "
            "just --all-features flag.",
        ),
    ),
    HelpEntry(
        "", "--optional-deps", "[DEPS]...", "Use optional dependencies as features",
        (
            "If DEPS are not specified, all optional dependencies are considered as features.",
            _EACH_OR_POWERSET,
        ),
    ),
    HelpEntry("", "--skip", "<FEATURES>...", "Alias for --exclude-features"),
    HelpEntry(
        "", "--exclude-features", "<FEATURES>...",
        "Space or comma separated list of features to exclude",
        (
            "To exclude run of default feature, using value `--exclude-features default`.",
            "To exclude run of just --no-default-features flag, using "
            "--exclude-no-default-features flag.",
            "To exclude run of just --all-features flag, using --exclude-all-features flag.",
            _EACH_OR_POWERSET,
        ),
    ),
    HelpEntry(
        "", "--exclude-no-default-features", "",
        "Exclude run of just --no-default-features flag",
        (_EACH_OR_POWERSET,),
    ),
    HelpEntry(
        "", "--exclude-all-features", "", "Exclude run of just --all-features flag",
        (_EACH_OR_POWERSET,),
    ),
    HelpEntry(
        "", "--depth", "<NUM>",
        "Specify a max number of simultaneous feature flags of --feature-powerset",
        (
            "If NUM is set to 1, --feature-powerset is equivalent to --each-feature.",
            "This flag can only be used together with --feature-powerset flag.",
        ),
    ),
    HelpEntry(
        "", "--group-features", "<FEATURES>...",
        "Space or comma separated list of features to group",
        (
            "This treats the specified features as if it were a single feature.",
            "To specify multiple groups, use this option multiple times: `--group-features a,b "
            "--group-features c,d`",
            "This flag can only be used together with --feature-powerset flag.",
        ),
    ),
    HelpEntry(
        "", "--mutually-exclusive-features", "<FEATURES>...",
        "Space or comma separated list of features to not use together",
        (
            "To specify multiple groups, use this option multiple times: "
            "`--mutually-exclusive-features a,b --mutually-exclusive-features c,d`",
            "This flag can only be used together with --feature-powerset flag.",
        ),
    ),
    HelpEntry(
        "", "--at-least-one-of", "<FEATURES>...",
        "Space or comma separated list of features. Skips sets of features that don't enable "
        "any of the features listed",
        (
            "To specify multiple groups, use this option multiple times: `--at-least-one-of a,b "
            "--at-least-one-of c,d`",
            "This flag can only be used together with --feature-powerset flag.",
        ),
    ),
    HelpEntry(
        "", "--include-features", "<FEATURES>...",
        "Include only the specified features in the feature combinations instead of package "
        "features",
        (
            "This flag can only be used together with either --each-feature flag or "
            "--feature-powerset flag.",
        ),
    ),
    HelpEntry(
        "", "--no-dev-deps", "", "Perform without dev-dependencies",
        (
            "Note that this flag removes dev-dependencies from real `Cargo.toml` while "
            "cargo-hack is running and restores it when finished.",
        ),
    ),
    HelpEntry(
        "", "--remove-dev-deps", "",
        "Equivalent to --no-dev-deps flag except for does not restore the original "
        "`Cargo.toml` after performed",
    ),
    HelpEntry("", "--no-private", "", "Perform without `publish = false` crates"),
    HelpEntry("", "--ignore-private", "", "Skip to perform on `publish = false` packages"),
    HelpEntry(
        "", "--ignore-unknown-features", "",
        "Skip passing --features flag to `cargo` if that feature does not exist in the package",
        ("This flag can be used with --features, --include-features, or --group-features.",),
    ),
    HelpEntry(
        "", "--rust-version", "", "Perform commands on `package.rust-version`",
        ("This cannot be used with --version-range.",),
    ),
    HelpEntry(
        "", "--version-range", "[START]..[=END]",
        "Perform commands on a specified (inclusive) range of Rust versions",
        (
            "If the upper bound of the range is omitted, the latest stable compiler is used as "
            "the upper bound.",
            "If the lower bound of the range is omitted, the value of the `rust-version` field "
            "in `Cargo.toml` is used as the lower bound.",
            "Note that ranges are always inclusive ranges.",
        ),
    ),
    HelpEntry(
        "", "--version-step", "<NUM>",
        "Specify the version interval of --version-range (default to `1`)",
        ("This flag can only be used together with --version-range flag.",),
    ),
    HelpEntry(
        "", "--clean-per-run", "", "Remove artifacts for that package before running the command",
        (
            "If used this flag with --workspace, --each-feature, or --feature-powerset, "
            "artifacts will be removed before each run.",
            "Note that dependencies artifacts will be preserved.",
        ),
    ),
    HelpEntry(
        "", "--clean-per-version", "", "Remove artifacts per Rust version",
        (
            "Note that dependencies artifacts will also be removed.",
            "This flag can only be used together with --version-range flag.",
        ),
    ),
    HelpEntry("", "--keep-going", "", "Keep going on failure"),
    HelpEntry(
        "", "--log-group", "<KIND>", "Log grouping: none, github-actions",
        ("If this option is not used, the environment will be automatically detected.",),
    ),
    HelpEntry("", "--print-command-list", "", "Print commands without run (Unstable)"),
    HelpEntry(
        "", "--no-manifest-path", "", "Do not pass --manifest-path option to cargo (Unstable)"
    ),
    HelpEntry("-v", "--verbose", "", "Use verbose output"),
    HelpEntry(
        "", "--color", "<WHEN>", "Coloring: auto, always, never",
        ("This flag will be propagated to cargo.",),
    ),
    HelpEntry("-h", "--help", "", "Prints help information"),
    HelpEntry("-V", "--version", "", "Prints version information"),
)

_TRAILER = (
    "Some common cargo commands are (see all commands with --list):\n"
    "    build       Compile the current package\n"
    "    check       Analyze the current package and report errors, but don't build object files\n"
    "    run         Run a binary or example of the local package\n"
    "    test        Run the tests\n"
)


def _wrap(indent: int, first_indent: bool, term_size: int, desc: str) -> str:
    parts = [" " * indent] if first_indent else []
    written = 0
    size = term_size - indent
    for word in desc.split(" "):
        if written + len(word) + 1 >= size:
            parts.append("\n" + " " * indent)
            written = 0
        elif written:
            parts.append(" ")
            written += 1
        parts.append(word)
        written += len(word)
    return "".join(parts)


@dataclass(frozen=True)
class Help:
    """The help text, either short (``-h``) or long (``--help``)."""

    long_form: bool
    term_size: int = MAX_TERM_WIDTH
    print_version: bool = True

    @classmethod
    def long(cls) -> Help:
        return cls(long_form=True)

    @classmethod
    def short(cls) -> Help:
        return cls(long_form=False)

    def render(self) -> str:
        """The full help text."""
        version = f" {PACKAGE_VERSION}" if self.print_version else ""
        out = [
            f"{PACKAGE_NAME}{version}\n{PACKAGE_DESCRIPTION}\n"
            "USAGE:\n"
            "    cargo hack [OPTIONS] [SUBCOMMAND]\n\n"
            "Use -h for short descriptions and --help for more details.\n\n"
            "OPTIONS:\n"
        ]
        for entry in HELP:
            out.append(f"    {entry.short:2}{' ' if not entry.short else ','} ")
            if self.long_form:
                out.append(entry.long)
                if entry.value_name:
                    out.append(f" {entry.value_name}")
                out.append("\n")
                out.append(_wrap(12, True, self.term_size, entry.description))
                out.append(".\n\n")
                for detail in entry.details:
                    out.append(_wrap(12, True, self.term_size, detail))
                    out.append("\n\n")
            else:
                flag = f"{entry.long} {entry.value_name}" if entry.value_name else entry.long
                out.append(f"{flag:32} ")
                out.append(_wrap(41, False, self.term_size, entry.description))
                out.append("\n")
        if not self.long_form:
            out.append("\n")
        out.append(_TRAILER)
        return "".join(out)

    def __str__(self) -> str:
        return self.render()


def find_help(flag: str) -> HelpEntry | None:
    """The help entry whose short or long form is ``flag``."""
    return next((e for e in HELP if flag in (e.short, e.long)), None)


def _subcommand_suffix(subcommand: str | None) -> str:
    return f" {subcommand}" if subcommand else ""


def removed_flags(flag: str) -> None:
    """Reject a long flag (without ``--``) that no longer exists."""
    alternatives = {
        "ignore-non-exist-features": "--ignore-unknown-features",
        "skip-no-default-features": "--exclude-no-default-features",
    }
    alt = alternatives.get(flag)
    if alt is not None:
        raise UsageError(f"--{flag} was removed, use {alt} instead")


_SIMILAR = {
    "no-dev-dep": "--no-dev-deps",
    "remove-dev-dep": "--remove-dev-deps",
    "each-features": "--each-feature",
    "features-powerset": "--feature-powerset",
    "exclude-no-default-feature": "--exclude-no-default-features",
    "exclude-all-feature": "--exclude-all-features",
    "include-dep-features": "--include-deps-features",
    "include-dep-feature": "--include-deps-features",
    "include-deps-feature": "--include-deps-features",
    "ignore-unknown-feature": "--ignore-unknown-features",
}


def similar_flags(flag: str, subcommand: str | None) -> None:
    """Reject a long flag (without ``--``) that is a likely misspelling of a known one."""
    expected = _SIMILAR.get(flag)
    if expected is None:
        return
    raise UsageError(
        f"Found argument '--{flag}' which wasn't expected, or isn't valid in this context\n"
        f"        Did you mean {expected}?\n"
        "\n"
        "USAGE:\n"
        f"    cargo hack{_subcommand_suffix(subcommand)} {expected}\n"
        "\n"
        "For more information try --help\n"
    )


def multi_arg(flag: str, subcommand: str | None) -> NoReturn:
    """Raise for a flag (such as ``--workspace`` or ``-p``) given more than once."""
    entry = find_help(flag)
    arg = f"{entry.long} {entry.value_name}" if entry is not None else flag
    raise UsageError(
        f"The argument '{flag}' was provided more than once, but cannot be used multiple times\n"
        "\n"
        "USAGE:\n"
        f"    cargo hack{_subcommand_suffix(subcommand)} {arg}\n"
        "\n"
        "For more information try --help\n"
    )


def requires(flag: str, alternatives: list[str] | tuple[str, ...]) -> NoReturn:
    """Raise because ``flag`` needs one of ``alternatives``."""
    if not alternatives:
        raise ValueError("at least one required flag must be given")
    if len(alternatives) == 1:
        with_ = alternatives[0]
    elif len(alternatives) == 2:
        with_ = f"either {alternatives[0]} or {alternatives[1]}"
    else:
        with_ = "".join(f"{a}, " for a in alternatives[:-1]) + f"or {alternatives[-1]}"
    raise UsageError(f"{flag} can only be used together with {with_}")


def conflicts(a: str, b: str) -> NoReturn:
    """Raise because ``a`` and ``b`` cannot be combined."""
    raise UsageError(f"{a} may not be used together with {b}")


def mini_usage(msg: str) -> NoReturn:
    """Raise with ``msg`` followed by a brief usage line."""
    raise UsageError(
        f"{msg}\n\nUSAGE:\n    cargo hack [OPTIONS] [SUBCOMMAND]\n\nFor more information try --help"
    )