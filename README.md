# cargohack

`cargohack` works out which combinations of cargo features a package should
be checked with, and parses the command line of a `cargo hack` style tool
that runs a cargo subcommand once per combination.

It is a library; it installs no command.

## Modules

- `cargohack.features`: the `Feature` type (plain, grouped and dependency
  features), the `Features` collection of a package, and the combination
  functions `powerset`, `feature_deps`, `at_least_one_of_for_package` and
  `feature_powerset`.
- `cargohack.cli`: `parse_args` turns an argument list into an `Args` value,
  passing unknown flags through to cargo and rejecting conflicting, repeated
  or incomplete options with `UsageError`. `parse_grouped_features` parses
  the values of `--group-features` and similar options.
- `cargohack.help`: the short (`-h`) and long (`--help`) help pages
  (`Help`), the option table (`HELP`, `find_help`) and the helpers that raise
  `UsageError` with the standard messages (`requires`, `conflicts`,
  `multi_arg`, `removed_flags`, `similar_flags`, `mini_usage`).
- `cargohack.cargo`: `parse_verbose_version` reads the `release:` line of
  `cargo -vV` output into a `ToolVersion`; `cargo_version` runs `cargo -vV`
  and does the same. Both raise `CargoVersionError` on unexpected output.
- `cargohack.fsutil`: `write` and `read_to_string`, whose `OSError` names the
  file involved.

## Feature powersets

```python
from cargohack.features import Feature, feature_powerset, powerset

powerset([1, 2, 3, 4], 2)
# [[], [1], [2], [1, 2], [3], [1, 3], [2, 3], [4], [1, 4], [2, 4], [3, 4]]

package_features = {"a": [], "b": ["a"], "c": ["b"], "d": ["a", "b"]}
features = [Feature.normal(name) for name in ["a", "b", "c", "d"]]

combos = feature_powerset(features, None, [], [], package_features)
[[f.name for f in combo] for combo in combos]
# [['a'], ['b'], ['c'], ['d'], ['c', 'd']]
```

The empty combination is never returned. Combinations in which one feature
already turns on another are dropped, so `b` never appears next to `a`, and
`c` never next to `b`.

Mutually exclusive groups keep at most one member of each group in a
combination, following features that enable other features:

```python
package_features = {"tokio": [], "async-std": [], "a": [], "b": ["a"]}
features = [Feature.normal(n) for n in ["a", "b", "tokio", "async-std"]]
exclusive = [Feature.group(["tokio", "async-std"])]

feature_powerset(features, None, [], exclusive, package_features)
# no combination holds both tokio and async-std
```

A list of "at least one of" groups keeps only combinations that enable a
member of every group.

A grouped feature acts as a single feature. `Feature.matches` checks whether
a name belongs to it:

```python
group = Feature.group(["a", "b"])
group.name           # 'a,b'
group.matches("b")   # True
group.as_group()     # ('a', 'b')
```

`Features(manifest_features, optional_deps, deps_features)` collects a
package's own features (sorted by name), its optional dependencies that are
not referenced with `dep:`, and `dep/feature` paths of its dependencies;
`normal()`, `optional_deps()` and `deps_features()` return each part.

## Command-line parsing

The argument list starts with `hack`, as cargo passes it to a subcommand:

```python
from cargohack.cli import parse_args
from cargohack.help import UsageError

args = parse_args(["hack", "check", "--each-feature", "--features", "a"], "cargo")
args.subcommand     # 'check'
args.each_feature   # True
args.features       # ['a']

try:
    parse_args(["hack", "check", "--each-feature", "--feature-powerset"], "cargo")
except UsageError as err:
    print(err)
    # --each-feature may not be used together with --feature-powerset
```

The same checks apply to repeated flags, removed flags such as
`--ignore-non-exist-features`, misspelt flags, and options that need a
companion flag, for example `--depth` without `--feature-powerset`.

`-h`, `--help`, `-V` and `--version` given before the subcommand print their
text and raise `SystemExit(0)`. With no subcommand and `--list`, `cargo --list`
is run and `SystemExit(0)` is raised. Arguments after `--` are kept in
`args.trailing_args`; with `-vv` or more, one fewer `-v` is added to
`args.leading_args`.

## Help text

```python
from cargohack.help import Help

print(Help.short().render())
print(Help.long().render())
```

## What the package does not do

The package plans and parses; it does not carry a run out. It does not read
`Cargo.toml` or cargo metadata, does not run cargo once per feature
combination, does not change or restore manifests for `--no-dev-deps`, and
does not resolve `--version-range` or `--rust-version` into toolchains:
`Args.version_range` holds the range exactly as given. `Args.log_group` is
`None` when grouping is left to the environment, and the package does not
detect it.

## Requirements

Python 3.10 or later, with no third-party dependencies. `cargo_version`
needs a `cargo` executable.