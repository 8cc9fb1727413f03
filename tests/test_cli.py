import logging
from unittest import mock

import pytest

from cargohack.cli import parse_args, parse_grouped_features
from cargohack.features import Feature
from cargohack.help import PACKAGE_NAME, PACKAGE_VERSION, Help, UsageError


def parse(*args):
    return parse_args(["hack", *args], cargo="cargo")


def expect_error(args, message, full=True):
    argv = ["hack", *args] if full else list(args)
    with pytest.raises(UsageError) as exc:
        parse_args(argv, cargo="cargo")
    assert message in str(exc.value)


def test_failures():
    expect_error([], "expected subcommand 'hack'", full=False)
    expect_error(
        ["--all"], "expected subcommand 'hack', found argument '--all'", full=False
    )
    expect_error([], "no subcommand or valid flag specified")
    expect_error(["--all"], "no subcommand or valid flag specified")
    expect_error(["install"], "cargo-hack may not be used together with install subcommand")


@pytest.mark.parametrize(
    "flag",
    [
        "--workspace",
        "--all",
        "--each-feature",
        "--feature-powerset",
        "--no-dev-deps",
        "--remove-dev-deps",
        "--no-private",
        "--ignore-private",
        "--ignore-unknown-features",
        "--optional-deps",
        "--manifest-path=foo",
        "--color=auto",
    ],
)
def test_multi_arg(flag):
    name = flag.split("=")[0]
    expect_error(
        ["check", flag, flag],
        f"The argument '{name}' was provided more than once, but cannot be used multiple times",
    )


@pytest.mark.parametrize(
    "flag,alt",
    [
        ("--ignore-non-exist-features", "--ignore-unknown-features"),
        ("--skip-no-default-features", "--exclude-no-default-features"),
    ],
)
def test_removed_flags(flag, alt):
    expect_error(["check", flag], f"{flag} was removed, use {alt} instead")


def test_similar_flag():
    expect_error(["check", "--each-features"], "Did you mean --each-feature?")


def test_exclude_failure():
    expect_error(
        ["check", "--exclude", "member1"],
        "--exclude can only be used together with --workspace",
    )


def test_exclude_with_workspace():
    args = parse("check", "--all", "--exclude", "member1")
    assert args.exclude == ["member1"]
    assert args.workspace is True


def test_no_dev_deps_failure():
    expect_error(
        ["check", "--no-dev-deps", "--remove-dev-deps"],
        "--no-dev-deps may not be used together with --remove-dev-deps",
    )
    for flag in ["--example", "--examples", "--test", "--tests", "--bench", "--benches",
                 "--all-targets"]:
        expect_error(
            ["check", "--no-dev-deps", flag],
            f"--no-dev-deps may not be used together with {flag}",
        )
    for sub in ["test", "bench"]:
        expect_error(
            [sub, "--no-dev-deps"],
            f"--no-dev-deps may not be used together with {sub} subcommand",
        )


def test_remove_dev_deps_failure():
    for flag in ["--example", "--examples", "--test", "--tests", "--bench", "--benches",
                 "--all-targets"]:
        expect_error(
            ["check", "--remove-dev-deps", flag],
            f"--remove-dev-deps may not be used together with {flag}",
        )
    for sub in ["test", "bench"]:
        expect_error(
            [sub, "--remove-dev-deps"],
            f"--remove-dev-deps may not be used together with {sub} subcommand",
        )


def test_remove_dev_deps_without_subcommand():
    args = parse("--remove-dev-deps")
    assert args.subcommand is None
    assert args.remove_dev_deps is True


def test_no_dev_deps_info(caplog):
    caplog.set_level(logging.INFO, logger="cargohack.cli")
    args = parse("check", "--no-dev-deps")
    assert args.no_dev_deps is True
    assert (
        "--no-dev-deps modifies real `Cargo.toml` while cargo-hack is running and "
        "restores it when finished"
    ) in caplog.text


def test_ignore_unknown_features_failure(caplog):
    expect_error(
        ["check", "--ignore-unknown-features"],
        "--ignore-unknown-features can only be used together with --features, "
        "--include-features, or --group-features",
    )
    args = parse(
        "check", "--ignore-unknown-features", "--feature-powerset", "--include-features", "a"
    )
    assert args.include_features == [Feature.normal("a")]
    assert (
        "--ignore-unknown-features for --include-features is not fully implemented and may "
        "not work as intended"
    ) in caplog.text


def test_each_feature_failure():
    expect_error(
        ["check", "--each-feature", "--feature-powerset"],
        "--each-feature may not be used together with --feature-powerset",
    )
    expect_error(
        ["check", "--each-feature", "--all-features"],
        "--all-features may not be used together with --each-feature",
    )
    expect_error(
        ["check", "--each-feature", "--no-default-features"],
        "--no-default-features may not be used together with --each-feature",
    )


def test_feature_powerset_failure():
    expect_error(
        ["check", "--feature-powerset", "--all-features"],
        "--all-features may not be used together with --feature-powerset",
    )
    expect_error(
        ["check", "--feature-powerset", "--no-default-features"],
        "--no-default-features may not be used together with --feature-powerset",
    )


def test_depth():
    expect_error(
        ["check", "--each-feature", "--depth", "2"],
        "--depth can only be used together with --feature-powerset",
    )
    assert parse("check", "--feature-powerset", "--depth", "2").depth == 2
    expect_error(["check", "--feature-powerset", "--depth", "x"], "--depth")
    expect_error(["check", "--feature-powerset", "--depth"], "missing argument")


def test_group_features():
    expect_error(
        ["check", "--each-feature", "--group-features", "a,b"],
        "--group-features can only be used together with --feature-powerset",
    )
    expect_error(
        ["check", "--feature-powerset", "--group-features", "a"],
        "--group-features requires a list of two or more features separated by space or comma",
    )
    args = parse(
        "check", "--feature-powerset", "--group-features", "a,b", "--group-features", "a c"
    )
    assert args.group_features == [Feature.group(["a", "b"]), Feature.group(["a", "c"])]


def test_parse_grouped_features():
    assert parse_grouped_features(["x y", "a,b,c"], "opt") == [
        Feature.group(["x", "y"]),
        Feature.group(["a", "b", "c"]),
    ]
    with pytest.raises(UsageError, match="--opt requires a list"):
        parse_grouped_features(["single"], "opt")


def test_at_least_one_of():
    args = parse("check", "--feature-powerset", "--at-least-one-of", "a,b")
    assert args.at_least_one_of == [Feature.group(["a", "b"])]
    assert args.exclude_no_default_features is True
    expect_error(
        ["check", "--each-feature", "--at-least-one-of", "a,b"],
        "--at-least-one-of can only be used together with --feature-powerset",
    )


def test_include_features():
    args = parse("check", "--each-feature", "--include-features", "a,b")
    assert args.include_features == [Feature.normal("a"), Feature.normal("b")]
    assert args.exclude_no_default_features is True
    assert args.exclude_all_features is True
    expect_error(
        ["check", "--each-feature", "--include-features", "a", "--optional-deps"],
        "--include-features may not be used together with --optional-deps",
    )


def test_exclude_features_failure():
    expect_error(
        ["check", "--exclude-features", "a"],
        "--exclude-features (--skip) can only be used together with either --each-feature "
        "or --feature-powerset",
    )
    expect_error(
        ["check", "--each-feature", "--exclude-features=a", "--features=a"],
        "feature `a` specified by both --exclude-features and --features",
    )
    expect_error(
        ["check", "--each-feature", "--exclude-features=member1", "--optional-deps=member1"],
        "feature `member1` specified by both --exclude-features and --optional-deps",
    )
    expect_error(
        ["check", "--feature-powerset", "--exclude-features=a", "--group-features=a,b"],
        "feature `a` specified by both --exclude-features and --group-features",
    )
    expect_error(
        ["check", "--feature-powerset", "--exclude-features=a",
         "--mutually-exclusive-features=a,b"],
        "feature `a` specified by both --exclude-features and --mutually-exclusive-features",
    )
    expect_error(
        ["check", "--each-feature", "--exclude-features=a", "--include-features=a,b"],
        "feature `a` specified by both --exclude-features and --include-features",
    )


def test_exclude_features_lists():
    assert parse("check", "--each-feature", "--exclude-features", "a b").exclude_features == [
        "a",
        "b",
    ]
    args = parse("check", "--each-feature", "--skip", "a", "--skip", "b", "--features", "c")
    assert args.exclude_features == ["a", "b", "c"]
    assert args.features == ["c"]
    assert args.exclude_all_features is True


def test_empty_string():
    args = parse("check", "--each-feature", "--skip", "")
    assert args.exclude_features == []
    assert args.exclude_all_features is False


def test_exclude_no_default_and_all_features_failure():
    expect_error(
        ["check", "--exclude-no-default-features"],
        "--exclude-no-default-features can only be used together with either --each-feature "
        "or --feature-powerset",
    )
    expect_error(
        ["check", "--exclude-all-features"],
        "--exclude-all-features can only be used together with either --each-feature or "
        "--feature-powerset",
    )


def test_optional_deps():
    expect_error(
        ["check", "--optional-deps"],
        "--optional-deps can only be used together with either --each-feature or "
        "--feature-powerset",
    )
    assert parse("check", "--each-feature", "--optional-deps").optional_deps == []
    assert parse("check", "--each-feature", "--optional-deps", "real").optional_deps == ["real"]
    assert parse("check", "--each-feature", "--optional-deps=renamed").optional_deps == [
        "renamed"
    ]
    assert parse("check", "--each-feature", "--optional-deps=").optional_deps == [""]
    args = parse("check", "--each-feature", "--optional-deps", "--workspace")
    assert args.optional_deps == []
    assert args.workspace is True


@pytest.mark.parametrize(
    "argv",
    [
        ["--features='real,renamed'"],
        ['--features="real,renamed"'],
        ["--features=real,renamed"],
        ["--features", "real,renamed"],
        ["--features='real renamed'"],
        ['--features="real renamed"'],
        ["--features", "real renamed"],
        ["-F", "real renamed"],
    ],
)
def test_list_separator(argv):
    args = parse("run", *argv)
    assert args.features == ["real", "renamed"]
    assert args.leading_args == ["run"]


def test_short_flag():
    args = parse("check", "-vvpmember1")
    assert args.package == ["member1"]
    assert args.verbose == 2
    assert args.leading_args == ["check", "-v"]

    args = parse("check", "-qpmember1")
    assert args.package == ["member1"]
    assert args.leading_args == ["check", "-q"]

    assert parse("check", "-j4").leading_args == ["check", "-j4"]


def test_verbose():
    assert parse("check", "--verbose").leading_args == ["check"]
    assert parse("check", "-vvv", "-p", "member1").leading_args == ["check", "-vv"]


def test_propagate():
    assert parse("check", "--color", "auto").leading_args == ["check", "--color", "auto"]
    assert parse("check", "--color=auto").leading_args == ["check", "--color", "auto"]
    assert parse("check", "--no-default-features").leading_args == [
        "check",
        "--no-default-features",
    ]
    assert parse("check", "--all-features").leading_args == ["check", "--all-features"]
    assert parse("check", "--release", "--jobs=2").leading_args == [
        "check",
        "--release",
        "--jobs=2",
    ]


def test_target_is_sorted_and_deduplicated():
    args = parse("check", "--target", "x86", "--target", "aarch64", "--target", "x86")
    assert args.target == ["aarch64", "x86"]
    assert args.leading_args == ["check"]


def test_trailing_args():
    args = parse("test", "--", "--ignored")
    assert args.subcommand == "test"
    assert args.trailing_args == ["--ignored"]
    assert args.leading_args == ["test"]


def test_log_group():
    assert parse("check", "--log-group", "github-actions").log_group == "github-actions"
    assert parse("check", "--message-format=json").log_group == "none"
    assert parse("check").log_group is None


def test_version_range_failure():
    expect_error(
        ["check", "--version-range", "1.77..", "--version-step", "0"],
        "--version-step cannot be zero",
    )
    expect_error(
        ["check", "--version-range", "1.74..", "--rust-version"],
        "--version-range may not be used together with --rust-version",
    )
    expect_error(
        ["check", "--version-step", "2"],
        "--version-step can only be used together with --version-range",
    )


def test_version_range_values():
    args = parse("check", "--version-range", "1.74..=1.75", "--version-step", "2")
    assert args.version_range == "1.74..=1.75"
    assert args.version_step == 2
    assert parse("check").version_step == 1


def test_clean_per_version_failure():
    expect_error(
        ["check", "--clean-per-version"],
        "--clean-per-version can only be used together with --version-range",
    )


def test_private_flags():
    args = parse("check", "--no-private")
    assert args.no_private is True
    assert args.ignore_private is True


def test_unexpected_flag_value():
    expect_error(["check", "--workspace=yes"], "unexpected argument for option '--workspace'")


def test_short_help(capsys):
    with pytest.raises(SystemExit) as exc:
        parse("-h")
    assert exc.value.code == 0
    assert capsys.readouterr().out == Help.short().render() + "\n"


def test_long_help(capsys):
    with pytest.raises(SystemExit) as exc:
        parse("--help")
    assert exc.value.code == 0
    assert capsys.readouterr().out == Help.long().render() + "\n"


def test_version(capsys):
    with pytest.raises(SystemExit) as exc:
        parse("-V")
    assert exc.value.code == 0
    assert capsys.readouterr().out == f"{PACKAGE_NAME} {PACKAGE_VERSION}\n"


def test_help_after_subcommand_is_passed_through():
    assert parse("check", "-h").leading_args == ["check", "-h"]


def test_list_runs_cargo():
    with mock.patch("cargohack.cli.subprocess.run") as run:
        with pytest.raises(SystemExit) as exc:
            parse("--list")
    assert exc.value.code == 0
    assert run.call_args.args[0] == ["cargo", "--list"]