import pytest

from hpingkit.antigetopt import (
    AmbiguousOptionError,
    ArgMode,
    MissingArgumentError,
    Option,
    OptionConflictError,
    OptionParser,
    UnknownOptionError,
    format_error,
)

OPTIONS = [
    Option("v", "verbose", "verbose"),
    Option("c", "count", "count", ArgMode.REQUIRED),
    Option("i", "interval", "interval", ArgMode.OPTIONAL),
    Option(None, "version", "version"),
    Option("q", "quiet", "quiet", exceptions=(0,)),
]


def parse(*args):
    return [(p.id, p.arg) for p in OptionParser(OPTIONS, ["prog", *args])]


def test_simple_options_and_positionals():
    assert parse("-v", "host") == [("verbose", None), (None, "host")]


def test_required_argument_short_and_long():
    assert parse("-c", "5") == [("count", "5")]
    assert parse("--count", "7") == [("count", "7")]


def test_required_argument_taken_even_if_dash():
    assert parse("-c", "-v") == [("count", "-v")]


def test_optional_argument():
    assert parse("-i", "3") == [("interval", "3")]
    assert parse("-i", "-v") == [("interval", None), ("verbose", None)]
    assert parse("-i") == [("interval", None)]


def test_long_abbreviation():
    result = list(OptionParser(OPTIONS, ["prog", "--co", "3"]))
    assert [(p.id, p.arg, p.name) for p in result] == [("count", "3", "count")]
    assert parse("--verb") == [("verbose", None)]


def test_collapsed_short_options():
    assert parse("-vc", "3") == [("verbose", None), ("count", "3")]


def test_collapsed_last_optional_takes_next_word():
    assert parse("-vi", "-x") == [("verbose", None), ("interval", "-x")]


def test_collapsed_required_not_last():
    with pytest.raises(MissingArgumentError) as info:
        parse("-cv", "3")
    assert info.value.char == "c"


def test_double_dash_ends_options():
    assert parse("-v", "--", "-c", "--") == [
        ("verbose", None),
        (None, "-c"),
    ]


def test_single_dash_is_positional():
    assert parse("-") == [(None, "-")]


def test_missing_argument_messages():
    with pytest.raises(MissingArgumentError) as info:
        parse("-c")
    assert format_error(info.value, "prog") == "prog: option requires an argument -- c"
    with pytest.raises(MissingArgumentError) as info:
        parse("--count")
    assert format_error(info.value) == "option `--count' requires an argument"


def test_unknown_messages():
    with pytest.raises(UnknownOptionError) as info:
        parse("-x")
    assert format_error(info.value, "prog") == "prog: invalid option -- x"
    with pytest.raises(UnknownOptionError) as info:
        parse("--nope")
    assert format_error(info.value) == "unrecognized option `--nope'"


def test_ambiguous_abbreviation():
    with pytest.raises(AmbiguousOptionError) as info:
        parse("--ver")
    assert info.value.name == "ver"
    assert "ambiguous" in format_error(info.value)


def test_exact_long_name_wins():
    assert parse("--version") == [("version", None)]


def test_parser_is_reiterable():
    parser = OptionParser(OPTIONS, ["prog", "-v", "a", "-c", "1"])
    expected = [("verbose", None), (None, "a"), ("count", "1")]
    assert [(p.id, p.arg) for p in parser] == expected
    assert [(p.id, p.arg) for p in parser] == expected


def test_exception_tester_refuses_option():
    parser = OptionParser(OPTIONS, ["prog", "-v", "--quiet"])
    parser.set_exception(0, lambda: True, "conflicting option")
    seen = []
    with pytest.raises(OptionConflictError) as info:
        for parsed in parser:
            seen.append(parsed.id)
    assert seen == ["verbose"]
    assert str(info.value) == "conflicting option `--quiet'"

    parser = OptionParser(OPTIONS, ["prog", "-v", "-q"])
    parser.set_exception(0, lambda: True, "conflicting option")
    seen = []
    with pytest.raises(OptionConflictError) as info:
        for parsed in parser:
            seen.append(parsed.id)
    assert seen == ["verbose"]
    assert str(info.value) == "conflicting option `-q'"


def test_exception_tester_allows_option():
    parser = OptionParser(OPTIONS, ["prog", "-q"])
    parser.set_exception(0, lambda: False, "conflicting option")
    assert [p.id for p in parser] == ["quiet"]


def test_set_exception_rejects_bad_index():
    parser = OptionParser(OPTIONS, ["prog"])
    with pytest.raises(ValueError):
        parser.set_exception(3, lambda: True, "msg")


def test_option_validation():
    with pytest.raises(ValueError):
        Option("ab", None, 1)
    with pytest.raises(ValueError):
        Option(None, None, 1)