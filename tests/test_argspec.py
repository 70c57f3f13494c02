"""
test_argspec.py
~~~~~~~~~~~~~~~

Unit tests for the declarative argument parser.
"""

import pytest
import os
import sys

# Add repository root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fannc import argspec
from fannc.argspec import FILE, FLOAT, INT, STRING, ArgumentParser
from fannc.errors import ArgumentValidationError, HelpRequested


@pytest.fixture
def parser():
    """Create a parser resembling create_sparse."""
    return ArgumentParser(
        'demo',
        ['A demonstration command.'],
        [
            argspec.option('rate', INT, 'int', 'connection rate',
                           required=True, minimum=0, maximum=100),
            argspec.option('scale', FLOAT, 'float', 'scale factor',
                           default=0.1),
            argspec.flag('verbose', 'talk more'),
            argspec.repeated(FLOAT, 'float', 'input values', short='i',
                             dest='inputs'),
            argspec.positional('layers', INT, 'n', 'layer sizes',
                               min_count=2, minimum=1),
        ]
    )


def errors_of(parser, argv):
    with pytest.raises(ArgumentValidationError) as excinfo:
        parser.parse(argv)
    return excinfo.value.errors


@pytest.mark.unit
class TestParsing:
    """Test conversion of valid argument vectors."""

    def test_options_and_positionals(self, parser):
        """Test that options and positionals are converted to their kinds."""
        args = parser.parse(['--rate', '50', '2', '3', '1'])

        assert args.get('rate') == 50
        assert args.getall('layers') == [2, 3, 1]

    def test_attached_values(self, parser):
        """Test that --name=value and -xvalue forms are accepted."""
        args = parser.parse(['--rate=10', '-i0.5', '-i', '1.5', '2', '2'])

        assert args.get('rate') == 10
        assert args.getall('inputs') == [0.5, 1.5]

    def test_default_used_when_absent(self, parser):
        """Test that an omitted option reads as its default."""
        args = parser.parse(['--rate', '1', '2', '2'])

        assert 'scale' not in args
        assert args.get('scale') == 0.1
        assert args.getall('inputs') == []

    def test_flag_presence(self, parser):
        """Test that a flag is reported as present only when given."""
        assert 'verbose' in parser.parse(['--verbose', '--rate', '1', '2', '2'])
        assert 'verbose' not in parser.parse(['--rate', '1', '2', '2'])

    def test_negative_number_is_a_value(self, parser):
        """Test that a negative number following an option is its value."""
        args = parser.parse(['--rate', '1', '--scale', '-0.5', '-i', '-2',
                             '2', '2'])

        assert args.get('scale') == -0.5
        assert args.getall('inputs') == [-2.0]

    def test_double_dash_ends_options(self):
        """Test that tokens after -- are positional even if dashed."""
        parser = ArgumentParser('demo', [], [
            argspec.positional('words', STRING, 'word', 'words'),
        ])

        args = parser.parse(['--', '--not-an-option'])

        assert args.getall('words') == ['--not-an-option']

    def test_count(self, parser):
        """Test that count reports the number of occurrences."""
        args = parser.parse(['-i', '1', '-i', '2', '-i', '3', '--rate', '0',
                             '1', '1'])
        assert args.count('inputs') == 3


@pytest.mark.unit
class TestValidation:
    """Test that every violation is collected and reported."""

    def test_missing_required_option(self, parser):
        """Test that a missing required option is reported."""
        assert errors_of(parser, ['2', '3']) == ['missing option --rate=int']

    def test_too_few_positionals(self, parser):
        """Test that a positional below its minimum count is reported."""
        errors = errors_of(parser, ['--rate', '5', '2'])
        assert errors == ['<n> needs at least 2 values, 1 given']

    def test_unknown_option(self, parser):
        """Test that unknown options are reported verbatim."""
        errors = errors_of(parser, ['--bogus', '--rate', '5', '2', '2'])
        assert errors == ['invalid option "--bogus"']

    def test_invalid_value(self, parser):
        """Test that unconvertible values are reported."""
        errors = errors_of(parser, ['--rate', 'ten', '2', '2'])
        assert 'invalid argument "ten" to --rate=int' in errors

    @pytest.mark.parametrize('argv, bad', [
        (['--rate', '1_0', '2', '2'], 'invalid argument "1_0" to --rate=int'),
        (['--rate', '5', '--scale', '1_0', '2', '2'],
         'invalid argument "1_0" to --scale=float'),
        (['--rate', '5', '2', ' 2'], 'invalid argument " 2" to <n>'),
        (['--rate', '5', '-i', '0x1', '2', '2'],
         'invalid argument "0x1" to -i float'),
    ])
    def test_digit_grouping_and_padding_rejected(self, parser, argv, bad):
        """Test that numbers must match the plain decimal grammar."""
        assert bad in errors_of(parser, argv)

    def test_range_check(self, parser):
        """Test that values outside the allowed range are rejected."""
        errors = errors_of(parser, ['--rate', '101', '0', '2'])

        assert len(errors) == 2
        assert errors[0].startswith('--rate=int must be at most 100')
        assert errors[1].startswith('<n> must be at least 1')

    def test_excess_option(self, parser):
        """Test that a single-valued option given twice is reported."""
        errors = errors_of(parser, ['--rate', '1', '--rate', '2', '2', '2'])
        assert errors == ['excess option --rate=int']

    def test_missing_value(self, parser):
        """Test that an option at the end of argv without value is reported."""
        errors = errors_of(parser, ['2', '2', '--rate'])
        assert 'option "--rate=int" requires a value' in errors

    def test_flag_with_value(self, parser):
        """Test that a value attached to a flag is reported."""
        errors = errors_of(parser, ['--verbose=yes', '--rate', '1', '2', '2'])
        assert errors == ['option "--verbose" takes no value']

    def test_unexpected_positional(self):
        """Test that surplus positional tokens are reported."""
        parser = ArgumentParser('demo', [], [
            argspec.option('ann', FILE, 'filepath', 'network file'),
        ])
        errors = errors_of(parser, ['stray'])
        assert errors == ['unexpected argument "stray"']

    def test_all_errors_collected(self, parser):
        """Test that several violations are reported in one pass."""
        errors = errors_of(parser, ['--bogus', '-i', 'x', '1'])
        assert len(errors) == 4

    def test_error_carries_prog(self, parser):
        """Test that the exception names the command."""
        with pytest.raises(ArgumentValidationError) as excinfo:
            parser.parse([])
        assert excinfo.value.prog == 'demo'


@pytest.mark.unit
class TestHelp:
    """Test help and usage output."""

    def test_help_requested(self, parser):
        """Test that --help wins over other errors and carries the help."""
        with pytest.raises(HelpRequested) as excinfo:
            parser.parse(['--help', '--bogus'])

        text = excinfo.value.text
        assert text.startswith('Usage: demo ')
        assert 'A demonstration command.' in text
        assert '  --help' in text

    def test_usage_syntax(self, parser):
        """Test the usage line fragments of each kind of spec."""
        usage = parser.format_usage()

        assert '--rate=int' in usage
        assert '[--scale=float]' in usage
        assert '[--verbose]' in usage
        assert '[-i float]...' in usage
        assert '<n> <n> [<n>]...' in usage

    def test_glossary_rows(self, parser):
        """Test that every spec has an aligned glossary row."""
        lines = parser.format_help().splitlines()
        assert f"  {'--rate=int':<25} connection rate" in lines


@pytest.mark.unit
class TestNumberGrammar:
    """Test the strict number conversions."""

    @pytest.mark.parametrize('text, expected', [
        ('42', 42),
        ('-7', -7),
        ('+3', 3),
        ('007', 7),
    ])
    def test_parse_int(self, text, expected):
        """Test that plain decimal integers are accepted."""
        assert argspec.parse_int(text) == expected

    @pytest.mark.parametrize('text, expected', [
        ('0.5', 0.5),
        ('.5', 0.5),
        ('5.', 5.0),
        ('-1.25e-1', -0.125),
        ('2E3', 2000.0),
        ('inf', float('inf')),
        ('-Infinity', float('-inf')),
    ])
    def test_parse_float(self, text, expected):
        """Test decimal, exponent and infinity spellings."""
        assert argspec.parse_float(text) == expected

    @pytest.mark.parametrize('text', ['1_000', ' 1', '1 ', '', '1.5', '0x10', '١'])
    def test_parse_int_rejects(self, text):
        """Test that anything but bare digits yields None."""
        assert argspec.parse_int(text) is None

    @pytest.mark.parametrize('text', ['1_0', '0_5', ' 0.5', '.', 'e5', '1e', 'nanx'])
    def test_parse_float_rejects(self, text):
        """Test that malformed floats yield None."""
        assert argspec.parse_float(text) is None
