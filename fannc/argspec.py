"""
argspec.py
~~~~~~~~~~

Declarative argument specifications and the validating parser shared by
every command.

A command describes its arguments as a list of ``ArgSpec`` objects. The
parser walks the argument vector once, converts every value, and collects
every violation before reporting, so a user editing a long command line
sees all problems in one pass.
"""

import re
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from fannc.errors import ArgumentValidationError, HelpRequested

logger = logging.getLogger(__name__)

# Value kinds
FLAG = 'flag'
INT = 'int'
FLOAT = 'float'
STRING = 'string'
FILE = 'file'

# Tokens such as "-0.5" are values, not options
_NEGATIVE_NUMBER = re.compile(r'^-(\d|\.\d)')

# Number grammars for INT and FLOAT values; no digit grouping, no padding
_INTEGER = re.compile(r'[+-]?\d+', re.ASCII)
_FLOAT = re.compile(
    r'[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?|[+-]?(inf|infinity|nan)',
    re.ASCII | re.IGNORECASE
)


def parse_int(text: str) -> Optional[int]:
    """Strict integer parse: the whole text must be the number."""
    if _INTEGER.fullmatch(text) is None:
        return None
    return int(text)


def parse_float(text: str) -> Optional[float]:
    """Strict float parse: the whole text must be the number."""
    if _FLOAT.fullmatch(text) is None:
        return None
    return float(text)


@dataclass(frozen=True)
class ArgSpec:
    """
    Description of one command argument.

    A spec without ``long`` and ``short`` names is positional. ``max_count``
    of None means the argument may be repeated without bound.
    """

    dest: str
    kind: str
    long: Optional[str] = None
    short: Optional[str] = None
    datatype: str = ''
    min_count: int = 0
    max_count: Optional[int] = 1
    default: Any = None
    help: str = ''
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    @property
    def positional(self) -> bool:
        return self.long is None and self.short is None

    @property
    def repeatable(self) -> bool:
        return self.max_count is None or self.max_count > 1

    @property
    def display(self) -> str:
        """Name as shown in messages, e.g. ``--rate=int`` or ``<n>``."""
        if self.positional:
            return f"<{self.datatype}>"
        if self.long is not None:
            if self.kind == FLAG:
                return f"--{self.long}"
            return f"--{self.long}={self.datatype}"
        if self.kind == FLAG:
            return f"-{self.short}"
        return f"-{self.short} {self.datatype}"

    def syntax(self) -> str:
        """Fragment of the usage line describing this argument."""
        name = self.display
        if self.positional and self.min_count > 0:
            required = ' '.join([name] * self.min_count)
            if self.max_count is not None and self.max_count <= self.min_count:
                return required
            return f"{required} [{name}]..."
        if self.min_count > 0:
            text = name
        else:
            text = f"[{name}]"
        if self.repeatable:
            text += '...'
        return text


def flag(long: str, help: str) -> ArgSpec:
    """Optional switch without a value."""
    return ArgSpec(dest=long.replace('-', '_'), kind=FLAG, long=long,
                   help=help)


def option(
    long: str,
    kind: str,
    datatype: str,
    help: str,
    required: bool = False,
    default: Any = None,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None
) -> ArgSpec:
    """Named option taking exactly one (or, if optional, at most one) value."""
    return ArgSpec(
        dest=long.replace('-', '_'),
        kind=kind,
        long=long,
        datatype=datatype,
        min_count=1 if required else 0,
        max_count=1,
        default=default,
        help=help,
        minimum=minimum,
        maximum=maximum
    )


def repeated(
    kind: str,
    datatype: str,
    help: str,
    long: Optional[str] = None,
    short: Optional[str] = None,
    dest: Optional[str] = None
) -> ArgSpec:
    """Named option that may be given any number of times."""
    if dest is None:
        dest = (long or short).replace('-', '_')
    return ArgSpec(dest=dest, kind=kind, long=long, short=short,
                   datatype=datatype, min_count=0, max_count=None,
                   default=[], help=help)


def positional(
    dest: str,
    kind: str,
    datatype: str,
    help: str,
    min_count: int = 1,
    max_count: Optional[int] = None,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None
) -> ArgSpec:
    """Positional argument with arity bounds."""
    return ArgSpec(dest=dest, kind=kind, datatype=datatype,
                   min_count=min_count, max_count=max_count, default=[],
                   help=help, minimum=minimum, maximum=maximum)


HELP_SPEC = flag('help', 'print this help and exit')


class ParsedArguments:
    """
    Successfully validated arguments, keyed by spec ``dest``.

    Single-valued specs are read with ``get``; repeatable specs with
    ``getall``. ``name in args`` tells whether the user supplied it.
    """

    def __init__(self, specs: Iterable[ArgSpec], values: Dict[str, List[Any]]):
        self._specs = {spec.dest: spec for spec in specs}
        self._values = values

    def __contains__(self, dest: str) -> bool:
        return bool(self._values.get(dest))

    def count(self, dest: str) -> int:
        return len(self._values.get(dest, []))

    def get(self, dest: str) -> Any:
        values = self._values[dest]
        if values:
            return values[0]
        return self._specs[dest].default

    def getall(self, dest: str) -> List[Any]:
        return list(self._values[dest])


class ArgumentParser:
    """
    Validates an argument vector against a list of specs.

    Args:
        prog: Command name, used as message prefix
        description: Lines printed by ``--help`` after the usage line
        specs: Argument specifications; ``--help`` is appended automatically
    """

    def __init__(
        self,
        prog: str,
        description: Iterable[str],
        specs: Iterable[ArgSpec]
    ):
        self.prog = prog
        self.description = list(description)
        self.specs = list(specs) + [HELP_SPEC]
        self._long = {s.long: s for s in self.specs if s.long is not None}
        self._short = {s.short: s for s in self.specs if s.short is not None}
        self._positionals = [s for s in self.specs if s.positional]

    # ------------------------------------------------------------------
    # Help
    # ------------------------------------------------------------------

    def format_usage(self) -> str:
        syntax = ' '.join(spec.syntax() for spec in self.specs)
        return f"Usage: {self.prog} {syntax}"

    def format_help(self) -> str:
        lines = [self.format_usage()]
        lines.extend(self.description)
        for spec in self.specs:
            lines.append(f"  {spec.display:<25} {spec.help}")
        return '\n'.join(lines) + '\n'

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self, argv: List[str]) -> ParsedArguments:
        """
        Parse and validate an argument vector.

        Args:
            argv: Arguments following the command name

        Returns:
            ParsedArguments: Every value converted to its spec's type

        Raises:
            HelpRequested: If ``--help`` was given; carries the help text
            ArgumentValidationError: If any spec is violated; carries one
                message per violation
        """
        values: Dict[str, List[Any]] = {spec.dest: [] for spec in self.specs}
        occurrences: Dict[str, int] = {spec.dest: 0 for spec in self.specs}
        errors: List[str] = []
        free: List[str] = []

        i = 0
        options_done = False
        while i < len(argv):
            token = argv[i]
            i += 1

            if (options_done or token == '-' or not token.startswith('-')
                    or _NEGATIVE_NUMBER.match(token)):
                free.append(token)
                continue

            if token == '--':
                options_done = True
                continue

            if token.startswith('--'):
                name, eq, attached = token[2:].partition('=')
                spec = self._long.get(name)
                has_value = bool(eq)
            else:
                spec = self._short.get(token[1])
                attached = token[2:]
                has_value = bool(attached)

            if spec is None:
                errors.append(f'invalid option "{token}"')
                continue

            occurrences[spec.dest] += 1

            if spec.kind == FLAG:
                if has_value:
                    errors.append(f'option "{spec.display}" takes no value')
                else:
                    values[spec.dest].append(True)
                continue

            if has_value:
                raw = attached
            elif i < len(argv):
                raw = argv[i]
                i += 1
            else:
                errors.append(f'option "{spec.display}" requires a value')
                continue

            self._convert(spec, raw, values, errors)

        if values[HELP_SPEC.dest]:
            raise HelpRequested(self.format_help())

        self._assign_positionals(free, values, occurrences, errors)
        self._check_counts(occurrences, errors)

        if errors:
            logger.debug(f"{self.prog}: {len(errors)} argument error(s)")
            raise ArgumentValidationError(self.prog, errors)

        return ParsedArguments(self.specs, values)

    def _assign_positionals(
        self,
        free: List[str],
        values: Dict[str, List[Any]],
        occurrences: Dict[str, int],
        errors: List[str]
    ) -> None:
        """Distribute free tokens over the positional specs, in order."""
        remaining = list(free)
        for spec in self._positionals:
            if spec.max_count is None:
                taken, remaining = remaining, []
            else:
                taken = remaining[:spec.max_count]
                remaining = remaining[spec.max_count:]
            occurrences[spec.dest] += len(taken)
            for raw in taken:
                self._convert(spec, raw, values, errors)

        for raw in remaining:
            errors.append(f'unexpected argument "{raw}"')

    def _check_counts(
        self,
        occurrences: Dict[str, int],
        errors: List[str]
    ) -> None:
        for spec in self.specs:
            count = occurrences[spec.dest]
            if count < spec.min_count:
                if spec.min_count == 1:
                    errors.append(f"missing option {spec.display}")
                else:
                    errors.append(
                        f"{spec.display} needs at least {spec.min_count} "
                        f"values, {count} given"
                    )
            elif spec.max_count is not None and count > spec.max_count:
                errors.append(f"excess option {spec.display}")

    @staticmethod
    def _convert(
        spec: ArgSpec,
        raw: str,
        values: Dict[str, List[Any]],
        errors: List[str]
    ) -> None:
        """Convert one raw value, recording an error instead of raising."""
        if spec.kind == INT:
            value = parse_int(raw)
        elif spec.kind == FLOAT:
            value = parse_float(raw)
        else:
            value = raw

        if value is None:
            errors.append(f'invalid argument "{raw}" to {spec.display}')
            return

        if spec.minimum is not None and value < spec.minimum:
            errors.append(
                f"{spec.display} must be at least {spec.minimum}, got {raw}"
            )
            return
        if spec.maximum is not None and value > spec.maximum:
            errors.append(
                f"{spec.display} must be at most {spec.maximum}, got {raw}"
            )
            return

        values[spec.dest].append(value)
