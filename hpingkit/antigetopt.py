"""Command-line option parsing with GNU-style long option abbreviations.

Short options may be collapsed (``-abc``), long options may be abbreviated
to any unique prefix (``--verb`` for ``--verbose``), and ``--`` ends option
processing.  Everything that is not an option is reported as a positional
argument, in order, interleaved with the options.
"""

from __future__ import annotations

import enum
import sys
from dataclasses import dataclass
from typing import Callable, Hashable, Iterator, Optional, Sequence

MAX_EXCEPTIONS = 3


class ArgMode(enum.Enum):
    """Whether an option takes an argument."""

    NONE = "none"
    REQUIRED = "required"
    OPTIONAL = "optional"


@dataclass(frozen=True)
class Option:
    """One option the parser recognises.

    ``exceptions`` lists the indices of the exception testers (see
    :meth:`OptionParser.set_exception`) that apply to this option.
    """

    short: Optional[str]
    long: Optional[str]
    id: Hashable
    mode: ArgMode = ArgMode.NONE
    exceptions: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        if self.short is not None and len(self.short) != 1:
            raise ValueError(f"short option must be one character: {self.short!r}")
        if self.short is None and not self.long:
            raise ValueError("an option needs a short or a long name")
        if self.id is None:
            raise ValueError("None is reserved for positional arguments")
        for index in self.exceptions:
            if not 0 <= index < MAX_EXCEPTIONS:
                raise ValueError(f"exception index out of range: {index}")


@dataclass(frozen=True)
class ParsedOption:
    """An option or positional argument found on the command line.

    Positional arguments have ``id`` None and their text in ``arg``.
    ``name`` is the full long name used, ``char`` the short letter used.
    """

    id: Optional[Hashable]
    arg: Optional[str] = None
    name: Optional[str] = None
    char: Optional[str] = None

    @property
    def positional(self) -> bool:
        return self.id is None


class GetoptError(Exception):
    """Base class of command-line parsing errors."""

    def __init__(self, name: Optional[str] = None, char: Optional[str] = None) -> None:
        self.name = name
        self.char = char
        super().__init__(self.describe())

    def describe(self) -> str:
        return "invalid command line"


class UnknownOptionError(GetoptError):
    """An option that is not in the option table."""

    def describe(self) -> str:
        if self.name is not None:
            return f"unrecognized option `--{self.name}'"
        return f"invalid option -- {self.char}"


class MissingArgumentError(GetoptError):
    """An option that requires an argument was given none."""

    def describe(self) -> str:
        if self.name is not None:
            return f"option `--{self.name}' requires an argument"
        return f"option requires an argument -- {self.char}"


class AmbiguousOptionError(GetoptError):
    """A long option abbreviation matches more than one option."""

    def describe(self) -> str:
        return f"option `--{self.name}' is ambiguous"


class OptionConflictError(GetoptError):
    """An option was refused by one of the registered exception testers."""

    def __init__(
        self, message: str, name: Optional[str] = None, char: Optional[str] = None
    ) -> None:
        self.message = message
        super().__init__(name, char)

    def describe(self) -> str:
        if self.name is not None:
            return f"{self.message} `--{self.name}'"
        return f"{self.message} `-{self.char}'"


def format_error(error: BaseException, program: Optional[str] = None) -> str:
    """Return a GNU-style error line, prefixed with the program name if given."""
    text = str(error)
    return f"{program}: {text}" if program else text


class OptionParser:
    """Iterate over the options and positional arguments of ``argv``.

    ``argv[0]`` is the program name and is skipped.  Iterating raises a
    :class:`GetoptError` subclass at the first invalid option.
    """

    def __init__(self, options: Sequence[Option], argv: Optional[Sequence[str]] = None) -> None:
        self._options = tuple(options)
        self._argv = list(sys.argv if argv is None else argv)
        self._exceptions: list[Optional[tuple[Callable[[], bool], str]]] = [
            None
        ] * MAX_EXCEPTIONS

    def set_exception(self, index: int, tester: Callable[[], bool], message: str) -> None:
        """Register a tester; options flagged with ``index`` are refused when it returns true."""
        if not callable(tester) or message is None or not 0 <= index < MAX_EXCEPTIONS:
            raise ValueError("invalid exception registration")
        self._exceptions[index] = (tester, message)

    def __iter__(self) -> Iterator[ParsedOption]:
        args = self._argv[1:]
        count = len(args)
        pos = 0
        end_options = False
        while True:
            if pos < count and args[pos] == "--":
                end_options = True
                pos += 1
            if pos >= count:
                return
            arg = args[pos]
            pos += 1
            if end_options or not arg.startswith("-") or arg == "-":
                yield ParsedOption(None, arg)
                continue

            if arg.startswith("--"):
                option, name = self._lookup_long(arg[2:])
                value, pos = self._take_argument(option, args, pos, name, None)
                yield ParsedOption(option.id, value, name=option.long, char=None)
                continue

            letters = arg[1:]
            if len(letters) == 1:
                option = self._lookup_short(letters)
                value, pos = self._take_argument(option, args, pos, None, letters)
                yield ParsedOption(option.id, value, name=None, char=letters)
                continue

            # Collapsed short options: only the last one may take the next word.
            last = len(letters) - 1
            for index, letter in enumerate(letters):
                option = self._lookup_short(letter)
                value = None
                if option.mode is not ArgMode.NONE:
                    if index == last and pos < count:
                        value = args[pos]
                        pos += 1
                    elif option.mode is ArgMode.REQUIRED:
                        raise MissingArgumentError(char=letter)
                yield ParsedOption(option.id, value, name=None, char=letter)

    @staticmethod
    def _take_argument(
        option: Option,
        args: list[str],
        pos: int,
        name: Optional[str],
        char: Optional[str],
    ) -> tuple[Optional[str], int]:
        if option.mode is ArgMode.REQUIRED:
            if pos >= len(args):
                raise MissingArgumentError(name=name, char=char)
            return args[pos], pos + 1
        if option.mode is ArgMode.OPTIONAL:
            if pos < len(args) and not args[pos].startswith("-"):
                return args[pos], pos + 1
        return None, pos

    def _lookup_long(self, name: str) -> tuple[Option, str]:
        candidate: Optional[Option] = None
        for option in self._options:
            if option.long is None:
                continue
            if option.long == name:
                self._check_exceptions(option, name, None)
                return option, name
            if option.long.startswith(name):
                if candidate is not None:
                    raise AmbiguousOptionError(name=name)
                candidate = option
        if candidate is None:
            raise UnknownOptionError(name=name)
        self._check_exceptions(candidate, candidate.long, None)
        return candidate, candidate.long  # type: ignore[return-value]

    def _lookup_short(self, letter: str) -> Option:
        for option in self._options:
            if option.short == letter:
                self._check_exceptions(option, None, letter)
                return option
        raise UnknownOptionError(char=letter)

    def _check_exceptions(
        self, option: Option, name: Optional[str], char: Optional[str]
    ) -> None:
        for index, entry in enumerate(self._exceptions):
            if entry is None or index not in option.exceptions:
                continue
            tester, message = entry
            if tester():
                raise OptionConflictError(message, name=name, char=char)