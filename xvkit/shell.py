"""Parsing of shell command lines into command trees."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Union

O_RDONLY = 0x000
O_WRONLY = 0x001
O_RDWR = 0x002
O_CREATE = 0x200

MAXARGS = 10

WHITESPACE = " \t\r\n\v"
SYMBOLS = "<|>&;()"
_SINGLE = "|();&<"


class ShellSyntaxError(ValueError):
    """The command line does not follow the shell grammar."""


@dataclass
class ExecCommand:
    """Run a program with arguments; argv[0] names the program."""

    argv: List[str] = field(default_factory=list)


@dataclass
class RedirCommand:
    """Run cmd with file descriptor fd opened on file."""

    cmd: "Command"
    file: str
    mode: int
    fd: int


@dataclass
class PipeCommand:
    """Feed the output of left into the input of right."""

    left: "Command"
    right: "Command"


@dataclass
class ListCommand:
    """Run left to completion, then right."""

    left: "Command"
    right: "Command"


@dataclass
class BackCommand:
    """Run cmd in the background."""

    cmd: "Command"


Command = Union[ExecCommand, RedirCommand, PipeCommand, ListCommand, BackCommand]


class Token(NamedTuple):
    """A lexical token; kind is "" at the end of input, "a" for a word,
    "+" for ">>", and the symbol itself otherwise."""

    kind: str
    text: str


class Scanner:
    """Tokeniser over one command line, stopping at the first NUL."""

    def __init__(self, text: str) -> None:
        end = text.find("\0")
        self.text = text if end < 0 else text[:end]
        self.pos = 0

    def _skip_space(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos] in WHITESPACE:
            self.pos += 1

    @property
    def rest(self) -> str:
        """The input not yet consumed."""
        return self.text[self.pos:]

    @property
    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self, toks: str) -> bool:
        """Skip whitespace and tell whether the next character is in toks."""
        self._skip_space()
        return not self.at_end and self.text[self.pos] in toks

    def next_token(self) -> Token:
        """Consume and return the next token and the whitespace after it."""
        self._skip_space()
        start = self.pos
        if self.at_end:
            kind = ""
        else:
            ch = self.text[self.pos]
            if ch in _SINGLE:
                self.pos += 1
                kind = ch
            elif ch == ">":
                self.pos += 1
                kind = ">"
                if not self.at_end and self.text[self.pos] == ">":
                    self.pos += 1
                    kind = "+"
            else:
                kind = "a"
                while (
                    not self.at_end
                    and self.text[self.pos] not in WHITESPACE
                    and self.text[self.pos] not in SYMBOLS
                ):
                    self.pos += 1
        token = Token(kind, self.text[start:self.pos])
        self._skip_space()
        return token


def _parse_line(sc: Scanner) -> Command:
    cmd = _parse_pipe(sc)
    while sc.peek("&"):
        sc.next_token()
        cmd = BackCommand(cmd)
    if sc.peek(";"):
        sc.next_token()
        cmd = ListCommand(cmd, _parse_line(sc))
    return cmd


def _parse_pipe(sc: Scanner) -> Command:
    cmd = _parse_exec(sc)
    if sc.peek("|"):
        sc.next_token()
        cmd = PipeCommand(cmd, _parse_pipe(sc))
    return cmd


def _parse_redirs(cmd: Command, sc: Scanner) -> Command:
    while sc.peek("<>"):
        op = sc.next_token().kind
        target = sc.next_token()
        if target.kind != "a":
            raise ShellSyntaxError("missing file for redirection")
        if op == "<":
            cmd = RedirCommand(cmd, target.text, O_RDONLY, 0)
        else:
            cmd = RedirCommand(cmd, target.text, O_WRONLY | O_CREATE, 1)
    return cmd


def _parse_block(sc: Scanner) -> Command:
    if not sc.peek("("):
        raise ShellSyntaxError("parseblock")
    sc.next_token()
    cmd = _parse_line(sc)
    if not sc.peek(")"):
        raise ShellSyntaxError("syntax - missing )")
    sc.next_token()
    return _parse_redirs(cmd, sc)


def _parse_exec(sc: Scanner) -> Command:
    if sc.peek("("):
        return _parse_block(sc)
    exec_cmd = ExecCommand()
    cmd = _parse_redirs(exec_cmd, sc)
    while not sc.peek("|)&;"):
        tok = sc.next_token()
        if tok.kind == "":
            break
        if tok.kind != "a":
            raise ShellSyntaxError("syntax")
        exec_cmd.argv.append(tok.text)
        if len(exec_cmd.argv) >= MAXARGS:
            raise ShellSyntaxError("too many args")
        cmd = _parse_redirs(cmd, sc)
    return cmd


def parse_command(line: str) -> Command:
    """Parse a whole command line into a command tree."""
    sc = Scanner(line)
    cmd = _parse_line(sc)
    sc.peek("")
    if not sc.at_end:
        raise ShellSyntaxError(f"leftovers: {sc.rest}")
    return cmd


def cd_target(line: str) -> Optional[str]:
    """The directory of a "cd" line, less its final character (the newline).

    Returns None when the line is not a cd command.
    """
    if not line.startswith("cd "):
        return None
    return line[3:-1]