"""
Tokenizer and parser for one command line.

Lexing is an explicit state machine. Each character is classified, and the
pair (state, class) looks up the next state and the action to take in
TRANSITIONS. Pairs that are not listed fall back to DEFAULT_TRANSITIONS for
the current state. The parser then folds the token stream into a Pipeline.
"""

import re
from dataclasses import dataclass
from enum import Enum

from Core.command import INHERIT, CommandDescriptor, Pipeline, RedirectionTarget
from Core.errors import ParseError

# Ký tự được escape bằng \ bên trong "..."
DOUBLE_QUOTE_ESCAPES = frozenset('"\\`$!')

# echo -e
ECHO_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "\\": "\\",
    "0": "\0",
    '"': '"',
    "'": "'",
}

# [fd]> or [fd]>>, fd being a number or & for both streams
REDIRECT_RE = re.compile(r"(\d+|&)?(>>?)")
STDOUT_FD = "1"
STDERR_FD = "2"
BOTH_FD = "&"


class LexState(Enum):
    NORMAL = "normal"
    NORMAL_ESCAPE = "normal_escape"
    SINGLE_QUOTE = "single_quote"
    DOUBLE_QUOTE = "double_quote"
    DOUBLE_QUOTE_ESCAPE = "double_quote_escape"


class CharClass(Enum):
    BLANK = "blank"
    SINGLE_QUOTE = "single_quote"
    DOUBLE_QUOTE = "double_quote"
    BACKSLASH = "backslash"
    PIPE = "pipe"
    REDIRECT = "redirect"
    OTHER = "other"


class Action(Enum):
    APPEND = "append"                  # add the text to the current word
    DROP = "drop"                      # discard the text, the current word exists (maybe empty)
    END_WORD = "end_word"
    PIPE = "pipe"
    REDIRECT = "redirect"
    QUOTED_ESCAPE = "quoted_escape"    # character after \ inside double quotes


class TokenType(Enum):
    WORD = "word"
    PIPE = "pipe"
    REDIRECT = "redirect"


_S, _C, _A = LexState, CharClass, Action

TRANSITIONS = {
    (_S.NORMAL, _C.BLANK): (_S.NORMAL, _A.END_WORD),
    (_S.NORMAL, _C.SINGLE_QUOTE): (_S.SINGLE_QUOTE, _A.DROP),
    (_S.NORMAL, _C.DOUBLE_QUOTE): (_S.DOUBLE_QUOTE, _A.DROP),
    (_S.NORMAL, _C.BACKSLASH): (_S.NORMAL_ESCAPE, _A.DROP),
    (_S.NORMAL, _C.PIPE): (_S.NORMAL, _A.PIPE),
    (_S.NORMAL, _C.REDIRECT): (_S.NORMAL, _A.REDIRECT),
    (_S.SINGLE_QUOTE, _C.SINGLE_QUOTE): (_S.NORMAL, _A.DROP),
    (_S.DOUBLE_QUOTE, _C.DOUBLE_QUOTE): (_S.NORMAL, _A.DROP),
    (_S.DOUBLE_QUOTE, _C.BACKSLASH): (_S.DOUBLE_QUOTE_ESCAPE, _A.DROP),
}

DEFAULT_TRANSITIONS = {
    _S.NORMAL: (_S.NORMAL, _A.APPEND),
    _S.NORMAL_ESCAPE: (_S.NORMAL, _A.APPEND),
    _S.SINGLE_QUOTE: (_S.SINGLE_QUOTE, _A.APPEND),
    _S.DOUBLE_QUOTE: (_S.DOUBLE_QUOTE, _A.APPEND),
    _S.DOUBLE_QUOTE_ESCAPE: (_S.DOUBLE_QUOTE, _A.QUOTED_ESCAPE),
}

_SIMPLE_CLASSES = {
    "'": CharClass.SINGLE_QUOTE,
    '"': CharClass.DOUBLE_QUOTE,
    "\\": CharClass.BACKSLASH,
    "|": CharClass.PIPE,
}


def next_transition(state, char_class):
    """Return (next_state, action) for a character of char_class seen in state."""
    return TRANSITIONS.get((state, char_class), DEFAULT_TRANSITIONS[state])


@dataclass
class Token:
    type: TokenType
    value: str
    fd: str = None
    append: bool = False


class Tokenizer:
    """
    Splits a line into WORD, PIPE and REDIRECT tokens.

    Quotes and escapes are resolved while scanning, so WORD values hold the
    literal text of each argument.
    """

    def __init__(self, line):
        self.line = line
        self.state = LexState.NORMAL
        self.tokens = []
        self._word = []
        self._in_word = False

    def tokenize(self):
        pos = 0
        while pos < len(self.line):
            char_class, length = self._classify(pos)
            next_state, action = next_transition(self.state, char_class)
            self._apply(action, self.line[pos:pos + length])
            self.state = next_state
            pos += length

        if self.state is LexState.SINGLE_QUOTE:
            raise ParseError(self.line, "unterminated single quote")
        if self.state in (LexState.DOUBLE_QUOTE, LexState.DOUBLE_QUOTE_ESCAPE):
            raise ParseError(self.line, "unterminated double quote")
        if self.state is LexState.NORMAL_ESCAPE:
            # trailing backslash stays literal
            self._word.append("\\")
        self._end_word()
        return self.tokens

    def _classify(self, pos):
        """Return (CharClass, number of characters it covers) for line[pos]."""
        char = self.line[pos]
        if self.state is not LexState.NORMAL:
            return _SIMPLE_CLASSES.get(char, CharClass.OTHER), 1

        if char.isspace():
            return CharClass.BLANK, 1
        if char in _SIMPLE_CLASSES:
            return _SIMPLE_CLASSES[char], 1

        # > always starts an operator; 2> and &> only at the start of a word
        if char == ">" or ((char.isdigit() or char == BOTH_FD) and not self._in_word):
            match = REDIRECT_RE.match(self.line, pos)
            if match and (char == ">" or match.group(1)):
                return CharClass.REDIRECT, match.end() - pos
        return CharClass.OTHER, 1

    def _apply(self, action, text):
        if action is Action.APPEND:
            self._word.append(text)
            self._in_word = True
        elif action is Action.DROP:
            self._in_word = True
        elif action is Action.END_WORD:
            self._end_word()
        elif action is Action.PIPE:
            self._end_word()
            self.tokens.append(Token(TokenType.PIPE, text))
        elif action is Action.REDIRECT:
            self._end_word()
            self.tokens.append(self._redirect_token(text))
        elif action is Action.QUOTED_ESCAPE:
            self._word.append(text if text in DOUBLE_QUOTE_ESCAPES else "\\" + text)

    def _end_word(self):
        if self._in_word:
            self.tokens.append(Token(TokenType.WORD, "".join(self._word)))
        self._word = []
        self._in_word = False

    def _redirect_token(self, text):
        match = REDIRECT_RE.fullmatch(text)
        fd = match.group(1) or STDOUT_FD
        if fd not in (STDOUT_FD, STDERR_FD, BOTH_FD):
            raise ParseError(self.line, f"unsupported file descriptor in '{text}'")
        return Token(TokenType.REDIRECT, text, fd=fd, append=match.group(2) == ">>")


def tokenize(line):
    return Tokenizer(line).tokenize()


def _make_stage(line, words, stdout, stderr):
    if not words:
        raise ParseError(line, "empty command in pipeline")
    if not words[0]:
        raise ParseError(line, "empty command name")
    return CommandDescriptor(words[0], words[1:], stdout, stderr)


def parse_command(line):
    """
    Parse a command line into a Pipeline.

    Returns None for an empty or whitespace-only line.
    Raises ParseError for unterminated quotes, a redirection without a
    filename, or an empty pipeline stage.
    """
    if not line or not line.strip():
        return None

    stages = []
    words, stdout, stderr = [], INHERIT, INHERIT
    pending = None

    for token in tokenize(line):
        if pending is not None:
            if token.type is not TokenType.WORD:
                raise ParseError(line, f"expected a filename after '{pending.value}'")
            target = RedirectionTarget.to_file(token.value, pending.append)
            if pending.fd in (STDOUT_FD, BOTH_FD):
                stdout = target
            if pending.fd in (STDERR_FD, BOTH_FD):
                stderr = target
            pending = None
        elif token.type is TokenType.WORD:
            words.append(token.value)
        elif token.type is TokenType.REDIRECT:
            pending = token
        else:
            stages.append(_make_stage(line, words, stdout, stderr))
            words, stdout, stderr = [], INHERIT, INHERIT

    if pending is not None:
        raise ParseError(line, f"expected a filename after '{pending.value}'")
    stages.append(_make_stage(line, words, stdout, stderr))
    return Pipeline(stages, line)


def expand_echo_escapes(text):
    """Replace \\n \\t \\r \\\\ \\0 \\" \\' with their characters; leave other sequences alone."""
    return re.sub(r"\\(.)", lambda m: ECHO_ESCAPES.get(m.group(1), m.group(0)), text, flags=re.S)
