"""
Structured form of one command line: a pipeline of command descriptors,
each with its own stdout/stderr redirection target.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class WriteMode(Enum):
    TRUNCATE = "truncate"
    APPEND = "append"


class TargetKind(Enum):
    INHERIT = "inherit"
    TO_PIPE = "to_pipe"
    TO_FILE = "to_file"


@dataclass(frozen=True)
class RedirectionTarget:
    """Where one output stream of a stage goes."""
    kind: TargetKind
    path: Optional[str] = None
    mode: WriteMode = WriteMode.TRUNCATE

    @classmethod
    def to_file(cls, path, append=False):
        return cls(TargetKind.TO_FILE, path, WriteMode.APPEND if append else WriteMode.TRUNCATE)

    @property
    def is_file(self):
        return self.kind is TargetKind.TO_FILE


INHERIT = RedirectionTarget(TargetKind.INHERIT)
TO_PIPE = RedirectionTarget(TargetKind.TO_PIPE)


@dataclass
class CommandDescriptor:
    """One pipeline stage."""
    program: str
    args: List[str] = field(default_factory=list)
    stdout: RedirectionTarget = INHERIT
    stderr: RedirectionTarget = INHERIT

    @property
    def argv(self):
        return [self.program] + self.args


@dataclass
class Pipeline:
    """Non-empty, ordered list of stages parsed from one line."""
    stages: List[CommandDescriptor]
    line: str = ""

    def __len__(self):
        return len(self.stages)

    def __iter__(self):
        return iter(self.stages)

    def __getitem__(self, index):
        return self.stages[index]
