"""
Block Invariants

Diagnostic predicates that explain *why* an observation is not valid for a
block. `checkblock` answers yes/no; an invariant produces a structured
report naming the failing requirement.

Usage:
    inv = Continuous(5).invariant(obsname="x")
    result = inv.check([1, 2])
    if not result:
        print(result)   # names the length requirement and the actual length
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional


@dataclass
class InvariantResult:
    """Outcome of checking an invariant against one observation."""

    passed: bool
    title: str
    message: str = ""
    failed: Optional[str] = None   # title of the first failing step

    def __bool__(self) -> bool:
        return self.passed

    def __str__(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        lines = [f"[{status}] {self.title}"]
        if self.failed is not None and self.failed != self.title:
            lines.append(f"  failed: {self.failed}")
        if self.message:
            lines.extend("  " + line for line in self.message.strip().splitlines())
        return "\n".join(lines)


class Invariant:
    """
    Base invariant.

    Subclasses implement `check(obs) -> InvariantResult`. Calling an
    invariant returns a bool.
    """

    def __init__(self, title: str, description: str = ""):
        self.title = title
        self.description = description

    def check(self, obs: Any) -> InvariantResult:
        raise NotImplementedError

    def __call__(self, obs: Any) -> bool:
        return self.check(obs).passed

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.title!r})"


class MessageInvariant(Invariant):
    """
    Invariant from a function returning `None` on success and an
    explanation string on failure.
    """

    def __init__(
        self,
        title: str,
        fn: Callable[[Any], Optional[str]],
        description: str = ""
    ):
        super().__init__(title, description)
        self.fn = fn

    def check(self, obs: Any) -> InvariantResult:
        message = self.fn(obs)
        if message is None:
            return InvariantResult(True, self.title)
        return InvariantResult(
            False,
            self.title,
            message=_join(self.description, message),
            failed=self.title,
        )


class BooleanInvariant(Invariant):
    """
    Invariant from a predicate plus a function building the failure message.
    """

    def __init__(
        self,
        fn: Callable[[Any], bool],
        name: str,
        messagefn: Optional[Callable[[Any], str]] = None,
        description: str = ""
    ):
        super().__init__(name, description)
        self.fn = fn
        self.messagefn = messagefn

    def check(self, obs: Any) -> InvariantResult:
        if self.fn(obs):
            return InvariantResult(True, self.title)
        message = self.messagefn(obs) if self.messagefn is not None else ""
        return InvariantResult(
            False,
            self.title,
            message=_join(self.description, message),
            failed=self.title,
        )


class SequenceInvariant(Invariant):
    """
    Checks steps in order and stops at the first failure, so later steps
    may assume earlier ones hold (e.g. length is only checked on vectors).
    """

    def __init__(
        self,
        invariants: List[Invariant],
        title: str,
        description: str = ""
    ):
        super().__init__(title, description)
        self.invariants = list(invariants)

    def check(self, obs: Any) -> InvariantResult:
        for inv in self.invariants:
            result = inv.check(obs)
            if not result.passed:
                return InvariantResult(
                    False,
                    self.title,
                    message=_join(self.description, result.message),
                    failed=result.failed or inv.title,
                )
        return InvariantResult(True, self.title)


def _join(*parts: str) -> str:
    return "\n".join(p.strip() for p in parts if p and p.strip())
