#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
fleet/workflows.py — input collection and workflow outcomes.

A workflow asks its questions through a Prompter, one Step at a time. Backing
out of any step ends the whole wizard with Cancelled, and the answers given
so far are thrown away. The four outcome types are what every dispatcher
workflow returns; nothing is signalled with None.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union


class Prompter(Protocol):
    def ask(self, step: "Step") -> Optional[str]:
        """Return the answer, or None when the user backs out."""

    def confirm(self, message: str) -> bool:
        ...


class Notifier(Protocol):
    def notify(self, message: str, ok: bool = True) -> None:
        ...


# ----------------------------- outcomes -----------------------------

@dataclass(frozen=True)
class Cancelled:
    step: Optional[str] = None


@dataclass(frozen=True)
class Rejected:
    reason: str


@dataclass(frozen=True)
class Succeeded:
    message: str
    data: Any = None
    refresh: Optional[str] = None   # snapshot kind scheduled for refresh


@dataclass(frozen=True)
class Failed:
    message: str
    status: Optional[int] = None


Outcome = Union[Cancelled, Rejected, Succeeded, Failed]


# ----------------------------- wizard -----------------------------

@dataclass(frozen=True)
class Step:
    name: str
    label: str
    default: Optional[str] = None
    required: bool = False   # an empty answer counts as backing out

    def describe(self) -> Dict[str, Any]:
        return {"name": self.name, "label": self.label, "default": self.default,
                "required": self.required}


@dataclass(frozen=True)
class Collected:
    answers: Mapping[str, str] = field(default_factory=dict)

    def __getitem__(self, key: str) -> str:
        return self.answers[key]


class Wizard:
    def __init__(self, steps: Sequence[Step]):
        self.steps: List[Step] = list(steps)

    def run(self, prompter: Prompter) -> Union[Collected, Cancelled]:
        answers: Dict[str, str] = {}
        for step in self.steps:
            answer = prompter.ask(step)
            if answer is None:
                return Cancelled(step=step.name)
            if step.required and not answer.strip():
                return Cancelled(step=step.name)
            answers[step.name] = answer
        return Collected(answers=answers)

    def describe(self) -> List[Dict[str, Any]]:
        return [s.describe() for s in self.steps]


# ----------------------------- stock prompters -----------------------------

class AnswerPrompter:
    """
    Prompter fed from a dict of pre-collected answers, keyed by step name.

    Used by the web front end: the browser gathers answers and posts them in
    one request. A missing key means the user backed out at that step.
    """

    def __init__(self, answers: Optional[Mapping[str, Optional[str]]] = None, confirmed: bool = False):
        self.answers = dict(answers or {})
        self.confirmed = confirmed
        self.asked: List[str] = []

    def ask(self, step: Step) -> Optional[str]:
        self.asked.append(step.name)
        val = self.answers.get(step.name)
        return None if val is None else str(val)

    def confirm(self, message: str) -> bool:
        return self.confirmed

