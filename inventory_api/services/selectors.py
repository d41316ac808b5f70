"""Kubernetes label selector parsing and matching.

Supports the string syntax accepted by ``kubectl get -l``::

    env=prod,tier!=cache,region in (eu-west, eu-north),!deprecated,team

Requirements are conjoined. ``!=`` and ``notin`` also match labels that are
absent, the same as the API server.
"""
from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum


class Operator(str, Enum):
    EQUALS = "="
    NOT_EQUALS = "!="
    IN = "in"
    NOT_IN = "notin"
    EXISTS = "exists"
    DOES_NOT_EXIST = "!"
    GREATER_THAN = "gt"
    LESS_THAN = "lt"


class SelectorParseError(ValueError):
    pass


_NAME = r"[A-Za-z0-9](?:[-A-Za-z0-9_.]{0,61}[A-Za-z0-9])?"
_PREFIX = r"[a-z0-9](?:[-a-z0-9.]{0,251}[a-z0-9])?"
_KEY_RE = re.compile(rf"^(?:{_PREFIX}/)?{_NAME}$")
_VALUE_RE = re.compile(rf"^(?:{_NAME})?$")

_SET_RE = re.compile(r"^(?P<key>[^\s!=<>(),]+)\s+(?P<op>in|notin)\s*\((?P<values>[^()]*)\)$")
_BINARY_RE = re.compile(r"^(?P<key>[^\s!=<>(),]+)\s*(?P<op>==|!=|=|>|<)\s*(?P<value>[^\s!=<>(),]*)$")
_NOT_EXISTS_RE = re.compile(r"^!\s*(?P<key>[^\s!=<>(),]+)$")
_EXISTS_RE = re.compile(r"^(?P<key>[^\s!=<>(),]+)$")


def _check_key(key: str) -> str:
    if len(key) > 316 or not _KEY_RE.match(key):
        raise SelectorParseError(f"invalid label key {key!r}")
    return key


def _check_value(value: str) -> str:
    if len(value) > 63 or not _VALUE_RE.match(value):
        raise SelectorParseError(f"invalid label value {value!r}")
    return value


@dataclass(frozen=True)
class Requirement:
    key: str
    operator: Operator
    values: tuple[str, ...] = ()

    def matches(self, labels: Mapping[str, str]) -> bool:
        present = self.key in labels
        if self.operator is Operator.EXISTS:
            return present
        if self.operator is Operator.DOES_NOT_EXIST:
            return not present
        if self.operator in (Operator.EQUALS, Operator.IN):
            return present and labels[self.key] in self.values
        if self.operator in (Operator.NOT_EQUALS, Operator.NOT_IN):
            return not present or labels[self.key] not in self.values
        if not present:
            return False
        try:
            actual = int(labels[self.key])
        except ValueError:
            return False
        bound = int(self.values[0])
        if self.operator is Operator.GREATER_THAN:
            return actual > bound
        return actual < bound

    def __str__(self) -> str:
        if self.operator is Operator.EXISTS:
            return self.key
        if self.operator is Operator.DOES_NOT_EXIST:
            return f"!{self.key}"
        if self.operator in (Operator.IN, Operator.NOT_IN):
            return f"{self.key} {self.operator.value} ({','.join(self.values)})"
        symbol = {Operator.GREATER_THAN: ">", Operator.LESS_THAN: "<"}.get(self.operator, self.operator.value)
        return f"{self.key}{symbol}{self.values[0]}"


@dataclass(frozen=True)
class LabelSelector:
    requirements: tuple[Requirement, ...] = ()

    def empty(self) -> bool:
        return not self.requirements

    def matches(self, labels: Mapping[str, str] | None) -> bool:
        labels = labels or {}
        return all(req.matches(labels) for req in self.requirements)

    def __str__(self) -> str:
        return ",".join(str(req) for req in self.requirements)


EVERYTHING = LabelSelector()


def _split_terms(expression: str) -> list[str]:
    """Split on commas that are not inside a parenthesised value set."""
    terms: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in expression:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                raise SelectorParseError("unbalanced parentheses")
        if ch == "," and depth == 0:
            terms.append("".join(current))
            current = []
            continue
        current.append(ch)
    if depth != 0:
        raise SelectorParseError("unbalanced parentheses")
    terms.append("".join(current))
    return terms


def _parse_term(term: str) -> Requirement:
    term = term.strip()
    if not term:
        raise SelectorParseError("empty requirement")

    match = _SET_RE.match(term)
    if match:
        values = tuple(sorted({_check_value(v.strip()) for v in match["values"].split(",")}))
        if not match["values"].strip():
            raise SelectorParseError(f"{match['op']} requires at least one value")
        op = Operator.IN if match["op"] == "in" else Operator.NOT_IN
        return Requirement(_check_key(match["key"]), op, values)

    match = _BINARY_RE.match(term)
    if match:
        key = _check_key(match["key"])
        value = match["value"]
        symbol = match["op"]
        if symbol in (">", "<"):
            if not re.fullmatch(r"-?\d+", value):
                raise SelectorParseError(f"{symbol} requires an integer value")
            op = Operator.GREATER_THAN if symbol == ">" else Operator.LESS_THAN
            return Requirement(key, op, (value,))
        op = Operator.NOT_EQUALS if symbol == "!=" else Operator.EQUALS
        return Requirement(key, op, (_check_value(value),))

    match = _NOT_EXISTS_RE.match(term)
    if match:
        return Requirement(_check_key(match["key"]), Operator.DOES_NOT_EXIST)

    match = _EXISTS_RE.match(term)
    if match:
        return Requirement(_check_key(match["key"]), Operator.EXISTS)

    raise SelectorParseError(f"unable to parse requirement {term!r}")


def parse_selector(expression: str | None) -> LabelSelector:
    """Parse a selector string. Blank input selects everything."""
    if expression is None or not expression.strip():
        return EVERYTHING
    requirements = tuple(_parse_term(term) for term in _split_terms(expression))
    # sorted by key like the API server, so str() is canonical
    return LabelSelector(tuple(sorted(requirements, key=lambda r: r.key)))
