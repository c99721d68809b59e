"""
Question tree model.

Plugins describe the input they need for a phase as a tree of
``QuestionNode``s. A node holds either a ``Question`` or a group, an optional
``Condition`` deciding whether it is visible, and child nodes that are only
asked when the node itself is visible.

Answer paths:
- A plain question name (``"sku"``) is qualified with the plugin name when
  trees are merged (``"function.sku"``).
- A dotted name (``"solution.capabilities"``) is already a fully-qualified
  answer path and is kept as is, so several plugins can refer to it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Awaitable, Callable, Iterator, Optional, Union

AnswerMap = dict[str, Any]
ValidatorFunc = Callable[[Any, AnswerMap], Union[Optional[str], Awaitable[Optional[str]]]]
OptionSource = Union[list[Union[str, "OptionItem"]], Callable[[AnswerMap], Any]]


class NodeType(StrEnum):
    """Kinds of question tree nodes."""

    TEXT = "text"
    NUMBER = "number"
    SINGLE_SELECT = "single_select"
    MULTI_SELECT = "multi_select"
    FILE = "file"
    FUNC = "func"  # computed, never shown
    GROUP = "group"


SELECT_TYPES = (NodeType.SINGLE_SELECT, NodeType.MULTI_SELECT)


@dataclass
class OptionItem:
    """One choice of a select question."""

    id: str
    label: str = ""
    description: Optional[str] = None
    detail: Optional[str] = None
    data: Any = None
    cli_name: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.label:
            self.label = self.id


@dataclass
class Validation:
    """Declarative checks applied to an answer.

    Only the checks that apply to the answer's type are evaluated: string
    checks for strings, item checks for lists and numeric bounds for numbers.
    """

    required: bool = True
    equals: Any = None
    enum: Optional[list[Any]] = None
    # strings
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    starts_with: Optional[str] = None
    ends_with: Optional[str] = None
    includes: Optional[str] = None
    # lists
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    unique_items: bool = False
    contains: Optional[str] = None
    contains_all: Optional[list[str]] = None
    contains_any: Optional[list[str]] = None
    # numbers
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    exclusive_minimum: Optional[float] = None
    exclusive_maximum: Optional[float] = None
    multiple_of: Optional[float] = None
    # files
    exists: Optional[bool] = None
    # custom
    func: Optional[ValidatorFunc] = None


@dataclass
class Condition(Validation):
    """Visibility rule for a node.

    The checks run against the answer at ``path`` (any answer in the merged
    tree) or, when ``path`` is None, against the parent question's answer.
    """

    path: Optional[str] = None


@dataclass
class Question:
    """A single input the user (or a function) answers."""

    name: str
    type: NodeType
    title: str = ""
    options: Optional[OptionSource] = None
    default: Any = None
    validation: Optional[Validation] = None
    skip_single_option: bool = False
    return_object: bool = False
    password: bool = False
    func: Optional[Callable[[AnswerMap], Any]] = None

    def __post_init__(self) -> None:
        if self.type == NodeType.GROUP:
            raise ValueError("Use QuestionNode.group() for group nodes")
        if self.type in SELECT_TYPES and self.options is None:
            raise ValueError(f"Select question '{self.name}' needs options")
        if self.type == NodeType.FUNC and self.func is None:
            raise ValueError(f"Func question '{self.name}' needs a func")
        if not self.title:
            self.title = self.name


@dataclass
class QuestionNode:
    """Tree node holding a question or a group of child nodes."""

    data: Optional[Question] = None
    condition: Optional[Condition] = None
    children: list[QuestionNode] = field(default_factory=list)
    name: Optional[str] = None
    path: Optional[str] = None  # set when trees are merged

    @classmethod
    def group(
        cls,
        *children: QuestionNode,
        name: Optional[str] = None,
        condition: Optional[Condition] = None,
    ) -> QuestionNode:
        return cls(data=None, condition=condition, children=list(children), name=name)

    @property
    def is_group(self) -> bool:
        return self.data is None

    @property
    def type(self) -> NodeType:
        return NodeType.GROUP if self.data is None else self.data.type

    def add_child(self, node: QuestionNode) -> QuestionNode:
        self.children.append(node)
        return self

    def walk(self) -> Iterator[QuestionNode]:
        """Pre-order traversal."""
        yield self
        for child in self.children:
            yield from child.walk()

    def questions(self) -> list[QuestionNode]:
        return [node for node in self.walk() if not node.is_group]

    def find(self, path: str) -> Optional[QuestionNode]:
        for node in self.walk():
            if node.path == path:
                return node
        return None

    def trim(self) -> Optional[QuestionNode]:
        """Drop empty groups and collapse single-child groups."""
        self.children = [t for t in (child.trim() for child in self.children) if t is not None]
        if self.is_group:
            if not self.children:
                return None
            if len(self.children) == 1 and self.condition is None:
                return self.children[0]
            if len(self.children) == 1 and self.children[0].condition is None:
                self.children[0].condition = self.condition
                return self.children[0]
        return self
