"""Resolve a flat answer map against a merged question tree."""

from __future__ import annotations

import inspect
from typing import Any, Callable, Optional

from fxcore.core.errors import FxSystemError, QuestionValidationError
from fxcore.questions.models import (
    SELECT_TYPES,
    AnswerMap,
    NodeType,
    OptionItem,
    Question,
    QuestionNode,
)
from fxcore.questions.validation import validate

# External renderer: receives the merged tree and current inputs, returns answers
QuestionFrontEnd = Callable[[QuestionNode, AnswerMap], Any]


async def _call(raw: Any, answers: AnswerMap) -> Any:
    if callable(raw):
        raw = raw(answers)
        if inspect.isawaitable(raw):
            raw = await raw
    return raw


async def load_options(question: Question, answers: AnswerMap) -> list[OptionItem]:
    """Static or computed options of a select question, as ``OptionItem``s."""
    raw = await _call(question.options, answers) or []
    return [item if isinstance(item, OptionItem) else OptionItem(id=str(item)) for item in raw]


def _option_id(value: Any) -> Any:
    return value.id if isinstance(value, OptionItem) else value


async def is_visible(
    node: QuestionNode, parent_value: Any, has_parent_question: bool, answers: AnswerMap
) -> bool:
    """Evaluate a node's condition against the referenced answer."""
    condition = node.condition
    if condition is None:
        return True
    if condition.path is not None:
        if condition.path not in answers:
            return False
        target = answers[condition.path]
    elif has_parent_question:
        target = parent_value
    else:
        return True
    if isinstance(target, list):
        target = [_option_id(item) for item in target]
    else:
        target = _option_id(target)
    return await validate(condition, target, answers) is None


async def resolve_answers(tree: Optional[QuestionNode], answers: AnswerMap) -> AnswerMap:
    """Walk the tree and return the validated answers of every visible question.

    Hidden subtrees are skipped. Func questions are computed, single-option
    selects marked ``skip_single_option`` are answered automatically and
    defaults fill unanswered questions.

    Raises:
        QuestionValidationError: If a visible question is unanswered or invalid
    """
    resolved: AnswerMap = {}
    if tree is None:
        return resolved

    def lookup() -> AnswerMap:
        return {**answers, **resolved}

    async def visit(node: QuestionNode, parent_value: Any, has_parent_question: bool) -> None:
        if not await is_visible(node, parent_value, has_parent_question, lookup()):
            return
        value = parent_value
        if not node.is_group:
            value = await _resolve_question(node, answers, lookup())
            if value is not None:
                resolved[node.path or node.data.name] = value
        for child in node.children:
            await visit(child, value, has_parent_question or not node.is_group)

    await visit(tree, None, False)
    return resolved


async def _resolve_question(node: QuestionNode, answers: AnswerMap, current: AnswerMap) -> Any:
    question = node.data
    path = node.path or question.name

    if question.type == NodeType.FUNC:
        return await _call(question.func, current)

    value = answers.get(path)
    if question.type in SELECT_TYPES:
        options = await load_options(question, current)
        if not options:
            raise FxSystemError(f"Select question '{path}' has no options", source="questions")
        ids = [option.id for option in options]
        if value is None and question.skip_single_option and len(options) == 1:
            value = ids[0] if question.type == NodeType.SINGLE_SELECT else [ids[0]]
        if value is None:
            value = await _call(question.default, current)
        _check_selection(path, question, value, ids)
        value = _to_return_shape(question, value, options)
    elif value is None:
        value = await _call(question.default, current)

    if question.type == NodeType.NUMBER and isinstance(value, str):
        try:
            value = float(value) if "." in value else int(value)
        except ValueError:
            raise QuestionValidationError(
                f"{path}: '{value}' is not a valid number", source="questions"
            ) from None

    schema = question.validation
    if value is None:
        if schema is None or schema.required:
            raise QuestionValidationError(f"{path}: A value is required", source="questions")
        return None
    if schema is not None:
        checked = [_option_id(v) for v in value] if isinstance(value, list) else _option_id(value)
        message = await validate(schema, checked, current)
        if message:
            raise QuestionValidationError(f"{path}: {message}", source="questions")
    return value


def _check_selection(path: str, question: Question, value: Any, ids: list[str]) -> None:
    if value is None:
        return
    selected = value if isinstance(value, list) else [value]
    if question.type == NodeType.SINGLE_SELECT and isinstance(value, list):
        raise QuestionValidationError(f"{path}: Select exactly one option", source="questions")
    invalid = [str(_option_id(v)) for v in selected if _option_id(v) not in ids]
    if invalid:
        raise QuestionValidationError(
            f"{path}: Unknown option(s): {', '.join(invalid)}", source="questions"
        )


def _to_return_shape(question: Question, value: Any, options: list[OptionItem]) -> Any:
    if value is None or not question.return_object:
        if isinstance(value, list):
            return [_option_id(v) for v in value]
        return _option_id(value)
    by_id: dict[str, OptionItem] = {option.id: option for option in options}
    if isinstance(value, list):
        return [by_id[_option_id(v)] for v in value]
    return by_id[_option_id(value)]

