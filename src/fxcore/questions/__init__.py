"""Question trees: model, merge across plugins and answer resolution."""

from fxcore.questions.merge import merge_question_trees, qualify
from fxcore.questions.models import (
    Condition,
    NodeType,
    OptionItem,
    Question,
    QuestionNode,
    Validation,
)
from fxcore.questions.resolve import QuestionFrontEnd, load_options, resolve_answers
from fxcore.questions.validation import validate

__all__ = [
    "Condition",
    "NodeType",
    "OptionItem",
    "Question",
    "QuestionFrontEnd",
    "QuestionNode",
    "Validation",
    "load_options",
    "merge_question_trees",
    "qualify",
    "resolve_answers",
    "validate",
]
