"""Merge per-plugin question subtrees into one tree."""

from __future__ import annotations

import dataclasses
from typing import Dict, List, Mapping, Optional

import structlog

from fxcore.core.errors import DuplicateQuestionIdError
from fxcore.questions.models import QuestionNode

logger = structlog.get_logger()

ROOT_NAME = "root"


def qualify(plugin: str, name: str) -> str:
    """Fully-qualified answer path of ``name`` asked by ``plugin``."""
    return name if "." in name else f"{plugin}.{name}"


def _copy_tree(node: QuestionNode) -> QuestionNode:
    return dataclasses.replace(node, children=[_copy_tree(child) for child in node.children])


def merge_question_trees(subtrees: Mapping[str, Optional[QuestionNode]]) -> Optional[QuestionNode]:
    """Splice plugin subtrees under one root group keyed by plugin name.

    Subtree nodes are copied, so the plugins' own trees are left untouched. Every
    question node gets its fully-qualified ``path``; relative condition paths
    are qualified with the owning plugin.

    Returns:
        The merged tree, or None when no plugin contributed questions

    Raises:
        DuplicateQuestionIdError: If two subtrees use the same answer path
    """
    owners: Dict[str, List[str]] = {}
    root = QuestionNode.group(name=ROOT_NAME)

    for plugin, subtree in subtrees.items():
        if subtree is None:
            continue
        tree = _copy_tree(subtree)
        for node in tree.walk():
            if node.condition is not None and node.condition.path is not None:
                node.condition = dataclasses.replace(
                    node.condition, path=qualify(plugin, node.condition.path)
                )
            if node.is_group:
                continue
            node.path = qualify(plugin, node.data.name)
            owners.setdefault(node.path, []).append(plugin)
        root.add_child(QuestionNode.group(tree, name=plugin))

    for path, plugins in owners.items():
        if len(plugins) > 1:
            raise DuplicateQuestionIdError(path, plugins)

    if not root.children:
        return None
    logger.debug("question_trees_merged", plugins=[c.name for c in root.children], paths=list(owners))
    return root
