"""Tests for question trees: model, validation, merge and answer resolution."""

import pytest
from fxcore.core.errors import DuplicateQuestionIdError, FxSystemError, QuestionValidationError
from fxcore.questions import (
    Condition,
    NodeType,
    OptionItem,
    Question,
    QuestionNode,
    Validation,
    load_options,
    merge_question_trees,
    qualify,
    resolve_answers,
    validate,
)


def text(name, **kwargs):
    condition = kwargs.pop("condition", None)
    return QuestionNode(data=Question(name=name, type=NodeType.TEXT, **kwargs), condition=condition)


def select(name, options, multi=False, **kwargs):
    condition = kwargs.pop("condition", None)
    node_type = NodeType.MULTI_SELECT if multi else NodeType.SINGLE_SELECT
    return QuestionNode(
        data=Question(name=name, type=node_type, options=options, **kwargs), condition=condition
    )


class TestModel:
    def test_select_needs_options(self):
        with pytest.raises(ValueError):
            Question(name="sku", type=NodeType.SINGLE_SELECT)

    def test_func_needs_func(self):
        with pytest.raises(ValueError):
            Question(name="derived", type=NodeType.FUNC)

    def test_title_defaults_to_name(self):
        assert Question(name="app_name", type=NodeType.TEXT).title == "app_name"
        assert OptionItem(id="bot").label == "bot"

    def test_walk_and_questions(self):
        tree = QuestionNode.group(text("a"), QuestionNode.group(text("b")), name="root")

        assert [node.type for node in tree.walk()] == [
            NodeType.GROUP,
            NodeType.TEXT,
            NodeType.GROUP,
            NodeType.TEXT,
        ]
        assert [node.data.name for node in tree.questions()] == ["a", "b"]

    def test_trim_collapses_groups(self):
        tree = QuestionNode.group(QuestionNode.group(), QuestionNode.group(text("a")))

        trimmed = tree.trim()

        assert trimmed.data.name == "a"

    def test_trim_drops_empty_tree(self):
        assert QuestionNode.group(QuestionNode.group()).trim() is None


class TestValidation:
    """Declarative answer checks."""

    @pytest.mark.asyncio
    async def test_required(self):
        assert await validate(Validation(), "", {}) == "A value is required"
        assert await validate(Validation(required=False), None, {}) is None

    @pytest.mark.asyncio
    async def test_string_checks(self):
        schema = Validation(min_length=3, pattern=r"^[a-z-]+$", starts_with="app")

        assert await validate(schema, "app-one", {}) is None
        assert "at least 3" in await validate(schema, "ap", {})
        assert "pattern" in await validate(schema, "App", {})
        assert "start with" in await validate(schema, "my-app", {})

    @pytest.mark.asyncio
    async def test_list_checks(self):
        schema = Validation(min_items=1, contains_all=["aad"], contains_any=["bot", "tab"])

        assert await validate(schema, ["aad", "bot"], {}) is None
        assert "must contain: aad" in await validate(schema, ["bot"], {})
        assert "one of" in await validate(schema, ["aad"], {})

    @pytest.mark.asyncio
    async def test_number_checks(self):
        schema = Validation(minimum=1, maximum=10, multiple_of=2)

        assert await validate(schema, 4, {}) is None
        assert ">= 1" in await validate(schema, 0, {})
        assert "multiple" in await validate(schema, 3, {})

    @pytest.mark.asyncio
    async def test_custom_func_sync_and_async(self):
        def sync_check(value, answers):
            return None if value != answers.get("other") else "Must differ"

        async def async_check(value, answers):
            return "Taken" if value == "taken" else None

        assert await validate(Validation(func=sync_check), "x", {"other": "x"}) == "Must differ"
        assert await validate(Validation(func=async_check), "taken", {}) == "Taken"
        assert await validate(Validation(func=async_check), "free", {}) is None

    @pytest.mark.asyncio
    async def test_file_exists(self, tmp_path):
        schema = Validation(exists=True)

        assert await validate(schema, str(tmp_path), {}) is None
        assert "does not exist" in await validate(schema, str(tmp_path / "nope"), {})


class TestMerge:
    """Splicing plugin subtrees into one tree."""

    def test_qualify(self):
        assert qualify("bot", "sku") == "bot.sku"
        assert qualify("bot", "solution.region") == "solution.region"

    def test_distinct_paths_merge(self):
        tree = merge_question_trees({"web": text("app_name"), "bot": text("app_name")})

        assert [child.name for child in tree.children] == ["web", "bot"]
        assert [node.path for node in tree.questions()] == ["web.app_name", "bot.app_name"]

    def test_identical_path_is_rejected(self):
        with pytest.raises(DuplicateQuestionIdError) as exc_info:
            merge_question_trees(
                {"web": text("solution.region"), "bot": text("solution.region")}
            )

        assert exc_info.value.path == "solution.region"
        assert exc_info.value.plugins == ["web", "bot"]

    def test_plugin_trees_are_not_modified(self):
        original = QuestionNode.group(
            text("sku"), text("name", condition=Condition(path="sku", equals="S1"))
        )

        merged = merge_question_trees({"function": original})

        assert original.children[0].path is None
        assert original.children[1].condition.path == "sku"
        assert merged.find("function.name").condition.path == "function.sku"

    def test_no_questions(self):
        assert merge_question_trees({}) is None
        assert merge_question_trees({"web": None}) is None


class TestResolveAnswers:
    """Walking a merged tree against an answer map."""

    @pytest.mark.asyncio
    async def test_defaults_and_provided_answers(self):
        tree = merge_question_trees(
            {"web": QuestionNode.group(text("app_name"), text("port", default="8080"))}
        )

        answers = await resolve_answers(tree, {"web.app_name": "todo"})

        assert answers == {"web.app_name": "todo", "web.port": "8080"}

    @pytest.mark.asyncio
    async def test_callable_default_sees_earlier_answers(self):
        tree = merge_question_trees(
            {
                "web": QuestionNode.group(
                    text("app_name"),
                    text("host", default=lambda answers: f"{answers['web.app_name']}.example.com"),
                )
            }
        )

        answers = await resolve_answers(tree, {"web.app_name": "todo"})

        assert answers["web.host"] == "todo.example.com"

    @pytest.mark.asyncio
    async def test_missing_required_answer(self):
        tree = merge_question_trees({"web": text("app_name")})

        with pytest.raises(QuestionValidationError, match="web.app_name"):
            await resolve_answers(tree, {})

    @pytest.mark.asyncio
    async def test_optional_question_may_be_unanswered(self):
        tree = merge_question_trees({"web": text("notes", validation=Validation(required=False))})

        assert await resolve_answers(tree, {}) == {}

    @pytest.mark.asyncio
    async def test_invalid_answer(self):
        tree = merge_question_trees(
            {"web": text("app_name", validation=Validation(max_length=5))}
        )

        with pytest.raises(QuestionValidationError, match="at most 5"):
            await resolve_answers(tree, {"web.app_name": "much-too-long"})

    @pytest.mark.asyncio
    async def test_skip_single_option(self):
        tree = merge_question_trees(
            {
                "bot": QuestionNode.group(
                    select("host", ["azure"], skip_single_option=True),
                    select("features", ["sso"], multi=True, skip_single_option=True),
                )
            }
        )

        answers = await resolve_answers(tree, {})

        assert answers == {"bot.host": "azure", "bot.features": ["sso"]}

    @pytest.mark.asyncio
    async def test_unknown_option(self):
        tree = merge_question_trees({"bot": select("host", ["azure", "spfx"])})

        with pytest.raises(QuestionValidationError, match="Unknown option"):
            await resolve_answers(tree, {"bot.host": "gcp"})

    @pytest.mark.asyncio
    async def test_single_select_rejects_list(self):
        tree = merge_question_trees({"bot": select("host", ["azure", "spfx"])})

        with pytest.raises(QuestionValidationError, match="exactly one"):
            await resolve_answers(tree, {"bot.host": ["azure", "spfx"]})

    @pytest.mark.asyncio
    async def test_dynamic_options_and_return_object(self):
        async def regions(answers):
            return [OptionItem(id="westus", label="West US"), OptionItem(id="eastus")]

        tree = merge_question_trees({"web": select("region", regions, return_object=True)})

        answers = await resolve_answers(tree, {"web.region": "westus"})

        assert answers["web.region"] == OptionItem(id="westus", label="West US")

    @pytest.mark.asyncio
    async def test_empty_options_is_a_system_error(self):
        tree = merge_question_trees({"web": select("region", lambda answers: [])})

        with pytest.raises(FxSystemError):
            await resolve_answers(tree, {"web.region": "westus"})

    @pytest.mark.asyncio
    async def test_func_question_is_computed(self):
        node = QuestionNode(
            data=Question(
                name="resource_group",
                type=NodeType.FUNC,
                func=lambda answers: f"rg-{answers['web.app_name']}",
            )
        )
        tree = merge_question_trees({"web": QuestionNode.group(text("app_name"), node)})

        answers = await resolve_answers(tree, {"web.app_name": "todo"})

        assert answers["web.resource_group"] == "rg-todo"

    @pytest.mark.asyncio
    async def test_number_answers_are_coerced(self):
        node = QuestionNode(
            data=Question(name="instances", type=NodeType.NUMBER, validation=Validation(maximum=3))
        )
        tree = merge_question_trees({"function": node})

        assert await resolve_answers(tree, {"function.instances": "2"}) == {"function.instances": 2}
        with pytest.raises(QuestionValidationError, match="<= 3"):
            await resolve_answers(tree, {"function.instances": "5"})
        with pytest.raises(QuestionValidationError, match="not a valid number"):
            await resolve_answers(tree, {"function.instances": "two"})

    @pytest.mark.asyncio
    async def test_condition_on_parent_answer(self):
        platform = select("platform", ["tab", "bot"])
        platform.add_child(text("bot_name", condition=Condition(equals="bot")))
        tree = merge_question_trees({"app": platform})

        assert await resolve_answers(tree, {"app.platform": "tab"}) == {"app.platform": "tab"}
        with pytest.raises(QuestionValidationError, match="app.bot_name"):
            await resolve_answers(tree, {"app.platform": "bot"})

    @pytest.mark.asyncio
    async def test_cross_plugin_condition(self):
        capabilities = select("solution.capabilities", ["tab", "bot", "function"], multi=True)
        function_sku = select(
            "sku",
            ["Y1", "EP1"],
            condition=Condition(path="solution.capabilities", contains="function"),
        )
        tree = merge_question_trees({"core": capabilities, "function": function_sku})

        answers = await resolve_answers(tree, {"solution.capabilities": ["tab"]})
        assert answers == {"solution.capabilities": ["tab"]}

        answers = await resolve_answers(
            tree, {"solution.capabilities": ["tab", "function"], "function.sku": "Y1"}
        )
        assert answers["function.sku"] == "Y1"

    @pytest.mark.asyncio
    async def test_condition_on_unanswered_path_hides_node(self):
        tree = merge_question_trees(
            {"bot": text("app_id", condition=Condition(path="identity.kind", equals="aad"))}
        )

        assert await resolve_answers(tree, {}) == {}

    @pytest.mark.asyncio
    async def test_load_options_wraps_strings(self):
        question = Question(name="sku", type=NodeType.SINGLE_SELECT, options=["F0", "S1"])

        options = await load_options(question, {})

        assert [option.id for option in options] == ["F0", "S1"]

    @pytest.mark.asyncio
    async def test_empty_tree(self):
        assert await resolve_answers(None, {"a": 1}) == {}
