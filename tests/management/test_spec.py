"""Tests for declarative quick command specs."""

from unittest.mock import MagicMock

import pytest

from django_assist.core.exceptions import SpecError
from django_assist.management.spec import (
    ArgumentScope,
    ArgumentSpec,
    CommandSpec,
    SwitchStyle,
    classify_switch,
)


class TestClassifySwitch:
    @pytest.mark.parametrize(
        ("template", "style"),
        [
            ("", SwitchStyle.POSITIONAL),
            ("--database=", SwitchStyle.ATTACHED),
            ("-v=", SwitchStyle.ATTACHED),
            ("--tag", SwitchStyle.SEPARATED),
            ("--tag ", SwitchStyle.SEPARATED),
        ],
    )
    def test_styles(self, template, style):
        assert classify_switch(template) is style

    def test_whitespace_only_rejected(self):
        with pytest.raises(SpecError, match="Malformed switch"):
            classify_switch("   ")


class TestArgumentSpec:
    @pytest.mark.parametrize(
        ("switch", "value", "fragment"),
        [
            ("", "blog", "blog"),
            ("--database=", "default", "--database=default"),
            ("--tag", "models", "--tag models"),
            ("--tag  ", "models", "--tag models"),
            ("--database=", "", ""),
            ("", "", ""),
        ],
    )
    def test_render(self, switch, value, fragment):
        assert ArgumentSpec("x", "X: ", switch=switch).render(value) == fragment

    @pytest.mark.parametrize("name", ["", "  ", "command", "switches", "project"])
    def test_invalid_names(self, name):
        with pytest.raises(SpecError):
            ArgumentSpec(name, "Value: ")

    def test_invalid_prompt(self):
        with pytest.raises(SpecError, match="prompt"):
            ArgumentSpec("app", 42)  # type: ignore[arg-type]

    def test_malformed_switch_rejected_at_construction(self):
        with pytest.raises(SpecError):
            ArgumentSpec("app", "App: ", switch=" ")

    def test_callable_default_sees_scope(self):
        argument = ArgumentSpec("path", "Path: ", default=lambda scope: f"fixtures/{scope['app']}")

        assert argument.evaluate_default(ArgumentScope(bound={"app": "blog"})) == "fixtures/blog"

    def test_string_prompt_asks_with_default(self, prompter):
        argument = ArgumentSpec("app", "App: ")

        argument.read(ArgumentScope(default="blog"), prompter)

        assert prompter.prompts == ["App: "]
        assert prompter.defaults == ["blog"]

    def test_reader_gets_scope_and_prompter(self, prompter):
        reader = MagicMock(return_value="shop")
        argument = ArgumentSpec("app", reader)
        scope = ArgumentScope(default="blog")

        assert argument.read(scope, prompter) == "shop"
        reader.assert_called_once_with(scope, prompter)


class TestCommandSpecValidation:
    def test_duplicate_argument_names(self):
        with pytest.raises(SpecError, match="duplicate argument 'app'"):
            CommandSpec(
                name="bad",
                command="migrate",
                arguments=(ArgumentSpec("app", "App: "), ArgumentSpec("app", "Again: ")),
            )

    def test_non_argument_entries(self):
        with pytest.raises(SpecError, match="not an ArgumentSpec"):
            CommandSpec(name="bad", command="migrate", arguments=("app",))  # type: ignore[arg-type]

    def test_metadata_shadowing_argument(self):
        with pytest.raises(SpecError, match="shadows"):
            CommandSpec(
                name="bad",
                command="migrate",
                arguments=(ArgumentSpec("app", "App: "),),
                metadata={"app": "blog"},
            )

    def test_metadata_command_key(self):
        with pytest.raises(SpecError, match="reserved"):
            CommandSpec(name="bad", command="migrate", metadata={"command": "x"})

    def test_empty_command(self):
        with pytest.raises(SpecError, match="no command"):
            CommandSpec(name="bad", command=" ")

    def test_arguments_list_stored_as_tuple(self):
        spec = CommandSpec(name="ok", command="migrate", arguments=[ArgumentSpec("app", "App: ")])

        assert isinstance(spec.arguments, tuple)
        assert spec.argument_names == ("app",)

    def test_metadata_read_only(self):
        spec = CommandSpec(name="ok", command="migrate", metadata={"target": "db"})

        with pytest.raises(TypeError):
            spec.metadata["target"] = "other"  # type: ignore[index]


@pytest.fixture
def dumpdata_spec() -> CommandSpec:
    return CommandSpec(
        name="dumpdata-app",
        command="dumpdata",
        switches="--natural-foreign",
        arguments=(
            ArgumentSpec("database", "Database: ", default="default", switch="--database="),
            ArgumentSpec("indent", "Indent: ", default="4", switch="--indent="),
            ArgumentSpec("app", "App: "),
        ),
        metadata={"target": "fixtures"},
    )


class TestCollectArguments:
    def test_prompts_only_without_default(self, dumpdata_spec, make_prompter):
        prompter = make_prompter(["blog"])

        values = dumpdata_spec.collect_arguments(prompter)

        assert values == ("default", "4", "blog")
        assert prompter.prompts == ["App: "]

    def test_always_prompt_prefills_defaults(self, dumpdata_spec, make_prompter):
        prompter = make_prompter(["", "2", "blog"])

        values = dumpdata_spec.collect_arguments(prompter, always_prompt=True)

        assert values == ("", "2", "blog")
        assert prompter.defaults == ["default", "4", None]

    def test_force_prompt(self, make_prompter):
        spec = CommandSpec(
            name="migrate",
            command="migrate",
            arguments=(ArgumentSpec("app", "App: ", default="blog", force_prompt=True),),
        )
        prompter = make_prompter()

        assert spec.collect_arguments(prompter) == ("blog",)
        assert prompter.prompts == ["App: "]

    def test_later_default_reads_earlier_binding(self, make_prompter):
        spec = CommandSpec(
            name="loaddata-app",
            command="loaddata",
            arguments=(
                ArgumentSpec("app", "App: "),
                ArgumentSpec("fixture", "Fixture: ", default=lambda scope: f"{scope['app']}.json"),
            ),
        )

        assert spec.collect_arguments(make_prompter(["blog"])) == ("blog", "blog.json")

    def test_scope_carries_project_and_metadata(self, prompter):
        seen = []

        def default(scope):
            seen.append((scope.project, scope.metadata))
            return "x"

        spec = CommandSpec(
            name="probe",
            command="check",
            arguments=(ArgumentSpec("tag", "Tag: ", default=default),),
        )
        project, metadata = object(), object()

        spec.collect_arguments(prompter, project=project, metadata=metadata)  # type: ignore[arg-type]

        assert seen == [(project, metadata)]

    def test_bound_scope_is_read_only(self, prompter):
        def default(scope):
            scope.bound["other"] = "x"  # type: ignore[index]
            return "x"

        spec = CommandSpec(
            name="probe",
            command="check",
            arguments=(ArgumentSpec("tag", "Tag: ", default=default),),
        )

        with pytest.raises(TypeError):
            spec.collect_arguments(prompter)

    def test_no_arguments(self, prompter):
        spec = CommandSpec(name="collectstatic", command="collectstatic", switches="--noinput")

        assert spec.collect_arguments(prompter) == ()
        assert prompter.prompts == []


class TestRendering:
    def test_render_arguments(self, dumpdata_spec):
        assert (
            dumpdata_spec.render_arguments(("default", "4", "blog"))
            == "--natural-foreign --database=default --indent=4 blog"
        )

    def test_empty_values_omitted(self, dumpdata_spec):
        assert dumpdata_spec.render_arguments(("", "4", "")) == "--natural-foreign --indent=4"

    def test_command_line(self, dumpdata_spec):
        assert dumpdata_spec.command_line(("default", "", "blog")) == (
            "dumpdata --natural-foreign --database=default blog"
        )

    def test_arity_mismatch(self, dumpdata_spec):
        with pytest.raises(SpecError, match="expects 3 values, got 2"):
            dumpdata_spec.render_arguments(("default", "4"))

    def test_argument_record(self, dumpdata_spec):
        record = dumpdata_spec.argument_record(("default", "4", "blog"))

        assert record == {
            "command": "dumpdata",
            "database": "default",
            "indent": "4",
            "app": "blog",
            "target": "fixtures",
        }
