"""Tests for the Jinja2 template engine façade and its collect integration."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from jinja2 import Environment, StrictUndefined, Undefined
from jinja2.sandbox import ImmutableSandboxedEnvironment, SandboxedEnvironment

from jinja_collect.directives import (
    CollectExtension,
    CollectKindMismatchError,
    CollectScopeError,
    CollectSyntaxError,
)
from jinja_collect.template_engine import (
    Jinja2TemplateEngine,
    TemplateEngineError,
    TemplateNotFoundError,
    TemplateRenderError,
    TemplateValidationError,
    create_environment,
)

SUMMARY_TEMPLATE = (
    "{% collect owners keyed %}"
    "{% for c in components %}{% append c.owner into owners keyed c.name %}{% endfor %}"
    "{% endcollect %}"
    "{% collect names %}"
    "{% for c in components if c.public %}{% append c.name into names %}{% endfor %}"
    "{% endcollect %}"
    "{{ project_name }}: {{ names|join(', ') }} (parser by {{ owners.parser }})\n"
)

COMPONENTS = [
    {"name": "lexer", "owner": "ana", "public": False},
    {"name": "parser", "owner": "bo", "public": True},
    {"name": "renderer", "owner": "cy", "public": True},
]


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "demo_project"
    templates = root / ".collect" / "templates"
    templates.mkdir(parents=True)
    (templates / "summary.j2").write_text(SUMMARY_TEMPLATE, encoding="utf-8")
    (templates / "broken.j2").write_text("{% collect %}{% endcollect %}", encoding="utf-8")
    (templates / "mismatch.j2").write_text(
        "{% collect c keyed %}{% append 1 into c %}{% endcollect %}", encoding="utf-8"
    )
    return root


class TestCreateEnvironment:
    def test_security_modes(self) -> None:
        assert isinstance(create_environment("sandbox"), SandboxedEnvironment)
        assert isinstance(create_environment("immutable"), ImmutableSandboxedEnvironment)
        for mode in ("none", "unrestricted", "NONE"):
            env = create_environment(mode)
            assert type(env) is Environment

    def test_unknown_security_mode(self) -> None:
        with pytest.raises(TemplateEngineError, match="Unknown security mode 'open'"):
            create_environment("open")

    def test_directives_installed_and_undefined_policy(self) -> None:
        env = create_environment()
        assert isinstance(env.extensions[CollectExtension.identifier], CollectExtension)
        assert env.undefined is StrictUndefined
        assert create_environment(strict_undefined=False).undefined is Undefined

    def test_options_override_defaults(self) -> None:
        env = create_environment("none", trim_blocks=False)
        assert env.trim_blocks is False
        assert env.lstrip_blocks is True


class TestJinja2TemplateEngine:
    def test_renders_collect_template_from_project(self, project: Path) -> None:
        engine = Jinja2TemplateEngine(project_root=project, project_name="Demo")
        rendered = engine.render_template("summary.j2", metadata={"components": COMPONENTS})
        assert rendered == "Demo: parser, renderer (parser by bo)\n"

    def test_render_string_exposes_metadata(self, project: Path) -> None:
        engine = Jinja2TemplateEngine(project_root=project, project_name="Demo Project")
        rendered = engine.render_string(
            "{% collect keys %}{% for k in metadata %}{% append k into keys %}{% endfor %}{% endcollect %}"
            "{{ keys|sort|join(',') }} {{ project_slug }}",
            metadata={"b": 1, "a": 2},
        )
        assert rendered == "a,b demo-project"

    def test_kind_mismatch_is_wrapped(self, project: Path) -> None:
        engine = Jinja2TemplateEngine(project_root=project)
        with pytest.raises(TemplateRenderError, match="unkeyed values to keyed") as excinfo:
            engine.render_template("mismatch.j2")
        assert isinstance(excinfo.value.original, CollectKindMismatchError)
        assert excinfo.value.__cause__ is excinfo.value.original

    def test_scope_error_is_wrapped(self, project: Path) -> None:
        engine = Jinja2TemplateEngine(project_root=project)
        with pytest.raises(TemplateRenderError) as excinfo:
            engine.render_string("{% append 'a' into c %}")
        assert isinstance(excinfo.value.original, CollectScopeError)

    def test_syntax_error_is_wrapped(self, project: Path) -> None:
        engine = Jinja2TemplateEngine(project_root=project)
        with pytest.raises(TemplateValidationError) as excinfo:
            engine.render_template("broken.j2")
        assert isinstance(excinfo.value.original, CollectSyntaxError)

        with pytest.raises(TemplateValidationError, match="endcollect"):
            engine.render_string("{% collect c %}")

    def test_missing_template(self, project: Path) -> None:
        engine = Jinja2TemplateEngine(project_root=project)
        with pytest.raises(TemplateNotFoundError, match="nope.j2"):
            engine.render_template("nope.j2")

    def test_strict_undefined_by_default(self, project: Path) -> None:
        engine = Jinja2TemplateEngine(project_root=project)
        with pytest.raises(TemplateRenderError, match="undefined"):
            engine.render_string("{{ missing }}")

        lenient = Jinja2TemplateEngine(project_root=project, strict_undefined=False)
        assert lenient.render_string("[{{ missing }}]") == "[]"

    def test_host_errors_are_wrapped(self, project: Path) -> None:
        def explode() -> str:
            raise ValueError("boom")

        engine = Jinja2TemplateEngine(project_root=project)
        with pytest.raises(TemplateRenderError, match="boom"):
            engine.render_string("{% collect c %}{% append explode() into c %}{% endcollect %}", {"explode": explode})

    def test_sandbox_blocks_unsafe_access(self, project: Path) -> None:
        engine = Jinja2TemplateEngine(project_root=project)
        with pytest.raises(TemplateRenderError):
            engine.render_string("{{ ''.__class__.__mro__ }}")

    def test_validation(self, project: Path) -> None:
        engine = Jinja2TemplateEngine(project_root=project)

        ok = engine.validate_template("summary.j2")
        assert ok["valid"] is True
        assert ok["errors"] == []
        assert ok["line_count"] == 1

        broken = engine.validate_template("broken.j2")
        assert broken["valid"] is False
        assert "Syntax error at line 1" in broken["errors"][0]

        missing = engine.validate_template("missing.j2")
        assert missing["errors"] == ["Template 'missing.j2' not found"]

        # Kind mismatches only surface at render time.
        assert engine.validate_template("mismatch.j2")["valid"] is True
        assert engine.validate_string("{% append 'x' into c keyed %}")["valid"] is False

    def test_template_directory_precedence(self, project: Path, tmp_path: Path) -> None:
        explicit = tmp_path / "explicit"
        explicit.mkdir()
        (explicit / "summary.j2").write_text("explicit wins\n", encoding="utf-8")
        (project / "templates").mkdir()
        (project / "templates" / "extra.j2").write_text("extra\n", encoding="utf-8")

        engine = Jinja2TemplateEngine(project_root=project, template_dirs=[explicit, tmp_path / "absent"])

        assert engine.render_template("summary.j2") == "explicit wins\n"
        assert [entry["type"] for entry in engine.describe_template_directories()] == [
            "explicit",
            "project_custom",
            "project_templates",
        ]
        assert engine.list_templates() == ["summary.j2", "broken.j2", "mismatch.j2", "extra.j2"]

        info = engine.get_template_info("extra.j2")
        assert info["found"] is True
        assert info["template_type"] == "project_templates"
        assert info["line_count"] == 1
        assert engine.get_template_info("absent.j2")["found"] is False

    def test_custom_variables(self, project: Path) -> None:
        config_dir = project / ".collect"
        (config_dir / "config.yaml").write_text(
            "variables:\n  owner: yaml\n  team: core\n", encoding="utf-8"
        )
        (config_dir / "variables.json").write_text(json.dumps({"owner": "json"}), encoding="utf-8")

        engine = Jinja2TemplateEngine(project_root=project)
        assert engine.render_string("{{ owner }}/{{ team }}") == "json/core"
        assert engine.render_string("{{ owner }}", metadata={"owner": "meta"}) == "meta"

    def test_variables_file_changes_are_picked_up(self, project: Path) -> None:
        variables_file = project / ".collect" / "variables.json"
        variables_file.write_text(json.dumps({"owner": "first"}), encoding="utf-8")

        engine = Jinja2TemplateEngine(project_root=project)
        assert engine.render_string("{{ owner }}") == "first"

        variables_file.write_text(json.dumps({"owner": "second"}), encoding="utf-8")
        assert engine.render_string("{{ owner }}") == "second"

    def test_invalid_variables_file_is_ignored(self, project: Path, caplog: pytest.LogCaptureFixture) -> None:
        (project / ".collect" / "variables.json").write_text("{not json", encoding="utf-8")

        engine = Jinja2TemplateEngine(project_root=project)
        with caplog.at_level("WARNING"):
            assert engine.load_custom_variables() == {}
        assert "Invalid JSON in variables file" in caplog.text

    def test_project_config_sets_security_mode(self, project: Path) -> None:
        (project / ".collect" / "config.yaml").write_text(
            "security_mode: none\nstrict_undefined: false\n", encoding="utf-8"
        )
        engine = Jinja2TemplateEngine(project_root=project)
        assert engine.security_mode == "none"
        assert engine.strict_undefined is False
        assert type(engine.env) is Environment

        explicit = Jinja2TemplateEngine(project_root=project, security_mode="immutable")
        assert isinstance(explicit.env, ImmutableSandboxedEnvironment)
