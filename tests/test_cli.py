"""Tests for the jinja-collect command line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from jinja_collect.template_engine.cli import main

COLLECT_SOURCE = "{% collect xs %}{% append 1 into xs %}{% append 2 into xs %}{% endcollect %}{{ xs|join('+') }}"


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "cli_project"
    templates = root / ".collect" / "templates"
    templates.mkdir(parents=True)
    (templates / "hello.j2").write_text(
        "{% collect names %}{% for n in people %}{% append n into names %}{% endfor %}{% endcollect %}"
        "Hello {{ names|join(' and ') }}\n",
        encoding="utf-8",
    )
    return root


def test_render_string(project: Path, capsys) -> None:
    assert main(["-p", str(project), "--string", COLLECT_SOURCE]) == 0
    assert capsys.readouterr().out == "1+2"


def test_render_template_with_metadata(project: Path, capsys) -> None:
    meta = json.dumps({"people": ["ana", "bo"]})
    assert main(["-p", str(project), "-t", "hello.j2", "--meta", meta]) == 0
    assert capsys.readouterr().out == "Hello ana and bo\n"


def test_render_file_with_meta_file(project: Path, tmp_path: Path, capsys) -> None:
    source = tmp_path / "inline.j2"
    source.write_text("{% collect m keyed %}{% append v into m keyed k %}{% endcollect %}{{ m.x }}", encoding="utf-8")
    meta_file = tmp_path / "meta.json"
    meta_file.write_text(json.dumps({"k": "x", "v": "value"}), encoding="utf-8")

    assert main(["-p", str(project), "-f", str(source), "--meta-file", str(meta_file)]) == 0
    assert capsys.readouterr().out == "value"


@pytest.mark.parametrize(
    ("meta", "message"),
    [
        ("{broken", "Invalid JSON in --meta"),
        ("[1, 2]", "Metadata must be a JSON object"),
    ],
)
def test_invalid_metadata(project: Path, capsys, meta: str, message: str) -> None:
    assert main(["-p", str(project), "--string", "x", "--meta", meta]) == 1
    assert message in capsys.readouterr().err


def test_missing_template_file(project: Path, tmp_path: Path, capsys) -> None:
    assert main(["-p", str(project), "-f", str(tmp_path / "nope.j2")]) == 1
    assert "Cannot read template file" in capsys.readouterr().err


def test_render_error_exit_code(project: Path, capsys) -> None:
    assert main(["-p", str(project), "--string", "{% collect c keyed %}{% append 1 into c %}{% endcollect %}"]) == 1
    err = capsys.readouterr().err
    assert err.startswith("Error: ")
    assert "unkeyed values to keyed collect 'c'" in err


def test_validate_only(project: Path, capsys) -> None:
    assert main(["-p", str(project), "-t", "hello.j2", "--validate-only"]) == 0
    assert "Template 'hello.j2' is valid" in capsys.readouterr().out

    assert main(["-p", str(project), "--string", "{% collect %}{% endcollect %}", "--validate-only"]) == 1
    out = capsys.readouterr().out
    assert "Template '<string>' validation failed:" in out
    assert "Syntax error at line 1" in out


def test_list_templates(project: Path, tmp_path: Path, capsys) -> None:
    assert main(["-p", str(project), "--list-templates"]) == 0
    out = capsys.readouterr().out
    assert "Available templates:" in out
    assert "hello.j2 (project_custom," in out

    empty = tmp_path / "empty"
    empty.mkdir()
    assert main(["-p", str(empty), "--list-templates"]) == 0
    assert "No templates found." in capsys.readouterr().out


def test_project_discovered_from_cwd(project: Path, monkeypatch, capsys) -> None:
    nested = project / "src" / "module"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)

    assert main(["-t", "hello.j2", "--meta", json.dumps({"people": ["cy"]})]) == 0
    assert capsys.readouterr().out == "Hello cy\n"


def test_init_config(tmp_path: Path, capsys) -> None:
    assert main(["-p", str(tmp_path), "--init-config"]) == 0
    config_file = tmp_path / ".collect" / "config.yaml"
    assert f"Project config: {config_file.resolve()}" in capsys.readouterr().out
    assert yaml.safe_load(config_file.read_text(encoding="utf-8")) == {"template_dirs": [], "variables": {}}


def test_source_is_required(project: Path, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["-p", str(project)])
    assert excinfo.value.code == 2
    assert "--list-templates is required" in capsys.readouterr().err
