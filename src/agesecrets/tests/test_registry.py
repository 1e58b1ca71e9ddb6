import json

import pytest

from agesecrets import RegistryEvalError
from agesecrets.registry import RegistryResolver, nix_string


@pytest.fixture
def resolver(tools):
    return RegistryResolver(nix_instantiate=tools.nix_instantiate)


def test_nix_string_escapes():
    assert nix_string("plain") == '"plain"'
    assert nix_string('a"b') == '"a\\"b"'
    assert nix_string("a\\b") == '"a\\\\b"'
    assert nix_string("${x}") == '"\\${x}"'
    assert nix_string("$x") == '"$x"'


def test_locate_finds_closest_ancestor(resolver, project):
    nested = project / "secrets" / "deeper"
    nested.mkdir()
    (nested / "secrets.nix").write_text("{}")
    assert resolver.locate(project / "secrets" / "db.age") == (
        project / "secrets.nix"
    )
    assert resolver.locate(nested / "x.age") == nested / "secrets.nix"


def test_locate_works_for_files_that_do_not_exist_yet(resolver, project):
    assert not (project / "secrets" / "new.age").exists()
    assert resolver.locate(project / "secrets" / "new.age") == (
        project / "secrets.nix"
    )


def test_locate_ignores_directories_named_like_the_registry(
    resolver, tmp_path
):
    (tmp_path / "a" / "secrets.nix").mkdir(parents=True)
    assert resolver.locate(tmp_path / "a" / "x.age") is None


def test_locate_returns_none_at_filesystem_root(resolver, tmp_path):
    assert resolver.locate(tmp_path / "x.age") is None


def test_expression_uses_registry_relative_path(resolver, project):
    registry = project / "secrets.nix"
    assert resolver.expression(
        registry, project / "secrets" / "db.age"
    ) == '(import "{}")."secrets/db.age".publicKeys'.format(registry)


def test_recipients_for(resolver, project, tools):
    assert resolver.recipients_for(project / "secrets" / "db.age") == [
        "fake-pub-keyA",
        "fake-pub-keyB",
    ]
    (call,) = tools.calls("nix-instantiate")
    assert call[:4] == ["--eval", "--strict", "--json", "-E"]
    assert call[4].endswith('."secrets/db.age".publicKeys')


def test_recipients_for_relative_path(resolver, project, monkeypatch):
    monkeypatch.chdir(project / "secrets")
    assert resolver.recipients_for("new.age") == ["fake-pub-keyA"]


def test_recipients_for_quotes_unusual_names(resolver, project):
    name = 'secrets/we"ird ${name}.age'
    registry = json.loads((project / "secrets.nix").read_text())
    registry[name] = {"publicKeys": ["fake-pub-keyB"]}
    (project / "secrets.nix").write_text(json.dumps(registry))
    assert resolver.recipients_for(project / name) == ["fake-pub-keyB"]


def test_recipients_for_without_registry(resolver, tmp_path, tools):
    with pytest.raises(RegistryEvalError) as e:
        resolver.recipients_for(tmp_path / "orphan.age")
    assert "No secrets.nix found" in str(e.value)
    assert tools.calls() == []


def test_recipients_for_undeclared_secret_shows_diagnostic(resolver, project):
    with pytest.raises(RegistryEvalError) as e:
        resolver.recipients_for(project / "secrets" / "unknown.age")
    assert "attribute 'secrets/unknown.age' missing" in e.value.output
    assert "attribute 'secrets/unknown.age' missing" in str(e.value)


def test_recipients_for_malformed_registry(resolver, project):
    (project / "secrets.nix").write_text("{ not json")
    with pytest.raises(RegistryEvalError) as e:
        resolver.recipients_for(project / "secrets" / "db.age")
    assert "syntax error" in e.value.output


def test_recipients_for_missing_evaluator(project):
    resolver = RegistryResolver(nix_instantiate="foobarasdf-54875982")
    with pytest.raises(RegistryEvalError) as e:
        resolver.recipients_for(project / "secrets" / "db.age")
    assert "Could not run `foobarasdf-54875982`" in str(e.value)


def test_recipients_for_rejects_non_list_output(resolver, project):
    (project / "secrets.nix").write_text(
        json.dumps({"secrets/db.age": {"publicKeys": "fake-pub-keyA"}})
    )
    with pytest.raises(RegistryEvalError) as e:
        resolver.recipients_for(project / "secrets" / "db.age")
    assert "not a list of strings" in str(e.value)


def test_custom_registry_name(tools, tmp_path):
    (tmp_path / "keys.json").write_text(
        json.dumps({"db.age": {"publicKeys": ["fake-pub-keyA"]}})
    )
    resolver = RegistryResolver("keys.json", tools.nix_instantiate)
    assert resolver.recipients_for(tmp_path / "db.age") == ["fake-pub-keyA"]
