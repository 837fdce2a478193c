from pathlib import Path

from plan_timeline.core.config.settings import (
    Settings,
    SettingsError,
    load_or_default,
    load_settings,
)

EXAMPLES = Path(__file__).resolve().parents[1] / "examples"


def test_load_settings_example():
    settings = load_settings(EXAMPLES / "settings.yaml")
    assert settings.base_url == "https://tracker.example.com/"
    assert [c.id for c in settings.contributors] == ["u2", "u1", "ext-1"]
    assert settings.contributors[2].external is True
    assert settings.contributors[2].name == "Contractor"
    assert [u.id for u in settings.users] == ["u1", "u2", "u3"]
    assert settings.users[2].avatar_url is None


def test_load_or_default_without_file():
    assert load_or_default(None) == Settings()


def test_empty_settings_file(tmp_path: Path):
    p = tmp_path / "settings.yaml"
    p.write_text("", encoding="utf-8")
    assert load_settings(p) == Settings()


def test_invalid_settings(tmp_path: Path):
    cases = [
        "- just a list\n",
        "contributors: {u1: 1}\n",
        "contributors:\n  - {id: ext, external: true}\n",
        "contributors:\n  - {id: u1}\n  - {id: u1}\n",
        "users:\n  - {full_name: Nameless}\n",
        "base_url: [1, 2]\n",
        "contributors: [unclosed\n",
    ]
    for i, text in enumerate(cases):
        p = tmp_path / f"settings-{i}.yaml"
        p.write_text(text, encoding="utf-8")
        try:
            load_settings(p)
            assert False, f"expected SettingsError for case {i}"
        except SettingsError:
            pass


def test_missing_settings_file(tmp_path: Path):
    try:
        load_settings(tmp_path / "nope.yaml")
        assert False, "expected FileNotFoundError"
    except FileNotFoundError:
        pass
