from __future__ import annotations

from pathlib import Path

import pytest

from buildergen.config import GeneratorConfig, load_config, parse_config
from buildergen.environment import OUTPUT_DIR_OPTION, ConfigError


def test_load_config_resolves_paths_against_file(tmp_path: Path) -> None:
    cfg_file = tmp_path / "conf" / "buildergen.yaml"
    cfg_file.parent.mkdir()
    cfg_file.write_text(
        "source_roots: src\noutput_dir: out\noptions:\n  zeta: 1\n  alpha: two\n",
        encoding="utf-8",
    )
    cfg = load_config(cfg_file)
    assert cfg.source_roots == (tmp_path / "conf" / "src",)
    assert cfg.output_dir == tmp_path / "conf" / "out"
    assert list(cfg.options.items()) == [("alpha", "two"), ("zeta", "1")]
    assert cfg.to_options()[OUTPUT_DIR_OPTION] == str(tmp_path / "conf" / "out")


def test_defaults_leave_output_unset() -> None:
    cfg = parse_config({})
    assert cfg.source_roots == (Path("."),)
    assert cfg.output_dir is None
    assert OUTPUT_DIR_OPTION not in cfg.to_options()


def test_overrides_replace_file_values() -> None:
    cfg = GeneratorConfig(output_dir=Path("a")).with_overrides(source_roots=["x", "y"], output_dir="b")
    assert cfg.source_roots == (Path("x"), Path("y"))
    assert cfg.output_dir == Path("b")
    assert GeneratorConfig(output_dir=Path("a")).with_overrides(source_roots=[], output_dir=None).output_dir == Path("a")


@pytest.mark.parametrize(
    "data",
    [
        {"source_roots": []},
        {"source_roots": [3]},
        {"output_dir": ""},
        {"options": ["not", "a", "mapping"]},
    ],
)
def test_invalid_values_raise(data: dict) -> None:
    with pytest.raises(ConfigError):
        parse_config(data)


def test_load_config_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="does not exist"):
        load_config(tmp_path / "missing.yaml")

    bad = tmp_path / "bad.yaml"
    bad.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(bad)

    broken = tmp_path / "broken.yaml"
    broken.write_text("key: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="not valid YAML"):
        load_config(broken)
