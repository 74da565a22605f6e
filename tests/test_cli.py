from __future__ import annotations

import json

import pytest

from glyphwall import main


def test_print_config(capsys):
    assert main(["--print-config", "--size", "300x200", "--density", "0.5",
                 "--no-seamless", "--spacing", "30x20", "--corners", "6"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["canvasSize"] == {"width": 300, "height": 200}
    assert data["symbols"]["density"] == 0.5
    assert data["grid"] == {"spacingX": 30, "spacingY": 20, "seamlessRendering": False}
    assert data["shape"]["corners"] == 6


def test_config_file_with_overrides(tmp_path, capsys):
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps({"canvasSize": {"width": 90, "height": 60}, "clustering": {"count": 2}}))
    main(["--config", str(path), "--clusters", "5", "--print-config"])
    data = json.loads(capsys.readouterr().out)
    assert data["canvasSize"]["width"] == 90
    assert data["clustering"]["count"] == 5


def test_writes_png(tmp_path, capsys):
    assert main(["--size", "120x80", "--spacing", "40", "--clusters", "3",
                 "--seed", "1", "--scale", "2", "--out-dir", str(tmp_path)]) == 0
    out = tmp_path / "glyphwall_120x80.png"
    assert out.exists()
    assert str(out) in capsys.readouterr().out


@pytest.mark.parametrize("argv", [
    ["--size", "100"],
    ["--size", "0x10"],
    ["--density", "1.5"],
    ["--spacing", "1x2x3"],
])
def test_bad_arguments(argv):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    assert exc.value.code == 2


def test_missing_font(tmp_path):
    with pytest.raises(SystemExit) as exc:
        main(["--font", str(tmp_path / "missing.ttf"), "--out-dir", str(tmp_path)])
    assert "not found" in str(exc.value)


def test_bad_aa():
    with pytest.raises(SystemExit):
        main(["--aa", "0", "--print-config"])
