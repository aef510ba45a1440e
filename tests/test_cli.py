from __future__ import annotations

from pathlib import Path

from cli.export_note import main, output_path


def _note(tmp_path: Path) -> Path:
    note = tmp_path / "My Note.md"
    note.write_text("# Heading\n\n- item\nplain text\n", encoding="utf-8")
    return note


def test_output_path_rules(tmp_path) -> None:
    note = tmp_path / "a" / "n.md"
    assert output_path(note, out=tmp_path / "x.pdf", export_dir="ignored") == tmp_path / "x.pdf"
    assert output_path(note, out=None, export_dir=tmp_path / "exports") == tmp_path / "exports" / "n.pdf"
    assert output_path(note, out=None, export_dir="  ") == tmp_path / "a" / "n.pdf"
    assert output_path(note, out=None, export_dir=None) == tmp_path / "a" / "n.pdf"


def test_export_to_explicit_path(tmp_path) -> None:
    out = tmp_path / "out.pdf"
    assert main([str(_note(tmp_path)), "--out", str(out), "--no-title", "--line-numbers"]) == 0
    assert out.read_bytes().startswith(b"%PDF")


def test_export_dir_is_created(tmp_path) -> None:
    target = tmp_path / "exports" / "nested"
    assert main([str(_note(tmp_path)), "--export-dir", str(target), "--footnote", "{title} {page}/{total}"]) == 0
    assert (target / "My Note.pdf").is_file()


def test_missing_note(tmp_path) -> None:
    assert main([str(tmp_path / "nope.md")]) == 2


def test_bad_settings_file(tmp_path) -> None:
    settings = tmp_path / "settings.json"
    settings.write_text("{", encoding="utf-8")
    assert main([str(_note(tmp_path)), "--settings", str(settings)]) == 2
