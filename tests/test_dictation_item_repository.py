from pathlib import Path

from smartdict.controllers.dictation_item_repository import DictationItemRepository, split_lines
from smartdict.domain.enums import Language, Mode
from smartdict.domain.models import DictationItem


def test_plain_text_gives_one_item_per_line(tmp_path: Path) -> None:
    p = tmp_path / "words.txt"
    p.write_text("cat\n\n  dog  \n", encoding="utf-8")

    items = DictationItemRepository(p).items()

    assert items == [DictationItem(id="0", text="cat"), DictationItem(id="1", text="dog")]


def test_yaml_list_of_strings(tmp_path: Path) -> None:
    p = tmp_path / "words.yaml"
    p.write_text("- 貓\n- 狗\n", encoding="utf-8")

    items = DictationItemRepository(p).items()

    assert [i.text for i in items] == ["貓", "狗"]
    assert all(i.spoken_text is None for i in items)


def test_yaml_dicts_carry_spoken_text_and_ids(tmp_path: Path) -> None:
    p = tmp_path / "passage.yaml"
    p.write_text(
        "- {id: s1, text: 'The cat sat', spoken: 'The cat sat'}\n"
        "- {display: ',', spokenText: comma}\n"
        "- {note: no text here}\n",
        encoding="utf-8",
    )

    items = DictationItemRepository(p).items()

    assert items == [
        DictationItem(id="s1", text="The cat sat", spoken_text="The cat sat"),
        DictationItem(id="1", text=",", spoken_text="comma"),
    ]


def test_session_config_reads_language_and_mode_from_wrapper(tmp_path: Path) -> None:
    p = tmp_path / "lesson.yml"
    p.write_text(
        "language: chinese\nmode: passage\nsections:\n  - 第一段\n  - 第二段\n",
        encoding="utf-8",
    )
    repo = DictationItemRepository(p)

    config = repo.session_config()
    assert config.language == Language.CHINESE
    assert config.mode == Mode.PASSAGE
    assert len(config.items) == 2

    # Explicit arguments win over the file.
    config = repo.session_config(language=Language.ENGLISH, mode=Mode.VOCABULARY)
    assert (config.language, config.mode) == (Language.ENGLISH, Mode.VOCABULARY)


def test_missing_or_malformed_files_give_no_items(tmp_path: Path) -> None:
    assert DictationItemRepository(tmp_path / "absent.yaml").items() == []

    bad = tmp_path / "bad.yaml"
    bad.write_text("items: [unclosed\n", encoding="utf-8")
    repo = DictationItemRepository(bad)
    assert repo.items() == []
    config = repo.session_config()
    assert (config.language, config.mode) == (Language.ENGLISH, Mode.VOCABULARY)


def test_split_lines() -> None:
    assert split_lines("  a\r\nb\n\n c ") == ["a", "b", "c"]
    assert split_lines("") == []
