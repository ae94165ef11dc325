import json

from toolloop.tools.categories import Category, CategorySelection, selection_path


def test_missing_file_enables_everything_and_persists(tmp_path):
    path = selection_path(tmp_path)
    selection = CategorySelection(path)
    assert selection.enabled() == list(Category)
    assert path.exists()
    assert json.loads(path.read_text()) == sorted(c.value for c in Category)


def test_toggle_persists_across_instances(tmp_path):
    path = selection_path(tmp_path)
    selection = CategorySelection(path)
    assert selection.toggle(Category.ARITHMETIC) is False
    assert "arithmetic" not in json.loads(path.read_text())

    reloaded = CategorySelection(path)
    assert not reloaded.is_enabled(Category.ARITHMETIC)
    assert reloaded.is_enabled(Category.WEB)
    assert reloaded.toggle(Category.ARITHMETIC) is True


def test_uncategorized_is_enabled(tmp_path):
    selection = CategorySelection(selection_path(tmp_path))
    selection.disable_all()
    assert selection.is_enabled(None)
    assert selection.enabled() == []


def test_unknown_identifiers_are_ignored(tmp_path):
    path = selection_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text('["web", "teleport"]')
    assert CategorySelection(path).enabled() == [Category.WEB]


def test_corrupt_file_enables_everything(tmp_path):
    path = selection_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text("not json")
    assert CategorySelection(path).enabled() == list(Category)


def test_labels():
    assert Category.TODO.label == "Todo"
    assert Category.WEB.label == "Web"
