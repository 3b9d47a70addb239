import pytest

from corrector.mapping.pipeline import MISSING, PathSyntaxError, get_value, is_path_expression, parse_path, set_value


TREE = {
    "user": {"name": "Ada", "tags": ["a", "b"]},
    "items": [{"id": 1}, {"id": 2}],
    "a key": {"nested": None},
}


@pytest.mark.parametrize(
    "path,expected",
    [
        ("$", TREE),
        ("$.user.name", "Ada"),
        ("user.name", "Ada"),
        ("$.items[1].id", 2),
        ("$.items[-1].id", 2),
        ("$.user.tags[0]", "a"),
        ("$['a key'].nested", None),
    ],
)
def test_get_value_addressing(path, expected):
    assert get_value(TREE, path, MISSING) == expected


def test_get_value_missing_vs_null():
    assert get_value(TREE, "$['a key'].nested", MISSING) is None
    assert get_value(TREE, "$['a key'].other", MISSING) is MISSING


@pytest.mark.parametrize(
    "path",
    ["$.user.age", "$.items[5].id", "$.user.name.first", "$.items.id", "$.user[0]"],
)
def test_get_value_unreachable_returns_default(path):
    assert get_value(TREE, path, "fallback") == "fallback"


@pytest.mark.parametrize("path", ["$.user[", "$.a]b", None, 42])
def test_get_value_malformed_never_raises(path):
    assert get_value(TREE, path) is None


def test_parse_path_tokens():
    assert parse_path("$.items[0]['x y'].id") == ("items", 0, "x y", "id")
    assert parse_path("$") == ()


def test_set_value_creates_intermediate_objects():
    tree = {}
    set_value(tree, "$.meta.age", 42)
    set_value(tree, "meta.name", "Ada")
    assert tree == {"meta": {"age": 42, "name": "Ada"}}


def test_set_value_replaces_scalar_intermediate():
    tree = {"meta": "scalar"}
    set_value(tree, "$.meta.age", 1)
    assert tree == {"meta": {"age": 1}}


def test_set_value_list_index_and_append():
    tree = {"items": [{"id": 1}]}
    set_value(tree, "$.items[0].id", 10)
    set_value(tree, "$.items[1]", {"id": 2})
    assert tree == {"items": [{"id": 10}, {"id": 2}]}


def test_set_value_rejects_root():
    with pytest.raises(PathSyntaxError):
        set_value({}, "$", 1)


def test_is_path_expression():
    assert is_path_expression("$.a")
    assert is_path_expression("$")
    assert not is_path_expression("a.b")
    assert not is_path_expression(3)
