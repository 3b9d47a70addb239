import copy

import pytest

from corrector.mapping import TransformSpec, Transformer
from corrector.mapping.pipeline import FieldError, ValueResolver
from corrector.mapping.pipeline.value_resolution import BUILTIN_TRANSFORMS


@pytest.fixture
def transformer():
    return Transformer()


def spec(**data):
    return TransformSpec.model_validate(data)


def test_object_mapping_builds_request_body(transformer):
    mapping = spec(type="OBJECT", mappings=[{"source": "$.inputName", "target": "$.fullName"}])
    assert transformer.transform({"inputName": "Ada", "extra": 1}, mapping) == {"fullName": "Ada"}


def test_transform_is_pure(transformer):
    source = {"user": {"name": "ada", "tags": ["x"]}, "total": 10.456}
    snapshot = copy.deepcopy(source)
    mapping = spec(
        mappings=[
            {"source": "$.user.name", "target": "name", "transform": "uppercase"},
            {"source": "$.user.tags", "target": "labels"},
            {"source": "$.total", "target": "amount", "transform": "roundTo2"},
        ]
    )
    first = transformer.transform(source, mapping)
    first["labels"].append("mutated")
    second = transformer.transform(source, mapping)

    assert source == snapshot
    assert second == {"name": "ADA", "labels": ["x"], "amount": 10.46}


def test_required_field_missing_is_omitted_and_reported(transformer):
    mapping = spec(
        mappings=[
            {"source": "$.age", "target": "$.meta.age", "required": True},
            {"source": "$.name", "target": "name"},
        ]
    )
    errors: list[FieldError] = []
    result = transformer.transform({"name": "Ada"}, mapping, errors=errors)

    assert result == {"name": "Ada"}
    assert len(errors) == 1
    assert errors[0].target == "$.meta.age"
    assert "Missing required field" in errors[0].message


def test_required_field_missing_without_error_list(transformer):
    mapping = spec(mappings=[{"source": "$.age", "target": "$.meta.age", "required": True}])
    assert transformer.transform({}, mapping) == {}


def test_optional_missing_field_is_skipped(transformer):
    mapping = spec(mappings=[{"source": "$.nickname", "target": "alias"}])
    assert transformer.transform({"name": "Ada"}, mapping) == {}


def test_explicit_null_is_written(transformer):
    mapping = spec(mappings=[{"source": "$.nickname", "target": "alias"}])
    assert transformer.transform({"nickname": None}, mapping) == {"alias": None}


def test_rule_default_and_spec_defaults(transformer):
    mapping = spec(
        mappings=[
            {"source": "$.country", "target": "country", "default": "CL"},
            {"source": "$.origin", "target": "meta.origin"},
        ],
        defaults={"meta.origin": "import", "meta.version": 2},
    )
    assert transformer.transform({"origin": "api"}, mapping) == {
        "country": "CL",
        "meta": {"origin": "api", "version": 2},
    }


def test_explicit_null_default_counts(transformer):
    mapping = spec(mappings=[{"source": "$.missing", "target": "value", "default": None}])
    assert transformer.transform({}, mapping) == {"value": None}


@pytest.mark.parametrize(
    "payload,expected",
    [
        ({"user": {"vip": True}}, {"tier": "GOLD"}),
        ({"user": {"vip": False}}, {"tier": "STANDARD"}),
        ({"user": {}}, {"tier": "STANDARD"}),
    ],
)
def test_equality_condition(transformer, payload, expected):
    mapping = spec(
        mappings=[
            {
                "source": "$.user.vip",
                "target": "tier",
                "condition": "$.user.vip == true",
                "valueIfTrue": "GOLD",
                "valueIfFalse": "STANDARD",
            }
        ]
    )
    assert transformer.transform(payload, mapping) == expected


def test_truthy_condition_without_false_branch_skips_rule(transformer):
    mapping = spec(mappings=[{"source": "$.email", "target": "email", "condition": "$.verified"}])
    assert transformer.transform({"email": "a@b.c", "verified": True}, mapping) == {"email": "a@b.c"}
    assert transformer.transform({"email": "a@b.c", "verified": 0}, mapping) == {}


def test_condition_compares_quoted_literal(transformer):
    mapping = spec(
        mappings=[{"target": "kind", "condition": "$.type == 'B2B'", "valueIfTrue": "company"}]
    )
    assert transformer.transform({"type": "B2B"}, mapping) == {"kind": "company"}
    assert transformer.transform({"type": "B2C"}, mapping) == {}


def test_later_rules_overwrite_earlier_targets(transformer):
    mapping = spec(
        mappings=[
            {"source": "$.a", "target": "x"},
            {"source": "$.b", "target": "x"},
        ]
    )
    assert transformer.transform({"a": 1, "b": 2}, mapping) == {"x": 2}


@pytest.mark.parametrize(
    "name,value,expected",
    [
        ("roundTo2", 2.346, 2.35),
        ("roundTo2", "2.345", "2.345"),
        ("uppercase", "ada", "ADA"),
        ("lowercase", "ADA", "ada"),
        ("toNumber", "42", 42),
        ("toNumber", "4.5", 4.5),
        ("toNumber", "", 0),
        ("toString", 12.0, "12"),
        ("toString", True, "true"),
        ("unknownTransform", "same", "same"),
    ],
)
def test_builtin_transforms(transformer, name, value, expected):
    mapping = spec(mappings=[{"source": "$.v", "target": "v", "transform": name}])
    assert transformer.transform({"v": value}, mapping) == {"v": expected}


def test_failing_transform_is_a_field_error(transformer):
    mapping = spec(
        mappings=[
            {"source": "$.qty", "target": "qty", "transform": "toNumber"},
            {"source": "$.sku", "target": "sku"},
        ]
    )
    errors = []
    assert transformer.transform({"qty": "many", "sku": "A1"}, mapping, errors=errors) == {"sku": "A1"}
    assert errors[0].target == "qty"


def test_non_finite_numbers_survive_rounding(transformer):
    mapping = spec(
        mappings=[
            {"source": "$.name", "target": "name"},
            {"source": "$.amount", "target": "amount", "transform": "roundTo2"},
        ]
    )
    errors = []
    result = transformer.transform({"name": "Ada", "amount": float("inf")}, mapping, errors=errors)
    assert result == {"name": "Ada", "amount": float("inf")}
    assert errors == []


def test_overflowing_number_text_becomes_infinity(transformer):
    mapping = spec(mappings=[{"source": "$.v", "target": "v", "transform": "toNumber"}])
    assert transformer.transform({"v": "1e400"}, mapping) == {"v": float("inf")}


def test_arithmetic_failure_is_a_field_error(transformer, monkeypatch):
    def explode(value):
        raise OverflowError("number too large")

    monkeypatch.setitem(BUILTIN_TRANSFORMS, "roundTo2", explode)
    mapping = spec(
        mappings=[
            {"source": "$.name", "target": "name"},
            {"source": "$.amount", "target": "amount", "transform": "roundTo2"},
        ]
    )
    errors = []
    assert transformer.transform({"name": "Ada", "amount": 1.5}, mapping, errors=errors) == {"name": "Ada"}
    assert errors[0].target == "amount"
    assert "too large" in errors[0].message


def test_named_custom_transform(transformer):
    mapping = spec(mappings=[{"source": "$.price", "target": "cents", "transform": "cents"}])
    result = transformer.transform({"price": 12.5}, mapping, {"cents": "round(value * 100)"})
    assert result == {"cents": 1250}


def test_array_mapping(transformer):
    mapping = spec(type="ARRAY", root="$.items", mappings=[{"source": "$.id", "target": "$.value"}])
    assert transformer.transform({"items": [{"id": 1}, {"id": 2}]}, mapping) == [{"value": 1}, {"value": 2}]


def test_array_output_wrapper(transformer):
    mapping = spec(
        type="ARRAY",
        root="$.items",
        outputWrapper="data.rows",
        mappings=[{"source": "$.id", "target": "id"}],
    )
    assert transformer.transform({"items": [{"id": 7}]}, mapping) == {"data": {"rows": [{"id": 7}]}}


@pytest.mark.parametrize("payload", [{"items": {"id": 1}}, {"items": "x"}, {}, None, [1, 2]])
def test_array_non_array_root_yields_empty_list(transformer, payload):
    mapping = spec(type="ARRAY", root="$.items", mappings=[{"source": "$.id", "target": "id"}])
    assert transformer.transform(payload, mapping) == []


def test_custom_script(transformer):
    mapping = spec(type="CUSTOM", logic="{'total': sum([i.qty for i in value.items])}")
    assert transformer.transform({"items": [{"qty": 2}, {"qty": 3}]}, mapping) == {"total": 5}


@pytest.mark.parametrize("logic", ["value.items[10]", "undefined_name + 1", "1 / 0", "value +"])
def test_custom_script_failure_returns_error_object(transformer, logic):
    mapping = spec(type="CUSTOM", logic=logic)
    result = transformer.transform({"items": []}, mapping)
    assert result["error"].startswith("Script Error: ")


def test_custom_script_cannot_mutate_source(transformer):
    source = {"tags": ["a"]}
    mapping = spec(type="CUSTOM", logic="value.tags")
    result = transformer.transform(source, mapping)
    result.append("b")
    assert source == {"tags": ["a"]}


def test_direct_and_missing_spec_are_identity(transformer):
    payload = {"a": 1}
    assert transformer.transform(payload, spec(type="DIRECT")) is payload
    assert transformer.transform(payload, None) is payload


def test_lowercase_type_names_are_accepted():
    assert spec(type="array").type.value == "ARRAY"


def test_value_resolver_condition_renders_numbers():
    resolver = ValueResolver()
    assert resolver.evaluate_condition({"n": 1.0}, "$.n == 1")
    assert resolver.evaluate_condition({"s": None}, "$.s == null")
    assert not resolver.evaluate_condition({}, "$.s == null")
