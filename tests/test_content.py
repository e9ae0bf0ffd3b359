from kitnet.content import (
    JSON_CONTENT_TYPE,
    ContentConverter,
    JsonConverter,
    create_converter,
)


def test_round_trip_dict():
    source = JsonConverter({"name": "kit", "values": [1, 2, 3]})
    text = source.obj_to_content()
    target = JsonConverter(kind=dict)
    assert target.content_to_obj(text) is True
    assert target.obj == {"name": "kit", "values": [1, 2, 3]}
    assert target.root == target.obj


def test_dump_is_compact():
    assert JsonConverter({"a": 1}).obj_to_content() == '{"a":1}'


def test_parse_with_kind():
    conv = JsonConverter(kind=int)
    assert conv.obj == 0
    assert conv.content_to_obj("42") is True
    assert conv.obj == 42


def test_wrong_kind_fails_and_keeps_object():
    conv = JsonConverter(obj=7, kind=int)
    assert conv.content_to_obj('"text"') is False
    assert conv.obj == 7


def test_bool_is_not_int():
    conv = JsonConverter(kind=int)
    assert conv.content_to_obj("true") is False


def test_int_accepted_for_float():
    conv = JsonConverter(kind=float)
    assert conv.content_to_obj("3") is True
    assert conv.obj == 3.0
    assert isinstance(conv.obj, float)


def test_invalid_json_fails():
    conv = JsonConverter(kind=dict)
    assert conv.content_to_obj("{not json") is False
    assert conv.obj == {}


def test_unserialisable_object_gives_empty_string():
    assert JsonConverter(object()).obj_to_content() == ""


def test_create_converter():
    conv = create_converter(JSON_CONTENT_TYPE, list)
    assert isinstance(conv, JsonConverter)
    assert isinstance(conv, ContentConverter)
    assert conv.content_to_obj("[1, 2]") is True
    assert conv.obj == [1, 2]
    assert create_converter(2, list) is None


def test_non_ascii_round_trip():
    conv = JsonConverter({"k": "\u4e2d\u6587"})
    text = conv.obj_to_content()
    back = JsonConverter(kind=dict)
    assert back.content_to_obj(text) is True
    assert back.obj == {"k": "\u4e2d\u6587"}