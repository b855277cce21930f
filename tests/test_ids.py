from indigo_api.services.ids import denormalize_course_id, generate_id, is_uuid, normalize_course_id


def test_generate_id_is_uuid():
    assert is_uuid(generate_id())
    assert generate_id() != generate_id()


def test_normalize_legacy_numeric_id():
    assert normalize_course_id("42") == "00000000-0000-0000-0000-000000000042"
    assert normalize_course_id(" 7 ") == "00000000-0000-0000-0000-000000000007"


def test_normalize_uuid_is_lowercased():
    raw = "C0000000-0000-0000-0000-00000000000A"
    assert normalize_course_id(raw) == raw.lower()


def test_normalize_slug_and_empty():
    assert normalize_course_id("Tie-Dye-Basics") == "tie-dye-basics"
    assert normalize_course_id("") is None
    assert normalize_course_id("   ") is None
    assert normalize_course_id(None) is None


def test_denormalize_round_trip_for_legacy_ids():
    assert denormalize_course_id(normalize_course_id("42")) == "42"


def test_denormalize_leaves_other_ids_alone():
    uid = "c0000000-0000-0000-0000-000000000001"
    assert denormalize_course_id(uid) == uid
    assert denormalize_course_id(None) == ""
