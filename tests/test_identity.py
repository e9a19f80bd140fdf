from burbs.ingest.identity import IdentityResolver, base_id, format_number, string_hash

from conftest import raw


def test_string_hash_matches_java_style_hash():
    assert string_hash("") == 0
    assert string_hash("a") == 97
    assert string_hash("ab") == 97 * 31 + 98
    assert string_hash("hello") == 99162322


def test_string_hash_wraps_to_signed_32_bit():
    assert string_hash("polygenelubricants") == -2147483648


def test_string_hash_uses_utf16_code_units():
    # U+1F3C3 (runner) is a surrogate pair: 0xD83C 0xDFC3
    expected = (0xD83C * 31 + 0xDFC3)
    assert string_hash("\U0001F3C3") == expected


def test_format_number_drops_integral_fraction():
    assert format_number(5200.0) == "5200"
    assert format_number(5200) == "5200"
    assert format_number(5200.5) == "5200.5"


def test_base_id_is_absolute_decimal():
    value = base_id("Pete S.", "Morning Run", 5200.0, "Run")
    assert value.isdigit()
    assert value == str(abs(string_hash("Pete S.|Morning Run|5200|Run")))


def test_same_tuple_same_id_across_resolvers():
    activity = raw(distance=5200.0)
    assert IdentityResolver().assign(activity) == IdentityResolver().assign(activity)


def test_repeats_in_one_batch_get_suffixes_in_order():
    resolver = IdentityResolver()
    activity = raw()
    first = resolver.assign(activity)
    second = resolver.assign(activity)
    third = resolver.assign(activity)
    assert "_" not in first
    assert second == f"{first}_1"
    assert third == f"{first}_2"


def test_sport_type_takes_precedence_for_hashing():
    plain = raw(type_="Run")
    trail = raw(type_="Run", sport_type="TrailRun")
    resolver = IdentityResolver()
    assert resolver.assign(plain) != resolver.assign(trail)
    assert IdentityResolver().assign(trail) == base_id("Pete S.", "Morning Run", 5000.0, "TrailRun")


def test_string_hash_accepts_lone_surrogates():
    # titles can carry half of a truncated emoji
    assert string_hash("Run \ud83c") == string_hash("Run ") * 31 + 0xD83C
    assert base_id("Pete S.", "Run \ud83c", 5000.0, "Run").isdigit()
