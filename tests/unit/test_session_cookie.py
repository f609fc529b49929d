from core.cookies.session_cookie import decode_session, encode_session


def test_cookie_value_needs_no_quoting():
    value = encode_session({"secret": "abc", "userId": "u1", "expire": "2099-01-01T00:00:00.000+00:00"})

    assert all(ch.isalnum() or ch in "-_" for ch in value)
    payload = decode_session(value)
    assert payload.secret == "abc"
    assert payload.user_id == "u1"


def test_unreadable_cookie_is_no_session():
    assert decode_session(None) is None
    assert decode_session("") is None
    assert decode_session("not-base64-json!") is None
    assert decode_session(encode_session({"secret": "", "userId": "u1"})) is None
