import pytest

from latch.latch_registry import Registry
from latch.latch_rewriter import compile_patterns, fetch_expression, rewrite


@pytest.fixture
def api():
    reg = Registry()
    reg.use("api", ["users.create", "users.list"], "https://x/")
    return reg


def test_call_with_args_becomes_fetch_with_encoded_args(api):
    out = api.rewrite('return await api.users.create({name:"Bob"})')
    assert out == (
        'return await fetch("https://x/users.create?args="'
        '+encodeURIComponent(JSON.stringify([{name:"Bob"}])))'
    )


def test_call_without_args_has_no_query(api):
    assert api.rewrite('api.users.list( )') == 'fetch("https://x/users.list")'


def test_whitespace_before_paren_is_allowed(api):
    assert api.rewrite('api.users.list ()') == 'fetch("https://x/users.list")'


def test_argument_source_is_embedded_verbatim(api):
    out = api.rewrite('api.users.create(user.id, "x" + n)')
    assert 'JSON.stringify([user.id, "x" + n])' in out


def test_rewrite_is_idempotent(api):
    src = 'const u = await api.users.create({name: "Bob"})\nconst l = await api.users.list()'
    once = api.rewrite(src)
    assert api.rewrite(once) == once


def test_unregistered_calls_are_untouched(api):
    src = 'other.users.create(1); api.users.delete(2)'
    assert api.rewrite(src) == src


def test_nested_parentheses_stop_at_first_close(api):
    # Arguments may not contain ')'; the capture ends at the first one.
    out = api.rewrite('api.users.create(f(1))')
    assert out == 'fetch("https://x/users.create?args="+encodeURIComponent(JSON.stringify([f(1]))))'


def test_patterns_sorted_by_descending_url_path_length():
    patterns = compile_patterns("n", ["a", {"call": "b", "path": "/long/path"}, "abc"])
    assert [p.url_path for p in patterns] == ["long/path", "abc", "a"]
    assert [p.call_path for p in patterns] == ["b", "abc", "a"]


def test_mapping_method_routes_call_to_path():
    reg = Registry()
    reg.use("svc", [{"call": "sendMessage", "path": "send-message"}], "https://h/svc")
    assert reg.rewrite('svc.sendMessage()') == 'fetch("https://h/svc/send-message")'


def test_specs_apply_in_registration_order():
    reg = Registry()
    reg.use("a", ["go"], "https://one")
    reg.use("a", ["go"], "https://two")
    assert reg.rewrite("a.go()") == 'fetch("https://one/go")'


def test_name_is_matched_literally():
    reg = Registry()
    reg.use("a$b", ["c"], "https://h")
    assert reg.rewrite("a$b.c()") == 'fetch("https://h/c")'
    assert reg.rewrite("aXb.c()") == "aXb.c()"


def test_fetch_expression_trims_args():
    assert fetch_expression("https://b", "p", "   ") == 'fetch("https://b/p")'
    assert fetch_expression("https://b", "p", " 1 ") == (
        'fetch("https://b/p?args="+encodeURIComponent(JSON.stringify([1])))'
    )


def test_rewrite_accepts_plain_spec_list(api):
    assert rewrite("api.users.list()", api.specs) == 'fetch("https://x/users.list")'


def test_unsupported_method_descriptor_raises():
    with pytest.raises(TypeError):
        compile_patterns("n", [42])
