from conftest import CHROME_WINDOWS_UA, make_request

from greedhunter.core.request_context import client_ip, extract_request_context, parse_user_agent


def test_parse_chrome_on_windows():
    ua = parse_user_agent(CHROME_WINDOWS_UA)
    assert (ua.browser, ua.platform, ua.device) == ("Chrome", "Windows", "Desktop")


def test_parse_empty_user_agent_is_blank_not_unknown():
    for value in ("", None):
        ua = parse_user_agent(value)
        assert (ua.device, ua.browser, ua.platform) == ("", "", "")


def test_parse_precedence():
    edge = parse_user_agent("Mozilla/5.0 (Windows NT 10.0) Chrome/120.0 Safari/537.36 Edg/120.0")
    assert edge.browser == "Edge"
    iphone = parse_user_agent("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Version/17.0 Mobile Safari/604.1")
    # "mac" appears in the iPhone string and wins over iOS.
    assert (iphone.browser, iphone.platform, iphone.device) == ("Safari", "MacOS", "Mobile")
    android = parse_user_agent("Mozilla/5.0 (Linux; Android 14) Firefox/121.0 Mobile")
    assert (android.browser, android.platform, android.device) == ("Firefox", "Linux", "Mobile")
    bot = parse_user_agent("curl/8.4.0")
    assert (bot.browser, bot.platform, bot.device) == ("Unknown", "Unknown", "Desktop")


def test_forwarded_for_takes_first_entry():
    req = make_request({"X-Forwarded-For": "10.0.0.5, 10.0.0.1", "X-Real-IP": "10.9.9.9"})
    assert client_ip(req) == "10.0.0.5"


def test_real_ip_then_peer_address():
    assert client_ip(make_request({"X-Real-IP": "10.9.9.9"})) == "10.9.9.9"
    assert client_ip(make_request()) == "203.0.113.9"
    assert client_ip(make_request(client=None)) == ""


def test_loopback_reads_as_localhost():
    assert client_ip(make_request(client=("::1", 1))) == "localhost"
    assert client_ip(make_request({"X-Forwarded-For": "127.0.0.1"})) == "localhost"


def test_token_resolution_order():
    bearer = make_request({"Authorization": "Bearer abc", "Cookie": "accessToken=cookie-tok"})
    assert extract_request_context(bearer, "fallback").token == "abc"
    cookie = make_request({"Cookie": "accessToken=cookie-tok"})
    assert extract_request_context(cookie, "fallback").token == "cookie-tok"
    basic = make_request({"Authorization": "Basic Zm9vOmJhcg=="})
    assert extract_request_context(basic, "fallback").token == "fallback"
    assert extract_request_context(make_request()).token is None


def test_context_fields():
    req = make_request({"User-Agent": CHROME_WINDOWS_UA}, method="POST", path="/v1/wallet/transfer")
    ctx = extract_request_context(req)
    assert ctx.user_agent == CHROME_WINDOWS_UA
    assert ctx.method == "POST"
    assert ctx.path == "/v1/wallet/transfer"


def test_no_request_uses_fallback_only():
    ctx = extract_request_context(None, "sess-1")
    assert ctx.token == "sess-1"
    assert (ctx.user_agent, ctx.ip_address, ctx.method, ctx.path) == ("", "", "", "")
    assert extract_request_context(None).token is None


def test_unreadable_request_degrades():
    ctx = extract_request_context(object(), "sess-2")
    assert ctx.token == "sess-2"
    assert ctx.ip_address == ""
