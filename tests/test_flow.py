import webbrowser

import httpx
import pytest

from usos_api_browser.catalog import TokenPair
from usos_api_browser.errors import ProtocolError, SigningError, TransportError
from usos_api_browser.oauth.browser import open_in_browser
from usos_api_browser.oauth.flow import FlowState, TokenAcquisitionFlow, parse_token_response


def oauth_server(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/services/oauth/request_token":
        return httpx.Response(200, text="oauth_token=REQ&oauth_token_secret=REQSECRET&oauth_callback_confirmed=true")
    if request.url.path == "/services/oauth/access_token":
        if request.url.params.get("oauth_verifier") != "12345":
            return httpx.Response(401, text="oauth_problem=permission_denied")
        return httpx.Response(200, text="oauth_token=ACC&oauth_token_secret=ACCSECRET")
    return httpx.Response(404)


def https_refused(respond):
    """Wrap a server so it only answers over plain http"""
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.scheme == "https":
            raise httpx.ConnectError("TLS handshake failed", request=request)
        return respond(request)
    return handler


def test_parse_token_response():
    """Literal key=value pairs"""
    assert parse_token_response("oauth_token=ABC&oauth_token_secret=XYZ") == TokenPair(token="ABC", token_secret="XYZ")


def test_parse_token_response_keeps_values_encoded():
    """Values are not URL-decoded"""
    pair = parse_token_response("oauth_token_secret=a%2Bb&oauth_token=x+y\n")
    assert pair.token == "x+y"
    assert pair.token_secret == "a%2Bb"


@pytest.mark.parametrize("body", ["oauth_token=ABC", "oauth_token_secret=XYZ", "", "error=invalid"])
def test_parse_token_response_missing_key(body):
    """Either key missing is a ProtocolError"""
    with pytest.raises(ProtocolError):
        parse_token_response(body)


def test_full_quick_fill(make_transport, installation):
    """request_token -> authorize -> verifier -> access_token"""
    transport, handler = make_transport(oauth_server)
    flow = TokenAcquisitionFlow(transport, installation, "ck", "cs", scopes=["studies", "email"])
    launched = []

    def launcher(url):
        launched.append(url)
        return True

    pair = flow.run(lambda authorize_url: " 12345 ", launcher=launcher)

    assert pair == TokenPair(token="ACC", token_secret="ACCSECRET")
    assert flow.state == FlowState.DONE
    assert flow.request_token == TokenPair(token="REQ", token_secret="REQSECRET")
    assert launched == ["https://usos.example.edu/services/oauth/authorize?oauth_token=REQ"]

    request_params = handler.requests[0].url.params
    assert handler.requests[0].url.scheme == "https"
    assert request_params["oauth_callback"] == "oob"
    assert request_params["scopes"] == "studies|email"
    assert request_params["oauth_consumer_key"] == "ck"
    assert "oauth_token" not in request_params

    access_params = handler.requests[1].url.params
    assert access_params["oauth_token"] == "REQ"
    assert access_params["oauth_verifier"] == "12345"
    assert "oauth_signature" in access_params


def test_no_scopes_param_without_scopes(make_transport, installation):
    """scopes is only sent when some are selected"""
    transport, handler = make_transport(oauth_server)
    TokenAcquisitionFlow(transport, installation, "ck", "cs").fetch_request_token()
    assert "scopes" not in handler.requests[0].url.params


def test_http_fallback_used_exactly_once(make_transport, installation):
    """HTTPS failure is retried once over HTTP"""
    transport, handler = make_transport(https_refused(oauth_server))
    flow = TokenAcquisitionFlow(transport, installation, "ck", "cs")

    pair = flow.fetch_request_token()

    assert pair.token == "REQ"
    assert [request.url.scheme for request in handler.requests] == ["https", "http"]
    assert flow.state == FlowState.AWAITING_USER_AUTHORIZATION


def test_fallback_signs_each_attempt(make_transport, installation):
    """Each attempt is signed for its own URL"""
    transport, handler = make_transport(https_refused(oauth_server))
    TokenAcquisitionFlow(transport, installation, "ck", "cs").fetch_request_token()

    https_params, http_params = (request.url.params for request in handler.requests)
    assert https_params["oauth_signature"] != http_params["oauth_signature"]


def test_both_attempts_fail(make_transport, installation):
    """After the last scheme the error surfaces with status and body"""
    transport, handler = make_transport(lambda request: httpx.Response(500, text="oauth_problem=server_down"))
    flow = TokenAcquisitionFlow(transport, installation, "ck", "cs")

    with pytest.raises(TransportError) as exc_info:
        flow.fetch_request_token()

    assert len(handler.requests) == 2
    assert exc_info.value.status == 500
    assert exc_info.value.body_text == "oauth_problem=server_down"
    assert flow.state == FlowState.FAILED


def test_access_token_rejected(make_transport, installation):
    """Wrong PIN surfaces the server's answer"""
    transport, _ = make_transport(oauth_server)
    flow = TokenAcquisitionFlow(transport, installation, "ck", "cs", schemes=["https"])
    flow.fetch_request_token()
    flow.open_authorization_page(lambda url: False)

    with pytest.raises(TransportError) as exc_info:
        flow.exchange_verifier("00000")
    assert exc_info.value.status == 401
    assert "permission_denied" in exc_info.value.body_text


def test_unparseable_request_token(make_transport, installation):
    """Missing oauth_token_secret is a ProtocolError"""
    transport, _ = make_transport(lambda request: httpx.Response(200, text="oauth_token=only"))
    flow = TokenAcquisitionFlow(transport, installation, "ck", "cs")
    with pytest.raises(ProtocolError):
        flow.fetch_request_token()
    assert flow.state == FlowState.FAILED


def test_launcher_failure_is_not_fatal(make_transport, installation):
    """The flow continues when no browser could be opened"""
    transport, _ = make_transport(oauth_server)
    flow = TokenAcquisitionFlow(transport, installation, "ck", "cs")
    flow.fetch_request_token()

    assert flow.open_authorization_page(lambda url: False) is False
    assert flow.state == FlowState.AWAITING_VERIFIER
    assert flow.exchange_verifier("12345").token == "ACC"


def test_steps_out_of_order(make_transport, installation):
    """Verifier exchange needs a request token first"""
    transport, _ = make_transport(oauth_server)
    flow = TokenAcquisitionFlow(transport, installation, "ck", "cs")

    with pytest.raises(RuntimeError):
        flow.exchange_verifier("12345")
    with pytest.raises(RuntimeError):
        flow.authorization_url()

    flow.fetch_request_token()
    with pytest.raises(RuntimeError):
        flow.fetch_request_token()


def test_consumer_key_required(make_transport, installation):
    """Quick Fill cannot start without a consumer key"""
    transport, _ = make_transport(oauth_server)
    with pytest.raises(SigningError):
        TokenAcquisitionFlow(transport, installation, "", "cs")


def test_empty_scheme_list_rejected(make_transport, installation):
    """At least one scheme must be configured"""
    transport, _ = make_transport(oauth_server)
    with pytest.raises(ValueError):
        TokenAcquisitionFlow(transport, installation, "ck", "cs", schemes=[])


def test_open_in_browser_failure(monkeypatch):
    """Browser errors are reported, not raised"""
    def broken(url):
        raise webbrowser.Error("no runnable browser")

    monkeypatch.setattr(webbrowser, "open", broken)
    assert open_in_browser("https://usos.example.edu/") is False

    monkeypatch.setattr(webbrowser, "open", lambda url: True)
    assert open_in_browser("https://usos.example.edu/") is True


def test_access_token_falls_back_to_http(make_transport, installation):
    """The verifier exchange also retries over HTTP when HTTPS fails"""
    def access_token_https_refused(request):
        if request.url.path == "/services/oauth/access_token" and request.url.scheme == "https":
            raise httpx.ConnectError("TLS handshake failed", request=request)
        return oauth_server(request)

    transport, handler = make_transport(access_token_https_refused)
    flow = TokenAcquisitionFlow(transport, installation, "ck", "cs")

    pair = flow.run(lambda authorize_url: "12345", launcher=lambda url: True)

    assert pair == TokenPair(token="ACC", token_secret="ACCSECRET")
    assert flow.state == FlowState.DONE
    attempts = [(request.url.path, request.url.scheme) for request in handler.requests]
    assert attempts == [
        ("/services/oauth/request_token", "https"),
        ("/services/oauth/access_token", "https"),
        ("/services/oauth/access_token", "http"),
    ]
    assert handler.requests[2].url.params["oauth_token"] == "REQ"
