import json

import httpx
import pytest
import respx

from fleetdeck.shared.adapters.gateway import ApiGateway
from fleetdeck.shared.adapters.openstack import get_identity_protocol
from fleetdeck.shared.adapters.token_manager import TokenManager
from fleetdeck.shared.core.exceptions import ApiError, AuthenticationError

IDENTITY = "https://identity.c3j1.conoha.test/v3/auth/tokens"
COMPUTE = "https://compute.c3j1.conoha.test/v2.1"


def _token(value: str) -> httpx.Response:
    return httpx.Response(201, headers={"X-Subject-Token": value})


@pytest.fixture
def gateway(make_account, http_client, clock):
    account = make_account()
    tokens = TokenManager(
        account, get_identity_protocol(account.version), http_client, clock=clock
    )
    return ApiGateway(tokens, http_client)


@pytest.mark.asyncio
async def test_get_sends_token_and_decodes_json(gateway):
    with respx.mock(assert_all_called=False) as router:
        router.post(IDENTITY).mock(return_value=_token("tok-1"))
        route = router.get(f"{COMPUTE}/servers/detail").mock(
            return_value=httpx.Response(200, json={"servers": [{"id": "srv-1"}]})
        )

        payload = await gateway.get(f"{COMPUTE}/servers/detail")

    assert payload == {"servers": [{"id": "srv-1"}]}
    request = route.calls.last.request
    assert request.headers["X-Auth-Token"] == "tok-1"
    assert request.headers["Accept"] == "application/json"


@pytest.mark.asyncio
async def test_401_reauthenticates_and_retries_once(gateway):
    with respx.mock(assert_all_called=False) as router:
        identity = router.post(IDENTITY).mock(
            side_effect=[_token("tok-stale"), _token("tok-fresh")]
        )
        route = router.get(f"{COMPUTE}/servers/detail").mock(
            side_effect=[
                httpx.Response(401),
                httpx.Response(200, json={"servers": []}),
            ]
        )

        payload = await gateway.get(f"{COMPUTE}/servers/detail")

    assert payload == {"servers": []}
    assert identity.call_count == 2
    assert route.call_count == 2
    assert route.calls[0].request.headers["X-Auth-Token"] == "tok-stale"
    assert route.calls[1].request.headers["X-Auth-Token"] == "tok-fresh"


@pytest.mark.asyncio
async def test_retry_replays_the_same_body(gateway):
    body = {"resize": {"flavorRef": "f2"}}
    with respx.mock(assert_all_called=False) as router:
        router.post(IDENTITY).mock(side_effect=[_token("a"), _token("b")])
        route = router.post(f"{COMPUTE}/servers/srv-1/action").mock(
            side_effect=[httpx.Response(401), httpx.Response(202)]
        )

        assert await gateway.post(f"{COMPUTE}/servers/srv-1/action", json=body) is None

    assert [json.loads(c.request.content) for c in route.calls] == [body, body]


@pytest.mark.asyncio
async def test_second_401_is_raised_without_another_retry(gateway):
    with respx.mock(assert_all_called=False) as router:
        identity = router.post(IDENTITY).mock(
            side_effect=[_token("tok-1"), _token("tok-2")]
        )
        route = router.get(f"{COMPUTE}/servers/detail").mock(
            return_value=httpx.Response(401, text="still unauthorized")
        )

        with pytest.raises(ApiError) as exc_info:
            await gateway.get(f"{COMPUTE}/servers/detail")

    assert route.call_count == 2
    assert identity.call_count == 2
    assert exc_info.value.upstream_status == 401
    assert exc_info.value.body == "still unauthorized"


@pytest.mark.asyncio
async def test_server_error_is_not_retried(gateway):
    with respx.mock(assert_all_called=False) as router:
        identity = router.post(IDENTITY).mock(return_value=_token("tok-1"))
        route = router.get(f"{COMPUTE}/servers/detail").mock(
            return_value=httpx.Response(500)
        )

        with pytest.raises(ApiError) as exc_info:
            await gateway.get(f"{COMPUTE}/servers/detail")

    assert route.call_count == 1
    assert identity.call_count == 1
    err = exc_info.value
    assert err.account_id == "v3-c3j1"
    assert err.upstream_status == 500
    assert err.code == "upstream_error"
    assert err.status_code == 502


@pytest.mark.asyncio
async def test_no_content_responses_decode_to_none(gateway):
    with respx.mock(assert_all_called=False) as router:
        router.post(IDENTITY).mock(return_value=_token("tok-1"))
        router.put("https://networking.c3j1.conoha.test/v2.0/ports/p1").mock(
            return_value=httpx.Response(204)
        )

        result = await gateway.put(
            "https://networking.c3j1.conoha.test/v2.0/ports/p1",
            json={"port": {"security_groups": []}},
        )

    assert result is None


@pytest.mark.asyncio
async def test_invalid_json_is_an_api_error(gateway):
    with respx.mock(assert_all_called=False) as router:
        router.post(IDENTITY).mock(return_value=_token("tok-1"))
        router.get(f"{COMPUTE}/flavors/detail").mock(
            return_value=httpx.Response(200, content=b"<html>oops</html>")
        )

        with pytest.raises(ApiError, match="invalid JSON"):
            await gateway.get(f"{COMPUTE}/flavors/detail")


@pytest.mark.asyncio
async def test_transport_error_is_an_api_error(gateway):
    with respx.mock(assert_all_called=False) as router:
        router.post(IDENTITY).mock(return_value=_token("tok-1"))
        router.get(f"{COMPUTE}/servers/detail").mock(
            side_effect=httpx.ReadTimeout("slow")
        )

        with pytest.raises(ApiError) as exc_info:
            await gateway.get(f"{COMPUTE}/servers/detail")

    assert exc_info.value.upstream_status is None


@pytest.mark.asyncio
async def test_query_params_are_forwarded(gateway):
    with respx.mock(assert_all_called=False) as router:
        router.post(IDENTITY).mock(return_value=_token("tok-1"))
        route = router.get(
            host="networking.c3j1.conoha.test", path="/v2.0/ports"
        ).mock(return_value=httpx.Response(200, json={"ports": []}))

        await gateway.get(
            "https://networking.c3j1.conoha.test/v2.0/ports",
            params={"device_id": "srv-1"},
        )

    assert route.calls.last.request.url.params["device_id"] == "srv-1"


@pytest.mark.asyncio
async def test_authentication_failure_propagates_unchanged(gateway):
    with respx.mock(assert_all_called=False) as router:
        router.post(IDENTITY).mock(return_value=httpx.Response(403))
        route = router.get(f"{COMPUTE}/servers/detail")

        with pytest.raises(AuthenticationError):
            await gateway.get(f"{COMPUTE}/servers/detail")

    assert route.call_count == 0
