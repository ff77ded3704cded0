import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from client.gateway import TokenGateway
from shared.errors import InvalidTokenError, NetworkError


@pytest_asyncio.fixture
async def serve():
    """Start an aiohttp app on a free local port and return its base URL."""
    servers = []

    async def start(routes):
        app = web.Application()
        app.add_routes(routes)
        server = TestServer(app)
        await server.start_server()
        servers.append(server)
        return f"http://{server.host}:{server.port}"

    yield start
    for server in servers:
        await server.close()


def token_routes(seen):
    async def generate(request):
        return web.json_response({"token": "ab12cd"})

    async def validate(request):
        body = await request.json()
        seen.append(body)
        return web.json_response({"valid": body.get("token") == "AB12CD"})

    return [
        web.get("/api/generate-token", generate),
        web.post("/api/validate-token", validate),
    ]


@pytest.mark.asyncio
async def test_generate_token_returns_upper_case_token(serve):
    base = await serve(token_routes([]))
    async with TokenGateway(base + "/") as gateway:
        assert await gateway.generate_token() == "AB12CD"


@pytest.mark.asyncio
async def test_validate_token_sends_upper_case(serve):
    seen = []
    base = await serve(token_routes(seen))
    async with TokenGateway(base) as gateway:
        assert await gateway.validate_token("ab12cd") is True
        assert await gateway.validate_token("QQQQQQ") is False

    assert seen == [{"token": "AB12CD"}, {"token": "QQQQQQ"}]


@pytest.mark.asyncio
async def test_require_valid_raises_on_rejection(serve):
    base = await serve(token_routes([]))
    async with TokenGateway(base) as gateway:
        assert await gateway.require_valid("ab12cd") == "AB12CD"
        with pytest.raises(InvalidTokenError) as excinfo:
            await gateway.require_valid("nope00")

    assert excinfo.value.token == "NOPE00"
    assert excinfo.value.user_message == "Invalid token. Please check and try again."


@pytest.mark.asyncio
async def test_error_status_with_json_body_is_still_an_answer(serve):
    async def validate(request):
        return web.json_response({"valid": False}, status=400)

    base = await serve([web.post("/api/validate-token", validate)])
    async with TokenGateway(base) as gateway:
        assert await gateway.validate_token("AB12CD") is False


@pytest.mark.asyncio
async def test_non_json_body_is_a_network_error(serve):
    async def generate(request):
        return web.Response(text="<html>502 Bad Gateway</html>", content_type="text/html", status=502)

    base = await serve([web.get("/api/generate-token", generate)])
    async with TokenGateway(base) as gateway:
        with pytest.raises(NetworkError):
            await gateway.generate_token()


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"token": ""}, {"token": 42}])
async def test_generate_without_token_is_a_network_error(serve, body):
    async def generate(request):
        return web.json_response(body)

    base = await serve([web.get("/api/generate-token", generate)])
    async with TokenGateway(base) as gateway:
        with pytest.raises(NetworkError):
            await gateway.generate_token()


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"valid": "yes"}, ["valid"]])
async def test_validate_with_wrong_shape_is_a_network_error(serve, body):
    async def validate(request):
        return web.json_response(body)

    base = await serve([web.post("/api/validate-token", validate)])
    async with TokenGateway(base) as gateway:
        with pytest.raises(NetworkError):
            await gateway.validate_token("AB12CD")


@pytest.mark.asyncio
async def test_unreachable_backend_is_a_network_error():
    async with TokenGateway("http://127.0.0.1:1", timeout=2.0) as gateway:
        with pytest.raises(NetworkError):
            await gateway.generate_token()
        with pytest.raises(NetworkError):
            await gateway.validate_token("AB12CD")


@pytest.mark.asyncio
async def test_close_is_idempotent(serve):
    base = await serve(token_routes([]))
    gateway = TokenGateway(base)
    await gateway.generate_token()

    await gateway.close()
    await gateway.close()

    # A closed gateway opens a fresh session on next use
    assert await gateway.generate_token() == "AB12CD"
    await gateway.close()
