"""
Take/skip pagination.
"""

from nexarest import PAGE, Page, Router, current_page, ok, paginate, paginate_middleware
from nexarest.core.dispatch import render
from nexarest.core.http import HTTPRequest


async def show_page(request):
    page = current_page(request)
    return ok({"take": page.take, "skip": page.skip})


def paginated_router(**defaults) -> Router:
    router = Router()
    router.with_(paginate(**defaults)).get("/items", show_page)
    router.get("/unpaged", lambda request: ok(current_page(request)))
    return router


async def test_defaults_from_config(client_for):
    async with client_for(paginated_router()) as client:
        response = await client.get("/items")
    assert response.json() == {"data": {"take": 30, "skip": 0}}


async def test_config_overrides(client_for, config):
    config.set("pagination.take", 10)
    config.set("pagination.skip", 5)
    async with client_for(paginated_router()) as client:
        response = await client.get("/items")
    assert response.json() == {"data": {"take": 10, "skip": 5}}


async def test_explicit_defaults(client_for):
    async with client_for(paginated_router(default_take=50)) as client:
        response = await client.get("/items")
    assert response.json() == {"data": {"take": 50, "skip": 0}}


async def test_query_parameters(client_for):
    async with client_for(paginated_router()) as client:
        response = await client.get("/items", params={"take": "5", "skip": "20"})
    assert response.json() == {"data": {"take": 5, "skip": 20}}


async def test_invalid_values(client_for):
    async with client_for(paginated_router()) as client:
        not_a_number = await client.get("/items", params={"take": "many"})
        zero = await client.get("/items", params={"take": "0"})
        negative = await client.get("/items", params={"skip": "-1"})
        negative_take = await client.get("/items", params={"take": "-1"})
        bad_skip = await client.get("/items", params={"skip": "abc"})
        blank_take = await client.get("/items?take=")

    assert not_a_number.status_code == 400
    assert not_a_number.json()["detail"] == "param 'take' should be an integer, got 'many'"
    assert zero.json()["detail"] == "param 'take' should be greater than 0"
    assert negative.json()["detail"] == "param 'skip' should not be negative"
    assert negative_take.status_code == 400
    assert negative_take.json()["detail"] == "param 'take' should be greater than 0"
    assert bad_skip.status_code == 400
    assert bad_skip.json()["detail"] == "param 'skip' should be an integer, got 'abc'"
    assert blank_take.status_code == 400
    assert blank_take.json()["detail"] == "param 'take' should be an integer, got ''"


async def test_routes_without_pagination(client_for):
    async with client_for(paginated_router()) as client:
        response = await client.get("/unpaged", params={"take": "5"})
    assert response.json() == {"data": None}


def test_page_offsets():
    page = Page(take=10, skip=40)
    assert page.limit == 10
    assert page.offset == 40


async def test_raw_middleware():
    async def raw_handler(raw):
        page = raw.context.value(PAGE)
        return render(raw, ok([page.take, page.skip]))

    stage = paginate_middleware(default_take=3)(raw_handler)
    reply = await stage(HTTPRequest("GET", "/items", query_string="skip=6"))
    assert reply.body == b'{"data":[3,6]}'
