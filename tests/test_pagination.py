import random

import httpx
import pytest

from conftest import json_ok, make_board, make_pin
from hbcrawler.errors import ProtocolError
from hbcrawler.pagination import (
    NO_UPPER_BOUND,
    CursorPolicy,
    DescendingCursor,
    Page,
    PageNumberCursor,
    Paginator,
    Throttle,
    compute_delay,
)


# ── delay ────────────────────────────────────────────────────────


def test_delay_range_with_half_accuracy():
    rng = random.Random(1234)
    for _ in range(500):
        assert 1000 <= compute_delay(1000, 0.5, rng.random) < 1500


@pytest.mark.parametrize("draw, expected", [(0.0, 1000), (0.5, 1250), (0.9999, 1499)])
def test_delay_bounds(draw, expected):
    assert compute_delay(1000, 0.5, lambda: draw) == expected


def test_full_accuracy_is_fixed():
    assert compute_delay(800, 1.0, lambda: 0.99) == 800


def test_zero_accuracy_jitters_up_to_double():
    assert compute_delay(800, 0.0, lambda: 0.999) == 1599


def test_throttle_without_gap_never_sleeps():
    slept = []
    assert Throttle(0, 0.5, sleep=slept.append).wait() == 0
    assert slept == []


def test_throttle_sleeps_in_seconds():
    slept = []
    Throttle(1000, 0.5, sleep=slept.append, rand=lambda: 0.5).wait()
    assert slept == [1.25]


# ── generic paginator ────────────────────────────────────────────


def test_page_number_cursor_stops_on_empty_page():
    data = {1: ["a", "b"], 2: ["c"], 3: []}
    asked = []

    def fetch(cursor):
        asked.append(cursor)
        return Page(data[cursor], cursor)

    assert Paginator(fetch, PageNumberCursor()).collect() == ["a", "b", "c"]
    assert asked == [1, 2, 3]


def test_exhausted_page_ends_the_walk():
    asked = []

    def fetch(cursor):
        asked.append(cursor)
        return Page([cursor], cursor, exhausted=True)

    assert Paginator(fetch, PageNumberCursor()).collect() == [1]
    assert asked == [1]


def test_stuck_cursor_stops():
    asked = []

    def fetch(cursor):
        asked.append(cursor)
        return Page([50, 60], cursor)

    Paginator(fetch, DescendingCursor(50, key=lambda x: x)).collect()
    assert asked == [50]


def test_throttle_runs_between_pages_only():
    slept = []
    pages = {1: ["a"], 2: ["b"], 3: []}
    p = Paginator(lambda c: Page(pages[c], c), PageNumberCursor(), throttle=Throttle(100, sleep=slept.append))
    p.collect()
    assert slept == [0.1, 0.1]


def test_pages_are_lazy():
    asked = []

    def fetch(cursor):
        asked.append(cursor)
        return Page([cursor], cursor)

    pages = Paginator(fetch, PageNumberCursor()).pages()
    next(pages)
    assert asked == [1]


# ── board pins stream ────────────────────────────────────────────


def pin_feed(ids):
    """Serve ``/boards/1/`` pins older than ``max``, ``limit`` at a time."""
    feed = [make_pin(i) for i in sorted(ids, reverse=True)]

    def handler(request):
        cursor = int(request.url.params["max"])
        limit = int(request.url.params["limit"])
        page = [p for p in feed if p["pin_id"] < cursor][:limit]
        return httpx.Response(200, json={"board": {"pins": page}})

    return handler


def test_board_pins_45_items_in_three_pages(site, make_crawler):
    site.route("/boards/1/", pin_feed(range(1000, 1045)))
    crawler = make_crawler()

    pages = list(crawler.iter_board_pins(1))

    assert [len(p) for p in pages] == [20, 20, 5]
    ids = [pin.pin_id for page in pages for pin in page]
    assert len(ids) == len(set(ids)) == 45

    cursors = [int(r.url.params["max"]) for r in site.hits("/boards/1/")]
    assert cursors[0] == NO_UPPER_BOUND
    assert len(cursors) == 3
    for prev_page, cursor, page in zip(pages, cursors[1:], pages[1:]):
        assert cursor == min(p.pin_id for p in prev_page)
        assert all(p.pin_id < cursor for p in page)


def test_board_pins_request_shape(site, make_crawler):
    site.route("/boards/1/", pin_feed(range(1, 3)))
    make_crawler().get_pin_list_of_board_ajax(1, 500)
    req = site.requests[0]
    assert req.url.params["limit"] == "20"
    assert req.url.params["wfl"] == "1"
    assert "tok" in req.url.params
    assert req.headers["x-requested-with"] == "XMLHttpRequest"
    assert req.headers["x-request"] == "JSON"
    assert req.headers["accept"] == "application/json"
    assert req.headers["referer"] == "http://huaban.test/boards/1/"


def test_board_pins_target_stops_early(site, make_crawler):
    site.route("/boards/1/", pin_feed(range(1, 100)))
    pages = list(make_crawler().iter_board_pins(1, target=30))
    assert sum(len(p) for p in pages) == 40
    assert len(site.requests) == 2


def test_board_pins_sleep_between_pages(site, make_crawler, sleeps):
    site.route("/boards/1/", pin_feed(range(1, 46)))
    list(make_crawler(gap=1000, accuracy=0.5).iter_board_pins(1))
    assert sleeps == [1.25, 1.25]


def test_failed_page_aborts(site, make_crawler):
    calls = []

    def flaky(request):
        calls.append(request)
        if len(calls) == 2:
            return httpx.Response(503, text="slow down")
        return pin_feed(range(1, 60))(request)

    site.route("/boards/1/", flaky)
    with pytest.raises(ProtocolError) as exc:
        list(make_crawler().iter_board_pins(1))
    assert exc.value.status == 503
    assert exc.value.body == b"slow down"


def test_cookies_carry_over_between_pages(site, make_crawler):
    feed = pin_feed(range(1, 30))

    def handler(request):
        resp = feed(request)
        if request.url.params["max"] == str(NO_UPPER_BOUND):
            resp.headers["set-cookie"] = "sid=s1; Path=/"
        return resp

    site.route("/boards/1/", handler)
    list(make_crawler().iter_board_pins(1))
    first, second = site.hits("/boards/1/")
    assert "cookie" not in first.headers
    assert second.headers["cookie"] == "sid=s1"


# ── user / follow streams ────────────────────────────────────────


def test_user_boards_walk_by_max_board_id(site, make_crawler):
    all_boards = [make_board(i) for i in range(1, 13)]

    def handler(request):
        cursor = int(request.url.params["max"])
        limit = int(request.url.params["limit"])
        page = [b for b in all_boards if b["board_id"] > cursor][:limit]
        return httpx.Response(200, json={"user": {"board_count": 12, "boards": page}})

    site.route("/alice/", handler)
    boards = make_crawler().get_boards_by_username("alice")

    assert [b.board_id for b in boards] == list(range(1, 13))
    assert [r.url.params["max"] for r in site.requests] == ["0", "10"]
    assert site.requests[0].url.params["limit"] == "10"


def test_user_without_boards(site, make_crawler):
    site.route("/alice/", json_ok({"user": {"board_count": 0, "boards": []}}))
    assert make_crawler().get_boards_by_username("alice") == []
    assert len(site.requests) == 1


def test_user_boards_empty_list_with_count(site, make_crawler):
    site.route("/alice/", json_ok({"user": {"board_count": 5, "boards": []}}))
    assert make_crawler().get_boards_by_username("alice") == []


def test_followed_boards_by_page_number(site, make_crawler):
    pages = {"1": [make_board(1), make_board(2)], "2": [make_board(3)], "3": []}
    site.route(
        "/alice/following/boards/",
        lambda r: httpx.Response(200, json={"following_count": 3, "boards": pages[r.url.params["page"]]}),
    )
    boards = make_crawler().get_followed_boards_by_username("alice")
    assert [b.board_id for b in boards] == [1, 2, 3]
    assert [r.url.params["page"] for r in site.requests] == ["1", "2", "3"]


def test_followed_boards_zero_count(site, make_crawler):
    site.route("/alice/following/boards/", json_ok({"following_count": 0, "boards": [make_board(1)]}))
    boards = make_crawler().get_followed_boards_by_username("alice")
    assert len(boards) == 1
    assert len(site.requests) == 1


def test_followed_users_by_min_seq(site, make_crawler):
    users = [{"user_id": i, "urlname": f"u{i}", "seq": 100 - i} for i in range(1, 6)]

    def handler(request):
        cursor = int(request.url.params["max"])
        return httpx.Response(200, json={"users": [u for u in users if u["seq"] < cursor][:3]})

    site.route("/alice/following/", handler)
    found = make_crawler().get_followed_users_by_username("alice")

    assert [u.urlname for u in found] == ["u1", "u2", "u3", "u4", "u5"]
    assert [r.url.params["max"] for r in site.requests] == [str(NO_UPPER_BOUND), "97", "95"]


def test_cursor_policy_is_abstract():
    with pytest.raises(TypeError):
        CursorPolicy(0)
