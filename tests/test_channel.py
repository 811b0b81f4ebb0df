import queue
import time

import pytest

import rggui
from rggui import (
    ChannelDisconnected, DisplayMatch, Failed, Finished, MatchFound, SearchChannel, SearchOptions,
    is_terminal, start_search,
)
from conftest import rg_match


def wait_for_terminal(channel: SearchChannel, timeout: float = 10.0) -> list:
    events = []
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            event = channel.try_recv()
        except queue.Empty:
            time.sleep(0.01)
            continue
        events.append(event)
        if is_terminal(event):
            return events
    pytest.fail(f"no terminal event within {timeout}s, got {events!r}")


def test_events_arrive_in_send_order():
    ch = SearchChannel()
    sent = [MatchFound(DisplayMatch("a", i, "x")) for i in range(5)] + [Finished()]
    for e in sent:
        assert ch.send(e)
    assert [ch.try_recv() for _ in sent] == sent


def test_empty_channel_raises_queue_empty():
    with pytest.raises(queue.Empty):
        SearchChannel().try_recv()


def test_send_after_close_reports_consumer_gone():
    ch = SearchChannel()
    ch.close()
    assert ch.closed
    assert ch.send(Finished()) is False


def test_disconnect_only_after_buffer_is_drained():
    ch = SearchChannel()
    ch.send(MatchFound(DisplayMatch("a", 1, "x")))
    ch.close_sender()
    assert isinstance(ch.try_recv(), MatchFound)
    with pytest.raises(ChannelDisconnected):
        ch.try_recv()


def test_drain_respects_limit():
    ch = SearchChannel()
    for i in range(10):
        ch.send(MatchFound(DisplayMatch("a", i, "x")))
    assert len(ch.drain(4)) == 4
    assert len(ch.drain(100)) == 6
    assert ch.drain(100) == []


def test_drain_returns_buffered_events_before_disconnect():
    ch = SearchChannel()
    ch.send(MatchFound(DisplayMatch("a", 1, "x")))
    ch.close_sender()
    assert len(ch.drain(10)) == 1
    with pytest.raises(ChannelDisconnected):
        ch.drain(10)


def test_start_search_streams_to_terminal(fake_rg):
    rg = fake_rg([rg_match("a.txt", 2, "TODO\n"), rg_match("b.txt", 5, "TODO again\n")])
    events = wait_for_terminal(start_search("TODO", ".", SearchOptions(), program=rg))
    assert events == [
        MatchFound(DisplayMatch("a.txt", 2, "TODO")),
        MatchFound(DisplayMatch("b.txt", 5, "TODO again")),
        Finished(),
    ]


def test_start_search_missing_tool(tmp_path):
    channel = start_search("TODO", ".", SearchOptions(), program=str(tmp_path / "missing"))
    assert wait_for_terminal(channel) == [Failed(rggui.RG_NOT_FOUND_MESSAGE)]


def test_worker_exiting_without_result_is_a_disconnect(monkeypatch):
    monkeypatch.setattr(rggui, "run_search", lambda *a, **kw: None)
    channel = start_search("TODO", ".", SearchOptions())
    deadline = time.monotonic() + 5
    while time.monotonic() < deadline:
        try:
            channel.try_recv()
        except queue.Empty:
            time.sleep(0.01)
        except ChannelDisconnected:
            return
    pytest.fail("channel never reported the disconnect")
