from rggui import (
    DisplayMatch, Failed, Finished, MatchFound, SearchChannel, SearchSession,
)


def found(i):
    return MatchFound(DisplayMatch("a.txt", i, f"TODO {i}"))


def running_session():
    session = SearchSession()
    channel = SearchChannel()
    session.begin(channel)
    return session, channel


def test_begin_resets_previous_results():
    session, channel = running_session()
    channel.send(found(1))
    channel.send(Finished())
    session.poll(10)
    assert len(session.results) == 1

    session.begin(SearchChannel())
    assert session.results == []
    assert session.error_message is None
    assert session.status == "Starting search..."
    assert session.running


def test_results_accumulate_across_polls():
    session, channel = running_session()
    for i in range(5):
        channel.send(found(i))

    new, backlog = session.poll(3)
    assert [m.line_number for m in new] == [0, 1, 2]
    assert backlog
    first = list(session.results)

    new, backlog = session.poll(3)
    assert [m.line_number for m in new] == [3, 4]
    assert not backlog
    assert session.results[:3] == first
    assert len(session.results) == 5
    assert session.status == "Found 5 results..."


def test_empty_poll_keeps_waiting():
    session, _ = running_session()
    assert session.poll(10) == ([], False)
    assert session.running
    assert session.status == "Searching... Found 0 results."


def test_finished_ends_the_search():
    session, channel = running_session()
    channel.send(found(1))
    channel.send(found(2))
    channel.send(Finished())

    new, backlog = session.poll(10)
    assert len(new) == 2
    assert not backlog
    assert not session.running
    assert session.error_message is None
    assert session.status == "Search finished. Found 2 results."
    assert channel.closed


def test_polling_stops_at_the_first_terminal_event():
    session, channel = running_session()
    channel.send(found(1))
    channel.send(Failed("rg exited with status: 2"))
    channel.send(found(2))
    channel.send(Finished())

    new, _ = session.poll(10)
    assert [m.line_number for m in new] == [1]
    assert session.results == [DisplayMatch("a.txt", 1, "TODO 1")]
    assert session.error_message == "rg exited with status: 2"
    assert session.status == "Search failed: rg exited with status: 2"

    assert session.poll(10) == ([], False)
    assert len(session.results) == 1


def test_disconnect_is_reported_as_unexpected():
    session, channel = running_session()
    channel.send(found(1))
    channel.close_sender()

    new, _ = session.poll(10)
    assert len(new) == 1
    assert session.running

    assert session.poll(10) == ([], False)
    assert not session.running
    assert session.error_message == "Search thread disconnected unexpectedly."
    assert session.status == "Error: Search thread disconnected."
    assert len(session.results) == 1


def test_stop_abandons_the_channel():
    session, channel = running_session()
    channel.send(found(1))
    session.poll(10)

    session.stop()
    assert channel.closed
    assert channel.send(found(2)) is False
    assert not session.running
    assert session.status == "Search stopped. Found 1 results."
    assert len(session.results) == 1


def test_clear_resets_everything():
    session, channel = running_session()
    channel.send(Failed("boom"))
    session.poll(10)

    session.clear()
    assert session.results == []
    assert session.error_message is None
    assert session.status == "Ready"
    assert not session.running
