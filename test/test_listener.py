import logging
import socket

from pytest import raises
from trio import fail_after, open_tcp_stream, sleep

from flockwave.serving import ListenerState, PortTarget, ServerListener


async def echo(stream):
    async with stream:
        data = await stream.receive_some()
        await stream.send_all(data)


async def test_listen_requires_nursery():
    listener = ServerListener(echo)

    with raises(RuntimeError, match="assign a nursery"):
        listener.listen(PortTarget(0, "127.0.0.1"))

    assert listener.is_closed


async def test_listener_lifecycle(nursery):
    listener = ServerListener(echo, nursery=nursery)
    states = []

    def on_state_changed(sender, old_state, new_state):
        states.append(new_state)

    listener.state_changed.connect(on_state_changed, sender=listener)

    assert listener.is_closed
    assert listener.address is None
    assert not listener.is_secure

    with fail_after(10):
        listener.listen(PortTarget(0, "127.0.0.1"))
        assert listener.state is ListenerState.PREPARING
        assert listener.is_transitioning

        with raises(RuntimeError, match="already listening"):
            listener.listen(PortTarget(0, "127.0.0.1"))

        await listener.wait_until_open()

        assert listener.is_open
        host, port = listener.address
        assert host == "127.0.0.1"
        assert port > 0

        stream = await open_tcp_stream(host, port)
        async with stream:
            await stream.send_all(b"helo")
            assert await stream.receive_some() == b"helo"

        await listener.close()

    assert listener.is_closed
    assert listener.address is None
    assert listener.listener is None
    assert states == [
        ListenerState.PREPARING,
        ListenerState.OPEN,
        ListenerState.CLOSING,
        ListenerState.CLOSED,
    ]

    # Closing again is a no-op
    await listener.close()


async def test_listener_can_listen_again_after_close(nursery):
    listener = ServerListener(echo, nursery=nursery)

    with fail_after(10):
        async with listener:
            listener.listen(PortTarget(0, "127.0.0.1"))
            await listener.wait_until_open()

        assert listener.is_closed

        listener.listen(PortTarget(0, "127.0.0.1"))
        await listener.wait_until_open()
        await listener.close()


async def test_bind_error_without_receivers_is_logged(nursery, caplog):
    with socket.create_server(("127.0.0.1", 0)) as sock:
        port = sock.getsockname()[1]
        listener = ServerListener(echo, nursery=nursery)

        with fail_after(10):
            listener.listen(PortTarget(port, "127.0.0.1"))
            await listener.wait_until_closed()

    assert listener.is_closed
    records = [r for r in caplog.records if r.levelno >= logging.ERROR]
    assert len(records) == 1
    assert records[0].getMessage() == "Unhandled error in server listener"
    assert isinstance(records[0].exc_info[1], OSError)


async def test_handler_errors_are_sent_on_error_signal(nursery):
    errors = []

    async def failing_app(stream):
        async with stream:
            await stream.receive_some()
            raise ValueError("boom")

    def on_error(sender, error):
        errors.append(error)

    listener = ServerListener(failing_app, nursery=nursery)
    listener.error.connect(on_error, sender=listener)

    with fail_after(10):
        listener.listen(PortTarget(0, "127.0.0.1"))
        await listener.wait_until_open()

        for expected in (1, 2):
            stream = await open_tcp_stream(*listener.address)
            async with stream:
                await stream.send_all(b"helo")
                assert await stream.receive_some() == b""

            while len(errors) < expected:
                await sleep(0.01)

            # The listener keeps serving after the error
            assert listener.is_open

        await listener.close()

    assert len(errors) == 2
    assert all(isinstance(error, ValueError) for error in errors)


async def test_connections_are_closed_without_handler(nursery):
    listener = ServerListener(nursery=nursery)

    with fail_after(10):
        listener.listen(PortTarget(0, "127.0.0.1"))
        await listener.wait_until_open()

        stream = await open_tcp_stream(*listener.address)
        async with stream:
            assert await stream.receive_some() == b""

        await listener.close()
