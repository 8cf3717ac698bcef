import os

from pytest import raises

from flockwave.serving.factory import Factory
from flockwave.serving import (
    PortTarget,
    SocketPathTarget,
    UnknownListenTargetTypeError,
    create_listen_target,
)


def test_port_target_validation():
    assert PortTarget().port == 0
    assert PortTarget(8080, "localhost").host == "localhost"
    assert PortTarget(65535).port == 65535

    for port in (-1, 65536, 8080.0, "8080", True):
        with raises(ValueError, match="port must be an integer"):
            PortTarget(port)  # type: ignore


def test_socket_path_target():
    target = SocketPathTarget("relative.sock")
    assert os.path.isabs(target.path)
    assert target.path.endswith("relative.sock")
    assert target.mode == 0o666
    assert str(target) == target.path

    with raises(ValueError):
        SocketPathTarget("")


def test_create_tcp_target_from_url():
    assert create_listen_target("tcp://localhost:8080") == PortTarget(
        8080, "localhost"
    )
    assert create_listen_target("tcp://:0") == PortTarget(0)
    assert create_listen_target("tcp://127.0.0.1") == PortTarget(0, "127.0.0.1")
    assert create_listen_target("tcp://[::1]:443") == PortTarget(443, "::1")
    assert create_listen_target("tcp") == PortTarget()


def test_create_unix_target_from_url():
    target = create_listen_target("unix:/run/app.sock?mode=384")
    assert target == SocketPathTarget("/run/app.sock", mode=0o600)


def test_create_target_from_dict():
    target = create_listen_target({"type": "tcp", "host": "localhost", "port": 80})
    assert target == PortTarget(80, "localhost")

    target = create_listen_target(
        {"type": "unix", "path": "/tmp/x.sock", "parameters": {"mode": 0o660}}
    )
    assert target == SocketPathTarget("/tmp/x.sock", mode=0o660)


def test_unknown_target_type():
    with raises(UnknownListenTargetTypeError, match="'udp'"):
        create_listen_target("udp://localhost:53")

    with raises(ValueError, match="repeated"):
        create_listen_target("unix:/tmp/x.sock?mode=1&mode=2")


def test_factory_register_and_unregister():
    factory = Factory()

    @factory.register("echo")
    def create_echo(**kwds):
        return kwds

    assert factory("echo://localhost:1234") == {"host": "localhost", "port": 1234}

    factory.unregister("echo")
    with raises(UnknownListenTargetTypeError):
        factory("echo://localhost:1234")
