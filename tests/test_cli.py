import asyncio
import signal
import socket
import sys
from pathlib import Path

import pytest

from linerelay.cli import FatalError, main, parse_port


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)


class TestParsePort:
    def test_single_port(self):
        assert parse_port(["8080"]) == 8080

    @pytest.mark.parametrize("argv", [[], ["1", "2"], ["1", "2", "3"]])
    def test_wrong_argument_count(self, argv):
        with pytest.raises(FatalError, match="Wrong number of arguments"):
            parse_port(argv)

    @pytest.mark.parametrize("arg", ["http", "-1", "65536", "80.5"])
    def test_invalid_port(self, arg):
        with pytest.raises(FatalError):
            parse_port([arg])


class TestMain:
    @pytest.mark.parametrize("argv", [[], ["4000", "4001"]])
    def test_wrong_argument_count_exits_1(self, argv, capsys):
        assert main(argv) == 1
        assert capsys.readouterr().err == "Wrong number of arguments\n"

    def test_invalid_port_exits_1(self, capsys):
        assert main(["port"]) == 1
        err = capsys.readouterr().err
        assert err.startswith("Invalid port")
        assert err.count("\n") == 1

    def test_port_in_use_exits_1(self, capsys):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("127.0.0.1", 0))
            s.listen()
            port = s.getsockname()[1]

            assert main([str(port)]) == 1

        err = capsys.readouterr().err
        assert err.strip()
        assert err.count("\n") == 1

    def test_bad_config_file_exits_1(self, tmp_path: Path, capsys):
        (tmp_path / "linerelay.toml").write_text("[server]\ncapacity = 0\n")
        assert main(["0"]) == 1
        assert "capacity" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# Process level
# ---------------------------------------------------------------------------


async def spawn(*args: str) -> asyncio.subprocess.Process:
    return await asyncio.create_subprocess_exec(
        sys.executable, "-m", "linerelay", *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("args", [(), ("4000", "4001")])
async def test_process_wrong_argument_count(args):
    proc = await spawn(*args)
    _, err = await asyncio.wait_for(proc.communicate(), 10.0)

    assert proc.returncode == 1
    assert err.decode().strip()


@pytest.mark.asyncio
@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
async def test_process_relays_and_exits_0_on_sigint(free_port):
    proc = await spawn(str(free_port))
    try:
        banner = await asyncio.wait_for(proc.stdout.readline(), 10.0)
        assert b"Server listening on port" in banner

        r0, w0 = await asyncio.open_connection("127.0.0.1", free_port)
        await asyncio.wait_for(proc.stdout.readline(), 5.0)
        r1, w1 = await asyncio.open_connection("127.0.0.1", free_port)

        got = await asyncio.wait_for(r0.readexactly(30), 5.0)
        assert got == b"server: client 1 just arrived\n"

        w0.write(b"hello\n")
        await w0.drain()
        assert await asyncio.wait_for(r1.readexactly(16), 5.0) == b"client 0: hello\n"

        proc.send_signal(signal.SIGINT)
        _, err = await asyncio.wait_for(proc.communicate(), 10.0)

        assert proc.returncode == 0
        assert err == b""
        assert await asyncio.wait_for(r0.read(), 5.0) == b""
        assert await asyncio.wait_for(r1.read(), 5.0) == b""
        w0.close()
        w1.close()
    finally:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
