"""Unit tests for the process executor, against real child processes."""

from __future__ import annotations

import asyncio
import io
import sys
import time

import pytest

from kindsim.errors import STDERR_TAIL_BYTES, ExternalCommandFailed
from kindsim.runtime.executor import Executor


def py(code: str) -> list[str]:
    return [sys.executable, "-c", code]


class TestExecutorRun:
    """Tests for Executor.run."""

    @pytest.mark.asyncio
    async def test_output_captures_stdout(self):
        """Test stdout is captured."""
        out = await Executor().output(*py("print('hello')"))
        assert out.strip() == b"hello"

    @pytest.mark.asyncio
    async def test_env_is_merged_over_inherited(self, monkeypatch):
        """Test extra variables are added to the inherited environment."""
        monkeypatch.setenv("KINDSIM_TEST_INHERITED", "parent")
        out = await Executor().output(
            *py("import os; print(os.environ['KINDSIM_TEST_INHERITED'], os.environ['EXTRA'])"),
            env={"EXTRA": "child"},
        )
        assert out.split() == [b"parent", b"child"]

    @pytest.mark.asyncio
    async def test_text_writer(self):
        """Test output can be written to a text stream."""
        buf = io.StringIO()
        await Executor().run(*py("print('text')"), stdout=buf)
        assert buf.getvalue().strip() == "text"

    @pytest.mark.asyncio
    async def test_text_writer_keeps_characters_split_across_reads(self):
        """Test a multibyte character straddling a read boundary decodes once."""
        buf = io.StringIO()
        code = "import sys; sys.stdout.buffer.write(b'a' * 65535 + '\\u00e9'.encode('utf-8') * 10)"
        await Executor().run(*py(code), stdout=buf)
        assert buf.getvalue() == "a" * 65535 + "\u00e9" * 10

    @pytest.mark.asyncio
    async def test_text_writer_flushes_truncated_tail(self):
        """Test an incomplete trailing sequence is replaced at exit."""
        buf = io.StringIO()
        await Executor().run(*py("import sys; sys.stdout.buffer.write(b'ok\\xc3')"), stdout=buf)
        assert buf.getvalue() == "ok\ufffd"

    @pytest.mark.asyncio
    async def test_combined_sends_stderr_to_stdout_writer(self):
        """Test combined mode merges both streams."""
        buf = io.BytesIO()
        code = "import sys; sys.stdout.write('out\\n'); sys.stdout.flush(); sys.stderr.write('err\\n')"
        await Executor().run(*py(code), stdout=buf, combined=True)
        assert b"out" in buf.getvalue()
        assert b"err" in buf.getvalue()

    @pytest.mark.asyncio
    async def test_input_is_fed_to_stdin(self):
        """Test input bytes reach the child."""
        out = await Executor().output(
            *py("import sys; print(sys.stdin.read().upper())"), input=b"abc"
        )
        assert out.strip() == b"ABC"

    @pytest.mark.asyncio
    async def test_cwd_override(self, tmp_path):
        """Test the working directory override."""
        out = await Executor().output(*py("import os; print(os.getcwd())"), cwd=tmp_path)
        assert out.decode().strip() == str(tmp_path.resolve())


class TestExecutorFailures:
    """Tests for failing commands."""

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises(self):
        """Test a nonzero exit reports exit code and stderr tail."""
        with pytest.raises(ExternalCommandFailed) as exc_info:
            await Executor().run(*py("import sys; sys.stderr.write('bad thing'); sys.exit(3)"))
        err = exc_info.value
        assert err.exit_code == 3
        assert err.stderr_tail == "bad thing"
        assert err.command[0] == sys.executable

    @pytest.mark.asyncio
    async def test_stderr_tail_is_bounded(self):
        """Test only the last bytes of stderr are kept."""
        code = "import sys; sys.stderr.write('x' * 10000 + 'END'); sys.exit(1)"
        with pytest.raises(ExternalCommandFailed) as exc_info:
            await Executor().run(*py(code))
        tail = exc_info.value.stderr_tail
        assert len(tail) <= STDERR_TAIL_BYTES
        assert tail.endswith("END")

    @pytest.mark.asyncio
    async def test_missing_binary(self):
        """Test a binary that cannot start has no exit code."""
        with pytest.raises(ExternalCommandFailed) as exc_info:
            await Executor().run("kindsim-no-such-binary-xyz")
        assert exc_info.value.exit_code is None


class TestExecutorCancellation:
    """Tests for cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_kills_child(self):
        """Test cancelling the caller terminates the child promptly."""
        task = asyncio.create_task(Executor().run(*py("import time; time.sleep(30)")))
        await asyncio.sleep(0.3)
        start = time.monotonic()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert time.monotonic() - start < 5

    @pytest.mark.asyncio
    async def test_timeout_kills_child(self):
        """Test a caller deadline terminates the child."""
        start = time.monotonic()
        with pytest.raises(TimeoutError):
            async with asyncio.timeout(0.3):
                await Executor().run(*py("import time; time.sleep(30)"))
        assert time.monotonic() - start < 5


class TestExecutorStream:
    """Tests for Executor.stream."""

    @pytest.mark.asyncio
    async def test_stream_yields_stdout(self):
        """Test streamed chunks concatenate to the full output."""
        chunks = [chunk async for chunk in Executor().stream(*py("print('a'); print('b')"))]
        assert b"".join(chunks).split() == [b"a", b"b"]

    @pytest.mark.asyncio
    async def test_stream_failure_raises(self):
        """Test a failing streamed command raises after its output."""
        with pytest.raises(ExternalCommandFailed):
            async for _ in Executor().stream(*py("import sys; print('a'); sys.exit(2)")):
                pass

    @pytest.mark.asyncio
    async def test_stream_drains_large_stderr(self):
        """Test a child writing more stderr than a pipe holds still finishes."""
        code = "import sys; sys.stderr.write('e' * 300000); sys.stderr.flush(); print('done')"

        async def collect() -> list[bytes]:
            return [chunk async for chunk in Executor().stream(*py(code))]

        chunks = await asyncio.wait_for(collect(), timeout=20)
        assert b"".join(chunks).strip() == b"done"

    @pytest.mark.asyncio
    async def test_stream_failure_keeps_stderr_tail(self):
        """Test a failing streamed command reports the end of a large stderr."""
        code = "import sys; sys.stderr.write('x' * 300000 + 'END'); sys.exit(4)"

        async def consume() -> None:
            async for _ in Executor().stream(*py(code)):
                pass

        with pytest.raises(ExternalCommandFailed) as exc_info:
            await asyncio.wait_for(consume(), timeout=20)
        assert exc_info.value.exit_code == 4
        assert exc_info.value.stderr_tail.endswith("END")
        assert len(exc_info.value.stderr_tail) <= STDERR_TAIL_BYTES

    @pytest.mark.asyncio
    async def test_cancel_while_child_floods_stderr(self):
        """Test cancelling the consumer kills a child blocked on stderr output."""
        code = (
            "import sys, time; print('x', flush=True); "
            "sys.stderr.write('e' * 300000); sys.stderr.flush(); time.sleep(30)"
        )

        async def consume() -> None:
            async for _ in Executor().stream(*py(code)):
                pass

        task = asyncio.create_task(consume())
        await asyncio.sleep(0.5)
        start = time.monotonic()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert time.monotonic() - start < 5

    @pytest.mark.asyncio
    async def test_close_with_unread_stdout(self):
        """Test closing the stream early kills a child with pending output."""
        code = "import sys, time; sys.stdout.write('o' * 1000000); sys.stdout.flush(); time.sleep(30)"
        chunks = Executor().stream(*py(code))
        first = await chunks.__anext__()
        assert first.startswith(b"o")
        start = time.monotonic()
        await chunks.aclose()
        assert time.monotonic() - start < 5


class TestExecutorDryRun:
    """Tests for dry-run mode."""

    @pytest.mark.asyncio
    async def test_dry_run_prints_instead_of_running(self, capsys, tmp_path):
        """Test dry-run prints the quoted command line with env prefix."""
        marker = tmp_path / "marker"
        await Executor(dry_run=True).run(
            *py(f"open({str(marker)!r}, 'w')"), env={"A": "b c"}
        )
        assert not marker.exists()
        out = capsys.readouterr().out
        assert out.startswith("A='b c' ")
        assert sys.executable in out
