"""Pytest configuration for rxtest tests."""

import io

import pytest
import signal
import sys

from rxtest.driver import Session, SessionConfig


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "timeout(seconds): set custom timeout for test")


def timeout_handler(signum, frame):
    """Handle timeout signal."""
    pytest.fail("Test timed out")


@pytest.fixture(autouse=True)
def test_timeout(request):
    """Apply a timeout to all tests.

    Default is 10 seconds, but tests can use a longer timeout by marking them:
    @pytest.mark.timeout(30)  # 30 second timeout
    """
    if sys.platform != "win32":
        # Check for custom timeout marker
        marker = request.node.get_closest_marker("timeout")
        timeout_seconds = marker.args[0] if marker else 10

        # Set up timeout handler (Unix only)
        old_handler = signal.signal(signal.SIGALRM, timeout_handler)
        signal.alarm(timeout_seconds)
        yield
        signal.alarm(0)  # Cancel the alarm
        signal.signal(signal.SIGALRM, old_handler)
    else:
        yield


def make_session(script, width=8, interactive=False, errfile=None, engine=None,
                 **options):
    """Build a session reading script and writing to an in-memory stream."""
    if isinstance(script, str):
        script = script.encode("latin-1")
    options.setdefault("quiet", True)
    config = SessionConfig(width=width, **options)
    outfile = io.BytesIO()
    session = Session(config, io.BytesIO(script), outfile,
                      interactive=interactive, errfile=errfile, engine=engine)
    return session, outfile


def run_script(script, width=8, **options):
    """Run a script and return (exit status, output text)."""
    session, outfile = make_session(script, width=width, **options)
    status = session.run()
    return status, outfile.getvalue().decode("latin-1")


@pytest.fixture
def session_factory():
    """Factory for sessions writing to an in-memory stream."""
    return make_session


@pytest.fixture
def run():
    """Run a script in batch mode, returning only the output text."""
    def _run(script, width=8, **options):
        status, output = run_script(script, width=width, **options)
        assert status == 0, output
        return output
    return _run
