"""
Unit tests for the command line entry point.
"""

import socket

import pytest

from kurt import DefaultDelegate, Kurt
from kurt.__main__ import main, resolve_delegate


class RecordingDelegate(DefaultDelegate):
    """Importable from this module by the --delegate tests."""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("KURT_HOST", "KURT_PORT", "KURT_WORKERS", "KURT_TIMEOUT",
                 "KURT_SITE", "KURT_DELEGATE", "KURT_LOG_LEVEL", "KURT_VERBOSE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def no_run(monkeypatch):
    calls = []
    monkeypatch.setattr(Kurt, "run", lambda self: calls.append(self))
    return calls


class TestResolveDelegate:
    """Tests for resolve_delegate()."""

    def test_colon_form(self):
        assert resolve_delegate("kurt.delegate:DefaultDelegate") is DefaultDelegate

    def test_dotted_form(self):
        assert resolve_delegate("kurt.delegate.DefaultDelegate") is DefaultDelegate

    def test_not_a_delegate(self):
        with pytest.raises(TypeError):
            resolve_delegate("kurt.config:ServerConfig")

    def test_missing_module(self):
        with pytest.raises(ImportError):
            resolve_delegate("no_such_module_here:Thing")

    def test_missing_class(self):
        with pytest.raises(AttributeError):
            resolve_delegate("kurt.delegate:Nope")


class TestMain:
    """Tests for main()."""

    def test_serves_with_site(self, tmp_path, no_run):
        (tmp_path / "site.py").write_text('kurt.get("/", lambda r: "home")\n')

        assert main(["-a", "127.0.0.1", "-p", "0", "-l", "warning"]) == 0
        assert len(no_run) == 1

        kurt = Kurt.instance()
        assert no_run[0] is kurt
        assert kurt.address[1] > 0
        assert kurt.delegate.dispatcher.routes.match("GET", "/") is not None

    def test_missing_site_still_serves(self, no_run):
        assert main(["-p", "0", "-s", "absent.py", "-l", "warning"]) == 0
        assert len(no_run) == 1

    def test_verbose_flag(self, no_run):
        main(["-p", "0", "-v", "-l", "warning"])
        assert Kurt.verbose() is True

    def test_bad_delegate_exits_2(self, no_run):
        assert main(["-p", "0", "-d", "no_such_module_here:Thing", "-l", "warning"]) == 2
        assert no_run == []

    def test_embedder_delegate_used(self, no_run):
        assert main(["-p", "0", "-l", "warning"], delegate_class_name=__name__ + ":RecordingDelegate") == 0
        assert isinstance(Kurt.instance().delegate, RecordingDelegate)

    def test_delegate_flag_wins(self, no_run):
        main(["-p", "0", "-l", "warning", "-d", "kurt.delegate:DefaultDelegate"],
             delegate_class_name=__name__ + ":RecordingDelegate")
        assert type(Kurt.instance().delegate) is DefaultDelegate

    def test_bad_route_in_site_exits_2(self, tmp_path, no_run):
        (tmp_path / "site.py").write_text('kurt.get("no-slash", lambda r: "")\n')

        assert main(["-p", "0", "-l", "warning"]) == 2
        assert no_run == []

    @pytest.mark.parametrize("source", [
        "raise RuntimeError(\"site broke\")\n",
        "def broken(:\n",
        "kurt.static(\"/assets\", \"no-such-directory\")\n",
    ])
    def test_failing_site_exits_2(self, tmp_path, no_run, source):
        (tmp_path / "site.py").write_text(source)

        assert main(["-p", "0", "-l", "warning"]) == 2
        assert no_run == []

    def test_invalid_port_exits_2(self, no_run):
        assert main(["-p", "70000", "-l", "warning"]) == 2

    def test_bad_environment_exits_2(self, monkeypatch, no_run):
        monkeypatch.setenv("KURT_PORT", "abc")
        assert main([]) == 2

    def test_port_in_use_returns_bind_status(self, no_run):
        holder = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        holder.bind(("127.0.0.1", 0))
        holder.listen(1)
        try:
            port = holder.getsockname()[1]
            status = main(["-a", "127.0.0.1", "-p", str(port), "-l", "warning"])
        finally:
            holder.close()

        assert status not in (0, 2)
        assert no_run == []
