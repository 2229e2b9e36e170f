import signal

import pytest
from prometheus_client import CollectorRegistry

import nsd_exporter.main as main_mod
from nsd_exporter.config.settings import ExporterSettings, parse_listen_address
from nsd_exporter.utils.exceptions import TransportError

from tests._helpers import FakeTransport


@pytest.fixture()
def quiet_main(monkeypatch):
    """Neutralize process-wide side effects of main()."""
    served = {}
    registry = CollectorRegistry()
    monkeypatch.setattr(main_mod, "setup_logging", lambda *a, **k: None)
    monkeypatch.setattr(main_mod, "install_reload_handler", lambda *a, **k: None)
    monkeypatch.setattr(main_mod, "REGISTRY", registry)

    def _serve(host, port, path, reg):
        served.update(host=host, port=port, path=path, registry=reg)

    monkeypatch.setattr(main_mod, "serve_metrics", _serve)
    return served


def test_settings_from_env():
    s = ExporterSettings.from_env({
        "NSD_EXPORTER_TYPE": "Unbound",
        "NSD_EXPORTER_TIMEOUT": "2.5",
        "NSD_EXPORTER_LISTEN_ADDRESS": "127.0.0.1:9167",
    })
    assert s.daemon_type == "unbound"
    assert s.timeout == 2.5
    assert s.listen_address == "127.0.0.1:9167"
    assert s.metric_path == "/metrics"


def test_settings_invalid_timeout_falls_back():
    assert ExporterSettings.from_env({"NSD_EXPORTER_TIMEOUT": "soon"}).timeout == 10.0


@pytest.mark.parametrize("listen,expected", [
    (":8080", ("", 8080)),
    ("127.0.0.1:9167", ("127.0.0.1", 9167)),
    ("[::1]:9000", ("::1", 9000)),
])
def test_parse_listen_address(listen, expected):
    assert parse_listen_address(listen) == expected


def test_cli_overrides_env():
    s = main_mod.parse_settings(["--type", "unbound", "--metric-path", "/stats"], env={"NSD_EXPORTER_TYPE": "nsd"})
    assert s.daemon_type == "unbound"
    assert s.metric_path == "/stats"


def test_incomplete_explicit_control_is_usage_error():
    with pytest.raises(SystemExit) as ei:
        main_mod.parse_settings(["--cert", "/tmp/c.pem"], env={})
    assert ei.value.code == 2


def test_bad_listen_address_is_usage_error():
    with pytest.raises(SystemExit) as ei:
        main_mod.parse_settings(["--listen-address", "nowhere"], env={})
    assert ei.value.code == 2


def test_explicit_control_builds_client(tmp_path, monkeypatch):
    captured = {}

    class _Client:
        def __init__(self, daemon_type, address, **kwargs):
            captured.update(daemon_type=daemon_type, address=address, **kwargs)

    monkeypatch.setattr(main_mod, "ControlClient", _Client)
    settings = main_mod.parse_settings(
        ["--nsd-address", "10.0.0.1:8952", "--cert", "c", "--key", "k", "--ca", "a"], env={}
    )
    main_mod.build_transport(settings)
    assert captured["address"] == "10.0.0.1:8952"
    assert captured["cert_file"] == "c" and captured["key_file"] == "k" and captured["ca_file"] == "a"


def test_main_fails_on_bad_metric_config(tmp_path, quiet_main, monkeypatch):
    monkeypatch.delenv("NSD_EXPORTER_METRIC_CONFIG", raising=False)
    rc = main_mod.main(["--metric-config", str(tmp_path / "missing.yaml")])
    assert rc == 1
    assert quiet_main == {}


def test_main_fails_when_initial_population_fails(quiet_main, monkeypatch):
    monkeypatch.setattr(main_mod, "build_transport", lambda s: FakeTransport(TransportError("refused")))
    assert main_mod.main([]) == 1
    assert quiet_main == {}


def test_main_registers_collector_and_serves(quiet_main, monkeypatch):
    monkeypatch.setattr(main_mod, "build_transport", lambda s: FakeTransport("num.queries=3\n"))
    rc = main_mod.main(["--listen-address", "127.0.0.1:9199", "--metric-path", "/m"])
    assert rc == 0
    assert quiet_main["host"] == "127.0.0.1" and quiet_main["port"] == 9199
    assert quiet_main["path"] == "/m"
    assert quiet_main["registry"].get_sample_value("nsd_up") == 1.0
    assert quiet_main["registry"].get_sample_value("nsd_num_queries_total") == 3.0


def test_reload_handler_swaps_config(tmp_path, monkeypatch):
    handlers = {}
    monkeypatch.setattr(signal, "signal", lambda signum, fn: handlers.__setitem__(signum, fn))

    class _Collector:
        reloaded = None

        def reload(self, config):
            self.reloaded = config

    cfg_path = tmp_path / "m.yaml"
    cfg_path.write_text("metrics:\n  num.udp: {help: u, type: counter}\n", encoding="utf-8")
    collector = _Collector()
    settings = ExporterSettings(metric_config=str(cfg_path))
    main_mod.install_reload_handler(collector, settings)
    handlers[signal.SIGHUP](signal.SIGHUP, None)
    assert "num.udp" in collector.reloaded.metrics

    cfg_path.write_text("label_metrics:\n  '(':\n    help: broken\n", encoding="utf-8")
    previous = collector.reloaded
    handlers[signal.SIGHUP](signal.SIGHUP, None)
    assert collector.reloaded is previous


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as ei:
        main_mod.parse_settings(["--version"], env={})
    assert ei.value.code == 0
    assert "nsd-exporter" in capsys.readouterr().out
