"""Tests for URL validation and configuration loading."""

import pytest

from config import EndpointSource, build_endpoint, endpoint_summary, load_config
from errors import InvalidEndpoint
from models import ControlEndpoint
from validation import validate_url


@pytest.mark.parametrize("url", [
    "https://pc.example.com",
    "https://pc.example.com/",
    "https://pc.example.com:8443/api",
    "HTTPS://PC.Example.com/control",
    "https://localhost",
])
def test_accepts_https_domain_urls(url):
    assert validate_url(url) is True


@pytest.mark.parametrize("url", [
    "",
    "pc.example.com",
    "http://pc.example.com",
    "ftp://pc.example.com",
    "https://",
    "https:///path",
    "https://192.168.1.10",
    "https://10.0.0.1:8443/turn-on",
    "https://[::1]/",
    "https://[2001:db8::1]:443",
    "https://[fe80::1",
])
def test_rejects_non_https_and_ip_literal_urls(url):
    assert validate_url(url) is False


def test_endpoint_rejects_invalid_base_url():
    with pytest.raises(InvalidEndpoint) as exc_info:
        ControlEndpoint(base_url="http://pc.example.com")
    assert exc_info.value.url == "http://pc.example.com"
    assert "HTTPS" in str(exc_info.value)


def test_endpoint_without_base_url_keeps_wake_details():
    endpoint = build_endpoint({"mac_address": "AA:BB:CC:DD:EE:FF", "ip_address": "10.0.0.5"})
    assert endpoint.has_http is False
    assert endpoint.physical_address == "AA:BB:CC:DD:EE:FF"
    assert endpoint.last_known_ip == "10.0.0.5"


def test_build_endpoint_blank_values_are_absent():
    endpoint = build_endpoint({"base_url": "  ", "api_key": ""})
    assert endpoint.base_url is None
    assert endpoint.auth_token is None
    assert endpoint.headers() == {}


def test_auth_token_is_passed_as_bearer():
    endpoint = build_endpoint({"base_url": "https://pc.example.com/", "api_key": "s3cret"})
    assert endpoint.headers() == {"Authorization": "Bearer s3cret"}
    assert endpoint.url_for("/is-online") == "https://pc.example.com/is-online"


def test_endpoint_summary():
    assert endpoint_summary({}) is None
    summary = endpoint_summary({"base_url": "https://1.2.3.4"})
    assert summary.base_url == "https://1.2.3.4"
    assert summary.is_valid is False


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="pccontroller.yaml.example"):
        load_config(str(tmp_path / "missing.yaml"))


def test_load_config_empty_file(tmp_path):
    path = tmp_path / "pccontroller.yaml"
    path.write_text("")
    with pytest.raises(ValueError, match="empty"):
        load_config(str(path))


def test_load_config_invalid_yaml(tmp_path):
    path = tmp_path / "pccontroller.yaml"
    path.write_text("endpoint: [unclosed\n")
    with pytest.raises(ValueError, match="Invalid YAML"):
        load_config(str(path))


def test_load_config_defaults_store_backend(tmp_path):
    path = tmp_path / "pccontroller.yaml"
    path.write_text("logging:\n  level: DEBUG\n")
    config = load_config(str(path))
    assert config["store"]["backend"] == "file"


def test_load_config_mqtt_requires_host(tmp_path):
    path = tmp_path / "pccontroller.yaml"
    path.write_text("store:\n  backend: mqtt\n")
    with pytest.raises(ValueError, match="store.host"):
        load_config(str(path))


def test_load_config_unknown_backend(tmp_path):
    path = tmp_path / "pccontroller.yaml"
    path.write_text("store:\n  backend: redis\n")
    with pytest.raises(ValueError, match="Unknown 'store.backend'"):
        load_config(str(path))


def test_load_config_tolerates_invalid_base_url(tmp_path):
    path = tmp_path / "pccontroller.yaml"
    path.write_text("endpoint:\n  base_url: http://192.168.1.2\n")
    config = load_config(str(path))
    assert config["endpoint"]["base_url"] == "http://192.168.1.2"


def test_endpoint_source_rereads_file(tmp_path):
    path = tmp_path / "pccontroller.yaml"
    source = EndpointSource(str(path))

    assert source.summary() is None
    assert source.endpoint().has_http is False

    path.write_text("endpoint:\n  base_url: https://pc.example.com\n")
    assert source.endpoint().base_url == "https://pc.example.com"
    assert source.summary().is_valid is True

    path.write_text("endpoint:\n  base_url: https://192.168.1.2\n")
    with pytest.raises(InvalidEndpoint):
        source.endpoint()
