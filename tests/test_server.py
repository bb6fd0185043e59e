from __future__ import annotations

import datetime

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from pushserve import PushServer, Settings, server
from pushserve.__main__ import main
from pushserve.exceptions import ImproperlyConfigured


def generate_self_signed(key_file, cert_file):
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "localhost")])
    not_before = datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(minutes=5)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_before + datetime.timedelta(days=1))
        .add_extension(x509.SubjectAlternativeName([x509.DNSName("localhost")]), critical=False)
        .sign(key, hashes.SHA256())
    )
    key_file.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    cert_file.write_bytes(cert.public_bytes(serialization.Encoding.PEM))


@pytest.fixture
def certified_site(site):
    generate_self_signed(site / "ssl.key", site / "ssl.cert")
    return site


@pytest.fixture
def served(monkeypatch):
    calls = []

    async def serve(app, config, **kwargs):
        calls.append((app, config))

    monkeypatch.setattr(server, "serve", serve)
    return calls


def test_load_tls_material(certified_site):
    settings = Settings(root_dir=str(certified_site))

    tls = server.load_tls_material(settings)

    assert tls.keyfile == settings.ssl_key_path
    assert tls.certfile == settings.ssl_cert_path
    assert tls.key == (certified_site / "ssl.key").read_bytes()
    assert tls.cert == (certified_site / "ssl.cert").read_bytes()
    assert "BEGIN" not in repr(tls)


def test_missing_tls_material(settings):
    with pytest.raises(ImproperlyConfigured) as raised:
        server.load_tls_material(settings)

    assert isinstance(raised.value.__cause__, FileNotFoundError)
    assert "Unable to read the TLS material" in raised.value.detail


def test_missing_certificate(site):
    generate_self_signed(site / "ssl.key", site / "other.cert")

    with pytest.raises(ImproperlyConfigured):
        server.load_tls_material(Settings(root_dir=str(site)))


def test_invalid_tls_material(site):
    (site / "ssl.key").write_text("not a key")
    (site / "ssl.cert").write_text("not a certificate")

    with pytest.raises(ImproperlyConfigured) as raised:
        server.load_tls_material(Settings(root_dir=str(site)))

    assert "Invalid TLS material" in raised.value.detail


def test_mismatched_tls_material(site, tmp_path_factory):
    other = tmp_path_factory.mktemp("other")
    generate_self_signed(site / "ssl.key", other / "ssl.cert")
    generate_self_signed(other / "ssl.key", site / "ssl.cert")

    with pytest.raises(ImproperlyConfigured):
        server.load_tls_material(Settings(root_dir=str(site)))


def test_build_config(certified_site):
    settings = Settings(host="0.0.0.0", port=8443, root_dir=str(certified_site))

    config = server.build_config(settings, server.load_tls_material(settings))

    assert config.bind == ["0.0.0.0:8443"]
    assert config.keyfile == settings.ssl_key_path
    assert config.certfile == settings.ssl_cert_path
    assert config.alpn_protocols == ["h2", "http/1.1"]
    assert config.ssl_enabled


def test_run(certified_site, served):
    settings = Settings(port=8443, root_dir=str(certified_site))

    server.run(settings)

    ((app, config),) = served
    assert isinstance(app, PushServer)
    assert app.settings is settings
    assert config.bind == ["localhost:8443"]


def test_run_refuses_to_start_without_tls(settings, served):
    with pytest.raises(ImproperlyConfigured):
        server.run(settings)

    assert served == []


def test_main_reads_the_environment(certified_site, served, monkeypatch):
    monkeypatch.setenv("ROOT_DIR", str(certified_site))
    monkeypatch.setenv("PORT", "9443")

    main()

    ((app, config),) = served
    assert app.settings.root_dir == str(certified_site)
    assert config.bind == ["localhost:9443"]
