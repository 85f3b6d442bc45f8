import ssl

import pytest

from hmc_client.config import ClientConfig
from hmc_client.exceptions import ErrorCode, InvalidURLError
from hmc_client.tls import TLSContextAdapter, build_tls_context


TEST_CA_PEM = """-----BEGIN CERTIFICATE-----
MIIDDzCCAfegAwIBAgIUbW1z839ZoveOc2WazHvtV/dz9IMwDQYJKoZIhvcNAQEL
BQAwFjEUMBIGA1UEAwwLaG1jLXRlc3QtY2EwIBcNMjYxMDE5MTY0NTUwWhgPMjEy
NjA5MjUxNjQ1NTBaMBYxFDASBgNVBAMMC2htYy10ZXN0LWNhMIIBIjANBgkqhkiG
9w0BAQEFAAOCAQ8AMIIBCgKCAQEAsZHnHOPZ2RTrv/f6NP69rXC7CKvd6EGBOSfz
W/fdMoB3uyR5wa+RtBCcElfJoBZ2KbYNjdMasbUiMot2TbbTzuVZzCOI/TiznQYr
zRkXBlDFnPcwWzk61jyyZCdqQeady50tQS3FOmlyc/mrdh9Ocm59oCHyiOtFKkH9
wNvZDHwmuuEGPZXPAQ7bI5oyUfOylbZbuUnTGCwNEjzd2rSjujkcyqzsRmgtMMJt
hDJ1VSV/cRNfsdbFObYM8BfYz/iNqpppXSUotTncoC9JsaPpOkyf42ARSImOabi/
dGPVW09MRyym5I0EYFVucAq7q6YjdGr8X4xoSZ7q13U1KwFayQIDAQABo1MwUTAd
BgNVHQ4EFgQUHhdgUvkJS4IeZHbI3T80y+wgczowHwYDVR0jBBgwFoAUHhdgUvkJ
S4IeZHbI3T80y+wgczowDwYDVR0TAQH/BAUwAwEB/zANBgkqhkiG9w0BAQsFAAOC
AQEAGlJ22z0lht1gMuWREY6UAAARoOxqzgsgfaGXp5JKqtuTrIF446ryCvd29QzD
mjye0jF30kS8eaD0jk9n152yURUMJ/2NYwfv2ngJezJ8trAVY4yvjFCthElmHPwR
yRarta3gSV1i3An729Kwx5v5AmrxDI8KKS6OY6lRtpvKVxVLoqBF4XgGL/J/vMPk
uJlSX+2atF95d0qMYqcr5wZJXyAj5ql1Pfa3ognDtMG7AHBc2ugTLJb7a2RKZmK/
kt9/LRDPMyZGa3mxOUVckAMmrvReOKtwHsgDcr6buQUDkDOjb+0cu+jow5z0abg1
tCm88a53w55kxcj3p3TBA7a41Q==
-----END CERTIFICATE-----
"""


@pytest.fixture
def ca_pem(tmp_path):
    path = tmp_path / "hmc-ca.pem"
    path.write_text(TEST_CA_PEM, encoding="ascii")
    return str(path)

def test_default_verification_needs_no_context():
    assert build_tls_context(ClientConfig(userid="u", password="p")) is None


def test_skip_cert_disables_hostname_and_chain_checks():
    context = build_tls_context(ClientConfig(userid="u", password="p", skip_cert=True))

    assert context.check_hostname is False
    assert context.verify_mode == ssl.CERT_NONE


def test_unreadable_pem_is_invalid_url(tmp_path):
    missing = tmp_path / "missing.pem"

    with pytest.raises(InvalidURLError) as excinfo:
        build_tls_context(ClientConfig(userid="u", password="p", ca_cert=str(missing)))

    assert excinfo.value.reason == ErrorCode.INVALID_URL


def test_malformed_pem_is_invalid_url(tmp_path):
    bogus = tmp_path / "bogus.pem"
    bogus.write_text("not a certificate", encoding="utf-8")

    with pytest.raises(InvalidURLError):
        build_tls_context(
            ClientConfig(userid="u", password="p", skip_cert=True, ca_cert=str(bogus))
        )


def test_adapter_hands_context_to_pool_manager():
    context = ssl.create_default_context()

    adapter = TLSContextAdapter(context)

    assert adapter.poolmanager.connection_pool_kw["ssl_context"] is context


def test_pem_is_the_only_trust_anchor(ca_pem):
    context = build_tls_context(ClientConfig(userid="u", password="p", ca_cert=ca_pem))

    assert context.cert_store_stats()["x509_ca"] == 1
    assert context.check_hostname is True
    assert context.verify_mode == ssl.CERT_REQUIRED


def test_skip_cert_still_loads_pem_as_only_trust_anchor(ca_pem):
    context = build_tls_context(
        ClientConfig(userid="u", password="p", skip_cert=True, ca_cert=ca_pem)
    )

    assert context.cert_store_stats()["x509_ca"] == 1
    assert context.check_hostname is False
    assert context.verify_mode == ssl.CERT_NONE
