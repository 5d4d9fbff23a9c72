"""Tests for Kafka security configuration builder."""

import ssl

import pytest

from config.config import IngestConfig
from search_ingest.common.kafka_config import build_kafka_security_config


def _make_config(**overrides):
    defaults = {
        "bootstrap_servers": "localhost:9092",
        "security_protocol": "PLAINTEXT",
        "sasl_mechanism": "PLAIN",
        "sasl_plain_username": "user",
        "sasl_plain_password": "pass",
    }
    defaults.update(overrides)
    return IngestConfig(**defaults)


class TestBuildKafkaSecurityConfigPlaintext:
    def test_returns_empty_dict_for_plaintext(self):
        assert build_kafka_security_config(_make_config()) == {}


class TestBuildKafkaSecurityConfigSSL:
    def test_ssl_only(self):
        result = build_kafka_security_config(_make_config(security_protocol="SSL"))

        assert result["security_protocol"] == "SSL"
        assert isinstance(result["ssl_context"], ssl.SSLContext)
        assert "sasl_mechanism" not in result


class TestBuildKafkaSecurityConfigSASL:
    def test_sasl_plain_includes_username_and_password(self):
        config = _make_config(
            security_protocol="SASL_PLAINTEXT",
            sasl_plain_username="myuser",
            sasl_plain_password="mypass",
        )
        result = build_kafka_security_config(config)

        assert result["security_protocol"] == "SASL_PLAINTEXT"
        assert result["sasl_mechanism"] == "PLAIN"
        assert result["sasl_plain_username"] == "myuser"
        assert result["sasl_plain_password"] == "mypass"
        assert "ssl_context" not in result

    def test_sasl_ssl_includes_ssl_context(self):
        result = build_kafka_security_config(_make_config(security_protocol="SASL_SSL"))

        assert result["security_protocol"] == "SASL_SSL"
        assert isinstance(result["ssl_context"], ssl.SSLContext)

    @pytest.mark.parametrize("mechanism", ["SCRAM-SHA-256", "SCRAM-SHA-512"])
    def test_scram_mechanisms(self, mechanism):
        config = _make_config(security_protocol="SASL_SSL", sasl_mechanism=mechanism)
        assert build_kafka_security_config(config)["sasl_mechanism"] == mechanism

    def test_unsupported_mechanism_raises(self):
        config = _make_config(security_protocol="SASL_SSL", sasl_mechanism="GSSAPI")
        with pytest.raises(ValueError, match="Unsupported sasl_mechanism"):
            build_kafka_security_config(config)
