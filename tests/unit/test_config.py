"""
Unit tests for ServerConfiguration.
"""

import dataclasses

import pytest

from videostreamer.config import ServerConfiguration


class TestDefaults:

    def test_defaults(self):
        config = ServerConfiguration(7879)

        assert config.port == 7879
        assert config.address == "127.0.0.1"
        assert config.endpoint is None
        assert config.read_buffer_size == 1024
        assert config.poll_interval == 0.03
        assert config.write_timeout == 5.0

    def test_endpoint_defaults_to_root(self):
        assert ServerConfiguration(7879).effective_endpoint == "/"

    def test_explicit_endpoint(self):
        config = ServerConfiguration(7879, endpoint="/img")

        assert config.effective_endpoint == "/img"

    def test_bind_address(self):
        config = ServerConfiguration(8080, address="0.0.0.0")

        assert config.bind_address == ("0.0.0.0", 8080)

    def test_frozen(self):
        config = ServerConfiguration(7879)

        with pytest.raises(dataclasses.FrozenInstanceError):
            config.port = 80


class TestValidate:

    def test_valid(self):
        ServerConfiguration(0, endpoint="/stream", write_timeout=None).validate()

    @pytest.mark.parametrize("port", [-1, 65536])
    def test_invalid_port(self, port):
        with pytest.raises(ValueError, match="port"):
            ServerConfiguration(port).validate()

    def test_empty_address(self):
        with pytest.raises(ValueError, match="address"):
            ServerConfiguration(7879, address="").validate()

    def test_endpoint_without_slash(self):
        with pytest.raises(ValueError, match="endpoint"):
            ServerConfiguration(7879, endpoint="img").validate()

    def test_zero_backlog(self):
        with pytest.raises(ValueError, match="backlog"):
            ServerConfiguration(7879, backlog=0).validate()

    def test_tiny_read_buffer(self):
        with pytest.raises(ValueError, match="read_buffer_size"):
            ServerConfiguration(7879, read_buffer_size=8).validate()

    def test_zero_poll_interval(self):
        with pytest.raises(ValueError, match="poll_interval"):
            ServerConfiguration(7879, poll_interval=0).validate()

    def test_negative_write_timeout(self):
        with pytest.raises(ValueError, match="write_timeout"):
            ServerConfiguration(7879, write_timeout=-1.0).validate()

    def test_zero_read_timeout(self):
        with pytest.raises(ValueError, match="read_timeout"):
            ServerConfiguration(7879, read_timeout=0).validate()
