"""Tests for the typer CLI, run against the fake transport."""
import functools
import socket

import paramiko
import pytest
from typer.testing import CliRunner

from rexec.adapters.cli.app import app
from rexec.adapters.cli.connection import create_client, resolve_connection_params
from rexec.core.client import RemoteClient
from rexec.core.config import load_ssh_config
from rexec.core.exceptions import ConfigError

from conftest import FakeChannel

runner = CliRunner()


def _no_ssh_config(hostname, *args, **kwargs):
    raise ConfigError("~/.ssh/config does not exist")


@pytest.fixture(autouse=True)
def fake_network(monkeypatch, dialer):
    """Every client the CLI builds dials through the fake transport"""
    monkeypatch.setattr("rexec.adapters.cli.connection.load_ssh_config", _no_ssh_config)
    monkeypatch.setattr(
        "rexec.adapters.cli.connection.RemoteClient",
        functools.partial(RemoteClient, client_factory=dialer),
    )


def invoke(*args, **kwargs):
    return runner.invoke(app, list(args), **kwargs)


class TestExec:
    """rexec exec"""

    def test_runs_every_command(self, dialer):
        """Each command's output is printed and the exit status is 0."""
        dialer.respond_with(lambda cmd: (f"{cmd} ran\n".encode(), 0))
        result = invoke("exec", "example.com", "uptime", "df -h", "--password", "pw")

        assert result.exit_code == 0, result.output
        assert "uptime ran" in result.output
        assert "df -h ran" in result.output
        assert len(dialer.last.transport.channels) == 2
        assert dialer.last.closed

    def test_exit_status_is_highest_remote_code(self, dialer):
        """The worst remote exit code becomes the CLI's."""
        dialer.respond_with(lambda cmd: (b"", {"a": 0, "b": 3, "c": 1}[cmd]))
        result = invoke("exec", "example.com", "a", "b", "c", "--password", "pw")
        assert result.exit_code == 3

    def test_password_from_environment(self, dialer):
        """REXEC_PASSWORD feeds the password option."""
        result = invoke("exec", "example.com", "true", env={"REXEC_PASSWORD": "from-env"})

        assert result.exit_code == 0, result.output
        assert dialer.last.connect_kwargs["password"] == "from-env"

    def test_connect_failure(self, dialer):
        """A dial failure is reported and exits 1."""
        dialer.connect_error = socket.timeout("timed out")
        result = invoke("exec", "example.com", "uptime", "--password", "pw")

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "timed out" in result.output

    def test_invalid_port(self, dialer):
        """Out-of-range ports fail before dialing."""
        result = invoke("exec", "example.com", "uptime", "--port", "70000", "--password", "pw")

        assert result.exit_code == 1
        assert dialer.calls == 0


class TestTransfer:
    """rexec upload / download"""

    def test_upload(self, dialer, tmp_path):
        """The local file lands on the remote side."""
        local = tmp_path / "app.tar"
        local.write_bytes(b"archive-bytes")
        result = invoke("upload", "example.com", str(local), "/srv/app.tar", "--password", "pw")

        assert result.exit_code == 0, result.output
        assert dialer.last.sftp.files["/srv/app.tar"] == b"archive-bytes"
        assert "transferred: 13" in result.output

    def test_download(self, dialer, tmp_path):
        """The remote file is written locally."""
        dialer.remote_files = {"/var/log/app.log": b"log line\n"}
        local = tmp_path / "app.log"
        result = invoke("download", "example.com", "/var/log/app.log", str(local), "--password", "pw")

        assert result.exit_code == 0, result.output
        assert local.read_bytes() == b"log line\n"

    def test_download_missing_file(self, tmp_path):
        """A missing remote file reports the partial result and exits 1."""
        result = invoke(
            "download", "example.com", "/nope", str(tmp_path / "out"), "--password", "pw"
        )

        assert result.exit_code == 1
        assert "TransferResult" in result.output
        assert "transferred: 0" in result.output


class TestShell:
    """rexec shell"""

    def test_foreground_command(self, dialer):
        """Output is relayed and the remote exit status is returned."""
        dialer.channel_factory = lambda: FakeChannel(stdout=b"hi there\n", exit_status=4)
        result = invoke("shell", "example.com", "echo", "hi", "--password", "pw", "--no-pty")

        assert result.exit_code == 4
        assert "hi there" in result.output
        [channel] = dialer.last.transport.channels
        assert channel.commands == ["echo hi"]
        assert channel.pty is None


class TestConnectionParams:
    """Merging CLI values with ~/.ssh/config"""

    def test_explicit_values_win(self, monkeypatch):
        """CLI values override the SSH config entry."""
        monkeypatch.setattr(
            "rexec.adapters.cli.connection.load_ssh_config",
            lambda host: {"host": "10.0.0.5", "user": "deploy", "port": 2222, "key_file": "/keys/k"},
        )
        params = resolve_connection_params("build", port=22, user="root", key_file="/keys/mine")

        assert params["host"] == "10.0.0.5"
        assert params["port"] == 22
        assert params["user"] == "root"
        assert params["key_file"] == "/keys/mine"

    def test_ssh_config_fills_gaps(self, monkeypatch):
        """Unset values come from the SSH config entry."""
        monkeypatch.setattr(
            "rexec.adapters.cli.connection.load_ssh_config",
            lambda host: {"host": "10.0.0.5", "user": "deploy", "port": 2222, "key_file": "/keys/k"},
        )
        params = resolve_connection_params("build")

        assert params["port"] == 2222
        assert params["user"] == "deploy"
        assert params["key_file"] == "/keys/k"

    def test_without_ssh_config(self):
        """With no SSH config the host name is used as given."""
        params = resolve_connection_params("example.com")
        assert params["host"] == "example.com"
        assert params["port"] == 22
        assert params["user"] == ""

    def test_malformed_ssh_config_is_ignored(self, monkeypatch, tmp_path):
        """An unparsable ~/.ssh/config falls back to the values given."""
        bad = tmp_path / "ssh_config"
        bad.write_text("Host\n")
        monkeypatch.setattr(
            "rexec.adapters.cli.connection.load_ssh_config",
            lambda host: load_ssh_config(host, bad),
        )
        params = resolve_connection_params("example.com", user="root")

        assert params["host"] == "example.com"
        assert params["port"] == 22
        assert params["user"] == "root"

    def test_malformed_ssh_config_does_not_break_cli(self, monkeypatch, tmp_path, dialer):
        """The CLI still runs when ~/.ssh/config has a bad Port."""
        bad = tmp_path / "ssh_config"
        bad.write_text("Host example.com\n    Port ssh\n")
        monkeypatch.setattr(
            "rexec.adapters.cli.connection.load_ssh_config",
            lambda host: load_ssh_config(host, bad),
        )
        result = invoke("exec", "example.com", "true", "--password", "pw")

        assert result.exit_code == 0, result.output
        assert dialer.last.connect_kwargs["port"] == 22

    def test_create_client_is_unconnected(self, dialer):
        """create_client never dials."""
        client = create_client(resolve_connection_params("example.com", password="pw"))
        assert not client.connected
        assert client.auth.password == "pw"
        assert dialer.calls == 0

    def test_passphrase_reaches_auth_config(self):
        """The passphrase travels from the merged params into AuthConfig."""
        params = resolve_connection_params("example.com", key_file="/keys/k", passphrase="s3cret")
        client = create_client(params)
        assert client.auth.passphrase == "s3cret"
        assert client.auth.key_file == "/keys/k"


class TestEncryptedKey:
    """--passphrase unlocks an encrypted private key"""

    @pytest.fixture(scope="class")
    def rsa_key(self):
        return paramiko.RSAKey.generate(2048)

    @pytest.fixture
    def encrypted_key(self, tmp_path, rsa_key):
        path = tmp_path / "id_rsa"
        rsa_key.write_private_key_file(str(path), password="s3cret")
        return path

    def test_passphrase_option(self, dialer, encrypted_key, rsa_key):
        """The key is decrypted and offered to the server."""
        result = invoke("exec", "example.com", "true", "--key", str(encrypted_key), "--passphrase", "s3cret")

        assert result.exit_code == 0, result.output
        assert dialer.last.connect_kwargs["pkey"].asbytes() == rsa_key.asbytes()
        assert "password" not in dialer.last.connect_kwargs

    def test_passphrase_from_environment(self, dialer, encrypted_key):
        """REXEC_PASSPHRASE feeds the passphrase option."""
        result = invoke(
            "exec", "example.com", "true", "--key", str(encrypted_key), env={"REXEC_PASSPHRASE": "s3cret"}
        )
        assert result.exit_code == 0, result.output
        assert dialer.last.connect_kwargs["pkey"] is not None

    def test_missing_passphrase(self, dialer, encrypted_key):
        """Without a passphrase the CLI reports the encrypted key and never dials."""
        result = invoke("exec", "example.com", "true", "--key", str(encrypted_key))

        assert result.exit_code == 1
        assert "encrypted" in result.output
        assert dialer.calls == 0
