import subprocess
from pathlib import Path
from unittest import mock

import pytest

from chezmoi.gpg import GPG


def _fake_gpg(calls, output):
    def run(args, check):
        input_path = Path(args[-1])
        calls.append((list(args), input_path.read_bytes()))
        out = args[args.index("--output") + 1]
        Path(out).write_bytes(output)
        return subprocess.CompletedProcess(args, 0)

    return run


def test_decrypt():
    calls = []
    with mock.patch("subprocess.run", side_effect=_fake_gpg(calls, b"plain")):
        result = GPG().decrypt("/home/user/.secret", b"cipher")
    assert result == b"plain"
    (args, input_data), = calls
    assert input_data == b"cipher"
    assert args[0] == "gpg"
    assert args[args.index("--output") + 1].endswith(".secret")
    assert args[-2] == "--decrypt"
    assert args[-1].endswith(".secret.gpg")


def test_encrypt_recipient():
    calls = []
    with mock.patch("subprocess.run", side_effect=_fake_gpg(calls, b"armored")):
        result = GPG(recipient="user@example.com").encrypt("/home/user/.secret", b"plain")
    assert result == b"armored"
    (args, input_data), = calls
    assert input_data == b"plain"
    assert args[:2] == ["gpg", "--armor"]
    assert args[args.index("--recipient") + 1] == "user@example.com"
    assert "--encrypt" in args
    assert "--symmetric" not in args


def test_encrypt_symmetric():
    calls = []
    with mock.patch("subprocess.run", side_effect=_fake_gpg(calls, b"armored")):
        result = GPG(recipient="user@example.com", symmetric=True).encrypt("/tmp/f", b"p")
    assert result == b"armored"
    (args, _), = calls
    assert "--symmetric" in args
    assert "--recipient" not in args
    assert "--encrypt" not in args


def test_encrypt_without_recipient():
    calls = []
    with mock.patch("subprocess.run", side_effect=_fake_gpg(calls, b"a")):
        result = GPG().encrypt("/tmp/f", b"p")
    assert result == b"a"
    (args, _), = calls
    assert "--recipient" not in args
    assert "--encrypt" in args


def test_failure_raises():
    error = subprocess.CalledProcessError(2, ["gpg"])
    with mock.patch("subprocess.run", side_effect=error):
        with pytest.raises(subprocess.CalledProcessError):
            GPG().decrypt("/tmp/f", b"cipher")