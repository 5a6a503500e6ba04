"""Encryption and decryption with gpg."""

from __future__ import annotations

import os
import subprocess
import tempfile
from dataclasses import dataclass


@dataclass
class GPG:
    """Encrypts and decrypts data by running gpg."""

    recipient: str = ""
    symmetric: bool = False

    def decrypt(self, filename: str, ciphertext: bytes) -> bytes:
        """Decrypt ciphertext; filename is a hint for naming temporary files."""
        with tempfile.TemporaryDirectory(prefix="chezmoi-decrypt") as temp_dir:
            output_filename = os.path.join(temp_dir, os.path.basename(filename))
            input_filename = output_filename + ".gpg"
            _write_private(input_filename, ciphertext)
            subprocess.run(
                [
                    "gpg",
                    "--output", output_filename,
                    "--quiet",
                    "--decrypt", input_filename,
                ],
                check=True,
            )
            with open(output_filename, "rb") as f:
                return f.read()

    def encrypt(self, filename: str, plaintext: bytes) -> bytes:
        """Encrypt plaintext; filename is a hint for naming temporary files."""
        with tempfile.TemporaryDirectory(prefix="chezmoi-encrypt") as temp_dir:
            input_filename = os.path.join(temp_dir, os.path.basename(filename))
            _write_private(input_filename, plaintext)
            output_filename = input_filename + ".gpg"
            args = ["gpg", "--armor", "--output", output_filename, "--quiet"]
            if self.symmetric:
                args.append("--symmetric")
            else:
                if self.recipient:
                    args += ["--recipient", self.recipient]
                args.append("--encrypt")
            args.append(input_filename)
            subprocess.run(args, check=True)
            with open(output_filename, "rb") as f:
                return f.read()


def _write_private(path: str, data: bytes) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(data)