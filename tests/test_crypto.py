# SPDX-FileCopyrightText: 2024-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from pathlib import Path

import pytest

from ephemeral import crypto
from ephemeral.crypto import AuthenticationError, InvalidNonceLengthError, decrypt, encrypt
from ephemeral.messages import Envelope, deserialize, serialize
from ephemeral.messaging.watcher import open_envelope, seal_message

SECRET_KEY = bytes.fromhex('2e4d36dc3c49049b450a3656188692a328df4b9cff11b6d95157fc21363a1b28')


class TestSecretBox:

    def test_sizes(self) -> None:
        assert crypto.KEY_SIZE == 32
        assert crypto.NONCE_SIZE == 24
        assert crypto.MAC_SIZE == 16

    def test_encrypt(self) -> None:
        envelope = encrypt(b'plaintext', SECRET_KEY)
        assert isinstance(envelope, Envelope)
        assert len(envelope.nonce) == crypto.NONCE_SIZE
        assert len(envelope.ciphertext) == len(b'plaintext') + crypto.MAC_SIZE
        assert b'plaintext' not in envelope.ciphertext

    def test_fresh_nonces(self) -> None:
        nonces = {encrypt(b'same plaintext', SECRET_KEY).nonce for _ in range(16)}
        assert len(nonces) == 16

    def test_round_trip(self) -> None:
        for plaintext in (b'', b'x', b'{"test":"foo"}', bytes(range(256)) * 10):
            envelope = encrypt(plaintext, SECRET_KEY)
            assert decrypt(envelope.nonce, envelope.ciphertext, SECRET_KEY) == plaintext

    def test_message_round_trip(self) -> None:
        message = {'test': 'foo', 'someIntegers': b'\x01\x02\x03\x04', 'nested': {'buffers': [b'\x04\x03', b'']}}
        envelope = encrypt(serialize(message), SECRET_KEY)
        assert deserialize(decrypt(envelope.nonce, envelope.ciphertext, SECRET_KEY)) == message
        assert open_envelope(Envelope.from_wire(seal_message(message, SECRET_KEY)), SECRET_KEY) == message

    def test_tampered_ciphertext(self) -> None:
        envelope = encrypt(b'{"test":"foo"}', SECRET_KEY)
        for position in range(len(envelope.ciphertext)):
            tampered = bytearray(envelope.ciphertext)
            tampered[position] ^= 0x01
            with pytest.raises(AuthenticationError):
                decrypt(envelope.nonce, bytes(tampered), SECRET_KEY)

    def test_tampered_nonce(self) -> None:
        envelope = encrypt(b'{"test":"foo"}', SECRET_KEY)
        for position in range(len(envelope.nonce)):
            tampered = bytearray(envelope.nonce)
            tampered[position] ^= 0x80
            with pytest.raises(AuthenticationError):
                decrypt(bytes(tampered), envelope.ciphertext, SECRET_KEY)

    def test_truncated_ciphertext(self) -> None:
        envelope = encrypt(b'{"test":"foo"}', SECRET_KEY)
        with pytest.raises(AuthenticationError):
            decrypt(envelope.nonce, envelope.ciphertext[:-1], SECRET_KEY)
        with pytest.raises(AuthenticationError, match='too short'):
            decrypt(envelope.nonce, envelope.ciphertext[:crypto.MAC_SIZE - 1], SECRET_KEY)
        with pytest.raises(AuthenticationError, match='too short'):
            decrypt(envelope.nonce, b'', SECRET_KEY)

    def test_wrong_key(self) -> None:
        envelope = encrypt(b'{"test":"foo"}', SECRET_KEY)
        with pytest.raises(AuthenticationError):
            decrypt(envelope.nonce, envelope.ciphertext, crypto.generate_secret_key())

    def test_nonce_length(self) -> None:
        envelope = encrypt(b'{"test":"foo"}', SECRET_KEY)
        with pytest.raises(InvalidNonceLengthError, match='Incorrect nonce length'):
            decrypt(envelope.nonce[:-1], envelope.ciphertext, SECRET_KEY)
        with pytest.raises(InvalidNonceLengthError):
            decrypt(envelope.nonce + b'\x00', envelope.ciphertext, SECRET_KEY)
        with pytest.raises(InvalidNonceLengthError):
            decrypt(b'', b'', SECRET_KEY)


class TestKeys:

    def test_generate(self) -> None:
        key = crypto.generate_secret_key()
        assert len(key) == crypto.KEY_SIZE
        assert key != crypto.generate_secret_key()

    def test_validate(self) -> None:
        assert crypto.validate_secret_key(bytearray(SECRET_KEY)) == SECRET_KEY
        assert type(crypto.validate_secret_key(memoryview(SECRET_KEY))) is bytes
        with pytest.raises(ValueError, match='exactly 32 bytes'):
            crypto.validate_secret_key(SECRET_KEY[:-1])
        with pytest.raises(TypeError):
            crypto.validate_secret_key(SECRET_KEY.hex())  # type: ignore[arg-type]

    def test_save_and_load(self, tmp_path: Path) -> None:
        key_file = tmp_path / 'secret.key'
        crypto.save_secret_key(SECRET_KEY, key_file)
        assert key_file.read_text() == SECRET_KEY.hex() + '\n'
        assert crypto.load_secret_key(key_file) == SECRET_KEY
        assert crypto.load_secret_key(str(key_file)) == SECRET_KEY

        # saving again replaces the existing file
        other_key = crypto.generate_secret_key()
        crypto.save_secret_key(other_key, key_file)
        assert crypto.load_secret_key(key_file) == other_key
        assert [path.name for path in tmp_path.iterdir()] == ['secret.key']

    def test_load_errors(self, tmp_path: Path) -> None:
        key_file = tmp_path / 'secret.key'
        key_file.write_text('not a hex key\n')
        with pytest.raises(ValueError, match='does not contain a hex encoded key'):
            crypto.load_secret_key(key_file)
        key_file.write_text('abcd\n')
        with pytest.raises(ValueError, match='exactly 32 bytes'):
            crypto.load_secret_key(key_file)
        with pytest.raises(FileNotFoundError):
            crypto.load_secret_key(tmp_path / 'missing.key')
