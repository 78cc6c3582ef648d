# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Secure ephemeral message envelope.

   Ephemeral messages travel between two connected peers inside extension
   frames of the replication protocol, identified by the extension name
   "secure-ephemeral". Each frame carries exactly one envelope made of the
   nonce used for encryption and the authenticated ciphertext:

     message SecureEphemeralMessage {
       required bytes nonce = 1;
       required bytes ciphertext = 2;
     }

   The envelope uses the protocol buffers binary encoding, where each field
   is written as a varint tag (field number and wire type) followed by a
   varint length and the field bytes:

     +------+--------------+-------+------+-------------------+------------+
     | 0x0a | nonce length | nonce | 0x12 | ciphertext length | ciphertext |
     +------+--------------+-------+------+-------------------+------------+

   This is the interoperability contract with peers written in other
   languages, which produce the same bytes with a schema compiler.

"""

from typing import Final

from .datamodel import BytesAdapter
from .elements import Field, Structure
from .exceptions import DecodeError, SerializationError
from .payload import deserialize, serialize

__all__ = 'EXTENSION_NAME', 'Envelope', 'DecodeError', 'SerializationError', 'serialize', 'deserialize'  # noqa: RUF022


EXTENSION_NAME: Final = 'secure-ephemeral'


class Envelope(Structure):
    nonce: Field[bytes] = Field(bytes, number=1, adapter=BytesAdapter)
    ciphertext: Field[bytes] = Field(bytes, number=2, adapter=BytesAdapter)
