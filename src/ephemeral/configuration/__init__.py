# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from ephemeral.crypto import SecretKey, load_secret_key, validate_secret_key
from ephemeral.messages import EXTENSION_NAME

from .xml import DataElement, HexBinaryAdapter, Namespace, XMLElement

__all__ = 'Configuration', 'ns_ephemeral'


ns_ephemeral = Namespace('urn:ephemeral:params:xml:ns:messaging', prefix=None)


class Configuration(XMLElement, name='ephemeral-messaging', namespace=ns_ephemeral):
    """
    Ephemeral messaging configuration.

    <ephemeral-messaging xmlns="urn:ephemeral:params:xml:ns:messaging">
      <extension-name>secure-ephemeral</extension-name>
      <secret-key>2e4d36dc...</secret-key>
      <relay>true</relay>
      <relay-events>true</relay-events>
    </ephemeral-messaging>

    The secret key can be given inline (hex encoded) or with secret-key-file,
    but not both. A configuration without a key is for an unprivileged node.
    """

    extension_name: DataElement[str] = DataElement(str, default=EXTENSION_NAME)
    inline_secret_key: DataElement[bytes | None] = DataElement(bytes, name='secret-key', adapter=HexBinaryAdapter, default=None)  # type: ignore[arg-type]
    secret_key_file: DataElement[str | None] = DataElement(str, default=None)  # type: ignore[arg-type]
    relay: DataElement[bool] = DataElement(bool, default=True)
    relay_events: DataElement[bool] = DataElement(bool, default=True)

    def secret_key(self) -> SecretKey | None:
        if self.inline_secret_key is not None and self.secret_key_file is not None:
            raise ValueError('The secret-key and secret-key-file elements are mutually exclusive')
        if self.inline_secret_key is not None:
            return validate_secret_key(self.inline_secret_key)
        if self.secret_key_file is not None:
            return load_secret_key(self.secret_key_file)
        return None
