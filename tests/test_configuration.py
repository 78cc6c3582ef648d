# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from pathlib import Path

import pytest

from ephemeral import crypto
from ephemeral.configuration import Configuration, ns_ephemeral
from ephemeral.configuration.xml import BooleanAdapter, DataElement, HexBinaryAdapter, Namespace, XMLElement
from ephemeral.messaging import EphemeralMessagingChannel

SECRET_KEY = bytes.fromhex('2e4d36dc3c49049b450a3656188692a328df4b9cff11b6d95157fc21363a1b28')


def document(*children: str) -> str:
    return f'<ephemeral-messaging xmlns="{ns_ephemeral}">{''.join(children)}</ephemeral-messaging>'


class TestXMLFramework:

    def test_abstract_element(self) -> None:
        class AbstractElement(XMLElement):
            pass

        with pytest.raises(TypeError, match=r'Cannot instantiate abstract class .+'):
            AbstractElement()

        with pytest.raises(TypeError, match=r'Cannot instantiate abstract class .+'):
            AbstractElement.from_string('<root/>')

    def test_data_elements(self) -> None:
        test_ns = Namespace('urn:test', prefix='t')

        class RootElement(XMLElement, name='root', namespace=test_ns):
            text_value = DataElement(str)
            flag = DataElement(bool, default=False)
            blob = DataElement(bytes, name='binary-blob', adapter=HexBinaryAdapter, default=None)

        assert RootElement._tag_ == '{urn:test}root'
        assert RootElement.text_value.tag == '{urn:test}text-value'
        assert RootElement.blob.tag == '{urn:test}binary-blob'

        root = RootElement(text_value='text', blob=b'\x01\x02')
        assert root.flag is False
        assert 't:binary-blob>0102</t:binary-blob>' in root.to_string()
        assert RootElement.from_string(root.to_string()) == root

        with pytest.raises(TypeError, match='missing a required keyword argument'):
            RootElement()
        with pytest.raises(TypeError, match='must be of type str'):
            RootElement(text_value=1)
        with pytest.raises(TypeError, match='cannot be None'):
            root.flag = None
        with pytest.raises(ValueError, match='Missing mandatory element'):
            RootElement.from_string('<t:root xmlns:t="urn:test"/>')
        with pytest.raises(ValueError, match='Excess elements'):
            RootElement.from_string('<t:root xmlns:t="urn:test"><t:text-value>a</t:text-value><t:text-value>b</t:text-value></t:root>')

    def test_boolean_adapter(self) -> None:
        assert BooleanAdapter.xml_parse(' true ') is True
        assert BooleanAdapter.xml_parse('0') is False
        assert BooleanAdapter.xml_build(True) == 'true'  # noqa: FBT003
        with pytest.raises(ValueError, match='Invalid boolean value'):
            BooleanAdapter.xml_parse('yes')


class TestConfiguration:

    def test_defaults(self) -> None:
        configuration = Configuration.from_string(document())
        assert configuration.extension_name == 'secure-ephemeral'
        assert configuration.inline_secret_key is None
        assert configuration.secret_key_file is None
        assert configuration.relay is True
        assert configuration.relay_events is True
        assert configuration.secret_key() is None
        assert configuration == Configuration()

    def test_inline_key(self) -> None:
        configuration = Configuration.from_string(document(
            '<extension-name>encrypted-ephemeral</extension-name>',
            f'<secret-key>\n  {SECRET_KEY.hex()}\n</secret-key>',
            '<relay>false</relay>',
            '<relay-events>0</relay-events>',
        ))
        assert configuration.extension_name == 'encrypted-ephemeral'
        assert configuration.secret_key() == SECRET_KEY
        assert configuration.relay is False
        assert configuration.relay_events is False

    def test_key_file(self, tmp_path: Path) -> None:
        key_file = tmp_path / 'secret.key'
        crypto.save_secret_key(SECRET_KEY, key_file)
        configuration_file = tmp_path / 'ephemeral.xml'
        configuration_file.write_text(document(f'<secret-key-file>{key_file}</secret-key-file>'))
        configuration = Configuration.from_file(configuration_file)
        assert configuration.secret_key_file == str(key_file)
        assert configuration.secret_key() == SECRET_KEY

    def test_key_errors(self) -> None:
        configuration = Configuration.from_string(document(f'<secret-key>{SECRET_KEY.hex()}</secret-key>', '<secret-key-file>/some/file</secret-key-file>'))
        with pytest.raises(ValueError, match='mutually exclusive'):
            configuration.secret_key()
        configuration = Configuration.from_string(document('<secret-key>abcd</secret-key>'))
        with pytest.raises(ValueError, match='exactly 32 bytes'):
            configuration.secret_key()
        with pytest.raises(ValueError, match="Invalid value for the 'secret-key' element"):
            Configuration.from_string(document('<secret-key>not hex</secret-key>'))

    def test_invalid_documents(self) -> None:
        with pytest.raises(ValueError, match='Invalid Configuration document'):
            Configuration.from_string('<ephemeral-messaging')
        with pytest.raises(ValueError, match='does not match'):
            Configuration.from_string('<ephemeral-messaging/>')
        with pytest.raises(ValueError, match="Invalid value for the 'relay' element"):
            Configuration.from_string(document('<relay>maybe</relay>'))

    def test_round_trip(self) -> None:
        configuration = Configuration(extension_name='custom', inline_secret_key=SECRET_KEY, relay=False)
        text = configuration.to_string()
        assert f'<secret-key>{SECRET_KEY.hex()}</secret-key>' in text
        assert 'secret-key-file' not in text
        assert Configuration.from_string(text) == configuration

    def test_channel_from_configuration(self) -> None:
        privileged = EphemeralMessagingChannel.from_configuration(Configuration(inline_secret_key=SECRET_KEY, relay_events=False))
        assert privileged.privileged
        assert privileged.secret_key == SECRET_KEY
        assert privileged.relay_events is False

        unprivileged = EphemeralMessagingChannel.from_configuration(Configuration(extension_name='custom'))
        assert not unprivileged.privileged
        assert unprivileged.extension == 'custom'
