# Python Frame Metadata Library
#
# Copyright 2018-2024 Stichting Polkascan (Polkascan Foundation).
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import os
import unittest

from scalecodec.base import ScaleBytes

from framemetadata import decode, RuntimeMetadataPrefixed, MetadataCodec
from framemetadata.exceptions import MetadataEncodeError, MalformedPayload, UnsupportedDowngrade, \
    UnsupportedUpgrade
from framemetadata.scale.legacy import RuntimeMetadataV8, RuntimeMetadataV13, ModuleMetadataV8, \
    StorageMetadataV8, StorageEntryMetadataV8, StorageEntryMetadataV13, ExtrinsicMetadataV11, ErrorMetadata, \
    FunctionMetadata, FunctionArgumentMetadata
from framemetadata.scale.storage import StorageHasher, StorageEntryModifier, LegacyStorageMap, LegacyStoragePlain, \
    LegacyStorageEntryType, StorageHasherV10, StorageHasherV11
from framemetadata.utils import load_json_file


class TestLegacyMetadata(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.metadata_fixture_dict = load_json_file(
            os.path.join(os.path.dirname(__file__), 'fixtures', 'metadata_hex.json')
        )

    def test_decode_v10_double_map(self):
        metadata = decode(self.metadata_fixture_dict['V10'])

        self.assertEqual(10, metadata.version)
        self.assertIsNone(metadata.portable_registry)

        entry = metadata.get_metadata_pallet('System').get_storage_function('Pair')
        self.assertEqual(StorageEntryModifier.Default, entry.modifier)
        self.assertEqual(
            ((StorageHasher.Blake2_128, 'K1'), (StorageHasher.Twox64Concat, 'K2')), entry.ty.keys
        )
        self.assertEqual('V', entry.ty.value)
        self.assertEqual(b'', entry.default)

        self.assertEqual(bytes.fromhex(self.metadata_fixture_dict['V10'][2:]), metadata.encode())

    def test_decode_v8_hasher_table(self):
        # Twox64Concat is index 4 in V8, where V10 added Blake2_128Concat at index 2
        metadata = decode(self.metadata_fixture_dict['V8'])

        entry = metadata.get_metadata_pallet('System').get_storage_function('Pair')
        self.assertEqual((StorageHasher.Blake2_128, StorageHasher.Twox64Concat), entry.ty.hashers)
        self.assertEqual(('K1', 'K2'), entry.ty.key_types)

        self.assertEqual(bytes.fromhex(self.metadata_fixture_dict['V8'][2:]), metadata.encode())

    def test_decode_v13_nmap(self):
        metadata = decode(self.metadata_fixture_dict['V13'])

        entry = metadata.get_metadata_pallet('System').get_storage_function('Triple')
        self.assertEqual(StorageEntryModifier.Optional, entry.modifier)
        self.assertEqual(
            ((StorageHasher.Blake2_128, 'A'), (StorageHasher.Blake2_128Concat, 'B'), (StorageHasher.Identity, 'C')),
            entry.ty.keys
        )
        self.assertEqual(bytes.fromhex(self.metadata_fixture_dict['V13'][2:]), metadata.encode())

    def test_decode_v9(self):
        data = bytes.fromhex(self.metadata_fixture_dict['V9'][2:])
        metadata = decode(data)

        self.assertEqual(9, metadata.version)
        self.assertEqual(('K1', 'K2'), metadata.get_metadata_pallet('System').get_storage_function('Pair').ty.key_types)
        self.assertEqual(data, metadata.encode())
        self.assertEqual(metadata, decode(metadata.encode()))

    def test_decode_v11_extrinsic(self):
        data = bytes.fromhex(self.metadata_fixture_dict['V11'][2:])
        metadata = decode(data)

        self.assertEqual(11, metadata.version)
        self.assertEqual(4, metadata.metadata.extrinsic.version)
        self.assertEqual(('CheckNonce',), metadata.metadata.extrinsic.signed_extensions)

        # Identity is only in the hasher table from V11 on
        entry = metadata.get_metadata_pallet('System').get_storage_function('Pair')
        self.assertEqual((StorageHasher.Blake2_128, StorageHasher.Identity), entry.ty.hashers)
        self.assertEqual('System', metadata.get_pallet_by_index(0).name)

        self.assertEqual(data, metadata.encode())
        self.assertEqual(metadata, decode(metadata.encode()))

    def test_identity_hasher_not_in_v10(self):
        data = bytearray.fromhex(self.metadata_fixture_dict['V11'][2:])
        data[4] = 10

        with self.assertRaises(MalformedPayload) as cm:
            decode(bytes(data[:-13]))

        self.assertEqual(['modules', 0, 'storage', 'entries', 0, 'ty', 'DoubleMap', 'key2_hasher'], cm.exception.path)

    def test_decode_v12_declared_index(self):
        data = bytes.fromhex(self.metadata_fixture_dict['V12'][2:])
        metadata = decode(data)

        self.assertEqual(12, metadata.version)
        self.assertEqual(7, metadata.get_metadata_pallet('System').index)
        self.assertEqual('System', metadata.get_pallet_by_index(7).name)
        self.assertIsNone(metadata.get_module_error(7, 0))

        with self.assertRaises(ValueError):
            metadata.get_pallet_by_index(0)

        self.assertEqual(
            {'CheckNonce': {'extrinsic': None, 'additional_signed': None}}, metadata.get_signed_extensions()
        )
        self.assertEqual(data, metadata.encode())
        self.assertEqual(metadata, decode(metadata.encode()))

    def test_decode_scale_bytes(self):
        metadata = decode(ScaleBytes(self.metadata_fixture_dict['V13']))
        self.assertEqual(13, metadata.version)

    def test_nmap_two_keys(self):
        data = b'\x10Pair\x00\x03\x08\x04A\x04B\x08\x00\x05\x04V\x00\x00'
        entry = StorageEntryMetadataV13.decode(data)

        self.assertEqual(((StorageHasher.Blake2_128, 'A'), (StorageHasher.Twox64Concat, 'B')), entry.ty.keys)
        self.assertTrue(entry.ty.nmap)
        self.assertEqual(data, entry.encode())

    def test_nmap_single_key(self):
        data = b'\x10Pair\x00\x03\x04\x04A\x04\x00\x04V\x00\x00'
        entry = StorageEntryMetadataV13.decode(data)

        self.assertEqual(((StorageHasher.Blake2_128, 'A'),), entry.ty.keys)
        self.assertTrue(entry.ty.nmap)
        self.assertEqual(data, entry.encode())

    def test_double_map_in_v13(self):
        data = b'\x10Pair\x00\x02\x00\x04A\x04B\x04V\x05\x00\x00'
        entry = StorageEntryMetadataV13.decode(data)

        self.assertFalse(entry.ty.nmap)
        self.assertEqual(data, entry.encode())

    def test_nmap_before_v13(self):
        storage_map = LegacyStorageMap(keys=[('Blake2_128', 'A')], value='V', nmap=True)

        with self.assertRaises(MetadataEncodeError):
            LegacyStorageEntryType(StorageHasherV10).scale_encode(storage_map, bytearray())

    def test_three_keys_without_nmap(self):
        storage_map = LegacyStorageMap(
            keys=[('Blake2_128', 'A'), ('Blake2_128', 'B'), ('Blake2_128', 'C')], value='V', nmap=False
        )

        with self.assertRaises(MetadataEncodeError):
            LegacyStorageEntryType(StorageHasherV11, supports_nmap=True).scale_encode(storage_map, bytearray())

    def test_nmap_keys_hashers_mismatch(self):
        with self.assertRaises(MalformedPayload) as cm:
            StorageEntryMetadataV13.decode(b'\x10Pair\x00\x03\x08\x04A\x04B\x04\x00\x04V\x00\x00')

        self.assertEqual(['ty'], cm.exception.path)

    def test_nmap_not_in_v8(self):
        with self.assertRaises(MalformedPayload):
            StorageEntryMetadataV8.decode(b'\x10Pair\x00\x03\x04\x04A\x04\x00\x04V\x00\x00')

    def test_required_modifier(self):
        entry = StorageEntryMetadataV13(
            name='Now', modifier='Required', ty=LegacyStoragePlain(value='T::Moment'), default=b'\x00' * 8
        )

        data = entry.encode()
        self.assertEqual(2, data[4])
        self.assertEqual(StorageEntryModifier.Required, StorageEntryMetadataV13.decode(data).modifier)

    def test_hasher_not_in_v8_table(self):
        entry = StorageEntryMetadataV8(
            name='Account', modifier='Default', default=b'',
            ty=LegacyStorageMap(keys=[('Blake2_128Concat', 'T::AccountId')], value='AccountData')
        )

        with self.assertRaises(MetadataEncodeError):
            entry.encode()

    def test_three_keys_before_v13(self):
        storage_map = LegacyStorageMap(
            keys=[('Blake2_128', 'A'), ('Blake2_128', 'B'), ('Blake2_128', 'C')], value='V'
        )

        with self.assertRaises(MetadataEncodeError):
            LegacyStorageEntryType(StorageHasherV10).scale_encode(storage_map, bytearray())

    def test_linked_map(self):
        entry = StorageEntryMetadataV8(
            name='Validators', modifier='Default', default=b'',
            ty=LegacyStorageMap(keys=[('Twox64Concat', 'T::AccountId')], value='Prefs', linked=True)
        )

        self.assertTrue(StorageEntryMetadataV8.decode(entry.encode()).ty.linked)

    def test_empty_storage_map(self):
        with self.assertRaises(ValueError):
            LegacyStorageMap(keys=[], value='V')

    def test_accessors(self):
        metadata = decode(self.metadata_fixture_dict['V13'])

        self.assertEqual('System', metadata.get_pallet_by_index(0).name)
        self.assertEqual(1, len(metadata.pallets))
        self.assertIsNone(metadata.get_metadata_pallet('Balances'))
        self.assertIsNone(metadata.get_module_error(0, 0))
        self.assertEqual(
            {'CheckNonce': {'extrinsic': None, 'additional_signed': None}}, metadata.get_signed_extensions()
        )
        self.assertIsNone(metadata.get_custom_value('chain_name'))

        with self.assertRaises(ValueError):
            metadata.get_pallet_by_index(1)

        with self.assertRaises(ValueError):
            metadata.get_api('Core')

    def test_module_lookups(self):
        module = ModuleMetadataV8(
            name='Balances',
            calls=[FunctionMetadata(name='transfer', arguments=[
                FunctionArgumentMetadata(name='dest', ty='<T::Lookup as StaticLookup>::Source')
            ])],
            constants=[],
            errors=[ErrorMetadata(name='VestingBalance'), ErrorMetadata(name='InsufficientBalance')]
        )
        metadata = RuntimeMetadataPrefixed(RuntimeMetadataV8(modules=[module]))

        self.assertEqual('dest', module.get_call('transfer').arguments[0].name)
        self.assertIsNone(module.get_event('Transfer'))
        self.assertIsNone(module.get_storage_function('TotalIssuance'))
        self.assertEqual('InsufficientBalance', metadata.get_module_error(0, 1).name)
        self.assertEqual({}, metadata.get_signed_extensions())

    def test_json(self):
        metadata = decode(self.metadata_fixture_dict['V13'])
        serialized = metadata.serialize()

        storage = serialized[1]['V13']['modules'][0]['storage']
        self.assertEqual(
            {'Map': {'keys': [['Blake2_128', 'A'], ['Blake2_128Concat', 'B'], ['Identity', 'C']], 'value': 'V',
                     'linked': False, 'nmap': True}},
            storage['entries'][0]['ty']
        )
        self.assertEqual(metadata, RuntimeMetadataPrefixed.from_json(metadata.to_json()))

    def test_versions_config(self):
        codec = MetadataCodec(versions=[13])
        self.assertEqual(13, codec.decode(self.metadata_fixture_dict['V13']).version)


class TestLegacyUpgrade(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.metadata_fixture_dict = load_json_file(
            os.path.join(os.path.dirname(__file__), 'fixtures', 'metadata_hex.json')
        )

    def test_v8_to_v9_identical_payload(self):
        data = bytes.fromhex(self.metadata_fixture_dict['V8'][2:])
        metadata = decode(data).upgrade(9)

        self.assertEqual(9, metadata.version)
        self.assertEqual(data[5:], metadata.encode()[5:])
        self.assertEqual(bytes.fromhex(self.metadata_fixture_dict['V9'][2:]), metadata.encode())

    def test_v8_to_v10_hasher_reindexed(self):
        metadata = decode(self.metadata_fixture_dict['V8']).upgrade(10)
        self.assertEqual(bytes.fromhex(self.metadata_fixture_dict['V10'][2:]), metadata.encode())

    def test_v11_to_v12_positional_index(self):
        metadata = decode(self.metadata_fixture_dict['V11']).upgrade(12)

        self.assertEqual(0, metadata.get_metadata_pallet('System').index)
        self.assertEqual(('CheckNonce',), metadata.metadata.extrinsic.signed_extensions)
        self.assertEqual(metadata, decode(metadata.encode()))

    def test_v12_to_v13_keeps_index(self):
        data = bytes.fromhex(self.metadata_fixture_dict['V12'][2:])
        metadata = decode(data).upgrade(13)

        self.assertEqual('System', metadata.get_pallet_by_index(7).name)
        self.assertEqual(data[5:], metadata.encode()[5:])

    def test_v8_to_latest_legacy(self):
        metadata = decode(self.metadata_fixture_dict['V8']).upgrade()

        self.assertEqual(13, metadata.version)
        self.assertEqual(0, metadata.get_metadata_pallet('System').index)
        self.assertIsNone(metadata.metadata.extrinsic)

        with self.assertRaises(MetadataEncodeError):
            metadata.encode()

        completed = RuntimeMetadataPrefixed(metadata.metadata.replace(
            extrinsic=ExtrinsicMetadataV11(version=4, signed_extensions=['CheckNonce'])
        ))
        self.assertEqual(completed, decode(completed.encode()))

    def test_module_index_is_position(self):
        modules = [
            ModuleMetadataV8(name=name, constants=[], errors=[])
            for name in ('System', 'Timestamp', 'Balances')
        ]
        metadata = RuntimeMetadataPrefixed(RuntimeMetadataV8(modules=modules)).upgrade(12)

        self.assertEqual([0, 1, 2], [module.index for module in metadata.pallets])
        self.assertEqual('Balances', metadata.get_pallet_by_index(2).name)

    def test_upgrade_keeps_storage(self):
        module = ModuleMetadataV8(
            name='Timestamp',
            storage=StorageMetadataV8(prefix='Timestamp', entries=[
                StorageEntryMetadataV8(
                    name='Now', modifier='Default', ty=LegacyStoragePlain(value='T::Moment'), default=b'\x00' * 8,
                    documentation=[' Current time for the current block.']
                )
            ]),
            constants=[],
            errors=[]
        )
        metadata = RuntimeMetadataPrefixed(RuntimeMetadataV8(modules=[module])).upgrade(13)

        entry = metadata.get_metadata_pallet('Timestamp').get_storage_function('Now')
        self.assertIs(type(entry), StorageEntryMetadataV13)
        self.assertEqual('T::Moment', entry.ty.value)
        self.assertEqual((' Current time for the current block.',), entry.documentation)

    def test_same_version(self):
        metadata = decode(self.metadata_fixture_dict['V13'])
        self.assertEqual(metadata, metadata.upgrade(13))

    def test_downgrade(self):
        metadata = decode(self.metadata_fixture_dict['V10'])

        with self.assertRaises(UnsupportedDowngrade):
            metadata.upgrade(8)

    def test_v13_to_v14(self):
        metadata = decode(self.metadata_fixture_dict['V13'])

        with self.assertRaises(UnsupportedUpgrade):
            metadata.upgrade(14)

        self.assertEqual(13, metadata.upgrade().version)

    def test_unknown_target(self):
        metadata = RuntimeMetadataPrefixed(RuntimeMetadataV13(
            modules=[], extrinsic=ExtrinsicMetadataV11(version=4)
        ))

        with self.assertRaises(UnsupportedUpgrade):
            metadata.upgrade(17)


if __name__ == '__main__':
    unittest.main()
