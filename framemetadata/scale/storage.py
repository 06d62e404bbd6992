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

import enum

from framemetadata.exceptions import MalformedPayload, MetadataEncodeError
from framemetadata.scale.decoders import TYPE_PREFIX, MetadataEnum, runtime_config, is_registered, register_scale_type
from framemetadata.scale.types import ScaleCodec, UnitEnum, Struct, Text, Bool, Vec


class StorageHasher(enum.Enum):
    Blake2_128 = 'Blake2_128'
    Blake2_256 = 'Blake2_256'
    Blake2_128Concat = 'Blake2_128Concat'
    Twox128 = 'Twox128'
    Twox256 = 'Twox256'
    Twox64Concat = 'Twox64Concat'
    Identity = 'Identity'

    @property
    def is_concat(self) -> bool:
        """
        Whether the hashed key is followed by the original encoded key, which makes the key recoverable from storage
        """
        return self in (StorageHasher.Blake2_128Concat, StorageHasher.Twox64Concat, StorageHasher.Identity)

    @property
    def hash_length(self) -> int:
        return {
            'Blake2_128': 16, 'Blake2_256': 32, 'Blake2_128Concat': 16, 'Twox128': 16, 'Twox256': 32,
            'Twox64Concat': 8, 'Identity': 0
        }[self.value]


class StorageEntryModifier(enum.Enum):
    Optional = 'Optional'
    Default = 'Default'
    # Legacy only, the raw default bytes are authoritative
    Required = 'Required'


# Wire index tables, the discriminant of a hasher differs between metadata versions
HASHERS_V8 = (
    StorageHasher.Blake2_128, StorageHasher.Blake2_256, StorageHasher.Twox128, StorageHasher.Twox256,
    StorageHasher.Twox64Concat
)

HASHERS_V10 = (
    StorageHasher.Blake2_128, StorageHasher.Blake2_256, StorageHasher.Blake2_128Concat, StorageHasher.Twox128,
    StorageHasher.Twox256, StorageHasher.Twox64Concat
)

HASHERS_V11 = HASHERS_V10 + (StorageHasher.Identity,)

StorageHasherV8 = UnitEnum(StorageHasher, HASHERS_V8, 'StorageHasherV8')
StorageHasherV10 = UnitEnum(StorageHasher, HASHERS_V10, 'StorageHasherV10')
StorageHasherV11 = UnitEnum(StorageHasher, HASHERS_V11, 'StorageHasherV11')

LegacyStorageEntryModifier = UnitEnum(
    StorageEntryModifier,
    (StorageEntryModifier.Optional, StorageEntryModifier.Default, StorageEntryModifier.Required),
    'StorageEntryModifierV8'
)

StorageEntryModifierV14 = UnitEnum(
    StorageEntryModifier, (StorageEntryModifier.Optional, StorageEntryModifier.Default), 'StorageEntryModifierV14'
)


class LegacyStoragePlain(Struct):
    scale_fields = (('value', Text),)


class StorageKeyList(ScaleCodec):
    """
    Ordered (hasher, key type) pairs of a legacy storage map, encoded by `LegacyStorageEntryType`
    """

    type_string = 'Vec<(StorageHasher, Text)>'

    def scale_normalize(self, value):
        keys = tuple((StorageHasher(hasher), Text.scale_normalize(key)) for hasher, key in value)
        if len(keys) == 0:
            raise ValueError('Storage map requires at least one key')
        return keys

    def scale_serialize(self, value):
        return [[hasher.value, key] for hasher, key in value]


class LegacyStorageMap(Struct):
    """
    Keyed storage of metadata V8 to V13. The historical Map, DoubleMap and NMap shapes are all represented by an
    ordered tuple of (hasher, key type) pairs. `nmap` records an entry declared as NMap (V13), which can have any
    number of keys; otherwise one key is a Map and two keys are a DoubleMap.
    """

    scale_fields = (('keys', StorageKeyList()), ('value', Text), ('linked', Bool), ('nmap', Bool))

    def __init__(self, keys, value, linked=False, nmap=None):
        keys = tuple(keys)
        if nmap is None:
            nmap = len(keys) >= 3
        super().__init__(keys=keys, value=value, linked=linked, nmap=nmap)

    @property
    def hashers(self) -> tuple:
        return tuple(hasher for hasher, _ in self.keys)

    @property
    def key_types(self) -> tuple:
        return tuple(key for _, key in self.keys)


class LegacyStorageEntryTypeDecoder(MetadataEnum):
    """
    Storage entry type of metadata V8 to V13, the wire shapes decode to `LegacyStoragePlain` or `LegacyStorageMap`:

    0. Plain(type)
    1. Map {hasher, key, value, linked}
    2. DoubleMap {hasher, key1, key2, value, key2_hasher}
    3. NMap {keys, hashers, value} (V13 only)
    """

    def process(self):
        offset = self.data.offset
        (shape, fields), = super().process().items()

        if shape == 'Plain':
            return LegacyStoragePlain(value=fields)

        if shape == 'Map':
            return LegacyStorageMap(
                keys=((fields['hasher'], fields['key']),), value=fields['value'], linked=fields['linked']
            )

        if shape == 'DoubleMap':
            return LegacyStorageMap(
                keys=((fields['hasher'], fields['key1']), (fields['key2_hasher'], fields['key2'])),
                value=fields['value']
            )

        if len(fields['keys']) != len(fields['hashers']) or len(fields['keys']) == 0:
            raise MalformedPayload(
                f"NMap with {len(fields['keys'])} keys and {len(fields['hashers'])} hashers", offset=offset + 1
            )
        return LegacyStorageMap(keys=tuple(zip(fields['hashers'], fields['keys'])), value=fields['value'], nmap=True)

    def process_encode(self, value):
        if type(value) is LegacyStoragePlain:
            return super().process_encode({'Plain': value.value})

        if type(value) is not LegacyStorageMap:
            raise MetadataEncodeError(f'Expected LegacyStoragePlain or LegacyStorageMap, got {type(value).__name__}')

        if value.nmap:
            if not self.supports_nmap:
                raise MetadataEncodeError('NMap storage requires metadata V13')
            if value.linked:
                raise MetadataEncodeError('Linked storage maps can only have a single key')
            return super().process_encode({'NMap': {
                'keys': list(value.key_types), 'hashers': list(value.hashers), 'value': value.value
            }})

        if len(value.keys) == 1:
            (hasher, key), = value.keys
            return super().process_encode({'Map': {
                'hasher': hasher, 'key': key, 'value': value.value, 'linked': value.linked
            }})

        if len(value.keys) == 2 and value.linked:
            raise MetadataEncodeError('Linked storage maps can only have a single key')

        if len(value.keys) == 2:
            (hasher, key1), (key2_hasher, key2) = value.keys
            return super().process_encode({'DoubleMap': {
                'hasher': hasher, 'key1': key1, 'key2': key2, 'value': value.value, 'key2_hasher': key2_hasher
            }})

        raise MetadataEncodeError(f'Storage map with {len(value.keys)} keys must be an NMap')


class LegacyStorageEntryType(ScaleCodec):
    """
    Codec of the storage entry type of metadata V8 to V13, see `LegacyStorageEntryTypeDecoder`
    """

    def __init__(self, hasher_codec: UnitEnum, supports_nmap: bool = False):
        self.hasher_codec = hasher_codec
        self.supports_nmap = supports_nmap
        self.type_string = f'StorageEntryType<{hasher_codec.type_string}{", NMap" if supports_nmap else ""}>'

    def register_shape(self, name: str, type_mapping: list) -> str:
        type_string = f'{TYPE_PREFIX}{name}<{self.hasher_codec.type_string}>'
        if not is_registered(type_string):
            runtime_config.update_type_registry_types({
                type_string: {'type': 'struct', 'base_class': 'MetadataStruct', 'type_mapping': type_mapping}
            })
        return type_string

    def scale_type(self):
        type_string = f'{TYPE_PREFIX}{self.type_string}'
        if is_registered(type_string):
            return type_string

        hasher = self.hasher_codec.scale_type()
        text = Text.scale_type()

        type_mapping = [
            ['Plain', text],
            ['Map', self.register_shape(
                'StorageMap', [['hasher', hasher], ['key', text], ['value', text], ['linked', Bool.scale_type()]]
            )],
            ['DoubleMap', self.register_shape(
                'StorageDoubleMap',
                [['hasher', hasher], ['key1', text], ['key2', text], ['value', text], ['key2_hasher', hasher]]
            )]
        ]
        if self.supports_nmap:
            type_mapping.append(['NMap', self.register_shape(
                'StorageNMap',
                [['keys', Vec(Text).scale_type()], ['hashers', Vec(self.hasher_codec).scale_type()], ['value', text]]
            )])

        return register_scale_type(
            type_string, LegacyStorageEntryTypeDecoder, type_mapping=type_mapping, supports_nmap=self.supports_nmap
        )

    def scale_normalize(self, value):
        if type(value) not in (LegacyStoragePlain, LegacyStorageMap):
            raise TypeError(f'Expected LegacyStoragePlain or LegacyStorageMap, got {type(value).__name__}')
        return value

    def scale_serialize(self, value):
        if type(value) is LegacyStoragePlain:
            return {'Plain': value.value}
        return {'Map': value.serialize()}

    def scale_deserialize(self, value):
        if type(value) is dict and len(value) == 1:
            if 'Plain' in value:
                return LegacyStoragePlain(value=value['Plain'])
            if 'Map' in value:
                return LegacyStorageMap.deserialize(value['Map'])
        raise ValueError(f'Cannot deserialize {self.type_string} from {value!r}')
