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

import json
import logging
from typing import Optional, Union

from scalecodec.base import ScaleBytes

from framemetadata.constants import METADATA_MAGIC, META_RESERVED, DEPRECATED_VERSIONS, REGISTRY_VERSIONS
from framemetadata.convert import upgrade
from framemetadata.exceptions import BadMagic, UnsupportedVersion, MalformedPayload
from framemetadata.scale.legacy import RuntimeMetadataV8, RuntimeMetadataV9, RuntimeMetadataV10, \
    RuntimeMetadataV11, RuntimeMetadataV12, RuntimeMetadataV13
from framemetadata.scale.metadata import RuntimeMetadataV14, RuntimeMetadataV15, RuntimeMetadataV16
from framemetadata.scale.registry import PortableRegistry
from framemetadata.scale.types import to_scale_bytes

__all__ = ['VERSIONS', 'RuntimeMetadataPrefixed', 'MetadataCodec', 'encode', 'decode', 'version_of', 'logger']

logger = logging.getLogger(__name__)

VERSIONS = {
    8: RuntimeMetadataV8,
    9: RuntimeMetadataV9,
    10: RuntimeMetadataV10,
    11: RuntimeMetadataV11,
    12: RuntimeMetadataV12,
    13: RuntimeMetadataV13,
    14: RuntimeMetadataV14,
    15: RuntimeMetadataV15,
    16: RuntimeMetadataV16
}


class RuntimeMetadataPrefixed:
    """
    Metadata tree of one of the supported versions, as prefixed on the wire by the magic number and version tag
    """

    def __init__(self, metadata):
        if type(metadata) not in VERSIONS.values():
            raise TypeError(f'Expected a runtime metadata tree, got {type(metadata).__name__}')
        self.metadata = metadata

    @property
    def version(self) -> int:
        return self.metadata.version

    @property
    def portable_registry(self) -> Optional[PortableRegistry]:
        if self.version in REGISTRY_VERSIONS:
            return self.metadata.types

    @property
    def pallets(self) -> tuple:
        return self.metadata.pallets

    def __eq__(self, other):
        if type(other) is not RuntimeMetadataPrefixed:
            return NotImplemented
        return self.metadata == other.metadata

    __hash__ = None

    def __repr__(self):
        return f'<RuntimeMetadataPrefixed V{self.version}>'

    def encode(self, check_type_references: bool = True) -> bytes:
        return MetadataCodec(check_type_references=check_type_references).encode(self)

    def upgrade(self, version: int = None) -> 'RuntimeMetadataPrefixed':
        """
        Convert to a newer metadata version, see `framemetadata.convert`

        Parameters
        ----------
        version: target version, defaults to the newest reachable version

        Returns
        -------
        RuntimeMetadataPrefixed
        """
        return RuntimeMetadataPrefixed(upgrade(self.metadata, version))

    def serialize(self) -> list:
        return [META_RESERVED, {f'V{self.version}': self.metadata.serialize()}]

    @classmethod
    def deserialize(cls, value: list) -> 'RuntimeMetadataPrefixed':
        if type(value) is not list or len(value) != 2 or type(value[1]) is not dict or len(value[1]) != 1:
            raise ValueError('Expected [magic, {"V<version>": {...}}]')

        magic, versioned = value
        if type(magic) is not int or not 0 <= magic <= 0xffffffff:
            raise BadMagic(magic)
        if magic != META_RESERVED:
            raise BadMagic(magic.to_bytes(4, byteorder='little'))

        version_name, tree = next(iter(versioned.items()))
        try:
            version = int(version_name.lstrip('V'))
        except ValueError:
            raise ValueError(f'Invalid metadata version "{version_name}"')

        if version not in VERSIONS:
            raise UnsupportedVersion(version, VERSIONS.keys())

        return cls(VERSIONS[version].deserialize(tree))

    def to_json(self, **kwargs) -> str:
        return json.dumps(self.serialize(), **kwargs)

    @classmethod
    def from_json(cls, data: str) -> 'RuntimeMetadataPrefixed':
        return cls.deserialize(json.loads(data))

    # Accessors

    def get_metadata_pallet(self, name: str):
        return self.metadata.get_metadata_pallet(name)

    def get_pallet_by_index(self, index: int):
        return self.metadata.get_pallet_by_index(index)

    def get_module_error(self, module_index: int, error_index: int):
        return self.metadata.get_module_error(module_index, error_index)

    def get_signed_extensions(self) -> dict:
        return self.metadata.get_signed_extensions()

    def get_api(self, name: str):
        if self.version < 15:
            raise ValueError(f"Runtime Api '{name}' not found, metadata V{self.version} has no runtime APIs")
        return self.metadata.get_api(name)

    def get_custom_value(self, name: str):
        if self.version < 15:
            return None
        return self.metadata.get_custom_value(name)


class MetadataCodec:

    def __init__(self, versions=None, check_type_references: bool = True, max_payload_size: int = None):
        """
        Encodes and decodes metadata prefixed with the magic number and version tag

        Parameters
        ----------
        versions: versions to accept, defaults to all supported versions (V8 to V16)
        check_type_references: verify all type references resolve in the type registry (V14 and later)
        max_payload_size: reject input larger than this number of bytes before decoding
        """
        if versions is None:
            versions = VERSIONS.keys()

        versions = tuple(sorted(versions))
        for version in versions:
            if version not in VERSIONS:
                raise UnsupportedVersion(version, VERSIONS.keys())

        self.config = {
            'versions': versions,
            'check_type_references': check_type_references,
            'max_payload_size': max_payload_size
        }

    def read_prefix(self, data: ScaleBytes) -> int:
        if data.length - data.offset < len(METADATA_MAGIC):
            raise BadMagic(data.data[data.offset:])

        magic = bytes(data.get_next_bytes(len(METADATA_MAGIC)))
        if magic != METADATA_MAGIC:
            raise BadMagic(magic)

        if data.offset >= data.length:
            raise MalformedPayload('Missing metadata version', offset=data.offset)

        version = data.get_next_bytes(1)[0]

        if version in DEPRECATED_VERSIONS or version not in self.config['versions']:
            raise UnsupportedVersion(version, self.config['versions'])

        return version

    def version_of(self, data: Union[ScaleBytes, bytes, bytearray, str]) -> int:
        """
        Version of encoded metadata, without decoding the payload

        Parameters
        ----------
        data: bytes, hex string or ScaleBytes

        Returns
        -------
        int
        """
        data = to_scale_bytes(data)
        offset = data.offset
        try:
            return self.read_prefix(data)
        finally:
            data.offset = offset

    def decode(self, data: Union[ScaleBytes, bytes, bytearray, str]) -> RuntimeMetadataPrefixed:
        """
        Decode metadata prefixed with the magic number and version tag

        Parameters
        ----------
        data: bytes, hex string or ScaleBytes

        Returns
        -------
        RuntimeMetadataPrefixed
        """
        data = to_scale_bytes(data)

        max_payload_size = self.config['max_payload_size']
        if max_payload_size is not None and data.length - data.offset > max_payload_size:
            raise MalformedPayload(
                f'Payload of {data.length - data.offset} bytes exceeds maximum of {max_payload_size} bytes', offset=0
            )

        version = self.read_prefix(data)
        metadata_cls = VERSIONS[version]

        logger.debug(f'Decoding metadata V{version} ({data.length} bytes)')

        try:
            metadata = metadata_cls.scale_decode(data)
        except MalformedPayload as e:
            e.version = version
            raise

        if data.offset != data.length:
            raise MalformedPayload(
                f'{data.length - data.offset} trailing bytes after metadata', offset=data.offset, version=version
            )

        if version in REGISTRY_VERSIONS and self.config['check_type_references']:
            metadata.check_type_references()

        logger.debug(f'Decoded metadata V{version} with {len(metadata.pallets)} pallets')

        return RuntimeMetadataPrefixed(metadata)

    def encode(self, metadata) -> bytes:
        """
        Encode metadata, prefixed with the magic number and version tag

        Parameters
        ----------
        metadata: RuntimeMetadataPrefixed or a metadata tree (e.g. RuntimeMetadataV15)

        Returns
        -------
        bytes
        """
        if type(metadata) is not RuntimeMetadataPrefixed:
            metadata = RuntimeMetadataPrefixed(metadata)

        version = metadata.version
        if version not in self.config['versions']:
            raise UnsupportedVersion(version, self.config['versions'])

        if version in REGISTRY_VERSIONS and self.config['check_type_references']:
            metadata.metadata.check_type_references()

        output = bytearray(METADATA_MAGIC)
        output.append(version)

        type(metadata.metadata).scale_encode(metadata.metadata, output)

        logger.debug(f'Encoded metadata V{version} ({len(output)} bytes)')

        return bytes(output)


default_codec = MetadataCodec()


def encode(metadata) -> bytes:
    return default_codec.encode(metadata)


def decode(data: Union[ScaleBytes, bytes, bytearray, str]) -> RuntimeMetadataPrefixed:
    return default_codec.decode(data)


def version_of(data: Union[ScaleBytes, bytes, bytearray, str]) -> int:
    return default_codec.version_of(data)
