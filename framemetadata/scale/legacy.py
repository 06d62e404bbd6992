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

""" Metadata V8 to V13

Types are described inline by their name (e.g. "T::Balance"), there is no type registry.
"""

from typing import Optional

from framemetadata.scale.storage import StorageHasherV8, StorageHasherV10, StorageHasherV11, \
    LegacyStorageEntryModifier, LegacyStorageEntryType
from framemetadata.scale.types import Struct, Vec, Option, Text, Bytes, U8

__all__ = [
    'FunctionArgumentMetadata', 'FunctionMetadata', 'EventMetadata', 'ModuleConstantMetadata', 'ErrorMetadata',
    'ExtrinsicMetadataV11', 'StorageEntryMetadataV8', 'StorageEntryMetadataV10', 'StorageEntryMetadataV11',
    'StorageEntryMetadataV13', 'StorageMetadataV8', 'StorageMetadataV10', 'StorageMetadataV11', 'StorageMetadataV13',
    'ModuleMetadataV8', 'ModuleMetadataV9', 'ModuleMetadataV10', 'ModuleMetadataV11', 'ModuleMetadataV12',
    'ModuleMetadataV13', 'RuntimeMetadataV8', 'RuntimeMetadataV9', 'RuntimeMetadataV10', 'RuntimeMetadataV11',
    'RuntimeMetadataV12', 'RuntimeMetadataV13'
]


class FunctionArgumentMetadata(Struct):
    scale_fields = (('name', Text), ('ty', Text))


class FunctionMetadata(Struct):
    scale_fields = (('name', Text), ('arguments', Vec(FunctionArgumentMetadata)), ('documentation', Vec(Text)))


class EventMetadata(Struct):
    scale_fields = (('name', Text), ('arguments', Vec(Text)), ('documentation', Vec(Text)))


class ModuleConstantMetadata(Struct):
    scale_fields = (('name', Text), ('ty', Text), ('value', Bytes), ('documentation', Vec(Text)))


class ErrorMetadata(Struct):
    scale_fields = (('name', Text), ('documentation', Vec(Text)))


class ExtrinsicMetadataV11(Struct):
    scale_fields = (('version', U8), ('signed_extensions', Vec(Text)))


# Storage

class StorageEntryMetadataV8(Struct):
    scale_fields = (
        ('name', Text),
        ('modifier', LegacyStorageEntryModifier),
        ('ty', LegacyStorageEntryType(StorageHasherV8)),
        ('default', Bytes),
        ('documentation', Vec(Text))
    )


class StorageEntryMetadataV10(Struct):
    scale_fields = (
        ('name', Text),
        ('modifier', LegacyStorageEntryModifier),
        ('ty', LegacyStorageEntryType(StorageHasherV10)),
        ('default', Bytes),
        ('documentation', Vec(Text))
    )


class StorageEntryMetadataV11(Struct):
    scale_fields = (
        ('name', Text),
        ('modifier', LegacyStorageEntryModifier),
        ('ty', LegacyStorageEntryType(StorageHasherV11)),
        ('default', Bytes),
        ('documentation', Vec(Text))
    )


class StorageEntryMetadataV13(Struct):
    scale_fields = (
        ('name', Text),
        ('modifier', LegacyStorageEntryModifier),
        ('ty', LegacyStorageEntryType(StorageHasherV11, supports_nmap=True)),
        ('default', Bytes),
        ('documentation', Vec(Text))
    )


class StorageMetadataV8(Struct):
    scale_fields = (('prefix', Text), ('entries', Vec(StorageEntryMetadataV8)))


class StorageMetadataV10(Struct):
    scale_fields = (('prefix', Text), ('entries', Vec(StorageEntryMetadataV10)))


class StorageMetadataV11(Struct):
    scale_fields = (('prefix', Text), ('entries', Vec(StorageEntryMetadataV11)))


class StorageMetadataV13(Struct):
    scale_fields = (('prefix', Text), ('entries', Vec(StorageEntryMetadataV13)))


# Modules

class LegacyModule(Struct):

    def get_storage_function(self, name: str):
        if self.storage:
            for entry in self.storage.entries:
                if entry.name == name:
                    return entry

    def get_call(self, name: str) -> Optional[FunctionMetadata]:
        for call in self.calls or ():
            if call.name == name:
                return call

    def get_event(self, name: str) -> Optional[EventMetadata]:
        for event in self.event or ():
            if event.name == name:
                return event

    def get_constant(self, name: str) -> Optional[ModuleConstantMetadata]:
        for constant in self.constants:
            if constant.name == name:
                return constant


class ModuleMetadataV8(LegacyModule):
    scale_fields = (
        ('name', Text),
        ('storage', Option(StorageMetadataV8)),
        ('calls', Option(Vec(FunctionMetadata))),
        ('event', Option(Vec(EventMetadata))),
        ('constants', Vec(ModuleConstantMetadata)),
        ('errors', Vec(ErrorMetadata))
    )


class ModuleMetadataV9(LegacyModule):
    scale_fields = ModuleMetadataV8.scale_fields


class ModuleMetadataV10(LegacyModule):
    scale_fields = (
        ('name', Text),
        ('storage', Option(StorageMetadataV10)),
        ('calls', Option(Vec(FunctionMetadata))),
        ('event', Option(Vec(EventMetadata))),
        ('constants', Vec(ModuleConstantMetadata)),
        ('errors', Vec(ErrorMetadata))
    )


class ModuleMetadataV11(LegacyModule):
    scale_fields = (
        ('name', Text),
        ('storage', Option(StorageMetadataV11)),
        ('calls', Option(Vec(FunctionMetadata))),
        ('event', Option(Vec(EventMetadata))),
        ('constants', Vec(ModuleConstantMetadata)),
        ('errors', Vec(ErrorMetadata))
    )


class ModuleMetadataV12(LegacyModule):
    scale_fields = ModuleMetadataV11.scale_fields + (('index', U8),)


class ModuleMetadataV13(LegacyModule):
    scale_fields = (
        ('name', Text),
        ('storage', Option(StorageMetadataV13)),
        ('calls', Option(Vec(FunctionMetadata))),
        ('event', Option(Vec(EventMetadata))),
        ('constants', Vec(ModuleConstantMetadata)),
        ('errors', Vec(ErrorMetadata)),
        ('index', U8)
    )


# Runtime metadata

class LegacyRuntimeMetadata(Struct):
    version = None

    @property
    def pallets(self) -> tuple:
        return self.modules

    def get_metadata_pallet(self, name: str):
        for module in self.modules:
            if module.name == name:
                return module

    def get_pallet_by_index(self, index: int):
        """
        Lookup module by the index used in events and errors: the declared index from V12 on, the position in the
        list of modules before
        """
        for position, module in enumerate(self.modules):
            if getattr(module, 'index', position) == index:
                return module

        raise ValueError(f'Pallet for index "{index}" not found')

    def get_module_error(self, module_index: int, error_index: int) -> Optional[ErrorMetadata]:
        module = self.get_pallet_by_index(module_index)
        if error_index < len(module.errors):
            return module.errors[error_index]

    def get_signed_extensions(self) -> dict:
        extrinsic = getattr(self, 'extrinsic', None)
        if extrinsic is None:
            return {}
        return {identifier: {'extrinsic': None, 'additional_signed': None} for identifier in extrinsic.signed_extensions}


class RuntimeMetadataV8(LegacyRuntimeMetadata):
    version = 8
    scale_fields = (('modules', Vec(ModuleMetadataV8)),)


class RuntimeMetadataV9(LegacyRuntimeMetadata):
    version = 9
    scale_fields = (('modules', Vec(ModuleMetadataV9)),)


class RuntimeMetadataV10(LegacyRuntimeMetadata):
    version = 10
    scale_fields = (('modules', Vec(ModuleMetadataV10)),)


class RuntimeMetadataV11(LegacyRuntimeMetadata):
    version = 11
    scale_fields = (('modules', Vec(ModuleMetadataV11)), ('extrinsic', ExtrinsicMetadataV11))


class RuntimeMetadataV12(LegacyRuntimeMetadata):
    version = 12
    scale_fields = (('modules', Vec(ModuleMetadataV12)), ('extrinsic', ExtrinsicMetadataV11))


class RuntimeMetadataV13(LegacyRuntimeMetadata):
    version = 13
    scale_fields = (('modules', Vec(ModuleMetadataV13)), ('extrinsic', ExtrinsicMetadataV11))
