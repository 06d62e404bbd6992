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

""" Metadata V14, V15 and V16

Every type slot is a reference into the portable type registry embedded in the metadata (`types`).
"""

from typing import Optional

from framemetadata.scale.registry import PortableRegistry, RegistryType, TypeDefTuple, TypeDefVariant, Variant
from framemetadata.scale.storage import StorageHasherV11, StorageEntryModifierV14
from framemetadata.scale.types import Struct, Enum, Vec, Option, BTreeMap, Text, Bytes, ByteArray, Compact, \
    TypeRef, U8

__all__ = [
    'NotDeprecated', 'DeprecatedWithoutNote', 'Deprecated', 'DeprecationStatus', 'DeprecationInfo',
    'DeprecationInfoNotDeprecated', 'ItemDeprecated', 'VariantsDeprecated', 'StorageEntryType',
    'StorageEntryTypePlain', 'StorageEntryTypeMap', 'StorageEntryMetadataV14', 'StorageEntryMetadataV16',
    'PalletStorageMetadataV14', 'PalletStorageMetadataV16', 'PalletCallMetadataV14', 'PalletEventMetadataV14',
    'PalletErrorMetadataV14', 'PalletConstantMetadataV14', 'PalletCallMetadataV16', 'PalletEventMetadataV16',
    'PalletErrorMetadataV16', 'PalletConstantMetadataV16', 'PalletAssociatedTypeMetadataV16',
    'FunctionParamMetadata', 'PalletViewFunctionMetadataV16', 'PalletMetadataV14', 'PalletMetadataV15',
    'PalletMetadataV16', 'SignedExtensionMetadataV14', 'TransactionExtensionMetadataV16', 'ExtrinsicMetadataV14',
    'ExtrinsicMetadataV15', 'ExtrinsicMetadataV16', 'RuntimeApiMethodMetadataV15', 'RuntimeApiMetadataV15',
    'RuntimeApiMethodMetadataV16', 'RuntimeApiMetadataV16', 'OuterEnums', 'CustomValueMetadata', 'CustomMetadata',
    'RuntimeMetadataV14', 'RuntimeMetadataV15', 'RuntimeMetadataV16'
]


# Deprecation (V16)

class DeprecationStatus(Enum):
    pass


class NotDeprecated(DeprecationStatus):
    variant_name = 'NotDeprecated'


class DeprecatedWithoutNote(DeprecationStatus):
    variant_name = 'DeprecatedWithoutNote'


class Deprecated(DeprecationStatus):
    variant_name = 'Deprecated'
    scale_fields = (('note', Text), ('since', Option(Text)))


DeprecationStatus.scale_variants = (NotDeprecated, DeprecatedWithoutNote, Deprecated)


class DeprecationInfo(Enum):
    """
    Deprecation of the call, event or error enum of a pallet, either as a whole or per variant (by variant index)
    """
    pass


class DeprecationInfoNotDeprecated(DeprecationInfo):
    variant_name = 'NotDeprecated'


class ItemDeprecated(DeprecationInfo):
    variant_name = 'ItemDeprecated'
    scale_fields = (('status', DeprecationStatus),)


class VariantsDeprecated(DeprecationInfo):
    variant_name = 'VariantsDeprecated'
    scale_fields = (('variants', BTreeMap(U8, DeprecationStatus)),)


DeprecationInfo.scale_variants = (DeprecationInfoNotDeprecated, ItemDeprecated, VariantsDeprecated)


# Storage

class StorageEntryType(Enum):
    pass


class StorageEntryTypePlain(StorageEntryType):
    variant_name = 'Plain'
    scale_fields = (('ty', TypeRef),)


class StorageEntryTypeMap(StorageEntryType):
    variant_name = 'Map'
    scale_fields = (('hashers', Vec(StorageHasherV11)), ('key', TypeRef), ('value', TypeRef))

    def key_pairs(self, registry: PortableRegistry) -> list:
        """
        Ordered (hasher, key type id) pairs of this map. With more than one hasher the key is a tuple type with one
        element per hasher.

        Parameters
        ----------
        registry: the registry of the metadata this entry belongs to

        Returns
        -------
        list of (StorageHasher, int) tuples
        """
        if len(self.hashers) == 1:
            return [(self.hashers[0], self.key)]

        key_def = registry.resolve(self.key).type_def
        if type(key_def) is not TypeDefTuple or len(key_def.fields) != len(self.hashers):
            raise ValueError(
                f'Key type {self.key} of storage map does not match its {len(self.hashers)} hashers'
            )
        return list(zip(self.hashers, key_def.fields))


StorageEntryType.scale_variants = (StorageEntryTypePlain, StorageEntryTypeMap)


class StorageEntryMetadataV14(Struct):
    scale_fields = (
        ('name', Text),
        ('modifier', StorageEntryModifierV14),
        ('ty', StorageEntryType),
        ('default', Bytes),
        ('docs', Vec(Text))
    )


class StorageEntryMetadataV16(Struct):
    scale_fields = StorageEntryMetadataV14.scale_fields + (('deprecation_info', DeprecationStatus),)
    scale_defaults = {'deprecation_info': NotDeprecated}


class PalletStorageMetadataV14(Struct):
    scale_fields = (('prefix', Text), ('entries', Vec(StorageEntryMetadataV14)))


class PalletStorageMetadataV16(Struct):
    scale_fields = (('prefix', Text), ('entries', Vec(StorageEntryMetadataV16)))


# Pallets

class PalletCallMetadataV14(Struct):
    scale_fields = (('ty', TypeRef),)


class PalletEventMetadataV14(Struct):
    scale_fields = (('ty', TypeRef),)


class PalletErrorMetadataV14(Struct):
    scale_fields = (('ty', TypeRef),)


class PalletConstantMetadataV14(Struct):
    scale_fields = (('name', Text), ('ty', TypeRef), ('value', Bytes), ('docs', Vec(Text)))


class PalletCallMetadataV16(Struct):
    scale_fields = (('ty', TypeRef), ('deprecation_info', DeprecationInfo))
    scale_defaults = {'deprecation_info': DeprecationInfoNotDeprecated}


class PalletEventMetadataV16(PalletCallMetadataV16):
    pass


class PalletErrorMetadataV16(PalletCallMetadataV16):
    pass


class PalletConstantMetadataV16(Struct):
    scale_fields = PalletConstantMetadataV14.scale_fields + (('deprecation_info', DeprecationStatus),)
    scale_defaults = {'deprecation_info': NotDeprecated}


class PalletAssociatedTypeMetadataV16(Struct):
    scale_fields = (('name', Text), ('ty', TypeRef), ('docs', Vec(Text)))


class FunctionParamMetadata(Struct):
    scale_fields = (('name', Text), ('ty', TypeRef))


class PalletViewFunctionMetadataV16(Struct):
    scale_fields = (
        ('name', Text),
        ('id', ByteArray(32)),
        ('inputs', Vec(FunctionParamMetadata)),
        ('output', TypeRef),
        ('docs', Vec(Text)),
        ('deprecation_info', DeprecationStatus)
    )
    scale_defaults = {'deprecation_info': NotDeprecated}


class PalletMetadata(Struct):

    def get_storage_function(self, name: str):
        if self.storage:
            for entry in self.storage.entries:
                if entry.name == name:
                    return entry

    def get_constant(self, name: str):
        for constant in self.constants:
            if constant.name == name:
                return constant


class PalletMetadataV14(PalletMetadata):
    scale_fields = (
        ('name', Text),
        ('storage', Option(PalletStorageMetadataV14)),
        ('calls', Option(PalletCallMetadataV14)),
        ('event', Option(PalletEventMetadataV14)),
        ('constants', Vec(PalletConstantMetadataV14)),
        ('error', Option(PalletErrorMetadataV14)),
        ('index', U8)
    )


class PalletMetadataV15(PalletMetadata):
    scale_fields = PalletMetadataV14.scale_fields + (('docs', Vec(Text)),)


class PalletMetadataV16(PalletMetadata):
    scale_fields = (
        ('name', Text),
        ('storage', Option(PalletStorageMetadataV16)),
        ('calls', Option(PalletCallMetadataV16)),
        ('event', Option(PalletEventMetadataV16)),
        ('constants', Vec(PalletConstantMetadataV16)),
        ('error', Option(PalletErrorMetadataV16)),
        ('associated_types', Vec(PalletAssociatedTypeMetadataV16)),
        ('view_functions', Vec(PalletViewFunctionMetadataV16)),
        ('index', U8),
        ('docs', Vec(Text)),
        ('deprecation_info', DeprecationStatus)
    )
    scale_defaults = {'deprecation_info': NotDeprecated}

    def get_associated_type(self, name: str) -> Optional[PalletAssociatedTypeMetadataV16]:
        for associated_type in self.associated_types:
            if associated_type.name == name:
                return associated_type

    def get_view_function(self, name: str) -> Optional[PalletViewFunctionMetadataV16]:
        for view_function in self.view_functions:
            if view_function.name == name:
                return view_function


# Extrinsic

class SignedExtensionMetadataV14(Struct):
    scale_fields = (('identifier', Text), ('ty', TypeRef), ('additional_signed', TypeRef))


class TransactionExtensionMetadataV16(Struct):
    scale_fields = (('identifier', Text), ('ty', TypeRef), ('implicit', TypeRef))


class ExtrinsicMetadataV14(Struct):
    scale_fields = (('ty', TypeRef), ('version', U8), ('signed_extensions', Vec(SignedExtensionMetadataV14)))


class ExtrinsicMetadataV15(Struct):
    scale_fields = (
        ('version', U8),
        ('address_ty', TypeRef),
        ('call_ty', TypeRef),
        ('signature_ty', TypeRef),
        ('extra_ty', TypeRef),
        ('signed_extensions', Vec(SignedExtensionMetadataV14))
    )


class ExtrinsicMetadataV16(Struct):
    """
    Extrinsic format, `transaction_extensions_by_version` maps an extrinsic version to the indices in
    `transaction_extensions` used by that version
    """
    scale_fields = (
        ('versions', Vec(U8)),
        ('address_ty', TypeRef),
        ('signature_ty', TypeRef),
        ('transaction_extensions_by_version', BTreeMap(U8, Vec(Compact))),
        ('transaction_extensions', Vec(TransactionExtensionMetadataV16))
    )

    def get_transaction_extensions(self, version: int) -> list:
        return [
            self.transaction_extensions[index] for index in self.transaction_extensions_by_version.get(version, ())
        ]


# Runtime APIs

class RuntimeApiMethodMetadataV15(Struct):
    scale_fields = (('name', Text), ('inputs', Vec(FunctionParamMetadata)), ('output', TypeRef), ('docs', Vec(Text)))


class RuntimeApiMetadata(Struct):

    def get_method(self, name: str):
        for method in self.methods:
            if name == method.name:
                return method
        raise ValueError(f"Runtime API method '{self.name}.{name}' not found")


class RuntimeApiMetadataV15(RuntimeApiMetadata):
    scale_fields = (('name', Text), ('methods', Vec(RuntimeApiMethodMetadataV15)), ('docs', Vec(Text)))


class RuntimeApiMethodMetadataV16(Struct):
    scale_fields = RuntimeApiMethodMetadataV15.scale_fields + (('deprecation_info', DeprecationStatus),)
    scale_defaults = {'deprecation_info': NotDeprecated}


class RuntimeApiMetadataV16(RuntimeApiMetadata):
    scale_fields = (
        ('name', Text),
        ('methods', Vec(RuntimeApiMethodMetadataV16)),
        ('docs', Vec(Text)),
        ('deprecation_info', DeprecationStatus),
        ('version', Compact)
    )
    scale_defaults = {'deprecation_info': NotDeprecated}


# Extension slots

class OuterEnums(Struct):
    scale_fields = (('call_enum_ty', TypeRef), ('event_enum_ty', TypeRef), ('error_enum_ty', TypeRef))


class CustomValueMetadata(Struct):
    scale_fields = (('ty', TypeRef), ('value', Bytes))


class CustomMetadata(Struct):
    scale_fields = (('map', BTreeMap(Text, CustomValueMetadata)),)


# Runtime metadata

class RegistryRuntimeMetadata(Struct):
    """
    Accessors shared by the metadata versions with a portable type registry
    """

    version = None

    @property
    def portable_registry(self) -> PortableRegistry:
        return self.types

    def check_type_references(self):
        """
        Verify all type references of the registry and of the metadata tree resolve in the registry

        Raises
        ------
        DanglingTypeReference
        """
        self.types.check_references(
            [(path, type_id) for path, type_id in self.type_references() if not path.startswith('types')]
        )

    def get_metadata_pallet(self, name: str):
        for pallet in self.pallets:
            if pallet.name == name:
                return pallet

    def get_pallet_by_index(self, index: int):

        for pallet in self.pallets:
            if pallet.index == index:
                return pallet

        raise ValueError(f'Pallet for index "{index}" not found')

    def get_module_error(self, module_index: int, error_index: int) -> Optional[Variant]:
        """
        Lookup the error variant of a pallet, e.g. from a dispatch error `{'index': 5, 'error': 2}`

        Parameters
        ----------
        module_index: index of the pallet
        error_index: index of the error variant

        Returns
        -------
        Variant or None when the pallet has no error with that index
        """
        pallet = self.get_pallet_by_index(module_index)
        if pallet.error is None:
            return None

        error_def = self.types.resolve(pallet.error.ty).type_def
        if type(error_def) is TypeDefVariant:
            return error_def.get_variant(index=error_index)

    def get_signed_extensions(self) -> dict:
        signed_extensions = {}

        for signed_extension in self.extrinsic.signed_extensions:
            signed_extensions[signed_extension.identifier] = {
                'extrinsic': signed_extension.ty,
                'additional_signed': signed_extension.additional_signed
            }

        return signed_extensions

    def get_api(self, name: str):
        for api in getattr(self, 'apis', ()):
            if name == api.name:
                return api
        raise ValueError(f"Runtime Api '{name}' not found")

    def get_custom_value(self, name: str) -> Optional[CustomValueMetadata]:
        return None

    def get_extrinsic_param(self, name: str) -> Optional[int]:
        """
        Type id of a generic parameter of the extrinsic type (e.g. "Address", "Call", "Signature" or "Extra")
        """
        return None

    def get_outer_enums(self) -> dict:
        """
        Registry types of the outer call, event and error enums, unknown enums are None

        Returns
        -------
        dict with keys 'call', 'event' and 'error'
        """
        return {'call': None, 'event': None, 'error': None}

    def _resolve_optional(self, type_id) -> Optional[RegistryType]:
        if type_id is None:
            return None
        return self.types.resolve(type_id)


class RuntimeMetadataV14(RegistryRuntimeMetadata):
    version = 14
    scale_fields = (
        ('types', PortableRegistry),
        ('pallets', Vec(PalletMetadataV14)),
        ('extrinsic', ExtrinsicMetadataV14),
        ('ty', TypeRef)
    )

    def get_extrinsic_param(self, name: str) -> Optional[int]:
        extrinsic_type = self.types.get(self.extrinsic.ty) if self.extrinsic.ty is not None else None
        if extrinsic_type is not None:
            for param in extrinsic_type.params:
                if param.name == name:
                    return param.ty

    def get_outer_enums(self) -> dict:
        return {'call': self._resolve_optional(self.get_extrinsic_param('Call')), 'event': None, 'error': None}


class RuntimeMetadataV15(RegistryRuntimeMetadata):
    version = 15
    scale_fields = (
        ('types', PortableRegistry),
        ('pallets', Vec(PalletMetadataV15)),
        ('extrinsic', ExtrinsicMetadataV15),
        ('ty', TypeRef),
        ('apis', Vec(RuntimeApiMetadataV15)),
        ('outer_enums', OuterEnums),
        ('custom', CustomMetadata)
    )

    def get_custom_value(self, name: str) -> Optional[CustomValueMetadata]:
        return self.custom.map.get(name)

    def get_extrinsic_param(self, name: str) -> Optional[int]:
        return {
            'Address': self.extrinsic.address_ty,
            'Call': self.extrinsic.call_ty,
            'Signature': self.extrinsic.signature_ty,
            'Extra': self.extrinsic.extra_ty
        }.get(name)

    def get_outer_enums(self) -> dict:
        return {
            'call': self._resolve_optional(self.outer_enums.call_enum_ty),
            'event': self._resolve_optional(self.outer_enums.event_enum_ty),
            'error': self._resolve_optional(self.outer_enums.error_enum_ty)
        }


class RuntimeMetadataV16(RuntimeMetadataV15):
    version = 16
    scale_fields = (
        ('types', PortableRegistry),
        ('pallets', Vec(PalletMetadataV16)),
        ('extrinsic', ExtrinsicMetadataV16),
        ('apis', Vec(RuntimeApiMetadataV16)),
        ('outer_enums', OuterEnums),
        ('custom', CustomMetadata)
    )

    def get_signed_extensions(self) -> dict:
        signed_extensions = {}

        for transaction_extension in self.extrinsic.transaction_extensions:
            signed_extensions[transaction_extension.identifier] = {
                'extrinsic': transaction_extension.ty,
                'additional_signed': transaction_extension.implicit
            }

        return signed_extensions

    def get_extrinsic_param(self, name: str) -> Optional[int]:
        return {
            'Address': self.extrinsic.address_ty,
            'Signature': self.extrinsic.signature_ty,
        }.get(name)
