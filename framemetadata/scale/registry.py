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

""" Portable type registry of metadata V14 and later

All types used by a runtime are stored in one flat table, indexed by their type id. Types refer to each other only by
id, so recursive types need no special treatment and are resolved by lookup.
"""

import enum
import logging
from typing import Optional, Union

from framemetadata.exceptions import DanglingTypeReference, MalformedPayload
from framemetadata.scale.types import Struct, Enum, Vec, Option, Text, Compact, TypeRef, U8, U32, UnitEnum

logger = logging.getLogger(__name__)


class Primitive(enum.Enum):
    bool = 'bool'
    char = 'char'
    str = 'str'
    u8 = 'u8'
    u16 = 'u16'
    u32 = 'u32'
    u64 = 'u64'
    u128 = 'u128'
    u256 = 'u256'
    i8 = 'i8'
    i16 = 'i16'
    i32 = 'i32'
    i64 = 'i64'
    i128 = 'i128'
    i256 = 'i256'


class TypeParameter(Struct):
    scale_fields = (('name', Text), ('ty', Option(TypeRef)))


class Field(Struct):
    scale_fields = (('name', Option(Text)), ('ty', TypeRef), ('type_name', Option(Text)), ('docs', Vec(Text)))


class Variant(Struct):
    scale_fields = (('name', Text), ('fields', Vec(Field)), ('index', U8), ('docs', Vec(Text)))


class TypeDef(Enum):
    pass


class TypeDefComposite(TypeDef):
    variant_name = 'Composite'
    scale_fields = (('fields', Vec(Field)),)


class TypeDefVariant(TypeDef):
    variant_name = 'Variant'
    scale_fields = (('variants', Vec(Variant)),)

    def get_variant(self, index: int = None, name: str = None) -> Optional[Variant]:
        """
        Lookup a variant by its index (as used on the wire) or by name

        Parameters
        ----------
        index
        name

        Returns
        -------
        Variant or None if not found
        """
        for variant in self.variants:
            if index is not None and variant.index == index:
                return variant
            if name is not None and variant.name == name:
                return variant


class TypeDefSequence(TypeDef):
    variant_name = 'Sequence'
    scale_fields = (('type', TypeRef),)


class TypeDefArray(TypeDef):
    variant_name = 'Array'
    scale_fields = (('len', U32), ('type', TypeRef))


class TypeDefTuple(TypeDef):
    variant_name = 'Tuple'
    scale_fields = (('fields', Vec(TypeRef)),)


class TypeDefPrimitive(TypeDef):
    variant_name = 'Primitive'
    scale_fields = (('primitive', UnitEnum(Primitive, tuple(Primitive))),)


class TypeDefCompact(TypeDef):
    variant_name = 'Compact'
    scale_fields = (('type', TypeRef),)


class TypeDefBitSequence(TypeDef):
    variant_name = 'BitSequence'
    scale_fields = (('bit_store_type', TypeRef), ('bit_order_type', TypeRef))


TypeDef.scale_variants = (
    TypeDefComposite, TypeDefVariant, TypeDefSequence, TypeDefArray, TypeDefTuple, TypeDefPrimitive, TypeDefCompact,
    TypeDefBitSequence
)


class RegistryType(Struct):
    scale_fields = (('path', Vec(Text)), ('params', Vec(TypeParameter)), ('type_def', TypeDef), ('docs', Vec(Text)))

    @property
    def path_string(self) -> str:
        return '::'.join(self.path)


class PortableType(Struct):
    scale_fields = (('id', Compact), ('type', RegistryType))


class PortableRegistry(Struct):
    """
    Table of `PortableType` records, lookup by type id is a dict lookup
    """

    scale_fields = (('types', Vec(PortableType)),)

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._build_index()

    @classmethod
    def _from_decoded(cls, values: dict):
        obj = super()._from_decoded(values)
        obj._build_index()
        return obj

    def _build_index(self):
        index = {}
        path_lookup = {}
        for idx, portable_type in enumerate(self.types):
            if portable_type.id in index:
                error = MalformedPayload(f'Duplicate type id {portable_type.id} in registry')
                error.add_context(idx)
                error.add_context('types')
                raise error
            index[portable_type.id] = portable_type.type
            if portable_type.type.path:
                path_lookup.setdefault(portable_type.type.path_string.lower(), []).append(portable_type.id)
        object.__setattr__(self, '_index', index)
        object.__setattr__(self, '_path_lookup', path_lookup)

    def __len__(self):
        return len(self._index)

    def __contains__(self, type_id):
        return type_id in self._index

    def get(self, type_id: int) -> Optional[RegistryType]:
        return self._index.get(type_id)

    def resolve(self, type_id: int) -> RegistryType:
        """
        Retrieve the type descriptor for given type id

        Parameters
        ----------
        type_id

        Returns
        -------
        RegistryType
        """
        try:
            return self._index[type_id]
        except KeyError:
            raise DanglingTypeReference(type_id)

    def find_type_ids_by_path(self, path: Union[str, list, tuple]) -> list:
        """
        Lookup all type ids with given path (e.g. "sp_core::crypto::AccountId32"), case-insensitive. Paths are not
        unique, e.g. generic types with different parameters share a path.

        Parameters
        ----------
        path

        Returns
        -------
        list of type ids, in registry order
        """
        if type(path) is not str:
            path = '::'.join(path)

        return list(self._path_lookup.get(path.lower(), []))

    def get_type_id_by_path(self, path: Union[str, list, tuple]) -> int:
        type_ids = self.find_type_ids_by_path(path)
        if not type_ids:
            raise ValueError(f"Path '{path}' is not found in portable registry")
        return type_ids[0]

    def type_string(self, type_id: int) -> str:
        """
        Human readable name of given type id, e.g. "Vec<u8>", "[u8; 32]" or "AccountId32"

        Parameters
        ----------
        type_id

        Returns
        -------
        str
        """
        return self._type_string(type_id, set())

    def _type_string(self, type_id: int, visiting: set) -> str:
        if type_id in visiting:
            return f'<{type_id}>'

        registry_type = self.resolve(type_id)
        type_def = registry_type.type_def
        visiting = visiting | {type_id}

        if type(type_def) in (TypeDefComposite, TypeDefVariant):
            if registry_type.path:
                name = registry_type.path[-1]
                params = [self._type_string(param.ty, visiting) for param in registry_type.params if param.ty is not None]
                if params:
                    return f'{name}<{", ".join(params)}>'
                return name

            if type(type_def) is TypeDefComposite:
                items = [self._type_string(field.ty, visiting) for field in type_def.fields]
                if len(items) == 1:
                    return items[0]
                return f'({", ".join(items)})'

            return f'<{type_id}>'

        if type(type_def) is TypeDefSequence:
            return f'Vec<{self._type_string(type_def.type, visiting)}>'

        if type(type_def) is TypeDefArray:
            return f'[{self._type_string(type_def.type, visiting)}; {type_def.len}]'

        if type(type_def) is TypeDefTuple:
            return f'({", ".join(self._type_string(item, visiting) for item in type_def.fields)})'

        if type(type_def) is TypeDefPrimitive:
            return type_def.primitive.value

        if type(type_def) is TypeDefCompact:
            return f'Compact<{self._type_string(type_def.type, visiting)}>'

        if type(type_def) is TypeDefBitSequence:
            order = self._type_string(type_def.bit_order_type, visiting)
            store = self._type_string(type_def.bit_store_type, visiting)
            return f'BitVec<{order}, {store}>'

        raise ValueError(f'Unknown type definition {type(type_def).__name__}')

    def check_references(self, references: list = None):
        """
        Verify every type id referenced by the registry itself and by given references exists in the registry

        Parameters
        ----------
        references: list of (path, type_id) tuples, e.g. as returned by `Struct.type_references()`

        Raises
        ------
        DanglingTypeReference
        """
        for path, type_id in self.type_references():
            if type_id not in self._index:
                raise DanglingTypeReference(type_id, path)

        for path, type_id in references or ():
            if type_id not in self._index:
                raise DanglingTypeReference(type_id, path)


class RegistryBuilder:
    """
    Assigns type ids and collects types for a new `PortableRegistry`. Every added type gets a fresh id, identical
    types are not deduplicated.

    Recursive types are built by reserving an id first, referring to it, then defining it::

        builder = RegistryBuilder()
        node_id = builder.reserve()
        builder.define(node_id, TypeDefComposite(fields=[Field(name='next', ty=node_id)]))
        registry = builder.build()
    """

    def __init__(self):
        self.types = {}
        self.reserved = set()
        self.next_id = 0

    def _to_registry_type(self, registry_type) -> RegistryType:
        if isinstance(registry_type, TypeDef):
            return RegistryType(type_def=registry_type)
        if isinstance(registry_type, Primitive) or type(registry_type) is str:
            return RegistryType(type_def=TypeDefPrimitive(primitive=registry_type))
        if type(registry_type) is not RegistryType:
            raise TypeError(f'Expected RegistryType, TypeDef or primitive, got {type(registry_type).__name__}')
        return registry_type

    def add(self, registry_type) -> int:
        type_id = self.reserve()
        self.define(type_id, registry_type)
        return type_id

    def reserve(self) -> int:
        type_id = self.next_id
        self.next_id += 1
        self.reserved.add(type_id)
        return type_id

    def define(self, type_id: int, registry_type):
        if type_id not in self.reserved:
            raise ValueError(f'Type id {type_id} is not reserved')
        self.types[type_id] = self._to_registry_type(registry_type)
        self.reserved.remove(type_id)

    def build(self, check_references: bool = True) -> PortableRegistry:
        if self.reserved:
            raise DanglingTypeReference(min(self.reserved), 'reserved')

        registry = PortableRegistry(
            types=[PortableType(id=type_id, type=self.types[type_id]) for type_id in sorted(self.types)]
        )
        if check_references:
            registry.check_references()

        logger.debug(f'Built portable registry with {len(registry)} types')
        return registry
