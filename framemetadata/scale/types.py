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

""" Building blocks to declare SCALE encoded records

A codec describes the Python value of a SCALE type: how it is validated, serialized to JSON compatible data and which
type references it contains. The bytes are decoded and encoded by scalecodec, every codec names the scalecodec type
(see `framemetadata.scale.decoders`) it is registered as.
"""

from typing import Union

from scalecodec.base import ScaleBytes

from framemetadata.exceptions import MalformedPayload, MetadataEncodeError, format_path
from framemetadata.scale.decoders import runtime_config, TYPE_PREFIX, to_scale_bytes, ensure_available, \
    decode_scale_object, encode_scale_object, is_registered, register_scale_type, MetadataByteArray, MetadataVec, \
    MetadataOption, MetadataBTreeMap

__all__ = [
    'runtime_config', 'to_scale_bytes', 'ensure_available', 'NO_DEFAULT', 'ScaleCodec', 'U8', 'U16', 'U32', 'U64',
    'Bool', 'Compact', 'TypeRef', 'Text', 'Bytes', 'ByteArray', 'Vec', 'Option', 'BTreeMap', 'UnitEnum', 'Struct',
    'Enum'
]

NO_DEFAULT = object()


def type_name(codec) -> str:
    return getattr(codec, 'type_string', None) or codec.__name__


class ScaleCodec:
    """
    Codec of a single SCALE type, the protocol shared with `Struct` classes which act as their own codec
    """

    type_string = None
    scale_nullable = False

    def scale_type(self) -> str:
        """
        Name of the scalecodec type in `runtime_config` decoding this codec, registered on first use
        """
        return self.type_string

    def scale_decode(self, data: ScaleBytes):
        return decode_scale_object(self.scale_type(), data)

    def scale_encode(self, value, output: bytearray):
        output += encode_scale_object(self.scale_type(), value)

    def scale_min_size(self) -> int:
        return 1

    def scale_default(self):
        return NO_DEFAULT

    def scale_normalize(self, value):
        return value

    def scale_serialize(self, value):
        return value

    def scale_deserialize(self, value):
        return self.scale_normalize(value)

    def scale_references(self, value):
        return iter(())

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.type_string}>'


class UInt(ScaleCodec):

    def __init__(self, type_string: str, byte_length: int):
        self.type_string = type_string
        self.byte_length = byte_length
        self.max_value = 2 ** (8 * byte_length) - 1

    def scale_encode(self, value, output):
        if type(value) is not int or not 0 <= value <= self.max_value:
            raise MetadataEncodeError(f'{value!r} is not a valid {self.type_string}')
        super().scale_encode(value, output)

    def scale_min_size(self):
        return self.byte_length

    def scale_normalize(self, value):
        if type(value) is bool or not isinstance(value, int):
            raise TypeError(f'{self.type_string} requires an int, got {type(value).__name__}')
        return int(value)

    def scale_deserialize(self, value):
        return self.scale_normalize(int(value))


class BoolCodec(ScaleCodec):
    type_string = 'bool'

    def scale_encode(self, value, output):
        if type(value) is not bool:
            raise MetadataEncodeError(f'{value!r} is not a valid bool')
        super().scale_encode(value, output)

    def scale_default(self):
        return False

    def scale_normalize(self, value):
        if type(value) is not bool:
            raise TypeError(f'bool required, got {type(value).__name__}')
        return value


class CompactCodec(ScaleCodec):
    type_string = 'Compact<u32>'

    def scale_normalize(self, value):
        if type(value) is bool or not isinstance(value, int):
            raise TypeError(f'{self.type_string} requires an int, got {type(value).__name__}')
        return int(value)

    def scale_deserialize(self, value):
        return self.scale_normalize(int(value))


class TypeRefCodec(CompactCodec):
    """
    Identifier of a type in the portable registry. `None` marks a reference that is not specified yet (e.g. after
    an upgrade) and cannot be encoded.
    """

    type_string = 'SiLookupTypeId'

    def scale_normalize(self, value):
        if value is None:
            return None
        return super().scale_normalize(value)

    def scale_deserialize(self, value):
        if value is None:
            return None
        return super().scale_deserialize(value)

    def scale_references(self, value):
        if value is not None:
            yield [], value

    def __repr__(self):
        return '<TypeRef>'


class TextCodec(ScaleCodec):
    type_string = 'Text'

    def scale_normalize(self, value):
        if not isinstance(value, str):
            raise TypeError(f'Text requires a str, got {type(value).__name__}')
        return str(value)


class BytesCodec(ScaleCodec):
    type_string = 'Bytes'

    def scale_default(self):
        return b''

    def scale_normalize(self, value):
        if type(value) is str:
            if value[0:2] != '0x':
                raise ValueError('Hex string must start with "0x"')
            return bytes.fromhex(value[2:])
        if not isinstance(value, (bytes, bytearray)):
            raise TypeError(f'Bytes requires bytes or hex string, got {type(value).__name__}')
        return bytes(value)

    def scale_serialize(self, value):
        return f'0x{value.hex()}'


class ByteArray(BytesCodec):
    """
    Fixed length byte array, e.g. `[u8; 32]`
    """

    def __init__(self, length: int):
        self.length = length
        self.type_string = f'[u8; {length}]'

    def scale_type(self):
        return register_scale_type(f'{TYPE_PREFIX}{self.type_string}', MetadataByteArray, element_count=self.length)

    def scale_min_size(self):
        return self.length

    def scale_default(self):
        return NO_DEFAULT

    def scale_normalize(self, value):
        value = super().scale_normalize(value)
        if len(value) != self.length:
            raise ValueError(f'{self.type_string} requires {self.length} bytes, got {len(value)}')
        return value


class Vec(ScaleCodec):

    def __init__(self, element):
        self.element = element
        self.type_string = f'Vec<{type_name(element)}>'

    def scale_type(self):
        return register_scale_type(
            f'Vec<{self.element.scale_type()}>', MetadataVec,
            sub_type=self.element.scale_type(), element_min_size=self.element.scale_min_size()
        )

    def scale_default(self):
        return ()

    def scale_normalize(self, value):
        if isinstance(value, (str, bytes, bytearray, dict)):
            raise TypeError(f'{self.type_string} requires a sequence, got {type(value).__name__}')
        return tuple(self.element.scale_normalize(item) for item in value)

    def scale_serialize(self, value):
        return [self.element.scale_serialize(item) for item in value]

    def scale_deserialize(self, value):
        return tuple(self.element.scale_deserialize(item) for item in value)

    def scale_references(self, value):
        for idx, item in enumerate(value):
            for path, type_id in self.element.scale_references(item):
                yield [idx] + path, type_id


class Option(ScaleCodec):
    scale_nullable = True

    def __init__(self, inner):
        self.inner = inner
        self.type_string = f'Option<{type_name(inner)}>'

    def scale_type(self):
        return register_scale_type(
            f'Option<{self.inner.scale_type()}>', MetadataOption, sub_type=self.inner.scale_type()
        )

    def scale_default(self):
        return None

    def scale_normalize(self, value):
        if value is None:
            return None
        return self.inner.scale_normalize(value)

    def scale_serialize(self, value):
        if value is None:
            return None
        return self.inner.scale_serialize(value)

    def scale_deserialize(self, value):
        if value is None:
            return None
        return self.inner.scale_deserialize(value)

    def scale_references(self, value):
        if value is not None:
            yield from self.inner.scale_references(value)


class BTreeMap(ScaleCodec):
    """
    Ordered map, encoded as a sequence of (key, value) pairs sorted by key
    """

    def __init__(self, key, value):
        self.key = key
        self.value = value
        self.type_string = f'BTreeMap<{type_name(key)}, {type_name(value)}>'

    def scale_type(self):
        return register_scale_type(
            f'BTreeMap<{self.key.scale_type()}, {self.value.scale_type()}>', MetadataBTreeMap,
            key_type=self.key.scale_type(), value_type=self.value.scale_type(),
            entry_min_size=self.key.scale_min_size() + self.value.scale_min_size()
        )

    def scale_default(self):
        return {}

    def scale_normalize(self, value):
        if not isinstance(value, dict):
            raise TypeError(f'{self.type_string} requires a dict, got {type(value).__name__}')
        return {self.key.scale_normalize(k): self.value.scale_normalize(v) for k, v in value.items()}

    def scale_serialize(self, value):
        return {self.key.scale_serialize(k): self.value.scale_serialize(v) for k, v in value.items()}

    def scale_deserialize(self, value):
        return {self.key.scale_deserialize(k): self.value.scale_deserialize(v) for k, v in value.items()}

    def scale_references(self, value):
        for key, item in value.items():
            for path, type_id in self.value.scale_references(item):
                yield [key] + path, type_id


class UnitEnum(ScaleCodec):
    """
    Enum without associated data, mapping a Python `enum.Enum` to wire indices. The same Python enum can be encoded
    with different index tables, e.g. storage hashers of different metadata versions, so every table needs its own
    `type_string`.
    """

    def __init__(self, enum_cls, members, type_string: str = None):
        self.enum_cls = enum_cls
        self.members = tuple(members)
        self.type_string = type_string or enum_cls.__name__

    def scale_type(self):
        type_string = f'{TYPE_PREFIX}{self.type_string}'
        if not is_registered(type_string):
            runtime_config.update_type_registry_types({
                type_string: {'type': 'enum', 'base_class': 'MetadataUnitEnum', 'value_list': list(self.members)}
            })
        return type_string

    def scale_encode(self, value, output):
        if value not in self.members:
            raise MetadataEncodeError(f'{value} cannot be encoded as {self.type_string}')
        super().scale_encode(value, output)

    def scale_normalize(self, value):
        if isinstance(value, self.enum_cls):
            return value
        try:
            return self.enum_cls(value)
        except ValueError:
            raise ValueError(f'"{value}" is not a valid {self.enum_cls.__name__}')

    def scale_serialize(self, value):
        return value.value


U8 = UInt('u8', 1)
U16 = UInt('u16', 2)
U32 = UInt('u32', 4)
U64 = UInt('u64', 8)
Bool = BoolCodec()
Compact = CompactCodec()
TypeRef = TypeRefCodec()
Text = TextCodec()
Bytes = BytesCodec()


class Struct:
    """
    Immutable record encoded as the concatenation of its `scale_fields`, in declaration order.

    Subclasses declare `scale_fields` as a tuple of (name, codec) pairs; the class itself implements the codec protocol
    so records can be nested in other records, `Vec` or `Option`. On first use the record is registered as a struct
    type in `runtime_config`, decoding to an instance of the record class.
    """

    scale_fields = ()
    scale_defaults = {}
    scale_nullable = False

    def __init__(self, **kwargs):
        for name, codec in type(self).scale_fields:
            if name in kwargs:
                value = kwargs.pop(name)
            elif name in type(self).scale_defaults:
                value = type(self).scale_defaults[name]
                if callable(value):
                    value = value()
            else:
                value = codec.scale_default()
                if value is NO_DEFAULT:
                    raise TypeError(f"{self.__class__.__name__}() missing field '{name}'")

            object.__setattr__(self, name, codec.scale_normalize(value))

        if kwargs:
            raise TypeError(f"{self.__class__.__name__}() got unexpected field(s): {', '.join(kwargs)}")

    def __setattr__(self, key, value):
        raise AttributeError(f'{self.__class__.__name__} is immutable')

    def __delattr__(self, item):
        raise AttributeError(f'{self.__class__.__name__} is immutable')

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return all(getattr(self, name) == getattr(other, name) for name, _ in type(self).scale_fields)

    __hash__ = None

    def __repr__(self):
        values = ', '.join(f'{name}={getattr(self, name)!r}' for name, _ in type(self).scale_fields)
        return f'{self.__class__.__name__}({values})'

    def replace(self, **changes) -> 'Struct':
        values = {name: getattr(self, name) for name, _ in type(self).scale_fields}
        values.update(changes)
        return self.__class__(**values)

    def encode(self) -> bytes:
        output = bytearray()
        self.scale_encode(self, output)
        return bytes(output)

    @classmethod
    def decode(cls, data: Union[ScaleBytes, bytes, bytearray, str]):
        data = to_scale_bytes(data)
        value = cls.scale_decode(data)
        if data.offset != data.length:
            raise MalformedPayload(
                f'{data.length - data.offset} trailing bytes after {cls.__name__}', offset=data.offset
            )
        return value

    def serialize(self):
        return self.scale_serialize(self)

    @classmethod
    def deserialize(cls, value):
        return cls.scale_deserialize(value)

    def type_references(self) -> list:
        """
        List all type references contained in this record

        Returns
        -------
        list of (path, type_id) tuples
        """
        return [(format_path(path), type_id) for path, type_id in self.scale_references(self)]

    # Codec protocol

    @classmethod
    def _from_decoded(cls, values: dict):
        obj = cls.__new__(cls)
        for name, value in values.items():
            object.__setattr__(obj, name, value)
        return obj

    @classmethod
    def _register_struct(cls) -> str:
        type_string = f'{TYPE_PREFIX}{cls.__name__}'
        if not is_registered(type_string):
            runtime_config.update_type_registry_types({
                type_string: {
                    'type': 'struct',
                    'base_class': 'MetadataStruct',
                    'type_mapping': [[name, codec.scale_type()] for name, codec in cls.scale_fields]
                }
            })
            runtime_config.get_decoder_class(type_string).record_class = cls
        elif runtime_config.get_decoder_class(type_string).record_class is not cls:
            raise TypeError(f'Another record named "{cls.__name__}" is already registered')
        return type_string

    @classmethod
    def scale_type(cls) -> str:
        return cls._register_struct()

    @classmethod
    def scale_field_values(cls, value) -> dict:
        values = {}
        for name, codec in cls.scale_fields:
            field_value = getattr(value, name)
            if field_value is None and not codec.scale_nullable:
                raise MetadataEncodeError(f'{cls.__name__}.{name} is unspecified')
            values[name] = field_value
        return values

    @classmethod
    def scale_decode(cls, data: ScaleBytes):
        return decode_scale_object(cls.scale_type(), data)

    @classmethod
    def scale_encode(cls, value, output: bytearray):
        if not isinstance(value, cls):
            raise MetadataEncodeError(f'Expected {cls.__name__}, got {type(value).__name__}')
        output += encode_scale_object(type(value).scale_type(), value)

    @classmethod
    def scale_min_size(cls) -> int:
        return sum(codec.scale_min_size() for _, codec in cls.scale_fields)

    @classmethod
    def scale_default(cls):
        return NO_DEFAULT

    @classmethod
    def scale_normalize(cls, value):
        if value is None or isinstance(value, cls):
            return value
        if type(value) is dict:
            return cls(**value)
        raise TypeError(f'Expected {cls.__name__}, got {type(value).__name__}')

    @classmethod
    def scale_serialize(cls, value):
        if value is None:
            return None
        return {name: codec.scale_serialize(getattr(value, name)) for name, codec in type(value).scale_fields}

    @classmethod
    def scale_deserialize(cls, value):
        if value is None:
            return None
        if type(value) is not dict:
            raise TypeError(f'Expected dict to deserialize {cls.__name__}, got {type(value).__name__}')
        fields = dict(cls.scale_fields)
        unknown = set(value) - set(fields)
        if unknown:
            raise ValueError(f"Unknown field(s) for {cls.__name__}: {', '.join(sorted(unknown))}")
        return cls(**{name: fields[name].scale_deserialize(item) for name, item in value.items()})

    @classmethod
    def scale_references(cls, value):
        for name, codec in type(value).scale_fields:
            field_value = getattr(value, name)
            if field_value is None:
                continue
            for path, type_id in codec.scale_references(field_value):
                yield [name] + path, type_id


class Enum(Struct):
    """
    Enum with associated data. The root class lists its variant classes in `scale_variants`, in wire index order; each
    variant is a subclass of the root declaring its own `scale_fields` and `variant_name`.

    The root is registered as an enum type in `runtime_config`, each variant as a struct type.
    """

    scale_variants = ()
    variant_name = None

    @classmethod
    def enum_root(cls):
        for klass in cls.__mro__:
            if klass.__dict__.get('scale_variants'):
                return klass
        raise TypeError(f'{cls.__name__} has no variants')

    @classmethod
    def get_variant_class(cls, name: str):
        for variant in cls.enum_root().scale_variants:
            if variant.variant_name == name:
                return variant
        raise ValueError(f'"{name}" is not a variant of {cls.enum_root().__name__}')

    @property
    def variant_index(self) -> int:
        return self.enum_root().scale_variants.index(type(self))

    def __repr__(self):
        values = ', '.join(f'{name}={getattr(self, name)!r}' for name, _ in type(self).scale_fields)
        return f'{self.enum_root().__name__}.{self.variant_name}({values})'

    @classmethod
    def scale_type(cls):
        root = cls.enum_root()
        type_string = f'{TYPE_PREFIX}{root.__name__}'
        if not is_registered(type_string):
            runtime_config.update_type_registry_types({
                type_string: {
                    'type': 'enum',
                    'base_class': 'MetadataEnum',
                    'type_mapping': [
                        [variant.variant_name, variant._register_struct()] for variant in root.scale_variants
                    ]
                }
            })
            runtime_config.get_decoder_class(type_string).variant_records = True
        return type_string

    @classmethod
    def scale_encode(cls, value, output):
        root = cls.enum_root()
        if type(value) not in root.scale_variants:
            raise MetadataEncodeError(f'Expected a variant of {root.__name__}, got {type(value).__name__}')
        output += encode_scale_object(root.scale_type(), value)

    @classmethod
    def scale_min_size(cls):
        return 1

    @classmethod
    def scale_normalize(cls, value):
        root = cls.enum_root()
        if value is None or isinstance(value, root):
            return value
        raise TypeError(f'Expected a variant of {root.__name__}, got {type(value).__name__}')

    @classmethod
    def scale_serialize(cls, value):
        if value is None:
            return None
        if not type(value).scale_fields:
            return value.variant_name
        return {value.variant_name: Struct.scale_serialize.__func__(type(value), value)}

    @classmethod
    def scale_deserialize(cls, value):
        if value is None:
            return None
        if type(value) is str:
            return cls.get_variant_class(value)()
        if type(value) is not dict or len(value) != 1:
            raise ValueError(f'Cannot deserialize {cls.enum_root().__name__} from {value!r}')
        name, fields = next(iter(value.items()))
        variant = cls.get_variant_class(name)
        return Struct.scale_deserialize.__func__(variant, fields or {})
