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

""" scalecodec decoder classes for metadata types

Metadata records, sequences, options, maps and enums are decoded and encoded by scalecodec `ScaleType` classes,
registered in a private `RuntimeConfigurationObject`. The classes in this module extend the scalecodec classes with
checks against the remaining length of the `ScaleBytes` buffer before every length prefixed read, so a truncated or
lying payload fails with `MalformedPayload` (including the location of the failure) instead of producing a partial
result.

Dynamic decoder classes are named with a "metadata::" prefix or generic brackets, so they are never picked up by the
type registry of other `RuntimeConfigurationObject` instances in the same process.
"""

from typing import Union

from scalecodec.base import ScaleBytes, RuntimeConfigurationObject
from scalecodec.exceptions import RemainingScaleBytesNotEmptyException, InvalidScaleTypeValueException
from scalecodec.types import CompactU32, String, Bytes, FixedLengthArray, Vec, Option, BTreeMap, Struct, Enum

from framemetadata.constants import MAX_U32
from framemetadata.exceptions import MalformedPayload, MetadataEncodeError

__all__ = [
    'runtime_config', 'TYPE_PREFIX', 'SCALE_DECODE_ERRORS', 'SCALE_ENCODE_ERRORS', 'to_scale_bytes',
    'ensure_available', 'decode_scale_object', 'encode_scale_object', 'is_registered', 'register_scale_type',
    'MetadataCompact', 'MetadataTypeRef', 'MetadataText', 'MetadataBytes', 'MetadataByteArray', 'MetadataVec',
    'MetadataOption', 'MetadataBTreeMap', 'MetadataUnitEnum', 'MetadataStruct', 'MetadataEnum'
]

# Errors raised by scalecodec decoder classes for invalid input
SCALE_DECODE_ERRORS = (
    RemainingScaleBytesNotEmptyException, InvalidScaleTypeValueException, ValueError, NotImplementedError
)
SCALE_ENCODE_ERRORS = (InvalidScaleTypeValueException, ValueError, TypeError, NotImplementedError)

TYPE_PREFIX = 'metadata::'


def to_scale_bytes(data: Union[ScaleBytes, bytes, bytearray, str]) -> ScaleBytes:
    if type(data) is ScaleBytes:
        return data
    if type(data) in (bytes, bytearray):
        return ScaleBytes(bytearray(data))
    if type(data) is str:
        if data[0:2] != '0x':
            raise ValueError('Hex string data must start with "0x"')
        try:
            return ScaleBytes(bytearray.fromhex(data[2:]))
        except ValueError:
            raise ValueError(f'Invalid hex data "{data[0:16]}..."')
    raise TypeError(f'Cannot decode from {type(data).__name__}, expected bytes, hex string or ScaleBytes')


def ensure_available(data: ScaleBytes, length: int, type_string: str):
    remaining = data.length - data.offset
    if length > remaining:
        raise MalformedPayload(
            f'Unexpected end of data decoding {type_string}: {length} bytes needed, {max(remaining, 0)} available',
            offset=data.offset
        )


def process_member(decoder, type_string: str, segment):
    """
    Decode a member (field, element or variant) of a composite decoder, the location of a failure is prefixed with
    given segment
    """
    offset = decoder.data.offset
    try:
        return decoder.process_type(type_string).value
    except MalformedPayload as e:
        e.add_context(segment)
        raise
    except SCALE_DECODE_ERRORS as e:
        error = MalformedPayload(str(e), offset=offset)
        error.add_context(segment)
        raise error from e


class MetadataCompact(CompactU32):
    """
    Compact<u32>, the length prefix of sequences and strings and the encoding of type ids
    """

    def process(self):
        offset = self.data.offset
        ensure_available(self.data, 1, 'Compact<u32>')

        mode_byte = self.data.data[offset]
        mode = mode_byte & 0b11

        if mode == 0:
            byte_length = 1
        elif mode == 1:
            byte_length = 2
        elif mode == 2:
            byte_length = 4
        else:
            byte_length = (mode_byte >> 2) + 5

        if byte_length > 5:
            raise MalformedPayload(f'Compact<u32> with {byte_length - 1} data bytes exceeds u32', offset=offset)

        ensure_available(self.data, byte_length, 'Compact<u32>')
        value = super().process()

        if value > MAX_U32:
            raise MalformedPayload(f'Compact<u32> value {value} exceeds u32', offset=offset)

        return value

    def process_encode(self, value):
        if type(value) is not int or not 0 <= value <= MAX_U32:
            raise MetadataEncodeError(f'{value!r} is not a valid Compact<u32>')
        return super().process_encode(value)


class MetadataTypeRef(MetadataCompact):

    def process_encode(self, value):
        if value is None:
            raise MetadataEncodeError('Type reference is unspecified')
        return super().process_encode(value)


class MetadataText(String):
    """
    UTF-8 string, invalid UTF-8 is rejected instead of being represented as hex
    """

    def process(self):
        offset = self.data.offset
        length = self.process_type('Compact<u32>').value
        ensure_available(self.data, length, 'Text')
        self.value_object = self.get_next_bytes(length)
        try:
            return self.value_object.decode('utf-8')
        except UnicodeDecodeError:
            raise MalformedPayload('Invalid UTF-8 in Text', offset=offset)

    def process_encode(self, value):
        if type(value) is not str:
            raise MetadataEncodeError(f'{value!r} is not a valid Text')
        # Encoded as bytes, so text starting with "0x" is not interpreted as hex
        return super().process_encode(value.encode('utf-8'))


class MetadataBytes(Bytes):

    def process(self):
        length = self.process_type('Compact<u32>').value
        ensure_available(self.data, length, 'Bytes')
        self.value_object = self.get_next_bytes(length)
        return bytes(self.value_object)

    def process_encode(self, value):
        return super().process_encode(bytes(value))


class MetadataByteArray(FixedLengthArray):
    sub_type = 'u8'

    def process(self):
        ensure_available(self.data, self.element_count, f'[u8; {self.element_count}]')
        self.value_object = self.get_next_bytes(self.element_count)
        return bytes(self.value_object)

    def process_encode(self, value):
        return super().process_encode(bytes(value))


class MetadataVec(Vec):
    element_min_size = 1

    def process(self):
        offset = self.data.offset
        element_count = self.process_type('Compact<u32>').value

        # Every element occupies at least `element_min_size` bytes, so the length prefix can be checked upfront
        required = element_count * max(self.element_min_size, 1)
        remaining = self.data.length - self.data.offset
        if required > remaining:
            raise MalformedPayload(
                f'{self.__class__.__name__} length {element_count} requires at least {required} bytes, '
                f'{remaining} available',
                offset=offset
            )

        result = tuple(process_member(self, self.sub_type, idx) for idx in range(element_count))
        self.value_object = result
        return result

    def process_encode(self, value):
        return super().process_encode(list(value))


class MetadataOption(Option):

    def process(self):
        offset = self.data.offset
        ensure_available(self.data, 1, self.__class__.__name__)
        flag = self.data.data[offset]
        if flag > 1:
            raise MalformedPayload(f'Invalid {self.__class__.__name__} flag {flag}', offset=offset)
        return super().process()


class MetadataBTreeMap(BTreeMap):
    """
    Ordered map, encoded as a sequence of (key, value) pairs sorted by key. Decodes to a dict.
    """
    key_type = None
    value_type = None
    entry_min_size = 1

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.map_key = self.key_type
        self.map_value = self.value_type

    def process(self):
        offset = self.data.offset
        element_count = self.process_type('Compact<u32>').value

        required = element_count * max(self.entry_min_size, 1)
        remaining = self.data.length - self.data.offset
        if required > remaining:
            raise MalformedPayload(
                f'{self.__class__.__name__} length {element_count} requires at least {required} bytes, '
                f'{remaining} available',
                offset=offset
            )

        result = {}
        for idx in range(element_count):
            key_offset = self.data.offset
            key = process_member(self, self.map_key, idx)
            if key in result:
                error = MalformedPayload(f'Duplicate key {key!r} in {self.__class__.__name__}', offset=key_offset)
                error.add_context(idx)
                raise error
            result[key] = process_member(self, self.map_value, idx)

        self.value_object = result
        return result

    def process_encode(self, value):
        return super().process_encode([(key, value[key]) for key in sorted(value)])


class MetadataUnitEnum(Enum):
    """
    Enum without associated data, `value_list` holds the Python enum members in wire index order
    """

    def process(self):
        offset = self.data.offset
        ensure_available(self.data, 1, self.__class__.__name__)
        if self.data.data[offset] >= len(self.value_list):
            raise MalformedPayload(
                f'Invalid {self.__class__.__name__} variant index {self.data.data[offset]}', offset=offset
            )
        return super().process()


class MetadataStruct(Struct):
    """
    Struct decoding to an instance of `record_class`, or to a dict when no record class is set
    """
    record_class = None

    def process(self):
        values = {}
        for name, type_string in self.type_mapping:
            values[name] = process_member(self, type_string, name)

        self.value_object = values

        if self.record_class is None:
            return values
        return self.record_class._from_decoded(values)

    def process_encode(self, value):
        if self.record_class is not None:
            if not isinstance(value, self.record_class):
                raise MetadataEncodeError(f'Expected {self.record_class.__name__}, got {type(value).__name__}')
            if type(value) is not self.record_class:
                return self.runtime_config.create_scale_object(type(value).scale_type()).encode(value)
            value = self.record_class.scale_field_values(value)
        return super().process_encode(value)


class MetadataEnum(Enum):
    """
    Enum with associated data. With `variant_records` set, the variant types decode to records which carry their own
    variant name, otherwise a variant decodes to `{name: value}` like the scalecodec `Enum`.
    """
    variant_records = False

    def process(self):
        offset = self.data.offset
        ensure_available(self.data, 1, self.__class__.__name__)

        index = self.data.data[offset]
        if index >= len(self.type_mapping):
            raise MalformedPayload(f'Invalid {self.__class__.__name__} variant index {index}', offset=offset)

        self.index = self.get_next_u8()
        name, type_string = self.type_mapping[index]
        value = process_member(self, type_string, name)

        self.value_object = (name, value)

        if self.variant_records:
            return value
        return {name: value}

    def process_encode(self, value):
        if self.variant_records:
            value = {value.variant_name: value}
        return super().process_encode(value)


runtime_config = RuntimeConfigurationObject(implements_scale_info=True)
runtime_config.update_type_registry_types({
    'Compact<u32>': 'MetadataCompact',
    'SiLookupTypeId': 'MetadataTypeRef',
    'Text': 'MetadataText',
    'Bytes': 'MetadataBytes'
})


def is_registered(type_string: str) -> bool:
    return type_string.lower() in runtime_config.type_registry['types']


def register_scale_type(type_string: str, base_class, **attributes) -> str:
    """
    Register a dynamic subclass of `base_class` as `type_string` in `runtime_config`, unless already present

    Parameters
    ----------
    type_string: name of the type, must start with "metadata::" or contain generic brackets
    base_class: scalecodec decoder class
    attributes: class attributes of the new decoder class, e.g. `sub_type` or `type_mapping`

    Returns
    -------
    str
    """
    if not is_registered(type_string):
        if not type_string.startswith(TYPE_PREFIX) and '<' not in type_string:
            raise ValueError(f'Type "{type_string}" must be prefixed with "{TYPE_PREFIX}"')
        decoder_class = type(type_string, (base_class,), attributes)
        runtime_config.type_registry['types'][type_string.lower()] = decoder_class
    return type_string


def decode_scale_object(type_string: str, data: ScaleBytes):
    offset = data.offset
    try:
        return runtime_config.create_scale_object(type_string, data=data).decode(check_remaining=False)
    except MalformedPayload:
        raise
    except SCALE_DECODE_ERRORS as e:
        raise MalformedPayload(str(e), offset=offset) from e


def encode_scale_object(type_string: str, value) -> bytes:
    try:
        return bytes(runtime_config.create_scale_object(type_string).encode(value).data)
    except MetadataEncodeError:
        raise
    except SCALE_ENCODE_ERRORS as e:
        raise MetadataEncodeError(str(e)) from e
