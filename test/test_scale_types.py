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

import unittest

from scalecodec.base import ScaleBytes
from scalecodec.exceptions import RemainingScaleBytesNotEmptyException, InvalidScaleTypeValueException

from framemetadata.exceptions import MalformedPayload, MetadataEncodeError
from framemetadata.scale.legacy import FunctionMetadata, FunctionArgumentMetadata
from framemetadata.scale.metadata import Deprecated, DeprecationStatus, NotDeprecated, VariantsDeprecated, \
    DeprecationInfo
from framemetadata.scale.types import U8, U32, Bool, Compact, Text, Bytes, ByteArray, Vec, Option, BTreeMap, \
    TypeRef, Struct, to_scale_bytes


def encode(codec, value) -> bytes:
    output = bytearray()
    codec.scale_encode(value, output)
    return bytes(output)


class SwitchSetting(Struct):
    scale_fields = (('name', Text), ('enabled', Bool))


class TestPrimitives(unittest.TestCase):

    def test_u8_decode(self):
        data = ScaleBytes(bytearray(b'\x2a\x01'))
        self.assertEqual(42, U8.scale_decode(data))
        self.assertEqual(1, data.offset)

    def test_u32_encode(self):
        self.assertEqual(b'\x01\x00\x00\x00', encode(U32, 1))

    def test_u8_out_of_range(self):
        with self.assertRaises(MetadataEncodeError):
            encode(U8, 256)

    def test_u32_truncated(self):
        with self.assertRaises(MalformedPayload) as cm:
            U32.scale_decode(ScaleBytes(bytearray(b'\x01\x00')))
        self.assertEqual(0, cm.exception.offset)
        self.assertIsInstance(cm.exception.__cause__, RemainingScaleBytesNotEmptyException)

    def test_bool(self):
        self.assertTrue(Bool.scale_decode(ScaleBytes(bytearray(b'\x01'))))
        self.assertFalse(Bool.scale_decode(ScaleBytes(bytearray(b'\x00'))))
        self.assertEqual(b'\x01', encode(Bool, True))

    def test_bool_invalid(self):
        with self.assertRaises(MalformedPayload) as cm:
            Bool.scale_decode(ScaleBytes(bytearray(b'\x02')))

        self.assertEqual(0, cm.exception.offset)
        self.assertIsInstance(cm.exception.__cause__, InvalidScaleTypeValueException)

    def test_compact_modes(self):
        self.assertEqual(b'\x00', encode(Compact, 0))
        self.assertEqual(b'\xfc', encode(Compact, 63))
        self.assertEqual(b'\x01\x01', encode(Compact, 64))
        self.assertEqual(64, Compact.scale_decode(ScaleBytes(bytearray(b'\x01\x01'))))
        self.assertEqual(2 ** 32 - 1, Compact.scale_decode(ScaleBytes(bytearray(b'\x03\xff\xff\xff\xff'))))

    def test_compact_exceeds_u32(self):
        with self.assertRaises(MalformedPayload):
            Compact.scale_decode(ScaleBytes(bytearray(b'\x07\xff\xff\xff\xff\xff')))

    def test_compact_truncated(self):
        with self.assertRaises(MalformedPayload):
            Compact.scale_decode(ScaleBytes(bytearray(b'\x02\x01')))

    def test_type_ref_unspecified(self):
        with self.assertRaises(MetadataEncodeError):
            encode(TypeRef, None)

    def test_text(self):
        self.assertEqual(b'\x14Hello', encode(Text, 'Hello'))
        self.assertEqual('Hello', Text.scale_decode(ScaleBytes(bytearray(b'\x14Hello'))))

    def test_text_invalid_utf8(self):
        with self.assertRaises(MalformedPayload):
            Text.scale_decode(ScaleBytes(bytearray(b'\x04\xff')))

    def test_text_length_beyond_data(self):
        with self.assertRaises(MalformedPayload):
            Text.scale_decode(ScaleBytes(bytearray(b'\x28abc')))

    def test_bytes_normalize_hex(self):
        self.assertEqual(b'\x01\x02', Bytes.scale_normalize('0x0102'))
        self.assertEqual('0x0102', Bytes.scale_serialize(b'\x01\x02'))

    def test_byte_array(self):
        codec = ByteArray(4)
        self.assertEqual(b'\x01\x02\x03\x04', codec.scale_decode(ScaleBytes(bytearray(b'\x01\x02\x03\x04'))))

        with self.assertRaises(MetadataEncodeError):
            encode(codec, b'\x01')

    def test_to_scale_bytes(self):
        self.assertEqual(bytearray(b'\x01\x02'), to_scale_bytes('0x0102').data)

        with self.assertRaises(ValueError):
            to_scale_bytes('0102')


class TestCompositeCodecs(unittest.TestCase):

    def test_vec(self):
        self.assertEqual((1, 2), Vec(U8).scale_decode(ScaleBytes(bytearray(b'\x08\x01\x02'))))
        self.assertEqual(b'\x08\x01\x02', encode(Vec(U8), [1, 2]))

    def test_vec_lying_length_prefix(self):
        # Claims 3 u32 elements, only 4 bytes follow
        with self.assertRaises(MalformedPayload) as cm:
            Vec(U32).scale_decode(ScaleBytes(bytearray(b'\x0c\x01\x00\x00\x00')))

        self.assertEqual(0, cm.exception.offset)

    def test_vec_huge_length_prefix(self):
        with self.assertRaises(MalformedPayload):
            Vec(Text).scale_decode(ScaleBytes(bytearray(b'\xfe\xff\xff\xff\x00')))

    def test_option(self):
        self.assertIsNone(Option(U8).scale_decode(ScaleBytes(bytearray(b'\x00'))))
        self.assertEqual(5, Option(U8).scale_decode(ScaleBytes(bytearray(b'\x01\x05'))))
        self.assertEqual(b'\x00', encode(Option(U8), None))

    def test_option_invalid_flag(self):
        with self.assertRaises(MalformedPayload):
            Option(U8).scale_decode(ScaleBytes(bytearray(b'\x02\x05')))

    def test_btree_map_sorted_encode(self):
        self.assertEqual(b'\x08\x01\x0a\x02\x05', encode(BTreeMap(U8, U8), {2: 5, 1: 10}))

    def test_btree_map_duplicate_key(self):
        with self.assertRaises(MalformedPayload):
            BTreeMap(U8, U8).scale_decode(ScaleBytes(bytearray(b'\x08\x01\x0a\x01\x14')))


class TestStruct(unittest.TestCase):

    def test_struct_encode_decode(self):
        function = FunctionMetadata(
            name='transfer',
            arguments=[FunctionArgumentMetadata(name='dest', ty='T::AccountId')],
            documentation=['Transfer some balance']
        )

        self.assertEqual(function, FunctionMetadata.decode(function.encode()))
        self.assertEqual(('Transfer some balance',), function.documentation)

    def test_struct_default_fields(self):
        function = FunctionMetadata(name='remark')
        self.assertEqual((), function.arguments)
        self.assertEqual((), function.documentation)

    def test_struct_missing_field(self):
        with self.assertRaises(TypeError):
            FunctionArgumentMetadata(name='dest')

    def test_struct_unknown_field(self):
        with self.assertRaises(TypeError):
            FunctionArgumentMetadata(name='dest', ty='u32', is_compact=True)

    def test_struct_immutable(self):
        argument = FunctionArgumentMetadata(name='dest', ty='T::AccountId')

        with self.assertRaises(AttributeError):
            argument.name = 'source'

        self.assertEqual('source', argument.replace(name='source').name)
        self.assertEqual('dest', argument.name)

    def test_struct_from_dict(self):
        function = FunctionMetadata(name='transfer', arguments=[{'name': 'dest', 'ty': 'T::AccountId'}])
        self.assertEqual(FunctionArgumentMetadata(name='dest', ty='T::AccountId'), function.arguments[0])

    def test_struct_trailing_bytes(self):
        data = FunctionArgumentMetadata(name='a', ty='b').encode() + b'\x00'

        with self.assertRaises(MalformedPayload):
            FunctionArgumentMetadata.decode(data)

    def test_malformed_path(self):
        # Argument name claims 2 bytes, only 1 available
        with self.assertRaises(MalformedPayload) as cm:
            FunctionMetadata.decode(b'\x08ab\x04\x08x')

        self.assertEqual(['arguments', 0, 'name'], cm.exception.path)
        self.assertEqual('arguments[0].name', cm.exception.location)

    def test_malformed_nested_bool(self):
        with self.assertRaises(MalformedPayload) as cm:
            SwitchSetting.decode(b'\x04a\x02')

        self.assertEqual(['enabled'], cm.exception.path)
        self.assertEqual(2, cm.exception.offset)
        self.assertIsInstance(cm.exception.__cause__, InvalidScaleTypeValueException)

    def test_malformed_nested_truncated(self):
        with self.assertRaises(MalformedPayload) as cm:
            SwitchSetting.decode(b'\x04a')

        self.assertEqual(['enabled'], cm.exception.path)
        self.assertEqual(2, cm.exception.offset)


class TestEnum(unittest.TestCase):

    def test_unit_variant(self):
        self.assertEqual(b'\x00', NotDeprecated().encode())
        self.assertEqual(NotDeprecated(), DeprecationStatus.decode(b'\x00'))
        self.assertEqual('NotDeprecated', NotDeprecated().serialize())

    def test_variant_with_fields(self):
        status = Deprecated(note='Use transfer_keep_alive', since='1.2.0')

        decoded = DeprecationStatus.decode(status.encode())
        self.assertEqual(status, decoded)
        self.assertEqual(2, decoded.variant_index)
        self.assertEqual(
            {'Deprecated': {'note': 'Use transfer_keep_alive', 'since': '1.2.0'}}, decoded.serialize()
        )
        self.assertEqual(status, DeprecationStatus.deserialize(status.serialize()))

    def test_nested_enum_map(self):
        info = VariantsDeprecated(variants={3: Deprecated(note='gone', since=None), 1: NotDeprecated()})

        self.assertEqual(info, DeprecationInfo.decode(info.encode()))
        self.assertEqual(b'\x02\x08\x01\x00\x03\x02\x10gone\x00', info.encode())

    def test_invalid_variant_index(self):
        with self.assertRaises(MalformedPayload):
            DeprecationStatus.decode(b'\x03')

    def test_wrong_enum_type(self):
        with self.assertRaises(TypeError):
            VariantsDeprecated(variants={1: 'NotDeprecated'})


if __name__ == '__main__':
    unittest.main()
