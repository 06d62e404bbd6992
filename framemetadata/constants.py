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

# 'meta' as little endian u32
META_RESERVED = 0x6174656d
METADATA_MAGIC = META_RESERVED.to_bytes(4, byteorder='little')

# Enum fillers V0 - V7 can never be decoded
DEPRECATED_VERSIONS = tuple(range(0, 8))

REGISTRY_VERSIONS = (14, 15, 16)

LATEST_VERSION = 16

MAX_U32 = 2 ** 32 - 1
