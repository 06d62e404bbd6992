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


def format_path(segments) -> str:
    """
    Render a list of field names (str) and sequence indices (int) as e.g. `pallets[2].storage.entries[0]`
    """
    location = ''
    for segment in segments:
        if type(segment) is int:
            location += f'[{segment}]'
        elif location:
            location += f'.{segment}'
        else:
            location = str(segment)
    return location


class MetadataException(Exception):
    pass


class BadMagic(MetadataException):

    def __init__(self, found):
        if type(found) in (bytes, bytearray):
            self.found = bytes(found)
            found_text = f'0x{self.found.hex()}'
        else:
            # Not a u32, e.g. a malformed JSON magic
            self.found = found
            found_text = repr(found)
        super().__init__(f'Invalid metadata magic "{found_text}", expected "0x6d657461" ("meta")')


class UnsupportedVersion(MetadataException):

    def __init__(self, version: int, supported=None):
        self.version = version
        self.supported = tuple(supported or ())
        message = f'Metadata version V{version} is not supported'
        if self.supported:
            message += f' (supported: {", ".join(f"V{v}" for v in self.supported)})'
        super().__init__(message)


class MalformedPayload(MetadataException, ValueError):

    def __init__(self, message: str, offset: int = None, version: int = None):
        self.message = message
        self.offset = offset
        self.version = version
        self.path = []
        super().__init__(message)

    def add_context(self, segment):
        """
        Prepend a field name (str) or sequence index (int) to the location of the failure
        """
        self.path.insert(0, segment)

    @property
    def location(self) -> str:
        return format_path(self.path)

    def __str__(self):
        parts = []
        if self.version is not None:
            parts.append(f'V{self.version}')
        if self.path:
            parts.append(self.location)
        if self.offset is not None:
            parts.append(f'offset {self.offset}')

        if parts:
            return f'{self.message} ({", ".join(parts)})'
        return self.message


class DanglingTypeReference(MetadataException):

    def __init__(self, type_id: int, path: str = None):
        self.type_id = type_id
        self.path = path
        if path:
            super().__init__(f'Type {type_id} referenced by "{path}" not found in registry')
        else:
            super().__init__(f'Type {type_id} not found in registry')


class MetadataEncodeError(MetadataException, ValueError):
    pass


class MetadataConversionError(MetadataException):
    pass


class UnsupportedDowngrade(MetadataConversionError):

    def __init__(self, source: int, target: int):
        self.source = source
        self.target = target
        super().__init__(f'Conversion of metadata V{source} to older version V{target} is not supported')


class UnsupportedUpgrade(MetadataConversionError):

    def __init__(self, source: int, target: int, reason: str = None):
        self.source = source
        self.target = target
        message = f'No lossless conversion from metadata V{source} to V{target}'
        if reason:
            message += f': {reason}'
        super().__init__(message)
