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

""" One-way conversion of metadata to a newer version

Only versions that are a structural superset of their predecessor can be reached. Fields that only exist in the
newer version get these values:

* V10 -> V11: `extrinsic` is None (unspecified)
* V11 -> V12: module `index` is the position of the module
* V14 -> V15: pallet `docs` are empty; the extrinsic address, call, signature and extra types are the generic
  parameters of the V14 extrinsic type with that name (None when absent); the outer call enum is the `Call`
  parameter, the outer event and error enums are None; `apis` and `custom` are empty

A None value marks a field the producer still has to fill in, encoding such a tree raises `MetadataEncodeError`.
"""

import logging

from framemetadata.constants import DEPRECATED_VERSIONS, LATEST_VERSION
from framemetadata.exceptions import UnsupportedDowngrade, UnsupportedUpgrade
from framemetadata.scale import legacy
from framemetadata.scale.metadata import RuntimeMetadataV14, RuntimeMetadataV15, PalletMetadataV15, \
    ExtrinsicMetadataV15, OuterEnums, CustomMetadata

logger = logging.getLogger(__name__)


def field_values(record) -> dict:
    return {name: getattr(record, name) for name, _ in type(record).scale_fields}


def convert_storage(storage, storage_cls, entry_cls):
    if storage is None:
        return None
    return storage_cls(
        prefix=storage.prefix,
        entries=[entry_cls(**field_values(entry)) for entry in storage.entries]
    )


def v8_to_v9(metadata: legacy.RuntimeMetadataV8) -> legacy.RuntimeMetadataV9:
    return legacy.RuntimeMetadataV9(
        modules=[legacy.ModuleMetadataV9(**field_values(module)) for module in metadata.modules]
    )


def v9_to_v10(metadata: legacy.RuntimeMetadataV9) -> legacy.RuntimeMetadataV10:
    modules = []
    for module in metadata.modules:
        values = field_values(module)
        values['storage'] = convert_storage(
            module.storage, legacy.StorageMetadataV10, legacy.StorageEntryMetadataV10
        )
        modules.append(legacy.ModuleMetadataV10(**values))

    return legacy.RuntimeMetadataV10(modules=modules)


def v10_to_v11(metadata: legacy.RuntimeMetadataV10) -> legacy.RuntimeMetadataV11:
    modules = []
    for module in metadata.modules:
        values = field_values(module)
        values['storage'] = convert_storage(
            module.storage, legacy.StorageMetadataV11, legacy.StorageEntryMetadataV11
        )
        modules.append(legacy.ModuleMetadataV11(**values))

    return legacy.RuntimeMetadataV11(modules=modules, extrinsic=None)


def v11_to_v12(metadata: legacy.RuntimeMetadataV11) -> legacy.RuntimeMetadataV12:
    return legacy.RuntimeMetadataV12(
        modules=[
            legacy.ModuleMetadataV12(index=position, **field_values(module))
            for position, module in enumerate(metadata.modules)
        ],
        extrinsic=metadata.extrinsic
    )


def v12_to_v13(metadata: legacy.RuntimeMetadataV12) -> legacy.RuntimeMetadataV13:
    modules = []
    for module in metadata.modules:
        values = field_values(module)
        values['storage'] = convert_storage(
            module.storage, legacy.StorageMetadataV13, legacy.StorageEntryMetadataV13
        )
        modules.append(legacy.ModuleMetadataV13(**values))

    return legacy.RuntimeMetadataV13(modules=modules, extrinsic=metadata.extrinsic)


def v14_to_v15(metadata: RuntimeMetadataV14) -> RuntimeMetadataV15:
    extrinsic = ExtrinsicMetadataV15(
        version=metadata.extrinsic.version,
        address_ty=metadata.get_extrinsic_param('Address'),
        call_ty=metadata.get_extrinsic_param('Call'),
        signature_ty=metadata.get_extrinsic_param('Signature'),
        extra_ty=metadata.get_extrinsic_param('Extra'),
        signed_extensions=metadata.extrinsic.signed_extensions
    )

    return RuntimeMetadataV15(
        types=metadata.types,
        pallets=[PalletMetadataV15(docs=(), **field_values(pallet)) for pallet in metadata.pallets],
        extrinsic=extrinsic,
        ty=metadata.ty,
        apis=(),
        outer_enums=OuterEnums(call_enum_ty=extrinsic.call_ty, event_enum_ty=None, error_enum_ty=None),
        custom=CustomMetadata(map={})
    )


UPGRADES = {
    8: v8_to_v9,
    9: v9_to_v10,
    10: v10_to_v11,
    11: v11_to_v12,
    12: v12_to_v13,
    14: v14_to_v15
}


def upgrade(metadata, version: int = None):
    """
    Convert metadata to a newer version, one version at a time

    Parameters
    ----------
    metadata: RuntimeMetadataV8 .. RuntimeMetadataV16
    version: target version, defaults to the newest version reachable from the version of `metadata`

    Returns
    -------
    Metadata tree of the target version
    """
    source = metadata.version

    if version is None:
        version = source
        while version in UPGRADES:
            version += 1

    if version < source:
        raise UnsupportedDowngrade(source, version)

    if version in DEPRECATED_VERSIONS or version > LATEST_VERSION:
        raise UnsupportedUpgrade(source, version, f'V{version} is not a supported metadata version')

    for step_version in range(source, version):
        if step_version not in UPGRADES:
            raise UnsupportedUpgrade(
                source, version, f'V{step_version} to V{step_version + 1} is not a structural superset'
            )

    for step_version in range(source, version):
        logger.debug(f'Upgrading metadata V{step_version} to V{step_version + 1}')
        metadata = UPGRADES[step_version](metadata)

    return metadata
