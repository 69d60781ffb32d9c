"""Stored media assets.

An asset is either a legacy file on the serving host's disk (LocalAsset) or
an object in S3 (S3Asset). Rows store the tagged JSON form; parse_asset also
reads the older untagged shapes ({"filePath": ...} / {"s3Key": ...}).
"""

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


class LocalAsset(BaseModel):
    kind: Literal["local"] = "local"
    file_path: str
    content_type: Optional[str] = None


class S3Asset(BaseModel):
    kind: Literal["s3"] = "s3"
    s3_key: str
    content_type: str = "application/octet-stream"


StoredAsset = Annotated[Union[LocalAsset, S3Asset], Field(discriminator="kind")]

_asset_adapter = TypeAdapter(StoredAsset)


def parse_asset(data: Optional[Dict[str, Any]]) -> Optional[Union[LocalAsset, S3Asset]]:
    """Build an asset from stored JSON; None when nothing usable is stored."""
    if not data:
        return None
    if "kind" in data:
        return _asset_adapter.validate_python(data)

    content_type = data.get("content_type") or data.get("contentType")
    s3_key = data.get("s3_key") or data.get("s3Key")
    if s3_key:
        return S3Asset(s3_key=s3_key, content_type=content_type or "application/octet-stream")
    file_path = data.get("file_path") or data.get("filePath")
    if file_path:
        return LocalAsset(file_path=file_path, content_type=content_type)
    return None


def dump_asset(asset: Optional[Union[LocalAsset, S3Asset]]) -> Optional[Dict[str, Any]]:
    return asset.model_dump() if asset is not None else None


def asset_s3_key(asset: Optional[Union[LocalAsset, S3Asset]]) -> Optional[str]:
    """The S3 key of an asset, None for legacy or missing assets."""
    if isinstance(asset, S3Asset):
        return asset.s3_key
    if isinstance(asset, LocalAsset) or asset is None:
        return None
    raise TypeError(f"Unknown asset type: {type(asset).__name__}")


def is_legacy(asset: Optional[Union[LocalAsset, S3Asset]]) -> bool:
    return isinstance(asset, LocalAsset)
