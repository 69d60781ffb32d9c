"""Tests for stored asset parsing."""

import pytest

from cyclofit.shared.analyses.assets import (
    LocalAsset,
    S3Asset,
    asset_s3_key,
    dump_asset,
    is_legacy,
    parse_asset,
)


class TestParseAsset:
    """Tagged and legacy JSON shapes."""

    def test_tagged_s3(self):
        """Tagged S3 form round-trips through dump_asset."""
        asset = parse_asset({"kind": "s3", "s3_key": "videos/a/processed.mp4", "content_type": "video/mp4"})
        assert isinstance(asset, S3Asset)
        assert parse_asset(dump_asset(asset)) == asset

    def test_tagged_local(self):
        """Tagged local form parses to LocalAsset."""
        asset = parse_asset({"kind": "local", "file_path": "uploads/a.mp4"})
        assert isinstance(asset, LocalAsset)
        assert is_legacy(asset)

    def test_legacy_camel_case_file_path(self):
        """Old records with filePath become LocalAsset."""
        asset = parse_asset({"filePath": "uploads\\videos\\a.mp4", "contentType": "video/mp4"})
        assert asset == LocalAsset(file_path="uploads\\videos\\a.mp4", content_type="video/mp4")

    def test_s3_key_wins_over_file_path(self):
        """A record carrying both pointers is treated as migrated."""
        asset = parse_asset({"filePath": "uploads/a.mp4", "s3Key": "videos/x/a.mp4"})
        assert isinstance(asset, S3Asset)
        assert asset.s3_key == "videos/x/a.mp4"

    @pytest.mark.parametrize("data", [None, {}, {"filename": "a.mp4", "size": 10}])
    def test_nothing_usable(self, data):
        """Metadata without a pointer has no asset."""
        assert parse_asset(data) is None


class TestAssetKey:
    """S3 key lookup."""

    def test_s3_key(self):
        assert asset_s3_key(S3Asset(s3_key="k")) == "k"

    def test_local_and_missing_have_no_key(self):
        assert asset_s3_key(LocalAsset(file_path="a.mp4")) is None
        assert asset_s3_key(None) is None

    def test_unknown_type_rejected(self):
        with pytest.raises(TypeError):
            asset_s3_key("videos/a.mp4")
