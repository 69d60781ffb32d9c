"""
Analysis persistence service.

Turns a pose service response plus the original upload into a stored
Analysis (media in S3, metadata in the database), hands out signed URLs for
stored media, and deletes analyses together with their S3 objects.

Legacy records point at files on the serving host's disk. Reading such an
asset migrates it to S3 when the file is still there; there is no locking,
so two simultaneous first reads may both upload the same bytes to the same
key.
"""

import base64
import binascii
import logging
from functools import partial
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cyclofit.shared.analyses.assets import (
    LocalAsset,
    S3Asset,
    asset_s3_key,
    dump_asset,
    is_legacy,
    parse_asset,
)
from cyclofit.shared.analyses.database import Analysis, BIKE_TYPES
from cyclofit.shared.auth.database import get_db, new_id
from cyclofit.shared.config.settings import Settings, get_settings
from cyclofit.shared.storage.object_store import (
    ObjectStoreError,
    S3ObjectStore,
    get_object_store,
    keyframe_key,
    processed_video_key,
)
from cyclofit.shared.storage.url_cache import SignedUrlCache, get_url_cache
from cyclofit.shared.upload_video.video_duration import probe_video_duration

logger = logging.getLogger(__name__)

VIDEO_KINDS = ("original", "processed")
VIDEO_CONTENT_TYPE = "video/mp4"
KEYFRAME_CONTENT_TYPE = "image/jpeg"
_LEGACY_KEYS = ("filePath", "file_path", "s3Key", "s3_key", "s3Url", "contentType")


class AnalysisNotFoundError(Exception):
    """No analysis with that id belongs to the caller."""


class AssetNotFoundError(Exception):
    """The analysis exists but has no such video or keyframe."""


def keyframe_timestamps(duration: Optional[float], count: int) -> List[Optional[float]]:
    """
    Evenly spaced timestamps: frame i of count sits at i * (duration / count).

    This is an approximation, not the frames' capture times. All entries are
    None when the duration is unknown.
    """
    if count <= 0:
        return []
    if duration is None:
        return [None] * count
    step = duration / count
    return [i * step for i in range(count)]


def _decode_base64(data: Any) -> bytes:
    if not isinstance(data, str):
        raise ValueError("Expected a base64 string")
    return base64.b64decode("".join(data.split()), validate=True)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _entry_asset(entry: Optional[Dict[str, Any]]):
    """Asset of a stored video/keyframe entry (tagged or legacy shape)."""
    if not entry:
        return None
    if "asset" in entry:
        return parse_asset(entry["asset"])
    return parse_asset(entry)


def _with_asset(entry: Optional[Dict[str, Any]], asset) -> Dict[str, Any]:
    """Copy of entry pointing at asset, with any legacy pointer fields dropped."""
    updated = {k: v for k, v in (entry or {}).items() if k not in _LEGACY_KEYS}
    updated["asset"] = dump_asset(asset)
    if getattr(asset, "content_type", None):
        updated["content_type"] = asset.content_type
    return updated


class AnalysisService:

    def __init__(
        self,
        db: Session,
        store: S3ObjectStore,
        settings: Settings,
        url_cache: Optional[SignedUrlCache] = None,
        probe: Optional[Callable[[bytes], Optional[float]]] = None,
    ):
        self.db = db
        self.store = store
        self.settings = settings
        self.url_cache = url_cache
        self.probe = probe or partial(probe_video_duration, ffprobe_path=settings.FFPROBE_PATH)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save_analysis(
        self,
        user_id: str,
        video_bytes: bytes,
        content_type: str,
        filename: str,
        user_height_cm: float,
        bike_type: str,
        ai_payload: Dict[str, Any],
    ) -> Analysis:
        """
        Persist one pose service response.

        Steps: probe the original's duration, upload the processed video and
        each keyframe to S3, then save the row. A failed processed video or
        keyframe is logged and left out; nothing is retried.
        """
        try:
            user_height_cm = float(user_height_cm)
        except (TypeError, ValueError):
            raise ValueError("User height must be a number")
        if user_height_cm <= 0:
            raise ValueError("User height must be positive")
        if bike_type not in BIKE_TYPES:
            raise ValueError(f"Invalid bike type: {bike_type}. Must be one of {', '.join(BIKE_TYPES)}")

        analysis_id = new_id()
        original_duration = self._probe(video_bytes, "original")

        analysis = Analysis(
            id=analysis_id,
            user_id=user_id,
            user_height_cm=user_height_cm,
            bike_type=bike_type,
            storage_type="s3",
            duration=original_duration,
            original_video={
                "filename": filename,
                "size": len(video_bytes),
                "content_type": content_type,
                "duration": original_duration,
            },
            max_angles=ai_payload.get("max_angles"),
            min_angles=ai_payload.get("min_angles"),
            body_lengths_cm=ai_payload.get("body_lengths_cm"),
            recommendations=ai_payload.get("recommendations"),
        )
        analysis.processed_video = self._store_processed_video(
            analysis_id, ai_payload.get("video"), original_duration
        )
        analysis.keyframes = self._store_keyframes(
            analysis_id,
            ai_payload.get("key_frames"),
            ai_payload.get("key_frame_timestamps"),
            original_duration,
        )

        self.db.add(analysis)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            # Objects already uploaded for this analysis stay orphaned in S3
            logger.error(f"Failed to save analysis {analysis_id}; its S3 objects are orphaned", exc_info=True)
            raise
        self.db.refresh(analysis)
        logger.info(
            f"Saved analysis {analysis_id} for user {user_id}: "
            f"{len(analysis.keyframes)} keyframe(s), processed video: {analysis.processed_video is not None}"
        )
        return analysis

    def _probe(self, data: bytes, label: str) -> Optional[float]:
        try:
            duration = self.probe(data)
        except Exception as e:
            logger.warning(f"Duration probe of {label} video failed: {str(e)}")
            return None
        logger.info(f"{label.capitalize()} video duration: {duration if duration is not None else 'unavailable'}")
        return duration

    def _store_processed_video(self, analysis_id: str, video_b64: Any, original_duration: Optional[float]):
        if not video_b64:
            return None
        key = processed_video_key(analysis_id)
        try:
            data = _decode_base64(video_b64)
            self.store.upload(data, key, "video/mp4")
        except (binascii.Error, ValueError, ObjectStoreError) as e:
            logger.error(f"Error storing processed video for analysis {analysis_id}: {str(e)}")
            return None

        processed_duration = self._probe(data, "processed")
        return {
            "asset": dump_asset(S3Asset(s3_key=key, content_type="video/mp4")),
            "content_type": "video/mp4",
            "duration": processed_duration if processed_duration is not None else original_duration,
        }

    def _store_keyframes(
        self,
        analysis_id: str,
        frames: Any,
        measured: Any,
        duration: Optional[float],
    ) -> List[Dict[str, Any]]:
        if not isinstance(frames, list) or not frames:
            return []

        count = len(frames)
        if isinstance(measured, list) and len(measured) == count and all(_is_number(t) for t in measured):
            timestamps = [float(t) for t in measured]
            estimated = False
        else:
            timestamps = keyframe_timestamps(duration, count)
            estimated = True

        stored = []
        for i, frame in enumerate(frames):
            key = keyframe_key(analysis_id, i)
            try:
                self.store.upload(_decode_base64(frame), key, "image/jpeg")
            except (binascii.Error, ValueError, ObjectStoreError) as e:
                logger.error(f"Error processing keyframe {i} of analysis {analysis_id}: {str(e)}")
                continue
            stored.append({
                "asset": dump_asset(S3Asset(s3_key=key, content_type="image/jpeg")),
                "timestamp": timestamps[i],
                "timestamp_estimated": estimated,
            })
        return stored

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_for_user(self, user_id: str) -> List[Analysis]:
        return (
            self.db.query(Analysis)
            .filter(Analysis.user_id == user_id)
            .order_by(Analysis.created_at.desc())
            .all()
        )

    def get(self, analysis_id: str, user_id: Optional[str]) -> Optional[Analysis]:
        """Fetch an analysis; user_id=None skips the ownership filter (admin)."""
        query = self.db.query(Analysis).filter(Analysis.id == analysis_id)
        if user_id is not None:
            query = query.filter(Analysis.user_id == user_id)
        return query.first()

    def require(self, analysis_id: str, user_id: Optional[str]) -> Analysis:
        analysis = self.get(analysis_id, user_id)
        if analysis is None:
            raise AnalysisNotFoundError("Analysis not found")
        return analysis

    # ------------------------------------------------------------------
    # URL issuance
    # ------------------------------------------------------------------

    def get_video_url(self, analysis_id: str, user_id: Optional[str], kind: str) -> str:
        if kind not in VIDEO_KINDS:
            raise ValueError(f"Unknown video type: {kind}")
        analysis = self.require(analysis_id, user_id)
        column = f"{kind}_video"
        asset = _entry_asset(getattr(analysis, column))
        if asset is None:
            raise AssetNotFoundError(f"{kind.capitalize()} video not found in analysis")

        def replace(new_asset):
            setattr(analysis, column, _with_asset(getattr(analysis, column), new_asset))

        return self._resolve_url(analysis, asset, self._legacy_video_key(analysis, asset), replace, VIDEO_CONTENT_TYPE)

    def get_keyframe_url(self, analysis_id: str, user_id: Optional[str], index: int) -> Dict[str, Any]:
        analysis = self.require(analysis_id, user_id)
        return self._keyframe_url(analysis, index)

    def get_keyframe_urls(self, analysis_id: str, user_id: Optional[str]) -> List[Dict[str, Any]]:
        analysis = self.require(analysis_id, user_id)
        if not analysis.keyframes:
            raise AssetNotFoundError("No keyframes available")
        return [self._keyframe_url(analysis, i) for i in range(len(analysis.keyframes))]

    def _keyframe_url(self, analysis: Analysis, index: int) -> Dict[str, Any]:
        frames = analysis.keyframes or []
        if index < 0 or index >= len(frames):
            raise AssetNotFoundError("Keyframe not found")
        frame = frames[index]
        asset = _entry_asset(frame)
        if asset is None:
            raise AssetNotFoundError(f"No valid storage location found for keyframe {index}")

        def replace(new_asset):
            updated = [dict(f) for f in analysis.keyframes]
            updated[index] = _with_asset(updated[index], new_asset)
            analysis.keyframes = updated

        url = self._resolve_url(analysis, asset, keyframe_key(analysis.id, index), replace, KEYFRAME_CONTENT_TYPE)
        return {
            "index": index,
            "url": url,
            "timestamp": frame.get("timestamp"),
            "timestamp_estimated": frame.get("timestamp_estimated", True),
        }

    def _resolve_url(self, analysis: Analysis, asset, target_key: str, replace: Callable, default_content_type: str) -> str:
        key = asset_s3_key(asset)
        if key:
            self._sync_storage_type(analysis)
            return self._sign(key)

        migrated_key = self._migrate_asset(analysis, asset, target_key, replace, default_content_type)
        if migrated_key:
            return self._sign(migrated_key)
        return self._legacy_url(asset.file_path)

    def _sign(self, key: str) -> str:
        if self.url_cache is not None:
            cached = self.url_cache.get(key)
            if cached:
                return cached
        url = self.store.get_signed_url(key, self.settings.SIGNED_URL_TTL_SECONDS)
        if self.url_cache is not None:
            self.url_cache.set(key, url)
        return url

    # ------------------------------------------------------------------
    # Legacy migration
    # ------------------------------------------------------------------

    def _legacy_path(self, file_path: str) -> Optional[Path]:
        root = Path(self.settings.LEGACY_MEDIA_ROOT).resolve()
        candidate = (root / file_path.replace("\\", "/").lstrip("/")).resolve()
        if candidate != root and root not in candidate.parents:
            logger.warning(f"Legacy path escapes the media root: {file_path}")
            return None
        return candidate

    def _legacy_url(self, file_path: str) -> str:
        relative = file_path.replace("\\", "/").lstrip("/")
        return f"{self.settings.SERVER_URL.rstrip('/')}/static/{relative}"

    @staticmethod
    def _legacy_video_key(analysis: Analysis, asset) -> str:
        if isinstance(asset, LocalAsset):
            name = PurePosixPath(asset.file_path.replace("\\", "/")).name
            return f"videos/{analysis.id}/{name}"
        return ""

    def _migrate_asset(
        self, analysis: Analysis, asset: LocalAsset, target_key: str, replace: Callable, default_content_type: str
    ) -> Optional[str]:
        """Upload a legacy file to S3 and repoint the row; None when the file is gone or the move failed."""
        path = self._legacy_path(asset.file_path)
        if path is None or not path.is_file():
            return None

        content_type = asset.content_type or default_content_type
        logger.info(f"Migrating {path} to S3 as {target_key}")
        try:
            self.store.upload(path.read_bytes(), target_key, content_type)
            replace(S3Asset(s3_key=target_key, content_type=content_type))
            self._refresh_storage_type(analysis)
            self.db.commit()
        except (OSError, ObjectStoreError, SQLAlchemyError) as e:
            self.db.rollback()
            logger.error(f"Error migrating {asset.file_path} of analysis {analysis.id} to S3: {str(e)}")
            return None
        logger.info(f"Successfully migrated {asset.file_path} to S3")
        return target_key

    def _refresh_storage_type(self, analysis: Analysis) -> bool:
        """Mark the row s3 once no legacy asset is left; True when the marker changed."""
        entries = [analysis.original_video, analysis.processed_video] + list(analysis.keyframes or [])
        if analysis.storage_type == "s3" or any(is_legacy(_entry_asset(e)) for e in entries):
            return False
        analysis.storage_type = "s3"
        return True

    def _sync_storage_type(self, analysis: Analysis) -> None:
        # Rows can be left "local" with every asset already in S3 (older
        # servers never flipped the marker, or two partial migrations raced)
        if not self._refresh_storage_type(analysis):
            return
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error updating storage type of analysis {analysis.id}: {str(e)}")
            return
        logger.info(f"Analysis {analysis.id} has no legacy assets left, storage type set to s3")

    def migrate_legacy_assets(self, limit: Optional[int] = None) -> Dict[str, int]:
        """Move every legacy asset whose file still exists to S3."""
        query = self.db.query(Analysis).filter(Analysis.storage_type == "local").order_by(Analysis.created_at)
        if limit:
            query = query.limit(limit)

        stats = {"analyses": 0, "migrated": 0, "missing": 0}
        for analysis in query.all():
            stats["analyses"] += 1
            for kind in VIDEO_KINDS:
                column = f"{kind}_video"
                asset = _entry_asset(getattr(analysis, column))
                if not is_legacy(asset):
                    continue

                def replace(new_asset, column=column):
                    setattr(analysis, column, _with_asset(getattr(analysis, column), new_asset))

                key = self._migrate_asset(
                    analysis, asset, self._legacy_video_key(analysis, asset), replace, VIDEO_CONTENT_TYPE
                )
                stats["migrated" if key else "missing"] += 1

            for index, frame in enumerate(list(analysis.keyframes or [])):
                asset = _entry_asset(frame)
                if not is_legacy(asset):
                    continue

                def replace(new_asset, index=index):
                    updated = [dict(f) for f in analysis.keyframes]
                    updated[index] = _with_asset(updated[index], new_asset)
                    analysis.keyframes = updated

                key = self._migrate_asset(analysis, asset, keyframe_key(analysis.id, index), replace, KEYFRAME_CONTENT_TYPE)
                stats["migrated" if key else "missing"] += 1

            self._sync_storage_type(analysis)
        return stats

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def s3_keys(self, analysis: Analysis) -> List[str]:
        entries = [analysis.original_video, analysis.processed_video] + list(analysis.keyframes or [])
        keys = []
        for entry in entries:
            key = asset_s3_key(_entry_asset(entry))
            if key:
                keys.append(key)
        return keys

    def delete_analysis(self, analysis_id: str, user_id: Optional[str]) -> bool:
        """
        Delete an analysis and, best effort, its S3 objects.

        Returns False when the analysis does not exist (or is not the
        caller's). A failed S3 delete is logged and does not stop the row
        from being removed.
        """
        analysis = self.get(analysis_id, user_id)
        if analysis is None:
            return False

        keys = self.s3_keys(analysis)
        self.store.delete_many(keys)
        if self.url_cache is not None:
            for key in keys:
                self.url_cache.invalidate(key)

        self.db.delete(analysis)
        self.db.commit()
        logger.info(f"Deleted analysis {analysis_id} ({len(keys)} S3 object(s))")
        return True


# ----------------------------------------------------------------------
# Response builders
# ----------------------------------------------------------------------

def _keyframe_infos(analysis: Analysis) -> List[Dict[str, Any]]:
    return [
        {
            "index": i,
            "timestamp": frame.get("timestamp"),
            "timestamp_estimated": frame.get("timestamp_estimated", True),
        }
        for i, frame in enumerate(analysis.keyframes or [])
    ]


def processed_video_available(analysis: Analysis) -> bool:
    return _entry_asset(analysis.processed_video) is not None


def build_analysis_result(analysis: Analysis) -> Dict[str, Any]:
    keyframe_count = len(analysis.keyframes or [])
    return {
        "max_angles": analysis.max_angles,
        "min_angles": analysis.min_angles,
        "body_lengths_cm": analysis.body_lengths_cm,
        "recommendations": analysis.recommendations,
        "bike_type": analysis.bike_type,
        "duration": analysis.duration,
        "storage_type": analysis.storage_type,
        "processed_video_available": processed_video_available(analysis),
        "keyframes_available": keyframe_count > 0,
        "keyframe_count": keyframe_count,
    }


def build_list_item(analysis: Analysis) -> Dict[str, Any]:
    return {
        "id": analysis.id,
        "title": analysis.title,
        "bike_type": analysis.bike_type,
        "user_height_cm": analysis.user_height_cm,
        "duration": analysis.duration,
        "formatted_duration": analysis.formatted_duration,
        "keyframe_count": len(analysis.keyframes or []),
        "processed_video_available": processed_video_available(analysis),
        "created_at": analysis.created_at,
    }


def build_analysis_detail(analysis: Analysis) -> Dict[str, Any]:
    original = analysis.original_video or {}
    keyframes = _keyframe_infos(analysis)
    return {
        "id": analysis.id,
        "user_id": analysis.user_id,
        "title": analysis.title,
        "description": analysis.description or "",
        "storage_type": analysis.storage_type,
        "bike_type": analysis.bike_type,
        "user_height_cm": analysis.user_height_cm,
        "duration": analysis.duration,
        "formatted_duration": analysis.formatted_duration,
        "original_video": {
            "filename": original.get("filename"),
            "size": original.get("size"),
            "content_type": original.get("content_type") or original.get("contentType"),
            "duration": original.get("duration"),
        },
        "max_angles": analysis.max_angles,
        "min_angles": analysis.min_angles,
        "body_lengths_cm": analysis.body_lengths_cm,
        "recommendations": analysis.recommendations,
        "processed_video_available": processed_video_available(analysis),
        "keyframes_available": len(keyframes) > 0,
        "keyframe_count": len(keyframes),
        "keyframes": keyframes,
        "created_at": analysis.created_at,
        "updated_at": analysis.updated_at,
    }


# ----------------------------------------------------------------------
# Dependencies
# ----------------------------------------------------------------------

def get_duration_probe(settings: Settings = Depends(get_settings)) -> Callable[[bytes], Optional[float]]:
    return partial(probe_video_duration, ffprobe_path=settings.FFPROBE_PATH)


def get_analysis_service(
    db: Session = Depends(get_db),
    store: S3ObjectStore = Depends(get_object_store),
    settings: Settings = Depends(get_settings),
    url_cache: SignedUrlCache = Depends(get_url_cache),
    probe: Callable[[bytes], Optional[float]] = Depends(get_duration_probe),
) -> AnalysisService:
    return AnalysisService(db, store, settings, url_cache=url_cache, probe=probe)
