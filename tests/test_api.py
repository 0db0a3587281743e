"""
tests/test_api.py
==================
HTTP Layer Tests — upload, reads, lawyer assignment

Test categories:
    1. Upload: success, empty file, oversized file, transcription abort
    2. Rate limiting: 429 on the sixth upload, checked before the body is parsed
    3. Reads: by id (404), all, by user, by case
    4. Lawyer assignment: status change and audio sync, 404

Uses FastAPI's TestClient with an in-memory database and a fresh rate
limiter per test. External adapters are mocked at ``src.pipeline``.
"""

import base64
import os
import sys
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from src.api.upload import app
from src.db.database import create_db_engine, get_db, init_db
from src.nlp.case_classifier import CaseCategory
from src.rate_limiter import (
    AI_PIPELINE_BUCKET,
    STANDARD_BUCKET,
    BucketConfig,
    RateLimiter,
)
from src.stage_outcome import AbortPipeline

AUDIO = ("clip.wav", b"RIFF-fake-audio", "audio/wav")


class FrozenClock:
    def __call__(self) -> float:
        return 0.0


class _ApiTestCase(unittest.TestCase):

    def setUp(self):
        self.engine = create_db_engine("sqlite://")
        init_db(bind=self.engine)
        SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

        def _override_get_db():
            db = SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _override_get_db
        self._original_limiter = app.state.rate_limiter
        app.state.rate_limiter = RateLimiter(
            configs={
                AI_PIPELINE_BUCKET: BucketConfig(capacity=5),
                STANDARD_BUCKET: BucketConfig(capacity=100),
            },
            clock=FrozenClock(),
        )

        patches = {
            "transcribe": patch(
                "src.pipeline.transcribe_to_english",
                return_value="I live in Anand. My landlord wants eviction.",
            ),
            "tts": patch("src.pipeline.synthesize_speech", return_value=b"mp3"),
            "translate": patch("src.pipeline.translate_to_gujarati", return_value="ગુજરાતી"),
            "classify": patch("src.pipeline.classify_case", return_value=CaseCategory.PROPERTY),
            "broadcast": patch("src.cases.case_service.broadcast_case_created"),
        }
        self.mocks = {name: p.start() for name, p in patches.items()}
        for p in patches.values():
            self.addCleanup(p.stop)

        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()
        app.state.rate_limiter = self._original_limiter
        self.engine.dispose()

    def _upload(self, user_id=None, audio=AUDIO, **data):
        if user_id is not None:
            data["user_id"] = str(user_id)
        return self.client.post("/api/audio/upload", files={"file": audio}, data=data)


# ===================================================================
# 1. UPLOAD
# ===================================================================


class TestUpload(_ApiTestCase):

    def test_upload_success(self):
        response = self._upload(user_id=3)
        self.assertEqual(response.status_code, 200)

        body = response.json()
        self.assertEqual(body["masked_text"], "I live in *****. My landlord wants eviction.")
        self.assertEqual(body["masked_text_gu"], "ગુજરાતી")
        self.assertEqual(body["masked_audio_en"], base64.b64encode(b"mp3").decode("ascii"))
        self.assertEqual(body["owner_user_id"], 3)
        self.assertIsNotNone(body["linked_case_id"])
        self.assertIsNone(body["assigned_lawyer_id"])

    def test_upload_without_user_creates_no_case(self):
        body = self._upload().json()
        self.assertIsNone(body["owner_user_id"])
        self.assertIsNone(body["linked_case_id"])

    def test_every_key_present_when_degraded(self):
        self.mocks["tts"].return_value = None
        self.mocks["translate"].return_value = None
        body = self._upload().json()

        for key in (
            "id", "language", "original_text", "masked_text", "masked_audio_en",
            "masked_text_gu", "masked_audio_gu", "owner_user_id",
            "linked_case_id", "assigned_lawyer_id",
        ):
            self.assertIn(key, body)
        self.assertIsNone(body["masked_audio_en"])
        self.assertIsNone(body["masked_text_gu"])

    def test_case_title_forwarded(self):
        body = self._upload(user_id=3, case_title="Eviction notice").json()
        case_id = body["linked_case_id"]
        assigned = self.client.post(f"/api/cases/{case_id}/assign", data={"lawyer_id": "9"})
        self.assertEqual(assigned.json()["title"], "Eviction notice")

    def test_empty_file_rejected(self):
        response = self._upload(audio=("empty.wav", b"", "audio/wav"))
        self.assertEqual(response.status_code, 400)
        self.mocks["transcribe"].assert_not_called()

    @patch("src.api.upload.MAX_UPLOAD_BYTES", 10)
    def test_oversized_file_rejected(self):
        response = self._upload(audio=("big.wav", b"x" * 11, "audio/wav"))
        self.assertEqual(response.status_code, 400)
        self.mocks["transcribe"].assert_not_called()

    def test_transcription_abort_returns_500_and_persists_nothing(self):
        self.mocks["transcribe"].side_effect = AbortPipeline(
            "transcribe", "Transcription returned empty text",
        )
        response = self._upload(user_id=3)

        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json()["detail"],
            "Audio processing failed: Transcription returned empty text",
        )
        self.assertEqual(self.client.get("/api/audio/all").json(), [])


# ===================================================================
# 2. RATE LIMITING
# ===================================================================


class TestRateLimiting(_ApiTestCase):

    def test_sixth_upload_rejected(self):
        codes = [self._upload().status_code for _ in range(6)]
        self.assertEqual(codes, [200] * 5 + [429])
        self.assertEqual(self.mocks["transcribe"].call_count, 5)

    def test_rate_limit_checked_before_validation(self):
        for _ in range(5):
            self._upload()
        response = self._upload(audio=("empty.wav", b"", "audio/wav"))
        self.assertEqual(response.status_code, 429)

    def test_rejected_before_form_is_parsed(self):
        """Without the file field the route would answer 422; the limiter answers first."""
        for _ in range(5):
            self._upload()
        response = self.client.post("/api/audio/upload", data={"user_id": "3"})
        self.assertEqual(response.status_code, 429)
        self.assertEqual(response.json()["detail"], "Too many requests. Please try again later.")

    @patch("src.api.upload.MULTIPART_OVERHEAD_BYTES", 0)
    @patch("src.api.upload.MAX_UPLOAD_BYTES", 10)
    def test_declared_length_over_limit_rejected_before_parsing(self):
        response = self.client.post("/api/audio/upload", data={"case_title": "x" * 50})
        self.assertEqual(response.status_code, 400)
        self.assertIn("File size exceeds", response.json()["detail"])
        self.mocks["transcribe"].assert_not_called()

    def test_reads_use_separate_bucket(self):
        for _ in range(6):
            self._upload()
        self.assertEqual(self.client.get("/api/audio/all").status_code, 200)


# ===================================================================
# 3. READS
# ===================================================================


class TestReads(_ApiTestCase):

    def test_get_by_id(self):
        record_id = self._upload(user_id=3).json()["id"]
        response = self.client.get(f"/api/audio/{record_id}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["id"], record_id)

    def test_get_unknown_id_404(self):
        self.assertEqual(self.client.get("/api/audio/999").status_code, 404)

    def test_get_all(self):
        self._upload(user_id=3)
        self._upload(user_id=4)
        self.assertEqual(len(self.client.get("/api/audio/all").json()), 2)

    def test_get_by_user(self):
        self._upload(user_id=3)
        self._upload(user_id=4)
        self._upload(user_id=3)
        records = self.client.get("/api/audio/user/3").json()
        self.assertEqual(len(records), 2)
        self.assertTrue(all(r["owner_user_id"] == 3 for r in records))

    def test_get_by_case(self):
        case_id = self._upload(user_id=3).json()["linked_case_id"]
        self._upload(user_id=4)
        records = self.client.get(f"/api/audio/case/{case_id}").json()
        self.assertEqual([r["linked_case_id"] for r in records], [case_id])


# ===================================================================
# 4. LAWYER ASSIGNMENT
# ===================================================================


class TestAssignLawyer(_ApiTestCase):

    def test_assign_updates_case_and_audio(self):
        case_id = self._upload(user_id=3).json()["linked_case_id"]

        response = self.client.post(f"/api/cases/{case_id}/assign", data={"lawyer_id": "11"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "in-progress")
        self.assertEqual(response.json()["lawyer_id"], 11)

        records = self.client.get(f"/api/audio/case/{case_id}").json()
        self.assertEqual(records[0]["assigned_lawyer_id"], 11)

    def test_assign_unknown_case_404(self):
        response = self.client.post("/api/cases/999/assign", data={"lawyer_id": "11"})
        self.assertEqual(response.status_code, 404)


if __name__ == "__main__":
    unittest.main()
