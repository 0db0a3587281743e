# src/api/__init__.py
# =====================
# API Layer — Legal Intake
#
# Responsibility:
#   - Expose the audio upload, audio read and lawyer-assignment endpoints
#   - Enforce per-bucket rate limits and the upload size limit
#   - Map pipeline aborts to HTTP errors
#
# The FastAPI application lives in src.api.upload.
