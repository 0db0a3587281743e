# src/db/__init__.py
# ===================
# Persistence Layer — Legal Intake Pipeline
#
#   database.py          : engine, session factory, declarative Base
#   models.py            : AudioRecord (client_audio) and CaseRecord (cases)
#   audio_repository.py  : AudioRecord reads and the two post-create updates
