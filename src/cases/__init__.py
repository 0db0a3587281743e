# src/cases/__init__.py
# ======================
# Case collaborator — Legal Intake Pipeline
#
# Public API:
#   create_case(db, owner_id, title, case_type, description, category=None)
#   assign_lawyer(db, case_id, lawyer_id)
