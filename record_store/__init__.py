# referral_tracker/record_store/__init__.py

"""
Client and mutation dispatch for the hosted record store.
"""

from .client import RecordStoreClient, build_filter_params, get_record_store
from .exceptions import (FetchError, MutationError, RecordStoreError,
                         RecordStoreNotConfigured, RegressionReasonRequired)
from .mutations import (StageChangeResult, bulk_archive_patients,
                        bulk_update_documents, change_stage, delete_referral,
                        mass_update_stage, set_archived,
                        update_document_status)

__all__ = [
    # client.py
    "RecordStoreClient",
    "build_filter_params",
    "get_record_store",

    # exceptions.py
    "RecordStoreError",
    "FetchError",
    "MutationError",
    "RecordStoreNotConfigured",
    "RegressionReasonRequired",

    # mutations.py
    "StageChangeResult",
    "change_stage",
    "mass_update_stage",
    "set_archived",
    "bulk_archive_patients",
    "update_document_status",
    "delete_referral",
    "bulk_update_documents",
]
