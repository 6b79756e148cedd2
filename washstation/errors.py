# washstation/errors.py
"""
Error taxonomy for the API.

Every error carries the HTTP status it maps to and a human-readable message.
The app factory turns any ApiError into `{"error": message}` JSON.
"""

from __future__ import annotations


class ApiError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, details: str | None = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


# =========================================================
# 400: caller input
# =========================================================
class ValidationError(ApiError):
    status_code = 400
    default_message = "Invalid request"


class MissingRequiredFields(ValidationError):
    default_message = "Missing required fields"

    def __init__(self, fields=None, message: str | None = None):
        self.fields = list(fields or [])
        if message is None and self.fields:
            message = f"Missing required fields: {', '.join(self.fields)}"
        super().__init__(message)


# =========================================================
# 404: referenced entity absent
# =========================================================
class NotFoundError(ApiError):
    status_code = 404
    default_message = "Not found"


class StationNotFound(NotFoundError):
    default_message = "CWS not found"


class SiteCollectionNotFound(NotFoundError):
    default_message = "Site collection not found"


class PurchaseNotFound(NotFoundError):
    default_message = "Purchase not found"


class ProcessingNotFound(NotFoundError):
    default_message = "Processing record not found"


class BatchNotInPurchases(NotFoundError):
    default_message = "Batch not found in purchases"


class BaggingOffNotFound(NotFoundError):
    default_message = "Bagging off record not found"


class WetTransferNotFound(NotFoundError):
    default_message = "Wet transfer not found"


class TransferNotFound(NotFoundError):
    default_message = "Transfer not found"


class UserNotFound(NotFoundError):
    default_message = "User not found"


# =========================================================
# 400: business rules
# =========================================================
class BusinessRuleViolation(ApiError):
    status_code = 400
    default_message = "Request violates a business rule"


class ProcessingAlreadyStarted(BusinessRuleViolation):
    default_message = "Processing has already started for this batch. New purchases are not allowed."


class BatchAlreadyProcessing(BusinessRuleViolation):
    default_message = "This batch is already in processing. New purchases are not allowed."


class DuplicatePurchase(BusinessRuleViolation):
    default_message = "A purchase for this grade already exists for this date"


class AlreadyStarted(BusinessRuleViolation):
    default_message = "Processing for this batch already started"


class UnsupportedProcessingType(BusinessRuleViolation):
    def __init__(self, processing_type=None, message: str | None = None):
        self.processing_type = processing_type
        super().__init__(message or f"Unsupported processing type: {processing_type}")


class InvalidStatusTransition(BusinessRuleViolation):
    default_message = "Invalid status transition"


class SiteCollectionInUse(BusinessRuleViolation):
    default_message = "Cannot delete site collection with associated purchases"


class StationInUse(BusinessRuleViolation):
    default_message = "Cannot delete CWS with associated records"


class DuplicateUsername(BusinessRuleViolation):
    default_message = "Username already exists"


# =========================================================
# 500: store failure
# =========================================================
class PersistenceError(ApiError):
    status_code = 500
    default_message = "Database operation failed"
