# washstation/models.py
from __future__ import annotations

import enum
import secrets
from datetime import datetime, timedelta, timezone

from flask_login import UserMixin
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.mutable import MutableDict

from .extensions import db


# Use **naive UTC** everywhere: columns are "timestamp without time zone".
def utcnow_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_iso(value):
    if value is None:
        return None
    return value.isoformat()


def _enum_value(value):
    return value.value if isinstance(value, enum.Enum) else value


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
JSONDict = MutableDict.as_mutable(db.JSON().with_variant(JSONB(), "postgresql"))


# =========================================================
# Enums + processing state machine
# =========================================================
class DeliveryType(enum.Enum):
    DIRECT_DELIVERY = "DIRECT_DELIVERY"
    SITE_COLLECTION = "SITE_COLLECTION"


class ProcessingType(enum.Enum):
    HONEY = "HONEY"
    NATURAL = "NATURAL"
    FULLY_WASHED = "FULLY_WASHED"


class ProcessingStatus(enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    BAGGING_STARTED = "BAGGING_STARTED"
    TRANSFERRED = "TRANSFERRED"
    COMPLETED = "COMPLETED"


class WetTransferStatus(enum.Enum):
    PENDING = "PENDING"
    RECEIVED = "RECEIVED"
    REJECTED = "REJECTED"


# Only consulted when STRICT_PROCESSING_TRANSITIONS is on.
ALLOWED_TRANSITIONS = {
    ProcessingStatus.IN_PROGRESS: {
        ProcessingStatus.BAGGING_STARTED,
        ProcessingStatus.TRANSFERRED,
        ProcessingStatus.COMPLETED,
    },
    ProcessingStatus.BAGGING_STARTED: {ProcessingStatus.COMPLETED},
    ProcessingStatus.TRANSFERRED: {ProcessingStatus.IN_PROGRESS, ProcessingStatus.COMPLETED},
    ProcessingStatus.COMPLETED: set(),
}

# A batch in one of these states blocks new purchases.
ACTIVE_PROCESSING_STATUSES = (ProcessingStatus.IN_PROGRESS, ProcessingStatus.COMPLETED)


def can_transition(current: ProcessingStatus, target: ProcessingStatus) -> bool:
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS.get(current, set())


def _enum_column(enum_cls, name: str):
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda enum_cls: [e.value for e in enum_cls],
        native_enum=False,
        validate_strings=True,
    )


# =========================================================
# Station (CWS)
# =========================================================
class CWS(db.Model):
    __tablename__ = "cws"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(20), unique=True, nullable=False)
    location = db.Column(db.String(160), nullable=True)

    # Speciality stations may process batches that never went through purchases.
    havespeciality = db.Column(db.Boolean, nullable=False, default=False)
    is_wet_parchment_sender = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "location": self.location,
            "havespeciality": bool(self.havespeciality),
            "is_wet_parchment_sender": bool(self.is_wet_parchment_sender),
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }

    def to_brief(self) -> dict:
        return {"id": self.id, "name": self.name, "code": self.code}

    def __repr__(self) -> str:
        return f"<CWS {self.id} {self.code}>"


# =========================================================
# User model (Authentication + Roles)
# =========================================================
class User(UserMixin, db.Model):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)

    # SUPER_ADMIN / ADMIN / MANAGER / SUPERVISOR / OPERATIONS / CWS_MANAGER
    role = db.Column(db.String(30), nullable=False, default="CWS_MANAGER")

    cws_id = db.Column(db.Integer, db.ForeignKey("cws.id", ondelete="SET NULL"), nullable=True, index=True)
    cws = db.relationship("CWS", foreign_keys=[cws_id], lazy="joined")

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    sessions = db.relationship(
        "UserSession",
        back_populates="user",
        lazy="select",
        cascade="all, delete-orphan",
    )

    @property
    def is_admin(self) -> bool:
        return (self.role or "").upper() in ("ADMIN", "SUPER_ADMIN")

    def to_dict(self, include_cws: bool = True) -> dict:
        data = {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "cwsId": self.cws_id,
            "createdAt": to_iso(self.created_at),
        }
        if include_cws:
            data["cws"] = self.cws.to_dict() if self.cws else None
        return data

    def __repr__(self) -> str:
        return f"<User {self.id} {self.username}>"


class UserSession(db.Model):
    __tablename__ = "user_session"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    user = db.relationship("User", back_populates="sessions", lazy="joined")

    token = db.Column(db.String(128), unique=True, nullable=False, index=True)
    expires_at = db.Column(db.DateTime, nullable=False)
    revoked_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    @classmethod
    def issue(cls, user: User, hours: int = 24) -> "UserSession":
        return cls(
            user=user,
            token=secrets.token_urlsafe(32),
            expires_at=utcnow_naive() + timedelta(hours=hours),
        )

    def is_valid(self) -> bool:
        if self.revoked_at is not None:
            return False
        return utcnow_naive() <= self.expires_at

    def __repr__(self) -> str:
        return f"<UserSession {self.id} user={self.user_id}>"


# =========================================================
# Site collections
# =========================================================
class SiteCollection(db.Model):
    __tablename__ = "site_collection"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)

    cws_id = db.Column(db.Integer, db.ForeignKey("cws.id"), nullable=False, index=True)
    cws = db.relationship("CWS", foreign_keys=[cws_id], lazy="joined")

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "cwsId": self.cws_id,
            "cws": self.cws.to_brief() if self.cws else None,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<SiteCollection {self.id} {self.name}>"


# =========================================================
# Purchases (cherry intake)
# =========================================================
class Purchase(db.Model):
    __tablename__ = "purchase"

    id = db.Column(db.Integer, primary_key=True)

    cws_id = db.Column(db.Integer, db.ForeignKey("cws.id"), nullable=False, index=True)
    cws = db.relationship("CWS", foreign_keys=[cws_id], lazy="joined")

    delivery_type = db.Column(_enum_column(DeliveryType, "delivery_type"), nullable=False)
    site_collection_id = db.Column(db.Integer, db.ForeignKey("site_collection.id"), nullable=True, index=True)
    site_collection = db.relationship("SiteCollection", foreign_keys=[site_collection_id], lazy="joined")

    grade = db.Column(db.String(10), nullable=False)
    purchase_date = db.Column(db.Date, nullable=False, index=True)

    total_kgs = db.Column(db.Float, nullable=False, default=0.0)
    total_price = db.Column(db.Float, nullable=False, default=0.0)
    cherry_price = db.Column(db.Float, nullable=False, default=0.0)
    transport_fee = db.Column(db.Float, nullable=False, default=0.0)
    commission_fee = db.Column(db.Float, nullable=False, default=0.0)

    # Join key to processing / bagging-off / wet transfers (string convention, no FK).
    batch_no = db.Column(db.String(40), nullable=False, index=True)

    # (station, grade, day, DIRECT_DELIVERY | SITE:<id>)
    dedupe_key = db.Column(db.String(120), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    __table_args__ = (
        db.UniqueConstraint("dedupe_key", name="uq_purchase_dedupe_key"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cwsId": self.cws_id,
            "deliveryType": _enum_value(self.delivery_type),
            "siteCollectionId": self.site_collection_id,
            "grade": self.grade,
            "purchaseDate": to_iso(self.purchase_date),
            "totalKgs": self.total_kgs,
            "totalPrice": self.total_price,
            "cherryPrice": self.cherry_price,
            "transportFee": self.transport_fee,
            "commissionFee": self.commission_fee,
            "batchNo": self.batch_no,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
            "cws": self.cws.to_dict() if self.cws else None,
            "siteCollection": (
                {"id": self.site_collection.id, "name": self.site_collection.name}
                if self.site_collection
                else None
            ),
        }

    def __repr__(self) -> str:
        return f"<Purchase {self.id} {self.batch_no}>"


# =========================================================
# Processing (wet-mill run for one batch)
# =========================================================
class Processing(db.Model):
    __tablename__ = "processing"

    id = db.Column(db.Integer, primary_key=True)
    batch_no = db.Column(db.String(40), nullable=False)

    processing_type = db.Column(_enum_column(ProcessingType, "processing_type"), nullable=False)
    total_kgs = db.Column(db.Float, nullable=False, default=0.0)
    grade = db.Column(db.String(10), nullable=False)

    cws_id = db.Column(db.Integer, db.ForeignKey("cws.id"), nullable=False, index=True)
    cws = db.relationship("CWS", foreign_keys=[cws_id], lazy="joined")

    status = db.Column(
        _enum_column(ProcessingStatus, "processing_status"),
        nullable=False,
        default=ProcessingStatus.IN_PROGRESS,
        index=True,
    )
    start_date = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    end_date = db.Column(db.DateTime, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    bagging_offs = db.relationship(
        "BaggingOff",
        back_populates="processing",
        lazy="select",
        order_by="BaggingOff.id",
    )
    wet_transfers = db.relationship(
        "WetTransfer",
        back_populates="processing",
        lazy="select",
        order_by="WetTransfer.id",
    )

    __table_args__ = (
        # At most one processing run per batch.
        db.UniqueConstraint("batch_no", name="uq_processing_batch_no"),
    )

    def to_dict(self, include_cws: bool = True) -> dict:
        data = {
            "id": self.id,
            "batchNo": self.batch_no,
            "processingType": _enum_value(self.processing_type),
            "totalKgs": self.total_kgs,
            "grade": self.grade,
            "cwsId": self.cws_id,
            "status": _enum_value(self.status),
            "startDate": to_iso(self.start_date),
            "endDate": to_iso(self.end_date),
            "notes": self.notes,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }
        if include_cws:
            data["cws"] = self.cws.to_dict() if self.cws else None
        return data

    def __repr__(self) -> str:
        return f"<Processing {self.id} {self.batch_no} {_enum_value(self.status)}>"


# =========================================================
# Bagging-off (graded dry output)
# =========================================================
class BaggingOff(db.Model):
    __tablename__ = "bagging_off"

    id = db.Column(db.Integer, primary_key=True)
    batch_no = db.Column(db.String(40), nullable=False, index=True)

    processing_id = db.Column(db.Integer, db.ForeignKey("processing.id"), nullable=False, index=True)
    processing = db.relationship("Processing", back_populates="bagging_offs", lazy="joined")

    date = db.Column(db.DateTime, nullable=False)
    processing_type = db.Column(_enum_column(ProcessingType, "bagging_off_processing_type"), nullable=False)

    # {"A0": 100.0, "A1": 200.0}; zero buckets are never stored.
    output_kgs = db.Column(JSONDict, nullable=False, default=dict)
    total_output_kgs = db.Column(db.Float, nullable=False, default=0.0)

    # Mirrors the status reported with the bagging-off (usually a processing status).
    status = db.Column(db.String(30), nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    transfers = db.relationship("Transfer", back_populates="bagging_off", lazy="select")

    def to_dict(self, include_processing: bool = True, include_transfers: bool = False) -> dict:
        data = {
            "id": self.id,
            "batchNo": self.batch_no,
            "processingId": self.processing_id,
            "date": to_iso(self.date),
            "processingType": _enum_value(self.processing_type),
            "outputKgs": dict(self.output_kgs or {}),
            "totalOutputKgs": self.total_output_kgs,
            "status": self.status,
            "notes": self.notes,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }
        if include_processing:
            data["processing"] = self.processing.to_dict() if self.processing else None
        if include_transfers:
            data["transfers"] = [t.to_dict(include_bagging_off=False) for t in self.transfers]
        return data

    def __repr__(self) -> str:
        return f"<BaggingOff {self.id} {self.batch_no} {self.total_output_kgs}>"


# =========================================================
# Transfer (dry output hand-off)
# =========================================================
class Transfer(db.Model):
    __tablename__ = "transfer"

    id = db.Column(db.Integer, primary_key=True)

    bagging_off_id = db.Column(db.Integer, db.ForeignKey("bagging_off.id"), nullable=False, index=True)
    bagging_off = db.relationship("BaggingOff", back_populates="transfers", lazy="joined")

    batch_no = db.Column(db.String(40), nullable=False, index=True)
    transfer_date = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    status = db.Column(db.String(30), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    def to_dict(self, include_bagging_off: bool = True) -> dict:
        data = {
            "id": self.id,
            "baggingOffId": self.bagging_off_id,
            "batchNo": self.batch_no,
            "transferDate": to_iso(self.transfer_date),
            "status": self.status,
            "notes": self.notes,
            "createdAt": to_iso(self.created_at),
        }
        if include_bagging_off:
            data["baggingOff"] = self.bagging_off.to_dict() if self.bagging_off else None
        return data

    def __repr__(self) -> str:
        return f"<Transfer {self.id} {self.batch_no}>"


# =========================================================
# Wet transfer (wet parchment between stations)
# =========================================================
class WetTransfer(db.Model):
    __tablename__ = "wet_transfer"

    id = db.Column(db.Integer, primary_key=True)

    processing_id = db.Column(db.Integer, db.ForeignKey("processing.id"), nullable=False, index=True)
    processing = db.relationship("Processing", back_populates="wet_transfers", lazy="joined")

    batch_no = db.Column(db.String(40), nullable=True, index=True)
    date = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    source_cws_id = db.Column(db.Integer, db.ForeignKey("cws.id"), nullable=False, index=True)
    source_cws = db.relationship("CWS", foreign_keys=[source_cws_id], lazy="joined")
    destination_cws_id = db.Column(db.Integer, db.ForeignKey("cws.id"), nullable=False, index=True)
    destination_cws = db.relationship("CWS", foreign_keys=[destination_cws_id], lazy="joined")

    total_kgs = db.Column(db.Float, nullable=False, default=0.0)
    output_kgs = db.Column(db.Float, nullable=False, default=0.0)
    grade = db.Column(db.String(10), nullable=False)
    processing_type = db.Column(db.String(30), nullable=False)
    moisture_content = db.Column(db.Float, nullable=False, default=12.0)

    # PENDING / RECEIVED / REJECTED; bagging-off may also stamp its own status here.
    status = db.Column(db.String(30), nullable=False, default=WetTransferStatus.PENDING.value, index=True)
    notes = db.Column(db.Text, nullable=True)

    # Receiving-side quality check
    receiving_cws_id = db.Column(db.Integer, db.ForeignKey("cws.id"), nullable=True)
    received_date = db.Column(db.DateTime, nullable=True)
    received_moisture = db.Column(db.Float, nullable=True)
    defect_percentage = db.Column(db.Float, nullable=True)
    clean_cup_score = db.Column(db.Float, nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    @property
    def quality_notes(self) -> str | None:
        """Text form of the receiving quality check: "Moisture: x, Defects: y, Cup Score: z"."""
        if self.status != WetTransferStatus.RECEIVED.value and self.received_date is None:
            return None

        def fmt(value):
            return "N/A" if value is None else f"{value:g}"

        return (
            f"Moisture: {fmt(self.received_moisture)}, "
            f"Defects: {fmt(self.defect_percentage)}, "
            f"Cup Score: {fmt(self.clean_cup_score)}"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "processingId": self.processing_id,
            "batchNo": self.batch_no,
            "date": to_iso(self.date),
            "sourceCwsId": self.source_cws_id,
            "destinationCwsId": self.destination_cws_id,
            "sourceCws": self.source_cws.to_brief() if self.source_cws else None,
            "destinationCws": self.destination_cws.to_brief() if self.destination_cws else None,
            "totalKgs": self.total_kgs,
            "outputKgs": self.output_kgs,
            "grade": self.grade,
            "processingType": self.processing_type,
            "moistureContent": self.moisture_content,
            "status": self.status,
            "notes": self.notes,
            "receivingCwsId": self.receiving_cws_id,
            "receivedDate": to_iso(self.received_date),
            "receivedMoisture": self.received_moisture,
            "defectPercentage": self.defect_percentage,
            "cleanCupScore": self.clean_cup_score,
            "rejectionReason": self.rejection_reason,
            "qualityNotes": self.quality_notes,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<WetTransfer {self.id} {self.batch_no} {self.status}>"


# =========================================================
# Pricing snapshots (append-only; latest wins)
# =========================================================
class GlobalFees(db.Model):
    __tablename__ = "global_fees"

    id = db.Column(db.Integer, primary_key=True)
    commission_fee = db.Column(db.Float, nullable=False, default=0.0)
    transport_fee = db.Column(db.Float, nullable=False, default=0.0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "commissionFee": self.commission_fee,
            "transportFee": self.transport_fee,
            "createdAt": to_iso(self.created_at),
        }


class CWSPricing(db.Model):
    __tablename__ = "cws_pricing"

    id = db.Column(db.Integer, primary_key=True)
    cws_id = db.Column(db.Integer, db.ForeignKey("cws.id"), nullable=False, index=True)
    grade_a_price = db.Column(db.Float, nullable=False, default=0.0)
    transport_fee = db.Column(db.Float, nullable=False, default=0.0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cwsId": self.cws_id,
            "gradeAPrice": self.grade_a_price,
            "transportFee": self.transport_fee,
            "createdAt": to_iso(self.created_at),
        }


class SiteCollectionFees(db.Model):
    __tablename__ = "site_collection_fees"

    id = db.Column(db.Integer, primary_key=True)
    site_collection_id = db.Column(db.Integer, db.ForeignKey("site_collection.id"), nullable=False, index=True)
    transport_fee = db.Column(db.Float, nullable=False, default=0.0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "siteCollectionId": self.site_collection_id,
            "transportFee": self.transport_fee,
            "createdAt": to_iso(self.created_at),
        }
