"""
Companies and supplier profiles.
"""
from typing import List, Optional

from pydantic import Field

from jobwork.core.errors import NotFound, ValidationFailed
from jobwork.core.rbac import CurrentUser
from jobwork.services.audit import record_audit
from jobwork.services.lifecycle import CommandModel
from jobwork.services.notifications import notify_company_users
from jobwork.storage import Storage
from jobwork.storage.entities import (
    Company, SupplierProfile, NotificationType, UserRole, VerifiedStatus, utcnow,
)


class CompanyData(CommandModel):
    name: str = Field(..., min_length=1, max_length=255)
    gstin: Optional[str] = Field(None, max_length=20)
    pan: Optional[str] = Field(None, max_length=20)
    address: Optional[dict] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: str = "India"


class SupplierProfileData(CommandModel):
    # verified_status is set by admins only and is not accepted here
    capabilities: List[str] = Field(default_factory=list)
    machines: List[str] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)
    moq_default: Optional[int] = Field(None, ge=0)


def save_company(storage: Storage, caller: CurrentUser, data: CompanyData) -> Company:
    """Create the caller's company, or update it if they already have one."""
    with storage.transaction():
        existing = storage.get_company(caller.company_id) if caller.company_id else None
        if existing is None:
            company = storage.create_company(Company(**data.model_dump()))
            storage.update_user_company(caller.id, company.id)
            action = "company_created"
        else:
            for key, value in data.model_dump().items():
                setattr(existing, key, value)
            existing.updated_at = utcnow()
            company = storage.save(existing)
            action = "company_updated"
        record_audit(storage, action, caller, "company", company.id)
    return company


def save_supplier_profile(storage: Storage, caller: CurrentUser,
                          data: SupplierProfileData) -> SupplierProfile:
    if not caller.company_id:
        raise ValidationFailed.for_field("companyId", "Register a company before adding a profile")
    with storage.transaction():
        profile = storage.upsert_supplier_profile(SupplierProfile(
            company_id=caller.company_id,
            capabilities=data.capabilities,
            machines=data.machines,
            certifications=data.certifications,
            moq_default=data.moq_default,
        ))
        record_audit(storage, "supplier_profile_saved", caller, "supplier_profile", profile.id)
    return profile


def verify_supplier(storage: Storage, caller: CurrentUser, company_id: str,
                    status: VerifiedStatus) -> SupplierProfile:
    if storage.get_company(company_id) is None:
        raise NotFound("Company")
    with storage.transaction():
        profile = storage.update_supplier_verification(company_id, status.value)
        record_audit(storage, "supplier_verified", caller, "supplier_profile", profile.id,
                     {"company_id": company_id, "verified_status": status.value})
        notify_company_users(
            storage, company_id, UserRole.SUPPLIER, NotificationType.SUPPLIER_VERIFIED,
            "Verification updated", f"Your supplier verification is now {status.value}",
            "supplier_profile", profile.id,
        )
    return profile
