"""
Module: revcon_kernel.models.company_profile
Responsibility: ORM persistence for the company-wide settings the core
    reads: notification switches/timing and audit switches.
Architecture position: Kernel > Models.  May import from db/base.py only.

The core never writes this table.  A missing row means "use the packaged
defaults" (revcon_config.CompanyProfileConfigSource); nothing is created on
read.  The JSON blobs are parsed by revcon_config.parse_company_settings.
"""

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from revcon_kernel.db.base import TrackedBase


class CompanyProfile(TrackedBase):
    __tablename__ = "company_profiles"

    company_name: Mapped[str] = mapped_column(String(255), nullable=False)

    company_code: Mapped[str | None] = mapped_column(String(20), nullable=True)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    # {"enabled": bool, "project_end_date": bool, ..., "timing": {...}}
    notification_config: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # {"enabled": bool, "log_data_edits": bool, "log_deletions": bool}
    audit_config: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<CompanyProfile {self.company_name}>"
