from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, event

from paycycle.database import Base


class BalanceAuditEntry(Base):
    __tablename__ = "balance_audit_entries"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    employee_id = Column(
        Integer,
        ForeignKey("employees.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    information = Column(Text, nullable=False)
    remarks = Column(String, nullable=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


@event.listens_for(BalanceAuditEntry, "before_update")
def _block_update(mapper, connection, target):
    raise ValueError("balance_audit_entries is append-only")


@event.listens_for(BalanceAuditEntry, "before_delete")
def _block_delete(mapper, connection, target):
    raise ValueError("balance_audit_entries is append-only")
