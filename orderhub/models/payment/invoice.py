from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from orderhub.db.base import BaseModel

class Invoice(BaseModel):
    __tablename__ = 'invoices'

    payment_id = Column(Integer, ForeignKey('payments.id'), unique=True, nullable=False)
    invoice_number = Column(String(50), unique=True, nullable=False)
    pdf_url = Column(String(500))
    issued_at = Column(DateTime(timezone=True), nullable=False)
    sent_at = Column(DateTime(timezone=True))

    # Relationships
    payment = relationship("Payment", back_populates="invoice")
