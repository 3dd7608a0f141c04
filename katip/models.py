# -- models.py (firma / kullanıcı / gelir-gider kategorileri) --
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()

def _uuid(): return str(uuid.uuid4())
def _now(): return datetime.now(timezone.utc)

class Company(Base):
    __tablename__="companies"
    id=Column(String(36), primary_key=True, default=_uuid)
    name=Column(String, nullable=False); tax_number=Column(String)
    created_at=Column(DateTime(timezone=True), default=_now)

class User(Base):
    __tablename__="users"
    # id, kimlik sağlayıcısındaki kullanıcı id'si ile aynı
    id=Column(String, primary_key=True)
    email=Column(String, nullable=False); full_name=Column(String)
    role=Column(String, nullable=False, default="user")
    company_id=Column(String(36), ForeignKey("companies.id"))
    created_at=Column(DateTime(timezone=True), default=_now)
    __table_args__=(CheckConstraint("role in ('admin','user')", name="ck_user_role"),)

class Category(Base):
    __tablename__="income_expense_categories"
    id=Column(String(36), primary_key=True, default=_uuid)
    company_id=Column(String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    code=Column(String, nullable=False); name=Column(String, nullable=False)
    type=Column(String, nullable=False)
    created_at=Column(DateTime(timezone=True), default=_now)
    __table_args__=(
        UniqueConstraint("company_id","code", name="uq_category_company_code"),
        CheckConstraint("type in ('income','expense')", name="ck_category_type"),
    )

# Yeni firmaya açılışta eklenen sabit kategori seti: 8 gider + 3 gelir
DEFAULT_CATEGORIES = (
    # Giderler
    ("G001", "Kira Giderleri", "expense"),
    ("G002", "Elektrik Giderleri", "expense"),
    ("G003", "Su Giderleri", "expense"),
    ("G004", "Doğalgaz Giderleri", "expense"),
    ("P001", "Maaş Ödemeleri", "expense"),
    ("P002", "SGK Ödemeleri", "expense"),
    ("I001", "Ofis Malzemeleri", "expense"),
    ("D001", "Diğer Giderler", "expense"),
    # Gelirler
    ("GEL001", "Satış Gelirleri", "income"),
    ("GEL002", "Hizmet Gelirleri", "income"),
    ("GEL003", "Diğer Gelirler", "income"),
)

def default_categories(company_id:str)->list:
    return [{"company_id":company_id, "code":code, "name":name, "type":kind} for code,name,kind in DEFAULT_CATEGORIES]

def row(obj)->dict:
    return {c.name: getattr(obj, c.name) for c in obj.__table__.columns}
