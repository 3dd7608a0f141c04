# -- store.py: firma deposu istemcisi (servis yetkisiyle, RLS dışı) --
from contextlib import contextmanager
from typing import Iterable, List, Optional
from sqlalchemy import create_engine, select, delete
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from katip.models import Base, Company, User, Category, row


def make_engine(url:str, **kw)->Engine:
    if url.startswith("sqlite"):
        kw.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(url, future=True, echo=False, **kw)


class CompanyStore:
    """
    Handle on the companies / users / income_expense_categories tables.

    Every method is its own unit of work: committed when it returns, rolled
    back and re-raised (SQLAlchemyError) when it fails. Callers that need
    several writes to hang together must compensate themselves.
    """

    def __init__(self, engine:Engine):
        self.engine=engine
        self.Session=sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)

    @classmethod
    def from_url(cls, url:str, **kw)->"CompanyStore":
        return cls(make_engine(url, **kw))

    def create_all(self):
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self):
        db:Session=self.Session()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # --- yazma ---
    def insert_company(self, name:str, tax_number:Optional[str]=None)->dict:
        with self.session() as db:
            c=Company(name=name, tax_number=tax_number); db.add(c); db.flush()
            return row(c)

    def upsert_user(self, id:str, email:str, full_name:Optional[str], company_id:str, role:str="user")->dict:
        with self.session() as db:
            u=db.merge(User(id=id, email=email, full_name=full_name, company_id=company_id, role=role)); db.flush()
            return row(u)

    def delete_company(self, company_id:str)->int:
        with self.session() as db:
            return db.execute(delete(Company).where(Company.id==company_id)).rowcount

    def insert_categories(self, rows:Iterable[dict])->int:
        with self.session() as db:
            objs=[Category(**r) for r in rows]
            db.add_all(objs); db.flush()
            return len(objs)

    # --- okuma ---
    def get_company(self, company_id:str)->Optional[dict]:
        with self.session() as db:
            c=db.get(Company, company_id)
            return row(c) if c else None

    def find_companies(self, name:str)->List[dict]:
        with self.session() as db:
            return [row(c) for c in db.execute(select(Company).where(Company.name==name)).scalars().all()]

    def get_user(self, user_id:str)->Optional[dict]:
        with self.session() as db:
            u=db.get(User, user_id)
            return row(u) if u else None

    def list_categories(self, company_id:str)->List[dict]:
        with self.session() as db:
            q=select(Category).where(Category.company_id==company_id).order_by(Category.code)
            return [row(c) for c in db.execute(q).scalars().all()]
