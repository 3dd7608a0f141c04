# -- registration.py (kayıt tamamlama: firma + kullanıcı + varsayılan kategoriler) --
# Depoda çok tablolu transaction yok; akış bir saga:
#
#   start -> company_created -> user_linked -> categories_seeded -> done
#                  |                   `-- (CategorySeedFailed, loglanır) -> done
#                  |-- (UserLinkFailed) -> rolled_back -> failed
#                  `-- (UserLinkFailed, geri alma da başarısız) -> failed
#
# Kritik adım düşerse tamamlanan adımların telafileri (yeniden eskiye) çalışır, tipli hata fırlatılır.
# Kritik olmayan adım düşerse loglanır ve geçilir.
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple, Type

from katip.models import default_categories
from katip.store import CompanyStore

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Kayıt başarıyla tamamlandı"
DEFAULT_ERROR = "Kayıt işlemi başarısız"


class RegistrationState(str, Enum):
    START = "start"
    COMPANY_CREATED = "company_created"
    USER_LINKED = "user_linked"
    CATEGORIES_SEEDED = "categories_seeded"
    DONE = "done"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"

S = RegistrationState
TRANSITIONS = {
    S.START: {S.COMPANY_CREATED, S.FAILED},
    S.COMPANY_CREATED: {S.USER_LINKED, S.ROLLED_BACK, S.FAILED},
    S.USER_LINKED: {S.CATEGORIES_SEEDED, S.DONE},
    S.CATEGORIES_SEEDED: {S.DONE},
    S.ROLLED_BACK: {S.FAILED},
    S.DONE: set(),
    S.FAILED: set(),
}


class RegistrationError(Exception):
    """`message` is what the caller shows the user."""
    prefix = None

    def __init__(self, reason:str=None):
        self.reason = reason
        if self.prefix and reason: self.message = f"{self.prefix}: {reason}"
        else: self.message = self.prefix or reason or DEFAULT_ERROR
        self.history:Tuple[RegistrationState, ...] = ()
        self.compensation_failed = False
        super().__init__(self.message)

class CompanyCreationFailed(RegistrationError): prefix = "Firma oluşturulamadı"
class UserLinkFailed(RegistrationError): prefix = "Kullanıcı güncellenemedi"
class CategorySeedFailed(RegistrationError): prefix = "Kategori oluşturma hatası"


@dataclass(frozen=True)
class RegistrationRequest:
    user_id: str
    email: str
    full_name: Optional[str]
    company_name: str
    tax_number: Optional[str] = None


@dataclass
class RegistrationContext:
    request: RegistrationRequest
    state: RegistrationState = S.START
    history: List[RegistrationState] = field(default_factory=lambda: [S.START])
    company_id: Optional[str] = None
    user: Optional[dict] = None
    categories_seeded: int = 0
    # geri alma düşerse firma satırı yetim kalır
    compensation_failed: bool = False

    def move(self, new_state:RegistrationState)->None:
        if new_state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"illegal registration transition {self.state.value} -> {new_state.value}")
        logger.info("registration %s: %s -> %s", self.request.user_id, self.state.value, new_state.value)
        self.state = new_state
        self.history.append(new_state)


@dataclass(frozen=True)
class SagaStep:
    name: str
    action: Callable[[RegistrationContext], None]
    reached: RegistrationState
    error: Type[RegistrationError]
    compensate: Optional[Callable[[RegistrationContext], None]] = None
    critical: bool = True


@dataclass(frozen=True)
class RegistrationResult:
    company_id: str
    user: dict
    categories_seeded: int
    history: Tuple[RegistrationState, ...]
    message: str = SUCCESS_MESSAGE


def _reason(exc:Exception)->str:
    # DBAPIError sürücü hatasını .orig'de taşır; kendi str()'i SQL'i de içerir
    orig = getattr(exc, "orig", None)
    return str(orig or exc) or exc.__class__.__name__


class RegistrationSaga:
    def __init__(self, store:CompanyStore):
        self.store = store
        self.steps = (
            SagaStep("create_company", self._create_company, S.COMPANY_CREATED, CompanyCreationFailed, compensate=self._delete_company),
            SagaStep("link_user", self._link_user, S.USER_LINKED, UserLinkFailed),
            SagaStep("seed_categories", self._seed_categories, S.CATEGORIES_SEEDED, CategorySeedFailed, critical=False),
        )

    # --- adımlar ---
    def _create_company(self, ctx:RegistrationContext):
        req = ctx.request
        company = self.store.insert_company(req.company_name.strip(), (req.tax_number or "").strip() or None)
        ctx.company_id = company["id"]
        logger.info("company created: %s", ctx.company_id)

    def _delete_company(self, ctx:RegistrationContext):
        self.store.delete_company(ctx.company_id)
        logger.info("company %s rolled back", ctx.company_id)

    def _link_user(self, ctx:RegistrationContext):
        req = ctx.request
        ctx.user = self.store.upsert_user(id=req.user_id, email=req.email, full_name=req.full_name,
                                          company_id=ctx.company_id, role="admin")

    def _seed_categories(self, ctx:RegistrationContext):
        ctx.categories_seeded = self.store.insert_categories(default_categories(ctx.company_id))

    # --- akış ---
    def run(self, request:RegistrationRequest)->RegistrationResult:
        ctx = RegistrationContext(request)
        completed:List[SagaStep] = []

        for step in self.steps:
            try:
                step.action(ctx)
            except Exception as exc:
                error = step.error(_reason(exc))
                if not step.critical:
                    logger.warning("%s (company %s), continuing", error.message, ctx.company_id, exc_info=True)
                    continue
                logger.error("registration step %s failed: %s", step.name, error.message)
                self._compensate(ctx, completed)
                ctx.move(S.FAILED)
                error.history, error.compensation_failed = tuple(ctx.history), ctx.compensation_failed
                raise error from exc
            ctx.move(step.reached)
            completed.append(step)

        ctx.move(S.DONE)
        return RegistrationResult(company_id=ctx.company_id, user=ctx.user,
                                  categories_seeded=ctx.categories_seeded, history=tuple(ctx.history))

    def _compensate(self, ctx:RegistrationContext, completed:List[SagaStep]):
        undo = [s for s in reversed(completed) if s.compensate]
        if not undo: return
        for step in undo:
            try:
                step.compensate(ctx)
            except Exception:
                # çağırana asıl hata döner; yetim satır loglardan bulunur
                ctx.compensation_failed = True
                logger.exception("compensation for %s failed (company %s)", step.name, ctx.company_id)
        if not ctx.compensation_failed: ctx.move(S.ROLLED_BACK)


def complete_registration(store:CompanyStore, request:RegistrationRequest)->RegistrationResult:
    return RegistrationSaga(store).run(request)
